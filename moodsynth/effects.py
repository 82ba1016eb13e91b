"""Block-based effect processors and the fixed effect chain.

Every processor keeps its own state between blocks, so a stream can be
processed in blocks of any size and sound the same as one long call.  The
chain order is fixed::

	voices → vibrato → lowpass → chorus → distortion → reverb → out
	                                                ↘ analyser tap

Processors are not thread-safe; the engine calls them under its lock.
"""

import logging
import math
import typing

import numpy as np
import scipy.signal

import moodsynth.constants.audio


logger = logging.getLogger(__name__)

SAMPLE_RATE = moodsynth.constants.audio.SAMPLE_RATE

DEFAULT_FILTER_CUTOFF = 2000.0
DEFAULT_FILTER_Q = 1.0
DEFAULT_VIBRATO_RATE = 5.0
DEFAULT_CHORUS_RATE = 1.5
DEFAULT_CHORUS_DELAY = 0.0035
DEFAULT_CHORUS_DEPTH = 0.7
DISTORTION_AMOUNT = 0.4
DEFAULT_REVERB_DECAY = 2.0
DEFAULT_REVERB_WET = 0.3

MAX_MODULATED_DELAY = 0.02


class ModulatedDelay:

	"""
	A delay line whose delay time follows a sine LFO.

	Reads between samples with linear interpolation.  The delay in seconds is
	``base + swing × sin(2π·rate·t)`` and is kept within ``[1 sample, MAX_MODULATED_DELAY]``.
	"""

	def __init__ (self, sample_rate: int = SAMPLE_RATE) -> None:

		self.sample_rate = sample_rate
		self._history_length = int(MAX_MODULATED_DELAY * sample_rate) + 4
		self._history = np.zeros(self._history_length)
		self._time = 0.0


	def process (self, block: np.ndarray, base: float, swing: float, rate: float) -> np.ndarray:

		frames = len(block)
		n = np.arange(frames)
		t = self._time + n / self.sample_rate

		delay = (base + swing * np.sin(2.0 * np.pi * rate * t)) * self.sample_rate
		delay = np.clip(delay, 1.0, MAX_MODULATED_DELAY * self.sample_rate)

		buffer = np.concatenate([self._history, block])
		position = self._history_length + n - delay
		index = np.floor(position).astype(int)
		frac = position - index

		out = buffer[index] * (1.0 - frac) + buffer[index + 1] * frac

		self._history = buffer[-self._history_length:]
		self._time += frames / self.sample_rate

		return out


class Vibrato:

	"""
	Pitch wobble from a modulated delay.

	``depth`` is the peak pitch deviation in semitones.  A delay swinging by
	``A`` seconds at ``f`` Hz shifts pitch by a factor of up to ``1 ± 2πfA``,
	which sets the swing for a given depth.
	"""

	def __init__ (self, sample_rate: int = SAMPLE_RATE) -> None:

		self.depth = 0.0
		self.rate = DEFAULT_VIBRATO_RATE
		self._delay = ModulatedDelay(sample_rate)


	def set (self, depth: float, rate: float) -> None:

		self.depth = max(0.0, depth)
		self.rate = max(0.01, rate)


	def swing_seconds (self) -> float:

		"""Delay swing that produces ``depth`` semitones at ``rate``."""

		return (1.0 - 2.0 ** (-self.depth / 12.0)) / (2.0 * math.pi * self.rate)


	def process (self, block: np.ndarray) -> np.ndarray:

		swing = self.swing_seconds()

		# Offset by the swing so the delay never goes negative.
		return self._delay.process(block, base=swing, swing=swing, rate=self.rate)


def lowpass_coefficients (cutoff: float, q: float, sample_rate: int = SAMPLE_RATE) -> typing.Tuple[np.ndarray, np.ndarray]:

	"""
	Resonant two-pole lowpass (RBJ cookbook biquad), normalized so ``a[0] == 1``.
	"""

	cutoff = min(max(cutoff, 20.0), 0.45 * sample_rate)
	q = max(q, 0.1)

	w0 = 2.0 * math.pi * cutoff / sample_rate
	cos_w0 = math.cos(w0)
	alpha = math.sin(w0) / (2.0 * q)

	b = np.array([(1.0 - cos_w0) / 2.0, 1.0 - cos_w0, (1.0 - cos_w0) / 2.0])
	a = np.array([1.0 + alpha, -2.0 * cos_w0, 1.0 - alpha])

	return b / a[0], a / a[0]


class LowpassFilter:

	"""
	Resonant lowpass whose state carries across blocks and coefficient changes.
	"""

	def __init__ (self, sample_rate: int = SAMPLE_RATE) -> None:

		self.sample_rate = sample_rate
		self.cutoff = DEFAULT_FILTER_CUTOFF
		self.q = DEFAULT_FILTER_Q
		self._b, self._a = lowpass_coefficients(self.cutoff, self.q, sample_rate)
		self._zi = np.zeros(2)


	def set (self, cutoff: float, q: float) -> None:

		self.cutoff = cutoff
		self.q = q
		self._b, self._a = lowpass_coefficients(cutoff, q, self.sample_rate)


	def process (self, block: np.ndarray) -> np.ndarray:

		out, self._zi = scipy.signal.lfilter(self._b, self._a, block, zi=self._zi)

		return np.asarray(out, dtype=np.float64)


class Chorus:

	"""
	Single-voice chorus: the signal mixed with a copy on a slowly swinging short delay.
	"""

	def __init__ (self, sample_rate: int = SAMPLE_RATE) -> None:

		self.wet = 0.0
		self.rate = DEFAULT_CHORUS_RATE
		self.depth = DEFAULT_CHORUS_DEPTH
		self.delay_time = DEFAULT_CHORUS_DELAY
		self._delay = ModulatedDelay(sample_rate)


	def set (self, wet: float, rate: float, depth: float) -> None:

		self.wet = min(1.0, max(0.0, wet))
		self.rate = max(0.01, rate)
		self.depth = min(1.0, max(0.0, depth))


	def process (self, block: np.ndarray) -> np.ndarray:

		delayed = self._delay.process(block, base=self.delay_time, swing=self.delay_time * self.depth, rate=self.rate)

		return (1.0 - self.wet) * block + self.wet * delayed


def distortion_curve (x: np.ndarray, amount: float = DISTORTION_AMOUNT) -> np.ndarray:

	"""
	Soft-clipping waveshaper; larger ``amount`` means harder clipping.
	"""

	k = amount * 100.0
	deg = math.pi / 180.0

	return (3.0 + k) * x * 20.0 * deg / (math.pi + k * np.abs(x))


class Distortion:

	"""
	Fixed-curve waveshaper; only the wet level changes with the mood.
	"""

	def __init__ (self, amount: float = DISTORTION_AMOUNT) -> None:

		self.amount = amount
		self.wet = 0.0


	def set (self, wet: float) -> None:

		self.wet = min(1.0, max(0.0, wet))


	def process (self, block: np.ndarray) -> np.ndarray:

		if self.wet == 0.0:
			return block

		return (1.0 - self.wet) * block + self.wet * distortion_curve(block, self.amount)


def generate_impulse_response (
	decay: float = DEFAULT_REVERB_DECAY,
	sample_rate: int = SAMPLE_RATE,
	seed: typing.Optional[int] = None
) -> np.ndarray:

	"""
	Exponentially decaying noise burst, falling 60 dB over ``decay`` seconds.
	"""

	if decay <= 0:
		raise ValueError("Reverb decay must be positive")

	rng = np.random.default_rng(seed)
	length = int(decay * sample_rate)
	t = np.arange(length) / sample_rate

	impulse = rng.uniform(-1.0, 1.0, length) * np.exp(-6.9 * t / decay)

	return impulse / np.sqrt(np.sum(impulse ** 2))


class ConvolutionReverb:

	"""
	Uniformly partitioned FFT convolution reverb.

	Input is processed in partitions of ``partition_size`` samples, which
	delays the wet signal by one partition; that delay is the reverb's
	pre-delay.  Until an impulse response is loaded only the dry signal passes.
	"""

	def __init__ (self, partition_size: int = moodsynth.constants.audio.BLOCK_SIZE) -> None:

		self.partition_size = partition_size
		self.wet = DEFAULT_REVERB_WET

		self._spectra: typing.Optional[np.ndarray] = None
		self._fdl: typing.Optional[np.ndarray] = None
		self._previous = np.zeros(partition_size)

		self._pending = np.zeros(0)
		self._ready = np.zeros(partition_size)


	@property
	def loaded (self) -> bool:

		return self._spectra is not None


	def set (self, wet: float) -> None:

		self.wet = min(1.0, max(0.0, wet))


	def set_impulse_response (self, impulse: np.ndarray) -> None:

		"""
		Split ``impulse`` into partitions and precompute their spectra.
		"""

		size = self.partition_size
		count = max(1, math.ceil(len(impulse) / size))
		padded = np.zeros(count * size)
		padded[:len(impulse)] = impulse

		partitions = padded.reshape(count, size)
		self._spectra = np.fft.rfft(np.concatenate([partitions, np.zeros((count, size))], axis=1), axis=1)
		self._fdl = np.zeros_like(self._spectra)

		logger.debug(f"Reverb loaded: {len(impulse)} samples in {count} partitions")


	def _convolve_partition (self, partition: np.ndarray) -> np.ndarray:

		assert self._spectra is not None and self._fdl is not None

		spectrum = np.fft.rfft(np.concatenate([self._previous, partition]))
		self._previous = partition

		self._fdl[1:] = self._fdl[:-1]
		self._fdl[0] = spectrum

		return np.fft.irfft(np.sum(self._spectra * self._fdl, axis=0), n=2 * self.partition_size)[self.partition_size:]


	def process (self, block: np.ndarray) -> np.ndarray:

		if not self.loaded or self.wet == 0.0:
			return block

		size = self.partition_size
		self._pending = np.concatenate([self._pending, block])
		produced = [self._ready]

		while len(self._pending) >= size:
			produced.append(self._convolve_partition(self._pending[:size]))
			self._pending = self._pending[size:]

		available = np.concatenate(produced)
		wet_signal = available[:len(block)]
		self._ready = available[len(block):]

		return (1.0 - self.wet) * block + self.wet * wet_signal


class EffectChain:

	"""
	The fixed processing chain after the voice pool.
	"""

	def __init__ (self, sample_rate: int = SAMPLE_RATE, partition_size: int = moodsynth.constants.audio.BLOCK_SIZE) -> None:

		self.sample_rate = sample_rate
		self.vibrato = Vibrato(sample_rate)
		self.filter = LowpassFilter(sample_rate)
		self.chorus = Chorus(sample_rate)
		self.distortion = Distortion()
		self.reverb = ConvolutionReverb(partition_size)


	def process (self, block: np.ndarray) -> typing.Tuple[np.ndarray, np.ndarray]:

		"""
		Run one block through the chain.

		Returns:
			``(pre_reverb, output)``: the signal after distortion (analyser tap
			point) and the final output.
		"""

		signal = self.vibrato.process(block)
		signal = self.filter.process(signal)
		signal = self.chorus.process(signal)
		pre_reverb = self.distortion.process(signal)

		return pre_reverb, self.reverb.process(pre_reverb)

"""Oscillators, envelopes and voice pools.

A :class:`Voice` is one sounding note: a carrier oscillator (optionally
frequency- or amplitude-modulated) shaped by an ADSR envelope.  Voices render
themselves block by block and report when their release tail has finished.

Voice pools come in two variants sharing the :class:`VoicePool` interface:

- :class:`PolyphonicVoicePool` sounds any number of notes at once, up to a
  polyphony limit after which the oldest voice is stolen.
- :class:`MonophonicVoicePool` sounds one note; a new trigger replaces the
  current voice.

Pools are not thread-safe on their own.  The engine serializes access.
"""

import abc
import dataclasses
import logging
import math
import typing

import numpy as np

import moodsynth.constants.audio
import moodsynth.instruments
import moodsynth.mapper


logger = logging.getLogger(__name__)

# Per-voice gain; leaves headroom for a full chord before the master volume.
VOICE_GAIN = 0.2

# Release used when a voice is stolen or cut, short enough to avoid a click.
STEAL_RELEASE_SECONDS = 0.01


def oscillator (shape: str, phase: np.ndarray) -> np.ndarray:

	"""
	Evaluate a waveform at ``phase`` (in cycles, any real value).
	"""

	frac = np.mod(phase, 1.0)

	if shape == "sine":
		return np.sin(2.0 * np.pi * frac)

	if shape == "square":
		return np.where(frac < 0.5, 1.0, -1.0)

	if shape == "sawtooth":
		return 2.0 * frac - 1.0

	if shape == "triangle":
		return 1.0 - 4.0 * np.abs(frac - 0.5)

	raise ValueError(f"Unknown oscillator shape {shape!r}")


def envelope_level (envelope: moodsynth.mapper.Envelope, t: np.ndarray) -> np.ndarray:

	"""
	Attack-decay-sustain level at times ``t`` (seconds since note on), gate held.
	"""

	attack = max(envelope.attack, 1e-4)
	decay = max(envelope.decay, 1e-4)

	return np.where(
		t < attack,
		t / attack,
		np.where(
			t < attack + decay,
			1.0 - (1.0 - envelope.sustain) * (t - attack) / decay,
			envelope.sustain
		)
	)


@dataclasses.dataclass (frozen=True)
class VoiceSettings:

	"""
	Waveform and envelope settings shared by every voice in a pool.
	"""

	kind: moodsynth.instruments.VoiceKind
	oscillator_shape: str
	envelope: moodsynth.mapper.Envelope
	harmonicity: float = 1.0
	modulation_index: float = 0.0
	modulation_shape: str = "sine"

	@classmethod
	def from_instrument (cls, config: moodsynth.instruments.InstrumentConfig) -> "VoiceSettings":

		"""Voice settings for an instrument preset."""

		return cls(
			kind = config.kind,
			oscillator_shape = config.oscillator_shape,
			envelope = config.envelope,
			harmonicity = config.harmonicity,
			modulation_index = config.modulation_index,
			modulation_shape = config.modulation_shape
		)


class Voice:

	"""
	One sounding note.

	The gate closes ``duration`` seconds after the note starts (or earlier via
	:meth:`release`), after which the level falls linearly to zero over the
	envelope's release time.
	"""

	def __init__ (
		self,
		frequency: float,
		duration: float,
		velocity: float,
		settings: VoiceSettings,
		sample_rate: int = moodsynth.constants.audio.SAMPLE_RATE
	) -> None:

		if frequency <= 0:
			raise ValueError("Frequency must be positive")

		self.frequency = frequency
		self.velocity = min(1.0, max(0.0, velocity))
		self.settings = settings
		self.sample_rate = sample_rate

		self.elapsed = 0.0
		self.release_time = max(0.0, duration)
		self.release_duration = max(settings.envelope.release, 1e-3)

		self._phase = 0.0
		self._mod_phase = 0.0


	@property
	def finished (self) -> bool:

		"""True once the release tail has run out."""

		return self.elapsed >= self.release_time + self.release_duration


	def release (self, release_duration: typing.Optional[float] = None) -> None:

		"""
		Close the gate now, optionally with a different release time.
		"""

		if self.elapsed < self.release_time:
			self.release_time = self.elapsed

		if release_duration is not None:
			self.release_duration = max(release_duration, 1e-3)


	def _levels (self, t: np.ndarray) -> np.ndarray:

		envelope = self.settings.envelope
		held = envelope_level(envelope, t)

		release_start = float(envelope_level(envelope, np.array([self.release_time]))[0])
		released = release_start * (1.0 - (t - self.release_time) / self.release_duration)

		return np.where(t < self.release_time, held, np.clip(released, 0.0, None))


	def render (self, frames: int) -> np.ndarray:

		"""
		Render the next ``frames`` samples and advance the voice clock.
		"""

		t = self.elapsed + np.arange(frames) / self.sample_rate
		increment = self.frequency / self.sample_rate
		phase = self._phase + increment * np.arange(frames)

		settings = self.settings
		kind = settings.kind

		if kind is moodsynth.instruments.VoiceKind.SYNTH:
			signal = oscillator(settings.oscillator_shape, phase)

		else:
			mod_increment = self.frequency * settings.harmonicity / self.sample_rate
			mod_phase = self._mod_phase + mod_increment * np.arange(frames)
			modulator = oscillator(settings.modulation_shape, mod_phase)
			self._mod_phase = (self._mod_phase + mod_increment * frames) % 1.0

			if kind is moodsynth.instruments.VoiceKind.FM:
				# Phase modulation with the index expressed in radians.
				signal = oscillator(settings.oscillator_shape, phase + settings.modulation_index * modulator / (2.0 * math.pi))
			else:
				signal = oscillator(settings.oscillator_shape, phase) * (0.5 + 0.5 * modulator)

		self._phase = (self._phase + increment * frames) % 1.0
		self.elapsed += frames / self.sample_rate

		return signal * self._levels(t) * self.velocity * VOICE_GAIN


class VoicePool (abc.ABC):

	"""
	A set of voices built from one instrument.
	"""

	polyphonic: bool = True

	def __init__ (self, settings: VoiceSettings, sample_rate: int = moodsynth.constants.audio.SAMPLE_RATE) -> None:

		self.settings = settings
		self.sample_rate = sample_rate
		self.voices: typing.List[Voice] = []
		self.disposed = False


	@abc.abstractmethod
	def trigger (self, frequencies: typing.Sequence[float], duration: float, velocity: float = 1.0) -> None:

		"""Start notes at ``frequencies`` that release after ``duration`` seconds."""


	def set_envelope (self, envelope: moodsynth.mapper.Envelope) -> None:

		"""Envelope for notes triggered from now on."""

		self.settings = dataclasses.replace(self.settings, envelope=envelope)


	def set_oscillator_shape (self, shape: str) -> None:

		"""Carrier waveform for notes triggered from now on."""

		if shape not in moodsynth.mapper.OSCILLATOR_SHAPES:
			raise ValueError(f"Unknown oscillator shape {shape!r}")

		self.settings = dataclasses.replace(self.settings, oscillator_shape=shape)


	def release_all (self) -> None:

		"""Close the gate on every sounding voice."""

		for voice in self.voices:
			voice.release()


	@property
	def active_voices (self) -> int:

		return len(self.voices)


	def render (self, frames: int) -> np.ndarray:

		"""
		Mix every voice into one mono block and drop finished voices.
		"""

		out = np.zeros(frames)

		for voice in self.voices:
			out += voice.render(frames)

		self.voices = [voice for voice in self.voices if not voice.finished]

		return out


	def dispose (self) -> None:

		self.voices = []
		self.disposed = True


class PolyphonicVoicePool (VoicePool):

	"""
	Plays chords.  Beyond ``max_polyphony`` voices the oldest are stolen.
	"""

	polyphonic = True

	def __init__ (
		self,
		settings: VoiceSettings,
		sample_rate: int = moodsynth.constants.audio.SAMPLE_RATE,
		max_polyphony: int = moodsynth.constants.audio.DEFAULT_MAX_POLYPHONY
	) -> None:

		if max_polyphony < 1:
			raise ValueError("Polyphony must be at least 1")

		super().__init__(settings, sample_rate)
		self.max_polyphony = max_polyphony


	def trigger (self, frequencies: typing.Sequence[float], duration: float, velocity: float = 1.0) -> None:

		for frequency in frequencies:
			self.voices.append(Voice(frequency, duration, velocity, self.settings, self.sample_rate))

		overflow = len(self.voices) - self.max_polyphony

		if overflow > 0:
			logger.debug(f"Stealing {overflow} voice(s)")
			del self.voices[:overflow]


class MonophonicVoicePool (VoicePool):

	"""
	One note at a time.  Only the first frequency of a trigger sounds.
	"""

	polyphonic = False

	def trigger (self, frequencies: typing.Sequence[float], duration: float, velocity: float = 1.0) -> None:

		if not frequencies:
			return

		for voice in self.voices:
			voice.release(STEAL_RELEASE_SECONDS)

		self.voices.append(Voice(frequencies[0], duration, velocity, self.settings, self.sample_rate))


def build_pool (
	config: moodsynth.instruments.InstrumentConfig,
	sample_rate: int = moodsynth.constants.audio.SAMPLE_RATE,
	max_polyphony: int = moodsynth.constants.audio.DEFAULT_MAX_POLYPHONY
) -> VoicePool:

	"""
	Build the pool variant an instrument preset asks for.
	"""

	settings = VoiceSettings.from_instrument(config)

	if config.polyphonic:
		return PolyphonicVoicePool(settings, sample_rate, max_polyphony)

	return MonophonicVoicePool(settings, sample_rate)

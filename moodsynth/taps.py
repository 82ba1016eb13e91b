"""Read-only consumers attached to the synthesis engine.

A tap sees what the engine plays and never changes it: audio blocks arrive as
read-only arrays, and note triggers arrive as plain values after the engine
has already started the voices.  The engine offers two audio tap points:

- ``"analyser"``: after distortion, before reverb (what the original UI draws).
- ``"output"``: the final signal after reverb.

Three taps ship here: :class:`AnalyserTap` for visualization,
:class:`RecorderTap` for in-memory capture, and :class:`MidiTap`, which mirrors
played notes to a MIDI port and can save them as a standard MIDI file.
"""

import datetime
import heapq
import itertools
import logging
import threading
import typing

import mido
import numpy as np

import moodsynth.constants.audio
import moodsynth.midi_utils
import moodsynth.pitch


logger = logging.getLogger(__name__)

TAP_POINTS = ("analyser", "output")


class Tap:

	"""
	Base class: both hooks do nothing.
	"""

	point: str = "output"

	def process_block (self, block: np.ndarray, sample_rate: int) -> None:

		"""Called from the render thread with each rendered block."""


	def notes_triggered (self, pitches: typing.Sequence[str], duration: float, velocity: float) -> None:

		"""Called after the engine starts notes, with the gate length in seconds."""


	def notes_released (self) -> None:

		"""Called when the engine releases every sounding voice."""


	def close (self) -> None:

		"""Release anything the tap holds."""


class AnalyserTap (Tap):

	"""
	Keeps the latest waveform window and derives levels and a spectrum from it.

	Frequencies are reported in dB, one value per FFT bin, as a spectrum
	analyser would draw them.
	"""

	point = "analyser"

	def __init__ (self, waveform_size: int = 256, fft_bins: int = 64) -> None:

		self.waveform_size = waveform_size
		self.fft_bins = fft_bins
		self._window = np.zeros(max(waveform_size, 2 * fft_bins))
		self._lock = threading.Lock()


	def process_block (self, block: np.ndarray, sample_rate: int) -> None:

		with self._lock:
			combined = np.concatenate([self._window, block])
			self._window = combined[-len(self._window):]


	def get_waveform (self) -> np.ndarray:

		"""The most recent ``waveform_size`` samples, in ``[-1, 1]``."""

		with self._lock:
			return np.clip(self._window[-self.waveform_size:], -1.0, 1.0)


	def get_frequencies (self) -> np.ndarray:

		"""
		Magnitude spectrum of the latest window in dB (floor -100 dB).
		"""

		with self._lock:
			segment = self._window[-2 * self.fft_bins:]

		windowed = segment * np.hanning(len(segment))
		magnitude = np.abs(np.fft.rfft(windowed))[:self.fft_bins] / self.fft_bins

		return 20.0 * np.log10(np.maximum(magnitude, 1e-5))


	def get_amplitude (self) -> float:

		"""RMS level of the waveform window."""

		waveform = self.get_waveform()

		return float(np.sqrt(np.mean(waveform ** 2)))


	def get_peak (self) -> float:

		return float(np.max(np.abs(self.get_waveform())))


	def get_frequency_bands (self) -> typing.Dict[str, float]:

		"""
		Average of the spectrum in thirds, each mapped from dB to roughly ``0..1``.
		"""

		values = np.maximum(0.0, (self.get_frequencies() + 100.0) / 100.0)
		count = len(values)
		bass_end = count // 3
		mid_end = (count * 2) // 3

		return {
			"bass": float(np.mean(values[:bass_end])),
			"mid": float(np.mean(values[bass_end:mid_end])),
			"treble": float(np.mean(values[mid_end:])),
		}


class RecorderTap (Tap):

	"""
	Captures the output signal in memory between :meth:`start` and :meth:`stop`.
	"""

	point = "output"

	def __init__ (self) -> None:

		self.recording = False
		self.paused = False
		self.sample_rate = moodsynth.constants.audio.SAMPLE_RATE
		self._blocks: typing.List[np.ndarray] = []
		self._lock = threading.Lock()


	def start (self) -> bool:

		"""Begin a fresh capture; returns False if one is already running."""

		if self.recording:
			logger.warning("Cannot start recording: already recording")
			return False

		with self._lock:
			self._blocks = []

		self.recording = True
		self.paused = False
		logger.info("Recording started")

		return True


	def pause (self) -> None:

		if self.recording:
			self.paused = True


	def resume (self) -> None:

		if self.recording:
			self.paused = False


	def stop (self) -> typing.Optional[np.ndarray]:

		"""
		End the capture and return the recorded samples, or ``None`` if not recording.
		"""

		if not self.recording:
			logger.warning("Cannot stop recording: not recording")
			return None

		self.recording = False
		self.paused = False

		with self._lock:
			samples = np.concatenate(self._blocks) if self._blocks else np.zeros(0)
			self._blocks = []

		logger.info(f"Recording stopped ({len(samples) / self.sample_rate:.2f}s)")

		return samples


	@property
	def duration (self) -> float:

		"""Seconds captured so far."""

		with self._lock:
			return sum(len(block) for block in self._blocks) / self.sample_rate


	def process_block (self, block: np.ndarray, sample_rate: int) -> None:

		if not self.recording or self.paused:
			return

		self.sample_rate = sample_rate

		with self._lock:
			self._blocks.append(np.array(block, dtype=np.float32))


class MidiTap (Tap):

	"""
	Mirrors every note the engine plays to a MIDI output.

	Note-offs are sent when their time comes, measured by the audio clock (the
	number of samples rendered since the tap was connected).  With recording
	enabled, messages are also kept and written to a MIDI file by
	:meth:`save_recording`.
	"""

	point = "output"

	def __init__ (
		self,
		output_device_name: typing.Optional[str] = None,
		channel: int = 0,
		record: bool = False,
		record_filename: typing.Optional[str] = None,
		midi_out: typing.Optional[typing.Any] = None,
		mirror: bool = True,
		interactive: bool = False
	) -> None:

		"""
		Parameters:
			output_device_name: MIDI port to open (see :func:`moodsynth.midi_utils.select_output_device`).
			channel: Zero-based MIDI channel.
			record: Keep every message for :meth:`save_recording`.
			record_filename: Output file (defaults to a timestamp).
			midi_out: An already-open port; skips device selection.
			mirror: Open a port at all. With ``False`` the tap only records.
			interactive: Ask on the console when several ports exist and none is named.
		"""

		if not 0 <= channel <= 15:
			raise ValueError("MIDI channel must be 0-15")

		self.channel = channel
		self.recording = record
		self.record_filename = record_filename
		self.recorded_events: typing.List[typing.Tuple[float, mido.Message]] = []

		self.clock = 0.0
		self._pending_offs: typing.List[typing.Tuple[float, int, int]] = []
		self._counter = itertools.count()
		self._lock = threading.Lock()

		if midi_out is not None:
			self.output_device_name = output_device_name
			self.midi_out = midi_out
		elif not mirror:
			self.output_device_name = None
			self.midi_out = None
		else:
			self.output_device_name, self.midi_out = moodsynth.midi_utils.select_output_device(output_device_name, interactive=interactive)


	def _send (self, message: mido.Message) -> None:

		if self.recording:
			self.recorded_events.append((self.clock, message))

		if self.midi_out is not None:
			try:
				self.midi_out.send(message)
			except Exception:
				logger.exception(f"Failed to send MIDI {message.type} message")


	def notes_triggered (self, pitches: typing.Sequence[str], duration: float, velocity: float) -> None:

		midi_velocity = max(1, min(127, int(round(velocity * 127))))

		with self._lock:

			for pitch in pitches:

				try:
					note = moodsynth.pitch.pitch_to_midi(pitch)
				except ValueError:
					continue

				if not 0 <= note <= 127:
					continue

				self._send(mido.Message("note_on", channel=self.channel, note=note, velocity=midi_velocity))
				heapq.heappush(self._pending_offs, (self.clock + duration, next(self._counter), note))


	def process_block (self, block: np.ndarray, sample_rate: int) -> None:

		with self._lock:

			self.clock += len(block) / sample_rate

			while self._pending_offs and self._pending_offs[0][0] <= self.clock:
				_, _, note = heapq.heappop(self._pending_offs)
				self._send(mido.Message("note_off", channel=self.channel, note=note, velocity=0))


	def notes_released (self) -> None:

		self.all_notes_off()


	def all_notes_off (self) -> None:

		"""Send every outstanding note-off now."""

		with self._lock:

			while self._pending_offs:
				_, _, note = heapq.heappop(self._pending_offs)
				self._send(mido.Message("note_off", channel=self.channel, note=note, velocity=0))


	def save_recording (self) -> typing.Optional[str]:

		"""
		Write recorded messages to a type 0 MIDI file; returns the filename.
		"""

		if not self.recording or not self.recorded_events:
			return None

		if self.record_filename:
			filename = self.record_filename
		else:
			now = datetime.datetime.now()
			filename = now.strftime("moodsynth_%Y%m%d_%H%M%S.mid")

		logger.info(f"Saving MIDI recording ({len(self.recorded_events)} events) to {filename}...")

		mid = mido.MidiFile(type=0)
		mid.ticks_per_beat = 480
		track = mido.MidiTrack()
		mid.tracks.append(track)

		tempo = mido.bpm2tempo(120)
		track.append(mido.MetaMessage("set_tempo", tempo=tempo, time=0))

		last_seconds = 0.0

		for seconds, message in sorted(self.recorded_events, key=lambda item: item[0]):

			delta_ticks = int(round(mido.second2tick(seconds - last_seconds, mid.ticks_per_beat, tempo)))
			track.append(message.copy(time=max(0, delta_ticks)))
			last_seconds = seconds

		try:
			mid.save(filename)
			logger.info(f"Saved {filename}")
		except OSError as e:
			logger.error(f"Failed to save MIDI recording: {e}")
			return None

		return filename


	def close (self) -> None:

		self.all_notes_off()

		if self.midi_out is not None:
			self.midi_out.close()
			self.midi_out = None

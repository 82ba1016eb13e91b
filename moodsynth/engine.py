"""The synthesis engine.

The engine owns a voice pool and the fixed effect chain, and renders audio on
demand for its audio context.  Everything that changes the sound (parameter
updates, instrument swaps, note triggers) happens under one re-entrant lock,
so a render block never sees a half-applied change.

Notes played on a scale degree of the current mood sound as chords: the
mood's chord intervals stacked on that degree, plus the root an octave down.
"""

import asyncio
import functools
import logging
import threading
import types
import typing

import numpy as np

import moodsynth.audio_context
import moodsynth.constants.audio
import moodsynth.constants.durations
import moodsynth.effects
import moodsynth.errors
import moodsynth.instruments
import moodsynth.mapper
import moodsynth.pitch
import moodsynth.taps
import moodsynth.transport
import moodsynth.voices


logger = logging.getLogger(__name__)

NoteValue = moodsynth.constants.durations.NoteValue
Duration = typing.Union[NoteValue, str, float, int]

# Keyboard rows → scale index.
KEY_MAP: typing.Mapping[str, int] = types.MappingProxyType({
	**{key: index for index, key in enumerate("12345678")},
	**{key: index for index, key in enumerate("qwertyuio")},
	**{key: index for index, key in enumerate("asdfghjkl")},
	**{key: index for index, key in enumerate("zxcvbnm")},
})


class SynthesisEngine:

	"""
	Voice pool plus effect chain, driven by mood parameters.

	Lifecycle: construct, ``await initialize()``, use, ``dispose()``.  Before
	initialization every sound-changing call is a logged no-op and
	:meth:`play_note` returns ``False``.

	Example::

		engine = SynthesisEngine(transport=transport)
		await engine.initialize()
		engine.update_parameters(moodsynth.mapper.map_mood(mood))
		await engine.play_note("E4", NoteValue.QUARTER)
	"""

	def __init__ (
		self,
		context: typing.Optional[moodsynth.audio_context.BaseAudioContext] = None,
		transport: typing.Optional[moodsynth.transport.Transport] = None,
		instrument: typing.Union[str, moodsynth.instruments.Instrument] = moodsynth.instruments.DEFAULT_INSTRUMENT,
		max_polyphony: int = moodsynth.constants.audio.DEFAULT_MAX_POLYPHONY,
		reverb_decay: float = moodsynth.effects.DEFAULT_REVERB_DECAY,
		impulse_seed: typing.Optional[int] = None
	) -> None:

		"""
		Parameters:
			context: Where audio goes.  Defaults to a sounddevice :class:`~moodsynth.audio_context.AudioContext`.
			transport: Shared clock; its tempo follows :meth:`update_parameters`
				and converts note values to seconds.
			instrument: Instrument used when the pool is first built.
			max_polyphony: Voice limit for polyphonic instruments.
			reverb_decay: Reverb tail in seconds.
			impulse_seed: Seed for the reverb's noise impulse response.
		"""

		self.context = context if context is not None else moodsynth.audio_context.AudioContext()
		self.transport = transport
		self.max_polyphony = max_polyphony
		self.reverb_decay = reverb_decay
		self.impulse_seed = impulse_seed

		self.initialized = False
		self.pool: typing.Optional[moodsynth.voices.VoicePool] = None
		self.chain: typing.Optional[moodsynth.effects.EffectChain] = None

		self._lock = threading.RLock()
		self._instrument = moodsynth.instruments.parse_instrument(instrument)
		self._parameters: typing.Optional[moodsynth.mapper.ParameterSet] = None
		self._scale: typing.List[str] = []
		self._chord_intervals: typing.List[int] = []
		self._volume = 1.0
		self._tempo = moodsynth.constants.audio.DEFAULT_BPM
		self._taps: typing.List[moodsynth.taps.Tap] = []


	@property
	def sample_rate (self) -> int:

		return self.context.sample_rate


	@property
	def instrument (self) -> moodsynth.instruments.Instrument:

		return self._instrument


	@property
	def effects_preset (self) -> moodsynth.instruments.EffectsPreset:

		return moodsynth.instruments.INSTRUMENTS[self._instrument].effects


	@property
	def parameters (self) -> typing.Optional[moodsynth.mapper.ParameterSet]:

		"""The last parameter set applied, or ``None``."""

		return self._parameters


	@property
	def scale (self) -> typing.Tuple[str, ...]:

		return tuple(self._scale)


	@property
	def tempo (self) -> float:

		return self.transport.current_bpm if self.transport is not None else self._tempo


	async def initialize (self) -> None:

		"""
		Build the voice pool and effect chain and try to start audio output.

		Calling it again does nothing.  If the audio output cannot start, the
		failure is logged and the engine stays usable; :meth:`play_note` tries
		to resume the output again on the next note.
		"""

		if self.initialized:
			return

		config = moodsynth.instruments.INSTRUMENTS[self._instrument]
		chain = moodsynth.effects.EffectChain(self.sample_rate, self.context.block_size)

		# The impulse response is a few seconds of noise; build it off the event loop.
		loop = asyncio.get_running_loop()
		impulse = await loop.run_in_executor(
			None,
			functools.partial(moodsynth.effects.generate_impulse_response, self.reverb_decay, self.sample_rate, self.impulse_seed)
		)
		chain.reverb.set_impulse_response(impulse)

		with self._lock:
			self.pool = moodsynth.voices.build_pool(config, self.sample_rate, self.max_polyphony)
			self.chain = chain
			self.initialized = True

		self.context.attach(self.render)

		try:
			await self.context.resume()
		except moodsynth.errors.AudioInitializationError as exc:
			logger.warning(f"Audio output not started: {exc}. Will retry on the first note.")

		logger.info(f"Synthesis engine initialized ({config.name}), audio context {self.context.state.value}")


	def _apply_effects (self, params: moodsynth.mapper.ParameterSet) -> None:

		assert self.chain is not None

		preset = self.effects_preset

		self.chain.vibrato.set(params.vibrato.depth, params.vibrato.rate)
		self.chain.filter.set(params.filter_cutoff + preset.filter_offset, params.filter_q)
		self.chain.chorus.set(params.chorus.wet * preset.chorus_multiplier, params.chorus.rate, params.chorus.depth)
		self.chain.distortion.set(params.distortion * preset.distortion_multiplier)
		self.chain.reverb.set(params.reverb * preset.reverb_multiplier)


	def update_parameters (self, params: moodsynth.mapper.ParameterSet) -> None:

		"""
		Apply a full parameter set and remember its scale and chord intervals.
		"""

		if not self.initialized or self.pool is None:
			logger.debug("Engine not initialized - parameter update ignored")
			return

		with self._lock:
			self.pool.set_oscillator_shape(params.oscillator_shape)
			self.pool.set_envelope(params.envelope)
			self._apply_effects(params)
			self._volume = params.volume
			self._scale = list(params.scale)
			self._chord_intervals = list(params.chord_intervals)
			self._tempo = params.tempo
			self._parameters = params

		if self.transport is not None:
			self.transport.set_bpm(params.tempo)

		logger.info(
			f"Parameters applied: {params.tempo:.0f} BPM, {params.oscillator_shape}, "
			f"cutoff {params.filter_cutoff:.0f} Hz, reverb {params.reverb:.2f}, volume {params.volume:.2f}"
		)


	def set_instrument (self, instrument: typing.Union[str, moodsynth.instruments.Instrument]) -> None:

		"""
		Replace the voice pool with one built for ``instrument``.

		The effect chain keeps running; the last mood's effect levels are
		re-applied with the new instrument's preset.  The new voices use the
		instrument's own envelope and waveform until the next parameter update.
		"""

		if not self.initialized:
			logger.debug("Engine not initialized - instrument change ignored")
			return

		instrument = moodsynth.instruments.parse_instrument(instrument)
		config = moodsynth.instruments.INSTRUMENTS[instrument]

		with self._lock:

			if self.pool is not None:
				self.pool.dispose()

			self.pool = moodsynth.voices.build_pool(config, self.sample_rate, self.max_polyphony)
			self._instrument = instrument

			if self._parameters is not None:
				self._apply_effects(self._parameters)

		logger.info(f"Instrument changed to: {config.name}")


	def chord_notes (self, root_index: int) -> typing.List[str]:

		"""
		Chord on scale degree ``root_index``: the root an octave down, then one
		note per chord interval.

		Intervals that run past the end of the scale are lifted by whole
		octaves so they sound as extensions rather than wrapping back down.
		"""

		scale = self._scale
		intervals = self._chord_intervals

		if not scale or not intervals:
			return []

		if not 0 <= root_index < len(scale):
			raise ValueError(f"Root index {root_index} outside scale of {len(scale)} notes")

		length = len(scale)
		notes = [moodsynth.pitch.transpose_octave(scale[root_index], -1)]

		for interval in intervals:

			position = root_index + interval
			note = scale[position % length]
			octaves_up = position // length

			if octaves_up > 0:
				note = moodsynth.pitch.transpose_octave(note, octaves_up)

			notes.append(note)

		return notes


	def key_to_note (self, key: str) -> typing.Optional[str]:

		"""
		The scale note for a keyboard key, or ``None`` for unmapped keys.

		Falls back to C major when no scale has been applied yet.
		"""

		with self._lock:

			if not self._scale:
				logger.info("No scale set, using default C major scale")
				self._scale = list(moodsynth.mapper.DEFAULT_SCALE)

			index = KEY_MAP.get(key.lower())

			if index is not None and index < len(self._scale):
				return self._scale[index]

		return None


	def _duration_seconds (self, duration: Duration) -> float:

		if isinstance(duration, (int, float)) and not isinstance(duration, bool):

			if duration <= 0:
				raise ValueError("Duration must be positive")

			return float(duration)

		return moodsynth.constants.durations.seconds(NoteValue(duration), self.tempo)


	async def play_note (self, pitch: str, duration: Duration = NoteValue.EIGHTH, velocity: float = 1.0) -> bool:

		"""
		Sound ``pitch`` (or its chord, if it is a note of the current scale).

		``duration`` is a note value (converted at the current tempo) or
		seconds.  Returns ``False`` instead of raising when nothing could be
		played.
		"""

		if not self.initialized or self.pool is None:
			logger.warning("Audio engine not initialized")
			return False

		if not self.context.running:
			logger.info("Resuming suspended audio context...")
			try:
				await self.context.resume()
			except moodsynth.errors.AudioInitializationError as exc:
				logger.error(f"Failed to resume audio context: {exc}")
				return False

		try:
			seconds = self._duration_seconds(duration)
		except ValueError as exc:
			logger.warning(f"Cannot play {pitch!r}: {exc}")
			return False

		with self._lock:

			if self.pool is None:
				return False

			if pitch in self._scale and self._chord_intervals and self.pool.polyphonic:
				notes = self.chord_notes(self._scale.index(pitch))
			else:
				notes = [pitch]

			try:
				frequencies = [moodsynth.pitch.pitch_to_frequency(note) for note in notes]
			except ValueError as exc:
				logger.warning(f"Cannot play {pitch!r}: {exc}")
				return False

			self.pool.trigger(frequencies, seconds, velocity)
			taps = list(self._taps)

		logger.debug(f"Playing {notes} for {seconds:.3f}s")

		for tap in taps:
			tap.notes_triggered(notes, seconds, velocity)

		return True


	def stop (self) -> None:

		"""
		Release every sounding voice.
		"""

		with self._lock:

			if self.pool is not None:
				self.pool.release_all()

			taps = list(self._taps)

		for tap in taps:
			tap.notes_released()


	def connect_tap (self, tap: moodsynth.taps.Tap) -> None:

		"""
		Attach a read-only consumer at its tap point.
		"""

		if tap.point not in moodsynth.taps.TAP_POINTS:
			raise ValueError(f"Unknown tap point {tap.point!r}. Valid: {list(moodsynth.taps.TAP_POINTS)}")

		with self._lock:
			if tap not in self._taps:
				self._taps.append(tap)


	def disconnect_tap (self, tap: moodsynth.taps.Tap) -> None:

		with self._lock:

			if tap not in self._taps:
				raise ValueError("Tap is not connected")

			self._taps.remove(tap)


	def render (self, frames: int) -> np.ndarray:

		"""
		Render the next ``frames`` samples; called from the audio thread.
		"""

		with self._lock:

			if self.pool is None or self.chain is None:
				return np.zeros(frames)

			dry = self.pool.render(frames) * self._volume
			pre_reverb, output = self.chain.process(dry)
			taps = list(self._taps)

		for tap in taps:

			view = (pre_reverb if tap.point == "analyser" else output).view()
			view.flags.writeable = False

			try:
				tap.process_block(view, self.sample_rate)
			except Exception:
				logger.exception(f"Tap {type(tap).__name__} failed")

		return output


	def dispose (self) -> None:

		"""
		Tear down the pool, chain, taps and audio context, and forget cached parameters.
		"""

		with self._lock:

			if self.pool is not None:
				self.pool.dispose()

			self.pool = None
			self.chain = None
			self._parameters = None
			self._scale = []
			self._chord_intervals = []
			taps = list(self._taps)
			self._taps = []
			self.initialized = False

		for tap in taps:
			tap.close()

		self.context.close()

		logger.info("Synthesis engine disposed")

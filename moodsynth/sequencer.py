"""Playback of generated sequences.

:class:`MoodSequencer` turns a :class:`~moodsynth.composer.GeneratedSequence`
into transport parts and walks a small state machine::

	IDLE ──load──▶ LOADED ──start──▶ PLAYING ◀──resume── PAUSED
	  ▲                                  │  └────pause────▶  │
	  └──────────────stop────────────────┴───────────────────┘

Loading is allowed in every state and always tears the previous schedule
down first: the old sequence's cancellation token is cancelled, which purges
its pending notes from the transport before the new parts exist.
"""

import enum
import logging
import math
import typing

import moodsynth.composer
import moodsynth.constants.audio
import moodsynth.engine
import moodsynth.errors
import moodsynth.event_emitter
import moodsynth.transport


logger = logging.getLogger(__name__)

NoteCallback = typing.Callable[[moodsynth.composer.NoteEvent], typing.Any]


class SequencerState (str, enum.Enum):

	IDLE = "idle"
	LOADED = "loaded"
	PLAYING = "playing"
	PAUSED = "paused"


def loop_length_beats (sequence: moodsynth.composer.GeneratedSequence) -> float:

	"""
	Loop length: the sequence's duration in seconds, rounded up, counted in bars.
	"""

	return max(1, math.ceil(sequence.total_duration_seconds)) * moodsynth.constants.audio.BEATS_PER_BAR


class MoodSequencer:

	"""
	Plays one generated sequence at a time through the engine.
	"""

	def __init__ (self, engine: moodsynth.engine.SynthesisEngine, transport: moodsynth.transport.Transport) -> None:

		self.engine = engine
		self.transport = transport
		self.events = moodsynth.event_emitter.EventEmitter()

		self.sequence: typing.Optional[moodsynth.composer.GeneratedSequence] = None
		self.state = SequencerState.IDLE
		self.looping = False

		self.token: typing.Optional[moodsynth.transport.CancellationToken] = None
		self.melody_part: typing.Optional[moodsynth.transport.Part] = None
		self.bass_part: typing.Optional[moodsynth.transport.Part] = None

		self._note_callback: typing.Optional[NoteCallback] = None


	@property
	def is_playing (self) -> bool:

		return self.state is SequencerState.PLAYING


	@property
	def position_beats (self) -> float:

		return self.transport.position_beats


	def _set_state (self, state: SequencerState) -> None:

		if state is not self.state:
			self.state = state
			self.events.emit_sync("state", state)


	def _cancel_parts (self) -> None:

		if self.token is not None:
			self.transport.cancel(self.token)

		self.token = None
		self.melody_part = None
		self.bass_part = None


	async def _play_melody_note (self, event: moodsynth.composer.NoteEvent) -> None:

		await self.engine.play_note(event.pitch, event.duration, event.velocity)

		if self._note_callback is not None:
			self._note_callback(event)


	async def _play_bass_note (self, event: moodsynth.composer.NoteEvent) -> None:

		await self.engine.play_note(event.pitch, event.duration, event.velocity)


	def _build_parts (self) -> None:

		"""
		Fresh token and parts for the loaded sequence.
		"""

		assert self.sequence is not None

		self._cancel_parts()

		self.token = moodsynth.transport.CancellationToken(name="sequence")
		length = loop_length_beats(self.sequence)

		self.melody_part = moodsynth.transport.Part(
			callback = self._play_melody_note,
			events = [(event.start_time, event) for event in self.sequence.melody],
			length_beats = length,
			loop = self.looping,
			token = self.token,
			name = "melody"
		)

		if self.sequence.bass_line:
			self.bass_part = moodsynth.transport.Part(
				callback = self._play_bass_note,
				events = [(event.start_time, event) for event in self.sequence.bass_line],
				length_beats = length,
				loop = self.looping,
				token = self.token,
				name = "bass"
			)


	def load_sequence (self, sequence: moodsynth.composer.GeneratedSequence) -> None:

		"""
		Replace whatever is loaded with ``sequence``.  Valid in every state.
		"""

		self.stop()
		self._cancel_parts()

		self.sequence = sequence
		self.transport.set_bpm(sequence.tempo)
		self._build_parts()

		self._set_state(SequencerState.LOADED)

		logger.info(
			f"Loaded sequence: {len(sequence.melody)} melody notes, {len(sequence.bass_line)} bass notes, "
			f"{sequence.total_duration_seconds:.2f}s at {sequence.tempo:.1f} BPM"
		)


	async def start (self) -> None:

		"""
		Play the loaded sequence from the beginning.
		"""

		if self.sequence is None:
			logger.debug("No sequence loaded - start ignored")
			return

		if not self.engine.context.running:
			try:
				await self.engine.context.resume()
			except moodsynth.errors.AudioInitializationError as exc:
				logger.warning(f"Audio output not running: {exc}")

		self.transport.stop()

		if self.token is None or self.token.cancelled:
			self._build_parts()

		assert self.melody_part is not None

		self.transport.add_part(self.melody_part, start_beat=0)

		if self.bass_part is not None:
			self.transport.add_part(self.bass_part, start_beat=0)

		await self.transport.start()

		self._set_state(SequencerState.PLAYING)


	def stop (self) -> None:

		"""
		Halt, rewind to zero, drop scheduled notes and silence the engine.

		The sequence stays loaded so :meth:`start` can play it again.
		"""

		self.transport.stop()
		self._cancel_parts()
		self.engine.stop()

		self._set_state(SequencerState.IDLE)


	def pause (self) -> None:

		if self.state is not SequencerState.PLAYING:
			return

		self.transport.pause()
		self.engine.stop()

		self._set_state(SequencerState.PAUSED)


	async def resume (self) -> None:

		if self.state is not SequencerState.PAUSED:
			return

		await self.transport.resume()

		self._set_state(SequencerState.PLAYING)


	async def toggle (self) -> None:

		"""
		Pause when playing, resume when paused, otherwise start.
		"""

		if self.state is SequencerState.PLAYING:
			self.pause()

		elif self.state is SequencerState.PAUSED:
			await self.resume()

		else:
			await self.start()


	def set_looping (self, enabled: bool) -> None:

		"""
		Loop (or stop looping) the loaded parts; takes effect at the next cycle boundary.
		"""

		self.looping = enabled

		for part in (self.melody_part, self.bass_part):
			if part is not None:
				part.loop = enabled


	def on_note_played (self, callback: typing.Optional[NoteCallback]) -> None:

		"""
		Set the single observer called after each melody note is dispatched.
		"""

		self._note_callback = callback


	def dispose (self) -> None:

		self.stop()
		self.sequence = None
		self._note_callback = None
		self.events.clear()

"""Owns the whole pipeline for one user session.

:class:`MoodSession` builds the analyzer, transport, engine, composer and
sequencer, wires them together, and tears them down again.  It plays the role
of the UI layer: it runs mood text through analysis and mapping, asks for a
sequence, and forwards live keys to the engine::

	session = MoodSession(bars=4, mode="full_band")
	await session.initialize()

	session.analyze("sunny morning, feeling great")
	session.compose()
	await session.play()

	await session.play_key("q")   # live notes alongside the sequence

	session.dispose()
"""

import dataclasses
import logging
import random
import typing

import moodsynth.analyzer
import moodsynth.audio_context
import moodsynth.composer
import moodsynth.constants.audio
import moodsynth.engine
import moodsynth.instruments
import moodsynth.mapper
import moodsynth.mood
import moodsynth.sequencer
import moodsynth.taps
import moodsynth.transport


logger = logging.getLogger(__name__)


@dataclasses.dataclass
class KeyBinding:

	"""A control key and what it does.

	Attributes:
		key: The single character that triggers the binding.
		action: Coroutine function run when the key arrives.
		label: Shown by the help key.
	"""

	key: str
	action: typing.Callable[[], typing.Awaitable[None]]
	label: str


HELP_KEY = "?"


class MoodSession:

	"""
	Explicitly constructed, explicitly disposed owner of every pipeline object.
	"""

	def __init__ (
		self,
		analyzer: typing.Optional[moodsynth.analyzer.MoodAnalyzer] = None,
		context: typing.Optional[moodsynth.audio_context.BaseAudioContext] = None,
		transport: typing.Optional[moodsynth.transport.Transport] = None,
		instrument: typing.Union[str, moodsynth.instruments.Instrument] = moodsynth.instruments.DEFAULT_INSTRUMENT,
		bars: int = 4,
		mode: typing.Union[str, moodsynth.composer.ComposerMode] = moodsynth.composer.ComposerMode.MELODY,
		looping: bool = False,
		rng: typing.Optional[random.Random] = None,
		max_polyphony: int = moodsynth.constants.audio.DEFAULT_MAX_POLYPHONY,
		impulse_seed: typing.Optional[int] = None
	) -> None:

		"""
		Parameters:
			analyzer: Mood analysis; defaults to keyword analysis only.
			context: Audio output; defaults to the sound card.
			transport: Shared clock; defaults to a real-time transport.
			instrument: Starting instrument.
			bars: Length of composed sequences.
			mode: Composer mode for composed sequences.
			looping: Loop composed sequences.
			rng: Randomness for the composer.
			max_polyphony: Voice limit for polyphonic instruments.
			impulse_seed: Seed for the reverb impulse response.
		"""

		if bars < 1:
			raise ValueError("Bars must be at least 1")

		self.analyzer = analyzer if analyzer is not None else moodsynth.analyzer.MoodAnalyzer()
		self.transport = transport if transport is not None else moodsynth.transport.Transport()

		self.engine = moodsynth.engine.SynthesisEngine(
			context = context,
			transport = self.transport,
			instrument = instrument,
			max_polyphony = max_polyphony,
			impulse_seed = impulse_seed
		)

		self.composer = moodsynth.composer.Composer(rng)
		self.sequencer = moodsynth.sequencer.MoodSequencer(self.engine, self.transport)

		self.bars = bars
		self.mode = moodsynth.composer.parse_mode(mode)
		self.looping = looping

		self.mood: typing.Optional[moodsynth.mood.MoodVector] = None
		self.parameters: typing.Optional[moodsynth.mapper.ParameterSet] = None
		self.sequence: typing.Optional[moodsynth.composer.GeneratedSequence] = None

		self._bindings: typing.Dict[str, KeyBinding] = {}
		self._bind_default_keys()


	async def initialize (self) -> None:

		await self.engine.initialize()


	def connect_tap (self, tap: moodsynth.taps.Tap) -> None:

		self.engine.connect_tap(tap)


	def apply_mood (self, mood: moodsynth.mood.MoodVector) -> moodsynth.mapper.ParameterSet:

		"""
		Map ``mood`` to parameters and apply them to the engine.
		"""

		self.mood = mood
		self.parameters = moodsynth.mapper.map_mood(mood)
		self.engine.update_parameters(self.parameters)

		logger.info(f"Mood: {moodsynth.mapper.describe_mood(mood)}")

		return self.parameters


	def analyze (self, text: str) -> moodsynth.mood.MoodVector:

		"""
		Analyze ``text`` and apply the resulting mood.
		"""

		mood = self.analyzer.analyze(text)
		self.apply_mood(mood)

		return mood


	def compose (
		self,
		bars: typing.Optional[int] = None,
		mode: typing.Optional[typing.Union[str, moodsynth.composer.ComposerMode]] = None
	) -> moodsynth.composer.GeneratedSequence:

		"""
		Generate a sequence for the current mood and load it into the sequencer.

		Raises ``ValueError`` when no mood has been applied yet.
		"""

		if self.mood is None or self.parameters is None:
			raise ValueError("No mood applied - call analyze() or apply_mood() first")

		if bars is not None:
			self.bars = bars

		if mode is not None:
			self.mode = moodsynth.composer.parse_mode(mode)

		self.sequence = self.composer.generate_sequence(
			self.mood,
			self.parameters.scale,
			self.parameters.tempo,
			bars = self.bars,
			mode = self.mode
		)

		self.sequencer.load_sequence(self.sequence)
		self.sequencer.set_looping(self.looping)

		return self.sequence


	async def play (self) -> None:

		await self.sequencer.start()


	def stop (self) -> None:

		self.sequencer.stop()


	def set_looping (self, enabled: bool) -> None:

		self.looping = enabled
		self.sequencer.set_looping(enabled)


	def set_instrument (self, instrument: typing.Union[str, moodsynth.instruments.Instrument]) -> None:

		self.engine.set_instrument(instrument)


	async def play_key (self, key: str) -> bool:

		"""
		Play the scale note mapped to ``key``.  Returns ``False`` for unmapped keys.
		"""

		pitch = self.engine.key_to_note(key)

		if pitch is None:
			return False

		return await self.engine.play_note(pitch)


	def bind_key (self, key: str, action: typing.Callable[[], typing.Awaitable[None]], label: str) -> None:

		"""
		Bind a control key.  Keys used for notes or for help cannot be bound.
		"""

		if len(key) != 1:
			raise ValueError(f"Control key must be a single character, got {key!r}")

		if key == HELP_KEY or key.lower() in moodsynth.engine.KEY_MAP:
			raise ValueError(f"Key {key!r} is reserved")

		self._bindings[key] = KeyBinding(key=key, action=action, label=label)


	def _bind_default_keys (self) -> None:

		async def toggle () -> None:
			await self.sequencer.toggle()

		async def stop () -> None:
			self.sequencer.stop()

		async def regenerate () -> None:
			if self.mood is not None:
				self.compose()
				await self.sequencer.start()

		async def loop () -> None:
			self.set_looping(not self.looping)
			logger.info(f"Looping {'on' if self.looping else 'off'}")

		self.bind_key(" ", toggle, "play / pause")
		self.bind_key(".", stop, "stop")
		self.bind_key("/", regenerate, "regenerate")
		self.bind_key("-", loop, "toggle looping")


	def _list_keys (self) -> None:

		lines = ["Keys: 1-8, q-o, a-l, z-m play scale notes"]

		for binding in self._bindings.values():
			shown = "space" if binding.key == " " else binding.key
			lines.append(f"  {shown:<6} {binding.label}")

		logger.info("\n".join(lines))


	async def handle_keys (self, keys: typing.Iterable[str]) -> None:

		"""
		Run control bindings and play note keys, in arrival order.
		"""

		for key in keys:

			if key == HELP_KEY:
				self._list_keys()
				continue

			binding = self._bindings.get(key)

			if binding is not None:
				try:
					await binding.action()
				except ValueError as exc:
					logger.warning(f"Key {key!r} ({binding.label}) failed: {exc}")
				continue

			await self.play_key(key)


	def dispose (self) -> None:

		"""
		Stop playback and release every resource.  The session cannot be reused.
		"""

		self.sequencer.dispose()
		self.transport.stop()
		self.engine.dispose()

		self.mood = None
		self.parameters = None
		self.sequence = None

		logger.info("Session disposed")

"""Markov-chain melody and bass generation.

The :class:`Composer` is stateless between calls: every
:meth:`~Composer.generate_sequence` walks a fresh random path through the
mood's transition table, so regenerating with the same inputs gives a
different sequence.  Pass a seeded ``random.Random`` for repeatable output.

Melody generation works slot by slot:

1. Cycle through the mood's rhythm patterns to get note values until
   ``bars × 4`` beats are covered.  A slot that would run past the end is
   shortened to the longest note values that still fit.
2. For each slot draw the next scale degree from the mood's transition table.
   :data:`~moodsynth.melodic_tables.REST` emits nothing but still advances time
   and leaves the current degree unchanged.
3. In arpeggio mode, a drawn degree becomes a short broken chord spread evenly
   across the slot instead of a single note.
"""

import dataclasses
import enum
import logging
import random
import typing

import moodsynth.constants.audio
import moodsynth.constants.durations
import moodsynth.markov_chain
import moodsynth.melodic_tables
import moodsynth.mood
import moodsynth.pitch


logger = logging.getLogger(__name__)

MoodCategory = moodsynth.mood.MoodCategory
NoteValue = moodsynth.constants.durations.NoteValue

BEATS_PER_BAR = moodsynth.constants.audio.BEATS_PER_BAR

MINOR_ARPEGGIO: typing.Tuple[int, ...] = (0, 2, 4)
MAJOR_ARPEGGIO: typing.Tuple[int, ...] = (0, 2, 4, 7)
ARPEGGIO_NOTE_VALUE = NoteValue.SIXTEENTH

# Bass skeleton, one scale degree per bar, repeating.
BASS_DEGREES: typing.Tuple[int, ...] = (0, 4, 3, 4)


class ComposerMode (str, enum.Enum):

	"""What the composer should write."""

	MELODY = "melody"
	ARPEGGIO = "arpeggio"
	AMBIENT = "ambient"
	FULL_BAND = "full_band"


BASS_MODES = frozenset({ComposerMode.AMBIENT, ComposerMode.FULL_BAND})


@dataclasses.dataclass (frozen=True)
class NoteEvent:

	"""
	A single note in a generated sequence.

	Attributes:
		pitch: Pitch name, e.g. ``"E4"``.
		duration: Symbolic note value.
		start_time: Onset in beats from the start of the sequence.
		velocity: Attack strength in ``[0, 1]``.
	"""

	pitch: str
	duration: NoteValue
	start_time: float
	velocity: float

	@property
	def end_time (self) -> float:
		"""Beat at which the note's written duration ends."""
		return self.start_time + moodsynth.constants.durations.beats(self.duration)


@dataclasses.dataclass (frozen=True)
class GeneratedSequence:

	"""
	A complete generated phrase: melody, optional bass, and its timing.
	"""

	melody: typing.Tuple[NoteEvent, ...]
	bass_line: typing.Tuple[NoteEvent, ...]
	tempo: float
	total_duration_seconds: float

	@property
	def total_beats (self) -> float:
		"""Length of the phrase in beats."""
		return self.total_duration_seconds * self.tempo / 60.0


def degree_to_pitch (degree: int, scale: typing.Sequence[str], octave_offset: int = 0) -> str:

	"""
	Pitch for a scale degree, wrapping around the scale (no octave change on wrap).
	"""

	pitch = scale[degree % len(scale)]

	if octave_offset:
		pitch = moodsynth.pitch.transpose_octave(pitch, octave_offset)

	return pitch


def parse_mode (mode: typing.Union[str, ComposerMode]) -> ComposerMode:

	"""
	Accept a mode or its string value; raise ``ValueError`` for anything else.
	"""

	if isinstance(mode, ComposerMode):
		return mode

	try:
		return ComposerMode(mode)
	except ValueError:
		raise ValueError(f"Unknown composer mode {mode!r}. Valid: {[m.value for m in ComposerMode]}") from None


class Composer:

	"""
	Generates melodies and bass lines from a mood, a scale and a tempo.
	"""

	def __init__ (self, rng: typing.Optional[random.Random] = None) -> None:

		"""
		Parameters:
			rng: Random source for degree choice and velocities.  Defaults to an
				unseeded ``random.Random``.
		"""

		self.rng = rng or random.Random()


	def _rhythm_slots (self, mood: MoodCategory, total_beats: float) -> typing.Iterator[typing.Tuple[float, NoteValue]]:

		"""
		Yield ``(start_beat, note_value)`` pairs that exactly cover ``total_beats``.
		"""

		patterns = moodsynth.melodic_tables.RHYTHM_PATTERNS[mood]
		current_beat = 0.0
		pattern_index = 0

		while current_beat < total_beats:

			pattern = patterns[pattern_index % len(patterns)]

			for value in pattern:

				remaining = total_beats - current_beat

				if remaining <= 0:
					break

				if moodsynth.constants.durations.beats(value) > remaining:
					fitted = moodsynth.constants.durations.longest_fitting(remaining)
					if fitted is None:
						return
					value = fitted

				yield current_beat, value
				current_beat += moodsynth.constants.durations.beats(value)

			pattern_index += 1


	def _arpeggio_pitches (self, degree: int, scale: typing.Sequence[str], mood: MoodCategory) -> typing.List[str]:

		"""
		Broken-chord pitches rooted on ``degree``.
		"""

		intervals = MINOR_ARPEGGIO if mood in (MoodCategory.SAD, MoodCategory.ANGRY) else MAJOR_ARPEGGIO

		pitches = [degree_to_pitch(degree + interval, scale) for interval in intervals]

		if mood is MoodCategory.ENERGETIC:
			pitches.extend(reversed(pitches))

		return pitches


	def generate_melody (
		self,
		mood: moodsynth.mood.MoodVector,
		scale: typing.Sequence[str],
		bars: int = 4,
		mode: typing.Union[str, ComposerMode] = ComposerMode.MELODY
	) -> typing.List[NoteEvent]:

		"""
		Walk the mood's Markov chain across ``bars`` bars of rhythm slots.
		"""

		if bars < 1:
			raise ValueError("Bars must be at least 1")

		if not scale:
			raise ValueError("Scale cannot be empty")

		mode = parse_mode(mode)

		chain = moodsynth.markov_chain.MarkovChain(
			transitions = moodsynth.melodic_tables.MELODIC_TRANSITIONS[mood.category],
			initial_state = moodsynth.melodic_tables.ROOT_DEGREE,
			fallback_state = moodsynth.melodic_tables.ROOT_DEGREE,
			rng = self.rng
		)

		melody: typing.List[NoteEvent] = []
		total_beats = float(bars * BEATS_PER_BAR)

		for start_beat, value in self._rhythm_slots(mood.category, total_beats):

			next_degree = chain.choose(chain.get_state())

			if next_degree is moodsynth.melodic_tables.REST:
				continue

			chain.state = next_degree
			velocity = 0.5 + self.rng.uniform(0, 0.3) * mood.intensity

			if mode is ComposerMode.ARPEGGIO:

				pitches = self._arpeggio_pitches(next_degree, scale, mood.category)
				spacing = moodsynth.constants.durations.beats(value) / len(pitches)

				for i, pitch in enumerate(pitches):

					note_start = start_beat + i * spacing
					note_value = moodsynth.constants.durations.longest_fitting(
						min(moodsynth.constants.durations.beats(ARPEGGIO_NOTE_VALUE), total_beats - note_start)
					)

					# The tail of a broken chord in the final slot is cut at the bar line.
					if note_value is None:
						break

					melody.append(NoteEvent(
						pitch = pitch,
						duration = note_value,
						start_time = note_start,
						velocity = velocity
					))

			else:
				melody.append(NoteEvent(
					pitch = degree_to_pitch(next_degree, scale),
					duration = value,
					start_time = start_beat,
					velocity = velocity
				))

		return melody


	def generate_bass_line (
		self,
		mood: moodsynth.mood.MoodVector,
		scale: typing.Sequence[str],
		bars: int = 4
	) -> typing.List[NoteEvent]:

		"""
		Root-movement bass one octave below the melody, one note per bar.

		Energetic moods with speed above 0.5 add a second hit on beat 3.
		"""

		if not scale:
			raise ValueError("Scale cannot be empty")

		energetic = mood.category is MoodCategory.ENERGETIC
		bass_line: typing.List[NoteEvent] = []

		for bar in range(bars):

			pitch = degree_to_pitch(BASS_DEGREES[bar % len(BASS_DEGREES)], scale, octave_offset=-1)
			bar_start = float(bar * BEATS_PER_BAR)

			bass_line.append(NoteEvent(
				pitch = pitch,
				duration = NoteValue.QUARTER if energetic else NoteValue.HALF,
				start_time = bar_start,
				velocity = 0.6 + mood.intensity * 0.2
			))

			if energetic and mood.speed > 0.5:
				bass_line.append(NoteEvent(
					pitch = pitch,
					duration = NoteValue.QUARTER,
					start_time = bar_start + 2,
					velocity = 0.5 + mood.intensity * 0.2
				))

		return bass_line


	def generate_sequence (
		self,
		mood: moodsynth.mood.MoodVector,
		scale: typing.Sequence[str],
		tempo: float,
		bars: int = 4,
		mode: typing.Union[str, ComposerMode] = ComposerMode.MELODY
	) -> GeneratedSequence:

		"""
		Generate a complete sequence.  Bass is written for ambient and full-band modes only.
		"""

		if tempo <= 0:
			raise ValueError("Tempo must be positive")

		mode = parse_mode(mode)

		melody = self.generate_melody(mood, scale, bars, mode)
		bass_line = self.generate_bass_line(mood, scale, bars) if mode in BASS_MODES else []

		total_beats = bars * BEATS_PER_BAR
		total_duration_seconds = (total_beats / tempo) * 60

		logger.info(
			f"Generated {mode.value} sequence for {mood.category.value}: "
			f"{len(melody)} melody notes, {len(bass_line)} bass notes, {bars} bars at {tempo:.1f} BPM"
		)

		return GeneratedSequence(
			melody = tuple(melody),
			bass_line = tuple(bass_line),
			tempo = tempo,
			total_duration_seconds = total_duration_seconds
		)

"""Mood → synthesis parameter mapping.

:func:`map_mood` is a pure function: the same :class:`~moodsynth.mood.MoodVector`
always yields the same :class:`ParameterSet`.  Continuous parameters are linear
in the mood fields; scale, chord voicing and oscillator shape are looked up by
mood category from the immutable tables below.
"""

import dataclasses
import types
import typing

import moodsynth.constants.audio
import moodsynth.mood


MoodCategory = moodsynth.mood.MoodCategory

OscillatorShape = str
OSCILLATOR_SHAPES: typing.Tuple[OscillatorShape, ...] = ("sine", "square", "sawtooth", "triangle")


SCALES: typing.Mapping[MoodCategory, typing.Tuple[str, ...]] = types.MappingProxyType({
	MoodCategory.HAPPY: ("C4", "D4", "E4", "F4", "G4", "A4", "B4", "C5"),        # C major
	MoodCategory.SAD: ("C4", "D4", "Eb4", "F4", "G4", "Ab4", "Bb4", "C5"),       # C minor
	MoodCategory.CALM: ("C4", "D4", "E4", "G4", "A4", "C5"),                     # pentatonic
	MoodCategory.ENERGETIC: ("C4", "D4", "E4", "F#4", "G4", "A4", "B4", "C5"),   # lydian
	MoodCategory.ANGRY: ("C4", "Db4", "E4", "F4", "Gb4", "A4", "Bb4", "C5"),     # diminished-like
})

# Scale-degree offsets stacked on a root to build a chord.
CHORD_INTERVALS: typing.Mapping[MoodCategory, typing.Tuple[int, ...]] = types.MappingProxyType({
	MoodCategory.HAPPY: (0, 2, 4, 6, 8),        # major 9th
	MoodCategory.SAD: (0, 2, 4, 6),             # minor 7th
	MoodCategory.CALM: (0, 2, 4, 5),            # pentatonic voicing with octave
	MoodCategory.ENERGETIC: (0, 2, 4, 6, 8),    # major 9th
	MoodCategory.ANGRY: (0, 2, 4, 5),           # root, minor 3rd, dim 5th, 6th
})

MOOD_OSCILLATORS: typing.Mapping[MoodCategory, OscillatorShape] = types.MappingProxyType({
	MoodCategory.HAPPY: "sine",
	MoodCategory.SAD: "sine",
	MoodCategory.CALM: "triangle",
	MoodCategory.ENERGETIC: "sawtooth",
	MoodCategory.ANGRY: "square",
})

DEFAULT_SCALE: typing.Tuple[str, ...] = SCALES[MoodCategory.HAPPY]

MAX_FILTER_Q = 8.0


for _table in (SCALES, CHORD_INTERVALS, MOOD_OSCILLATORS):
	_missing = set(MoodCategory) - set(_table)
	if _missing:
		raise RuntimeError(f"Mood table is missing categories: {sorted(m.value for m in _missing)}")


@dataclasses.dataclass (frozen=True)
class Envelope:

	"""Attack/decay/release in seconds, sustain as a level in ``[0, 1]``."""

	attack: float
	decay: float
	sustain: float
	release: float


@dataclasses.dataclass (frozen=True)
class ChorusSettings:

	"""Chorus mix, LFO rate (Hz) and modulation depth (0-1)."""

	wet: float
	rate: float
	depth: float


@dataclasses.dataclass (frozen=True)
class VibratoSettings:

	"""Vibrato depth in semitones and rate in Hz."""

	depth: float
	rate: float


@dataclasses.dataclass (frozen=True)
class ParameterSet:

	"""
	Every synthesis parameter derived from a mood.

	Attributes:
		tempo: BPM, 60-180.
		oscillator_shape: One of :data:`OSCILLATOR_SHAPES`.
		reverb: Reverb wet level, 0.1-0.6.
		filter_cutoff: Lowpass cutoff in Hz, 200-5000.
		filter_q: Lowpass resonance, 1-8.
		volume: Linear output gain, 0.3-0.8.
		scale: Ordered pitch names for the mood's scale.
		chord_intervals: Scale-degree offsets used to voice chords.
		envelope: Amplitude envelope for every voice.
		chorus: Chorus settings.
		vibrato: Vibrato settings.
		distortion: Distortion wet level, 0-0.3.
	"""

	tempo: float
	oscillator_shape: OscillatorShape
	reverb: float
	filter_cutoff: float
	filter_q: float
	volume: float
	scale: typing.Tuple[str, ...]
	chord_intervals: typing.Tuple[int, ...]
	envelope: Envelope
	chorus: ChorusSettings
	vibrato: VibratoSettings
	distortion: float


def map_mood (mood: moodsynth.mood.MoodVector) -> ParameterSet:

	"""
	Map a mood vector onto a full parameter set.
	"""

	return ParameterSet(
		tempo = moodsynth.constants.audio.MIN_BPM + mood.speed * (moodsynth.constants.audio.MAX_BPM - moodsynth.constants.audio.MIN_BPM),
		oscillator_shape = MOOD_OSCILLATORS[mood.category],
		# Quieter moods get more space.
		reverb = 0.1 + (1 - mood.intensity) * 0.5,
		filter_cutoff = 200 + mood.brightness * 4800,
		filter_q = min(MAX_FILTER_Q, 1 + mood.texture * 4 + mood.tension * 3),
		volume = 0.3 + mood.intensity * 0.5,
		scale = SCALES[mood.category],
		chord_intervals = CHORD_INTERVALS[mood.category],
		envelope = Envelope(
			attack = 0.005 + mood.texture * 0.5,
			decay = 0.5 - mood.speed * 0.3,
			sustain = 0.2 + mood.intensity * 0.6,
			release = 0.5 + mood.texture * 2.5
		),
		chorus = ChorusSettings(
			wet = mood.texture * 0.4,
			rate = 1.5,
			depth = 0.7
		),
		vibrato = VibratoSettings(
			depth = mood.tension * 0.5,
			rate = 4 + mood.tension * 4
		),
		distortion = mood.tension * 0.3
	)


def describe_mood (mood: moodsynth.mood.MoodVector) -> str:

	"""
	Short human-readable label, e.g. ``"very happy"``.
	"""

	if mood.intensity > 0.7:
		qualifier = "very"

	elif mood.intensity > 0.4:
		qualifier = "moderately"

	else:
		qualifier = "slightly"

	return f"{qualifier} {mood.category.value}"

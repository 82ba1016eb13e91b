"""Symbolic note values and their lengths in beats.

All lengths are in **beats**, where 1.0 = one quarter note.  The composer
works with :class:`NoteValue` symbols; the engine converts them to seconds at
the current tempo::

	import moodsynth.constants.durations as dur

	dur.beats(dur.NoteValue.DOTTED_HALF)          # 3.0
	dur.seconds(dur.NoteValue.EIGHTH, bpm=120)     # 0.25
"""

import enum
import types
import typing


SIXTEENTH = 0.25
EIGHTH = 0.5
DOTTED_EIGHTH = 0.75
QUARTER = 1.0
DOTTED_QUARTER = 1.5
HALF = 2.0
DOTTED_HALF = 3.0
WHOLE = 4.0


class NoteValue (str, enum.Enum):

	"""A symbolic note duration, optionally dotted."""

	WHOLE = "whole"
	DOTTED_HALF = "dotted_half"
	HALF = "half"
	DOTTED_QUARTER = "dotted_quarter"
	QUARTER = "quarter"
	DOTTED_EIGHTH = "dotted_eighth"
	EIGHTH = "eighth"
	SIXTEENTH = "sixteenth"


DURATION_BEATS: typing.Mapping[NoteValue, float] = types.MappingProxyType({
	NoteValue.WHOLE: WHOLE,
	NoteValue.DOTTED_HALF: DOTTED_HALF,
	NoteValue.HALF: HALF,
	NoteValue.DOTTED_QUARTER: DOTTED_QUARTER,
	NoteValue.QUARTER: QUARTER,
	NoteValue.DOTTED_EIGHTH: DOTTED_EIGHTH,
	NoteValue.EIGHTH: EIGHTH,
	NoteValue.SIXTEENTH: SIXTEENTH,
})

# Longest first, for fitting a duration into a remaining span.
NOTE_VALUES_BY_LENGTH: typing.Tuple[NoteValue, ...] = tuple(
	sorted(DURATION_BEATS, key=lambda value: DURATION_BEATS[value], reverse=True)
)


def beats (value: NoteValue) -> float:

	"""Length of a note value in beats."""

	return DURATION_BEATS[value]


def seconds (value: NoteValue, bpm: float) -> float:

	"""Length of a note value in seconds at ``bpm``."""

	if bpm <= 0:
		raise ValueError("BPM must be positive")

	return DURATION_BEATS[value] * 60.0 / bpm


def longest_fitting (span: float) -> typing.Optional[NoteValue]:

	"""
	Return the longest note value no longer than ``span`` beats, or ``None``.
	"""

	for value in NOTE_VALUES_BY_LENGTH:
		if DURATION_BEATS[value] <= span + 1e-9:
			return value

	return None

"""Per-mood melodic transition tables and rhythm patterns.

Each mood has its own first-order Markov chain over scale degrees 0-7: a
row maps the current degree to an ordered list of ``(next_degree, probability)``
pairs, where :data:`REST` means "stay silent for this slot".  Rows are sampled
in the order they are written here.

Each mood also has a small library of one-phrase rhythm patterns; the composer
cycles through them to cover as many bars as it needs.

Both tables are keyed by :class:`~moodsynth.mood.MoodCategory` and checked
when this module is imported: every mood must be present and every row must
sum to 1.
"""

import math
import types
import typing

import moodsynth.constants.durations
import moodsynth.mood


MoodCategory = moodsynth.mood.MoodCategory
NoteValue = moodsynth.constants.durations.NoteValue


class _Rest:

	"""Sentinel for a silent slot."""

	def __repr__ (self) -> str:
		return "REST"


REST: typing.Final = _Rest()

Degree = typing.Union[int, _Rest]
TransitionRow = typing.Tuple[typing.Tuple[Degree, float], ...]
TransitionTable = typing.Mapping[int, TransitionRow]

ROOT_DEGREE = 0


def _table (rows: typing.Dict[int, TransitionRow]) -> TransitionTable:
	return types.MappingProxyType(rows)


MELODIC_TRANSITIONS: typing.Mapping[MoodCategory, TransitionTable] = types.MappingProxyType({

	MoodCategory.HAPPY: _table({
		0: ((1, 0.3), (2, 0.25), (4, 0.25), (7, 0.15), (REST, 0.05)),
		1: ((2, 0.35), (0, 0.2), (3, 0.25), (4, 0.2)),
		2: ((3, 0.3), (4, 0.25), (1, 0.2), (0, 0.15), (REST, 0.1)),
		3: ((4, 0.35), (2, 0.25), (5, 0.2), (1, 0.2)),
		4: ((5, 0.3), (3, 0.25), (6, 0.2), (2, 0.15), (REST, 0.1)),
		5: ((6, 0.3), (4, 0.3), (7, 0.2), (3, 0.2)),
		6: ((7, 0.4), (5, 0.3), (4, 0.2), (REST, 0.1)),
		7: ((0, 0.35), (6, 0.25), (5, 0.2), (REST, 0.2)),
	}),

	# Sad lines lean downward and rest often.
	MoodCategory.SAD: _table({
		0: ((1, 0.15), (2, 0.2), (REST, 0.25), (7, 0.2), (6, 0.2)),
		1: ((0, 0.3), (2, 0.25), (REST, 0.2), (7, 0.25)),
		2: ((1, 0.35), (0, 0.25), (3, 0.2), (REST, 0.2)),
		3: ((2, 0.35), (4, 0.25), (1, 0.2), (REST, 0.2)),
		4: ((3, 0.35), (5, 0.2), (2, 0.25), (REST, 0.2)),
		5: ((4, 0.35), (3, 0.25), (6, 0.2), (REST, 0.2)),
		6: ((5, 0.35), (7, 0.2), (4, 0.25), (REST, 0.2)),
		7: ((6, 0.3), (0, 0.25), (REST, 0.25), (5, 0.2)),
	}),

	MoodCategory.CALM: _table({
		0: ((2, 0.3), (4, 0.3), (REST, 0.2), (1, 0.2)),
		1: ((2, 0.35), (0, 0.3), (REST, 0.2), (4, 0.15)),
		2: ((4, 0.35), (0, 0.25), (REST, 0.25), (1, 0.15)),
		3: ((2, 0.3), (4, 0.3), (0, 0.2), (REST, 0.2)),
		4: ((2, 0.3), (0, 0.3), (REST, 0.25), (5, 0.15)),
		5: ((4, 0.35), (2, 0.25), (REST, 0.25), (0, 0.15)),
		6: ((4, 0.35), (2, 0.25), (REST, 0.2), (0, 0.2)),
		7: ((0, 0.4), (4, 0.25), (REST, 0.2), (2, 0.15)),
	}),

	# Energetic lines never rest and favour upward leaps.
	MoodCategory.ENERGETIC: _table({
		0: ((2, 0.25), (4, 0.3), (7, 0.25), (1, 0.2)),
		1: ((3, 0.3), (4, 0.3), (2, 0.25), (0, 0.15)),
		2: ((4, 0.35), (5, 0.25), (0, 0.2), (3, 0.2)),
		3: ((5, 0.35), (4, 0.25), (6, 0.2), (1, 0.2)),
		4: ((6, 0.3), (7, 0.3), (2, 0.2), (5, 0.2)),
		5: ((7, 0.35), (6, 0.25), (4, 0.2), (3, 0.2)),
		6: ((7, 0.4), (4, 0.25), (5, 0.2), (0, 0.15)),
		7: ((0, 0.3), (4, 0.25), (2, 0.25), (6, 0.2)),
	}),

	# Angry lines jump to the tritone-ish degrees 3 and 6.
	MoodCategory.ANGRY: _table({
		0: ((1, 0.2), (3, 0.25), (6, 0.25), (4, 0.2), (REST, 0.1)),
		1: ((0, 0.25), (3, 0.3), (6, 0.25), (4, 0.2)),
		2: ((1, 0.25), (3, 0.3), (0, 0.25), (6, 0.2)),
		3: ((4, 0.3), (6, 0.3), (1, 0.2), (0, 0.2)),
		4: ((3, 0.3), (6, 0.3), (0, 0.2), (1, 0.2)),
		5: ((6, 0.35), (4, 0.25), (3, 0.2), (0, 0.2)),
		6: ((0, 0.3), (4, 0.25), (3, 0.25), (7, 0.2)),
		7: ((6, 0.35), (0, 0.25), (4, 0.2), (3, 0.2)),
	}),
})


_W = NoteValue.WHOLE
_H = NoteValue.HALF
_DH = NoteValue.DOTTED_HALF
_Q = NoteValue.QUARTER
_E = NoteValue.EIGHTH
_S = NoteValue.SIXTEENTH

RhythmPattern = typing.Tuple[NoteValue, ...]

RHYTHM_PATTERNS: typing.Mapping[MoodCategory, typing.Tuple[RhythmPattern, ...]] = types.MappingProxyType({
	MoodCategory.HAPPY: (
		(_Q, _E, _E, _Q, _Q),
		(_Q, _Q, _E, _E, _Q),
		(_E, _E, _Q, _Q, _Q),
	),
	MoodCategory.SAD: (
		(_H, _Q, _Q, _H),
		(_DH, _Q, _H),
		(_W, _H),
	),
	MoodCategory.CALM: (
		(_H, _H, _W),
		(_DH, _Q, _H, _H),
		(_W, _W),
	),
	MoodCategory.ENERGETIC: (
		(_E, _E, _E, _E, _Q, _Q),
		(_S, _S, _E, _E, _Q, _Q),
		(_E, _Q, _E, _Q, _Q),
	),
	MoodCategory.ANGRY: (
		(_E, _Q, _E, _Q, _Q),
		(_Q, _E, _E, _E, _E, _Q),
		(_Q, _Q, _E, _E, _Q),
	),
})


def validate_transition_table (table: TransitionTable, tolerance: float = 1e-6) -> None:

	"""
	Raise ``ValueError`` unless every row is non-empty, positive and sums to 1.
	"""

	for degree, row in table.items():

		if not row:
			raise ValueError(f"Degree {degree} has no outgoing transitions")

		if any(weight <= 0 for _, weight in row):
			raise ValueError(f"Degree {degree} has a non-positive weight")

		total = math.fsum(weight for _, weight in row)

		if abs(total - 1.0) > tolerance:
			raise ValueError(f"Degree {degree} weights sum to {total}, expected 1")


for _mood in MoodCategory:

	if _mood not in MELODIC_TRANSITIONS:
		raise RuntimeError(f"No transition table for mood {_mood.value!r}")

	if _mood not in RHYTHM_PATTERNS or not RHYTHM_PATTERNS[_mood]:
		raise RuntimeError(f"No rhythm patterns for mood {_mood.value!r}")

	validate_transition_table(MELODIC_TRANSITIONS[_mood])

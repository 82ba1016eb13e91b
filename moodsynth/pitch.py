"""Pitch-name helpers.

Pitches travel through the pipeline as scientific pitch names such as
``"C4"``, ``"Eb4"`` or ``"F#3"``.  Convention: **C4 = MIDI 60** (Middle C),
A4 = 440 Hz.

- `NOTE_NAME_TO_PC`: Maps note names (e.g. ``"C"``, ``"F#"``, ``"Bb"``) to pitch classes (0-11)
- `parse_pitch`: Splits a pitch name into note name and octave
- `transpose_octave`: Moves a pitch name up or down whole octaves, keeping its spelling
"""

import re
import typing


NOTE_NAME_TO_PC: typing.Dict[str, int] = {
	"C": 0,
	"C#": 1,
	"Db": 1,
	"D": 2,
	"D#": 3,
	"Eb": 3,
	"E": 4,
	"F": 5,
	"F#": 6,
	"Gb": 6,
	"G": 7,
	"G#": 8,
	"Ab": 8,
	"A": 9,
	"A#": 10,
	"Bb": 10,
	"B": 11,
}

_PITCH_PATTERN = re.compile(r"^([A-G][b#]?)(-?\d+)$")


def parse_pitch (pitch: str) -> typing.Tuple[str, int]:

	"""
	Split a pitch name into ``(note_name, octave)``.

	Raises ``ValueError`` for anything that is not a pitch name.
	"""

	match = _PITCH_PATTERN.match(pitch)

	if match is None:
		raise ValueError(f"Invalid pitch name: {pitch!r}")

	return match.group(1), int(match.group(2))


def transpose_octave (pitch: str, octaves: int) -> str:

	"""
	Shift a pitch name by whole octaves (``"Eb4"``, -1 → ``"Eb3"``).

	Names that do not parse are returned unchanged.
	"""

	match = _PITCH_PATTERN.match(pitch)

	if match is None:
		return pitch

	return f"{match.group(1)}{int(match.group(2)) + octaves}"


def pitch_to_midi (pitch: str) -> int:

	"""
	Convert a pitch name to a MIDI note number (C4 = 60).
	"""

	name, octave = parse_pitch(pitch)

	return (octave + 1) * 12 + NOTE_NAME_TO_PC[name]


def midi_to_frequency (note: float) -> float:

	"""
	Equal-tempered frequency in Hz for a (possibly fractional) MIDI note.
	"""

	return 440.0 * 2.0 ** ((note - 69) / 12.0)


def pitch_to_frequency (pitch: str) -> float:

	"""
	Equal-tempered frequency in Hz for a pitch name.
	"""

	return midi_to_frequency(pitch_to_midi(pitch))

import pytest

import moodsynth.constants.durations
import moodsynth.instruments


Instrument = moodsynth.instruments.Instrument


def test_every_instrument_has_a_preset () -> None:

	assert set(moodsynth.instruments.INSTRUMENTS) == set(Instrument)


def test_only_bass_is_monophonic () -> None:

	mono = [instrument for instrument, config in moodsynth.instruments.INSTRUMENTS.items() if not config.polyphonic]

	assert mono == [Instrument.BASS]


def test_parse_instrument () -> None:

	assert moodsynth.instruments.parse_instrument("electric_piano") is Instrument.ELECTRIC_PIANO
	assert moodsynth.instruments.parse_instrument(Instrument.PIANO) is Instrument.PIANO

	with pytest.raises(ValueError, match="Unknown instrument"):
		moodsynth.instruments.parse_instrument("kazoo")


def test_note_value_lengths () -> None:

	NoteValue = moodsynth.constants.durations.NoteValue

	assert moodsynth.constants.durations.beats(NoteValue.DOTTED_HALF) == 3.0
	assert moodsynth.constants.durations.seconds(NoteValue.EIGHTH, bpm=120) == pytest.approx(0.25)
	assert moodsynth.constants.durations.longest_fitting(1.2) is NoteValue.QUARTER
	assert moodsynth.constants.durations.longest_fitting(0.1) is None

	with pytest.raises(ValueError):
		moodsynth.constants.durations.seconds(NoteValue.QUARTER, bpm=0)

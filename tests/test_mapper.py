import pytest

import moodsynth.analyzer
import moodsynth.mapper
import moodsynth.mood

import conftest


MoodCategory = moodsynth.mood.MoodCategory


def test_map_mood_is_pure () -> None:

	"""The same mood always gives an equal parameter set."""

	mood = conftest.make_mood("sad", 0.3, 0.2, 0.7, 0.6, 0.4)

	assert moodsynth.mapper.map_mood(mood) == moodsynth.mapper.map_mood(mood)


def test_happy_keyword_mood_parameters () -> None:

	params = moodsynth.mapper.map_mood(moodsynth.analyzer.FALLBACK_VECTORS[MoodCategory.HAPPY])

	assert params.tempo == pytest.approx(132.0)
	assert params.oscillator_shape == "sine"
	assert params.reverb == pytest.approx(0.2)
	assert params.filter_cutoff == pytest.approx(4520.0)
	assert params.volume == pytest.approx(0.7)
	assert params.scale == ("C4", "D4", "E4", "F4", "G4", "A4", "B4", "C5")
	assert params.chord_intervals == (0, 2, 4, 6, 8)


@pytest.mark.parametrize("value", [0.0, 1.0])
def test_parameters_stay_in_range_at_extremes (value: float) -> None:

	"""Every continuous parameter stays inside its documented range."""

	for category in MoodCategory:

		params = moodsynth.mapper.map_mood(conftest.make_mood(category.value, value, value, value, value, value))

		assert 60 <= params.tempo <= 180
		assert 0.1 <= params.reverb <= 0.6
		assert 200 <= params.filter_cutoff <= 5000
		assert 1 <= params.filter_q <= moodsynth.mapper.MAX_FILTER_Q
		assert 0.3 <= params.volume <= 0.8
		assert 0 <= params.distortion <= 0.3
		assert 0 <= params.chorus.wet <= 0.4
		assert 4 <= params.vibrato.rate <= 8
		assert params.envelope.attack > 0
		assert params.envelope.decay > 0
		assert params.oscillator_shape in moodsynth.mapper.OSCILLATOR_SHAPES


def test_filter_q_is_capped () -> None:

	params = moodsynth.mapper.map_mood(conftest.make_mood("angry", texture=1.0, tension=1.0))

	assert params.filter_q == moodsynth.mapper.MAX_FILTER_Q


def test_envelope_follows_texture_and_speed () -> None:

	params = moodsynth.mapper.map_mood(conftest.make_mood("calm", intensity=0.5, speed=1.0, texture=1.0))

	assert params.envelope.attack == pytest.approx(0.505)
	assert params.envelope.decay == pytest.approx(0.2)
	assert params.envelope.sustain == pytest.approx(0.5)
	assert params.envelope.release == pytest.approx(3.0)


def test_every_category_has_tables () -> None:

	for category in MoodCategory:
		assert moodsynth.mapper.SCALES[category]
		assert moodsynth.mapper.CHORD_INTERVALS[category][0] == 0
		assert moodsynth.mapper.MOOD_OSCILLATORS[category] in moodsynth.mapper.OSCILLATOR_SHAPES


def test_tables_are_read_only () -> None:

	with pytest.raises(TypeError):
		moodsynth.mapper.SCALES[MoodCategory.HAPPY] = ()  # type: ignore[index]


@pytest.mark.parametrize("intensity, label", [(0.9, "very happy"), (0.5, "moderately happy"), (0.4, "slightly happy")])
def test_describe_mood (intensity: float, label: str) -> None:

	assert moodsynth.mapper.describe_mood(conftest.make_mood("happy", intensity=intensity)) == label

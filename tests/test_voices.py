import numpy as np
import pytest

import moodsynth.instruments
import moodsynth.mapper
import moodsynth.voices


SR = 8000
ENVELOPE = moodsynth.mapper.Envelope(attack=0.1, decay=0.1, sustain=0.5, release=0.1)


def _settings (kind: moodsynth.instruments.VoiceKind = moodsynth.instruments.VoiceKind.SYNTH) -> moodsynth.voices.VoiceSettings:

	return moodsynth.voices.VoiceSettings(
		kind = kind,
		oscillator_shape = "sine",
		envelope = ENVELOPE,
		harmonicity = 2.0,
		modulation_index = 3.0
	)


@pytest.mark.parametrize("shape, expected", [
	("sine", 1.0),
	("square", 1.0),
	("sawtooth", -0.5),
	("triangle", 0.0),
])
def test_oscillator_quarter_cycle (shape: str, expected: float) -> None:

	assert moodsynth.voices.oscillator(shape, np.array([0.25]))[0] == pytest.approx(expected)


def test_unknown_oscillator_raises () -> None:

	with pytest.raises(ValueError, match="oscillator"):
		moodsynth.voices.oscillator("noise", np.zeros(4))


def test_envelope_stages () -> None:

	levels = moodsynth.voices.envelope_level(ENVELOPE, np.array([0.05, 0.15, 1.0]))

	assert levels == pytest.approx([0.5, 0.75, 0.5])


def test_voice_finishes_after_release () -> None:

	voice = moodsynth.voices.Voice(440.0, 0.1, 1.0, _settings(), SR)

	voice.render(int(0.15 * SR))
	assert not voice.finished

	tail = voice.render(int(0.1 * SR))
	assert voice.finished
	assert abs(tail[-1]) < 1e-3


def test_voice_level_is_bounded () -> None:

	voice = moodsynth.voices.Voice(220.0, 0.5, 1.0, _settings(), SR)
	block = voice.render(SR)

	assert np.max(np.abs(block)) <= moodsynth.voices.VOICE_GAIN + 1e-9
	assert np.max(np.abs(block)) > 0


def test_early_release_shortens_the_note () -> None:

	voice = moodsynth.voices.Voice(440.0, 10.0, 1.0, _settings(), SR)

	voice.render(100)
	voice.release(0.01)
	voice.render(int(0.02 * SR))

	assert voice.finished


@pytest.mark.parametrize("kind", [moodsynth.instruments.VoiceKind.FM, moodsynth.instruments.VoiceKind.AM])
def test_modulated_voices_render (kind: moodsynth.instruments.VoiceKind) -> None:

	block = moodsynth.voices.Voice(330.0, 0.5, 0.8, _settings(kind), SR).render(1024)

	assert np.all(np.isfinite(block))
	assert np.max(np.abs(block)) > 0


def test_polyphonic_pool_steals_oldest () -> None:

	pool = moodsynth.voices.PolyphonicVoicePool(_settings(), SR, max_polyphony=3)

	pool.trigger([100.0, 200.0], 1.0)
	pool.trigger([300.0, 400.0], 1.0)

	assert pool.active_voices == 3
	assert [voice.frequency for voice in pool.voices] == [200.0, 300.0, 400.0]


def test_polyphonic_pool_drops_finished_voices () -> None:

	pool = moodsynth.voices.PolyphonicVoicePool(_settings(), SR)

	pool.trigger([440.0], 0.05)
	pool.render(int(0.2 * SR))

	assert pool.active_voices == 0


def test_monophonic_pool_plays_one_note () -> None:

	"""Only the first frequency sounds, and a new note cuts the old one quickly."""

	pool = moodsynth.voices.MonophonicVoicePool(_settings(), SR)

	pool.trigger([110.0, 220.0, 330.0], 1.0)
	assert [voice.frequency for voice in pool.voices] == [110.0]

	pool.trigger([165.0], 1.0)
	pool.render(int(0.05 * SR))

	assert [voice.frequency for voice in pool.voices] == [165.0]


def test_release_all_and_dispose () -> None:

	pool = moodsynth.voices.PolyphonicVoicePool(_settings(), SR)

	pool.trigger([440.0, 550.0], 10.0)
	pool.release_all()
	pool.render(int(0.2 * SR))

	assert pool.active_voices == 0

	pool.trigger([440.0], 1.0)
	pool.dispose()

	assert pool.active_voices == 0
	assert pool.disposed


def test_settings_apply_to_new_notes () -> None:

	pool = moodsynth.voices.PolyphonicVoicePool(_settings(), SR)

	pool.set_oscillator_shape("square")
	pool.set_envelope(moodsynth.mapper.Envelope(0.01, 0.01, 1.0, 0.5))
	pool.trigger([440.0], 1.0)

	assert pool.voices[0].settings.oscillator_shape == "square"
	assert pool.voices[0].release_duration == pytest.approx(0.5)

	with pytest.raises(ValueError):
		pool.set_oscillator_shape("noise")


def test_build_pool_follows_instrument () -> None:

	bass = moodsynth.voices.build_pool(moodsynth.instruments.INSTRUMENTS[moodsynth.instruments.Instrument.BASS], SR)
	pad = moodsynth.voices.build_pool(moodsynth.instruments.INSTRUMENTS[moodsynth.instruments.Instrument.SYNTH_PAD], SR)

	assert isinstance(bass, moodsynth.voices.MonophonicVoicePool)
	assert not bass.polyphonic
	assert isinstance(pad, moodsynth.voices.PolyphonicVoicePool)
	assert pad.settings.kind is moodsynth.instruments.VoiceKind.FM
	assert pad.settings.harmonicity == 3.0


def test_invalid_voice_arguments () -> None:

	with pytest.raises(ValueError):
		moodsynth.voices.Voice(0.0, 1.0, 1.0, _settings(), SR)

	with pytest.raises(ValueError):
		moodsynth.voices.PolyphonicVoicePool(_settings(), SR, max_polyphony=0)

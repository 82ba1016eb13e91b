import math

import numpy as np
import pytest

import moodsynth.effects


SR = 8000


def _sine (frequency: float, frames: int) -> np.ndarray:

	return np.sin(2.0 * np.pi * frequency * np.arange(frames) / SR)


def test_lowpass_has_unity_dc_gain () -> None:

	b, a = moodsynth.effects.lowpass_coefficients(1000.0, 2.0, SR)

	assert a[0] == pytest.approx(1.0)
	assert np.sum(b) / np.sum(a) == pytest.approx(1.0)


def test_lowpass_attenuates_high_frequencies () -> None:

	lowpass = moodsynth.effects.LowpassFilter(SR)
	lowpass.set(200.0, 1.0)

	out = lowpass.process(_sine(3000.0, SR))

	assert np.sqrt(np.mean(out[SR // 2:] ** 2)) < 0.05


def test_lowpass_state_carries_across_blocks () -> None:

	"""Two half blocks give the same result as one whole block."""

	signal = np.random.default_rng(3).uniform(-1, 1, 1000)

	whole = moodsynth.effects.LowpassFilter(SR)
	split = moodsynth.effects.LowpassFilter(SR)

	expected = whole.process(signal)
	actual = np.concatenate([split.process(signal[:400]), split.process(signal[400:])])

	assert actual == pytest.approx(expected)


def test_modulated_delay_with_fixed_time () -> None:

	delay = moodsynth.effects.ModulatedDelay(SR)
	signal = np.arange(1.0, 9.0)

	out = delay.process(signal, base=2.0 / SR, swing=0.0, rate=1.0)

	assert out == pytest.approx([0, 0, 1, 2, 3, 4, 5, 6])


def test_vibrato_swing_for_an_octave () -> None:

	vibrato = moodsynth.effects.Vibrato(SR)
	vibrato.set(12.0, 1.0)

	assert vibrato.swing_seconds() == pytest.approx(0.5 / (2.0 * math.pi))


def test_dry_chorus_and_distortion_pass_through () -> None:

	signal = _sine(440.0, 512)

	chorus = moodsynth.effects.Chorus(SR)
	chorus.set(0.0, 1.5, 0.7)
	distortion = moodsynth.effects.Distortion()

	assert chorus.process(signal) == pytest.approx(signal)
	assert distortion.process(signal) is signal


def test_setters_clamp () -> None:

	chorus = moodsynth.effects.Chorus(SR)
	chorus.set(2.0, -1.0, 5.0)
	distortion = moodsynth.effects.Distortion()
	distortion.set(-0.5)

	assert (chorus.wet, chorus.depth) == (1.0, 1.0)
	assert chorus.rate > 0
	assert distortion.wet == 0.0


def test_distortion_curve_is_odd_and_soft () -> None:

	x = np.linspace(-1.0, 1.0, 101)
	y = moodsynth.effects.distortion_curve(x)

	assert y == pytest.approx(-y[::-1])
	assert np.all(np.diff(y) > 0)


def test_impulse_response_shape () -> None:

	impulse = moodsynth.effects.generate_impulse_response(0.5, SR, seed=4)

	assert len(impulse) == 4000
	assert np.sum(impulse ** 2) == pytest.approx(1.0)
	assert np.abs(impulse[:400]).max() > np.abs(impulse[-400:]).max()
	assert impulse == pytest.approx(moodsynth.effects.generate_impulse_response(0.5, SR, seed=4))


def test_impulse_response_rejects_zero_decay () -> None:

	with pytest.raises(ValueError):
		moodsynth.effects.generate_impulse_response(0.0, SR)


def test_unloaded_reverb_is_dry () -> None:

	reverb = moodsynth.effects.ConvolutionReverb(partition_size=4)
	signal = np.ones(6)

	assert not reverb.loaded
	assert reverb.process(signal) is signal


def test_reverb_delays_wet_signal_by_one_partition () -> None:

	reverb = moodsynth.effects.ConvolutionReverb(partition_size=4)
	reverb.set_impulse_response(np.array([1.0, 0.0, 0.0, 0.0]))
	reverb.set(1.0)

	first = np.array([1.0, 2.0, 3.0, 4.0])

	assert reverb.process(first) == pytest.approx(np.zeros(4))
	assert reverb.process(np.zeros(4)) == pytest.approx(first)


def test_reverb_matches_direct_convolution_for_any_block_size () -> None:

	rng = np.random.default_rng(9)
	impulse = rng.uniform(-1, 1, 10)
	signal = rng.uniform(-1, 1, 24)

	reverb = moodsynth.effects.ConvolutionReverb(partition_size=4)
	reverb.set_impulse_response(impulse)
	reverb.set(1.0)

	out = np.concatenate([reverb.process(signal[:5]), reverb.process(signal[5:12]), reverb.process(signal[12:])])
	expected = np.concatenate([np.zeros(4), np.convolve(signal, impulse)])[:24]

	assert out == pytest.approx(expected)


def test_chain_returns_pre_reverb_and_output () -> None:

	chain = moodsynth.effects.EffectChain(SR, partition_size=64)
	signal = _sine(220.0, 256) * 0.5

	pre_reverb, output = chain.process(signal)

	assert len(pre_reverb) == len(output) == 256
	# No impulse response yet, so the reverb passes the signal through.
	assert output is pre_reverb

import typing

import mido
import pytest

import moodsynth.audio_context
import moodsynth.engine
import moodsynth.mood
import moodsynth.transport


# Low rate keeps impulse responses and renders small in tests.
TEST_SAMPLE_RATE = 8000
TEST_BLOCK_SIZE = 256


class FakeMidiOut:

	"""Minimal MIDI output stub that keeps every message it is sent."""

	def __init__ (self) -> None:

		self.sent: list[mido.Message] = []
		self.closed = False


	def send (self, message: mido.Message) -> None:

		"""Record outgoing MIDI messages."""

		self.sent.append(message)


	def close (self) -> None:

		self.closed = True


	def panic (self) -> None:

		"""No-op panic for the fake device."""

		return None


	def reset (self) -> None:

		"""No-op reset for the fake device."""

		return None


def _fake_get_output_names () -> list[str]:

	"""Return a fixed list of MIDI output names for tests."""

	return ["Dummy MIDI"]


# Module-level reference so tests can inspect the most recently opened FakeMidiOut.
_current_fake_output: typing.Optional[FakeMidiOut] = None


def _fake_open_output (name: str) -> FakeMidiOut:

	"""Return a fake MIDI output regardless of the name."""

	global _current_fake_output
	fake = FakeMidiOut()
	_current_fake_output = fake
	return fake


@pytest.fixture
def patch_midi (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Patch mido to use a fake MIDI output for all tests that need it."""

	monkeypatch.setattr(mido, "get_output_names", _fake_get_output_names)
	monkeypatch.setattr(mido, "open_output", _fake_open_output)


def make_mood (category: str = "happy", intensity: float = 0.5, brightness: float = 0.5, speed: float = 0.5, texture: float = 0.5, tension: float = 0.3) -> moodsynth.mood.MoodVector:

	"""Build a mood vector with neutral defaults."""

	return moodsynth.mood.MoodVector(
		category = moodsynth.mood.MoodCategory(category),
		intensity = intensity,
		brightness = brightness,
		speed = speed,
		texture = texture,
		tension = tension
	)


@pytest.fixture
def offline_context () -> moodsynth.audio_context.OfflineAudioContext:

	"""An audio context with no device, pulled by hand."""

	return moodsynth.audio_context.OfflineAudioContext(sample_rate=TEST_SAMPLE_RATE, block_size=TEST_BLOCK_SIZE)


@pytest.fixture
def render_transport () -> moodsynth.transport.Transport:

	"""A transport that simulates time instead of waiting for it."""

	return moodsynth.transport.Transport(initial_bpm=120, render_mode=True)


@pytest.fixture
def engine (
	offline_context: moodsynth.audio_context.OfflineAudioContext,
	render_transport: moodsynth.transport.Transport
) -> moodsynth.engine.SynthesisEngine:

	"""An uninitialized engine on an offline context; tests await initialize() themselves."""

	return moodsynth.engine.SynthesisEngine(
		context = offline_context,
		transport = render_transport,
		reverb_decay = 0.2,
		impulse_seed = 1
	)

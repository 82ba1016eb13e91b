import pytest

import moodsynth.keystroke


def test_start_without_keyboard_support (monkeypatch: pytest.MonkeyPatch) -> None:

	"""Unsupported terminals leave the listener inactive instead of raising."""

	monkeypatch.setattr(moodsynth.keystroke, "KEYBOARD_SUPPORTED", False)
	monkeypatch.setattr(moodsynth.keystroke, "KEYBOARD_UNAVAILABLE_REASON", "not a TTY")

	listener = moodsynth.keystroke.KeystrokeListener()

	assert listener.start() is False
	assert not listener.active


def test_drain_returns_keys_in_order () -> None:

	listener = moodsynth.keystroke.KeystrokeListener()

	for key in "q w":
		listener._queue.put(key)

	assert listener.drain() == ["q", " ", "w"]
	assert listener.drain() == []


def test_stop_is_safe_before_start () -> None:

	listener = moodsynth.keystroke.KeystrokeListener()
	listener.stop()

	assert not listener.active

import sys
import types

import numpy as np
import pytest

import moodsynth.audio_context
import moodsynth.errors


State = moodsynth.audio_context.AudioContextState


@pytest.mark.asyncio
async def test_offline_context_pulls_from_render_function () -> None:

	context = moodsynth.audio_context.OfflineAudioContext(sample_rate=1000, block_size=100)
	context.attach(lambda frames: np.ones(frames))

	assert context.state is State.SUSPENDED
	assert np.all(context.pull() == 0)

	await context.resume()

	assert context.running
	assert np.all(context.pull(10) == 1)
	assert len(context.render_seconds(0.25)) == 250


@pytest.mark.asyncio
async def test_offline_context_without_render_function_is_silent () -> None:

	context = moodsynth.audio_context.OfflineAudioContext(sample_rate=1000, block_size=100)
	await context.resume()

	assert np.all(context.pull() == 0)


@pytest.mark.asyncio
async def test_suspend_and_close () -> None:

	context = moodsynth.audio_context.OfflineAudioContext()
	await context.resume()

	context.suspend()
	assert context.state is State.SUSPENDED

	context.close()
	assert context.state is State.CLOSED

	with pytest.raises(moodsynth.errors.AudioInitializationError):
		await context.resume()


class FakeStream:

	"""Stands in for sounddevice.OutputStream."""

	def __init__ (self, **kwargs) -> None:

		self.kwargs = kwargs
		self.started = False
		self.closed = False


	def start (self) -> None:

		self.started = True


	def stop (self) -> None:

		self.started = False


	def close (self) -> None:

		self.closed = True


def _fake_sounddevice (stream_factory) -> types.ModuleType:

	module = types.ModuleType("sounddevice")
	module.OutputStream = stream_factory
	module.PortAudioError = type("PortAudioError", (Exception,), {})

	return module


@pytest.mark.asyncio
async def test_audio_context_opens_stream_on_resume (monkeypatch: pytest.MonkeyPatch) -> None:

	streams: list[FakeStream] = []

	def factory (**kwargs) -> FakeStream:
		stream = FakeStream(**kwargs)
		streams.append(stream)
		return stream

	monkeypatch.setitem(sys.modules, "sounddevice", _fake_sounddevice(factory))

	context = moodsynth.audio_context.AudioContext(sample_rate=22050, block_size=128)
	await context.resume()
	await context.resume()

	assert len(streams) == 1
	assert streams[0].started
	assert streams[0].kwargs["samplerate"] == 22050
	assert streams[0].kwargs["channels"] == 1

	context.close()

	assert streams[0].closed


@pytest.mark.asyncio
async def test_audio_context_callback_clips_output (monkeypatch: pytest.MonkeyPatch) -> None:

	monkeypatch.setitem(sys.modules, "sounddevice", _fake_sounddevice(FakeStream))

	context = moodsynth.audio_context.AudioContext(block_size=4)
	context.attach(lambda frames: np.array([2.0, -2.0, 0.5, 0.0]))
	outdata = np.zeros((4, 1), dtype=np.float32)

	context._callback(outdata, 4, None, None)
	assert np.all(outdata == 0)

	await context.resume()
	context._callback(outdata, 4, None, None)

	assert outdata[:, 0] == pytest.approx([1.0, -1.0, 0.5, 0.0])


@pytest.mark.asyncio
async def test_audio_context_wraps_device_errors (monkeypatch: pytest.MonkeyPatch) -> None:

	module = _fake_sounddevice(None)

	def failing (**kwargs) -> FakeStream:
		raise module.PortAudioError("device unavailable")

	module.OutputStream = failing
	monkeypatch.setitem(sys.modules, "sounddevice", module)

	context = moodsynth.audio_context.AudioContext()

	with pytest.raises(moodsynth.errors.AudioInitializationError, match="device unavailable"):
		await context.resume()

	assert context.state is State.SUSPENDED

"""Audio output contexts.

A context owns the connection to the sound card and pulls audio from a render
function, one block at a time.  :class:`AudioContext` streams through
sounddevice from PortAudio's callback thread.  :class:`OfflineAudioContext`
has no device at all; the caller pulls blocks explicitly, which is how tests
and headless runs drive the engine.

Both start ``SUSPENDED``.  :meth:`resume` is the only call that touches the
audio device and raises :class:`~moodsynth.errors.AudioInitializationError`
when it cannot start.
"""

import enum
import logging
import typing

import numpy as np

import moodsynth.constants.audio
import moodsynth.errors


logger = logging.getLogger(__name__)

RenderFn = typing.Callable[[int], np.ndarray]


class AudioContextState (str, enum.Enum):

	SUSPENDED = "suspended"
	RUNNING = "running"
	CLOSED = "closed"


class BaseAudioContext:

	"""
	State and render-function wiring shared by every context.
	"""

	def __init__ (
		self,
		sample_rate: int = moodsynth.constants.audio.SAMPLE_RATE,
		block_size: int = moodsynth.constants.audio.BLOCK_SIZE
	) -> None:

		self.sample_rate = sample_rate
		self.block_size = block_size
		self.state = AudioContextState.SUSPENDED
		self._render: typing.Optional[RenderFn] = None


	@property
	def running (self) -> bool:

		return self.state is AudioContextState.RUNNING


	def attach (self, render: typing.Optional[RenderFn]) -> None:

		"""Set (or clear) the function that produces audio."""

		self._render = render


	def _pull (self, frames: int) -> np.ndarray:

		if self._render is None:
			return np.zeros(frames)

		return self._render(frames)


	async def resume (self) -> None:

		if self.state is AudioContextState.CLOSED:
			raise moodsynth.errors.AudioInitializationError("Audio context is closed")

		self.state = AudioContextState.RUNNING


	def suspend (self) -> None:

		if self.state is AudioContextState.RUNNING:
			self.state = AudioContextState.SUSPENDED


	def close (self) -> None:

		self.state = AudioContextState.CLOSED
		self._render = None


class AudioContext (BaseAudioContext):

	"""
	Real-time output through a sounddevice ``OutputStream``.
	"""

	def __init__ (
		self,
		sample_rate: int = moodsynth.constants.audio.SAMPLE_RATE,
		block_size: int = moodsynth.constants.audio.BLOCK_SIZE,
		device: typing.Optional[typing.Union[int, str]] = None
	) -> None:

		super().__init__(sample_rate, block_size)
		self.device = device
		self._stream: typing.Any = None


	def _callback (self, outdata: np.ndarray, frames: int, time: typing.Any, status: typing.Any) -> None:

		if status:
			logger.debug(f"Audio stream status: {status}")

		if self.state is not AudioContextState.RUNNING:
			outdata.fill(0)
			return

		block = self._pull(frames)
		outdata[:, 0] = np.clip(block, -1.0, 1.0)


	def _open_stream (self) -> typing.Any:

		try:
			import sounddevice
		except (ImportError, OSError) as exc:
			# OSError: the PortAudio shared library itself is missing.
			raise moodsynth.errors.AudioInitializationError(f"sounddevice is not available: {exc}") from exc

		try:
			stream = sounddevice.OutputStream(
				samplerate = self.sample_rate,
				blocksize = self.block_size,
				channels = 1,
				dtype = "float32",
				device = self.device,
				callback = self._callback
			)
			stream.start()

		except (sounddevice.PortAudioError, ValueError) as exc:
			raise moodsynth.errors.AudioInitializationError(f"Could not open audio output: {exc}") from exc

		return stream


	async def resume (self) -> None:

		"""
		Open the output stream on first use, then start rendering.
		"""

		if self.state is AudioContextState.CLOSED:
			raise moodsynth.errors.AudioInitializationError("Audio context is closed")

		if self._stream is None:
			self._stream = self._open_stream()
			logger.info(f"Audio output open at {self.sample_rate} Hz, block {self.block_size}")

		await super().resume()


	def close (self) -> None:

		super().close()

		if self._stream is not None:
			self._stream.stop()
			self._stream.close()
			self._stream = None


class OfflineAudioContext (BaseAudioContext):

	"""
	A context without a device.  Call :meth:`pull` to render audio.
	"""

	def pull (self, frames: typing.Optional[int] = None) -> np.ndarray:

		"""
		Render one block (silence while not running).
		"""

		frames = frames or self.block_size

		if self.state is not AudioContextState.RUNNING:
			return np.zeros(frames)

		return self._pull(frames)


	def render_seconds (self, seconds: float) -> np.ndarray:

		"""
		Render ``seconds`` of audio in block-sized pulls.
		"""

		total = int(seconds * self.sample_rate)
		blocks: typing.List[np.ndarray] = []
		done = 0

		while done < total:
			frames = min(self.block_size, total - done)
			blocks.append(self.pull(frames))
			done += frames

		return np.concatenate(blocks) if blocks else np.zeros(0)

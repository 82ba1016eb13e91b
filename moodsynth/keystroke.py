"""Single-keystroke terminal input for playing notes live.

A background thread reads keys from stdin in *cbreak* mode, so each keypress
arrives without Enter, and queues them for the event loop to collect with
:meth:`KeystrokeListener.drain`.  The engine's keyboard map turns the keys
into scale notes.

**Platform support:** Linux and macOS (needs :mod:`termios` and :mod:`tty`
and an interactive terminal).  Elsewhere the listener logs a warning and
stays inactive; :data:`KEYBOARD_SUPPORTED` says which case applies.
"""

import logging
import queue
import select
import sys
import threading
import typing


logger = logging.getLogger(__name__)


#: ``True`` when stdin can deliver single keystrokes.
KEYBOARD_SUPPORTED: bool = False

#: Why keyboard input is unavailable, or ``None`` when it is supported.
KEYBOARD_UNAVAILABLE_REASON: typing.Optional[str] = None

try:
	import termios
	import tty

	if not sys.stdin.isatty():
		raise OSError("stdin is not a TTY (running in a pipe or non-interactive context)")

	_fd = sys.stdin.fileno()
	termios.tcsetattr(_fd, termios.TCSADRAIN, termios.tcgetattr(_fd))

	KEYBOARD_SUPPORTED = True

except ImportError:
	KEYBOARD_UNAVAILABLE_REASON = (
		"The 'tty' and 'termios' modules are not available on this platform. "
		"Live keyboard input requires Linux or macOS."
	)
except OSError as _e:
	KEYBOARD_UNAVAILABLE_REASON = f"Live keyboard input requires an interactive terminal. Reason: {_e}"
except Exception as _e:
	KEYBOARD_UNAVAILABLE_REASON = f"Live keyboard input unavailable: {_e}"


class KeystrokeListener:

	"""Daemon thread that queues single keystrokes from stdin.

	Terminal settings are restored when the thread exits, including after an
	error, so the terminal is never left in cbreak mode.

	Example::

		listener = KeystrokeListener()
		listener.start()

		for key in listener.drain():
		    pitch = engine.key_to_note(key)

		listener.stop()
	"""

	def __init__ (self, poll_interval: float = 0.05) -> None:

		self.poll_interval = poll_interval
		self._queue: "queue.Queue[str]" = queue.Queue()
		self._thread: typing.Optional[threading.Thread] = None
		self._running = False

		#: ``True`` while the reader thread is running.
		self.active = False


	def start (self) -> bool:

		"""Start reading keys.  Returns ``False`` when keyboard input is unavailable."""

		if self._running:
			return True

		if not KEYBOARD_SUPPORTED:
			logger.warning(f"Live keyboard disabled. {KEYBOARD_UNAVAILABLE_REASON}")
			return False

		self._running = True
		self.active = True
		self._thread = threading.Thread(
			target = self._listen,
			name = "moodsynth-keyboard",
			daemon = True
		)
		self._thread.start()

		return True


	def stop (self) -> None:

		"""Ask the thread to exit; it restores the terminal within one poll interval."""

		self._running = False


	def drain (self) -> typing.List[str]:

		"""All keys pressed since the last call, oldest first.  Never blocks."""

		keys: typing.List[str] = []

		while True:
			try:
				keys.append(self._queue.get_nowait())
			except queue.Empty:
				break

		return keys


	def _listen (self) -> None:

		import termios
		import tty

		fd = sys.stdin.fileno()
		old_settings = termios.tcgetattr(fd)

		try:
			# cbreak rather than raw keeps Ctrl+C working.
			tty.setcbreak(fd)

			while self._running:
				ready, _, _ = select.select([sys.stdin], [], [], self.poll_interval)
				if ready:
					char = sys.stdin.read(1)
					if char:
						self._queue.put(char)

		except (OSError, ValueError, termios.error):
			logger.exception("Keyboard listener stopped unexpectedly")

		finally:
			termios.tcsetattr(fd, termios.TCSADRAIN, old_settings)
			self._running = False
			self.active = False

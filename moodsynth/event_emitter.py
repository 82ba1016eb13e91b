import asyncio
import typing


CallbackType = typing.Callable[..., typing.Any]


class EventEmitter:

	"""
	Named events with sync and async listeners.

	The transport emits ``"start"``, ``"pause"``, ``"resume"``, ``"stop"``,
	``"beat"`` and ``"bar"``; the sequencer emits ``"state"`` on every state
	change.  Listeners are called in registration order and may unregister
	themselves while being called.
	"""

	def __init__ (self) -> None:

		self._listeners: typing.Dict[str, typing.List[CallbackType]] = {}


	def on (self, event_name: str, callback: CallbackType) -> CallbackType:

		"""
		Register a callback and return it, for a later :meth:`off`.
		"""

		self._listeners.setdefault(event_name, []).append(callback)

		return callback


	def off (self, event_name: str, callback: CallbackType) -> None:

		"""
		Unregister a callback.  Raises ``ValueError`` if it is not registered.
		"""

		if callback not in self._listeners.get(event_name, []):
			raise ValueError(f"Callback not registered for event {event_name!r}")

		self._listeners[event_name].remove(callback)


	def listener_count (self, event_name: str) -> int:

		return len(self._listeners.get(event_name, []))


	def clear (self) -> None:

		self._listeners = {}


	def emit_sync (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call every listener now.  Async listeners are not allowed here.
		"""

		for callback in list(self._listeners.get(event_name, [])):

			if asyncio.iscoroutinefunction(callback):
				raise ValueError(f"Async callback registered for {event_name!r} cannot be called from emit_sync")

			callback(*args, **kwargs)


	async def emit_async (self, event_name: str, *args: typing.Any, **kwargs: typing.Any) -> None:

		"""
		Call sync listeners in order, then await the async ones together.
		"""

		pending: typing.List[typing.Awaitable[typing.Any]] = []

		for callback in list(self._listeners.get(event_name, [])):

			result = callback(*args, **kwargs)

			if asyncio.iscoroutine(result):
				pending.append(result)

		if pending:
			await asyncio.gather(*pending)

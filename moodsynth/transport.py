"""The shared clock that drives scheduled playback.

The :class:`Transport` counts pulses (24 per beat) in an asyncio task and
fires scheduled callbacks when their pulse arrives.  Callbacks are grouped in
:class:`Part` objects; every part carries a :class:`CancellationToken`, and
:meth:`Transport.cancel` removes all pending entries for a token at once,
before returning.

Looping parts arm their next cycle one beat before the cycle ends.  The
part's ``loop`` flag is read at that moment, so turning looping off lets the
current cycle finish and then stops the part.

In render mode the clock does not wait for wall time: it simulates pulses as
fast as possible and stops after ``render_beats`` beats, which makes playback
testable without real-time waits.
"""

import asyncio
import dataclasses
import enum
import heapq
import itertools
import logging
import time
import typing

import moodsynth.constants.audio
import moodsynth.event_emitter


logger = logging.getLogger(__name__)

PULSES_PER_BEAT = moodsynth.constants.audio.PULSES_PER_BEAT
BEATS_PER_BAR = moodsynth.constants.audio.BEATS_PER_BAR

# Beats before a cycle boundary at which a looping part arms its next cycle.
LOOP_LOOKAHEAD_BEATS = 1.0


class TransportState (str, enum.Enum):

	STOPPED = "stopped"
	STARTED = "started"
	PAUSED = "paused"


class CancellationToken:

	"""
	A handle shared by everything scheduled for one loaded sequence.
	"""

	def __init__ (self, name: str = "") -> None:

		self.name = name
		self.cancelled = False


	def cancel (self) -> None:

		self.cancelled = True


	def __repr__ (self) -> str:

		return f"CancellationToken({self.name!r}, cancelled={self.cancelled})"


@dataclasses.dataclass
class Part:

	"""
	A list of timed payloads delivered to one callback.

	Attributes:
		callback: Called with each payload when its beat arrives; may be a coroutine function.
		events: ``(beat, payload)`` pairs, beats relative to the start of the part.
		length_beats: Cycle length when looping.
		loop: Repeat every ``length_beats`` while set.
		token: Cancellation handle; parts of one sequence share a token.
		name: Label for logging.
	"""

	callback: typing.Callable[[typing.Any], typing.Any]
	events: typing.Sequence[typing.Tuple[float, typing.Any]]
	length_beats: float
	loop: bool = False
	token: CancellationToken = dataclasses.field(default_factory=CancellationToken)
	name: str = "part"


@dataclasses.dataclass (order=True)
class ScheduledEvent:

	"""
	A payload due at a specific pulse.
	"""

	pulse: int
	order: int
	part: Part = dataclasses.field(compare=False)
	payload: typing.Any = dataclasses.field(compare=False)


@dataclasses.dataclass
class ScheduledPart:

	"""
	Tracks a part across cycles and the pulse at which to look at it next.
	"""

	part: Part
	cycle_start_pulse: int
	length_pulses: int
	next_reschedule_pulse: int


def beats_to_pulses (beats: float) -> int:

	return int(round(beats * PULSES_PER_BEAT))


class Transport:

	"""
	Pulse clock with a scheduling queue, shared by the sequencer and the engine.
	"""

	def __init__ (
		self,
		initial_bpm: float = moodsynth.constants.audio.DEFAULT_BPM,
		spin_wait: bool = True,
		render_mode: bool = False,
		render_beats: float = 0
	) -> None:

		"""
		Parameters:
			initial_bpm: Starting tempo.
			spin_wait: Busy-wait the final millisecond of each pulse for tighter timing.
			render_mode: Simulate time instead of following the wall clock.
			render_beats: In render mode, stop after this many beats (0 = no limit).
		"""

		self.pulses_per_beat = PULSES_PER_BEAT
		self.render_mode = render_mode
		self.render_beats = render_beats

		self.events = moodsynth.event_emitter.EventEmitter()
		self.state = TransportState.STOPPED
		self.task: typing.Optional[asyncio.Task] = None
		self.running = False

		self.event_queue: typing.List[ScheduledEvent] = []
		self.reschedule_queue: typing.List[typing.Tuple[int, int, ScheduledPart]] = []
		self._event_counter = itertools.count()
		self._reschedule_counter = itertools.count()

		self.pulse_count = 0
		self.current_bar = -1
		self.current_beat = -1
		self.elapsed_seconds = 0.0

		self.current_bpm = 0.0
		self.seconds_per_beat = 0.0
		self.seconds_per_pulse = 0.0
		self._spin_wait = spin_wait
		self._spin_threshold = 0.001

		self.set_bpm(initial_bpm)


	@property
	def position_beats (self) -> float:

		"""Current position in beats from the start."""

		return self.pulse_count / self.pulses_per_beat


	def set_bpm (self, bpm: float) -> None:

		"""
		Change the tempo immediately.
		"""

		if bpm <= 0:
			raise ValueError("BPM must be positive")

		self.current_bpm = bpm
		self.seconds_per_beat = 60.0 / bpm
		self.seconds_per_pulse = self.seconds_per_beat / self.pulses_per_beat

		logger.debug(f"BPM set to {self.current_bpm:.2f}")


	def on_event (self, event_name: str, callback: typing.Callable[..., typing.Any]) -> None:

		self.events.on(event_name, callback)


	def _schedule_cycle (self, part: Part, start_pulse: int) -> None:

		for beat, payload in part.events:
			heapq.heappush(self.event_queue, ScheduledEvent(
				pulse = start_pulse + beats_to_pulses(beat),
				order = next(self._event_counter),
				part = part,
				payload = payload
			))


	def add_part (self, part: Part, start_beat: float = 0) -> None:

		"""
		Arm a part so its first cycle starts at ``start_beat``.

		A part can be armed while the transport runs; entries already in the
		past fire on the next pulse.
		"""

		if part.token.cancelled:
			raise ValueError(f"Cannot schedule part {part.name!r}: its token is cancelled")

		length_pulses = beats_to_pulses(part.length_beats)

		if length_pulses <= 0:
			raise ValueError("Part length must be at least one pulse")

		start_pulse = beats_to_pulses(start_beat)
		self._schedule_cycle(part, start_pulse)

		lookahead = min(beats_to_pulses(LOOP_LOOKAHEAD_BEATS), length_pulses)

		scheduled = ScheduledPart(
			part = part,
			cycle_start_pulse = start_pulse,
			length_pulses = length_pulses,
			next_reschedule_pulse = start_pulse + length_pulses - lookahead
		)

		heapq.heappush(self.reschedule_queue, (scheduled.next_reschedule_pulse, next(self._reschedule_counter), scheduled))

		logger.debug(f"Armed part {part.name!r} at beat {start_beat}: {len(part.events)} events, queue size {len(self.event_queue)}")


	def cancel (self, token: CancellationToken) -> int:

		"""
		Cancel ``token`` and drop every pending entry that belongs to it.

		Returns the number of events removed.
		"""

		token.cancel()

		before = len(self.event_queue)
		self.event_queue = [event for event in self.event_queue if event.part.token is not token]
		heapq.heapify(self.event_queue)

		self.reschedule_queue = [entry for entry in self.reschedule_queue if entry[2].part.token is not token]
		heapq.heapify(self.reschedule_queue)

		removed = before - len(self.event_queue)

		if removed:
			logger.debug(f"Cancelled {removed} pending events for {token!r}")

		return removed


	def clear (self) -> None:

		"""Drop everything scheduled, whatever its token."""

		self.event_queue = []
		self.reschedule_queue = []
		self._event_counter = itertools.count()
		self._reschedule_counter = itertools.count()


	async def start (self) -> None:

		"""
		Start the clock from the current position in a separate asyncio task.
		"""

		if self.running:
			return

		self.running = True
		self.state = TransportState.STARTED
		self.task = asyncio.create_task(self._run_loop())

		logger.info("Transport started")

		await self.events.emit_async("start")


	def pause (self) -> None:

		"""
		Halt the clock, keeping the position and everything scheduled.
		"""

		if self.state is not TransportState.STARTED:
			return

		self._halt()
		self.state = TransportState.PAUSED

		logger.info(f"Transport paused at beat {self.position_beats:.2f}")

		self.events.emit_sync("pause")


	async def resume (self) -> None:

		"""
		Continue from where :meth:`pause` left off.
		"""

		if self.state is not TransportState.PAUSED:
			return

		self.running = True
		self.state = TransportState.STARTED
		self.task = asyncio.create_task(self._run_loop())

		await self.events.emit_async("resume")


	def stop (self) -> None:

		"""
		Halt the clock, rewind to zero and drop everything scheduled.
		"""

		self._halt()
		self.state = TransportState.STOPPED
		self.clear()
		self.pulse_count = 0
		self.current_bar = -1
		self.current_beat = -1
		self.elapsed_seconds = 0.0

		logger.info("Transport stopped")

		self.events.emit_sync("stop")


	def _halt (self) -> None:

		self.running = False

		if self.task is not None and not self.task.done():
			if self.task is not _current_task():
				self.task.cancel()

		self.task = None


	async def wait (self) -> None:

		"""
		Wait for the clock task to finish (render mode, or after a stop).
		"""

		task = self.task

		if task is None:
			return

		try:
			await task
		except asyncio.CancelledError:
			pass


	async def _run_loop (self) -> None:

		"""
		Advance pulses until halted, sleeping between them unless rendering.
		"""

		next_pulse_time = time.perf_counter()
		pulses_per_bar = BEATS_PER_BAR * self.pulses_per_beat

		while self.running:

			current_time = next_pulse_time if self.render_mode else time.perf_counter()

			while current_time >= next_pulse_time:

				if self.render_mode and self.render_beats > 0 and self.pulse_count >= beats_to_pulses(self.render_beats):
					self.running = False
					self.state = TransportState.STOPPED
					break

				self._check_bar_change(self.pulse_count, pulses_per_bar)
				self._check_beat_change(self.pulse_count)
				await self._advance_pulse()
				next_pulse_time += self.seconds_per_pulse

				if not self.running:
					break

			if not self.running:
				break

			if self.render_mode:
				# Let tasks created by callbacks run between pulses.
				await asyncio.sleep(0)
				continue

			sleep_time = next_pulse_time - time.perf_counter()

			if sleep_time > 0:
				if self._spin_wait and sleep_time > self._spin_threshold:
					await asyncio.sleep(sleep_time - self._spin_threshold)
					while time.perf_counter() < next_pulse_time:
						pass
				else:
					await asyncio.sleep(sleep_time)


	def _check_bar_change (self, pulse: int, pulses_per_bar: int) -> None:

		new_bar = pulse // pulses_per_bar

		if new_bar > self.current_bar:
			self.current_bar = new_bar
			asyncio.create_task(self.events.emit_async("bar", self.current_bar))


	def _check_beat_change (self, pulse: int) -> None:

		beat_in_bar = (pulse % (BEATS_PER_BAR * self.pulses_per_beat)) // self.pulses_per_beat

		if beat_in_bar != self.current_beat:
			self.current_beat = beat_in_bar
			asyncio.create_task(self.events.emit_async("beat", self.current_beat))


	async def _advance_pulse (self) -> None:

		self._maybe_reschedule_parts(self.pulse_count)
		await self._process_pulse(self.pulse_count)

		# A callback stopped the transport and rewound it.
		if self.state is TransportState.STOPPED:
			return

		self.pulse_count += 1
		self.elapsed_seconds += self.seconds_per_pulse


	def _maybe_reschedule_parts (self, pulse: int) -> None:

		"""
		Arm the next cycle of looping parts whose lookahead point has arrived.

		Parts with ``loop`` unset stay tracked but silent: they are looked at
		again on every cycle boundary, so turning ``loop`` back on while the
		transport runs resumes them at the next boundary.
		"""

		while self.reschedule_queue and self.reschedule_queue[0][0] <= pulse:

			_, _, scheduled = heapq.heappop(self.reschedule_queue)
			part = scheduled.part

			if part.token.cancelled:
				continue

			boundary = scheduled.cycle_start_pulse + scheduled.length_pulses

			if not part.loop:

				# Once the boundary passes, an idle cycle has started.
				if pulse >= boundary:
					scheduled.cycle_start_pulse = boundary

				scheduled.next_reschedule_pulse = scheduled.cycle_start_pulse + scheduled.length_pulses
				heapq.heappush(self.reschedule_queue, (scheduled.next_reschedule_pulse, next(self._reschedule_counter), scheduled))
				continue

			lookahead = min(beats_to_pulses(LOOP_LOOKAHEAD_BEATS), scheduled.length_pulses)

			scheduled.cycle_start_pulse = boundary
			scheduled.next_reschedule_pulse = boundary + scheduled.length_pulses - lookahead

			self._schedule_cycle(part, scheduled.cycle_start_pulse)
			heapq.heappush(self.reschedule_queue, (scheduled.next_reschedule_pulse, next(self._reschedule_counter), scheduled))

			logger.debug(f"Looped part {part.name!r} to pulse {scheduled.cycle_start_pulse}")


	async def _process_pulse (self, pulse: int) -> None:

		"""
		Fire every event due at or before ``pulse`` (late events fire immediately).
		"""

		while self.event_queue and self.event_queue[0].pulse <= pulse:

			event = heapq.heappop(self.event_queue)

			if event.part.token.cancelled:
				continue

			result = event.part.callback(event.payload)

			if asyncio.iscoroutine(result):
				await result

			if not self.running:
				break


def _current_task () -> typing.Optional[asyncio.Task]:

	try:
		return asyncio.current_task()
	except RuntimeError:
		return None

import typing

import pytest

import moodsynth.composer
import moodsynth.constants.durations
import moodsynth.engine
import moodsynth.sequencer
import moodsynth.transport


NoteValue = moodsynth.constants.durations.NoteValue
SequencerState = moodsynth.sequencer.SequencerState


def _sequence (pitch: str, beats: list[float], bass: typing.Sequence[float] = (), tempo: float = 120) -> moodsynth.composer.GeneratedSequence:

	"""A one-bar sequence with quarter notes at ``beats``."""

	return moodsynth.composer.GeneratedSequence(
		melody = tuple(moodsynth.composer.NoteEvent(pitch, NoteValue.QUARTER, beat, 0.8) for beat in beats),
		bass_line = tuple(moodsynth.composer.NoteEvent("C3", NoteValue.HALF, beat, 0.7) for beat in bass),
		tempo = tempo,
		total_duration_seconds = 4 * 60.0 / tempo
	)


@pytest.fixture
def sequencer (engine: moodsynth.engine.SynthesisEngine) -> moodsynth.sequencer.MoodSequencer:

	return moodsynth.sequencer.MoodSequencer(engine, engine.transport)


def test_loop_length_rounds_seconds_up_to_bars () -> None:

	assert moodsynth.sequencer.loop_length_beats(_sequence("C4", [0])) == 8
	assert moodsynth.sequencer.loop_length_beats(_sequence("C4", [0], tempo=240)) == 4

	four_bars = moodsynth.composer.GeneratedSequence((), (), 132, 16 * 60.0 / 132)
	assert moodsynth.sequencer.loop_length_beats(four_bars) == 32


def test_load_sets_loaded_and_tempo (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	states: list[SequencerState] = []
	sequencer.events.on("state", states.append)

	sequencer.load_sequence(_sequence("C4", [0, 1], tempo=90))

	assert sequencer.state is SequencerState.LOADED
	assert states == [SequencerState.LOADED]
	assert sequencer.transport.current_bpm == 90
	assert sequencer.bass_part is None


@pytest.mark.asyncio
async def test_start_without_sequence_does_nothing (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	await sequencer.start()

	assert sequencer.state is SequencerState.IDLE
	assert not sequencer.is_playing


@pytest.mark.asyncio
async def test_plays_every_note_in_order (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	await sequencer.engine.initialize()
	sequence = _sequence("E4", [0, 1, 2.5, 3])
	played: list[moodsynth.composer.NoteEvent] = []

	sequencer.transport.render_beats = 8
	sequencer.on_note_played(played.append)
	sequencer.load_sequence(sequence)

	await sequencer.start()
	assert sequencer.is_playing

	await sequencer.transport.wait()

	assert played == list(sequence.melody)


@pytest.mark.asyncio
async def test_bass_notes_reach_the_engine (sequencer: moodsynth.sequencer.MoodSequencer, monkeypatch: pytest.MonkeyPatch) -> None:

	await sequencer.engine.initialize()
	sounded: list[str] = []
	original = sequencer.engine.play_note

	async def spy (pitch, duration=NoteValue.EIGHTH, velocity=1.0) -> bool:
		sounded.append(pitch)
		return await original(pitch, duration, velocity)

	monkeypatch.setattr(sequencer.engine, "play_note", spy)

	sequencer.transport.render_beats = 8
	sequencer.load_sequence(_sequence("E4", [1], bass=[0, 2]))

	await sequencer.start()
	await sequencer.transport.wait()

	assert sounded == ["C3", "E4", "C3"]


@pytest.mark.asyncio
async def test_stop_returns_to_idle_at_zero (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	await sequencer.engine.initialize()
	sequencer.transport.render_beats = 8
	sequence = _sequence("E4", [0, 1, 2, 3])

	def stop_on_third (event: moodsynth.composer.NoteEvent) -> None:
		if event.start_time == 2:
			sequencer.stop()

	sequencer.on_note_played(stop_on_third)
	sequencer.load_sequence(sequence)

	await sequencer.start()
	await sequencer.transport.wait()

	assert sequencer.state is SequencerState.IDLE
	assert sequencer.position_beats == 0
	assert sequencer.sequence is sequence
	assert sequencer.transport.event_queue == []


@pytest.mark.asyncio
async def test_start_after_stop_plays_from_the_top (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	await sequencer.engine.initialize()
	sequencer.transport.render_beats = 8
	played: list[float] = []

	sequencer.on_note_played(lambda event: played.append(event.start_time))
	sequencer.load_sequence(_sequence("E4", [0, 2]))

	await sequencer.start()
	await sequencer.transport.wait()
	sequencer.stop()

	await sequencer.start()
	await sequencer.transport.wait()

	assert played == [0, 2, 0, 2]


@pytest.mark.asyncio
async def test_reload_while_playing_drops_old_notes (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	"""No note of the old sequence plays once a new one is loaded."""

	await sequencer.engine.initialize()
	sequencer.transport.render_beats = 8
	old = _sequence("C#4", [0, 1, 2, 3])
	new = _sequence("D#4", [0, 1, 2, 3])
	after_reload: list[str] = []
	reloaded = False

	def on_note (event: moodsynth.composer.NoteEvent) -> None:
		nonlocal reloaded
		if reloaded:
			after_reload.append(event.pitch)
		elif event.start_time == 1:
			sequencer.load_sequence(new)
			reloaded = True

	sequencer.on_note_played(on_note)
	sequencer.load_sequence(old)
	sequencer.set_looping(True)

	await sequencer.start()
	await sequencer.transport.wait()

	assert sequencer.state is SequencerState.LOADED

	await sequencer.start()
	await sequencer.transport.wait()

	assert after_reload == ["D#4"] * 4


@pytest.mark.asyncio
async def test_pause_and_resume (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	await sequencer.engine.initialize()
	sequencer.transport.render_beats = 8
	played: list[float] = []
	states: list[SequencerState] = []

	def on_note (event: moodsynth.composer.NoteEvent) -> None:
		played.append(event.start_time)
		if event.start_time == 1:
			sequencer.pause()

	sequencer.events.on("state", states.append)
	sequencer.on_note_played(on_note)
	sequencer.load_sequence(_sequence("E4", [0, 1, 2, 3]))

	await sequencer.start()
	await sequencer.transport.wait()

	assert sequencer.state is SequencerState.PAUSED
	assert played == [0, 1]
	assert sequencer.position_beats > 1

	await sequencer.resume()
	await sequencer.transport.wait()

	assert played == [0, 1, 2, 3]
	assert states == [SequencerState.LOADED, SequencerState.PLAYING, SequencerState.PAUSED, SequencerState.PLAYING]


@pytest.mark.asyncio
async def test_toggle_cycles_through_states (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	await sequencer.engine.initialize()
	sequencer.transport.render_beats = 8
	sequencer.load_sequence(_sequence("E4", [0]))

	played: list[float] = []
	sequencer.on_note_played(lambda event: played.append(event.start_time))

	await sequencer.toggle()
	assert sequencer.state is SequencerState.PLAYING

	# Pause before the clock task has had a chance to run.
	await sequencer.toggle()
	assert sequencer.state is SequencerState.PAUSED

	await sequencer.toggle()
	assert sequencer.state is SequencerState.PLAYING

	await sequencer.transport.wait()

	assert played == [0]


@pytest.mark.asyncio
async def test_looping_replays_each_cycle (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	await sequencer.engine.initialize()
	sequencer.transport.render_beats = 24
	played: list[float] = []

	sequencer.on_note_played(lambda event: played.append(sequencer.position_beats))
	sequencer.load_sequence(_sequence("E4", [0, 2]))
	sequencer.set_looping(True)

	assert sequencer.melody_part.loop

	await sequencer.start()
	await sequencer.transport.wait()

	assert played == [0, 2, 8, 10, 16, 18]


@pytest.mark.asyncio
async def test_looping_switched_on_late_still_loops (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	"""Looping enabled after the first cycle's lookahead takes over at the next boundary."""

	await sequencer.engine.initialize()
	sequencer.transport.render_beats = 24
	played: list[float] = []

	sequencer.on_note_played(lambda event: played.append(sequencer.position_beats))
	sequencer.load_sequence(_sequence("E4", [0, 1]))

	await sequencer.start()

	sequencer.transport.add_part(moodsynth.transport.Part(
		callback = lambda _: sequencer.set_looping(True),
		events = [(7.5, None)],
		length_beats = 24
	))

	await sequencer.transport.wait()

	assert sequencer.state is SequencerState.PLAYING
	assert played == [0, 1, 8, 9, 16, 17]


@pytest.mark.asyncio
async def test_dispose_clears_everything (sequencer: moodsynth.sequencer.MoodSequencer) -> None:

	sequencer.load_sequence(_sequence("E4", [0]))
	sequencer.on_note_played(lambda event: None)

	sequencer.dispose()

	assert sequencer.sequence is None
	assert sequencer.state is SequencerState.IDLE
	assert sequencer.events.listener_count("state") == 0

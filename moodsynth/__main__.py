"""Command-line entry point.

Usage::

	python -m moodsynth "rainy evening, a bit lonely" --bars 8 --mode ambient --loop

Settings come from ``config.yaml`` (see ``load_config``); command-line flags
override the file.  While playing, the keyboard plays scale notes and a few
punctuation keys control playback (press ``?`` for the list).
"""

import argparse
import asyncio
import logging
import os
import random
import signal
import typing

import yaml

import moodsynth.audio_context
import moodsynth.composer
import moodsynth.constants.audio
import moodsynth.instruments
import moodsynth.keystroke
import moodsynth.session
import moodsynth.taps


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

KEY_POLL_SECONDS = 0.02


def load_config (config_path: str = 'config.yaml') -> dict:

	"""
	Load configuration from a YAML file; a missing or empty file gives ``{}``.

	Recognised sections::

		audio:      {sample_rate, block_size, device, max_polyphony}
		midi:       {output_device, record_filename}
		composer:   {bars, mode, seed}
		sequencer:  {loop}
		instrument: piano
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		config = yaml.safe_load(f)

	if config is None:
		return {}

	if not isinstance(config, dict):
		raise ValueError(f"Config file {config_path} must contain a mapping")

	return config


def parse_args (argv: typing.Optional[typing.Sequence[str]] = None) -> argparse.Namespace:

	parser = argparse.ArgumentParser(prog="moodsynth", description="Turn a mood description into music.")
	parser.add_argument("text", nargs="*", help="How you feel, in your own words")
	parser.add_argument("--config", default="config.yaml", help="YAML config file")
	parser.add_argument("--bars", type=int, help="Bars per generated sequence")
	parser.add_argument("--mode", choices=[mode.value for mode in moodsynth.composer.ComposerMode])
	parser.add_argument("--instrument", choices=[instrument.value for instrument in moodsynth.instruments.Instrument])
	parser.add_argument("--loop", action="store_true", default=None, help="Loop the sequence")
	parser.add_argument("--seed", type=int, help="Seed for repeatable compositions")
	parser.add_argument("--midi-out", dest="midi_out", help="Mirror notes to this MIDI output")
	parser.add_argument("--choose-midi-out", dest="choose_midi_out", action="store_true", help="Pick the MIDI output to mirror notes to from a list")
	parser.add_argument("--record-midi", dest="record_midi", help="Save played notes to this MIDI file")
	parser.add_argument("--no-keyboard", dest="keyboard", action="store_false", help="Disable live keyboard input")

	return parser.parse_args(argv)


def build_session (args: argparse.Namespace, config: dict) -> moodsynth.session.MoodSession:

	"""
	Construct a session from config values overridden by flags.
	"""

	audio = config.get('audio', {}) or {}
	composer = config.get('composer', {}) or {}
	sequencer = config.get('sequencer', {}) or {}

	seed = args.seed if args.seed is not None else composer.get('seed')

	context = moodsynth.audio_context.AudioContext(
		sample_rate = audio.get('sample_rate', moodsynth.constants.audio.SAMPLE_RATE),
		block_size = audio.get('block_size', moodsynth.constants.audio.BLOCK_SIZE),
		device = audio.get('device')
	)

	return moodsynth.session.MoodSession(
		context = context,
		instrument = args.instrument or config.get('instrument', moodsynth.instruments.DEFAULT_INSTRUMENT),
		bars = args.bars or composer.get('bars', 4),
		mode = args.mode or composer.get('mode', moodsynth.composer.ComposerMode.MELODY),
		looping = args.loop if args.loop is not None else bool(sequencer.get('loop', False)),
		rng = random.Random(seed) if seed is not None else None,
		max_polyphony = audio.get('max_polyphony', moodsynth.constants.audio.DEFAULT_MAX_POLYPHONY)
	)


def build_midi_tap (args: argparse.Namespace, config: dict) -> typing.Optional[moodsynth.taps.MidiTap]:

	"""
	A MIDI tap when a port or a recording was asked for, otherwise ``None``.

	A port is only opened when one is named or ``--choose-midi-out`` is given;
	recording alone never mirrors to whatever port happens to exist.
	"""

	midi = config.get('midi', {}) or {}
	midi_device = args.midi_out or midi.get('output_device')
	record_filename = args.record_midi or midi.get('record_filename')
	mirror = bool(midi_device) or args.choose_midi_out

	if not mirror and not record_filename:
		return None

	return moodsynth.taps.MidiTap(
		output_device_name = midi_device or None,
		record = bool(record_filename),
		record_filename = record_filename,
		mirror = mirror,
		interactive = args.choose_midi_out
	)


async def run_until_stopped (
	session: moodsynth.session.MoodSession,
	listener: typing.Optional[moodsynth.keystroke.KeystrokeListener] = None
) -> None:

	"""
	Play until Ctrl+C, feeding keystrokes to the session as they arrive.
	"""

	logger.info("Playing. Press ? for keys, Ctrl+C to quit.")

	stop_event = asyncio.Event()
	loop = asyncio.get_running_loop()

	for sig in (signal.SIGINT, signal.SIGTERM):
		loop.add_signal_handler(sig, stop_event.set)

	while not stop_event.is_set():

		if listener is not None:
			await session.handle_keys(listener.drain())

		try:
			await asyncio.wait_for(stop_event.wait(), timeout=KEY_POLL_SECONDS)
		except asyncio.TimeoutError:
			pass


async def run (args: argparse.Namespace, config: dict) -> None:

	session = build_session(args, config)

	midi_tap = build_midi_tap(args, config)

	if midi_tap is not None:
		session.connect_tap(midi_tap)

	listener = moodsynth.keystroke.KeystrokeListener() if args.keyboard else None

	try:
		await session.initialize()

		if args.text:
			session.analyze(" ".join(args.text))
			session.compose()
			await session.play()
		else:
			logger.info("No mood given - keyboard only.")

		if listener is not None:
			listener.start()

		await run_until_stopped(session, listener)

	finally:
		if listener is not None:
			listener.stop()

		if midi_tap is not None:
			midi_tap.save_recording()

		session.dispose()


def main (argv: typing.Optional[typing.Sequence[str]] = None) -> None:

	"""
	Main entry point for the moodsynth application.
	"""

	logger.info("moodsynth starting...")

	args = parse_args(argv)
	config = load_config(args.config)

	asyncio.run(run(args, config))


if __name__ == "__main__":
	main()

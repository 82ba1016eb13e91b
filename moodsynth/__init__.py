"""
moodsynth - turn a mood description into playable, parameterized music.

A free-text mood is analyzed into a :class:`~moodsynth.mood.MoodVector`
(category plus five continuous fields), mapped onto synthesis parameters,
and used to compose a melody and bass line with a mood-specific Markov
chain.  The sequence plays through a small software synthesizer while the
computer keyboard plays chords from the same scale.

Pipeline:

- **Mapper** (:mod:`moodsynth.mapper`) - pure mood → :class:`ParameterSet`:
  tempo, waveform, envelope, filter, chorus, vibrato, distortion, reverb,
  scale and chord voicing.
- **Composer** (:mod:`moodsynth.composer`) - weighted random walks over
  scale degrees with per-mood rhythm patterns; melody, arpeggio, ambient and
  full-band modes.
- **Engine** (:mod:`moodsynth.engine`) - voice pool → vibrato → lowpass →
  chorus → distortion → convolution reverb, rendered with numpy and scipy
  and played through sounddevice.
- **Transport and sequencer** (:mod:`moodsynth.transport`,
  :mod:`moodsynth.sequencer`) - a pulse clock with cancellable, loopable
  parts and a play/pause/stop state machine.

Quick start::

	import asyncio
	import moodsynth

	async def main ():
		session = moodsynth.MoodSession(mode="full_band", looping=True)
		await session.initialize()
		session.analyze("calm and quiet, a little sleepy")
		session.compose()
		await session.play()
		await asyncio.sleep(30)
		session.dispose()

	asyncio.run(main())

Run ``python -m moodsynth --help`` for the command-line player.
"""

import moodsynth.analyzer
import moodsynth.composer
import moodsynth.engine
import moodsynth.mapper
import moodsynth.mood
import moodsynth.sequencer
import moodsynth.session
import moodsynth.transport


MoodAnalyzer = moodsynth.analyzer.MoodAnalyzer
Composer = moodsynth.composer.Composer
ComposerMode = moodsynth.composer.ComposerMode
GeneratedSequence = moodsynth.composer.GeneratedSequence
NoteEvent = moodsynth.composer.NoteEvent
SynthesisEngine = moodsynth.engine.SynthesisEngine
ParameterSet = moodsynth.mapper.ParameterSet
map_mood = moodsynth.mapper.map_mood
MoodCategory = moodsynth.mood.MoodCategory
MoodVector = moodsynth.mood.MoodVector
MoodSequencer = moodsynth.sequencer.MoodSequencer
SequencerState = moodsynth.sequencer.SequencerState
MoodSession = moodsynth.session.MoodSession
Transport = moodsynth.transport.Transport

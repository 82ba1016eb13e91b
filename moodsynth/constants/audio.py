"""Audio and clock constants.

The transport runs at **24 pulses per quarter note** (PPQN = 24), the MIDI
clock resolution.  Audio is rendered mono, in fixed-size blocks.
"""

SAMPLE_RATE = 44100
BLOCK_SIZE = 512

PULSES_PER_BEAT = 24
BEATS_PER_BAR = 4

DEFAULT_BPM = 120.0
MIN_BPM = 60.0
MAX_BPM = 180.0

# Voices beyond this many are stolen, oldest first.
DEFAULT_MAX_POLYPHONY = 32

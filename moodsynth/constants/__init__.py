"""Constants for moodsynth.

This package contains two sets of constants:

- ``moodsynth.constants.durations`` - Symbolic note values and their length in beats
- ``moodsynth.constants.audio`` - Sample rate, block size and clock resolution
"""

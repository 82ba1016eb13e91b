"""Exception types raised inside moodsynth.

Most failures in the audio pipeline are handled where they happen (logged,
corrected, or reported through a ``False`` return value).  These classes exist
so the handling code can catch the package's own failures precisely.
"""


class MoodSynthError (Exception):

	"""Base error for the moodsynth package."""


class AudioInitializationError (MoodSynthError):

	"""The audio output could not be opened or resumed.

	Raised by :mod:`moodsynth.audio_context`; the synthesis engine catches it,
	logs it, and retries lazily on the next note.
	"""

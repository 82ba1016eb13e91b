"""Instrument presets.

An instrument decides which kind of voice the engine builds (plain oscillator,
FM or AM pair), whether it can play chords, its own amplitude envelope, and an
:class:`EffectsPreset` that scales the mood-derived effect levels.
"""

import dataclasses
import enum
import types
import typing

import moodsynth.mapper


class Instrument (str, enum.Enum):

	"""Selectable instruments."""

	PIANO = "piano"
	SYNTH_PAD = "synth_pad"
	AMBIENT_PAD = "ambient_pad"
	STRINGS = "strings"
	ELECTRIC_PIANO = "electric_piano"
	BASS = "bass"


class VoiceKind (str, enum.Enum):

	"""How a voice produces its waveform."""

	SYNTH = "synth"
	FM = "fm"
	AM = "am"


@dataclasses.dataclass (frozen=True)
class EffectsPreset:

	"""
	Per-instrument scaling of the mood's effect levels.

	Reverb, chorus and distortion are multiplied; ``filter_offset`` is added
	to the cutoff in Hz.
	"""

	reverb_multiplier: float = 1.0
	chorus_multiplier: float = 1.0
	filter_offset: float = 0.0
	distortion_multiplier: float = 1.0


@dataclasses.dataclass (frozen=True)
class InstrumentConfig:

	"""
	Everything needed to build a voice pool for one instrument.

	Attributes:
		name: Display name.
		kind: Voice synthesis method.
		polyphonic: ``False`` for single-voice instruments that only ever sound one note.
		oscillator_shape: Carrier waveform.
		envelope: Amplitude envelope used until a mood envelope replaces it.
		harmonicity: Modulator/carrier frequency ratio (FM and AM only).
		modulation_index: FM depth, in multiples of the modulator frequency.
		modulation_shape: Modulator waveform (FM and AM only).
		effects: Effect-level scaling.
	"""

	name: str
	kind: VoiceKind
	polyphonic: bool
	oscillator_shape: moodsynth.mapper.OscillatorShape
	envelope: moodsynth.mapper.Envelope
	harmonicity: float = 1.0
	modulation_index: float = 0.0
	modulation_shape: moodsynth.mapper.OscillatorShape = "sine"
	effects: EffectsPreset = EffectsPreset()


Envelope = moodsynth.mapper.Envelope

INSTRUMENTS: typing.Mapping[Instrument, InstrumentConfig] = types.MappingProxyType({

	Instrument.PIANO: InstrumentConfig(
		name = "Piano",
		kind = VoiceKind.SYNTH,
		polyphonic = True,
		oscillator_shape = "triangle",
		envelope = Envelope(attack=0.005, decay=0.3, sustain=0.1, release=1.5),
		effects = EffectsPreset(reverb_multiplier=1.2, chorus_multiplier=0.3, filter_offset=500, distortion_multiplier=0.1)
	),

	Instrument.SYNTH_PAD: InstrumentConfig(
		name = "Synth Pad",
		kind = VoiceKind.FM,
		polyphonic = True,
		oscillator_shape = "sine",
		envelope = Envelope(attack=0.5, decay=0.3, sustain=0.8, release=2.0),
		harmonicity = 3.0,
		modulation_index = 10.0,
		modulation_shape = "square",
		effects = EffectsPreset(reverb_multiplier=1.5, chorus_multiplier=0.8, filter_offset=0, distortion_multiplier=0.2)
	),

	Instrument.AMBIENT_PAD: InstrumentConfig(
		name = "Ambient Pad",
		kind = VoiceKind.AM,
		polyphonic = True,
		oscillator_shape = "sine",
		envelope = Envelope(attack=1.5, decay=0.5, sustain=0.9, release=4.0),
		harmonicity = 2.0,
		modulation_shape = "sine",
		effects = EffectsPreset(reverb_multiplier=2.0, chorus_multiplier=1.0, filter_offset=-300, distortion_multiplier=0.0)
	),

	Instrument.STRINGS: InstrumentConfig(
		name = "Strings",
		kind = VoiceKind.FM,
		polyphonic = True,
		oscillator_shape = "sine",
		envelope = Envelope(attack=0.3, decay=0.1, sustain=0.7, release=1.5),
		harmonicity = 2.0,
		modulation_index = 2.0,
		modulation_shape = "triangle",
		effects = EffectsPreset(reverb_multiplier=1.3, chorus_multiplier=0.6, filter_offset=200, distortion_multiplier=0.05)
	),

	Instrument.ELECTRIC_PIANO: InstrumentConfig(
		name = "Electric Piano",
		kind = VoiceKind.FM,
		polyphonic = True,
		oscillator_shape = "sine",
		envelope = Envelope(attack=0.01, decay=0.5, sustain=0.2, release=1.2),
		harmonicity = 3.01,
		modulation_index = 14.0,
		modulation_shape = "sine",
		effects = EffectsPreset(reverb_multiplier=0.8, chorus_multiplier=0.5, filter_offset=300, distortion_multiplier=0.15)
	),

	Instrument.BASS: InstrumentConfig(
		name = "Bass",
		kind = VoiceKind.SYNTH,
		polyphonic = False,
		oscillator_shape = "sawtooth",
		envelope = Envelope(attack=0.02, decay=0.3, sustain=0.4, release=0.8),
		effects = EffectsPreset(reverb_multiplier=0.3, chorus_multiplier=0.2, filter_offset=-800, distortion_multiplier=0.3)
	),
})

DEFAULT_INSTRUMENT = Instrument.PIANO


_missing = set(Instrument) - set(INSTRUMENTS)
if _missing:
	raise RuntimeError(f"Instrument table is missing entries: {sorted(i.value for i in _missing)}")


def parse_instrument (value: typing.Union[str, Instrument]) -> Instrument:

	"""
	Accept an instrument or its string value; raise ``ValueError`` for anything else.
	"""

	if isinstance(value, Instrument):
		return value

	try:
		return Instrument(value)
	except ValueError:
		raise ValueError(f"Unknown instrument {value!r}. Valid: {[i.value for i in Instrument]}") from None

"""Core types and constants for notecraft."""

from .note import Note, midi_to_name, clamp_pitch, sort_notes
from .track import Track, TimeSignature
from .timing import note_value_to_ticks, round_half_up, snap, measure_of, format_time
from .options import (
    ConversionOptions,
    RhythmRule,
    RhythmFamily,
    TempoChangeMode,
    InversionMode,
    SpellingPreference,
    OutputStrategy,
    MelodicInversionOptions,
    ModalConversionOptions,
    ExportRangeOptions,
    VoiceSeparationOptions,
)
from .constants import (
    NOTE_NAMES,
    DEFAULT_PPQ,
    DEFAULT_TEMPO,
    MIDDLE_C,
)

__all__ = [
    "Note",
    "Track",
    "TimeSignature",
    "midi_to_name",
    "clamp_pitch",
    "sort_notes",
    "note_value_to_ticks",
    "round_half_up",
    "snap",
    "measure_of",
    "format_time",
    "ConversionOptions",
    "RhythmRule",
    "RhythmFamily",
    "TempoChangeMode",
    "InversionMode",
    "SpellingPreference",
    "OutputStrategy",
    "MelodicInversionOptions",
    "ModalConversionOptions",
    "ExportRangeOptions",
    "VoiceSeparationOptions",
    "NOTE_NAMES",
    "DEFAULT_PPQ",
    "DEFAULT_TEMPO",
    "MIDDLE_C",
]

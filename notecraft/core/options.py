"""Conversion options - the single configuration aggregate of the engine.

Every pipeline call receives one ``ConversionOptions`` value. Nested groups
are frozen dataclasses so a caller can derive variants with
``dataclasses.replace`` without touching the original.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .constants import DEFAULT_PPQ, DEFAULT_TEMPO, NOTE_VALUE_MULTIPLIERS
from .timing import note_value_to_ticks
from .track import TimeSignature


class RhythmFamily(Enum):
    """Subdivision families of a rhythmic grid."""
    SIMPLE = "Simple"
    TRIPLE = "Triple"
    QUINTUPLET = "Quintuplet"

    @property
    def suffix(self) -> str:
        return {"Simple": "", "Triple": "t", "Quintuplet": "q"}[self.value]


class TempoChangeMode(Enum):
    """How a tempo change affects note positions."""
    SPEED = "speed"  # Keep ticks, play faster/slower
    TIME = "time"  # Rescale ticks so real time is preserved


class InversionMode(Enum):
    """Retrograde (time inversion) scope."""
    OFF = "off"
    GLOBAL = "global"
    ONE_BEAT = "1beat"
    TWO_BEATS = "2beats"
    MEASURE = "measure"
    TWO_MEASURES = "2measures"
    FOUR_MEASURES = "4measures"
    EIGHT_MEASURES = "8measures"


class SpellingPreference(Enum):
    """Enharmonic spelling preference for notation."""
    AUTO = "auto"
    SHARP = "sharp"
    FLAT = "flat"


class OutputStrategy(Enum):
    """How transformed notes are laid out in exported files."""
    COMBINE = "combine"
    SEPARATE_VOICES = "separate_voices"


@dataclass(frozen=True)
class RhythmRule:
    """A rhythmic grid candidate.

    Attributes:
        enabled: Whether the grid takes part in quantization
        family: Subdivision family
        min_note_value: Smallest addressable value, e.g. "1/16" or "1/8t".
            A bare "1/N" under a Triple/Quintuplet family gets that family's
            suffix.
    """

    enabled: bool = False
    family: RhythmFamily = RhythmFamily.SIMPLE
    min_note_value: str = "1/16"

    @property
    def note_value(self) -> str:
        """Note value string including the family suffix."""
        value = self.min_note_value
        if value and value[-1] in ("t", "q"):
            return value
        candidate = f"{value}{self.family.suffix}"
        if candidate in NOTE_VALUE_MULTIPLIERS:
            return candidate
        return value

    def quantum(self, ppq: int) -> int:
        """Tick quantum of this grid, 0 when disabled."""
        if not self.enabled:
            return 0
        return note_value_to_ticks(self.note_value, ppq)


@dataclass(frozen=True)
class MelodicInversionOptions:
    """Pitch inversion around the first note of a measure range."""
    enabled: bool = False
    start_measure: int = 1  # 1-based
    end_measure: int = 4  # 1-based, inclusive


@dataclass(frozen=True)
class ExportRangeOptions:
    """Measure range kept by the final crop stage."""
    enabled: bool = False
    start_measure: int = 1
    end_measure: int = 8


@dataclass(frozen=True)
class ModalConversionOptions:
    """Remap scale degrees relative to ``root``.

    ``mappings`` maps a source interval (0-11 above the root) to a target
    interval; intervals without an entry are left untouched.
    """
    enabled: bool = False
    root: int = 0
    mode_name: str = "Major"
    mappings: Mapping[int, int] = field(default_factory=dict, hash=False)

    def __post_init__(self):
        object.__setattr__(self, "mappings", MappingProxyType(dict(self.mappings)))


@dataclass(frozen=True)
class VoiceSeparationOptions:
    """Tuning of the structural voice separator.

    Attributes:
        strict_monophony: Never let two notes of one voice overlap; notes
            that fit nowhere are dropped
        max_voices: 0 = derive from density, >0 = upper bound on voices
    """
    strict_monophony: bool = False
    max_voices: int = 0


@dataclass(frozen=True)
class ConversionOptions:
    """Configuration for one pipeline run.

    Attributes:
        tempo: Target tempo in BPM
        original_tempo: Tempo the source was decoded with
        tempo_change_mode: Whether a tempo change rescales ticks
        time_signature: Meter used for measures and beats
        output_ppq: Tick resolution of the output
        transposition: Semitones added to every pitch
        note_time_scale: Global time stretch factor
        remove_short_notes_threshold: Drop notes shorter than this
            (source ticks, 0 = keep all)
        detect_ornaments: Tag ornament chains before quantizing
        shift_to_measure: Move the first note to the start of its measure
        prune_overlaps: Truncate overlapping notes of the same pitch
        prune_threshold: Tail length tolerated before truncating (note value)
        primary_rhythm: Main quantization grid
        secondary_rhythm: Competing grid
        quantize_duration_min: Minimum duration after quantizing (note value)
        inversion_mode: Retrograde scope
        melodic_inversion: Pitch inversion range
        modal_conversion: Scale degree remap
        export_range: Final measure crop
        voice_separation: Voice separator tuning
        key_spelling: Enharmonic spelling preference
        output_strategy: Export layout
    """

    tempo: float = DEFAULT_TEMPO
    original_tempo: float = DEFAULT_TEMPO
    tempo_change_mode: TempoChangeMode = TempoChangeMode.SPEED
    time_signature: TimeSignature = field(default_factory=TimeSignature)
    output_ppq: int = DEFAULT_PPQ
    transposition: int = 0
    note_time_scale: float = 1.0
    remove_short_notes_threshold: int = 0
    detect_ornaments: bool = False
    shift_to_measure: bool = False
    prune_overlaps: bool = False
    prune_threshold: str = "1/64"
    primary_rhythm: RhythmRule = field(default_factory=RhythmRule)
    secondary_rhythm: RhythmRule = field(
        default_factory=lambda: RhythmRule(
            enabled=False, family=RhythmFamily.TRIPLE, min_note_value="1/8t"
        )
    )
    quantize_duration_min: str = "off"
    inversion_mode: InversionMode = InversionMode.OFF
    melodic_inversion: MelodicInversionOptions = field(default_factory=MelodicInversionOptions)
    modal_conversion: ModalConversionOptions = field(default_factory=ModalConversionOptions)
    export_range: ExportRangeOptions = field(default_factory=ExportRangeOptions)
    voice_separation: VoiceSeparationOptions = field(default_factory=VoiceSeparationOptions)
    key_spelling: SpellingPreference = SpellingPreference.AUTO
    output_strategy: OutputStrategy = OutputStrategy.COMBINE

    @property
    def effective_time_scale(self) -> float:
        """Time scale including the tempo-change correction."""
        scale = self.note_time_scale
        if (
            self.tempo_change_mode == TempoChangeMode.TIME
            and self.original_tempo > 0
            and self.tempo > 0
        ):
            scale *= self.original_tempo / self.tempo
        return scale

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConversionOptions":
        """
        Build options from a plain dictionary (e.g. parsed JSON).

        Keys use the attribute names; enums are given by value and nested
        groups as dictionaries.

        Raises:
            ValueError: For unknown keys or enum values
        """
        return _build(cls, data)


_ENUM_FIELDS = {
    "tempo_change_mode": TempoChangeMode,
    "inversion_mode": InversionMode,
    "key_spelling": SpellingPreference,
    "output_strategy": OutputStrategy,
    "family": RhythmFamily,
}

_NESTED_FIELDS = {
    "time_signature": TimeSignature,
    "primary_rhythm": RhythmRule,
    "secondary_rhythm": RhythmRule,
    "melodic_inversion": MelodicInversionOptions,
    "modal_conversion": ModalConversionOptions,
    "export_range": ExportRangeOptions,
    "voice_separation": VoiceSeparationOptions,
}


def _build(cls, data: Optional[Dict[str, Any]]):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping for {cls.__name__}, got {type(data).__name__}")

    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown {cls.__name__} option(s): {', '.join(sorted(unknown))}")

    kwargs = {}
    for key, value in data.items():
        if key in _ENUM_FIELDS:
            try:
                value = _ENUM_FIELDS[key](value)
            except ValueError as e:
                raise ValueError(f"Invalid value for {key}: {value!r}") from e
        elif key in _NESTED_FIELDS:
            if key == "time_signature" and isinstance(value, (list, tuple)):
                value = TimeSignature.from_tuple(value)
            else:
                value = _build(_NESTED_FIELDS[key], value)
        elif key == "mappings":
            value = {int(k) % 12: int(v) % 12 for k, v in dict(value).items()}
        kwargs[key] = value
    return cls(**kwargs)

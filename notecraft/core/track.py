"""Track metadata - the note list plus the tempo/meter it was decoded with."""

from dataclasses import dataclass, field, replace
from typing import Iterable, Tuple

from .note import Note
from .constants import DEFAULT_PPQ, DEFAULT_TEMPO


@dataclass(frozen=True)
class TimeSignature:
    """Meter as numerator/denominator (e.g. 6/8)."""

    numerator: int = 4
    denominator: int = 4

    @classmethod
    def from_tuple(cls, value: Tuple[int, int]) -> "TimeSignature":
        return cls(numerator=int(value[0]), denominator=int(value[1]))

    def ticks_per_beat(self, ppq: int) -> float:
        """Ticks per beat, where the beat unit is the denominator."""
        if self.denominator <= 0:
            return float(ppq)
        return ppq * (4 / self.denominator)

    def ticks_per_measure(self, ppq: int) -> float:
        """Ticks per measure."""
        return self.ticks_per_beat(ppq) * self.numerator

    def __str__(self) -> str:
        return f"{self.numerator}/{self.denominator}"


@dataclass(frozen=True)
class Track:
    """A decoded track: notes plus timing metadata."""

    notes: Tuple[Note, ...] = ()
    ppq: int = DEFAULT_PPQ
    tempo_bpm: float = DEFAULT_TEMPO
    time_signature: TimeSignature = field(default_factory=TimeSignature)
    name: str = ""

    def __post_init__(self):
        object.__setattr__(self, "notes", tuple(self.notes))

    @property
    def ticks_per_beat(self) -> float:
        return self.time_signature.ticks_per_beat(self.ppq)

    @property
    def ticks_per_measure(self) -> float:
        return self.time_signature.ticks_per_measure(self.ppq)

    @property
    def end_ticks(self) -> int:
        """Last note offset in ticks (0 for an empty track)."""
        if not self.notes:
            return 0
        return max(n.offset_ticks for n in self.notes)

    @property
    def duration_seconds(self) -> float:
        """Length of the track at its tempo."""
        if self.ppq <= 0 or self.tempo_bpm <= 0:
            return 0.0
        return self.end_ticks * (60.0 / self.tempo_bpm) / self.ppq

    def with_notes(self, notes: Iterable[Note]) -> "Track":
        """Return a copy of this track holding ``notes``."""
        return replace(self, notes=tuple(notes))

"""Note data class - the fundamental unit every stage consumes and returns."""

from dataclasses import dataclass, replace
from typing import Optional

from .constants import NOTE_NAMES, MIDI_MIN, MIDI_MAX


@dataclass(frozen=True)
class Note:
    """Represents a musical note on a tick timeline.

    Records are immutable: stages derive new notes with ``Note.with_``
    (a thin wrapper over ``dataclasses.replace``) instead of tagging shared
    objects in place.
    """

    pitch: int  # MIDI pitch (0-127)
    onset_ticks: int  # Start position in ticks
    duration_ticks: int  # Length in ticks
    velocity: float = 0.8  # Normalized velocity (0-1)
    voice_index: Optional[int] = None
    is_ornament: bool = False
    principal_pitch: Optional[int] = None
    principal_onset_ticks: Optional[int] = None

    @property
    def offset_ticks(self) -> int:
        """End position in ticks."""
        return self.onset_ticks + self.duration_ticks

    @property
    def pitch_class(self) -> int:
        """Get pitch class (0-11, where 0=C)."""
        return self.pitch % 12

    @property
    def pitch_name(self) -> str:
        """Get note name (e.g., 'C4', 'Eb3')."""
        return midi_to_name(self.pitch)

    def with_(self, **changes) -> "Note":
        """Return a copy of this note with the given fields replaced."""
        return replace(self, **changes)


def midi_to_name(pitch: int) -> str:
    """Convert MIDI pitch to a note name with octave (60 -> 'C4')."""
    octave = (pitch // 12) - 1
    return f"{NOTE_NAMES[pitch % 12]}{octave}"


def clamp_pitch(pitch: int) -> int:
    """Clamp a pitch into the valid MIDI range."""
    return max(MIDI_MIN, min(MIDI_MAX, pitch))


def sort_notes(notes) -> list:
    """Sort notes by onset, keeping the incoming order for equal onsets."""
    return sorted(notes, key=lambda n: n.onset_ticks)

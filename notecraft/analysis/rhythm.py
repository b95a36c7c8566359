"""Rhythm analysis - Note value breakdown and grid alignment.

Each duration is matched to the nearest standard note value (straight,
dotted, triplet or quintuplet). The most common value picks the grid the
onsets are then checked against.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from ..core import Note, TimeSignature, DEFAULT_PPQ


# (name, length in quarter notes), longest first
STANDARD_DURATIONS: Tuple[Tuple[str, float], ...] = (
    ("Whole Note", 4.0),
    ("Dotted Half", 3.0),
    ("Half Note", 2.0),
    ("Dotted Quarter", 1.5),
    ("Half Triplet", 4 / 3),
    ("Quarter Note", 1.0),
    ("Quarter Quintuplet", 0.8),
    ("Dotted Eighth", 0.75),
    ("Quarter Triplet", 2 / 3),
    ("Eighth Note", 0.5),
    ("Eighth Quintuplet", 0.4),
    ("Dotted 16th", 0.375),
    ("Eighth Triplet", 1 / 3),
    ("16th Note", 0.25),
    ("16th Quintuplet", 0.2),
    ("16th Triplet", 1 / 6),
    ("32nd Note", 0.125),
)


@dataclass
class NoteValueStat:
    """How often one standard note value occurs."""
    name: str
    count: int
    percentage: float
    multiplier: float  # Length in quarter notes


@dataclass
class RhythmAnalysis:
    """Container for rhythm analysis results."""
    note_values: List[NoteValueStat] = field(default_factory=list)
    grid_alignment: float = 0.0  # 1.0 = every onset on the grid
    duration_consistency: float = 0.0  # 1.0 = every duration a standard value
    average_offset_ticks: float = 0.0
    grid_type: str = "None"
    grid_ticks: float = 0.0

    @property
    def top_note_value(self) -> Optional[NoteValueStat]:
        return self.note_values[0] if self.note_values else None


def nearest_note_value(duration_ticks: float, ppq: int) -> Tuple[str, float, float]:
    """
    Match a duration to the closest standard note value.

    Returns:
        Tuple of (name, multiplier, distance in quarter notes); earlier
        (longer) values win ties
    """
    ratio = duration_ticks / ppq
    best_name, best_value = STANDARD_DURATIONS[0]
    best_distance = abs(ratio - best_value)
    for name, value in STANDARD_DURATIONS[1:]:
        distance = abs(ratio - value)
        if distance < best_distance:
            best_name, best_value, best_distance = name, value, distance
    return best_name, best_value, best_distance


def detect_grid(top: Optional[NoteValueStat], ppq: int, time_signature: TimeSignature) -> Tuple[float, str]:
    """Pick the onset grid from the meter and the dominant note value."""
    if time_signature.denominator == 8:
        grid_ticks, label = ppq / 2, "1/8 Compound"
    else:
        grid_ticks, label = ppq / 4, "1/16 Standard"

    if top is not None:
        if "Triplet" in top.name:
            if top.multiplier < 0.2:
                grid_ticks, label = ppq / 6, "1/16 Triplet"
            else:
                grid_ticks, label = ppq / 3, "1/8 Triplet"
        elif "Quintuplet" in top.name:
            grid_ticks, label = ppq / 5, "1/16 Quintuplet"
    return grid_ticks, label


def analyze_rhythm(
    notes: List[Note],
    ppq: int = DEFAULT_PPQ,
    time_signature: Optional[TimeSignature] = None,
) -> RhythmAnalysis:
    """
    Analyze note values and grid alignment.

    Args:
        notes: Notes to analyze
        ppq: Ticks per quarter note
        time_signature: Meter (x/8 meters use a compound eighth grid)

    Returns:
        RhythmAnalysis (grid type "None" for an empty list)
    """
    if not notes or ppq <= 0:
        return RhythmAnalysis()
    time_signature = time_signature or TimeSignature()

    counts = {}
    consistency = []
    for note in notes:
        name, value, distance = nearest_note_value(note.duration_ticks, ppq)
        stat = counts.setdefault(name, NoteValueStat(name, 0, 0.0, value))
        stat.count += 1
        consistency.append(1 - min(distance / value, 1.0))

    stats = sorted(counts.values(), key=lambda s: -s.count)
    for stat in stats:
        stat.percentage = stat.count / len(notes) * 100

    grid_ticks, label = detect_grid(stats[0], ppq, time_signature)

    onsets = np.array([n.onset_ticks for n in notes], dtype=float)
    remainder = np.mod(onsets, grid_ticks)
    offsets = np.minimum(remainder, grid_ticks - remainder)
    alignment = 1 - offsets / (grid_ticks / 2)

    return RhythmAnalysis(
        note_values=stats,
        grid_alignment=float(alignment.mean()),
        duration_consistency=float(np.mean(consistency)),
        average_offset_ticks=float(offsets.mean()),
        grid_type=label,
        grid_ticks=grid_ticks,
    )

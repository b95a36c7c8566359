"""Analysis layer - Track-level statistics and reporting.

- Rhythm analysis (note values, grid alignment)
- Track analysis bundle and text report
"""

from .rhythm import (
    STANDARD_DURATIONS,
    NoteValueStat,
    RhythmAnalysis,
    analyze_rhythm,
    detect_grid,
    nearest_note_value,
)
from .report import TrackAnalysis, TrackAnalyzer, generate_report, voice_leading_intervals

__all__ = [
    "STANDARD_DURATIONS",
    "NoteValueStat",
    "RhythmAnalysis",
    "analyze_rhythm",
    "detect_grid",
    "nearest_note_value",
    "TrackAnalysis",
    "TrackAnalyzer",
    "generate_report",
    "voice_leading_intervals",
]

"""Shadow grid quantization - Snap notes to one of two competing grids.

Each note is measured against a primary grid and, optionally, a secondary
grid (e.g. straight sixteenths vs. eighth triplets). The lowest-error grid
wins; a confidence class records how clear that decision was.
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Tuple, Union

from ..core import Note, RhythmRule, RhythmFamily
from ..core.timing import snap
from .ornaments import follow_principals


class GridConfidence(IntEnum):
    """How clearly a note belongs to its chosen grid."""
    AMBIGUOUS = 1
    WEAK_PRIMARY = 2
    CERTAIN = 3


@dataclass(frozen=True)
class GridCandidate:
    """Nearest grid point of one grid."""
    ticks: int
    error: int
    quantum: int
    family: RhythmFamily
    note_value: str
    is_primary: bool


@dataclass(frozen=True)
class ShadowAnalysis:
    """Per-note result of the certainty pass."""
    note: Note
    best: Optional[GridCandidate]
    confidence: GridConfidence
    alternatives: Tuple[GridCandidate, ...] = ()


@dataclass
class QuantizeStats:
    """Statistics from a quantization run."""

    total_notes: int = 0
    certain: int = 0
    weak_primary: int = 0
    ambiguous: int = 0
    secondary_chosen: int = 0
    notes_shifted: int = 0
    total_shift_ticks: int = 0

    @property
    def average_shift_ticks(self) -> float:
        if self.notes_shifted == 0:
            return 0.0
        return self.total_shift_ticks / self.notes_shifted


class ShadowQuantizer:
    """Quantize note timings against a primary and a shadow grid."""

    # Absolute slack (ticks) always accepted as "on grid"
    MIN_TOLERANCE_TICKS = 5
    # Fraction of the finer quantum accepted as "on grid"
    RELATIVE_TOLERANCE = 0.15
    # Best error must be at most this share of the runner-up to be clear
    CLARITY_RATIO = 0.5

    def __init__(
        self,
        ppq: int,
        primary: RhythmRule,
        secondary: Optional[RhythmRule] = None,
    ):
        """
        Initialize ShadowQuantizer.

        Args:
            ppq: Ticks per quarter note
            primary: Main grid; when disabled, quantization is a no-op
            secondary: Optional competing grid
        """
        self.ppq = ppq
        self.primary = primary
        self.secondary = secondary or RhythmRule(enabled=False)

    @property
    def primary_quantum(self) -> int:
        return self.primary.quantum(self.ppq)

    @property
    def secondary_quantum(self) -> int:
        return self.secondary.quantum(self.ppq)

    @property
    def tolerance(self) -> float:
        """Error (ticks) under which a note counts as certain."""
        finest = self.primary_quantum
        if self.secondary_quantum > 0:
            finest = min(finest, self.secondary_quantum) if finest > 0 else self.secondary_quantum
        return max(finest * self.RELATIVE_TOLERANCE, self.MIN_TOLERANCE_TICKS)

    def analyze(self, notes: List[Note]) -> List[ShadowAnalysis]:
        """
        Certainty pass: measure each note against the active grids.

        Args:
            notes: Notes to analyze

        Returns:
            One ShadowAnalysis per note, in input order
        """
        return [self._analyze_note(note) for note in notes]

    def _analyze_note(self, note: Note) -> ShadowAnalysis:
        candidates = []
        if self.primary_quantum > 0:
            candidates.append(self._closest(note.onset_ticks, self.primary, self.primary_quantum, True))
        if self.secondary_quantum > 0:
            candidates.append(self._closest(note.onset_ticks, self.secondary, self.secondary_quantum, False))

        if not candidates:
            return ShadowAnalysis(note=note, best=None, confidence=GridConfidence.CERTAIN)

        # Stable sort keeps the primary grid first on equal error
        candidates.sort(key=lambda c: c.error)
        best = candidates[0]
        runner_up = candidates[1] if len(candidates) > 1 else None

        if best.error <= self.tolerance:
            confidence = GridConfidence.CERTAIN
        elif runner_up is None:
            confidence = GridConfidence.WEAK_PRIMARY
        elif best.error <= self.CLARITY_RATIO * runner_up.error:
            confidence = GridConfidence.WEAK_PRIMARY
        else:
            confidence = GridConfidence.AMBIGUOUS

        # Primary grid bias
        if confidence == GridConfidence.AMBIGUOUS and best.is_primary:
            confidence = GridConfidence.WEAK_PRIMARY

        return ShadowAnalysis(
            note=note,
            best=best,
            confidence=confidence,
            alternatives=tuple(candidates[1:]),
        )

    @staticmethod
    def _closest(ticks: int, rule: RhythmRule, quantum: int, is_primary: bool) -> GridCandidate:
        snapped = snap(ticks, quantum)
        return GridCandidate(
            ticks=snapped,
            error=abs(ticks - snapped),
            quantum=quantum,
            family=rule.family,
            note_value=rule.note_value,
            is_primary=is_primary,
        )

    def resolve(self, analyses: List[ShadowAnalysis]) -> List[Note]:
        """
        Resolution pass: move each note onto its lowest-error candidate.

        The confidence class is not consulted here; it is reported alongside
        the result only.
        """
        resolved: List[Tuple[Note, Note]] = []
        for analysis in analyses:
            note, best = analysis.note, analysis.best
            if best is None:
                resolved.append((note, note))
                continue

            duration = snap(note.duration_ticks, best.quantum)
            if duration == 0:
                duration = best.quantum
            resolved.append((note, note.with_(onset_ticks=best.ticks, duration_ticks=duration)))
        return follow_principals(resolved)

    def quantize(
        self,
        notes: List[Note],
        return_stats: bool = False,
    ) -> Union[List[Note], Tuple[List[Note], QuantizeStats]]:
        """
        Quantize note onsets and durations.

        Args:
            notes: Notes to quantize
            return_stats: Whether to return quantization statistics

        Returns:
            Quantized notes, optionally with statistics
        """
        stats = QuantizeStats(total_notes=len(notes))

        if not self.primary.enabled or self.primary_quantum <= 0:
            if return_stats:
                return list(notes), stats
            return list(notes)

        analyses = self.analyze(notes)
        quantized = self.resolve(analyses)

        if return_stats:
            for analysis, result in zip(analyses, quantized):
                if analysis.confidence == GridConfidence.CERTAIN:
                    stats.certain += 1
                elif analysis.confidence == GridConfidence.WEAK_PRIMARY:
                    stats.weak_primary += 1
                else:
                    stats.ambiguous += 1
                if analysis.best is not None and not analysis.best.is_primary:
                    stats.secondary_chosen += 1
                shift = abs(result.onset_ticks - analysis.note.onset_ticks)
                if shift > 0:
                    stats.notes_shifted += 1
                    stats.total_shift_ticks += shift
            return quantized, stats
        return quantized


def quantize_notes(
    notes: List[Note],
    ppq: int,
    primary: RhythmRule,
    secondary: Optional[RhythmRule] = None,
) -> List[Note]:
    """Convenience wrapper around ``ShadowQuantizer.quantize``."""
    return ShadowQuantizer(ppq, primary, secondary).quantize(notes)

"""Note cleanup - Filter short notes, prune overlaps and align to the bar.

This module provides the pre-quantization cleanup steps:
- Short note filtering (drop notes below a tick threshold)
- Measure alignment (shift so the first note starts a measure)
- Overlap pruning (truncate same-pitch notes that run into each other)
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from ..core import Note, sort_notes
from .ornaments import follow_principals


@dataclass
class CleanupConfig:
    """Configuration for note cleanup operations.

    Attributes:
        min_duration_ticks: Drop notes shorter than this (default: 0 = keep all)
        shift_to_measure: Shift so the first note lands on a barline (default: False)
        prune_overlaps: Truncate overlapping same-pitch notes (default: False)
        prune_threshold_ticks: Tail length a contained note may leave behind
            before the outer note is truncated (default: 0)
        ticks_per_measure: Measure length used by ``shift_to_measure``
    """

    min_duration_ticks: int = 0
    shift_to_measure: bool = False
    prune_overlaps: bool = False
    prune_threshold_ticks: int = 0
    ticks_per_measure: float = 1920.0


@dataclass
class CleanupStats:
    """Statistics from cleanup operations."""

    original_count: int = 0
    final_count: int = 0
    removed_short_notes: int = 0
    removed_overlaps: int = 0
    truncated_overlaps: int = 0
    shift_ticks: int = 0

    @property
    def total_removed(self) -> int:
        """Total notes removed."""
        return self.original_count - self.final_count


class NoteCleanup:
    """Clean up notes before quantization."""

    def __init__(self, config: Optional[CleanupConfig] = None):
        """Initialize NoteCleanup.

        Args:
            config: Optional CleanupConfig (defaults keep every note)
        """
        self.config = config or CleanupConfig()

    def cleanup(
        self,
        notes: List[Note],
        return_stats: bool = False,
    ) -> Union[List[Note], Tuple[List[Note], CleanupStats]]:
        """Apply the enabled cleanup operations.

        Args:
            notes: Notes to clean
            return_stats: Whether to return cleanup statistics

        Returns:
            Cleaned notes, optionally with statistics
        """
        stats = CleanupStats(original_count=len(notes))
        notes = list(notes)

        if self.config.min_duration_ticks > 0:
            before = len(notes)
            notes = self.remove_short_notes(notes)
            stats.removed_short_notes = before - len(notes)

        if self.config.shift_to_measure:
            notes, stats.shift_ticks = self._shift_to_measure(notes)

        if self.config.prune_overlaps:
            before = len(notes)
            pruned = self.prune_overlaps(notes)
            stats.removed_overlaps = before - len(pruned)
            longest = self._longest_by_start(notes)
            stats.truncated_overlaps = sum(
                1 for n in pruned if n.duration_ticks < longest[(n.pitch, n.onset_ticks)]
            )
            notes = pruned

        stats.final_count = len(notes)

        if return_stats:
            return notes, stats
        return notes

    def remove_short_notes(self, notes: List[Note], min_duration_ticks: Optional[int] = None) -> List[Note]:
        """Remove notes shorter than the threshold."""
        threshold = self.config.min_duration_ticks if min_duration_ticks is None else min_duration_ticks
        if threshold <= 0:
            return list(notes)
        return [n for n in notes if n.duration_ticks >= threshold]

    def shift_to_measure(self, notes: List[Note]) -> List[Note]:
        """Shift all notes so the first onset falls on a measure boundary."""
        shifted, _ = self._shift_to_measure(notes)
        return shifted

    def _shift_to_measure(self, notes: List[Note]) -> Tuple[List[Note], int]:
        if not notes or self.config.ticks_per_measure <= 0:
            return list(notes), 0
        ordered = sort_notes(notes)
        first = ordered[0].onset_ticks
        shift = -int(first % self.config.ticks_per_measure)
        if shift == 0:
            return ordered, 0
        shifted = follow_principals((n, n.with_(onset_ticks=n.onset_ticks + shift)) for n in ordered)
        return shifted, shift

    def prune_overlaps(self, notes: List[Note], threshold_ticks: Optional[int] = None) -> List[Note]:
        """Resolve overlapping notes of the same pitch.

        For each pitch, notes are visited in onset order (longest first on
        equal onsets). Duplicates starting together are dropped. A later note
        nested inside the current one is dropped when the current note's tail
        beyond it is within ``threshold_ticks``; otherwise the current note is
        truncated at the later note's onset.

        Args:
            notes: List of notes
            threshold_ticks: Tail tolerance (default: from config)

        Returns:
            Notes without same-pitch overlaps, grouped by pitch
        """
        if not notes:
            return []

        threshold = self.config.prune_threshold_ticks if threshold_ticks is None else threshold_ticks
        ordered = sorted(notes, key=lambda n: (n.pitch, n.onset_ticks, -n.duration_ticks))

        pruned = []
        i = 0
        while i < len(ordered):
            current = ordered[i]
            j = i + 1

            while j < len(ordered) and ordered[j].pitch == current.pitch:
                following = ordered[j]
                if current.offset_ticks <= following.onset_ticks:
                    break
                if following.onset_ticks == current.onset_ticks:
                    j += 1
                    continue
                if current.offset_ticks > following.offset_ticks:
                    if current.offset_ticks - following.offset_ticks <= threshold:
                        j += 1
                        continue
                current = current.with_(
                    duration_ticks=max(0, following.onset_ticks - current.onset_ticks)
                )
                break

            if current.duration_ticks > 0:
                pruned.append((ordered[i], current))
            i = j

        return follow_principals(pruned)

    @staticmethod
    def _longest_by_start(notes: List[Note]) -> Dict[Tuple[int, int], int]:
        """Longest duration per (pitch, onset)."""
        longest: Dict[Tuple[int, int], int] = {}
        for n in notes:
            key = (n.pitch, n.onset_ticks)
            longest[key] = max(longest.get(key, 0), n.duration_ticks)
        return longest

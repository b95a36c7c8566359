"""Ornament detection - Tag trills, turns, mordents and grace notes.

A run of very short, tightly connected notes ("chain") that resolves into a
longer note ("principal") is classified by its melodic contour. Matching
notes are tagged so later stages (chord detection in particular) can treat
the decoration as part of the principal.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from ..core import Note, sort_notes


class OrnamentType(Enum):
    """Recognized ornament shapes."""
    TRILL = "trill"
    TURN = "turn"
    MORDENT = "mordent"
    GRACE_NOTE = "grace_note"


@dataclass(frozen=True)
class OrnamentGroup:
    """A detected ornament: its decorating chain and the principal note."""
    type: OrnamentType
    chain: Tuple[Note, ...]
    principal: Note


class OrnamentDetector:
    """Detect decorative note chains and link them to a principal note."""

    # Neighbor notes must lie within this many semitones of the principal
    MAX_NEIGHBOR_INTERVAL = 2

    def __init__(self, ppq: int):
        """
        Initialize OrnamentDetector.

        Args:
            ppq: Ticks per quarter note
        """
        self.ppq = ppq

    @property
    def max_chain_duration(self) -> float:
        """Chain notes must be shorter than an eighth-note triplet."""
        return self.ppq / 3

    @property
    def max_gap(self) -> float:
        """Largest gap allowed between chain members and the principal."""
        return self.ppq / 16

    def detect(self, notes: List[Note]) -> List[Note]:
        """
        Tag ornament notes.

        Args:
            notes: Notes in any order

        Returns:
            All notes (same count), re-sorted by onset, with ornament chains
            and their principals tagged
        """
        tagged, _ = self.detect_with_details(notes)
        return tagged

    def detect_with_details(self, notes: List[Note]) -> Tuple[List[Note], List[OrnamentGroup]]:
        """
        Tag ornament notes and report the groups found.

        Returns:
            Tuple of (tagged notes sorted by onset, ornament groups)
        """
        if self.ppq <= 0:
            return sort_notes(notes), []

        ordered = sort_notes(notes)
        output: List[Note] = []
        groups: List[OrnamentGroup] = []

        i = 0
        while i < len(ordered):
            chain, j = self._collect_chain(ordered, i)

            if chain and j < len(ordered):
                principal = ordered[j]
                last = chain[-1]
                if principal.onset_ticks - last.offset_ticks <= self.max_gap:
                    ornament = self.classify(chain, principal)
                    if ornament is not None:
                        tagged_chain = tuple(
                            n.with_(
                                is_ornament=True,
                                principal_pitch=principal.pitch,
                                principal_onset_ticks=principal.onset_ticks,
                            )
                            for n in chain
                        )
                        tagged_principal = principal.with_(is_ornament=True)
                        output.extend(tagged_chain)
                        output.append(tagged_principal)
                        groups.append(OrnamentGroup(ornament, tagged_chain, tagged_principal))
                        i = j + 1
                        continue

            output.append(ordered[i])
            i += 1

        return sort_notes(output), groups

    def _collect_chain(self, ordered: List[Note], start: int) -> Tuple[List[Note], int]:
        """Collect short, connected notes starting at ``start``."""
        chain: List[Note] = []
        j = start
        while j < len(ordered):
            note = ordered[j]
            if note.duration_ticks >= self.max_chain_duration:
                break
            if chain and note.onset_ticks - chain[-1].offset_ticks > self.max_gap:
                break
            chain.append(note)
            j += 1
        return chain, j

    def classify(self, chain: List[Note], principal: Note) -> Optional[OrnamentType]:
        """
        Classify a chain against its principal.

        Checked in priority order: trill, turn, mordent, grace note.
        """
        p = principal.pitch
        near = self.MAX_NEIGHBOR_INTERVAL

        # Trill: neighbor, principal, neighbor, ...
        if len(chain) >= 3:
            neighbor = chain[0].pitch
            if neighbor != p and abs(neighbor - p) <= near:
                if all(n.pitch == (neighbor if k % 2 == 0 else p) for k, n in enumerate(chain)):
                    return OrnamentType.TRILL

        # Turn: upper/principal/lower or lower/principal/upper
        if len(chain) == 3:
            n1, n2, n3 = (n.pitch for n in chain)
            standard = n1 > p and n2 == p and n3 < p
            inverted = n1 < p and n2 == p and n3 > p
            if (standard or inverted) and abs(n1 - p) <= near and abs(n3 - p) <= near:
                return OrnamentType.TURN

        # Mordent: principal, neighbor
        if len(chain) == 2:
            n1, n2 = (n.pitch for n in chain)
            if n1 == p and n2 != p and abs(n2 - p) <= near:
                return OrnamentType.MORDENT

        # Grace note: one short neighbor
        if len(chain) == 1:
            grace = chain[0]
            if abs(grace.pitch - p) <= near and grace.duration_ticks <= principal.duration_ticks / 4:
                return OrnamentType.GRACE_NOTE

        return None


def count_ornaments(notes: List[Note]) -> int:
    """Number of notes flagged as decorations (principals excluded)."""
    return sum(1 for n in notes if n.is_ornament and n.principal_onset_ticks is not None)


def follow_principals(pairs: Iterable[Tuple[Note, Note]]) -> List[Note]:
    """
    Re-point ornament links after a rewrite that moved or re-pitched notes.

    Args:
        pairs: ``(before, after)`` for every note the rewrite kept

    Returns:
        The ``after`` notes; chain notes point at their principal's new pitch
        and onset, or lose their link when the principal was dropped
    """
    pairs = list(pairs)
    moved: Dict[Tuple[int, int], Tuple[int, int]] = {}
    for before, after in pairs:
        key = (before.pitch, before.onset_ticks)
        is_principal = before.is_ornament and before.principal_onset_ticks is None
        if key not in moved or is_principal:
            moved[key] = (after.pitch, after.onset_ticks)

    result = []
    for before, after in pairs:
        if before.principal_onset_ticks is None:
            result.append(after)
            continue
        target = moved.get((before.principal_pitch, before.principal_onset_ticks))
        if target is None:
            result.append(after.with_(is_ornament=False, principal_pitch=None, principal_onset_ticks=None))
        else:
            result.append(after.with_(principal_pitch=target[0], principal_onset_ticks=target[1]))
    return result

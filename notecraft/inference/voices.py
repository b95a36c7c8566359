"""Voice separation - Split a polyphonic track into monophonic-ish lines.

Structural separation based on density and sustain:
- The timeline is cut into slices between every note start and end
- The number of voices is the highest density that is *sustained*
  (held for at least a measure, or a fifth of the piece)
- Notes inside sustained areas are dealt top-down by pitch
- Everything else joins the voice whose neighbours are closest in pitch
"""

import bisect
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..core import Note, TimeSignature, VoiceSeparationOptions, DEFAULT_PPQ, MIDDLE_C, sort_notes


@dataclass
class TimeSlice:
    """Interval between two consecutive breakpoints and the notes sounding in it."""
    start: float
    end: float
    active: List[int]  # Indices into the onset-sorted note list


@dataclass
class SustainedArea:
    """A run of slices that keeps at least ``density`` notes sounding."""
    start_ticks: float
    end_ticks: float
    density: int
    slices: List[TimeSlice] = field(default_factory=list)

    @property
    def length_ticks(self) -> float:
        return self.end_ticks - self.start_ticks


@dataclass
class VoiceSeparation:
    """Result of a voice separation run."""
    voices: List[List[Note]]
    max_density: int
    final_polyphony: int
    sustained_areas: List[SustainedArea] = field(default_factory=list)
    dropped: List[Note] = field(default_factory=list)


def voice_label(index: int, total: int) -> str:
    """Human readable voice name (e.g. 'Soprano' for voice 0 of 4)."""
    if index < 0:
        return "Orphan"
    if total == 1:
        return "Melody"
    if total == 2:
        return "Soprano" if index == 0 else "Bass"
    names = {
        3: ["Soprano", "Tenor", "Bass"],
        4: ["Soprano", "Alto", "Tenor", "Bass"],
    }.get(total)
    if names and index < len(names):
        return names[index]
    return f"Voice {index + 1}"


class _VoiceLine:
    """Onset-ordered notes of one voice with bisect lookups."""

    def __init__(self):
        self.keys: List[Tuple[int, int]] = []  # (onset, insertion sequence)
        self.notes: Dict[int, Note] = {}
        self.members: List[int] = []  # Note indices in insertion order
        self.max_duration = 0

    def add(self, index: int, note: Note, seq: int):
        bisect.insort(self.keys, (note.onset_ticks, seq))
        self.notes[seq] = note
        self.members.append(index)
        self.max_duration = max(self.max_duration, note.duration_ticks)

    def previous(self, onset: int) -> Optional[Note]:
        """Earliest-added note among those with the latest onset before ``onset``."""
        pos = bisect.bisect_left(self.keys, (onset, -1)) - 1
        if pos < 0:
            return None
        first = bisect.bisect_left(self.keys, (self.keys[pos][0], -1))
        return self.notes[self.keys[first][1]]

    def following(self, onset: int) -> Optional[Note]:
        """Earliest-added note among those with the earliest onset after ``onset``."""
        pos = bisect.bisect_left(self.keys, (onset + 1, -1))
        if pos >= len(self.keys):
            return None
        return self.notes[self.keys[pos][1]]

    def overlaps(self, note: Note) -> bool:
        """Whether any note of this voice sounds during ``note``."""
        lo = bisect.bisect_left(self.keys, (note.onset_ticks - self.max_duration, -1))
        hi = bisect.bisect_left(self.keys, (note.offset_ticks, -1))
        for onset, seq in self.keys[lo:hi]:
            if self.notes[seq].offset_ticks > note.onset_ticks:
                return True
        return False


class VoiceSeparator:
    """Distribute notes into voices by sustained density.

    Features:
    - Polyphony chosen from sustained density, not momentary peaks
    - Top-down assignment in dense areas (highest note = voice 0)
    - Nearest-pitch continuation elsewhere
    - Optional strict monophony (notes that would form a chord are dropped)
    """

    def __init__(
        self,
        ppq: int = DEFAULT_PPQ,
        time_signature: Optional[TimeSignature] = None,
        options: Optional[VoiceSeparationOptions] = None,
    ):
        """
        Initialize VoiceSeparator.

        Args:
            ppq: Ticks per quarter note
            time_signature: Meter used for the one-measure sustain rule
            options: Strict monophony / voice cap settings
        """
        self.ppq = ppq
        self.time_signature = time_signature or TimeSignature()
        self.options = options or VoiceSeparationOptions()

    @property
    def merge_gap(self) -> float:
        """Gaps up to an eighth note do not break a dense area."""
        return self.ppq / 2

    @property
    def ticks_per_measure(self) -> float:
        return self.time_signature.ticks_per_measure(self.ppq)

    def separate(self, notes: List[Note]) -> List[List[Note]]:
        """
        Split notes into voices.

        Args:
            notes: Notes in any order

        Returns:
            One onset-ordered list per voice (voice 0 is the top voice),
            each note tagged with its ``voice_index``
        """
        return self.separate_with_details(notes).voices

    def separate_with_details(self, notes: List[Note]) -> VoiceSeparation:
        """Split notes into voices and report how the polyphony was chosen."""
        if not notes:
            return VoiceSeparation(voices=[], max_density=0, final_polyphony=0)

        ordered = sort_notes(notes)
        slices, max_density = self._build_slices(ordered)

        if max_density == 0:
            tagged = [n.with_(voice_index=0) for n in ordered]
            return VoiceSeparation(voices=[tagged], max_density=0, final_polyphony=1)

        breakpoints_span = slices[-1].end - slices[0].start
        polyphony = max_density
        sustained: List[SustainedArea] = []
        while polyphony >= 1:
            areas = self._find_areas(slices, polyphony)
            sustained = [a for a in areas if self._is_sustained(a, breakpoints_span)]
            if sustained:
                break
            polyphony -= 1

        if polyphony == 0:
            polyphony = max(1, max_density - 1)
        if self.options.max_voices > 0:
            polyphony = min(polyphony, self.options.max_voices)

        lines = [_VoiceLine() for _ in range(polyphony)]
        assigned = set()
        seq = 0

        # Pass 1: sustained areas, top-down by pitch
        for area in sustained:
            for time_slice in area.slices:
                unassigned = [i for i in time_slice.active if i not in assigned]
                unassigned.sort(key=lambda i: -ordered[i].pitch)
                for v, index in zip(range(polyphony), unassigned):
                    lines[v].add(index, ordered[index], seq)
                    assigned.add(index)
                    seq += 1

        # Pass 2: nearest pitch neighbours
        dropped = []
        strict = self.options.strict_monophony
        for index, note in enumerate(ordered):
            if index in assigned:
                continue

            best_voice = -1
            best_diff = float("inf")
            for v, line in enumerate(lines):
                if strict and line.overlaps(note):
                    continue
                prev = line.previous(note.onset_ticks)
                nxt = line.following(note.onset_ticks)
                if prev is None and nxt is None:
                    diff = abs(MIDDLE_C - note.pitch)
                else:
                    diff = 0
                    if prev is not None:
                        diff += abs(prev.pitch - note.pitch)
                    if nxt is not None:
                        diff += abs(nxt.pitch - note.pitch)
                if diff < best_diff:
                    best_diff = diff
                    best_voice = v

            if best_voice == -1 and not strict:
                best_voice = 0

            if best_voice == -1:
                dropped.append(note)
                continue
            lines[best_voice].add(index, note, seq)
            assigned.add(index)
            seq += 1

        voices = []
        for v, line in enumerate(lines):
            members = sorted(line.members, key=lambda i: ordered[i].onset_ticks)
            voices.append([ordered[i].with_(voice_index=v) for i in members])

        return VoiceSeparation(
            voices=voices,
            max_density=max_density,
            final_polyphony=polyphony,
            sustained_areas=sustained,
            dropped=dropped,
        )

    def _build_slices(self, ordered: List[Note]) -> Tuple[List[TimeSlice], int]:
        """Sweep the breakpoints; a note is active when onset <= mid < offset."""
        breakpoints = sorted({n.onset_ticks for n in ordered} | {n.offset_ticks for n in ordered})

        slices = []
        active: List[int] = []
        next_note = 0
        max_density = 0
        for start, end in zip(breakpoints, breakpoints[1:]):
            mid = (start + end) / 2
            while next_note < len(ordered) and ordered[next_note].onset_ticks <= mid:
                active.append(next_note)
                next_note += 1
            active = [i for i in active if ordered[i].offset_ticks > mid]
            max_density = max(max_density, len(active))
            slices.append(TimeSlice(start=start, end=end, active=list(active)))
        return slices, max_density

    def _find_areas(self, slices: List[TimeSlice], density: int) -> List[SustainedArea]:
        """Runs of slices with at least ``density`` notes, bridging short gaps."""
        areas = []
        current = None
        for time_slice in slices:
            if len(time_slice.active) < density:
                continue
            if current is not None and time_slice.start - current.end_ticks <= self.merge_gap:
                current.end_ticks = time_slice.end
                current.slices.append(time_slice)
            else:
                if current is not None:
                    areas.append(current)
                current = SustainedArea(time_slice.start, time_slice.end, density, [time_slice])
        if current is not None:
            areas.append(current)
        return areas

    def _is_sustained(self, area: SustainedArea, total_ticks: float) -> bool:
        return area.length_ticks >= self.ticks_per_measure or area.length_ticks >= total_ticks / 5

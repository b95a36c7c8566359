"""Chord analysis - Identify chords and segment a track into chord events.

Implements chord detection with:
- Template matching against a fixed chord-shape catalogue
- Omitted-fifth tolerance for shapes that allow it
- Inversion detection via the lowest sounding pitch
- Four segmentation strategies: sustain, attack, beat buckets, hybrid
"""

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..core import Note, NOTE_NAMES, TimeSignature, DEFAULT_PPQ, format_time, measure_of, sort_notes


@dataclass(frozen=True)
class ChordShape:
    """A chord template: intervals above the root."""
    name: str
    intervals: FrozenSet[int]
    allow_omitted_fifth: bool = True


def _shape(name: str, intervals: Iterable[int], allow_omitted_fifth: bool = True) -> ChordShape:
    return ChordShape(name, frozenset(intervals), allow_omitted_fifth)


# Catalogue order matters: earlier shapes win score ties
CHORD_SHAPES: Tuple[ChordShape, ...] = (
    _shape("13", (0, 4, 7, 10, 2, 5, 9)),
    _shape("11", (0, 4, 7, 10, 2, 5)),
    _shape("Maj9", (0, 4, 7, 11, 2)),
    _shape("m9", (0, 3, 7, 10, 2)),
    _shape("9", (0, 4, 7, 10, 2)),
    _shape("add9", (0, 4, 7, 2)),
    _shape("Maj7", (0, 4, 7, 11)),
    _shape("m7", (0, 3, 7, 10)),
    _shape("7", (0, 4, 7, 10)),
    _shape("6", (0, 4, 7, 9)),
    _shape("m6", (0, 3, 7, 9)),
    _shape("mM7", (0, 3, 7, 11)),
    _shape("m7b5", (0, 3, 6, 10), False),
    _shape("aug7", (0, 4, 8, 10), False),
    _shape("Dim7", (0, 3, 6, 9), False),
    _shape("Aug", (0, 4, 8), False),
    _shape("Dim", (0, 3, 6), False),
    _shape("sus4", (0, 5, 7)),
    _shape("sus2", (0, 2, 7)),
    _shape("5", (0, 7), False),
    _shape("Maj", (0, 4, 7)),
    _shape("Min", (0, 3, 7)),
)

FIFTH = 7
MAX_ALTERNATIVES = 5


@dataclass(frozen=True)
class ChordMatch:
    """One chord reading of a pitch set."""
    name: str  # e.g. "C Maj", "A m7/C"
    root_pitch_class: int
    quality: str  # Shape name
    bass_pitch_class: Optional[int]  # Set only for inversions
    score: int
    missing_pitch_classes: Tuple[int, ...] = ()

    @property
    def root(self) -> str:
        return NOTE_NAMES[self.root_pitch_class]

    @property
    def bass(self) -> Optional[str]:
        if self.bass_pitch_class is None:
            return None
        return NOTE_NAMES[self.bass_pitch_class]

    @property
    def inversion(self) -> Optional[str]:
        """Slash suffix such as '/E', or None in root position."""
        if self.bass_pitch_class is None:
            return None
        return f"/{self.bass}"

    @property
    def missing_notes(self) -> List[str]:
        return [NOTE_NAMES[pc] for pc in self.missing_pitch_classes]


@dataclass(frozen=True)
class ChordIdentification:
    """Best chord reading plus runner-up alternatives."""
    match: ChordMatch
    alternatives: Tuple[ChordMatch, ...] = ()


@dataclass(frozen=True)
class ChordEvent:
    """A chord found at a position in the track."""
    onset_ticks: float
    measure: int
    formatted_time: str
    match: ChordMatch
    constituent_note_names: Tuple[str, ...] = ()
    alternatives: Tuple[ChordMatch, ...] = ()

    @property
    def name(self) -> str:
        return self.match.name


class ChordIdentifier:
    """Score a simultaneous pitch set against the chord-shape catalogue."""

    MATCH_WEIGHT = 10
    EXTRA_PENALTY = 20
    MISSING_PENALTY = 5
    ROOT_POSITION_BONUS = 1

    def __init__(self, shapes: Tuple[ChordShape, ...] = CHORD_SHAPES):
        self.shapes = shapes

    def identify(self, pitches: Iterable[int]) -> Optional[ChordIdentification]:
        """
        Identify the chord formed by ``pitches``.

        Args:
            pitches: MIDI pitches sounding together (duplicates allowed)

        Returns:
            ChordIdentification, or None for fewer than two pitches or when
            no shape fits any candidate root
        """
        pitches = list(pitches)
        if len(pitches) < 2:
            return None

        bass = min(pitches) % 12
        pitch_classes = sorted({p % 12 for p in pitches})

        candidates = []
        for root in pitch_classes:
            present = {(pc - root) % 12 for pc in pitch_classes}
            for shape in self.shapes:
                match = self._match_shape(shape, root, bass, present)
                if match is not None:
                    candidates.append(match)

        if not candidates:
            return None

        # Stable: catalogue and root order break ties
        candidates.sort(key=lambda m: -m.score)
        return ChordIdentification(
            match=candidates[0],
            alternatives=tuple(candidates[1:1 + MAX_ALTERNATIVES]),
        )

    def _match_shape(self, shape: ChordShape, root: int, bass: int, present: set) -> Optional[ChordMatch]:
        missing = sorted(shape.intervals - present)
        omitted_fifth = missing == [FIFTH] and shape.allow_omitted_fifth
        if missing and not omitted_fifth:
            return None

        extra = len(present - shape.intervals)
        score = (
            self.MATCH_WEIGHT * (len(shape.intervals) - len(missing))
            - self.EXTRA_PENALTY * extra
            - self.MISSING_PENALTY * len(missing)
        )

        name = f"{NOTE_NAMES[root]} {shape.name}"
        bass_pc = None
        if root != bass:
            bass_pc = bass
            name += f"/{NOTE_NAMES[bass]}"
        else:
            score += self.ROOT_POSITION_BONUS

        return ChordMatch(
            name=name,
            root_pitch_class=root,
            quality=shape.name,
            bass_pitch_class=bass_pc,
            score=score,
            missing_pitch_classes=tuple((root + i) % 12 for i in missing),
        )


def identify_chord(pitches: Iterable[int]) -> Optional[ChordIdentification]:
    """Module-level shortcut for ``ChordIdentifier().identify``."""
    return ChordIdentifier().identify(pitches)


class HybridVoiceMode(Enum):
    """How one separated voice contributes to hybrid chord detection."""
    SUSTAIN = "sustain"  # Notes as played
    ATTACK = "attack"  # Only the attack is heard
    ARPEGGIO = "arpeggio"  # Broken chord notes ring on
    IGNORE = "ignore"  # Voice left out


class ArpeggioMode(Enum):
    """How far an arpeggiated note rings on."""
    COUNT = "count"  # Until the note N positions later starts
    BEAT = "beat"  # Until the end of its beat
    TWO_BEATS = "2beat"  # Until the end of its two-beat window


class ChordDetector:
    """Segment a track into chord events.

    Features:
    - Ornament chains heard at their principal's onset
    - Sustain, attack, beat-bucketed and hybrid segmentation
    - Repeated chords inside one measure reported once
    """

    def __init__(
        self,
        ppq: int = DEFAULT_PPQ,
        time_signature: Optional[TimeSignature] = None,
        identifier: Optional[ChordIdentifier] = None,
    ):
        """
        Initialize ChordDetector.

        Args:
            ppq: Ticks per quarter note
            time_signature: Meter for measure numbers and beat buckets
            identifier: Chord identifier (default: full catalogue)
        """
        self.ppq = ppq
        self.time_signature = time_signature or TimeSignature()
        self.identifier = identifier or ChordIdentifier()

    @property
    def ticks_per_beat(self) -> float:
        return self.time_signature.ticks_per_beat(self.ppq)

    @property
    def ticks_per_measure(self) -> float:
        return self.time_signature.ticks_per_measure(self.ppq)

    @staticmethod
    def prepare(notes: List[Note]) -> List[Note]:
        """Move ornament chain notes to their principal's onset."""
        return [
            n.with_(onset_ticks=n.principal_onset_ticks)
            if n.is_ornament and n.principal_onset_ticks is not None
            else n
            for n in notes
        ]

    def detect_sustain(self, notes: List[Note], min_duration_ticks: int = 0) -> List[ChordEvent]:
        """
        Identify the sounding chord at every onset/offset breakpoint.

        Args:
            notes: Notes to analyze
            min_duration_ticks: Notes shorter than this are not heard

        Returns:
            Chord events in time order
        """
        valid = [n for n in self.prepare(notes) if n.duration_ticks >= min_duration_ticks]
        ordered = sort_notes(valid)
        breakpoints = sorted({n.onset_ticks for n in ordered} | {n.offset_ticks for n in ordered})

        events: List[ChordEvent] = []
        active: List[Note] = []
        next_note = 0
        for t in breakpoints[:-1]:
            while next_note < len(ordered) and ordered[next_note].onset_ticks <= t:
                active.append(ordered[next_note])
                next_note += 1
            active = [n for n in active if n.offset_ticks > t]
            if len(active) >= 2:
                self._append_unless_repeated(events, t, active)
        return events

    def detect_attack(
        self,
        notes: List[Note],
        tolerance_ticks: float = 0,
        min_duration_ticks: int = 0,
    ) -> List[ChordEvent]:
        """
        Group notes struck together and identify each group.

        Args:
            notes: Notes to analyze
            tolerance_ticks: Onset window of a group (default: a third of a beat)
            min_duration_ticks: Notes shorter than this are ignored

        Returns:
            Chord events in time order
        """
        valid = [n for n in self.prepare(notes) if n.duration_ticks >= min_duration_ticks]
        ordered = sort_notes(valid)
        window = max(1, tolerance_ticks if tolerance_ticks > 0 else self.ppq / 3)

        events: List[ChordEvent] = []
        i = 0
        while i < len(ordered):
            start = ordered[i].onset_ticks
            j = i + 1
            while j < len(ordered) and ordered[j].onset_ticks - start < window:
                j += 1
            group = self._unique_pitch_classes(ordered[i:j])
            if len(group) >= 2:
                self._append_unless_repeated(events, start, group)
            i = j
        return events

    def detect_bucketed(self, notes: List[Note], bucket_beats: int = 1) -> List[ChordEvent]:
        """
        One chord per fixed window of ``bucket_beats`` beats.

        Fast decoration inside a window collapses into a single harmony.
        """
        bucket_ticks = self.ticks_per_beat * bucket_beats
        if bucket_ticks <= 0:
            return []

        buckets: Dict[int, List[Note]] = defaultdict(list)
        for n in sort_notes(self.prepare(notes)):
            buckets[int(n.onset_ticks // bucket_ticks)].append(n)

        events = []
        for index in sorted(buckets):
            group = self._unique_pitch_classes(buckets[index])
            if len(group) < 2:
                continue
            event = self._make_event(index * bucket_ticks, group)
            if event is not None:
                events.append(event)
        return events

    def detect_hybrid(
        self,
        notes: List[Note],
        voice_modes: Optional[Dict[int, HybridVoiceMode]] = None,
        min_duration_ticks: int = 0,
        arpeggio_mode: ArpeggioMode = ArpeggioMode.COUNT,
        arpeggio_value: int = 3,
    ) -> List[ChordEvent]:
        """
        Per-voice treatment followed by sustain detection.

        Args:
            notes: Notes tagged with ``voice_index`` (untagged notes form
                their own group, index -1)
            voice_modes: Mode per voice index (default: sustain)
            min_duration_ticks: Notes shorter than this are ignored
            arpeggio_mode: Ring-on rule for arpeggio voices
            arpeggio_value: Note count for ``ArpeggioMode.COUNT``

        Returns:
            Chord events in time order
        """
        voice_modes = voice_modes or {}
        by_voice: Dict[int, List[Note]] = defaultdict(list)
        for n in self.prepare(notes):
            by_voice[-1 if n.voice_index is None else n.voice_index].append(n)

        processed: List[Note] = []
        for voice in sorted(by_voice):
            mode = voice_modes.get(voice, HybridVoiceMode.SUSTAIN)
            if mode == HybridVoiceMode.IGNORE:
                continue
            voice_notes = [n for n in sort_notes(by_voice[voice]) if n.duration_ticks >= min_duration_ticks]
            if mode == HybridVoiceMode.ATTACK:
                short = max(1, self.ppq // 8)
                voice_notes = [n.with_(duration_ticks=min(short, n.duration_ticks)) for n in voice_notes]
            elif mode == HybridVoiceMode.ARPEGGIO:
                voice_notes = self._ring_on(voice_notes, arpeggio_mode, arpeggio_value)
            processed.extend(voice_notes)

        return self.detect_sustain(processed)

    def _ring_on(self, voice_notes: List[Note], mode: ArpeggioMode, count: int) -> List[Note]:
        """Extend arpeggio notes so the broken chord sounds as a harmony."""
        extended = []
        if mode == ArpeggioMode.COUNT:
            count = max(1, count)
            for k, n in enumerate(voice_notes):
                if k + count < len(voice_notes):
                    end = voice_notes[k + count].onset_ticks
                    extended.append(n.with_(duration_ticks=max(n.duration_ticks, end - n.onset_ticks)))
                else:
                    extended.append(n)
            return extended

        window = self.ticks_per_beat * (2 if mode == ArpeggioMode.TWO_BEATS else 1)
        if window <= 0:
            return list(voice_notes)
        for n in voice_notes:
            end = (n.onset_ticks // window + 1) * window
            extended.append(n.with_(duration_ticks=max(n.duration_ticks, int(end - n.onset_ticks))))
        return extended

    @staticmethod
    def _unique_pitch_classes(notes: List[Note]) -> List[Note]:
        """Keep the lowest note of each pitch class."""
        lowest: Dict[int, Note] = {}
        for n in notes:
            kept = lowest.get(n.pitch_class)
            if kept is None or n.pitch < kept.pitch:
                lowest[n.pitch_class] = n
        return sorted(lowest.values(), key=lambda n: n.pitch)

    def _make_event(self, ticks: float, notes: List[Note]) -> Optional[ChordEvent]:
        result = self.identifier.identify(n.pitch for n in notes)
        if result is None:
            return None
        names = tuple(dict.fromkeys(n.pitch_name for n in notes))
        return ChordEvent(
            onset_ticks=ticks,
            measure=measure_of(ticks, self.ticks_per_measure),
            formatted_time=format_time(
                ticks, self.ppq, self.time_signature.numerator, self.time_signature.denominator
            ),
            match=result.match,
            constituent_note_names=names,
            alternatives=result.alternatives,
        )

    def _append_unless_repeated(self, events: List[ChordEvent], ticks: float, notes: List[Note]):
        event = self._make_event(ticks, notes)
        if event is None:
            return
        if events and events[-1].name == event.name and events[-1].measure == event.measure:
            return
        events.append(event)

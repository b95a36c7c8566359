"""ABC notation export.

Notes are spelled with the scale speller for the configured key, so D major
reads F# and Gb major reads Cb. The key field lists the scale's accidentals
explicitly (``K:DMaj exp ^C ^F``), which also covers modes that have no
standard key signature. Polyphony inside a voice is written as chords.
"""

from dataclasses import dataclass
from math import gcd
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from ..core import (
    ConversionOptions,
    Note,
    OutputStrategy,
    SpellingPreference,
    Track,
    VoiceSeparationOptions,
    round_half_up,
)
from ..inference import ScaleSpelling, VoiceSeparator, spell_scale, voice_label


ABC_ACCIDENTALS = {"": "=", "#": "^", "##": "^^", "b": "_", "bb": "__"}

# Candidate unit lengths (fractions of a whole note)
UNIT_LENGTHS = (1, 2, 3, 4, 6, 8, 12, 16, 24)

MEASURES_PER_LINE = 4


@dataclass(frozen=True)
class AbcEvent:
    """A rest or a chord of tied/untied pitches between two breakpoints."""
    ticks: int
    duration_ticks: int
    pitches: Tuple[int, ...] = ()
    tied: Tuple[bool, ...] = ()

    @property
    def is_rest(self) -> bool:
        return not self.pitches


def format_fraction(num: int, den: int) -> str:
    """ABC length suffix for ``num/den`` units ('' for exactly one unit)."""
    if num == 0 or num == den:
        return ""
    common = gcd(num, den)
    n, d = num // common, den // common
    if d == 1:
        return str(n)
    if n == 1:
        return f"/{d}"
    return f"{n}/{d}"


def flatten_to_chords(notes: Sequence[Note]) -> List[AbcEvent]:
    """
    Cut a voice into consecutive rests and chords.

    The timeline starts at tick 0 so leading silence becomes a rest. A pitch
    is tied when its note keeps sounding past the end of the event.
    """
    if not notes:
        return []

    boundaries = sorted({0} | {n.onset_ticks for n in notes} | {n.offset_ticks for n in notes})
    events = []
    for start, end in zip(boundaries, boundaries[1:]):
        sounding: Dict[int, bool] = {}
        for n in notes:
            if n.onset_ticks <= start < n.offset_ticks:
                sounding[n.pitch] = sounding.get(n.pitch, False) or n.offset_ticks > end
        pitches = tuple(sorted(sounding))
        events.append(AbcEvent(
            ticks=start,
            duration_ticks=end - start,
            pitches=pitches,
            tied=tuple(sounding[p] for p in pitches),
        ))
    return events


def split_by_measure(events: Sequence[AbcEvent], ticks_per_measure: int) -> Dict[int, List[AbcEvent]]:
    """
    Group events by measure, splitting those that cross a barline.

    Split notes are tied into the next measure. Event ticks become relative
    to the measure start.
    """
    measures: Dict[int, List[AbcEvent]] = {}
    for event in events:
        current = event.ticks
        remaining = event.duration_ticks
        while remaining > 0:
            index = current // ticks_per_measure
            measure_start = index * ticks_per_measure
            measure_end = measure_start + ticks_per_measure
            length = min(current + remaining, measure_end) - current
            crosses = current + remaining > measure_end

            measures.setdefault(index, []).append(AbcEvent(
                ticks=current - measure_start,
                duration_ticks=length,
                pitches=event.pitches,
                tied=tuple(t or crosses for t in event.tied),
            ))
            current += length
            remaining -= length
    return measures


def best_unit_length(notes: Sequence[Note], ppq: int) -> Tuple[str, int]:
    """
    Pick the ``L:`` unit that writes the most common duration most simply.

    Returns:
        Tuple of (unit string such as "1/8", unit length in ticks)
    """
    counts: Dict[int, int] = {}
    for n in notes:
        counts[n.duration_ticks] = counts.get(n.duration_ticks, 0) + 1
    dominant = max(counts, key=counts.get) if counts else 0

    whole = ppq * 4
    best_den = 8
    best_score = float("-inf")
    for den in UNIT_LENGTHS:
        unit = round_half_up(whole / den)
        if unit <= 0:
            continue

        score = 0.0
        if dominant % unit == 0:
            multiple = dominant // unit
            score += {1: 3000, 2: 1500, 4: 800}.get(multiple, -multiple * 20)
        else:
            score -= 2000
        off_unit = sum(1 for n in notes if n.duration_ticks % unit != 0)
        score -= off_unit / max(len(notes), 1) * 1500
        if den in (4, 8):
            score += 50

        if score > best_score:
            best_score = score
            best_den = den
    return f"1/{best_den}", round_half_up(whole / best_den)


def key_field(spelling: ScaleSpelling) -> str:
    """``K:`` line with the scale's accidentals listed explicitly."""
    accidentals = key_signature(spelling)
    mods = "".join(
        f" {ABC_ACCIDENTALS[accidentals[letter]]}{letter}"
        for letter in "CDEFGAB"
        if accidentals.get(letter)
    )
    return f"K:{spelling.key_label} exp{mods}"


def key_signature(spelling: ScaleSpelling) -> Dict[str, str]:
    """Accidental per staff letter; empty for scales without one letter per degree."""
    if len(spelling.scale_map) != 7:
        return {}
    return dict(spelling.letter_accidentals)


def abc_pitch(midi: int, spelling: ScaleSpelling, in_force: Dict[Tuple[str, int], str]) -> str:
    """
    ABC text for one MIDI pitch.

    Args:
        midi: MIDI pitch
        spelling: Scale spelling of the key
        in_force: Accidentals already in force in the current bar, keyed by
            (letter, octave); updated when an explicit accidental is written

    Returns:
        Pitch such as ``^F``, ``=f`` or ``C,``
    """
    spelled = spelling.spell(midi)
    key = (spelled.letter, spelled.octave)
    current = in_force.get(key, key_signature(spelling).get(spelled.letter, ""))

    prefix = ""
    if spelled.accidental != current:
        prefix = ABC_ACCIDENTALS.get(spelled.accidental, "")
        in_force[key] = spelled.accidental

    letter = spelled.letter
    if spelled.octave >= 5:
        letter = letter.lower() + "'" * (spelled.octave - 5)
    elif spelled.octave < 4:
        letter += "," * (4 - spelled.octave)
    return prefix + letter


class ABCExporter:
    """Export tracks to ABC notation."""

    def __init__(
        self,
        root: int = 0,
        mode: str = "Major",
        preference: SpellingPreference = SpellingPreference.AUTO,
        strategy: OutputStrategy = OutputStrategy.COMBINE,
        voice_options: Optional[VoiceSeparationOptions] = None,
    ):
        """
        Initialize ABCExporter.

        Args:
            root: Key root pitch class used for spelling
            mode: Mode name used for spelling
            preference: Enharmonic spelling preference
            strategy: COMBINE writes one voice; SEPARATE_VOICES writes one
                ABC voice per separated voice
            voice_options: Voice separator settings for SEPARATE_VOICES
        """
        self.spelling = spell_scale(root, mode, preference)
        self.strategy = strategy
        self.voice_options = voice_options

    @classmethod
    def from_options(cls, options: ConversionOptions) -> "ABCExporter":
        """Exporter keyed on the modal conversion root and mode."""
        return cls(
            root=options.modal_conversion.root,
            mode=options.modal_conversion.mode_name,
            preference=options.key_spelling,
            strategy=options.output_strategy,
            voice_options=options.voice_separation,
        )

    def export(self, track: Track, output_path: str, title: Optional[str] = None) -> None:
        """
        Export a track to an ABC file.

        Args:
            track: Track to write
            output_path: Path to output ABC file
            title: Tune title (default: file stem)
        """
        path = Path(output_path)
        text = self.track_to_abc(track, title if title is not None else path.stem)

        # Ensure output directory exists
        path.parent.mkdir(parents=True, exist_ok=True)

        path.write_text(text, encoding="utf-8")

    def track_to_abc(self, track: Track, title: str = "") -> str:
        """Render a track as an ABC tune."""
        ts = track.time_signature
        unit, unit_ticks = best_unit_length(track.notes, track.ppq)
        ticks_per_measure = round_half_up(ts.ticks_per_measure(track.ppq))

        lines = [
            "X:1",
            f"T:{title or track.name}",
            f"M:{ts.numerator}/{ts.denominator}",
            f"L:{unit}",
            f"Q:1/4={round_half_up(track.tempo_bpm)}",
            key_field(self.spelling),
        ]
        if not track.notes or ticks_per_measure <= 0:
            return "\n".join(lines) + "\n"

        total_measures = -(-track.end_ticks // ticks_per_measure)
        for voice_id, name, notes in self._voices(track):
            lines.append(f'V:{voice_id} name="{name}"')
            lines.extend(self._voice_body(notes, unit_ticks, ticks_per_measure, total_measures))
        return "\n".join(lines) + "\n"

    def _voices(self, track: Track) -> List[Tuple[str, str, List[Note]]]:
        if self.strategy != OutputStrategy.SEPARATE_VOICES:
            return [("1", track.name or "Voice 1", list(track.notes))]
        separator = VoiceSeparator(track.ppq, track.time_signature, self.voice_options)
        voices = separator.separate(track.notes)
        return [
            (f"1_{index + 1}", voice_label(index, len(voices)), voice)
            for index, voice in enumerate(voices)
        ]

    def _voice_body(
        self,
        notes: List[Note],
        unit_ticks: int,
        ticks_per_measure: int,
        total_measures: int,
    ) -> List[str]:
        measures = split_by_measure(flatten_to_chords(notes), ticks_per_measure)
        bars = [
            self._measure_text(measures.get(m, []), unit_ticks, ticks_per_measure)
            for m in range(total_measures)
        ]

        body = []
        for first in range(0, total_measures, MEASURES_PER_LINE):
            body.append(f"% Measure {first + 1}")
            body.append(" | ".join(bars[first:first + MEASURES_PER_LINE]) + " |")
        body[-1] += "]"
        return body

    def _measure_text(self, events: List[AbcEvent], unit_ticks: int, ticks_per_measure: int) -> str:
        if not events:
            return f"z{format_fraction(ticks_per_measure, unit_ticks)}"

        in_force: Dict[Tuple[str, int], str] = {}
        parts = []
        for event in events:
            length = format_fraction(event.duration_ticks, unit_ticks)
            if event.is_rest:
                parts.append(f"z{length}")
            elif len(event.pitches) == 1:
                tie = "-" if event.tied[0] else ""
                parts.append(f"{abc_pitch(event.pitches[0], self.spelling, in_force)}{length}{tie}")
            else:
                chord = "".join(
                    abc_pitch(p, self.spelling, in_force) + ("-" if t else "")
                    for p, t in zip(event.pitches, event.tied)
                )
                parts.append(f"[{chord}]{length}")
        return " ".join(parts)

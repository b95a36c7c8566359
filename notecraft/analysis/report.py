"""Track analysis and text report.

Bundles the inference results for one track (key, voices, chords in all
four segmentations, rhythm statistics, voice-leading intervals) and renders
them as a plain-text harmonic analysis report.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional

import numpy as np

from ..core import ConversionOptions, Note, Track, NOTE_NAMES, sort_notes
from ..inference import (
    ChordDetector,
    ChordEvent,
    KeyPrediction,
    KeyPredictionGroup,
    KeyPredictor,
    VoiceSeparator,
    pitch_class_histogram,
)
from ..pipeline import PipelineStats, TransformPipeline
from ..processing import OrnamentDetector
from .rhythm import NoteValueStat, RhythmAnalysis, analyze_rhythm


@dataclass
class TrackAnalysis:
    """Container for the analysis of one track."""

    track_name: str
    total_notes: int
    ppq: int
    tempo_bpm: float
    time_signature: str
    pitch_class_histogram: np.ndarray = field(default_factory=lambda: np.zeros(12, dtype=int))
    key_groups: List[KeyPredictionGroup] = field(default_factory=list)
    voice_count: int = 0
    rhythm: RhythmAnalysis = field(default_factory=RhythmAnalysis)
    output_note_values: Optional[List[NoteValueStat]] = None
    chords_sustain: List[ChordEvent] = field(default_factory=list)
    chords_attack: List[ChordEvent] = field(default_factory=list)
    chords_hybrid: List[ChordEvent] = field(default_factory=list)
    chords_bucketed: List[ChordEvent] = field(default_factory=list)
    voice_intervals: Dict[int, int] = field(default_factory=dict)
    transform_stats: Optional[PipelineStats] = None
    notes: List[Note] = field(default_factory=list)  # Voice-tagged notes

    @property
    def best_key(self) -> Optional[KeyPrediction]:
        return self.key_groups[0].winner if self.key_groups else None


def voice_leading_intervals(notes: List[Note]) -> Dict[int, int]:
    """
    Histogram of melodic steps inside each voice.

    Args:
        notes: Notes tagged with ``voice_index`` (untagged count as voice 0)

    Returns:
        Signed semitone step -> occurrences, ordered by step
    """
    voices: Dict[int, List[Note]] = {}
    for n in notes:
        voices.setdefault(n.voice_index or 0, []).append(n)

    steps = Counter()
    for voice_notes in voices.values():
        ordered = sort_notes(voice_notes)
        for a, b in zip(ordered, ordered[1:]):
            steps[b.pitch - a.pitch] += 1
    return dict(sorted(steps.items()))


class TrackAnalyzer:
    """Run every analysis on a track.

    Features:
    - Optional ornament tagging before chord detection
    - Voice separation feeding the hybrid chord strategy
    - Processing impact of a conversion configuration
    """

    def __init__(self, options: Optional[ConversionOptions] = None, include_exotic: bool = False):
        """
        Initialize TrackAnalyzer.

        Args:
            options: Conversion options; when given, ornament detection and
                voice separation follow them and the pipeline impact is
                reported
            include_exotic: Score non-diatonic key templates too
        """
        self.options = options
        self.include_exotic = include_exotic

    def analyze(self, track: Track) -> TrackAnalysis:
        """
        Analyze a track.

        Args:
            track: Decoded track

        Returns:
            TrackAnalysis
        """
        ppq = track.ppq
        ts = track.time_signature
        result = TrackAnalysis(
            track_name=track.name,
            total_notes=len(track.notes),
            ppq=ppq,
            tempo_bpm=track.tempo_bpm,
            time_signature=str(ts),
        )
        if not track.notes:
            return result

        notes = list(track.notes)
        if self.options is not None and self.options.detect_ornaments:
            notes = OrnamentDetector(ppq).detect(notes)

        separator_options = self.options.voice_separation if self.options is not None else None
        separation = VoiceSeparator(ppq, ts, separator_options).separate_with_details(notes)
        # Notes dropped under strict monophony still count for the harmony
        tagged = sort_notes([n for voice in separation.voices for n in voice] + separation.dropped)

        detector = ChordDetector(ppq, ts)
        histogram = pitch_class_histogram(notes)

        result.pitch_class_histogram = histogram
        result.key_groups = KeyPredictor(self.include_exotic).predict(histogram, len(notes))
        result.voice_count = len(separation.voices)
        result.rhythm = analyze_rhythm(notes, ppq, ts)
        result.chords_sustain = detector.detect_sustain(tagged)
        result.chords_attack = detector.detect_attack(tagged)
        result.chords_hybrid = detector.detect_hybrid(tagged)
        result.chords_bucketed = detector.detect_bucketed(tagged, 1)
        result.voice_intervals = voice_leading_intervals(tagged)
        result.notes = tagged

        if self.options is not None:
            pipeline = TransformPipeline(self.options)
            transformed, stats = pipeline.run(track.notes, source_ppq=ppq, return_stats=True)
            result.transform_stats = stats
            result.output_note_values = analyze_rhythm(
                transformed, pipeline.ppq, self.options.time_signature
            ).note_values

        return result


def _format_interval(step: int) -> str:
    if step == 0:
        return "Unison"
    return f"+{step}" if step > 0 else str(step)


def _format_chords(title: str, chords: List[ChordEvent]) -> List[str]:
    lines = [f"3. {title}"]
    if not chords:
        lines.append("No chords detected.")
        return lines
    for chord in chords:
        line = f"{chord.formatted_time:<20}: {chord.name:<20} [{', '.join(chord.constituent_note_names)}]"
        missing = chord.match.missing_notes
        if missing:
            line += f" (Missing: {', '.join(missing)})"
        lines.append(line)
    return lines


def generate_report(analysis: TrackAnalysis, generated_on: Optional[date] = None) -> str:
    """
    Render an analysis as a plain-text report.

    Args:
        analysis: Result of ``TrackAnalyzer.analyze``
        generated_on: Report date (default: today)

    Returns:
        Report text
    """
    generated_on = generated_on or date.today()
    lines = [
        "HARMONIC ANALYSIS REPORT",
        f"Generated on: {generated_on.isoformat()}",
        f"Track: {analysis.track_name}",
        "-" * 50,
        "",
    ]

    stats = analysis.transform_stats
    if stats is not None:
        q = stats.quantize
        lines += [
            "0. PROCESSING IMPACT SUMMARY (Based on current settings)",
            f"   Input Notes: {stats.input_notes} -> Output Notes: {stats.output_notes}",
            f"   - Quantization: {q.notes_shifted} notes shifted "
            f"(Avg Error: {round(q.average_shift_ticks)} ticks)",
            f"   - Duration Filtering: {stats.removed_short_notes} notes removed (too short)",
            f"   - Overlap Pruning: {stats.removed_overlaps} notes removed, "
            f"{stats.truncated_overlaps} shortened",
            "",
        ]

    lines += ["1. RHYTHMIC ANALYSIS", f"Detected Grid: {analysis.rhythm.grid_type}", "Note Breakdown:"]
    for i, stat in enumerate(analysis.rhythm.note_values, start=1):
        lines.append(f"  {i}. {stat.name} ({round(stat.percentage)}%) - {stat.count} notes")

    best = analysis.best_key
    if best is not None:
        key_text = f"{NOTE_NAMES[best.root]} {best.mode} ({round(best.score * 100)}%)"
    else:
        key_text = "Undetermined"
    lines += ["", "2. KEY & HARMONY", f"Predicted Key: {key_text}", ""]

    lines += _format_chords("CHORD PROGRESSION (Sustain)", analysis.chords_sustain)
    lines += [""] + _format_chords("CHORD PROGRESSION (Attacks)", analysis.chords_attack)
    if analysis.chords_hybrid:
        lines += [""] + _format_chords("CHORD PROGRESSION (Hybrid / Arpeggio)", analysis.chords_hybrid)
    if analysis.chords_bucketed:
        lines += [""] + _format_chords(
            "CHORD PROGRESSION (Harmonic Rhythm Normalized)", analysis.chords_bucketed
        )

    lines += ["", "4. VOICE LEADING"]
    for step, count in analysis.voice_intervals.items():
        lines.append(f"  {_format_interval(step):<8}: {count}")

    return "\n".join(lines) + "\n"

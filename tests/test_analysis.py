"""Tests for rhythm analysis, track analysis and the text report."""

from datetime import date

import pytest
from notecraft.analysis import (
    TrackAnalyzer,
    analyze_rhythm,
    generate_report,
    nearest_note_value,
    voice_leading_intervals,
)
from notecraft.core import ConversionOptions, Note, RhythmRule, TimeSignature, Track


PPQ = 480


def progression_track():
    """C - F/C - G/B - C block chords, one half note each."""
    chords = [(60, 64, 67), (60, 65, 69), (59, 62, 67), (60, 64, 67)]
    notes = [
        Note(pitch=p, onset_ticks=k * 960, duration_ticks=960)
        for k, chord in enumerate(chords)
        for p in chord
    ]
    return Track(notes=notes, ppq=PPQ, tempo_bpm=100.0, name="Piano")


class TestRhythm:
    """Test note value breakdown and grid detection."""

    def test_straight_sixteenths(self):
        """A line of sixteenths sits on the standard grid."""
        notes = [Note(pitch=60, onset_ticks=k * 120, duration_ticks=120) for k in range(16)]
        rhythm = analyze_rhythm(notes, PPQ)

        assert rhythm.top_note_value.name == "16th Note"
        assert rhythm.top_note_value.percentage == 100
        assert rhythm.grid_type == "1/16 Standard"
        assert rhythm.grid_alignment == pytest.approx(1.0)
        assert rhythm.duration_consistency == pytest.approx(1.0)

    def test_eighth_triplets(self):
        """Dominant triplets switch to the triplet grid."""
        notes = [Note(pitch=60, onset_ticks=k * 160, duration_ticks=160) for k in range(12)]
        rhythm = analyze_rhythm(notes, PPQ)
        assert rhythm.grid_type == "1/8 Triplet"
        assert rhythm.grid_alignment == pytest.approx(1.0)

    def test_compound_meter(self):
        """x/8 meters use the compound eighth grid."""
        notes = [Note(pitch=60, onset_ticks=k * 240, duration_ticks=240) for k in range(6)]
        assert analyze_rhythm(notes, PPQ, TimeSignature(6, 8)).grid_type == "1/8 Compound"

    def test_off_grid_onsets_lower_alignment(self):
        """Onsets halfway between grid lines score zero."""
        notes = [Note(pitch=60, onset_ticks=60 + k * 120, duration_ticks=120) for k in range(4)]
        rhythm = analyze_rhythm(notes, PPQ)
        assert rhythm.grid_alignment == pytest.approx(0.0)
        assert rhythm.average_offset_ticks == pytest.approx(60.0)

    def test_empty(self):
        """No notes, no grid."""
        assert analyze_rhythm([], PPQ).grid_type == "None"

    def test_nearest_note_value(self):
        """Durations map to the closest standard value."""
        assert nearest_note_value(480, PPQ)[0] == "Quarter Note"
        assert nearest_note_value(720, PPQ)[0] == "Dotted Quarter"
        assert nearest_note_value(470, PPQ)[0] == "Quarter Note"


class TestVoiceLeading:
    """Test melodic interval histograms."""

    def test_steps_within_voices(self):
        """Steps are counted inside each voice, never across voices."""
        notes = [
            Note(pitch=72, onset_ticks=0, duration_ticks=480, voice_index=0),
            Note(pitch=74, onset_ticks=480, duration_ticks=480, voice_index=0),
            Note(pitch=48, onset_ticks=0, duration_ticks=480, voice_index=1),
            Note(pitch=48, onset_ticks=480, duration_ticks=480, voice_index=1),
        ]
        assert voice_leading_intervals(notes) == {0: 1, 2: 1}


class TestTrackAnalyzer:
    """Test the combined analysis."""

    def test_progression(self):
        """Key, chords and voices of a block-chord progression."""
        analysis = TrackAnalyzer().analyze(progression_track())

        assert analysis.total_notes == 12
        assert analysis.best_key.name == "C Major"
        assert analysis.voice_count == 3
        assert [c.name for c in analysis.chords_sustain] == ["C Maj", "F Maj/C", "G Maj/B", "C Maj"]
        assert [c.name for c in analysis.chords_attack] == ["C Maj", "F Maj/C", "G Maj/B", "C Maj"]
        assert all(n.voice_index is not None for n in analysis.notes)
        assert analysis.transform_stats is None

    def test_with_options_reports_impact(self):
        """Given options, the pipeline impact is included."""
        options = ConversionOptions(primary_rhythm=RhythmRule(enabled=True, min_note_value="1/16"))
        analysis = TrackAnalyzer(options).analyze(progression_track())

        assert analysis.transform_stats is not None
        assert analysis.transform_stats.output_notes == 12
        assert analysis.output_note_values[0].name == "Half Note"

    def test_empty_track(self):
        """An empty track yields an empty analysis."""
        analysis = TrackAnalyzer().analyze(Track(name="Silence"))
        assert analysis.total_notes == 0
        assert analysis.best_key is None


class TestReport:
    """Test the text report."""

    def test_sections(self):
        """The report lists rhythm, key, chords and voice leading."""
        analysis = TrackAnalyzer().analyze(progression_track())
        report = generate_report(analysis, generated_on=date(2024, 1, 2))

        assert report.startswith("HARMONIC ANALYSIS REPORT\nGenerated on: 2024-01-02\n")
        assert "Track: Piano" in report
        assert "Detected Grid: 1/16 Standard" in report
        assert "Predicted Key: C Major (75%)" in report
        assert "3. CHORD PROGRESSION (Sustain)" in report
        assert "Meas 1 | Beat 3.00" in report
        assert "G Maj/B" in report
        assert "4. VOICE LEADING" in report
        assert "0. PROCESSING IMPACT SUMMARY" not in report

    def test_processing_impact(self):
        """Section 0 appears when options were analyzed."""
        options = ConversionOptions(remove_short_notes_threshold=10)
        analysis = TrackAnalyzer(options).analyze(progression_track())
        report = generate_report(analysis, generated_on=date(2024, 1, 2))
        assert "Input Notes: 12 -> Output Notes: 12" in report

    def test_empty_track(self):
        """An empty track reports no chords and an undetermined key."""
        report = generate_report(TrackAnalyzer().analyze(Track()), generated_on=date(2024, 1, 2))
        assert "Predicted Key: Undetermined" in report
        assert "No chords detected." in report

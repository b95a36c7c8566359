"""Tests for the fixed-order transform pipeline."""

from dataclasses import replace

import pytest
from notecraft.core import (
    ConversionOptions,
    ExportRangeOptions,
    InversionMode,
    ModalConversionOptions,
    Note,
    RhythmRule,
    TempoChangeMode,
    TimeSignature,
    Track,
)
from notecraft.pipeline import TransformPipeline, transform_notes


def make_note(pitch=60, onset=0, duration=480):
    return Note(pitch=pitch, onset_ticks=onset, duration_ticks=duration)


def quantized_options(**changes):
    options = ConversionOptions(primary_rhythm=RhythmRule(enabled=True, min_note_value="1/16"))
    return replace(options, **changes)


class TestDefaults:
    """Test the pipeline with everything switched off."""

    def test_passthrough(self):
        """Default options return the notes unchanged."""
        notes = [make_note(60, 13, 77), make_note(64, 480, 480)]
        assert transform_notes(notes) == notes

    def test_stage_counts(self):
        """Every stage reports its output size."""
        _, stats = TransformPipeline().run([make_note()], return_stats=True)
        assert list(stats.stage_counts) == list(TransformPipeline.STAGES)
        assert stats.output_notes == 1
        assert stats.total_removed == 0


class TestStages:
    """Test individual stages inside the chain."""

    def test_normalize(self):
        """Source ticks are rescaled to the output PPQ and transposed."""
        options = ConversionOptions(output_ppq=480, transposition=2)
        result = TransformPipeline(options).run([make_note(60, 960, 480)], source_ppq=960)
        assert (result[0].pitch, result[0].onset_ticks, result[0].duration_ticks) == (62, 480, 240)

    def test_short_threshold_in_source_ticks(self):
        """The short-note threshold is given in source ticks."""
        options = ConversionOptions(output_ppq=480, remove_short_notes_threshold=100)
        notes = [make_note(60, 0, 80), make_note(62, 960, 960)]

        result, stats = TransformPipeline(options).run(notes, source_ppq=960, return_stats=True)

        assert [n.pitch for n in result] == [62]
        assert stats.removed_short_notes == 1

    def test_quantize(self):
        """An enabled primary grid snaps notes."""
        result, stats = TransformPipeline(quantized_options()).run([make_note(60, 10, 110)], return_stats=True)
        assert (result[0].onset_ticks, result[0].duration_ticks) == (0, 120)
        assert stats.quantize.notes_shifted == 1

    def test_minimum_duration_after_quantize(self):
        """Quantized notes are lengthened to the minimum duration."""
        options = quantized_options(quantize_duration_min="1/8")
        result = TransformPipeline(options).run([make_note(60, 0, 120)])
        assert result[0].duration_ticks == 240

    def test_minimum_duration_needs_primary_grid(self):
        """Without a primary grid, the minimum duration is not applied."""
        options = ConversionOptions(quantize_duration_min="1/8")
        result = TransformPipeline(options).run([make_note(60, 0, 120)])
        assert result[0].duration_ticks == 120

    def test_tempo_change_in_time_mode(self):
        """Halving the tempo in time mode doubles tick positions."""
        options = ConversionOptions(
            tempo=60, original_tempo=120, tempo_change_mode=TempoChangeMode.TIME
        )
        result = TransformPipeline(options).run([make_note(60, 480, 480)])
        assert (result[0].onset_ticks, result[0].duration_ticks) == (960, 960)

    def test_tempo_change_in_speed_mode(self):
        """Speed mode keeps tick positions."""
        options = ConversionOptions(tempo=60, original_tempo=120)
        result = TransformPipeline(options).run([make_note(60, 480, 480)])
        assert result[0].onset_ticks == 480

    def test_retrograde_sees_quantized_positions(self):
        """Retrograde runs on the quantized notes."""
        options = quantized_options(inversion_mode=InversionMode.GLOBAL)
        notes = [make_note(60, 5, 475), make_note(62, 478, 482)]
        result = TransformPipeline(options).run(notes)
        assert [(n.pitch, n.onset_ticks) for n in result] == [(60, 480), (62, 0)]

    def test_crop_counts(self):
        """Notes outside the export range are counted as cropped."""
        options = ConversionOptions(export_range=ExportRangeOptions(enabled=True, start_measure=2, end_measure=2))
        notes = [make_note(60, 0), make_note(62, 1920)]

        result, stats = TransformPipeline(options).run(notes, return_stats=True)

        assert [(n.pitch, n.onset_ticks) for n in result] == [(62, 0)]
        assert stats.cropped_notes == 1


class TestInvariants:
    """Test properties that hold for every configuration."""

    def test_durations_at_least_one_tick(self):
        """Extreme compression never produces zero-length notes."""
        options = ConversionOptions(note_time_scale=0.001)
        result = TransformPipeline(options).run([make_note(60, 4800, 100)])
        assert result[0].duration_ticks == 1

    def test_quantize_is_idempotent(self):
        """Running a quantizing pipeline twice changes nothing further."""
        notes = [make_note(60 + k % 5, k * 131, 97) for k in range(12)]
        pipeline = TransformPipeline(quantized_options())
        once = pipeline.run(notes)
        assert pipeline.run(once) == once

    def test_input_not_mutated(self):
        """The caller's notes are left untouched."""
        notes = [make_note(60, 10, 110)]
        TransformPipeline(quantized_options(transposition=5)).run(notes)
        assert notes == [make_note(60, 10, 110)]

    def test_deterministic(self):
        """Same input and options give identical output."""
        notes = [make_note(60 + k, k * 97, 143) for k in range(20)]
        options = quantized_options(detect_ornaments=True, prune_overlaps=True)
        assert TransformPipeline(options).run(notes) == TransformPipeline(options).run(notes)


def grace_and_principal(start=0):
    """Grace note 62 leading into a long 60 with a 55 under it."""
    return [make_note(62, start, 60), make_note(60, start + 70, 960), make_note(55, start + 70, 960)]


def ornament_link(notes):
    """(decoration, principal) pair of a single grace-note ornament."""
    decoration = next(n for n in notes if n.principal_onset_ticks is not None)
    principal = next(n for n in notes if n.is_ornament and n.principal_onset_ticks is None)
    return decoration, principal


class TestOrnamentLinks:
    """Test that decorations keep pointing at their principal after each stage."""

    def test_time_scale_moves_link(self):
        """Stretching time moves the principal onset on the decoration too."""
        options = ConversionOptions(detect_ornaments=True, note_time_scale=2.0)
        decoration, principal = ornament_link(TransformPipeline(options).run(grace_and_principal()))

        assert principal.onset_ticks == 140
        assert decoration.principal_onset_ticks == principal.onset_ticks

    def test_quantize_moves_link(self):
        """The link follows the principal onto its grid point."""
        options = quantized_options(
            detect_ornaments=True,
            primary_rhythm=RhythmRule(enabled=True, min_note_value="1/4"),
        )
        decoration, principal = ornament_link(TransformPipeline(options).run(grace_and_principal()))

        assert principal.onset_ticks == 0
        assert decoration.principal_onset_ticks == 0

    def test_measure_shift_moves_link(self):
        """Shifting to the barline shifts the link by the same amount."""
        options = ConversionOptions(detect_ornaments=True, shift_to_measure=True)
        decoration, principal = ornament_link(TransformPipeline(options).run(grace_and_principal(1000)))

        assert principal.onset_ticks == 70
        assert decoration.principal_onset_ticks == 70

    def test_retrograde_moves_link(self):
        """Global retrograde mirrors the link with the principal."""
        options = ConversionOptions(detect_ornaments=True, inversion_mode=InversionMode.GLOBAL)
        notes = [make_note(62, 0, 60), make_note(60, 70, 960)]
        decoration, principal = ornament_link(TransformPipeline(options).run(notes))

        assert (decoration.onset_ticks, principal.onset_ticks) == (970, 0)
        assert decoration.principal_onset_ticks == 0

    def test_modal_remap_moves_link_pitch(self):
        """Re-pitching the principal updates the decoration's principal pitch."""
        options = ConversionOptions(
            detect_ornaments=True,
            modal_conversion=ModalConversionOptions(enabled=True, root=0, mappings={0: 1}),
        )
        notes = [make_note(62, 0, 60), make_note(60, 70, 960)]
        decoration, principal = ornament_link(TransformPipeline(options).run(notes))

        assert principal.pitch == 61
        assert decoration.principal_pitch == 61

    def test_crop_drops_link_to_removed_principal(self):
        """A decoration whose principal is cropped away becomes a plain note."""
        options = ConversionOptions(
            detect_ornaments=True,
            export_range=ExportRangeOptions(enabled=True, start_measure=1, end_measure=1),
        )
        notes = [make_note(62, 1860, 60), make_note(60, 1920, 960)]

        assert TransformPipeline(options).run(notes) == [make_note(62, 1860, 60)]


class TestRunTrack:
    """Test track-level runs."""

    def test_track_metadata(self):
        """The output track carries the output PPQ, tempo and meter."""
        options = ConversionOptions(output_ppq=960, tempo=90, time_signature=TimeSignature(3, 4))
        track = Track(notes=[make_note(60, 480, 480)], ppq=480, name="Lead")

        result, stats = TransformPipeline(options).run_track(track, return_stats=True)

        assert result.ppq == 960
        assert result.tempo_bpm == 90
        assert str(result.time_signature) == "3/4"
        assert result.name == "Lead"
        assert result.notes[0].onset_ticks == 960
        assert stats.input_notes == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

"""Tests for shadow grid quantization.

Tests for:
- Snapping to the primary grid
- Competition between primary and secondary grids
- Confidence classes and statistics
"""

import pytest
from notecraft.core import Note, RhythmRule, RhythmFamily
from notecraft.processing.quantize import (
    GridConfidence,
    ShadowQuantizer,
    quantize_notes,
)


PPQ = 480
SIXTEENTHS = RhythmRule(enabled=True, family=RhythmFamily.SIMPLE, min_note_value="1/16")
EIGHTH_TRIPLETS = RhythmRule(enabled=True, family=RhythmFamily.TRIPLE, min_note_value="1/8")


def make_note(onset, duration=120, pitch=60):
    return Note(pitch=pitch, onset_ticks=onset, duration_ticks=duration)


class TestPrimaryGrid:
    """Test quantization against a single grid."""

    def test_snaps_onset_and_duration(self):
        """A slightly late note lands on the grid with a grid-length duration."""
        result = quantize_notes([make_note(10, 110)], PPQ, SIXTEENTHS)
        assert (result[0].onset_ticks, result[0].duration_ticks) == (0, 120)

    def test_zero_duration_becomes_one_quantum(self):
        """Durations that snap to zero take one grid step."""
        result = quantize_notes([make_note(0, 20)], PPQ, SIXTEENTHS)
        assert result[0].duration_ticks == 120

    def test_disabled_primary_is_noop(self):
        """Without a primary grid nothing moves, even with a secondary grid."""
        notes = [make_note(13, 77)]
        quantizer = ShadowQuantizer(PPQ, RhythmRule(enabled=False), EIGHTH_TRIPLETS)
        assert quantizer.quantize(notes) == notes

    def test_on_grid_notes_are_stable(self):
        """Quantizing quantized notes changes nothing."""
        notes = [make_note(k * 37, 95) for k in range(10)]
        once = quantize_notes(notes, PPQ, SIXTEENTHS)
        assert quantize_notes(once, PPQ, SIXTEENTHS) == once


class TestShadowGrid:
    """Test primary vs. secondary grid competition."""

    def test_triplet_position_picks_secondary(self):
        """A note on a triplet position snaps to the triplet grid."""
        quantizer = ShadowQuantizer(PPQ, SIXTEENTHS, EIGHTH_TRIPLETS)

        result, stats = quantizer.quantize([make_note(160, 160)], return_stats=True)

        assert result[0].onset_ticks == 160
        assert result[0].duration_ticks == 160
        assert stats.secondary_chosen == 1
        assert stats.certain == 1

    def test_equal_error_prefers_primary(self):
        """Ties go to the primary grid."""
        quantizer = ShadowQuantizer(PPQ, SIXTEENTHS, EIGHTH_TRIPLETS)
        analysis = quantizer.analyze([make_note(200)])[0]
        assert analysis.best.is_primary
        assert analysis.best.ticks == 240

    def test_unclear_primary_is_weak_primary(self):
        """An unclear win of the primary grid is reported as weak primary."""
        quantizer = ShadowQuantizer(PPQ, SIXTEENTHS, EIGHTH_TRIPLETS)
        analysis = quantizer.analyze([make_note(60)])[0]
        assert analysis.confidence == GridConfidence.WEAK_PRIMARY

    def test_unclear_secondary_is_ambiguous(self):
        """An unclear win of the secondary grid is ambiguous."""
        quantizer = ShadowQuantizer(PPQ, SIXTEENTHS, EIGHTH_TRIPLETS)
        analysis = quantizer.analyze([make_note(195)])[0]
        assert not analysis.best.is_primary
        assert analysis.confidence == GridConfidence.AMBIGUOUS

    def test_ambiguous_notes_still_move(self):
        """Confidence is reported only; every note snaps to its best grid."""
        quantizer = ShadowQuantizer(PPQ, SIXTEENTHS, EIGHTH_TRIPLETS)
        result, stats = quantizer.quantize([make_note(195)], return_stats=True)
        assert result[0].onset_ticks == 160
        assert stats.ambiguous == 1
        assert stats.notes_shifted == 1
        assert stats.average_shift_ticks == 35


class TestTolerance:
    """Test the certainty tolerance."""

    def test_tolerance_uses_finer_grid(self):
        """Tolerance scales with the finest active quantum."""
        quantizer = ShadowQuantizer(PPQ, SIXTEENTHS, EIGHTH_TRIPLETS)
        assert quantizer.tolerance == pytest.approx(120 * 0.15)

    def test_tolerance_has_floor(self):
        """Very fine grids keep a minimum tolerance."""
        rule = RhythmRule(enabled=True, min_note_value="1/128")
        quantizer = ShadowQuantizer(96, rule)
        assert quantizer.tolerance == ShadowQuantizer.MIN_TOLERANCE_TICKS


if __name__ == "__main__":
    pytest.main([__file__, "-v"])

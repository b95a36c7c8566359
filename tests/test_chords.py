"""Tests for chord identification and chord segmentation.

Tests for:
- Template matching, inversions and omitted fifths
- Sustain, attack, bucketed and hybrid segmentation
- Ornament chains heard at their principal
"""

import pytest
from notecraft.core import Note
from notecraft.inference import (
    ArpeggioMode,
    ChordDetector,
    ChordIdentifier,
    HybridVoiceMode,
    identify_chord,
)


PPQ = 480


def block(pitches, onset=0, duration=960, voice=None):
    return [Note(pitch=p, onset_ticks=onset, duration_ticks=duration, voice_index=voice) for p in pitches]


class TestChordIdentifier:
    """Test single pitch-set identification."""

    @pytest.mark.parametrize("pitches,expected", [
        ([60, 64, 67], "C Maj"),
        ([60, 63, 67], "C Min"),
        ([60, 64, 67, 70], "C 7"),
        ([57, 60, 64, 67], "A m7"),
    ])
    def test_root_position(self, pitches, expected):
        """Common chords in root position are named after their root."""
        assert identify_chord(pitches).match.name == expected

    def test_inversion_uses_bass(self):
        """A first-inversion triad gets a slash bass."""
        match = identify_chord([64, 67, 72]).match
        assert match.name == "C Maj/E"
        assert match.inversion == "/E"
        assert match.root == "C"

    def test_root_position_scores_higher(self):
        """The root-position bonus separates otherwise equal readings."""
        root = identify_chord([60, 64, 67]).match
        inverted = identify_chord([64, 67, 72]).match
        assert root.score == inverted.score + ChordIdentifier.ROOT_POSITION_BONUS

    def test_omitted_fifth(self):
        """Seventh chords may leave out the fifth."""
        match = identify_chord([60, 64, 70]).match
        assert match.name == "C 7"
        assert match.missing_notes == ["G"]

    def test_too_few_pitch_classes(self):
        """Single notes and octaves are not chords."""
        assert identify_chord([60]) is None
        assert identify_chord([60, 72]) is None

    def test_alternatives_are_ranked(self):
        """Alternatives follow the best match in descending score."""
        result = identify_chord([60, 64, 67, 70])
        scores = [result.match.score] + [a.score for a in result.alternatives]
        assert scores == sorted(scores, reverse=True)
        assert len(result.alternatives) <= 5


class TestSustainDetection:
    """Test breakpoint-based chord detection."""

    def test_progression(self):
        """Consecutive block chords are reported in order."""
        notes = block([60, 64, 67]) + block([55, 59, 62], onset=960)
        events = ChordDetector(PPQ).detect_sustain(notes)

        assert [e.name for e in events] == ["C Maj", "G Maj"]
        assert events[0].formatted_time == "Meas 1 | Beat 1.00"
        assert events[1].formatted_time == "Meas 1 | Beat 3.00"
        assert events[1].constituent_note_names == ("G3", "B3", "D4")

    def test_repeat_in_same_measure_is_merged(self):
        """The same chord twice in one measure is reported once."""
        notes = block([60, 64, 67], duration=480) + block([60, 64, 67], onset=960, duration=480)
        assert len(ChordDetector(PPQ).detect_sustain(notes)) == 1

    def test_repeat_in_next_measure_is_kept(self):
        """The same chord in a new measure is reported again."""
        notes = block([60, 64, 67]) + block([60, 64, 67], onset=1920)
        events = ChordDetector(PPQ).detect_sustain(notes)
        assert [e.measure for e in events] == [1, 2]

    def test_min_duration_filters_short_notes(self):
        """Notes below the minimum duration are not heard."""
        notes = block([60, 64], duration=960) + block([67], duration=60)
        events = ChordDetector(PPQ).detect_sustain(notes, min_duration_ticks=120)
        assert events[0].match.missing_notes == ["G"]

    def test_ornament_chain_is_heard_at_principal(self):
        """Tagged decorations are moved onto their principal's onset."""
        grace = Note(pitch=62, onset_ticks=900, duration_ticks=60, is_ornament=True,
                     principal_pitch=60, principal_onset_ticks=960)
        prepared = ChordDetector.prepare([grace])
        assert prepared[0].onset_ticks == 960


class TestAttackDetection:
    """Test onset-group chord detection."""

    def test_rolled_chord_groups_together(self):
        """Notes struck within the tolerance window form one chord."""
        notes = [
            Note(pitch=60, onset_ticks=0, duration_ticks=480),
            Note(pitch=64, onset_ticks=50, duration_ticks=480),
            Note(pitch=67, onset_ticks=100, duration_ticks=480),
            Note(pitch=72, onset_ticks=0, duration_ticks=480),
        ]
        events = ChordDetector(PPQ).detect_attack(notes)
        assert [e.name for e in events] == ["C Maj"]
        assert events[0].constituent_note_names == ("C4", "E4", "G4")

    def test_separate_attacks(self):
        """Onsets farther apart than the window are separate groups."""
        notes = block([60, 64, 67], duration=480) + block([62, 65, 69], onset=480, duration=480)
        events = ChordDetector(PPQ).detect_attack(notes)
        assert [e.name for e in events] == ["C Maj", "D Min"]


class TestBucketedDetection:
    """Test beat-bucket chord detection."""

    def test_broken_chord_collapses_per_beat(self):
        """Fast notes inside one beat add up to one chord."""
        notes = [Note(pitch=p, onset_ticks=k * 120, duration_ticks=120)
                 for k, p in enumerate([60, 64, 67, 72, 62, 65, 69, 74])]
        events = ChordDetector(PPQ).detect_bucketed(notes, bucket_beats=1)

        assert [e.name for e in events] == ["C Maj", "D Min"]
        assert [e.onset_ticks for e in events] == [0, 480]


class TestHybridDetection:
    """Test per-voice treatment before sustain detection."""

    def arpeggio(self):
        return [Note(pitch=p, onset_ticks=k * 120, duration_ticks=120, voice_index=1)
                for k, p in enumerate([48, 52, 55])]

    def test_arpeggio_rings_on(self):
        """An arpeggiated voice sounds as a chord when allowed to ring."""
        detector = ChordDetector(PPQ)
        assert detector.detect_sustain(self.arpeggio()) == []

        events = detector.detect_hybrid(
            self.arpeggio(),
            voice_modes={1: HybridVoiceMode.ARPEGGIO},
            arpeggio_mode=ArpeggioMode.BEAT,
        )
        assert [e.name for e in events] == ["C Maj"]

    def test_ignored_voice(self):
        """Ignored voices contribute nothing."""
        events = ChordDetector(PPQ).detect_hybrid(
            block([60, 64, 67], voice=0),
            voice_modes={0: HybridVoiceMode.IGNORE},
        )
        assert events == []

    def test_default_matches_sustain(self):
        """Without voice modes, hybrid detection equals sustain detection."""
        notes = block([60, 64, 67], voice=0) + block([55, 59, 62], onset=960, voice=1)
        detector = ChordDetector(PPQ)
        assert [e.name for e in detector.detect_hybrid(notes)] == [e.name for e in detector.detect_sustain(notes)]

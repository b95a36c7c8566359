"""Tests for ornament detection."""

from notecraft.core import Note
from notecraft.processing import OrnamentDetector, OrnamentType, count_ornaments, follow_principals


PPQ = 480


def chain(pitches, start=0, step=60):
    """Short connected notes, one every ``step`` ticks."""
    return [Note(pitch=p, onset_ticks=start + k * step, duration_ticks=step) for k, p in enumerate(pitches)]


def principal_after(notes, pitch=60, duration=480):
    return Note(pitch=pitch, onset_ticks=notes[-1].offset_ticks, duration_ticks=duration)


class TestClassification:
    """Test ornament shape recognition."""

    def test_trill(self):
        """Alternating neighbor and principal resolving to the principal is a trill."""
        notes = chain([62, 60, 62])
        principal = principal_after(notes)

        tagged, groups = OrnamentDetector(PPQ).detect_with_details(notes + [principal])

        assert len(groups) == 1
        assert groups[0].type == OrnamentType.TRILL
        assert all(n.is_ornament for n in tagged)

    def test_turn(self):
        """Upper neighbor, principal, lower neighbor is a turn."""
        notes = chain([62, 60, 59])
        _, groups = OrnamentDetector(PPQ).detect_with_details(notes + [principal_after(notes)])
        assert [g.type for g in groups] == [OrnamentType.TURN]

    def test_mordent(self):
        """Principal then neighbor is a mordent."""
        notes = chain([60, 62])
        _, groups = OrnamentDetector(PPQ).detect_with_details(notes + [principal_after(notes)])
        assert [g.type for g in groups] == [OrnamentType.MORDENT]

    def test_grace_note(self):
        """One short neighbor before a long principal is a grace note."""
        notes = chain([62])
        _, groups = OrnamentDetector(PPQ).detect_with_details(notes + [principal_after(notes)])
        assert [g.type for g in groups] == [OrnamentType.GRACE_NOTE]

    def test_grace_note_from_below(self):
        """A semitone below the principal also counts as a grace note."""
        notes = chain([59], step=100)
        _, groups = OrnamentDetector(PPQ).detect_with_details(notes + [principal_after(notes)])
        assert [g.type for g in groups] == [OrnamentType.GRACE_NOTE]

    def test_wide_leap_is_not_an_ornament(self):
        """A short note a fifth away does not decorate the principal."""
        notes = chain([67])
        tagged = OrnamentDetector(PPQ).detect(notes + [principal_after(notes)])
        assert not any(n.is_ornament for n in tagged)


class TestTagging:
    """Test what gets written onto the notes."""

    def test_chain_notes_point_at_principal(self):
        """Chain notes carry the principal's pitch and onset."""
        notes = chain([62, 60, 62])
        principal = principal_after(notes)

        tagged = OrnamentDetector(PPQ).detect(notes + [principal])
        decorations = [n for n in tagged if n.principal_onset_ticks is not None]

        assert len(decorations) == 3
        assert all(n.principal_pitch == 60 for n in decorations)
        assert all(n.principal_onset_ticks == principal.onset_ticks for n in decorations)
        assert count_ornaments(tagged) == 3

    def test_principal_is_flagged_without_link(self):
        """The principal is flagged but has no principal fields of its own."""
        notes = chain([62])
        principal = principal_after(notes)

        tagged = OrnamentDetector(PPQ).detect(notes + [principal])
        tagged_principal = [n for n in tagged if n.onset_ticks == principal.onset_ticks][0]

        assert tagged_principal.is_ornament
        assert tagged_principal.principal_pitch is None

    def test_gap_before_principal_breaks_the_link(self):
        """A chain that stops well before the next note is left untagged."""
        notes = chain([62])
        late = Note(pitch=60, onset_ticks=200, duration_ticks=480)
        tagged = OrnamentDetector(PPQ).detect(notes + [late])
        assert count_ornaments(tagged) == 0

    def test_note_count_is_preserved(self):
        """Detection never adds or removes notes."""
        notes = chain([62, 60, 62]) + [Note(pitch=60, onset_ticks=180, duration_ticks=480)]
        notes += [Note(pitch=72, onset_ticks=960, duration_ticks=960)]
        assert len(OrnamentDetector(PPQ).detect(notes)) == len(notes)

    def test_long_notes_untouched(self):
        """Plain quarter notes are returned as they came in."""
        notes = [Note(pitch=60 + k, onset_ticks=k * 480, duration_ticks=480) for k in range(4)]
        assert OrnamentDetector(PPQ).detect(notes) == notes


class TestFollowPrincipals:
    """Test link maintenance after a rewrite."""

    def tagged_grace(self):
        notes = chain([62])
        return OrnamentDetector(PPQ).detect(notes + [principal_after(notes)])

    def test_link_follows_moved_principal(self):
        """Moving every note by the same offset moves the link with them."""
        tagged = self.tagged_grace()
        moved = follow_principals((n, n.with_(onset_ticks=n.onset_ticks + 480)) for n in tagged)

        decoration = moved[0]
        assert decoration.principal_onset_ticks == 540
        assert decoration.principal_onset_ticks == moved[1].onset_ticks

    def test_link_follows_new_pitch(self):
        """Re-pitching the principal updates the stored principal pitch."""
        tagged = self.tagged_grace()
        moved = follow_principals(
            (n, n.with_(pitch=59) if n.principal_onset_ticks is None else n) for n in tagged
        )
        assert moved[0].principal_pitch == 59

    def test_dropped_principal_unlinks(self):
        """Without its principal, a decoration becomes a plain note."""
        decoration, _ = self.tagged_grace()
        result = follow_principals([(decoration, decoration)])
        assert result == [Note(pitch=62, onset_ticks=0, duration_ticks=60)]

    def test_untagged_notes_pass_through(self):
        """Notes without links are returned as given."""
        notes = [Note(pitch=60, onset_ticks=0, duration_ticks=480)]
        assert follow_principals(zip(notes, notes)) == notes

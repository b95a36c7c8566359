"""Scale spelling - Choose letter names and accidentals for a key.

Each of the seven scale degrees gets its own staff letter, stepping through
C D E F G A B from the root's letter, so D major reads F# rather than Gb.
Pitch classes outside the scale fall back to a fixed chromatic table.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from ..core import SpellingPreference, NOTE_NAMES


MODE_INTERVALS: Dict[str, Tuple[int, ...]] = {
    "Major": (0, 2, 4, 5, 7, 9, 11),
    "Natural Minor": (0, 2, 3, 5, 7, 8, 10),
    "Harmonic Minor": (0, 2, 3, 5, 7, 8, 11),
    "Dorian": (0, 2, 3, 5, 7, 9, 10),
    "Phrygian": (0, 1, 3, 5, 7, 8, 10),
    "Lydian": (0, 2, 4, 6, 7, 9, 11),
    "Mixolydian": (0, 2, 4, 5, 7, 9, 10),
    "Locrian": (0, 1, 3, 5, 6, 8, 10),
    "Chromatic": tuple(range(12)),
}

MINOR_LIKE_MODES = ("Dorian", "Phrygian", "Locrian")

LETTERS = ("C", "D", "E", "F", "G", "A", "B")
NATURAL_PITCH_CLASSES = (0, 2, 4, 5, 7, 9, 11)

ACCIDENTALS = {-2: "bb", -1: "b", 0: "", 1: "#", 2: "##"}

# Out-of-scale spellings as (letter, accidental)
CHROMATIC_SHARP = {
    0: ("C", ""), 1: ("C", "#"), 2: ("D", ""), 3: ("D", "#"), 4: ("E", ""), 5: ("F", ""),
    6: ("F", "#"), 7: ("G", ""), 8: ("G", "#"), 9: ("A", ""), 10: ("A", "#"), 11: ("B", ""),
}
CHROMATIC_FLAT = {
    0: ("C", ""), 1: ("D", "b"), 2: ("D", ""), 3: ("E", "b"), 4: ("E", ""), 5: ("F", ""),
    6: ("G", "b"), 7: ("G", ""), 8: ("A", "b"), 9: ("A", ""), 10: ("B", "b"), 11: ("B", ""),
}

# Root pitch class -> letter index, by bias
_DEFAULT_ROOT_LETTER = {0: 0, 1: 0, 2: 1, 3: 2, 4: 2, 5: 3, 6: 3, 7: 4, 8: 5, 9: 5, 10: 6, 11: 6}
_FLAT_ROOT_LETTER = {1: 1, 6: 4, 11: 0}
_SHARP_ROOT_LETTER = {1: 0, 3: 1, 6: 3, 8: 4, 10: 5}


@dataclass(frozen=True)
class SpelledNote:
    """Spelling of one pitch class."""
    letter: str
    accidental: str = ""  # "bb", "b", "", "#", "##"
    octave_offset: int = 0  # Correction for B#/B## (-1) and Cb (+1)

    @property
    def name(self) -> str:
        return f"{self.letter}{self.accidental}"


@dataclass(frozen=True)
class SpelledPitch:
    """Spelling of a concrete MIDI pitch."""
    letter: str
    accidental: str
    octave: int
    in_scale: bool = True

    @property
    def name(self) -> str:
        return f"{self.letter}{self.accidental}{self.octave}"


@dataclass
class ScaleSpelling:
    """Scale map for one key plus the fallback used for other tones."""
    root: int
    mode: str
    prefer_flats: bool
    scale_map: Dict[int, SpelledNote] = field(default_factory=dict)
    letter_accidentals: Dict[str, str] = field(default_factory=dict)
    root_name: str = ""

    @property
    def key_label(self) -> str:
        """Key name such as 'F#Maj' or 'Ebm'."""
        is_minor = "Minor" in self.mode or self.mode in MINOR_LIKE_MODES
        return f"{self.root_name}{'m' if is_minor else 'Maj'}"

    def spell_pitch_class(self, pitch_class: int) -> SpelledNote:
        """Scale spelling, or the chromatic fallback for out-of-scale tones."""
        pitch_class %= 12
        if pitch_class in self.scale_map:
            return self.scale_map[pitch_class]
        table = CHROMATIC_FLAT if self.prefer_flats else CHROMATIC_SHARP
        letter, accidental = table[pitch_class]
        return SpelledNote(letter, accidental, 0)

    def spell(self, midi: int) -> SpelledPitch:
        """Spell a MIDI pitch, e.g. 66 in D major -> F#4."""
        spelled = self.spell_pitch_class(midi)
        octave = midi // 12 - 1 + spelled.octave_offset
        return SpelledPitch(
            letter=spelled.letter,
            accidental=spelled.accidental,
            octave=octave,
            in_scale=(midi % 12) in self.scale_map,
        )


class ScaleSpeller:
    """Build letter-consistent spellings for a root and mode."""

    def __init__(self, preference: SpellingPreference = SpellingPreference.AUTO):
        """
        Initialize ScaleSpeller.

        Args:
            preference: AUTO follows the canonical chromatic names
                (F# -> sharps, Eb -> flats); SHARP/FLAT force a bias
        """
        self.preference = preference

    def prefers_flats(self, root: int) -> bool:
        """Whether spelling for ``root`` leans towards flats."""
        if self.preference == SpellingPreference.FLAT:
            return True
        if self.preference == SpellingPreference.SHARP:
            return False
        canonical = NOTE_NAMES[root % 12]
        if "b" in canonical:
            return True
        if "#" in canonical:
            return False
        return root % 12 == 5  # F major carries a flat

    @staticmethod
    def root_letter_index(root: int, prefer_flats: bool) -> int:
        """Staff letter (index into C D E F G A B) the scale starts on."""
        overrides = _FLAT_ROOT_LETTER if prefer_flats else _SHARP_ROOT_LETTER
        return overrides.get(root, _DEFAULT_ROOT_LETTER[root])

    def analyze(self, root: int, mode: str = "Major") -> ScaleSpelling:
        """
        Spell the scale of ``root`` in ``mode``.

        Args:
            root: Root pitch class 0-11
            mode: Name from MODE_INTERVALS (unknown names fall back to Major)

        Returns:
            ScaleSpelling with one entry per scale degree
        """
        root %= 12
        intervals = MODE_INTERVALS.get(mode)
        if intervals is None:
            intervals = MODE_INTERVALS["Major"]
        prefer_flats = self.prefers_flats(root)
        letter_index = self.root_letter_index(root, prefer_flats)
        spelling = ScaleSpelling(root=root, mode=mode, prefer_flats=prefer_flats)

        for interval in intervals:
            pc = (root + interval) % 12
            letter = LETTERS[letter_index]
            accidental = ACCIDENTALS.get(_signed_distance(pc, NATURAL_PITCH_CLASSES[letter_index]), "")

            offset = 0
            if letter == "B" and pc in (0, 1):
                offset = -1
            elif letter == "C" and pc == 11:
                offset = 1

            spelling.scale_map[pc] = SpelledNote(letter, accidental, offset)
            spelling.letter_accidentals[letter] = accidental
            letter_index = (letter_index + 1) % 7

        root_letter = self.root_letter_index(root, prefer_flats)
        root_shift = _signed_distance(root, NATURAL_PITCH_CLASSES[root_letter])
        spelling.root_name = LETTERS[root_letter] + {1: "#", -1: "b"}.get(root_shift, "")
        return spelling


def _signed_distance(pitch_class: int, natural: int) -> int:
    """Semitone shift from a natural to ``pitch_class``, folded into -6..6."""
    diff = pitch_class - natural
    if diff > 6:
        diff -= 12
    if diff < -6:
        diff += 12
    return diff


def spell_scale(
    root: int,
    mode: str = "Major",
    preference: SpellingPreference = SpellingPreference.AUTO,
) -> ScaleSpelling:
    """Shortcut for ``ScaleSpeller(preference).analyze(root, mode)``."""
    return ScaleSpeller(preference).analyze(root, mode)


def key_label(root: int, mode: str = "Major", preference: Optional[SpellingPreference] = None) -> str:
    """Key name for a root and mode, e.g. (6, 'Major') -> 'F#Maj'."""
    return spell_scale(root, mode, preference or SpellingPreference.AUTO).key_label

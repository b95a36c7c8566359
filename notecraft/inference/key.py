"""Key prediction - Score (root, mode) pairs against a pitch-class histogram.

Implements scale-matching key prediction with:
- Diatonic fit (share of notes inside the scale)
- Triad fit (share of notes on the tonic triad)
- Tonic fit (share of notes on the root)
- Grouping of relative modes that share one pitch-class set
"""

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..core import Note, NOTE_NAMES


STANDARD_MODES: Dict[str, Tuple[int, ...]] = {
    "Major": (0, 2, 4, 5, 7, 9, 11),
    "Natural Minor": (0, 2, 3, 5, 7, 8, 10),
    "Harmonic Minor": (0, 2, 3, 5, 7, 8, 11),
    "Dorian": (0, 2, 3, 5, 7, 9, 10),
    "Phrygian": (0, 1, 3, 5, 7, 8, 10),
    "Lydian": (0, 2, 4, 6, 7, 9, 11),
    "Mixolydian": (0, 2, 4, 5, 7, 9, 10),
    "Locrian": (0, 1, 3, 5, 6, 8, 10),
}

EXOTIC_MODES: Dict[str, Tuple[int, ...]] = {
    "Major Pentatonic": (0, 2, 4, 7, 9),
    "Minor Pentatonic": (0, 3, 5, 7, 10),
    "Blues": (0, 3, 5, 6, 7, 10),
    "Whole Tone": (0, 2, 4, 6, 8, 10),
    "Octatonic (W-H)": (0, 2, 3, 5, 6, 8, 9, 11),
    "Octatonic (H-W)": (0, 1, 3, 4, 6, 7, 9, 10),
    "Harmonic Major": (0, 2, 4, 5, 7, 8, 11),
    "Double Harmonic": (0, 1, 4, 5, 7, 8, 11),
    "Hungarian Minor": (0, 2, 3, 6, 7, 8, 11),
    "Neapolitan Minor": (0, 1, 3, 5, 7, 8, 11),
    "Enigmatic": (0, 1, 4, 6, 8, 10, 11),
}


@dataclass(frozen=True)
class KeyPrediction:
    """Fit of one (root, mode) pair."""
    root: int  # Pitch class 0-11
    mode: str
    score: float
    diatonic_fit: float
    triad_fit: float
    tonic_fit: float

    @property
    def name(self) -> str:
        return f"{NOTE_NAMES[self.root]} {self.mode}"


@dataclass
class KeyPredictionGroup:
    """Keys sharing one pitch-class set: the best scorer and the rest."""
    winner: KeyPrediction
    relatives: List[KeyPrediction] = field(default_factory=list)
    pitch_classes: Tuple[int, ...] = ()

    @property
    def relative_names(self) -> List[str]:
        return [r.name for r in self.relatives]


def triad_intervals(mode_intervals: Sequence[int]) -> Tuple[int, ...]:
    """Tonic triad of a mode: major third over minor, fifth 7 then 6 then 8."""
    triad = [0]
    for third in (4, 3):
        if third in mode_intervals:
            triad.append(third)
            break
    for fifth in (7, 6, 8):
        if fifth in mode_intervals:
            triad.append(fifth)
            break
    return tuple(triad)


def pitch_class_histogram(notes: List[Note]) -> np.ndarray:
    """Count notes per pitch class (12 integer bins)."""
    histogram = np.zeros(12, dtype=int)
    for note in notes:
        histogram[note.pitch_class] += 1
    return histogram


class KeyPredictor:
    """Predict the key/mode of a piece from its pitch-class histogram.

    Weights follow a simple composite:
        score = 0.5 * diatonic + 0.3 * triad + 0.2 * tonic
    """

    DIATONIC_WEIGHT = 0.5
    TRIAD_WEIGHT = 0.3
    TONIC_WEIGHT = 0.2

    def __init__(self, include_exotic: bool = False):
        """
        Initialize KeyPredictor.

        Args:
            include_exotic: Also score pentatonic, blues, symmetric and other
                non-diatonic templates
        """
        self.include_exotic = include_exotic

    @property
    def modes(self) -> Dict[str, Tuple[int, ...]]:
        if self.include_exotic:
            return {**STANDARD_MODES, **EXOTIC_MODES}
        return dict(STANDARD_MODES)

    def score_all(self, histogram, total_notes: Optional[int] = None) -> List[Tuple[KeyPrediction, Tuple[int, ...]]]:
        """
        Score every (root, mode) pair.

        Returns:
            (prediction, sorted scale pitch classes) pairs, root-major order
        """
        counts = self._as_array(histogram)
        total = int(counts.sum()) if total_notes is None else total_notes
        if total <= 0:
            return []

        results = []
        for root in range(12):
            for mode, intervals in self.modes.items():
                scale = tuple(sorted((root + i) % 12 for i in intervals))
                triad = [(root + i) % 12 for i in triad_intervals(intervals)]

                diatonic = counts[list(scale)].sum() / total
                triad_fit = counts[triad].sum() / total
                tonic = counts[root] / total
                score = (
                    self.DIATONIC_WEIGHT * diatonic
                    + self.TRIAD_WEIGHT * triad_fit
                    + self.TONIC_WEIGHT * tonic
                )
                prediction = KeyPrediction(
                    root=root,
                    mode=mode,
                    score=float(score),
                    diatonic_fit=float(diatonic),
                    triad_fit=float(triad_fit),
                    tonic_fit=float(tonic),
                )
                results.append((prediction, scale))
        return results

    def predict(self, histogram, total_notes: Optional[int] = None) -> List[KeyPredictionGroup]:
        """
        Rank key groups for a histogram.

        Args:
            histogram: 12 counts (sequence, numpy array, or pitch-class mapping)
            total_notes: Note count (default: histogram sum)

        Returns:
            Groups ranked by winner score; empty when there are no notes
        """
        grouped: Dict[Tuple[int, ...], List[KeyPrediction]] = {}
        for prediction, scale in self.score_all(histogram, total_notes):
            grouped.setdefault(scale, []).append(prediction)

        groups = []
        for scale, predictions in grouped.items():
            predictions.sort(key=lambda p: -p.score)
            groups.append(KeyPredictionGroup(
                winner=predictions[0],
                relatives=predictions[1:],
                pitch_classes=scale,
            ))

        groups.sort(key=lambda g: -g.winner.score)
        return groups

    def predict_from_notes(self, notes: List[Note]) -> List[KeyPredictionGroup]:
        """Histogram the notes and rank key groups."""
        return self.predict(pitch_class_histogram(notes), len(notes))

    @staticmethod
    def _as_array(histogram) -> np.ndarray:
        if isinstance(histogram, Mapping):
            counts = np.zeros(12, dtype=float)
            for pc, count in histogram.items():
                counts[int(pc) % 12] += count
            return counts
        counts = np.asarray(histogram, dtype=float)
        if counts.shape != (12,):
            raise ValueError(f"Expected 12 pitch-class bins, got shape {counts.shape}")
        return counts


def predict_from_notes(notes: List[Note], include_exotic: bool = False) -> List[KeyPredictionGroup]:
    """Shortcut for ``KeyPredictor(include_exotic).predict_from_notes``."""
    return KeyPredictor(include_exotic).predict_from_notes(notes)

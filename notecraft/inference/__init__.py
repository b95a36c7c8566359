"""Inference layer - Musical understanding built from note lists.

This layer derives higher-level structure from notes:
- Voice separation (density-justified polyphony)
- Chord identification and segmentation
- Key/mode prediction
- Scale spelling for notation

Pipeline: Notes → Voices → [Chords, Key] → Spelling
"""

from .voices import VoiceSeparator, VoiceSeparation, SustainedArea, voice_label
from .chords import (
    CHORD_SHAPES,
    ChordShape,
    ChordMatch,
    ChordIdentification,
    ChordEvent,
    ChordIdentifier,
    ChordDetector,
    HybridVoiceMode,
    ArpeggioMode,
    identify_chord,
)
from .key import (
    STANDARD_MODES,
    EXOTIC_MODES,
    KeyPrediction,
    KeyPredictionGroup,
    KeyPredictor,
    pitch_class_histogram,
    predict_from_notes,
)
from .spelling import (
    MODE_INTERVALS,
    ScaleSpeller,
    ScaleSpelling,
    SpelledNote,
    SpelledPitch,
    spell_scale,
    key_label,
)

__all__ = [
    # Voices
    "VoiceSeparator",
    "VoiceSeparation",
    "SustainedArea",
    "voice_label",
    # Chords
    "CHORD_SHAPES",
    "ChordShape",
    "ChordMatch",
    "ChordIdentification",
    "ChordEvent",
    "ChordIdentifier",
    "ChordDetector",
    "HybridVoiceMode",
    "ArpeggioMode",
    "identify_chord",
    # Key prediction
    "STANDARD_MODES",
    "EXOTIC_MODES",
    "KeyPrediction",
    "KeyPredictionGroup",
    "KeyPredictor",
    "pitch_class_histogram",
    "predict_from_notes",
    # Spelling
    "MODE_INTERVALS",
    "ScaleSpeller",
    "ScaleSpelling",
    "SpelledNote",
    "SpelledPitch",
    "spell_scale",
    "key_label",
]

"""notecraft - Symbolic music transformation and analysis.

Architecture Layers:
    1. core/       - Note and track records, options, tick arithmetic
    2. processing/ - Note rewrites (ornaments, cleanup, quantization, transforms)
    3. inference/  - Musical understanding (voices, chords, key, spelling)
    4. analysis/   - Track statistics and reports
    5. input/      - MIDI loading
    6. output/     - MIDI export
"""

__version__ = "0.1.0"

# Core types
from .core import Note, Track, TimeSignature, ConversionOptions, RhythmRule

# Processing layer
from .processing import OrnamentDetector, ShadowQuantizer, NoteCleanup

# Inference layer
from .inference import (
    VoiceSeparator,
    ChordIdentifier,
    ChordDetector,
    KeyPredictor,
    ScaleSpeller,
)

# Pipeline
from .pipeline import TransformPipeline, PipelineStats

# Analysis layer
from .analysis import TrackAnalyzer, generate_report

# Input / output layers
from .input import load_midi
from .output import MIDIExporter

__all__ = [
    # Core
    "Note",
    "Track",
    "TimeSignature",
    "ConversionOptions",
    "RhythmRule",
    # Processing
    "OrnamentDetector",
    "ShadowQuantizer",
    "NoteCleanup",
    # Inference
    "VoiceSeparator",
    "ChordIdentifier",
    "ChordDetector",
    "KeyPredictor",
    "ScaleSpeller",
    # Pipeline
    "TransformPipeline",
    "PipelineStats",
    # Analysis
    "TrackAnalyzer",
    "generate_report",
    # Input / output
    "load_midi",
    "MIDIExporter",
]

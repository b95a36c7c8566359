"""Input layer - Decode MIDI files into tracks."""

from .loader import MidiLoader, load_midi

__all__ = ["MidiLoader", "load_midi"]

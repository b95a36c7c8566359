"""Output layer - Export tracks to files."""

from .midi import MIDIExporter
from .abc import ABCExporter

__all__ = ["MIDIExporter", "ABCExporter"]

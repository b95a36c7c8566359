"""MIDI loading - Decode standard MIDI files into tracks."""

from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import pretty_midi

from ..core import Note, Track, TimeSignature, DEFAULT_TEMPO, sort_notes


class MidiLoader:
    """Handles MIDI file loading."""

    SUPPORTED_FORMATS = {".mid", ".midi"}

    def __init__(self, include_drums: bool = False):
        """
        Initialize MidiLoader.

        Args:
            include_drums: Keep percussion instruments if True
        """
        self.include_drums = include_drums

    def read(self, path: str) -> pretty_midi.PrettyMIDI:
        """
        Read a MIDI file.

        Raises:
            ValueError: If file format not supported or unreadable
            FileNotFoundError: If file doesn't exist
        """
        path = Path(path)

        if not path.exists():
            raise FileNotFoundError(f"MIDI file not found: {path}")

        if path.suffix.lower() not in self.SUPPORTED_FORMATS:
            raise ValueError(
                f"Unsupported format: {path.suffix}. "
                f"Supported: {self.SUPPORTED_FORMATS}"
            )

        try:
            return pretty_midi.PrettyMIDI(str(path))
        except (OSError, ValueError, EOFError) as e:
            raise ValueError(f"Could not read MIDI file {path}: {e}") from e

    def load(self, path: str) -> List[Track]:
        """
        Load every instrument of a MIDI file as a track.

        Args:
            path: Path to MIDI file

        Returns:
            One Track per instrument, sharing the file's first tempo and meter
        """
        return self.from_pretty_midi(self.read(path))

    def from_pretty_midi(self, midi: pretty_midi.PrettyMIDI) -> List[Track]:
        """Convert a PrettyMIDI object into tracks."""
        _, tempi = midi.get_tempo_changes()
        tempo = float(tempi[0]) if len(tempi) else DEFAULT_TEMPO

        if midi.time_signature_changes:
            first = midi.time_signature_changes[0]
            time_signature = TimeSignature(first.numerator, first.denominator)
        else:
            time_signature = TimeSignature()

        tracks = []
        for instrument in midi.instruments:
            if instrument.is_drum and not self.include_drums:
                continue
            notes = []
            for midi_note in instrument.notes:
                onset = midi.time_to_tick(midi_note.start)
                offset = midi.time_to_tick(midi_note.end)
                notes.append(Note(
                    pitch=midi_note.pitch,
                    onset_ticks=onset,
                    duration_ticks=max(0, offset - onset),
                    velocity=midi_note.velocity / 127.0,
                ))
            tracks.append(Track(
                notes=sort_notes(notes),
                ppq=midi.resolution,
                tempo_bpm=tempo,
                time_signature=time_signature,
                name=instrument.name or pretty_midi.program_to_instrument_name(instrument.program),
            ))
        return tracks


def load_midi(path: str, track_index: Optional[int] = 0, include_drums: bool = False) -> Track:
    """
    Load one track of a MIDI file.

    Args:
        path: Path to MIDI file
        track_index: Instrument index, or None to merge all instruments
        include_drums: Keep percussion instruments if True

    Returns:
        Track

    Raises:
        IndexError: If ``track_index`` is out of range
    """
    tracks = MidiLoader(include_drums).load(path)
    if track_index is not None:
        if not 0 <= track_index < len(tracks):
            raise IndexError(f"Track {track_index} not found ({len(tracks)} tracks)")
        return tracks[track_index]

    if not tracks:
        return Track(name=Path(path).stem)
    if len(tracks) == 1:
        return tracks[0]
    merged = sort_notes(n for t in tracks for n in t.notes)
    return replace(tracks[0], notes=merged, name="Ensemble")

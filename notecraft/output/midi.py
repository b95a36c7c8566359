"""MIDI export functionality."""

from pathlib import Path
from typing import List, Optional

import pretty_midi

from ..core import Note, Track, OutputStrategy, VoiceSeparationOptions
from ..inference import VoiceSeparator


class MIDIExporter:
    """Export tracks to MIDI format."""

    def __init__(
        self,
        instrument_name: str = "Acoustic Grand Piano",
        instrument_program: int = 0,
        strategy: OutputStrategy = OutputStrategy.COMBINE,
        voice_options: Optional[VoiceSeparationOptions] = None,
    ):
        """
        Initialize MIDIExporter.

        Args:
            instrument_name: MIDI instrument name (default when the track has none)
            instrument_program: MIDI program number (0-127)
            strategy: COMBINE writes one instrument; SEPARATE_VOICES writes
                one instrument per separated voice
            voice_options: Voice separator settings for SEPARATE_VOICES
        """
        self.instrument_name = instrument_name
        self.instrument_program = instrument_program
        self.strategy = strategy
        self.voice_options = voice_options

    def export(self, track: Track, output_path: str) -> None:
        """
        Export a track to a MIDI file.

        Args:
            track: Track to write (ticks are interpreted at its PPQ and tempo)
            output_path: Path to output MIDI file
        """
        midi = self.track_to_pretty_midi(track)

        # Ensure output directory exists
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)

        midi.write(str(output_path))

    def track_to_pretty_midi(self, track: Track) -> pretty_midi.PrettyMIDI:
        """Convert a track to a PrettyMIDI object without saving."""
        midi = pretty_midi.PrettyMIDI(resolution=track.ppq, initial_tempo=track.tempo_bpm)
        ts = track.time_signature
        midi.time_signature_changes.append(pretty_midi.TimeSignature(ts.numerator, ts.denominator, 0.0))

        name = track.name or self.instrument_name
        if self.strategy == OutputStrategy.SEPARATE_VOICES:
            separator = VoiceSeparator(track.ppq, ts, self.voice_options)
            for index, voice in enumerate(separator.separate(track.notes)):
                midi.instruments.append(self._instrument(f"{name} - Voice {index + 1}", voice, track))
        else:
            midi.instruments.append(self._instrument(name, track.notes, track))
        return midi

    def _instrument(self, name: str, notes: List[Note], track: Track) -> pretty_midi.Instrument:
        instrument = pretty_midi.Instrument(program=self.instrument_program, name=name)
        seconds_per_tick = 60.0 / (track.tempo_bpm * track.ppq)
        for note in notes:
            instrument.notes.append(pretty_midi.Note(
                velocity=max(1, min(127, int(round(note.velocity * 127)))),
                pitch=note.pitch,
                start=note.onset_ticks * seconds_per_tick,
                end=note.offset_ticks * seconds_per_tick,
            ))
        return instrument

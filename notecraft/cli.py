"""Command-line interface for notecraft.

Provides commands for:
- analyze: Key, chords, voices and rhythm of a MIDI track
- transform: Run the conversion pipeline and write a new MIDI or ABC file
- spell: Show the letter spelling of a key
"""

import json
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="notecraft",
    help="Symbolic music transformation and analysis",
    rich_markup_mode="markdown",
)
console = Console()

# Accepted root spellings -> pitch class
_ROOT_NAMES = {
    "C": 0, "B#": 0, "C#": 1, "DB": 1, "D": 2, "D#": 3, "EB": 3, "E": 4, "FB": 4,
    "F": 5, "E#": 5, "F#": 6, "GB": 6, "G": 7, "G#": 8, "AB": 8, "A": 9,
    "A#": 10, "BB": 10, "B": 11, "CB": 11,
}


@dataclass
class StageTimings:
    """Wall-clock seconds per CLI stage (load, analyze, transform, export)."""

    stages: Dict[str, float] = field(default_factory=dict)
    _current_stage: Optional[str] = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)

    def start(self, stage: str) -> None:
        """Start timing a stage."""
        self._current_stage = stage
        self._start_time = time.perf_counter()

    def stop(self) -> float:
        """Stop timing the current stage, return duration."""
        if self._current_stage is None:
            return 0.0
        duration = time.perf_counter() - self._start_time
        # A stage entered twice accumulates
        self.stages[self._current_stage] = self.stages.get(self._current_stage, 0.0) + duration
        self._current_stage = None
        return duration

    @property
    def total_time(self) -> float:
        return sum(self.stages.values())

    def print_summary(self) -> None:
        """Print timing summary to console."""
        console.print("\n[bold]Timing Summary:[/bold]")
        for stage, duration in self.stages.items():
            console.print(f"  {stage}: {duration:.3f}s")
        console.print(f"  [bold]Total: {self.total_time:.3f}s[/bold]")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "stages": {stage: round(seconds, 3) for stage, seconds in self.stages.items()},
            "total_time": round(self.total_time, 3),
        }


def load_options(config: Optional[Path]):
    """
    Read ConversionOptions from a JSON file.

    Exits with status 1 on a missing file or an invalid option.
    """
    from .core import ConversionOptions

    if config is None:
        return ConversionOptions()
    if not config.exists():
        console.print(f"[red]Error: Config file not found: {config}[/red]")
        raise typer.Exit(1)
    try:
        return ConversionOptions.from_dict(json.loads(config.read_text()))
    except (json.JSONDecodeError, ValueError, TypeError) as e:
        console.print(f"[red]Error: Invalid config {config}: {e}[/red]")
        raise typer.Exit(1)


def parse_root(root: str) -> int:
    """Parse a root given as a name ('F#', 'Eb') or pitch class ('6')."""
    text = root.strip()
    if text.isdigit():
        return int(text) % 12
    key = text[:1].upper() + text[1:].upper()
    if key not in _ROOT_NAMES:
        raise typer.BadParameter(f"Unknown root '{root}'")
    return _ROOT_NAMES[key]


def _load_track(input_file: Path, track: Optional[int]):
    from .input import load_midi

    try:
        return load_midi(str(input_file), track_index=track)
    except (FileNotFoundError, ValueError, IndexError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def analyze(
    input_file: Path = typer.Argument(..., help="Input MIDI file"),
    track: Optional[int] = typer.Option(
        None, "-t", "--track", help="Instrument index (default: merge all)"
    ),
    config: Optional[Path] = typer.Option(
        None, "-c", "--config", help="JSON conversion options (reports processing impact)"
    ),
    exotic: bool = typer.Option(
        False, "--exotic", help="Include pentatonic, blues and other non-diatonic key templates"
    ),
    report: Optional[Path] = typer.Option(
        None, "-r", "--report", help="Write the text report to this file"
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Verbose output"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output results as JSON (for scripting)"
    ),
):
    """Analyze a MIDI track: key, voices, chords and rhythm.

    **Examples:**

        notecraft analyze song.mid

        notecraft analyze song.mid -t 1 --exotic -r report.txt
    """
    from .analysis import TrackAnalyzer, generate_report
    from .inference import voice_label

    timings = StageTimings()
    options = load_options(config) if config is not None else None

    timings.start("load")
    midi_track = _load_track(input_file, track)
    timings.stop()

    timings.start("analyze")
    analysis = TrackAnalyzer(options, include_exotic=exotic).analyze(midi_track)
    timings.stop()

    if report is not None:
        report.parent.mkdir(parents=True, exist_ok=True)
        report.write_text(generate_report(analysis))

    if json_output:
        best = analysis.best_key
        result = {
            "input": str(input_file),
            "track": analysis.track_name,
            "notes_count": analysis.total_notes,
            "ppq": analysis.ppq,
            "tempo": analysis.tempo_bpm,
            "time_signature": analysis.time_signature,
            "voices": analysis.voice_count,
            "grid": analysis.rhythm.grid_type,
            "key": {"name": best.name, "score": best.score} if best else None,
            "chords": [
                {"time": c.formatted_time, "name": c.name, "notes": list(c.constituent_note_names)}
                for c in analysis.chords_sustain
            ],
            "timings": timings.to_dict(),
        }
        console.print_json(data=result)
        return

    console.print(f"\n[bold blue]Track Analysis: {analysis.track_name or input_file.name}[/bold blue]")
    console.print(
        f"  Notes: {analysis.total_notes}, PPQ: {analysis.ppq}, "
        f"Tempo: {analysis.tempo_bpm:.1f} BPM, Meter: {analysis.time_signature}"
    )
    if analysis.total_notes == 0:
        console.print("[yellow]No notes found![/yellow]")
        return

    console.print(f"  Voices: {analysis.voice_count} "
                  f"({', '.join(voice_label(i, analysis.voice_count) for i in range(analysis.voice_count))})")
    console.print(f"  Detected grid: {analysis.rhythm.grid_type} "
                  f"(alignment {analysis.rhythm.grid_alignment:.2f})")

    _show_key_table(analysis.key_groups[:5])
    _show_chords_table(analysis.chords_sustain, "Chords (Sustain)")
    if verbose:
        _show_chords_table(analysis.chords_bucketed, "Chords (Harmonic Rhythm Normalized)")
        timings.print_summary()

    if report is not None:
        console.print(f"\n[green]Report written to {report}[/green]")


@app.command()
def transform(
    input_file: Path = typer.Argument(..., help="Input MIDI file"),
    output: Optional[Path] = typer.Option(
        None, "-o", "--output", help="Output file path (.mid, or .abc for ABC notation)"
    ),
    config: Optional[Path] = typer.Option(
        None, "-c", "--config", help="JSON conversion options"
    ),
    track: Optional[int] = typer.Option(
        None, "-t", "--track", help="Instrument index (default: merge all)"
    ),
    separate_voices: bool = typer.Option(
        False, "--separate-voices", help="Write one instrument per separated voice"
    ),
    verbose: bool = typer.Option(
        False, "-v", "--verbose", help="Verbose output"
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output results as JSON (for scripting)"
    ),
):
    """Run the conversion pipeline and write the result as MIDI or ABC.

    **Examples:**

        notecraft transform song.mid -c options.json -o out.mid

        notecraft transform song.mid -c options.json -o out.abc
    """
    from dataclasses import replace

    from .core import OutputStrategy
    from .output import ABCExporter, MIDIExporter
    from .pipeline import TransformPipeline

    options = load_options(config)
    if separate_voices:
        options = replace(options, output_strategy=OutputStrategy.SEPARATE_VOICES)
    if output is None:
        output = input_file.with_name(f"{input_file.stem}_transformed.mid")

    timings = StageTimings()
    timings.start("load")
    source = _load_track(input_file, track)
    timings.stop()

    timings.start("transform")
    result, stats = TransformPipeline(options).run_track(source, return_stats=True)
    timings.stop()

    timings.start("export")
    if output.suffix.lower() == ".abc":
        ABCExporter.from_options(options).export(result, str(output))
    else:
        exporter = MIDIExporter(strategy=options.output_strategy, voice_options=options.voice_separation)
        exporter.export(result, str(output))
    timings.stop()

    if json_output:
        console.print_json(data={
            "input": str(input_file),
            "output": str(output),
            "notes_in": stats.input_notes,
            "notes_out": stats.output_notes,
            "removed_short_notes": stats.removed_short_notes,
            "removed_overlaps": stats.removed_overlaps,
            "notes_quantized": stats.quantize.notes_shifted,
            "cropped_notes": stats.cropped_notes,
            "timings": timings.to_dict(),
        })
        return

    console.print(f"[blue]Transformed:[/blue] {input_file} -> {output}")
    console.print(f"  Notes: {stats.input_notes} -> {stats.output_notes}")
    if verbose:
        for stage, count in stats.stage_counts.items():
            console.print(f"  {stage}: {count} notes")
        timings.print_summary()
    console.print("[green]Transform complete![/green]")


@app.command()
def spell(
    root: str = typer.Argument(..., help="Key root, e.g. F#, Eb or a pitch class 0-11"),
    mode: str = typer.Option("Major", "-m", "--mode", help="Mode name, e.g. 'Dorian'"),
    spelling: str = typer.Option(
        "auto", "-s", "--spelling", help="Spelling preference: auto/sharp/flat"
    ),
):
    """Show the note spelling of a key."""
    from .core import SpellingPreference
    from .inference import MODE_INTERVALS, ScaleSpeller

    try:
        preference = SpellingPreference(spelling.lower())
    except ValueError:
        console.print(f"[red]Error: Unknown spelling preference '{spelling}'[/red]")
        raise typer.Exit(1)
    if mode not in MODE_INTERVALS:
        console.print(f"[yellow]Unknown mode '{mode}', using 'Major'[/yellow]")

    result = ScaleSpeller(preference).analyze(parse_root(root), mode)

    table = Table(title=f"Key {result.key_label}")
    table.add_column("Pitch class", style="cyan")
    table.add_column("Spelling", style="green")
    table.add_column("Octave offset", style="yellow")
    for pc, spelled in result.scale_map.items():
        table.add_row(str(pc), spelled.name, str(spelled.octave_offset))
    console.print(table)


def _show_key_table(groups: List):
    """Display key candidates in a table."""
    table = Table(title="Key Candidates")
    table.add_column("Key", style="cyan")
    table.add_column("Score", style="green")
    table.add_column("Diatonic", style="yellow")
    table.add_column("Triad", style="yellow")
    table.add_column("Tonic", style="yellow")
    table.add_column("Relatives", style="magenta")

    for group in groups:
        w = group.winner
        table.add_row(
            w.name,
            f"{w.score:.2f}",
            f"{w.diatonic_fit:.2f}",
            f"{w.triad_fit:.2f}",
            f"{w.tonic_fit:.2f}",
            ", ".join(group.relative_names[:3]),
        )

    console.print(table)


def _show_chords_table(chords: List, title: str):
    """Display chord events in a table."""
    table = Table(title=title)
    table.add_column("Time", style="yellow")
    table.add_column("Chord", style="cyan")
    table.add_column("Notes", style="green")
    table.add_column("Alternatives", style="magenta")

    for chord in chords:
        table.add_row(
            chord.formatted_time,
            chord.name,
            ", ".join(chord.constituent_note_names),
            ", ".join(a.name for a in chord.alternatives[:2]),
        )

    console.print(table)


def main():
    """Entry point."""
    app()


if __name__ == "__main__":
    main()

"""Transform pipeline - Fixed-order orchestration of the processing stages.

Stage order:
    1. transpose + resolution change to the output PPQ
    2. short-note filter
    3. quantization (ornaments, measure shift, overlap pruning, shadow grid,
       minimum duration)
    4. time scale
    5. retrograde
    6. melodic inversion
    7. modal remap
    8. range crop

Every stage is a function of the previous stage's notes and the options;
later stages never look at earlier tick positions.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple, Union

from .core import (
    ConversionOptions,
    Note,
    Track,
    note_value_to_ticks,
    round_half_up,
)
from .processing import (
    CleanupConfig,
    NoteCleanup,
    OrnamentDetector,
    QuantizeStats,
    ShadowQuantizer,
    count_ornaments,
    crop_to_range,
    melodic_inversion,
    modal_remap,
    retrograde,
    scale_time,
    transpose_and_normalize,
)


@dataclass
class PipelineStats:
    """Statistics from one pipeline run."""

    input_notes: int = 0
    output_notes: int = 0
    removed_short_notes: int = 0
    ornament_notes: int = 0
    removed_overlaps: int = 0
    truncated_overlaps: int = 0
    quantize: QuantizeStats = field(default_factory=QuantizeStats)
    cropped_notes: int = 0
    stage_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total_removed(self) -> int:
        return self.input_notes - self.output_notes


class TransformPipeline:
    """Run the fixed chain of transforms for one configuration."""

    STAGES = (
        "normalize",
        "filter_short",
        "quantize",
        "time_scale",
        "retrograde",
        "melodic_inversion",
        "modal_remap",
        "crop",
    )

    def __init__(self, options: Optional[ConversionOptions] = None):
        """
        Initialize TransformPipeline.

        Args:
            options: Conversion options (default: everything off)
        """
        self.options = options or ConversionOptions()

    @property
    def ppq(self) -> int:
        return self.options.output_ppq

    def run(
        self,
        notes: List[Note],
        source_ppq: Optional[int] = None,
        return_stats: bool = False,
    ) -> Union[List[Note], Tuple[List[Note], PipelineStats]]:
        """
        Transform a note list.

        Args:
            notes: Source notes
            source_ppq: Resolution of ``notes`` (default: output PPQ)
            return_stats: Whether to return pipeline statistics

        Returns:
            Transformed notes at the output PPQ, optionally with statistics
        """
        source_ppq = source_ppq or self.ppq
        stats = PipelineStats(input_notes=len(notes))

        for name, stage in self._stages(source_ppq, stats):
            notes = _coerce_durations(stage(notes))
            stats.stage_counts[name] = len(notes)

        stats.output_notes = len(notes)
        if return_stats:
            return notes, stats
        return notes

    def run_track(self, track: Track, return_stats: bool = False):
        """Transform a track; the result carries the output tempo, meter and PPQ."""
        result = self.run(track.notes, source_ppq=track.ppq, return_stats=return_stats)
        notes, stats = result if return_stats else (result, None)
        transformed = Track(
            notes=notes,
            ppq=self.ppq,
            tempo_bpm=self.options.tempo,
            time_signature=self.options.time_signature,
            name=track.name,
        )
        if return_stats:
            return transformed, stats
        return transformed

    def _stages(self, source_ppq: int, stats: PipelineStats) -> List[Tuple[str, Callable[[List[Note]], List[Note]]]]:
        opts = self.options
        ts = opts.time_signature
        ppq = self.ppq

        def normalize(notes):
            return transpose_and_normalize(notes, opts.transposition, source_ppq, ppq)

        def filter_short(notes):
            ratio = ppq / source_ppq if source_ppq > 0 else 1.0
            threshold = round_half_up(opts.remove_short_notes_threshold * ratio)
            kept = NoteCleanup().remove_short_notes(notes, threshold)
            stats.removed_short_notes = len(notes) - len(kept)
            return kept

        def quantize(notes):
            return self.quantize(notes, stats)

        def time_scale(notes):
            return scale_time(notes, opts.effective_time_scale)

        def reverse(notes):
            return retrograde(notes, opts.inversion_mode, ppq, ts)

        def invert(notes):
            return melodic_inversion(notes, opts.melodic_inversion, ppq, ts)

        def remap(notes):
            return modal_remap(notes, opts.modal_conversion)

        def crop(notes):
            cropped = crop_to_range(notes, opts.export_range, ppq, ts)
            stats.cropped_notes = len(notes) - len(cropped)
            return cropped

        return list(zip(
            self.STAGES,
            (normalize, filter_short, quantize, time_scale, reverse, invert, remap, crop),
        ))

    def quantize(self, notes: List[Note], stats: Optional[PipelineStats] = None) -> List[Note]:
        """
        Quantization stage: ornaments, measure shift, pruning, shadow grid.

        Args:
            notes: Notes at the output PPQ
            stats: Optional stats record to fill in

        Returns:
            Quantized notes
        """
        opts = self.options
        ppq = self.ppq

        if opts.detect_ornaments:
            notes = OrnamentDetector(ppq).detect(notes)
            if stats is not None:
                stats.ornament_notes = count_ornaments(notes)

        cleanup = NoteCleanup(CleanupConfig(
            shift_to_measure=opts.shift_to_measure,
            prune_overlaps=opts.prune_overlaps,
            prune_threshold_ticks=note_value_to_ticks(opts.prune_threshold, ppq),
            ticks_per_measure=opts.time_signature.ticks_per_measure(ppq),
        ))
        notes, cleanup_stats = cleanup.cleanup(notes, return_stats=True)
        if stats is not None:
            stats.removed_overlaps = cleanup_stats.removed_overlaps
            stats.truncated_overlaps = cleanup_stats.truncated_overlaps

        if not opts.primary_rhythm.enabled:
            return notes

        quantizer = ShadowQuantizer(ppq, opts.primary_rhythm, opts.secondary_rhythm)
        notes, quantize_stats = quantizer.quantize(notes, return_stats=True)
        if stats is not None:
            stats.quantize = quantize_stats

        min_ticks = note_value_to_ticks(opts.quantize_duration_min, ppq)
        if min_ticks > 0:
            notes = [
                n.with_(duration_ticks=min_ticks) if n.duration_ticks < min_ticks else n
                for n in notes
            ]
        return notes


def _coerce_durations(notes: List[Note]) -> List[Note]:
    """Raise zero-length notes to one tick."""
    return [n.with_(duration_ticks=1) if n.duration_ticks < 1 else n for n in notes]


def transform_notes(
    notes: List[Note],
    options: Optional[ConversionOptions] = None,
    source_ppq: Optional[int] = None,
) -> List[Note]:
    """Convenience wrapper around ``TransformPipeline.run``."""
    return TransformPipeline(options).run(notes, source_ppq=source_ppq)

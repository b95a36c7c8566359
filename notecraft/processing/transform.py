"""Track transforms - Pitch and time rewrites applied after quantization.

Every function takes a note list and returns a new one; none of them
mutates its input. Ornament links follow their principal note through
every rewrite. Measure ranges are 1-based and inclusive of the end
measure.
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..core import (
    Note,
    TimeSignature,
    InversionMode,
    MelodicInversionOptions,
    ModalConversionOptions,
    ExportRangeOptions,
    clamp_pitch,
    midi_to_name,
    round_half_up,
)
from .ornaments import follow_principals


# Retrograde segment lengths in beats (quarter notes) or measures
_BEAT_SEGMENTS = {
    InversionMode.ONE_BEAT: 1,
    InversionMode.TWO_BEATS: 2,
}
_MEASURE_SEGMENTS = {
    InversionMode.MEASURE: 1,
    InversionMode.TWO_MEASURES: 2,
    InversionMode.FOUR_MEASURES: 4,
    InversionMode.EIGHT_MEASURES: 8,
}


@dataclass
class InversionStats:
    """What a melodic inversion over a measure range would pivot on."""

    total_notes: int
    anchor_note_name: str
    has_polyphony: bool
    range_start_tick: float
    range_end_tick: float


def measure_range_ticks(
    start_measure: int,
    end_measure: int,
    ppq: int,
    time_signature: TimeSignature,
) -> Tuple[float, float]:
    """Tick span [start, end) of a 1-based, end-inclusive measure range."""
    ticks_per_measure = time_signature.ticks_per_measure(ppq)
    return (start_measure - 1) * ticks_per_measure, end_measure * ticks_per_measure


def transpose_and_normalize(
    notes: List[Note],
    transposition: int,
    source_ppq: int,
    target_ppq: int,
) -> List[Note]:
    """
    Transpose pitches and rescale ticks to a new resolution.

    Args:
        notes: Source notes
        transposition: Semitones to add (result clamped to 0-127)
        source_ppq: Resolution the notes were decoded with
        target_ppq: Output resolution

    Returns:
        New notes at ``target_ppq``
    """
    ratio = target_ppq / source_ppq if source_ppq > 0 and target_ppq > 0 else 1.0
    return follow_principals(
        (n, n.with_(
            pitch=clamp_pitch(n.pitch + transposition),
            onset_ticks=round_half_up(n.onset_ticks * ratio),
            duration_ticks=round_half_up(n.duration_ticks * ratio),
        ))
        for n in notes
    )


def scale_time(notes: List[Note], scale: float) -> List[Note]:
    """Stretch (scale > 1) or compress onsets and durations."""
    if scale == 1 or scale <= 0:
        return list(notes)
    return follow_principals(
        (n, n.with_(
            onset_ticks=round_half_up(n.onset_ticks * scale),
            duration_ticks=round_half_up(n.duration_ticks * scale),
        ))
        for n in notes
    )


def retrograde(
    notes: List[Note],
    mode: InversionMode,
    ppq: int,
    time_signature: TimeSignature,
) -> List[Note]:
    """
    Reverse note order in time.

    ``GLOBAL`` mirrors the whole track so the last note ending becomes the
    first starting. Segment modes mirror each note inside the fixed-length
    window (beat or measure multiples) its onset falls into.
    """
    if mode == InversionMode.OFF or not notes:
        return list(notes)

    if mode == InversionMode.GLOBAL:
        total = max(n.offset_ticks for n in notes)
        return follow_principals((n, n.with_(onset_ticks=max(0, total - n.offset_ticks))) for n in notes)

    if mode in _BEAT_SEGMENTS:
        segment = ppq * _BEAT_SEGMENTS[mode]
    else:
        segment = time_signature.ticks_per_measure(ppq) * _MEASURE_SEGMENTS[mode]
    if segment <= 0:
        return list(notes)

    result = []
    for n in notes:
        index = n.onset_ticks // segment
        window_start = index * segment
        window_end = window_start + segment
        onset = round_half_up(window_start + (window_end - n.offset_ticks))
        result.append((n, n.with_(onset_ticks=max(0, onset))))
    return follow_principals(result)


def _notes_in_range(notes: List[Note], start: float, end: float) -> List[Note]:
    return [n for n in notes if start <= n.onset_ticks < end]


def _anchor(in_range: List[Note]) -> Note:
    """First note of the range; lowest pitch when several start together."""
    return min(in_range, key=lambda n: (n.onset_ticks, n.pitch))


def melodic_inversion_stats(
    notes: List[Note],
    options: MelodicInversionOptions,
    ppq: int,
    time_signature: TimeSignature,
) -> Optional[InversionStats]:
    """
    Describe the anchor and polyphony of a melodic inversion range.

    Returns:
        InversionStats, or None for an empty note list
    """
    if not notes:
        return None

    start, end = measure_range_ticks(options.start_measure, options.end_measure, ppq, time_signature)
    in_range = _notes_in_range(notes, start, end)
    if not in_range:
        return InversionStats(0, "None", False, start, end)

    ordered = sorted(in_range, key=lambda n: (n.onset_ticks, n.pitch))
    has_polyphony = any(a.offset_ticks > b.onset_ticks for a, b in zip(ordered, ordered[1:]))

    return InversionStats(
        total_notes=len(in_range),
        anchor_note_name=midi_to_name(ordered[0].pitch),
        has_polyphony=has_polyphony,
        range_start_tick=start,
        range_end_tick=end,
    )


def melodic_inversion(
    notes: List[Note],
    options: MelodicInversionOptions,
    ppq: int,
    time_signature: TimeSignature,
) -> List[Note]:
    """
    Mirror pitches around the anchor note of a measure range.

    Notes starting inside the range get ``2 * anchor - pitch`` (clamped);
    notes outside are untouched.
    """
    if not options.enabled:
        return list(notes)

    start, end = measure_range_ticks(options.start_measure, options.end_measure, ppq, time_signature)
    in_range = _notes_in_range(notes, start, end)
    if not in_range:
        return list(notes)

    anchor = _anchor(in_range).pitch
    return follow_principals(
        (n, n.with_(pitch=clamp_pitch(2 * anchor - n.pitch)) if start <= n.onset_ticks < end else n)
        for n in notes
    )


def modal_remap(notes: List[Note], options: ModalConversionOptions) -> List[Note]:
    """
    Move scale degrees to new intervals above the modal root.

    E.g. mapping 4 -> 3 with root C turns every E into an Eb in the same
    octave.
    """
    if not options.enabled or not options.mappings:
        return list(notes)

    result = []
    for n in notes:
        source = (n.pitch_class - options.root) % 12
        target = options.mappings.get(source)
        if target is None:
            result.append((n, n))
        else:
            result.append((n, n.with_(pitch=clamp_pitch(n.pitch - source + target))))
    return follow_principals(result)


def crop_to_range(
    notes: List[Note],
    options: ExportRangeOptions,
    ppq: int,
    time_signature: TimeSignature,
) -> List[Note]:
    """
    Keep notes sounding inside a measure range and re-base them to zero.

    A note that starts before the range but rings into it is kept, starting
    at tick 0 with the part before the range cut off.
    """
    if not options.enabled:
        return list(notes)

    start, end = measure_range_ticks(options.start_measure, options.end_measure, ppq, time_signature)
    cropped = []
    for n in notes:
        if n.offset_ticks <= start or n.onset_ticks >= end:
            continue
        onset = round_half_up(n.onset_ticks - start)
        duration = n.duration_ticks
        if onset < 0:
            duration += onset
            onset = 0
        cropped.append((n, n.with_(onset_ticks=onset, duration_ticks=duration)))
    return follow_principals(cropped)

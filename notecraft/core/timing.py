"""Tick arithmetic shared by the quantizer, chord detector and transforms."""

import math
import warnings
from typing import Optional

from .constants import NOTE_VALUE_MULTIPLIERS


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from minus infinity.

    Python's ``round`` uses banker's rounding, which would make 0.5-tick
    positions snap in alternating directions.
    """
    return int(math.floor(value + 0.5))


def note_value_to_ticks(note_value: Optional[str], ppq: int) -> int:
    """
    Convert a note value string to a tick quantum.

    Args:
        note_value: Value such as "1/16", "1/8t" (triplet) or "1/16q"
            (quintuplet). "off" or None disables the grid.
        ppq: Ticks per quarter note

    Returns:
        Quantum in ticks, 0 when disabled or unknown
    """
    if not note_value or note_value == "off" or ppq <= 0:
        return 0
    multiplier = NOTE_VALUE_MULTIPLIERS.get(note_value)
    if multiplier is None:
        warnings.warn(f"Unknown note value {note_value!r}, treating as off")
        return 0
    return round_half_up(ppq * multiplier)


def snap(ticks: float, quantum: int) -> int:
    """Snap a tick position to the nearest multiple of ``quantum``."""
    if quantum <= 0:
        return round_half_up(ticks)
    return round_half_up(ticks / quantum) * quantum


def measure_of(ticks: float, ticks_per_measure: float) -> int:
    """1-based measure number containing ``ticks``."""
    if ticks_per_measure <= 0:
        return 1
    return int(math.floor(ticks / ticks_per_measure)) + 1


def format_time(ticks: float, ppq: int, numerator: int, denominator: int) -> str:
    """
    Format a tick position as measure and beat.

    Returns:
        String such as "Meas 3 | Beat 2.50" (measure and beat are 1-based,
        the fractional part is the position within the beat)
    """
    ticks_per_beat = ppq * (4 / denominator) if denominator > 0 else float(ppq)
    ticks_per_measure = ticks_per_beat * numerator
    if ticks_per_beat <= 0 or ticks_per_measure <= 0:
        return "Meas 1 | Beat 1.00"

    measure = measure_of(ticks, ticks_per_measure)
    ticks_in_measure = ticks % ticks_per_measure
    beat = int(math.floor(ticks_in_measure / ticks_per_beat)) + 1
    fraction = (ticks_in_measure % ticks_per_beat) / ticks_per_beat
    sub = f"{fraction:.2f}"[1:]
    return f"Meas {measure} | Beat {beat}{sub}"

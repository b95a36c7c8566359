"""Processing layer - Note-level rewrites.

This layer reshapes note lists before and after analysis:
- Ornament tagging (trills, turns, mordents, grace notes)
- Note cleanup (short notes, overlaps, measure alignment)
- Shadow grid quantization (primary vs. secondary grid)
- Track transforms (transpose, time scale, retrograde, inversion, crop)
"""

from .ornaments import (
    OrnamentDetector,
    OrnamentType,
    OrnamentGroup,
    count_ornaments,
    follow_principals,
)
from .cleanup import NoteCleanup, CleanupConfig, CleanupStats
from .quantize import (
    ShadowQuantizer,
    ShadowAnalysis,
    GridCandidate,
    GridConfidence,
    QuantizeStats,
    quantize_notes,
)
from .transform import (
    InversionStats,
    transpose_and_normalize,
    scale_time,
    retrograde,
    melodic_inversion,
    melodic_inversion_stats,
    modal_remap,
    crop_to_range,
    measure_range_ticks,
)

__all__ = [
    # Ornaments
    "OrnamentDetector",
    "OrnamentType",
    "OrnamentGroup",
    "count_ornaments",
    "follow_principals",
    # Cleanup
    "NoteCleanup",
    "CleanupConfig",
    "CleanupStats",
    # Quantization
    "ShadowQuantizer",
    "ShadowAnalysis",
    "GridCandidate",
    "GridConfidence",
    "QuantizeStats",
    "quantize_notes",
    # Transforms
    "InversionStats",
    "transpose_and_normalize",
    "scale_time",
    "retrograde",
    "melodic_inversion",
    "melodic_inversion_stats",
    "modal_remap",
    "crop_to_range",
    "measure_range_ticks",
]

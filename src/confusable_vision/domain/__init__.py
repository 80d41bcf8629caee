"""Domain models for confusable_vision.

This module contains the models that flow through the scoring pipeline:
font descriptors, renders, decoded and normalised images, and the work
items and results exchanged with worker processes. All models are:

- Immutable where possible (using frozen dataclasses)
- Serializable for inter-process communication (parallel processing)
- Independent of Pillow and fonttools implementation details

Key classes:
- FontDescriptor: A font face known to the registry
- GlyphRender: A PNG render of a character or sequence
- InkBounds: Bounding box of the ink in an image
- DecodedImage: Greyscale samples of a render plus ink bounds
- NormalizedImage: Canonical image ready for scoring
- WorkItem / WorkResult: Units of dispatch and return in the worker pool
- ScoreRow: One output row per (pair, font)
"""

from confusable_vision.domain.font import FontCategory, FontDescriptor
from confusable_vision.domain.image import (
    DecodedImage,
    GlyphRender,
    InkBounds,
    NormalizedImage,
)
from confusable_vision.domain.work import (
    ConfusablePair,
    FilterReason,
    PairSummary,
    ScoreRequest,
    ScoreRow,
    WorkItem,
    WorkResult,
)

__all__: list[str] = [
    # Enums
    "FontCategory",
    "FilterReason",
    # Core types
    "FontDescriptor",
    "GlyphRender",
    "InkBounds",
    "DecodedImage",
    "NormalizedImage",
    "ConfusablePair",
    "ScoreRequest",
    "WorkItem",
    "WorkResult",
    "ScoreRow",
    "PairSummary",
]

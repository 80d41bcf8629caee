"""Core scoring pipeline for confusable_vision.

This module contains the pipeline stages:

- Rendering characters and sequences with Pillow
- Greyscale normalisation (ink bounds, joint crop and scale)
- Structural similarity, as two interchangeable implementations
- Perceptual hashing and the filter policy
- Parallel batch scoring and result reassembly
- Per-pair summaries and validation gates

Workers only receive self-contained work items, so every stage below the
coordinator is safe to run in a separate process.

Key functions:
- normalise_image / normalise_pair: Canonical images for scoring
- ssim_grey / ssim_reference: SSIM strategies
- score_batch: Score (pair x font) combinations in input order

Key classes:
- GlyphRenderer: Renders text and detects missing glyphs
- FilterPolicy: Ink-coverage, width-ratio and pHash filters
- BatchScorer: Parallel scoring coordinator
"""

from confusable_vision.core.filters import FilterPolicy, width_ratio
from confusable_vision.core.normalizer import (
    bicubic_resize,
    decode_and_find_bounds,
    find_ink_bounds,
    get_ink_width,
    ink_coverage,
    normalise_decoded,
    normalise_image,
    normalise_pair,
    normalise_pair_decoded,
)
from confusable_vision.core.phash import average_hash, phash_similarity
from confusable_vision.core.processor import (
    BatchScorer,
    build_requests,
    reassemble,
    score_batch,
    score_work_batch,
    score_work_item,
)
from confusable_vision.core.renderer import GlyphRenderer, detect_fallback, looks_like_box, touches_canvas_edge
from confusable_vision.core.similarity import (
    SSIM_STRATEGIES,
    SsimStrategy,
    compute_ssim,
    get_ssim_strategy,
    ssim_grey,
    ssim_reference,
)
from confusable_vision.core.summary import score_distribution, summarize_rows
from confusable_vision.core.validation import GateResult, run_validation

__all__ = [
    # Processor
    "BatchScorer",
    "build_requests",
    "reassemble",
    "score_batch",
    "score_work_batch",
    "score_work_item",
    # Renderer
    "GlyphRenderer",
    "detect_fallback",
    "looks_like_box",
    "touches_canvas_edge",
    # Normalizer
    "bicubic_resize",
    "decode_and_find_bounds",
    "find_ink_bounds",
    "get_ink_width",
    "ink_coverage",
    "normalise_decoded",
    "normalise_image",
    "normalise_pair",
    "normalise_pair_decoded",
    # Similarity
    "SSIM_STRATEGIES",
    "SsimStrategy",
    "compute_ssim",
    "get_ssim_strategy",
    "ssim_grey",
    "ssim_reference",
    # Filters
    "FilterPolicy",
    "average_hash",
    "phash_similarity",
    "width_ratio",
    # Reporting
    "GateResult",
    "run_validation",
    "score_distribution",
    "summarize_rows",
]

"""Validation gates for the scoring pipeline.

The gates pin down behaviour that must hold on real fonts:

- "rn" against "m" scores above 0.75 in at least one font of the Arial
  metric family (Arial, Helvetica, Liberation Sans); skipped when none is
  installed; other sans faces such as DejaVu Sans score lower
- mismatched footprints ("ww"/"n", "mm"/"n", "aa"/"m") are filtered or
  score below 0.5 in every font
- both SSIM implementations agree within 0.005 on every scored pair
"""

from collections.abc import Sequence
from dataclasses import dataclass

import structlog

from confusable_vision.core.normalizer import normalise_pair
from confusable_vision.core.processor import BatchScorer
from confusable_vision.core.similarity import STRATEGY_TOLERANCE, ssim_grey, ssim_reference
from confusable_vision.domain import ConfusablePair, FontDescriptor, NormalizedImage, ScoreRow

logger = structlog.get_logger("confusable_vision.validation")

POSITIVE_PAIR = ConfusablePair("rn", "m")
POSITIVE_MIN_SCORE = 0.75
POSITIVE_GATE_FAMILIES = ("Arial", "Helvetica", "Liberation Sans")
NEGATIVE_PAIRS = (
    ConfusablePair("ww", "n"),
    ConfusablePair("mm", "n"),
    ConfusablePair("aa", "m"),
)
NEGATIVE_MAX_SCORE = 0.5


@dataclass(frozen=True)
class GateResult:
    """Outcome of one validation gate.

    Attributes:
        name: Short gate name
        passed: Whether the gate holds
        value: Measured value the gate was judged on, if any
        detail: Human-readable explanation
        skipped: True when no font the gate applies to was available
    """

    name: str
    passed: bool
    value: float | None
    detail: str
    skipped: bool = False


def check_positive(rows: Sequence[ScoreRow], pair: ConfusablePair = POSITIVE_PAIR) -> GateResult:
    """Check that the best unfiltered score of ``pair`` exceeds the gate."""
    scores = [row.score for row in rows if not row.filtered and row.score is not None]
    name = f"{pair.source}/{pair.target}"
    if not scores:
        return GateResult(name, False, None, "no font produced a score")

    best = max(scores)
    best_font = next(row.font_family for row in rows if row.score == best)
    return GateResult(
        name,
        best > POSITIVE_MIN_SCORE,
        best,
        f"max {best:.4f} in {best_font} (needs > {POSITIVE_MIN_SCORE})",
    )


def skipped_gate(pair: ConfusablePair = POSITIVE_PAIR) -> GateResult:
    """Result for the positive gate when no gate font is available."""
    families = ", ".join(POSITIVE_GATE_FAMILIES)
    return GateResult(
        f"{pair.source}/{pair.target}",
        True,
        None,
        f"skipped: needs one of {families}",
        skipped=True,
    )


def check_negative(rows: Sequence[ScoreRow], pair: ConfusablePair) -> GateResult:
    """Check that every row of a negative control is filtered or scores low."""
    name = f"{pair.source}/{pair.target}"
    offending = [
        row for row in rows if not row.filtered and row.score is not None and row.score >= NEGATIVE_MAX_SCORE
    ]
    scored = [row.score for row in rows if not row.filtered and row.score is not None]
    worst = max(scored) if scored else None

    if offending:
        fonts = ", ".join(row.font_family for row in offending)
        return GateResult(name, False, worst, f"unfiltered score >= {NEGATIVE_MAX_SCORE} in {fonts}")

    filtered = sum(1 for row in rows if row.filtered)
    return GateResult(name, True, worst, f"{filtered} filtered, {len(scored)} scored below {NEGATIVE_MAX_SCORE}")


def max_strategy_delta(images: Sequence[tuple[NormalizedImage, NormalizedImage]]) -> float:
    """Largest absolute difference between the two SSIM implementations."""
    return max(
        (abs(ssim_grey(a, b) - ssim_reference(a, b)) for a, b in images),
        default=0.0,
    )


def check_strategy_agreement(
    scorer: BatchScorer,
    pairs: Sequence[ConfusablePair],
    fonts: Sequence[FontDescriptor],
) -> GateResult:
    """Render pairs, normalise them and compare both SSIM implementations."""
    normalize = scorer.settings.normalize
    images: list[tuple[NormalizedImage, NormalizedImage]] = []
    for pair in pairs:
        for font in fonts:
            render_a = scorer.renderer.render(pair.source, font.family)
            render_b = scorer.renderer.render(pair.target, font.family)
            if render_a is None or render_b is None:
                continue
            images.append(
                normalise_pair(
                    render_a.image_bytes,
                    render_b.image_bytes,
                    target_size=normalize.target_size,
                    threshold=normalize.ink_threshold,
                    margin=normalize.crop_margin,
                )
            )

    if not images:
        return GateResult("ssim-agreement", False, None, "no renderable pairs")

    delta = max_strategy_delta(images)
    return GateResult(
        "ssim-agreement",
        delta < STRATEGY_TOLERANCE,
        delta,
        f"max delta {delta:.6f} over {len(images)} pairs (needs < {STRATEGY_TOLERANCE})",
    )


def run_validation(
    scorer: BatchScorer,
    fonts: Sequence[FontDescriptor] | None = None,
) -> list[GateResult]:
    """Run every validation gate.

    The negative controls and the SSIM agreement gate run on every font.
    The positive "rn"/"m" gate only counts fonts in POSITIVE_GATE_FAMILIES
    and is reported as skipped when none of them is among ``fonts``.

    Args:
        scorer: Configured batch scorer
        fonts: Fonts to test (available standard fonts if None)

    Returns:
        One result per gate
    """
    if fonts is None:
        fonts = [font for font in scorer.registry.available_fonts() if font.is_standard]

    pairs = [POSITIVE_PAIR, *NEGATIVE_PAIRS]
    rows = scorer.score_pairs(pairs, fonts=fonts)

    positive_rows = [
        row for row in rows if row.pair_index == 0 and row.font_family in POSITIVE_GATE_FAMILIES
    ]
    if any(font.family in POSITIVE_GATE_FAMILIES for font in fonts):
        results = [check_positive(positive_rows, POSITIVE_PAIR)]
    else:
        results = [skipped_gate(POSITIVE_PAIR)]
    for index, pair in enumerate(NEGATIVE_PAIRS, start=1):
        results.append(check_negative([row for row in rows if row.pair_index == index], pair))
    results.append(check_strategy_agreement(scorer, pairs, fonts))

    for result in results:
        logger.info(
            "Validation gate",
            gate=result.name,
            passed=result.passed,
            skipped=result.skipped,
            value=result.value,
        )
    return results

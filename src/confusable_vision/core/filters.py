"""Filter policy for degenerate or structurally incomparable pairs.

A filtered pair is reported with a reason and no score, so a near-blank
render or a pair with wildly different footprints can never surface as a
high-confidence match.
"""

from confusable_vision.config import FilterConfig
from confusable_vision.core.normalizer import INK_THRESHOLD, ink_coverage
from confusable_vision.domain import FilterReason, NormalizedImage


def width_ratio(width_a: int | None, width_b: int | None) -> float | None:
    """Return ``max / min`` of two ink widths, or None if either is missing."""
    if not width_a or not width_b:
        return None
    return max(width_a, width_b) / min(width_a, width_b)


class FilterPolicy:
    """Decides whether a pair is a valid confusable candidate.

    Example:
        policy = FilterPolicy(FilterConfig(width_ratio_max=1.5))
        reason = policy.check_width(decoded_a.ink_width, decoded_b.ink_width)
    """

    def __init__(self, config: FilterConfig | None = None, ink_threshold: int = INK_THRESHOLD) -> None:
        """Initialize the policy.

        Args:
            config: Filter thresholds (defaults if None)
            ink_threshold: Background threshold used when measuring ink
        """
        self.config = config or FilterConfig()
        self.ink_threshold = ink_threshold

    def check_width(self, width_a: int | None, width_b: int | None) -> FilterReason:
        """Apply the width-ratio rule to the raw ink widths.

        Blank sides are left to the ink-coverage rule.
        """
        ratio = width_ratio(width_a, width_b)
        if ratio is not None and ratio > self.config.width_ratio_max:
            return FilterReason.WIDTH_RATIO
        return FilterReason.NONE

    def check_ink(
        self,
        image_a: NormalizedImage,
        image_b: NormalizedImage,
        minimum: float | None = None,
    ) -> FilterReason:
        """Apply the ink-coverage rule to a normalised pair.

        Args:
            image_a: First normalised image
            image_b: Second normalised image
            minimum: Override for the configured minimum coverage
        """
        floor = self.config.ink_coverage_min if minimum is None else minimum
        if (
            ink_coverage(image_a, self.ink_threshold) < floor
            or ink_coverage(image_b, self.ink_threshold) < floor
        ):
            return FilterReason.LOW_INK
        return FilterReason.NONE

    def check_phash(self, similarity: float | None) -> FilterReason:
        """Apply the optional perceptual-hash prefilter."""
        minimum = self.config.phash_prefilter_min
        if minimum is not None and similarity is not None and similarity < minimum:
            return FilterReason.PHASH
        return FilterReason.NONE

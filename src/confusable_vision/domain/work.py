"""Scoring requests, work units and results.

A scoring request names a confusable pair and the fonts to try it in. The
coordinator expands requests into one work item per (pair, font) and ships
each item to a worker. Workers answer with a result carrying the same
``idx`` so the coordinator can restore submission order.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from confusable_vision.domain.font import FontDescriptor
from confusable_vision.domain.image import DecodedImage


class FilterReason(str, Enum):
    """Why a (pair, font) combination was not reported as a plain score."""

    NONE = "none"
    LOW_INK = "low_ink"
    WIDTH_RATIO = "width_ratio"
    NO_RENDER = "no_render"
    PHASH = "phash"
    ERROR = "error"


@dataclass(frozen=True)
class ConfusablePair:
    """A source character or sequence and the single character it may imitate.

    Attributes:
        source: Character or short sequence (e.g., "rn")
        target: Single target character (e.g., "m")
    """

    source: str
    target: str

    def __post_init__(self) -> None:
        if not self.source:
            raise ValueError("Confusable pair source must not be empty")
        if len(self.target) != 1:
            raise ValueError(f"Confusable pair target must be one character, got {self.target!r}")

    @property
    def is_multichar(self) -> bool:
        """Check whether the source is a sequence of several characters."""
        return len(self.source) > 1

    def to_dict(self) -> dict[str, str]:
        """Serialize to dictionary."""
        return {"source": self.source, "target": self.target}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "ConfusablePair":
        """Deserialize from dictionary."""
        return cls(source=data["source"], target=data["target"])


@dataclass(frozen=True)
class ScoreRequest:
    """One confusable pair to score in a list of fonts.

    Attributes:
        pair_index: Caller's index for the pair
        source: Source character or sequence
        target: Target character
        fonts: Fonts to render both sides in
    """

    pair_index: int
    source: str
    target: str
    fonts: tuple[FontDescriptor, ...] = ()

    @property
    def pair(self) -> ConfusablePair:
        """Return the request as a confusable pair."""
        return ConfusablePair(self.source, self.target)


@dataclass(frozen=True)
class WorkItem:
    """A self-contained unit of scoring work.

    Pixels are decoded before dispatch so that a worker needs nothing
    beyond the item itself.

    Attributes:
        idx: Position of the item in the submitted sequence
        image_a: Decoded source render with ink bounds
        image_b: Decoded target render with ink bounds
        ink_coverage_min: Minimum normalised ink fraction for each side
    """

    idx: int
    image_a: DecodedImage
    image_b: DecodedImage
    ink_coverage_min: float

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for IPC."""
        return {
            "idx": self.idx,
            "image_a": self.image_a.to_dict(),
            "image_b": self.image_b.to_dict(),
            "ink_coverage_min": self.ink_coverage_min,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkItem":
        """Deserialize from dictionary."""
        return cls(
            idx=data["idx"],
            image_a=DecodedImage.from_dict(data["image_a"]),
            image_b=DecodedImage.from_dict(data["image_b"]),
            ink_coverage_min=data["ink_coverage_min"],
        )


@dataclass(frozen=True)
class WorkResult:
    """Outcome of one work item.

    Attributes:
        idx: Copied from the originating WorkItem
        score: SSIM in [0, 1], or None when filtered or failed
        filter_reason: Why no plain score is reported
        phash: Perceptual-hash similarity of the normalised pair
        error: Failure message when ``filter_reason`` is ERROR
        duration_ms: Worker time spent on the item
    """

    idx: int
    score: float | None
    filter_reason: FilterReason = FilterReason.NONE
    phash: float | None = None
    error: str | None = None
    duration_ms: float = 0.0

    @property
    def skipped_for_ink(self) -> bool:
        """Check whether the ink-coverage filter rejected the item."""
        return self.filter_reason == FilterReason.LOW_INK

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for IPC."""
        return {
            "idx": self.idx,
            "score": self.score,
            "filter_reason": self.filter_reason.value,
            "phash": self.phash,
            "error": self.error,
            "duration_ms": self.duration_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkResult":
        """Deserialize from dictionary."""
        return cls(
            idx=data["idx"],
            score=data["score"],
            filter_reason=FilterReason(data.get("filter_reason", "none")),
            phash=data.get("phash"),
            error=data.get("error"),
            duration_ms=data.get("duration_ms", 0.0),
        )


@dataclass(frozen=True)
class ScoreRow:
    """One output row: a pair scored (or filtered) in one font.

    Attributes:
        pair_index: Caller's index for the pair
        source: Source character or sequence
        target: Target character
        font_family: Font both sides were rendered in
        score: SSIM in [0, 1], absent when filtered
        filter_reason: Why the row is filtered, NONE otherwise
        phash: Perceptual-hash similarity, when computed
        error: Failure message for ERROR rows
    """

    pair_index: int
    source: str
    target: str
    font_family: str
    score: float | None
    filter_reason: FilterReason = FilterReason.NONE
    phash: float | None = None
    error: str | None = None

    @property
    def filtered(self) -> bool:
        """Check whether the row carries no usable score."""
        return self.filter_reason != FilterReason.NONE

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dictionary."""
        data: dict[str, Any] = {
            "pair_index": self.pair_index,
            "source": self.source,
            "target": self.target,
            "font_family": self.font_family,
            "score": self.score,
            "filtered": self.filtered,
            "filter_reason": self.filter_reason.value,
            "phash": self.phash,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class PairSummary:
    """Aggregate of all rows for one confusable pair.

    Attributes:
        pair_index: Caller's index for the pair
        source: Source character or sequence
        target: Target character
        mean_score: Mean SSIM over unfiltered rows, None if there are none
        max_score: Best SSIM over unfiltered rows
        mean_phash: Mean pHash similarity over rows that have one
        valid_font_count: Number of unfiltered rows
        filtered_counts: Number of filtered rows per reason
    """

    pair_index: int
    source: str
    target: str
    mean_score: float | None = None
    max_score: float | None = None
    mean_phash: float | None = None
    valid_font_count: int = 0
    filtered_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dictionary."""
        return {
            "pair_index": self.pair_index,
            "source": self.source,
            "target": self.target,
            "mean_score": self.mean_score,
            "max_score": self.max_score,
            "mean_phash": self.mean_phash,
            "valid_font_count": self.valid_font_count,
            "filtered_counts": dict(self.filtered_counts),
        }

"""Per-pair aggregation of scored rows."""

from collections import Counter
from collections.abc import Iterable

from confusable_vision.domain import PairSummary, ScoreRow

HIGH_SCORE = 0.7
LOW_SCORE = 0.3


def summarize_rows(rows: Iterable[ScoreRow]) -> list[PairSummary]:
    """Aggregate rows into one summary per pair, ordered by pair index.

    Args:
        rows: Rows from a scoring batch

    Returns:
        Pair summaries with mean/max SSIM over unfiltered rows
    """
    grouped: dict[int, list[ScoreRow]] = {}
    for row in rows:
        grouped.setdefault(row.pair_index, []).append(row)

    summaries: list[PairSummary] = []
    for pair_index in sorted(grouped):
        pair_rows = grouped[pair_index]
        scores = [row.score for row in pair_rows if not row.filtered and row.score is not None]
        phashes = [row.phash for row in pair_rows if row.phash is not None]
        filtered = Counter(row.filter_reason.value for row in pair_rows if row.filtered)

        summaries.append(
            PairSummary(
                pair_index=pair_index,
                source=pair_rows[0].source,
                target=pair_rows[0].target,
                mean_score=sum(scores) / len(scores) if scores else None,
                max_score=max(scores) if scores else None,
                mean_phash=sum(phashes) / len(phashes) if phashes else None,
                valid_font_count=len(scores),
                filtered_counts=dict(filtered),
            )
        )
    return summaries


def score_distribution(summaries: Iterable[PairSummary]) -> dict[str, int]:
    """Bucket pairs by mean SSIM: high (>= 0.7), medium, low (< 0.3), no data."""
    buckets = {"high": 0, "medium": 0, "low": 0, "no_data": 0}
    for summary in summaries:
        score = summary.mean_score
        if score is None:
            buckets["no_data"] += 1
        elif score >= HIGH_SCORE:
            buckets["high"] += 1
        elif score >= LOW_SCORE:
            buckets["medium"] += 1
        else:
            buckets["low"] += 1
    return buckets

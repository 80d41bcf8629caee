"""Parallel scoring coordination.

This module turns (pair x font) combinations into self-contained work items,
scores them on a fixed pool of workers and puts the results back into
submission order.

Key components:
- score_work_item: Joint normalisation, filtering and SSIM for one item
- score_work_batch: Top-level picklable function run by worker processes
- reassemble: Restores submission order and checks result integrity
- BatchScorer: Renders, decodes, dispatches and collects a batch
- score_batch: Convenience wrapper around BatchScorer
"""

import os
import time
import traceback
from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import Executor, ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from typing import Any

from confusable_vision.config import (
    ConfusableVisionSettings,
    ExecutorKind,
    FilterConfig,
    NormalizeConfig,
)
from confusable_vision.core.filters import FilterPolicy
from confusable_vision.core.normalizer import decode_and_find_bounds, normalise_pair_decoded
from confusable_vision.core.phash import average_hash, phash_similarity
from confusable_vision.core.renderer import GlyphRenderer
from confusable_vision.core.similarity import SsimStrategy, get_ssim_strategy
from confusable_vision.domain import (
    ConfusablePair,
    DecodedImage,
    FilterReason,
    FontDescriptor,
    ScoreRequest,
    ScoreRow,
    WorkItem,
    WorkResult,
)
from confusable_vision.exceptions import (
    DecodeError,
    FontError,
    IntegrityViolationError,
)
from confusable_vision.io.fonts import FontRegistry
from confusable_vision.utils import ScoringLogger, ScoringStats, configure_logging

ExecutorFactory = Callable[[int], Executor]
ProgressCallback = Callable[[int, int], None]


def score_work_item(
    item: WorkItem,
    normalize: NormalizeConfig,
    policy: FilterPolicy,
    strategy: SsimStrategy,
) -> WorkResult:
    """Normalise, filter and score one work item.

    Filters run cheapest first: width ratio on the raw ink boxes, ink
    coverage on the normalised pair, then the optional pHash prefilter.

    Args:
        item: Work item with both decoded renders
        normalize: Normalisation settings
        policy: Filter policy
        strategy: SSIM implementation

    Returns:
        Result carrying the item's idx
    """
    start_time = time.time()

    def finish(
        score: float | None,
        reason: FilterReason,
        phash: float | None = None,
    ) -> WorkResult:
        return WorkResult(
            idx=item.idx,
            score=score,
            filter_reason=reason,
            phash=phash,
            duration_ms=(time.time() - start_time) * 1000,
        )

    reason = policy.check_width(item.image_a.ink_width, item.image_b.ink_width)
    if reason != FilterReason.NONE:
        return finish(None, reason)

    norm_a, norm_b = normalise_pair_decoded(
        item.image_a,
        item.image_b,
        target_size=normalize.target_size,
        margin=normalize.crop_margin,
    )

    reason = policy.check_ink(norm_a, norm_b, minimum=item.ink_coverage_min)
    if reason != FilterReason.NONE:
        return finish(None, reason)

    phash = phash_similarity(average_hash(norm_a), average_hash(norm_b))
    reason = policy.check_phash(phash)
    if reason != FilterReason.NONE:
        return finish(None, reason, phash)

    return finish(strategy(norm_a, norm_b), FilterReason.NONE, phash)


def score_work_batch(
    item_dicts: list[dict[str, Any]],
    config_dict: dict[str, Any],
) -> list[dict[str, Any]]:
    """Score a chunk of work items.

    Top-level function designed to be picklable for use with
    ProcessPoolExecutor. A failing item is reported as an ERROR result and
    does not affect the rest of the chunk.

    Args:
        item_dicts: Serialized work items (from WorkItem.to_dict())
        config_dict: {"normalize": ..., "filters": ..., "ssim_method": ...}

    Returns:
        Serialized results, one per item. Error results also carry a
        "traceback" key.
    """
    normalize = NormalizeConfig(**config_dict["normalize"])
    policy = FilterPolicy(FilterConfig(**config_dict["filters"]), normalize.ink_threshold)
    strategy = get_ssim_strategy(config_dict["ssim_method"])

    results: list[dict[str, Any]] = []
    for item_dict in item_dicts:
        start_time = time.time()
        try:
            item = WorkItem.from_dict(item_dict)
            results.append(score_work_item(item, normalize, policy, strategy).to_dict())
        except Exception as e:
            result = WorkResult(
                idx=item_dict.get("idx", -1),
                score=None,
                filter_reason=FilterReason.ERROR,
                error=str(e),
                duration_ms=(time.time() - start_time) * 1000,
            ).to_dict()
            result["traceback"] = traceback.format_exc()
            results.append(result)
    return results


def reassemble(results: Iterable[WorkResult], expected: Sequence[int]) -> list[WorkResult]:
    """Order results to match the submitted idx sequence.

    Args:
        results: Results in any order
        expected: Submitted idx values, in submission order

    Returns:
        One result per expected idx, in submission order

    Raises:
        IntegrityViolationError: If any idx is missing, duplicated or unknown
    """
    by_idx: dict[int, WorkResult] = {}
    counts: Counter[int] = Counter()
    for result in results:
        counts[result.idx] += 1
        by_idx[result.idx] = result

    expected_set = set(expected)
    missing = [idx for idx in expected if idx not in by_idx]
    duplicated = sorted(idx for idx, count in counts.items() if count > 1)
    unexpected = sorted(idx for idx in counts if idx not in expected_set)

    if missing or duplicated or unexpected:
        raise IntegrityViolationError(missing, duplicated, unexpected)

    return [by_idx[idx] for idx in expected]


def resolve_max_workers(configured: int | None) -> int:
    """Return the configured pool size, or one less than the CPU count."""
    if configured is not None:
        return configured
    return max(1, (os.cpu_count() or 2) - 1)


def default_executor_factory(kind: ExecutorKind) -> ExecutorFactory:
    """Return a factory for the configured kind of worker pool."""
    if kind == ExecutorKind.THREAD:
        return lambda workers: ThreadPoolExecutor(max_workers=workers)
    return lambda workers: ProcessPoolExecutor(max_workers=workers)


def build_requests(
    pairs: Sequence[ConfusablePair],
    registry: FontRegistry,
    fonts: Sequence[FontDescriptor] | None = None,
) -> list[ScoreRequest]:
    """Expand confusable pairs into score requests.

    With explicit ``fonts`` every pair is tried in all of them. Otherwise a
    pair is tried in every available standard font plus every specialized
    font covering both sides; when that leaves nothing, a fallback font for
    the target character is used if one is known.

    Args:
        pairs: Confusable pairs, in caller order
        registry: Font registry
        fonts: Fonts to use for every pair (None = choose per pair)

    Returns:
        One request per pair, ``pair_index`` being the position in ``pairs``
    """
    requests: list[ScoreRequest] = []
    for index, pair in enumerate(pairs):
        if fonts is not None:
            chosen = tuple(fonts)
        else:
            text = pair.source + pair.target
            chosen = tuple(
                font
                for font in registry.available_fonts()
                if font.is_standard or registry.covers(font.family, text)
            )
            if not chosen:
                fallback = registry.discover_fallback(ord(pair.target))
                if fallback is not None:
                    chosen = (fallback,)
        requests.append(
            ScoreRequest(pair_index=index, source=pair.source, target=pair.target, fonts=chosen)
        )
    return requests


class BatchScorer:
    """Coordinates rendering, dispatch and reassembly for scoring batches.

    Manages the complete workflow:
    1. Expand requests into one output row per (pair, font)
    2. Render and decode each distinct (text, font) once
    3. Resolve no-render and failed renders directly into rows
    4. Score the remaining work items in parallel chunks
    5. Reassemble results by idx and build rows in input order

    Example:
        settings = ConfusableVisionSettings()
        scorer = BatchScorer(settings)
        rows = scorer.score_pairs([ConfusablePair("rn", "m")])
    """

    def __init__(
        self,
        settings: ConfusableVisionSettings | None = None,
        registry: FontRegistry | None = None,
        renderer: GlyphRenderer | None = None,
        executor_factory: ExecutorFactory | None = None,
    ) -> None:
        """Initialize the scorer.

        Args:
            settings: Application settings (defaults if None)
            registry: Font registry (built from settings if None)
            renderer: Glyph renderer (built around the registry if None)
            executor_factory: Callable creating a worker pool for a given
                number of workers (from settings if None)
        """
        self.settings = settings or ConfusableVisionSettings()
        self.logger = configure_logging(
            log_file=self.settings.logging.log_file,
            console_level=self.settings.logging.log_level,
            file_level=self.settings.logging.file_log_level,
            quiet=False,
        )
        if registry is None:
            registry = FontRegistry.from_config(self.settings.fonts)
        self.registry = registry
        self.renderer = renderer or GlyphRenderer(
            self.registry,
            self.settings.render,
            ink_threshold=self.settings.normalize.ink_threshold,
        )
        self.executor_factory = executor_factory or default_executor_factory(
            self.settings.processing.executor
        )
        self.scoring_logger = ScoringLogger(self.logger)

    @property
    def stats(self) -> ScoringStats:
        """Statistics of the most recent batch."""
        return self.scoring_logger.stats

    def _worker_config(self) -> dict[str, Any]:
        return {
            "normalize": self.settings.normalize.model_dump(),
            "filters": self.settings.filters.model_dump(),
            "ssim_method": self.settings.scoring.ssim_method.value,
        }

    def _render_decoded(
        self,
        text: str,
        font: FontDescriptor,
        memo: dict[tuple[str, str], DecodedImage | None | Exception],
    ) -> DecodedImage | None:
        """Render and decode text once per batch.

        Returns None for no-render; re-raises the stored failure otherwise.
        """
        key = (text, font.family)
        if key not in memo:
            try:
                render = self.renderer.render(text, font.family)
                if render is None:
                    self.scoring_logger.log_render_unavailable(text, font.family)
                    memo[key] = None
                else:
                    memo[key] = decode_and_find_bounds(
                        render.image_bytes, self.settings.normalize.ink_threshold
                    )
            except (FontError, DecodeError) as e:
                memo[key] = e

        value = memo[key]
        if isinstance(value, Exception):
            raise value
        return value

    def score_pairs(
        self,
        pairs: Sequence[ConfusablePair],
        fonts: Sequence[FontDescriptor] | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> list[ScoreRow]:
        """Score confusable pairs, choosing fonts per pair if none are given."""
        return self.score_batch(build_requests(pairs, self.registry, fonts), progress_callback)

    def score_batch(
        self,
        requests: Sequence[ScoreRequest],
        progress_callback: ProgressCallback | None = None,
    ) -> list[ScoreRow]:
        """Score every (pair, font) combination of a batch.

        Args:
            requests: Pairs with the fonts to try each in
            progress_callback: Optional callback(completed, total) counting
                scored work items

        Returns:
            One row per (request, font), in input order

        Raises:
            IntegrityViolationError: If worker results do not match the
                submitted work items one-to-one
            KeyboardInterrupt: If the batch is cancelled by the user
        """
        self.scoring_logger = ScoringLogger(self.logger)
        stats = self.scoring_logger.stats
        stats.start_time = time.time()

        combos = [(request, font) for request in requests for font in request.fonts]
        stats.submitted_count = len(combos)

        self.logger.info("Starting batch", requests=len(requests), rows=len(combos))

        rows: list[ScoreRow | None] = [None] * len(combos)
        items: list[WorkItem] = []
        memo: dict[tuple[str, str], DecodedImage | None | Exception] = {}
        ink_minimum = self.settings.filters.ink_coverage_min

        for idx, (request, font) in enumerate(combos):
            if not font.available:
                rows[idx] = self._row(request, font, WorkResult(idx, None, FilterReason.NO_RENDER))
                self.scoring_logger.log_item_filtered(idx, FilterReason.NO_RENDER)
                continue

            try:
                decoded_a = self._render_decoded(request.source, font, memo)
                decoded_b = self._render_decoded(request.target, font, memo)
            except (FontError, DecodeError) as e:
                result = WorkResult(idx, None, FilterReason.ERROR, error=str(e))
                rows[idx] = self._row(request, font, result)
                self.scoring_logger.log_item_error(idx, str(e))
                continue

            if decoded_a is None or decoded_b is None:
                rows[idx] = self._row(request, font, WorkResult(idx, None, FilterReason.NO_RENDER))
                self.scoring_logger.log_item_filtered(idx, FilterReason.NO_RENDER)
                continue

            items.append(WorkItem(idx, decoded_a, decoded_b, ink_minimum))

        results = self._run_workers(items, progress_callback)
        for result in reassemble(results, [item.idx for item in items]):
            request, font = combos[result.idx]
            rows[result.idx] = self._row(request, font, result)

        stats.end_time = time.time()
        self.logger.info(
            "Batch complete",
            rows=len(combos),
            scored=stats.scored_count,
            filtered=stats.filtered_count,
            errors=stats.error_count,
            duration_seconds=round(stats.duration_seconds, 2),
        )
        return [row for row in rows if row is not None]

    def _row(self, request: ScoreRequest, font: FontDescriptor, result: WorkResult) -> ScoreRow:
        return ScoreRow(
            pair_index=request.pair_index,
            source=request.source,
            target=request.target,
            font_family=font.family,
            score=result.score,
            filter_reason=result.filter_reason,
            phash=result.phash,
            error=result.error,
        )

    def _run_workers(
        self,
        items: list[WorkItem],
        progress_callback: ProgressCallback | None = None,
    ) -> list[WorkResult]:
        """Score work items on the worker pool.

        A chunk whose worker crashes yields no results; the missing idx
        values are caught by reassembly.
        """
        if not items:
            return []

        chunk_size = self.settings.processing.chunk_size
        chunks = [items[i:i + chunk_size] for i in range(0, len(items), chunk_size)]
        max_workers = min(resolve_max_workers(self.settings.processing.max_workers), len(chunks))
        config_dict = self._worker_config()

        self.logger.info(
            "Starting parallel scoring",
            items=len(items),
            chunks=len(chunks),
            max_workers=max_workers,
        )

        total = len(items)
        completed = 0
        collected: list[WorkResult] = []
        pending_futures: dict = {}

        with self.executor_factory(max_workers) as executor:
            for chunk in chunks:
                future = executor.submit(
                    score_work_batch,
                    [item.to_dict() for item in chunk],
                    config_dict,
                )
                pending_futures[future] = chunk

            try:
                for future in as_completed(pending_futures):
                    chunk = pending_futures.pop(future)

                    try:
                        result_dicts = future.result()
                    except Exception as e:
                        # Executor-level error
                        self.logger.error(
                            "Worker chunk failed",
                            first_idx=chunk[0].idx,
                            size=len(chunk),
                            error=str(e),
                            traceback=traceback.format_exc(),
                        )
                        result_dicts = []

                    for result_dict in result_dicts:
                        result = WorkResult.from_dict(result_dict)
                        self._log_result(result, result_dict.get("traceback"))
                        collected.append(result)

                    completed += len(chunk)
                    if progress_callback is not None:
                        progress_callback(completed, total)

            except KeyboardInterrupt:
                self.logger.info("Cancellation requested by user")
                for f in pending_futures:
                    f.cancel()
                executor.shutdown(wait=True, cancel_futures=True)
                raise

        return collected

    def _log_result(self, result: WorkResult, tb: str | None) -> None:
        if result.filter_reason == FilterReason.ERROR:
            self.scoring_logger.log_item_error(result.idx, result.error or "unknown error", tb)
        elif result.filter_reason != FilterReason.NONE:
            self.scoring_logger.log_item_filtered(result.idx, result.filter_reason)
        elif result.score is not None:
            self.scoring_logger.log_item_scored(result.idx, result.score, result.duration_ms)


def score_batch(
    requests: Sequence[ScoreRequest],
    settings: ConfusableVisionSettings | None = None,
    registry: FontRegistry | None = None,
    progress_callback: ProgressCallback | None = None,
) -> list[ScoreRow]:
    """Score a batch of requests with a one-off BatchScorer.

    Returns:
        One row per (request, font), in input order
    """
    scorer = BatchScorer(settings, registry=registry)
    return scorer.score_batch(requests, progress_callback)

"""Tests for parallel scoring orchestration."""

import random
from concurrent.futures import Future, ThreadPoolExecutor
from unittest.mock import Mock, patch

import numpy as np
import pytest

from confusable_vision.config import ConfusableVisionSettings, FilterConfig, NormalizeConfig, ProcessingConfig
from confusable_vision.core.filters import FilterPolicy
from confusable_vision.core.processor import (
    BatchScorer,
    build_requests,
    reassemble,
    resolve_max_workers,
    score_work_batch,
    score_work_item,
)
from confusable_vision.core.normalizer import find_ink_bounds
from confusable_vision.core.similarity import ssim_grey
from confusable_vision.domain import (
    ConfusablePair,
    DecodedImage,
    FilterReason,
    FontCategory,
    FontDescriptor,
    GlyphRender,
    ScoreRequest,
    WorkItem,
    WorkResult,
)
from confusable_vision.exceptions import FontLoadError, IntegrityViolationError
from confusable_vision.io.codec import encode_png
from confusable_vision.io.fonts import FontRegistry


def block(width: int, height: int, x0: int, y0: int, x1: int, y1: int) -> np.ndarray:
    pixels = np.full((height, width), 255, dtype=np.uint8)
    pixels[y0:y1 + 1, x0:x1 + 1] = 0
    return pixels


def decoded(pixels: np.ndarray) -> DecodedImage:
    height, width = pixels.shape
    return DecodedImage(pixels.tobytes(), width, height, find_ink_bounds(pixels))


def glyph_render(text: str, family: str, pixels: np.ndarray) -> GlyphRender:
    height, width = pixels.shape
    return GlyphRender(text, family, encode_png(pixels.tobytes(), width, height), width, height)


# Renders keyed by text: "rn" and "m" are similar, "x" has no render
RENDERS = {
    "rn": block(128, 64, 44, 24, 83, 47),
    "m": block(64, 64, 12, 24, 49, 47),
    "o": block(64, 64, 20, 24, 43, 47),
    "ww": block(128, 64, 14, 24, 113, 47),
    "i": block(64, 64, 30, 16, 33, 47),
}


def fake_render(text: str, family: str) -> GlyphRender | None:
    pixels = RENDERS.get(text)
    if pixels is None:
        return None
    return glyph_render(text, family, pixels)


class EagerExecutor:
    """Executor running submitted work immediately, in the calling thread."""

    def __init__(self, max_workers: int | None = None, fail: bool = False) -> None:
        self.max_workers = max_workers
        self.fail = fail
        self.submitted = 0

    def __enter__(self) -> "EagerExecutor":
        return self

    def __exit__(self, *exc_info) -> None:
        return None

    def submit(self, fn, *args) -> Future:
        self.submitted += 1
        future: Future = Future()
        if self.fail:
            future.set_exception(RuntimeError("worker crashed"))
        else:
            future.set_result(fn(*args))
        return future

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        return None


@pytest.fixture
def font_a() -> FontDescriptor:
    return FontDescriptor(family="Alpha", path="/fonts/alpha.ttf")


@pytest.fixture
def font_missing() -> FontDescriptor:
    return FontDescriptor(family="Missing", path="/fonts/missing.ttf", available=False)


@pytest.fixture
def settings() -> ConfusableVisionSettings:
    """Create test settings with single-item chunks."""
    return ConfusableVisionSettings(processing=ProcessingConfig(max_workers=2, chunk_size=1))


@pytest.fixture
def renderer() -> Mock:
    renderer = Mock()
    renderer.render.side_effect = fake_render
    return renderer


@pytest.fixture
def worker_config() -> dict:
    return {
        "normalize": NormalizeConfig().model_dump(),
        "filters": FilterConfig().model_dump(),
        "ssim_method": "grey",
    }


def make_scorer(settings, renderer, executor_factory=None) -> BatchScorer:
    with patch("confusable_vision.core.processor.configure_logging") as mock_logging:
        mock_logging.return_value = Mock()
        return BatchScorer(
            settings,
            registry=Mock(),
            renderer=renderer,
            executor_factory=executor_factory or EagerExecutor,
        )


class TestScoreWorkItem:
    """Tests for score_work_item function."""

    def test_similar_blocks_score_high(self) -> None:
        """Test matching shapes give a high score and a pHash."""
        item = WorkItem(0, decoded(RENDERS["rn"]), decoded(RENDERS["m"]), 0.03)
        result = score_work_item(item, NormalizeConfig(), FilterPolicy(), ssim_grey)

        assert result.idx == 0
        assert result.filter_reason == FilterReason.NONE
        assert result.score is not None
        assert result.score > 0.9
        assert result.phash > 0.9

    def test_width_ratio_filtered_before_scoring(self) -> None:
        """Test a wide sequence against a narrow glyph is filtered."""
        item = WorkItem(3, decoded(RENDERS["ww"]), decoded(RENDERS["o"]), 0.03)
        strategy = Mock()
        result = score_work_item(item, NormalizeConfig(), FilterPolicy(), strategy)

        assert result.filter_reason == FilterReason.WIDTH_RATIO
        assert result.score is None
        strategy.assert_not_called()

    def test_low_ink_filtered(self) -> None:
        """Test thin horizontal lines fall below the ink minimum."""
        line = block(64, 64, 10, 30, 49, 30)
        item = WorkItem(1, decoded(line), decoded(line), 0.03)
        result = score_work_item(item, NormalizeConfig(), FilterPolicy(), ssim_grey)

        assert result.skipped_for_ink
        assert result.score is None

    def test_blank_side_filtered_for_ink(self) -> None:
        """Test a blank side never reaches scoring."""
        blank = np.full((64, 64), 255, dtype=np.uint8)
        item = WorkItem(2, decoded(blank), decoded(RENDERS["m"]), 0.03)
        result = score_work_item(item, NormalizeConfig(), FilterPolicy(), ssim_grey)
        assert result.filter_reason == FilterReason.LOW_INK

    def test_phash_prefilter(self) -> None:
        """Test the pHash prefilter skips SSIM but reports the hash."""
        item = WorkItem(4, decoded(RENDERS["o"]), decoded(RENDERS["i"]), 0.03)
        policy = FilterPolicy(FilterConfig(phash_prefilter_min=1.0, width_ratio_max=10.0))
        strategy = Mock()
        result = score_work_item(item, NormalizeConfig(), policy, strategy)

        assert result.filter_reason == FilterReason.PHASH
        assert result.phash is not None
        strategy.assert_not_called()


class TestScoreWorkBatch:
    """Tests for the picklable worker entry point."""

    def test_results_keep_idx(self, worker_config) -> None:
        """Test each result carries its item's idx."""
        items = [
            WorkItem(5, decoded(RENDERS["rn"]), decoded(RENDERS["m"]), 0.03).to_dict(),
            WorkItem(9, decoded(RENDERS["ww"]), decoded(RENDERS["o"]), 0.03).to_dict(),
        ]
        results = score_work_batch(items, worker_config)

        assert [r["idx"] for r in results] == [5, 9]
        assert results[0]["filter_reason"] == "none"
        assert results[1]["filter_reason"] == "width_ratio"

    def test_item_error_isolated(self, worker_config) -> None:
        """Test a malformed item fails alone, with a traceback."""
        good = WorkItem(1, decoded(RENDERS["rn"]), decoded(RENDERS["m"]), 0.03).to_dict()
        bad = {"idx": 0, "image_a": {"pixels": b"", "width": 4, "height": 4, "bounds": None}}
        results = score_work_batch([bad, good], worker_config)

        assert results[0]["idx"] == 0
        assert results[0]["filter_reason"] == "error"
        assert results[0]["error"]
        assert "Traceback" in results[0]["traceback"]
        assert results[1]["filter_reason"] == "none"


class TestReassemble:
    """Tests for idx-based reassembly."""

    def test_restores_order(self) -> None:
        """Test any completion order maps back to submission order."""
        expected = [4, 0, 3, 1, 2]
        rng = np.random.default_rng(11)
        for _ in range(5):
            shuffled = [WorkResult(idx, float(idx) / 10) for idx in rng.permutation(expected)]
            ordered = reassemble(shuffled, expected)
            assert [r.idx for r in ordered] == expected
            assert [r.score for r in ordered] == [idx / 10 for idx in expected]

    @pytest.mark.parametrize("seed", range(10))
    def test_restores_order_after_shuffle(self, seed: int) -> None:
        """Test shuffled results map back onto sparse submission order."""
        expected = [12, 3, 40, 7, 0, 25, 19, 8, 31, 2]
        results = [WorkResult(idx, idx / 100, FilterReason.NONE) for idx in expected]
        random.Random(seed).shuffle(results)

        ordered = reassemble(results, expected)

        assert [r.idx for r in ordered] == expected
        assert all(r.score == r.idx / 100 for r in ordered)

    def test_missing_idx(self) -> None:
        """Test a missing result is an integrity violation."""
        with pytest.raises(IntegrityViolationError) as exc_info:
            reassemble([WorkResult(0, 0.5)], [0, 1])
        assert exc_info.value.missing == [1]

    def test_duplicate_idx(self) -> None:
        """Test a duplicated result is an integrity violation."""
        with pytest.raises(IntegrityViolationError) as exc_info:
            reassemble([WorkResult(0, 0.5), WorkResult(0, 0.5), WorkResult(1, 0.2)], [0, 1])
        assert exc_info.value.duplicated == [0]

    def test_unexpected_idx(self) -> None:
        """Test a result for an unknown idx is an integrity violation."""
        with pytest.raises(IntegrityViolationError) as exc_info:
            reassemble([WorkResult(0, 0.5), WorkResult(7, 0.2)], [0])
        assert exc_info.value.unexpected == [7]

    def test_empty(self) -> None:
        """Test an empty batch reassembles to nothing."""
        assert reassemble([], []) == []


class TestBatchScorer:
    """Tests for BatchScorer class."""

    def test_init(self, settings, renderer) -> None:
        """Test initialization configures logging once."""
        with patch("confusable_vision.core.processor.configure_logging") as mock_logging:
            mock_logging.return_value = Mock()
            scorer = BatchScorer(settings, registry=Mock(), renderer=renderer)

            assert scorer.settings == settings
            mock_logging.assert_called_once()

    def test_rows_in_input_order(self, settings, renderer, font_a, font_missing) -> None:
        """Test one row per (pair, font), with no-render rows in place."""
        requests = [
            ScoreRequest(0, "rn", "m", (font_a, font_missing)),
            ScoreRequest(1, "x", "m", (font_a,)),
            ScoreRequest(2, "ww", "o", (font_a,)),
        ]
        rows = make_scorer(settings, renderer).score_batch(requests)

        assert [(r.pair_index, r.font_family) for r in rows] == [
            (0, "Alpha"),
            (0, "Missing"),
            (1, "Alpha"),
            (2, "Alpha"),
        ]
        assert rows[0].filter_reason == FilterReason.NONE
        assert rows[0].score > 0.9
        assert rows[1].filter_reason == FilterReason.NO_RENDER
        assert rows[1].score is None
        assert rows[2].filter_reason == FilterReason.NO_RENDER
        assert rows[3].filter_reason == FilterReason.WIDTH_RATIO

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4, 5, 6, 7])
    def test_order_preserved_under_shuffled_completion(self, settings, renderer, font_a, seed: int) -> None:
        """Test results completing in any order still come back in input order."""
        texts = ["rn", "o", "ww", "i", "m", "rn", "o", "m"]
        requests = [ScoreRequest(i, text, "m", (font_a,)) for i, text in enumerate(texts)]
        baseline = make_scorer(settings, renderer).score_batch(requests)

        def shuffled(futures):
            futures = list(futures)
            random.Random(seed).shuffle(futures)
            return futures

        with patch("confusable_vision.core.processor.as_completed", side_effect=shuffled):
            rows = make_scorer(settings, renderer).score_batch(requests)

        assert [r.source for r in rows] == texts
        assert rows == baseline
        assert rows[4].score == pytest.approx(1.0)

    def test_renders_each_text_once(self, settings, renderer, font_a) -> None:
        """Test renders are shared between rows of a batch."""
        requests = [ScoreRequest(i, "rn", "m", (font_a,)) for i in range(3)]
        make_scorer(settings, renderer).score_batch(requests)
        assert renderer.render.call_count == 2

    def test_thread_pool(self, settings, renderer, font_a) -> None:
        """Test a real thread pool gives the same rows as eager execution."""
        requests = [ScoreRequest(i, text, "m", (font_a,)) for i, text in enumerate(["rn", "o", "i"])]
        eager = make_scorer(settings, renderer).score_batch(requests)
        threaded = make_scorer(
            settings, renderer, lambda workers: ThreadPoolExecutor(max_workers=workers)
        ).score_batch(requests)
        assert threaded == eager

    def test_font_load_error_becomes_error_row(self, settings, font_a) -> None:
        """Test a font failure is reported in its row, not raised."""
        renderer = Mock()
        renderer.render.side_effect = FontLoadError("/fonts/alpha.ttf", "corrupt")
        rows = make_scorer(settings, renderer).score_batch([ScoreRequest(0, "rn", "m", (font_a,))])

        assert rows[0].filter_reason == FilterReason.ERROR
        assert "corrupt" in rows[0].error

    def test_decode_error_isolated(self, settings, font_a) -> None:
        """Test an undecodable render fails only its own rows."""
        font_b = FontDescriptor(family="Beta", path="/fonts/beta.ttf")

        def render(text: str, family: str) -> GlyphRender | None:
            if family == "Beta":
                return GlyphRender(text, family, b"garbage", 64, 64)
            return fake_render(text, family)

        renderer = Mock()
        renderer.render.side_effect = render
        rows = make_scorer(settings, renderer).score_batch([ScoreRequest(0, "rn", "m", (font_b, font_a))])

        assert rows[0].filter_reason == FilterReason.ERROR
        assert rows[1].filter_reason == FilterReason.NONE

    def test_crashed_worker_is_integrity_violation(self, settings, renderer, font_a) -> None:
        """Test a lost chunk fails the batch loudly."""
        scorer = make_scorer(settings, renderer, lambda workers: EagerExecutor(workers, fail=True))
        with pytest.raises(IntegrityViolationError):
            scorer.score_batch([ScoreRequest(0, "rn", "m", (font_a,))])

    def test_stats(self, settings, renderer, font_a, font_missing) -> None:
        """Test statistics count scored and filtered rows."""
        scorer = make_scorer(settings, renderer)
        scorer.score_batch([ScoreRequest(0, "rn", "m", (font_a, font_missing))])

        assert scorer.stats.submitted_count == 2
        assert scorer.stats.scored_count == 1
        assert scorer.stats.filtered_counts["no_render"] == 1
        assert scorer.stats.error_count == 0

    def test_progress_callback(self, settings, renderer, font_a) -> None:
        """Test progress reaches the number of work items."""
        calls: list[tuple[int, int]] = []
        requests = [ScoreRequest(i, text, "m", (font_a,)) for i, text in enumerate(["rn", "o"])]
        make_scorer(settings, renderer).score_batch(requests, lambda done, total: calls.append((done, total)))
        assert calls[-1] == (2, 2)


class TestBuildRequests:
    """Tests for font selection per pair."""

    @pytest.fixture
    def registry(self) -> FontRegistry:
        standard = FontDescriptor("Sans", "/s.ttf")
        math = FontDescriptor("Math", "/m.ttf", FontCategory.SPECIALIZED)
        offline = FontDescriptor("Offline", "/o.ttf", available=False)
        fallback = FontDescriptor("Noto Sans Tifinagh", "/t.otf", FontCategory.SPECIALIZED)
        return FontRegistry(
            [standard, math, offline],
            {"Sans": frozenset(map(ord, "rnm")), "Math": frozenset(map(ord, "rnm" + chr(0x1D5C6)))},
            fallbacks=[(fallback, frozenset({0x2D40}))],
        )

    def test_standard_and_covering_specialized(self, registry) -> None:
        """Test standard fonts plus specialized fonts covering the pair."""
        requests = build_requests([ConfusablePair("rn", "m"), ConfusablePair(chr(0x1D5C6), "m")], registry)
        assert [f.family for f in requests[0].fonts] == ["Sans", "Math"]
        assert [f.family for f in requests[1].fonts] == ["Sans", "Math"]

    def test_explicit_fonts(self, registry) -> None:
        """Test explicit fonts are used for every pair."""
        only = [registry.get("Sans")]
        requests = build_requests([ConfusablePair("a", "b")], registry, fonts=only)
        assert requests[0].fonts == tuple(only)
        assert requests[0].pair_index == 0

    def test_fallback_when_nothing_covers(self) -> None:
        """Test the fallback font is used when no registered font applies."""
        fallback = FontDescriptor("Noto Sans Tifinagh", "/t.otf", FontCategory.SPECIALIZED)
        registry = FontRegistry([], {}, fallbacks=[(fallback, frozenset({0x2D40}))])
        requests = build_requests([ConfusablePair("o", chr(0x2D40))], registry)
        assert requests[0].fonts == (fallback,)


def test_resolve_max_workers() -> None:
    """Test explicit pool sizes win and auto is at least one."""
    assert resolve_max_workers(3) == 3
    assert resolve_max_workers(None) >= 1

"""Tests for greyscale normalisation."""

from pathlib import Path

import numpy as np
import pytest

from confusable_vision.config import FontConfig, FontDefinition
from confusable_vision.core.normalizer import (
    bicubic_resize,
    decode_and_find_bounds,
    find_ink_bounds,
    get_ink_width,
    ink_coverage,
    normalise_image,
    normalise_pair,
    normalise_pair_decoded,
    pad_to_target,
)
from confusable_vision.core.renderer import GlyphRenderer
from confusable_vision.domain import DecodedImage, InkBounds, NormalizedImage
from confusable_vision.exceptions import DecodeError
from confusable_vision.io.codec import encode_png
from confusable_vision.io.fonts import FontRegistry


def canvas(width: int = 64, height: int = 64) -> np.ndarray:
    """Create a white canvas."""
    return np.full((height, width), 255, dtype=np.uint8)


def with_block(pixels: np.ndarray, x0: int, y0: int, x1: int, y1: int, value: int = 0) -> np.ndarray:
    """Paint an inclusive rectangle."""
    pixels = pixels.copy()
    pixels[y0:y1 + 1, x0:x1 + 1] = value
    return pixels


def to_png(pixels: np.ndarray) -> bytes:
    height, width = pixels.shape
    return encode_png(pixels.tobytes(), width, height)


def decoded(pixels: np.ndarray) -> DecodedImage:
    height, width = pixels.shape
    return DecodedImage(pixels.tobytes(), width, height, find_ink_bounds(pixels))


class TestInkBounds:
    """Tests for ink bounding-box extraction."""

    def test_block(self) -> None:
        """Test bounds of a single rectangle."""
        pixels = with_block(canvas(), 10, 20, 29, 39)
        assert find_ink_bounds(pixels) == InkBounds(10, 20, 29, 39)

    def test_blank(self) -> None:
        """Test that a blank image has no bounds."""
        assert find_ink_bounds(canvas()) is None

    def test_threshold(self) -> None:
        """Test light grey below the threshold is background."""
        pixels = with_block(canvas(), 5, 5, 6, 6, value=250)
        assert find_ink_bounds(pixels, threshold=10) is None
        assert find_ink_bounds(pixels, threshold=1) == InkBounds(5, 5, 6, 6)

    def test_decode_and_find_bounds(self) -> None:
        """Test decoding a PNG and measuring its ink in one step."""
        result = decode_and_find_bounds(to_png(with_block(canvas(128, 64), 30, 10, 69, 50)))
        assert (result.width, result.height) == (128, 64)
        assert result.bounds == InkBounds(30, 10, 69, 50)
        assert get_ink_width(result) == 40

    def test_decode_failure(self) -> None:
        """Test undecodable bytes raise DecodeError."""
        with pytest.raises(DecodeError):
            decode_and_find_bounds(b"not an image")


class TestInkCoverage:
    """Tests for ink coverage."""

    def test_fraction(self) -> None:
        """Test coverage of a 10x10 block in a 48x48 image."""
        image = NormalizedImage.from_array(with_block(canvas(48, 48), 0, 0, 9, 9))
        assert ink_coverage(image) == pytest.approx(100 / (48 * 48))

    def test_blank(self) -> None:
        """Test blank image coverage is zero."""
        assert ink_coverage(canvas(48, 48)) == 0.0


class TestBicubicResize:
    """Tests for Catmull-Rom resampling."""

    def test_identity_at_unit_scale(self) -> None:
        """Test resizing to the same size reproduces the input exactly."""
        rng = np.random.default_rng(7)
        src = rng.integers(0, 256, size=(20, 31), dtype=np.uint8)
        np.testing.assert_array_equal(bicubic_resize(src, 31, 20), src)

    def test_constant_image(self) -> None:
        """Test a flat image stays flat when scaled."""
        src = np.full((10, 10), 100, dtype=np.uint8)
        out = bicubic_resize(src, 24, 17)
        assert out.shape == (17, 24)
        assert out.dtype == np.uint8
        assert np.all(out == 100)

    def test_output_clamped(self) -> None:
        """Test overshoot at hard edges stays inside [0, 255]."""
        src = with_block(canvas(8, 8), 3, 0, 4, 7)
        out = bicubic_resize(src, 30, 30).astype(int)
        assert out.min() >= 0
        assert out.max() <= 255

    def test_pad_to_target_centres(self) -> None:
        """Test padding uses floor offsets."""
        out = pad_to_target(np.zeros((4, 5), dtype=np.uint8), 10)
        assert find_ink_bounds(out) == InkBounds(2, 3, 6, 6)


class TestNormaliseImage:
    """Tests for single-image normalisation."""

    def test_blank_returns_none(self) -> None:
        """Test that no ink means no normalised image."""
        assert normalise_image(to_png(canvas())) is None

    def test_fits_tall_block(self) -> None:
        """Test a 10x20 block scales by 2.4 and is centred."""
        result = normalise_image(to_png(with_block(canvas(), 27, 22, 36, 41)))
        assert result is not None
        assert result.shape == (48, 48)
        assert find_ink_bounds(result.as_array()) == InkBounds(12, 0, 35, 47)


class TestNormalisePair:
    """Tests for joint pair normalisation."""

    def test_shared_scale(self) -> None:
        """Test the narrower image is not stretched to fill the target."""
        wide = with_block(canvas(128, 64), 44, 22, 83, 41)
        narrow = with_block(canvas(), 22, 22, 41, 41)
        norm_a, norm_b = normalise_pair(to_png(wide), to_png(narrow))

        assert norm_a.shape == norm_b.shape == (48, 48)
        bounds_a = find_ink_bounds(norm_a.as_array())
        bounds_b = find_ink_bounds(norm_b.as_array())
        assert bounds_a.width == 48
        assert bounds_b.width == 24
        assert bounds_a.height == bounds_b.height == 24
        assert bounds_a.min_y == bounds_b.min_y == 12

    def test_baseline_alignment(self) -> None:
        """Test a short glyph keeps its position relative to a tall one."""
        tall = with_block(canvas(), 22, 22, 41, 41)
        short = with_block(canvas(), 22, 30, 41, 41)
        norm_a, norm_b = normalise_pair_decoded(decoded(tall), decoded(short))

        bounds_a = find_ink_bounds(norm_a.as_array())
        bounds_b = find_ink_bounds(norm_b.as_array())
        assert bounds_a.max_y == bounds_b.max_y == 47
        assert bounds_a.min_y == 0
        assert 15 <= bounds_b.min_y <= 23

    def test_midline_keeps_canvas_heights_comparable(self) -> None:
        """Test sequence and single canvases align on their shared midline."""
        seq = with_block(canvas(128, 64), 40, 20, 87, 43)
        single = with_block(canvas(), 20, 20, 43, 43)
        norm_a, norm_b = normalise_pair_decoded(decoded(seq), decoded(single))
        assert find_ink_bounds(norm_a.as_array()).min_y == find_ink_bounds(norm_b.as_array()).min_y

    def test_one_blank_side(self) -> None:
        """Test a blank side becomes a blank canonical image."""
        norm_a, norm_b = normalise_pair_decoded(decoded(canvas()), decoded(with_block(canvas(), 10, 10, 30, 30)))
        assert ink_coverage(norm_a) == 0.0
        assert norm_b.shape == (48, 48)
        assert ink_coverage(norm_b) == 1.0

    def test_both_blank(self) -> None:
        """Test two blank inputs give two blank images."""
        norm_a, norm_b = normalise_pair_decoded(decoded(canvas()), decoded(canvas(128, 64)))
        assert norm_a == norm_b
        assert ink_coverage(norm_a) == 0.0

    def test_idempotent_on_canonical_pair(self) -> None:
        """Test normalising an already-normalised pair changes nothing."""
        first = with_block(canvas(48, 48), 10, 0, 37, 47)
        second = with_block(canvas(48, 48), 14, 0, 33, 47)
        norm_a, norm_b = normalise_pair_decoded(decoded(first), decoded(second))

        np.testing.assert_array_equal(norm_a.as_array(), first)
        np.testing.assert_array_equal(norm_b.as_array(), second)

        again_a, again_b = normalise_pair_decoded(decoded(norm_a.as_array()), decoded(norm_b.as_array()))
        assert again_a == norm_a
        assert again_b == norm_b

    def test_idempotent_keeps_faint_pixels(self) -> None:
        """Test faint non-ink pixels outside the ink box survive re-normalising."""
        first = with_block(canvas(48, 48), 10, 0, 37, 47)
        first[5, 3] = 250
        second = with_block(canvas(48, 48), 14, 0, 33, 47)

        norm_a, norm_b = normalise_pair_decoded(decoded(first), decoded(second))

        np.testing.assert_array_equal(norm_a.as_array(), first)
        np.testing.assert_array_equal(norm_b.as_array(), second)

    @pytest.mark.parametrize("source, target", [("n", "o"), ("l", "n"), ("o", "o")])
    def test_idempotent_on_rendered_glyphs(self, test_font: Path, source: str, target: str) -> None:
        """Test re-normalising anti-aliased renders changes no pixel."""
        registry = FontRegistry.from_config(
            FontConfig(definitions=[FontDefinition(family="Test Boxes", path=test_font)])
        )
        renderer = GlyphRenderer(registry)
        render_a = renderer.render(source, "Test Boxes")
        render_b = renderer.render(target, "Test Boxes")

        norm_a, norm_b = normalise_pair(render_a.image_bytes, render_b.image_bytes)
        again_a, again_b = normalise_pair(to_png(norm_a.as_array()), to_png(norm_b.as_array()))

        assert again_a == norm_a
        assert again_b == norm_b

    def test_deterministic(self) -> None:
        """Test repeated normalisation is byte-identical."""
        a = to_png(with_block(canvas(128, 64), 30, 15, 90, 45))
        b = to_png(with_block(canvas(), 12, 18, 50, 45))
        assert normalise_pair(a, b) == normalise_pair(a, b)

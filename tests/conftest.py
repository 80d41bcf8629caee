"""Shared fixtures: tiny TrueType fonts built with fontTools."""

from collections.abc import Callable
from pathlib import Path

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen

Rect = tuple[int, int, int, int]

# Outlines in font units (1000 UPM), as (x_min, y_min, x_max, y_max) rectangles
NOTDEF_OUTLINE: list[Rect] = [(50, 0, 550, 60), (50, 640, 550, 700), (50, 0, 110, 700), (490, 0, 550, 700)]
DEFAULT_OUTLINES: dict[str, list[Rect]] = {
    "l": [(250, 0, 350, 700)],
    "n": [(100, 0, 180, 500), (100, 420, 500, 500), (420, 0, 500, 500)],
    "o": [(100, 0, 500, 80), (100, 420, 500, 500), (100, 0, 180, 500), (420, 0, 500, 500)],
    " ": [],
}


def _glyph(rects: list[Rect]):
    pen = TTGlyphPen(None)
    for x_min, y_min, x_max, y_max in rects:
        pen.moveTo((x_min, y_min))
        pen.lineTo((x_min, y_max))
        pen.lineTo((x_max, y_max))
        pen.lineTo((x_max, y_min))
        pen.closePath()
    return pen.glyph()


def build_test_font(path: Path, outlines: dict[str, list[Rect]] | None = None) -> Path:
    """Write a minimal TrueType font mapping each character to rectangles."""
    outlines = DEFAULT_OUTLINES if outlines is None else outlines
    names = {ch: f"uni{ord(ch):04X}" for ch in outlines}
    glyph_order = [".notdef", *names.values()]

    builder = FontBuilder(1000, isTTF=True)
    builder.setupGlyphOrder(glyph_order)
    builder.setupCharacterMap({ord(ch): name for ch, name in names.items()})

    glyphs = {".notdef": _glyph(NOTDEF_OUTLINE)}
    glyphs.update({names[ch]: _glyph(rects) for ch, rects in outlines.items()})
    builder.setupGlyf(glyphs)
    builder.setupHorizontalMetrics({name: (600, 0) for name in glyph_order})
    builder.setupHorizontalHeader(ascent=800, descent=-200)
    builder.setupNameTable({"familyName": "Test Boxes", "styleName": "Regular"})
    builder.setupOS2(sTypoAscender=800, sTypoDescender=-200, usWinAscent=800, usWinDescent=200)
    builder.setupPost()
    builder.save(str(path))
    return path


@pytest.fixture
def make_font(tmp_path: Path) -> Callable[..., Path]:
    """Factory fixture building test fonts under a temporary directory."""

    def factory(name: str = "TestBoxes-Regular.ttf", outlines: dict[str, list[Rect]] | None = None) -> Path:
        return build_test_font(tmp_path / name, outlines)

    return factory


@pytest.fixture
def test_font(make_font: Callable[..., Path]) -> Path:
    """A test font covering "l", "n", "o" and space."""
    return make_font()

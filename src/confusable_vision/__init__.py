"""Confusable Vision - score visually confusable glyph pairs.

Confusable Vision renders characters and short character sequences in real
fonts, normalises each pair to a shared scale and baseline, and scores them
with structural similarity (SSIM). Degenerate pairs (near-blank renders,
extreme width mismatches, missing glyphs) are filtered rather than scored.

Example:
    $ confusable-vision score pairs.json --fonts fonts.json

This scores every pair in every font that can render it and writes one row
per (pair, font) combination.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]

"""I/O layer for confusable_vision.

This module handles everything that touches files or encoded data:

- PNG encoding and greyscale decoding (Pillow)
- Font availability and cmap coverage (fonttools)
- Loading confusable pairs and font lists from JSON

Key classes:
- FontRegistry: Read-only registry of fonts and their coverage
"""

from confusable_vision.io.codec import decode_to_grey, encode_png
from confusable_vision.io.fonts import FontRegistry, family_from_filename, read_codepoints
from confusable_vision.io.loaders import load_font_definitions, load_pairs

__all__ = [
    "FontRegistry",
    "decode_to_grey",
    "encode_png",
    "family_from_filename",
    "load_font_definitions",
    "load_pairs",
    "read_codepoints",
]

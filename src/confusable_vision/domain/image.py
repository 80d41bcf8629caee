"""Image domain models: renders, ink bounds, decoded and normalised images.

All pixel data is stored as immutable ``bytes`` in row-major order, one
greyscale sample per pixel, 255 = white background and 0 = full ink. Models
can be shipped to worker processes as-is and viewed as numpy arrays without
copying.
"""

from dataclasses import dataclass
from functools import cached_property
from typing import Any

import numpy as np


@dataclass(frozen=True)
class InkBounds:
    """Smallest rectangle enclosing all ink pixels (inclusive coordinates).

    Attributes:
        min_x: Leftmost ink column
        min_y: Topmost ink row
        max_x: Rightmost ink column
        max_y: Bottommost ink row
    """

    min_x: int
    min_y: int
    max_x: int
    max_y: int

    @property
    def width(self) -> int:
        """Width of the box in pixels."""
        return self.max_x - self.min_x + 1

    @property
    def height(self) -> int:
        """Height of the box in pixels."""
        return self.max_y - self.min_y + 1

    def to_dict(self) -> dict[str, int]:
        """Serialize to dictionary for IPC."""
        return {
            "min_x": self.min_x,
            "min_y": self.min_y,
            "max_x": self.max_x,
            "max_y": self.max_y,
        }

    @classmethod
    def from_dict(cls, data: dict[str, int] | None) -> "InkBounds | None":
        """Deserialize from dictionary; ``None`` stands for empty bounds."""
        if data is None:
            return None
        return cls(
            min_x=data["min_x"],
            min_y=data["min_y"],
            max_x=data["max_x"],
            max_y=data["max_y"],
        )


@dataclass(frozen=True)
class GlyphRender:
    """A rasterised character or sequence drawn in one font.

    Attributes:
        text: The character or character sequence that was drawn
        font_family: Family the text was drawn with
        image_bytes: PNG-encoded greyscale image
        width: Canvas width in pixels
        height: Canvas height in pixels
    """

    text: str
    font_family: str
    image_bytes: bytes
    width: int
    height: int

    @property
    def is_sequence(self) -> bool:
        """Check whether the render holds more than one character."""
        return len(self.text) > 1


@dataclass(frozen=True)
class DecodedImage:
    """Greyscale samples of a decoded render plus its ink bounds.

    Attributes:
        pixels: Row-major greyscale samples (``width * height`` bytes)
        width: Image width in pixels
        height: Image height in pixels
        bounds: Ink bounding box, or None if the image has no ink
    """

    pixels: bytes
    width: int
    height: int
    bounds: InkBounds | None

    @property
    def is_blank(self) -> bool:
        """Check whether the image has no ink at all."""
        return self.bounds is None

    @property
    def ink_width(self) -> int | None:
        """Width of the ink bounding box, or None for blank images."""
        return self.bounds.width if self.bounds is not None else None

    def as_array(self) -> np.ndarray:
        """Return a read-only ``(height, width)`` uint8 view of the pixels."""
        return np.frombuffer(self.pixels, dtype=np.uint8).reshape(self.height, self.width)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for IPC."""
        return {
            "pixels": self.pixels,
            "width": self.width,
            "height": self.height,
            "bounds": self.bounds.to_dict() if self.bounds is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DecodedImage":
        """Deserialize from dictionary."""
        return cls(
            pixels=bytes(data["pixels"]),
            width=data["width"],
            height=data["height"],
            bounds=InkBounds.from_dict(data["bounds"]),
        )


@dataclass(frozen=True)
class NormalizedImage:
    """Canonical greyscale image ready for similarity scoring.

    Both images of a normalised pair always share ``width`` and ``height``.

    Attributes:
        raw_pixels: Row-major greyscale samples
        width: Image width in pixels
        height: Image height in pixels
    """

    raw_pixels: bytes
    width: int
    height: int

    @property
    def shape(self) -> tuple[int, int]:
        """Return ``(height, width)``."""
        return (self.height, self.width)

    def as_array(self) -> np.ndarray:
        """Return a read-only ``(height, width)`` uint8 view of the pixels."""
        return np.frombuffer(self.raw_pixels, dtype=np.uint8).reshape(self.height, self.width)

    @cached_property
    def encoded_bytes(self) -> bytes:
        """PNG encoding of the image, produced on first access."""
        from confusable_vision.io.codec import encode_png

        return encode_png(self.raw_pixels, self.width, self.height)

    @classmethod
    def from_array(cls, array: np.ndarray) -> "NormalizedImage":
        """Build from a ``(height, width)`` uint8 array."""
        height, width = array.shape
        return cls(
            raw_pixels=np.ascontiguousarray(array, dtype=np.uint8).tobytes(),
            width=int(width),
            height=int(height),
        )

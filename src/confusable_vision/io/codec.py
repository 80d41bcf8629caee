"""PNG encoding and greyscale decoding.

Renders travel as PNG bytes; everything downstream works on single-channel
greyscale samples with 255 as background.
"""

import io

import numpy as np
from PIL import Image, UnidentifiedImageError

from confusable_vision.exceptions import DecodeError


def encode_png(pixels: bytes, width: int, height: int) -> bytes:
    """Encode greyscale samples as a PNG.

    Args:
        pixels: Row-major greyscale samples
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        PNG file contents
    """
    image = Image.frombytes("L", (width, height), pixels)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def decode_to_grey(image_bytes: bytes) -> tuple[np.ndarray, int, int]:
    """Decode an encoded image into greyscale samples.

    Transparent areas are composited onto white before conversion so that an
    RGBA render with a transparent background decodes to a white background.

    Args:
        image_bytes: Encoded image (PNG or any format Pillow reads)

    Returns:
        Tuple of ``(pixels, width, height)`` where pixels is a
        ``(height, width)`` uint8 array

    Raises:
        DecodeError: If the bytes are not a readable image
    """
    if not image_bytes:
        raise DecodeError("empty image buffer")

    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            image.load()
            if image.mode in ("RGBA", "LA", "PA") or "transparency" in image.info:
                rgba = image.convert("RGBA")
                background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
                grey = Image.alpha_composite(background, rgba).convert("L")
            else:
                grey = image.convert("L")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(str(e)) from e

    width, height = grey.size
    pixels = np.asarray(grey, dtype=np.uint8).reshape(height, width)
    return pixels, width, height

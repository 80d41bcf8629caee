"""Greyscale normalisation of rendered glyphs.

Renders are decoded to greyscale, cropped to their ink and rescaled into a
canonical square so that two images can be compared pixel for pixel.

Conventions:
- 255 is background (white), 0 is full ink
- A pixel is ink when its value is below ``255 - ink_threshold``
- Resampling is separable Catmull-Rom bicubic with edge clamping; at a scale
  of exactly 1 it reproduces its input

Key functions:
- decode_and_find_bounds: Decode a PNG and locate its ink
- normalise_image: Normalise one render on its own
- normalise_pair: Normalise two renders jointly (shared scale and baseline)
- ink_coverage: Fraction of ink pixels in an image
- get_ink_width: Width of the ink bounding box
"""

import math

import numpy as np

from confusable_vision.domain import DecodedImage, InkBounds, NormalizedImage
from confusable_vision.io.codec import decode_to_grey

TARGET_SIZE = 48
INK_THRESHOLD = 10
BACKGROUND = 255


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def find_ink_bounds(pixels: np.ndarray, threshold: int = INK_THRESHOLD) -> InkBounds | None:
    """Find the bounding box of ink pixels.

    Args:
        pixels: ``(height, width)`` greyscale array
        threshold: Pixels darker than ``255 - threshold`` are ink

    Returns:
        Ink bounds, or None if the image has no ink
    """
    mask = pixels < (BACKGROUND - threshold)
    rows = np.flatnonzero(mask.any(axis=1))
    if rows.size == 0:
        return None
    cols = np.flatnonzero(mask.any(axis=0))
    return InkBounds(
        min_x=int(cols[0]),
        min_y=int(rows[0]),
        max_x=int(cols[-1]),
        max_y=int(rows[-1]),
    )


def decode_and_find_bounds(image_bytes: bytes, threshold: int = INK_THRESHOLD) -> DecodedImage:
    """Decode an encoded render and locate its ink in one step.

    Raises:
        DecodeError: If the bytes cannot be decoded
    """
    pixels, width, height = decode_to_grey(image_bytes)
    return DecodedImage(
        pixels=pixels.tobytes(),
        width=width,
        height=height,
        bounds=find_ink_bounds(pixels, threshold),
    )


def get_ink_width(decoded: DecodedImage) -> int | None:
    """Return the ink bounding-box width, or None for blank images."""
    return decoded.ink_width


def ink_coverage(image: NormalizedImage | np.ndarray, threshold: int = INK_THRESHOLD) -> float:
    """Fraction of ink pixels in an image.

    Used as a filter signal, not as a similarity metric.
    """
    pixels = image.as_array() if isinstance(image, NormalizedImage) else image
    if pixels.size == 0:
        return 0.0
    return float(np.count_nonzero(pixels < (BACKGROUND - threshold))) / pixels.size


def _catmull_rom(t: np.ndarray) -> np.ndarray:
    """Catmull-Rom cubic kernel (a = -0.5)."""
    a = np.abs(t)
    near = 1.5 * a**3 - 2.5 * a**2 + 1.0
    far = -0.5 * a**3 + 2.5 * a**2 - 4.0 * a + 2.0
    return np.where(a <= 1.0, near, np.where(a <= 2.0, far, 0.0))


def _resize_columns(src: np.ndarray, dst_width: int) -> np.ndarray:
    src_width = src.shape[1]
    positions = (np.arange(dst_width) + 0.5) * src_width / dst_width - 0.5
    base = np.floor(positions).astype(np.intp)
    frac = positions - base

    acc = np.zeros((src.shape[0], dst_width), dtype=np.float64)
    weight_sum = np.zeros(dst_width, dtype=np.float64)
    for k in (-1, 0, 1, 2):
        taps = np.clip(base + k, 0, src_width - 1)
        weights = _catmull_rom(frac - k)
        acc += src[:, taps] * weights
        weight_sum += weights

    return np.clip(np.floor(acc / weight_sum + 0.5), 0, 255)


def bicubic_resize(src: np.ndarray, dst_width: int, dst_height: int) -> np.ndarray:
    """Resize a greyscale array with separable Catmull-Rom interpolation.

    Horizontal pass first, then vertical; each pass rounds and clamps to
    [0, 255]. Centre-pixel mapping: ``(i + 0.5) * src / dst - 0.5``.

    Args:
        src: ``(height, width)`` greyscale array
        dst_width: Output width in pixels
        dst_height: Output height in pixels

    Returns:
        ``(dst_height, dst_width)`` uint8 array
    """
    data = src.astype(np.float64)
    horizontal = _resize_columns(data, dst_width)
    vertical = _resize_columns(horizontal.T, dst_height).T
    return vertical.astype(np.uint8)


def pad_to_target(src: np.ndarray, target_size: int, background: int = BACKGROUND) -> np.ndarray:
    """Centre an array in a square background canvas."""
    height, width = src.shape
    out = np.full((target_size, target_size), background, dtype=np.uint8)
    off_x = (target_size - width) // 2
    off_y = (target_size - height) // 2
    out[off_y:off_y + height, off_x:off_x + width] = src
    return out


def _crop(pixels: np.ndarray, left: int, top: int, width: int, height: int) -> np.ndarray:
    """Crop a rectangle, filling any part outside the image with background."""
    out = np.full((height, width), BACKGROUND, dtype=np.uint8)
    src_h, src_w = pixels.shape
    y0, y1 = max(top, 0), min(top + height, src_h)
    x0, x1 = max(left, 0), min(left + width, src_w)
    if y0 < y1 and x0 < x1:
        out[y0 - top:y1 - top, x0 - left:x1 - left] = pixels[y0:y1, x0:x1]
    return out


def _horizontal_span(bounds: InkBounds, image_width: int, margin: int) -> tuple[int, int]:
    left = max(0, bounds.min_x - margin)
    right = min(image_width - 1, bounds.max_x + margin)
    return left, right - left + 1


def blank_image(target_size: int = TARGET_SIZE) -> NormalizedImage:
    """A canonical all-background image."""
    return NormalizedImage(
        raw_pixels=bytes([BACKGROUND]) * (target_size * target_size),
        width=target_size,
        height=target_size,
    )


def _is_canonical(decoded: DecodedImage, target_size: int) -> bool:
    return decoded.width == target_size and decoded.height == target_size


def _as_normalized(decoded: DecodedImage) -> NormalizedImage:
    return NormalizedImage(raw_pixels=decoded.pixels, width=decoded.width, height=decoded.height)


def _scale_into_target(cropped: np.ndarray, scale: float, target_size: int) -> NormalizedImage:
    crop_h, crop_w = cropped.shape
    scaled_w = max(1, _round_half_up(crop_w * scale))
    scaled_h = max(1, _round_half_up(crop_h * scale))
    resized = bicubic_resize(cropped, scaled_w, scaled_h)
    return NormalizedImage.from_array(pad_to_target(resized, target_size))


def normalise_decoded(
    decoded: DecodedImage,
    target_size: int = TARGET_SIZE,
    margin: int = 0,
) -> NormalizedImage | None:
    """Normalise one decoded image on its own.

    Returns:
        The canonical image, or None if the image has no ink
    """
    bounds = decoded.bounds
    if bounds is None:
        return None

    pixels = decoded.as_array()
    top = max(0, bounds.min_y - margin)
    bottom = min(decoded.height - 1, bounds.max_y + margin)
    left, crop_w = _horizontal_span(bounds, decoded.width, margin)
    crop_h = bottom - top + 1

    cropped = _crop(pixels, left, top, crop_w, crop_h)
    scale = min(target_size / crop_w, target_size / crop_h)
    return _scale_into_target(cropped, scale, target_size)


def normalise_image(
    image_bytes: bytes,
    target_size: int = TARGET_SIZE,
    threshold: int = INK_THRESHOLD,
    margin: int = 0,
) -> NormalizedImage | None:
    """Decode, crop to ink and scale one render into the canonical square.

    Returns:
        The canonical image, or None if no ink was found

    Raises:
        DecodeError: If the bytes cannot be decoded
    """
    return normalise_decoded(decode_and_find_bounds(image_bytes, threshold), target_size, margin)


def normalise_pair_decoded(
    decoded_a: DecodedImage,
    decoded_b: DecodedImage,
    target_size: int = TARGET_SIZE,
    margin: int = 0,
) -> tuple[NormalizedImage, NormalizedImage]:
    """Normalise two decoded images jointly.

    Vertically both images are cropped to the union of their ink extents,
    measured from each image's midline, which keeps baselines aligned.
    Horizontally each is cropped to its own ink. One scale, chosen so the
    wider crop and the shared height fit the target, is applied to both.
    Two canonical images that would be scaled by exactly 1 are returned
    unchanged, so faint anti-aliasing outside the ink box survives.
    A blank side becomes a blank canonical image.
    """
    bounds_a = decoded_a.bounds
    bounds_b = decoded_b.bounds

    if bounds_a is None and bounds_b is None:
        return blank_image(target_size), blank_image(target_size)
    if bounds_a is None:
        return blank_image(target_size), normalise_decoded(decoded_b, target_size, margin)  # type: ignore[return-value]
    if bounds_b is None:
        return normalise_decoded(decoded_a, target_size, margin), blank_image(target_size)  # type: ignore[return-value]

    mid_a = decoded_a.height / 2
    mid_b = decoded_b.height / 2

    union_top = min(bounds_a.min_y - mid_a, bounds_b.min_y - mid_b) - margin
    union_bottom = max(bounds_a.max_y - mid_a, bounds_b.max_y - mid_b) + margin

    top_a = max(0, math.floor(mid_a + union_top))
    top_b = max(0, math.floor(mid_b + union_top))
    bottom_a = min(decoded_a.height - 1, math.ceil(mid_a + union_bottom))
    bottom_b = min(decoded_b.height - 1, math.ceil(mid_b + union_bottom))
    crop_h = max(bottom_a - top_a + 1, bottom_b - top_b + 1)

    left_a, crop_w_a = _horizontal_span(bounds_a, decoded_a.width, margin)
    left_b, crop_w_b = _horizontal_span(bounds_b, decoded_b.width, margin)

    cropped_a = _crop(decoded_a.as_array(), left_a, top_a, crop_w_a, crop_h)
    cropped_b = _crop(decoded_b.as_array(), left_b, top_b, crop_w_b, crop_h)

    scale = min(target_size / max(crop_w_a, crop_w_b), target_size / crop_h)
    if scale == 1 and _is_canonical(decoded_a, target_size) and _is_canonical(decoded_b, target_size):
        return _as_normalized(decoded_a), _as_normalized(decoded_b)

    return (
        _scale_into_target(cropped_a, scale, target_size),
        _scale_into_target(cropped_b, scale, target_size),
    )


def normalise_pair(
    image_a: bytes,
    image_b: bytes,
    target_size: int = TARGET_SIZE,
    threshold: int = INK_THRESHOLD,
    margin: int = 0,
) -> tuple[NormalizedImage, NormalizedImage]:
    """Decode two renders and normalise them jointly.

    Raises:
        DecodeError: If either image cannot be decoded
    """
    return normalise_pair_decoded(
        decode_and_find_bounds(image_a, threshold),
        decode_and_find_bounds(image_b, threshold),
        target_size,
        margin,
    )

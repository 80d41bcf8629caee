"""Perceptual (average) hash of normalised images.

The hash is a cheap prefilter: pairs whose hashes are far apart rarely have
a high SSIM, so the SSIM step can be skipped for them.
"""

import imagehash
from PIL import Image

from confusable_vision.domain import NormalizedImage

HASH_SIDE = 8


def average_hash(image: NormalizedImage, hash_size: int = HASH_SIDE) -> imagehash.ImageHash:
    """Compute the average hash of a normalised image.

    Bits are set where the downscaled pixel is brighter than the mean.
    """
    pil_image = Image.frombytes("L", (image.width, image.height), image.raw_pixels)
    return imagehash.average_hash(pil_image, hash_size=hash_size)


def phash_similarity(hash_a: imagehash.ImageHash, hash_b: imagehash.ImageHash) -> float:
    """Similarity of two hashes in [0, 1]; 1 means identical."""
    return 1.0 - float(hash_a - hash_b) / hash_a.hash.size

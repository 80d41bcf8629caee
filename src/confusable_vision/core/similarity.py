"""Structural similarity (SSIM) between normalised greyscale images.

Two interchangeable implementations share one signature:

- ssim_grey: direct greyscale SSIM written with numpy
- ssim_reference: scikit-image's ``structural_similarity``

Both use the Wang et al. formulation: an 11x11 Gaussian window with
sigma 1.5, K1 = 0.01, K2 = 0.03, dynamic range 255, population statistics,
and a mean over the part of the SSIM map not affected by border reflection.
Scores are clamped to [0, 1]. On the same input they agree within
``STRATEGY_TOLERANCE``.
"""

from collections.abc import Callable

import numpy as np
from skimage.metrics import structural_similarity

from confusable_vision.domain import NormalizedImage
from confusable_vision.exceptions import ImageShapeError

SsimStrategy = Callable[[NormalizedImage, NormalizedImage], float]

K1 = 0.01
K2 = 0.03
DATA_RANGE = 255.0
SIGMA = 1.5
TRUNCATE = 3.5
STRATEGY_TOLERANCE = 0.005


def gaussian_kernel(sigma: float = SIGMA, truncate: float = TRUNCATE) -> np.ndarray:
    """Normalised 1-D Gaussian kernel with radius ``int(truncate * sigma + 0.5)``."""
    radius = int(truncate * sigma + 0.5)
    x = np.arange(-radius, radius + 1, dtype=np.float64)
    kernel = np.exp(-0.5 / (sigma * sigma) * x**2)
    return kernel / kernel.sum()


_KERNEL = gaussian_kernel()
_RADIUS = len(_KERNEL) // 2


def _gaussian_filter(image: np.ndarray) -> np.ndarray:
    """Separable Gaussian blur with symmetric border reflection.

    Taps are accumulated in a fixed order so results are reproducible.
    """
    height, width = image.shape
    padded = np.pad(image, _RADIUS, mode="symmetric")

    rows = np.zeros((height + 2 * _RADIUS, width), dtype=np.float64)
    for k, weight in enumerate(_KERNEL):
        rows += weight * padded[:, k:k + width]

    out = np.zeros((height, width), dtype=np.float64)
    for k, weight in enumerate(_KERNEL):
        out += weight * rows[k:k + height, :]
    return out


def _check_shapes(img1: NormalizedImage, img2: NormalizedImage) -> None:
    if img1.shape != img2.shape:
        raise ImageShapeError(img1.shape, img2.shape)
    if min(img1.shape) < len(_KERNEL):
        raise ValueError(f"Images must be at least {len(_KERNEL)} pixels per side, got {img1.shape}")


def _clamp(score: float) -> float:
    return min(1.0, max(0.0, float(score)))


def ssim_grey(img1: NormalizedImage, img2: NormalizedImage) -> float:
    """Compute SSIM directly on greyscale samples.

    Args:
        img1: First normalised image
        img2: Second normalised image, same shape as the first

    Returns:
        Mean SSIM clamped to [0, 1]

    Raises:
        ImageShapeError: If the images differ in shape
    """
    _check_shapes(img1, img2)
    x = img1.as_array().astype(np.float64)
    y = img2.as_array().astype(np.float64)

    mu_x = _gaussian_filter(x)
    mu_y = _gaussian_filter(y)
    var_x = _gaussian_filter(x * x) - mu_x * mu_x
    var_y = _gaussian_filter(y * y) - mu_y * mu_y
    cov_xy = _gaussian_filter(x * y) - mu_x * mu_y

    c1 = (K1 * DATA_RANGE) ** 2
    c2 = (K2 * DATA_RANGE) ** 2

    numerator = (2 * mu_x * mu_y + c1) * (2 * cov_xy + c2)
    denominator = (mu_x * mu_x + mu_y * mu_y + c1) * (var_x + var_y + c2)
    ssim_map = numerator / denominator

    valid = ssim_map[_RADIUS:-_RADIUS, _RADIUS:-_RADIUS]
    return _clamp(valid.mean(dtype=np.float64))


def ssim_reference(img1: NormalizedImage, img2: NormalizedImage) -> float:
    """Compute SSIM with scikit-image as the reference implementation.

    Raises:
        ImageShapeError: If the images differ in shape
    """
    _check_shapes(img1, img2)
    score = structural_similarity(
        img1.as_array().astype(np.float64),
        img2.as_array().astype(np.float64),
        data_range=DATA_RANGE,
        gaussian_weights=True,
        sigma=SIGMA,
        use_sample_covariance=False,
        K1=K1,
        K2=K2,
    )
    return _clamp(score)


SSIM_STRATEGIES: dict[str, SsimStrategy] = {
    "grey": ssim_grey,
    "reference": ssim_reference,
}


def get_ssim_strategy(name: str) -> SsimStrategy:
    """Look up an SSIM implementation by name ("grey" or "reference").

    Raises:
        ValueError: If the name is unknown
    """
    key = getattr(name, "value", name)
    try:
        return SSIM_STRATEGIES[key]
    except KeyError:
        raise ValueError(
            f"Unknown SSIM method {key!r}; expected one of {sorted(SSIM_STRATEGIES)}"
        ) from None


def compute_ssim(img1: NormalizedImage, img2: NormalizedImage, method: str = "grey") -> float:
    """Compute SSIM with the named implementation."""
    return get_ssim_strategy(method)(img1, img2)

from __future__ import annotations

import numpy as np

from photo_cropper.errors import ImageTooSmallError

LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def _as_rgb(pixels: np.ndarray) -> np.ndarray:
    arr = np.asarray(pixels)
    if arr.ndim == 2:
        arr = arr[:, :, None]
    if arr.ndim != 3 or arr.shape[-1] not in (1, 3, 4):
        raise ValueError(f"Expected an RGB(A) or grayscale raster, got shape {arr.shape}.")
    return arr


def _channel(rgb: np.ndarray, index: int) -> np.ndarray:
    # Grayscale rasters carry one channel that stands in for R, G and B.
    if rgb.shape[-1] == 1:
        index = 0
    return rgb[:, :, index].astype(np.float32)


def luma(rgb: np.ndarray) -> np.ndarray:
    r, g, b = LUMA_WEIGHTS
    out = _channel(rgb, 0) * np.float32(r)
    out += _channel(rgb, 1) * np.float32(g)
    out += _channel(rgb, 2) * np.float32(b)
    return out


class SharpnessAnalyzer:
    """
    Focus score from the variance of the absolute discrete Laplacian.

    The center sample is luma-converted while the four neighbours are raw red
    channel values. Existing ``sharpness_min`` thresholds are calibrated
    against this mix; pass ``luma_neighbors=True`` to luma-convert every sample
    (thresholds then need recalibrating).
    """

    def __init__(self, luma_neighbors: bool = False) -> None:
        self.luma_neighbors = luma_neighbors

    def laplacian_map(self, pixels: np.ndarray) -> np.ndarray:
        rgb = _as_rgb(pixels)
        h, w = rgb.shape[:2]
        if h < 3 or w < 3:
            raise ImageTooSmallError(f"Sharpness needs at least 3x3 pixels, got {w}x{h}.")

        center_luma = luma(rgb)
        neighbors = center_luma if self.luma_neighbors else _channel(rgb, 0)
        center = center_luma[1:-1, 1:-1]
        up = neighbors[:-2, 1:-1]
        down = neighbors[2:, 1:-1]
        left = neighbors[1:-1, :-2]
        right = neighbors[1:-1, 2:]
        lap = center * np.float32(-4.0)
        lap += up
        lap += down
        lap += left
        lap += right
        return np.abs(lap, out=lap)

    def score(self, pixels: np.ndarray) -> float:
        lap = self.laplacian_map(pixels)
        # Shift by the first sample so constant maps give exactly 0.
        shifted = lap - lap.flat[0]
        return float(shifted.var(dtype=np.float64))


def sharpness_score(pixels: np.ndarray, luma_neighbors: bool = False) -> float:
    return SharpnessAnalyzer(luma_neighbors=luma_neighbors).score(pixels)

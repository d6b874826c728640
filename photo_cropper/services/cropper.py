from __future__ import annotations

from dataclasses import dataclass

import cv2
import numpy as np

from photo_cropper.schemas import CropRect, LandmarkSet, PhotoPreset
from photo_cropper.services.geometry import crop_rect, required_scale

FILL_VALUE = 255


@dataclass
class CropResult:
    image: np.ndarray
    rect: CropRect
    scale: float


def crop_photo(pixels: np.ndarray, landmarks: LandmarkSet, preset: PhotoPreset) -> CropResult:
    """
    Scale and crop ``pixels`` into exactly ``preset.pixel_dimensions``.

    A single bilinear affine warp samples the source rectangle; anything outside
    the source is filled with opaque white rather than failing.
    """
    scale = required_scale(landmarks, preset)
    rect = crop_rect(landmarks, preset, scale)
    output_size = (int(preset.pixel_dimensions.width), int(preset.pixel_dimensions.height))

    src = np.ascontiguousarray(pixels)
    channels = 1 if src.ndim == 2 else src.shape[-1]
    matrix = np.array(
        [
            [scale, 0.0, -rect.x * scale],
            [0.0, scale, -rect.y * scale],
        ],
        dtype=np.float64,
    )
    border_value = (FILL_VALUE,) * min(max(channels, 1), 4)
    cropped = cv2.warpAffine(
        src,
        matrix,
        output_size,
        flags=cv2.INTER_LINEAR,
        borderMode=cv2.BORDER_CONSTANT,
        borderValue=border_value,
    )
    return CropResult(image=cropped, rect=rect, scale=scale)

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
import os

import cv2
import numpy as np
from PIL import Image, ImageOps
try:
    from pillow_heif import register_heif_opener
except Exception:  # pragma: no cover
    register_heif_opener = None

from photo_cropper.schemas import BackgroundSpec, FileSpec

if register_heif_opener is not None:
    try:
        register_heif_opener()
    except Exception:
        pass

HEIC_EXTENSIONS = {"heic", "heif"}
MAX_DECODE_MEGAPIXELS = max(1.0, float(os.getenv("PHOTO_API_MAX_DECODE_MEGAPIXELS", "36")))
MAX_DECODE_PIXELS = int(MAX_DECODE_MEGAPIXELS * 1_000_000)
Image.MAX_IMAGE_PIXELS = MAX_DECODE_PIXELS

# Reference colors for background tags; unknown tags fall back to the border median.
BACKGROUND_REFERENCE_RGB: dict[str, tuple[int, int, int]] = {
    "white": (255, 255, 255),
    "white/off-white": (250, 250, 250),
    "off-white": (245, 245, 240),
    "light grey": (211, 211, 211),
    "light gray": (211, 211, 211),
    "light blue": (173, 216, 230),
    "blue": (70, 130, 220),
}
# Max Euclidean RGB distance from the reference per tolerance tag (see UNIFORMITY_TOLERANCE_TAGS).
BACKGROUND_TOLERANCE_DISTANCE: dict[str, float] = {
    "low": 24.0,
    "medium": 40.0,
    "high": 60.0,
}
BACKGROUND_MIN_IN_TOLERANCE_RATIO = 0.95


@dataclass
class BackgroundReport:
    uniform: bool
    in_tolerance_ratio: float
    reference_rgb: tuple[float, float, float]
    max_distance: float
    margin_px: int


def _enforce_decode_pixel_limit(width: int, height: int) -> None:
    total_pixels = int(width) * int(height)
    if total_pixels > MAX_DECODE_PIXELS:
        raise ValueError(
            "Image resolution is too large to process safely. "
            f"Maximum decode limit is {MAX_DECODE_MEGAPIXELS:.0f} megapixels."
        )


def decode_image_bytes(file_bytes: bytes, extension: str | None = None) -> np.ndarray:
    """Decode upload bytes to an upright RGB raster (EXIF orientation applied)."""
    try:
        pil_img = Image.open(BytesIO(file_bytes))
        _enforce_decode_pixel_limit(*pil_img.size)
        pil_img = ImageOps.exif_transpose(pil_img).convert("RGB")
        return np.asarray(pil_img).copy()
    except Image.DecompressionBombError as exc:
        raise ValueError(
            "Image resolution is too large to process safely. "
            f"Maximum decode limit is {MAX_DECODE_MEGAPIXELS:.0f} megapixels."
        ) from exc
    except ValueError:
        raise
    except Exception:
        pass

    array = np.frombuffer(file_bytes, dtype=np.uint8)
    bgr = cv2.imdecode(array, cv2.IMREAD_COLOR)
    if bgr is None:
        ext = (extension or "").lower()
        if ext in HEIC_EXTENSIONS and register_heif_opener is None:
            raise ValueError(
                "Unable to decode HEIC/HEIF image. Missing HEIC codec support. Install 'pillow-heif' and retry."
            )
        raise ValueError("Unable to decode image. Please upload a valid JPG/PNG/HEIC image.")
    _enforce_decode_pixel_limit(bgr.shape[1], bgr.shape[0])
    return cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)


def encode_image(rgb_image: np.ndarray, file_spec: FileSpec) -> tuple[bytes, str]:
    """Encode an RGB(A) raster per the preset file settings. Returns (bytes, mime type)."""
    fmt = (file_spec.format or "jpeg").strip().lower()
    if rgb_image.ndim == 3 and rgb_image.shape[-1] == 4:
        bgr = cv2.cvtColor(rgb_image, cv2.COLOR_RGBA2BGR)
    else:
        bgr = cv2.cvtColor(rgb_image, cv2.COLOR_RGB2BGR)

    if fmt == "png":
        ok, encoded = cv2.imencode(".png", bgr)
        mime = "image/png"
    else:
        ok, encoded = cv2.imencode(".jpg", bgr, [int(cv2.IMWRITE_JPEG_QUALITY), int(file_spec.quality)])
        mime = "image/jpeg"
    if not ok:
        raise RuntimeError("Failed to encode processed image")
    return encoded.tobytes(), mime


def _border_pixels(rgb: np.ndarray, margin: int) -> np.ndarray:
    h, w = rgb.shape[:2]
    m = max(1, min(margin, h // 2, w // 2))
    top = rgb[:m, :, :]
    bottom = rgb[h - m :, :, :]
    left = rgb[m : h - m, :m, :]
    right = rgb[m : h - m, w - m :, :]
    return np.concatenate(
        [top.reshape(-1, 3), bottom.reshape(-1, 3), left.reshape(-1, 3), right.reshape(-1, 3)],
        axis=0,
    ).astype(np.float32)


def _tolerance_distance(tolerance: str | float) -> float:
    if isinstance(tolerance, str):
        return BACKGROUND_TOLERANCE_DISTANCE[tolerance]
    return float(tolerance)


def background_uniformity(rgb_image: np.ndarray, background: BackgroundSpec) -> BackgroundReport:
    """Sample border strips and compare them with the background reference color."""
    arr = np.asarray(rgb_image)
    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr], axis=-1)
    arr = arr[:, :, :3]
    h, w = arr.shape[:2]
    margin = max(2, int(round(0.05 * min(h, w))))
    border = _border_pixels(arr, margin)

    tag = (background.color or "").strip().lower()
    if tag in BACKGROUND_REFERENCE_RGB:
        reference = np.array(BACKGROUND_REFERENCE_RGB[tag], dtype=np.float32)
    else:
        reference = np.median(border, axis=0)

    max_distance = _tolerance_distance(background.uniformity_tolerance)
    distances = np.linalg.norm(border - reference, axis=1)
    ratio = float((distances <= max_distance).mean()) if border.size else 0.0
    return BackgroundReport(
        uniform=ratio >= BACKGROUND_MIN_IN_TOLERANCE_RATIO,
        in_tolerance_ratio=ratio,
        reference_rgb=(float(reference[0]), float(reference[1]), float(reference[2])),
        max_distance=max_distance,
        margin_px=margin,
    )

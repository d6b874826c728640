from __future__ import annotations

import base64
from dataclasses import dataclass
import logging

import numpy as np

from photo_cropper import codes
from photo_cropper.config import get_preset
from photo_cropper.schemas import AnalysisReport, PhotoPreset
from photo_cropper.services.cropper import crop_photo
from photo_cropper.services.detector import FaceDetector, MediaPipeFaceDetector
from photo_cropper.services.image_ops import decode_image_bytes, encode_image
from photo_cropper.services.validator import Validator

LOG = logging.getLogger("photo_cropper.pipeline")


@dataclass
class ProcessedPhoto:
    report: AnalysisReport
    image: np.ndarray
    encoded: bytes
    mime: str
    max_size_bytes: int

    @property
    def encoded_base64(self) -> str:
        return base64.b64encode(self.encoded).decode("ascii")

    @property
    def exceeds_max_size(self) -> bool:
        return len(self.encoded) > self.max_size_bytes


class PhotoCropPipeline:
    """Decode, detect, validate and crop one uploaded photo against a preset."""

    def __init__(self, detector: FaceDetector | None = None, validator: Validator | None = None) -> None:
        self.detector = detector if detector is not None else MediaPipeFaceDetector()
        self.validator = validator or Validator()

    def process_pixels(self, rgb: np.ndarray, preset: PhotoPreset, file_size_bytes: int = 0) -> ProcessedPhoto:
        landmarks = self.detector.detect(rgb)
        verdict = self.validator.validate(landmarks, preset, rgb)
        crop = crop_photo(rgb, landmarks, preset)
        encoded, mime = encode_image(crop.image, preset.file)

        h, w = rgb.shape[:2]
        report = AnalysisReport(
            preset_id=preset.id,
            preset_name=preset.name,
            width=w,
            height=h,
            file_size_bytes=file_size_bytes,
            verdict=verdict,
            messages=codes.validation_messages(verdict.errors),
            tips=codes.validation_tips(verdict.errors),
            checks=codes.check_statuses(verdict),
            crop_rect=crop.rect,
            scale=crop.scale,
            landmarks=landmarks,
        )
        max_bytes = int(preset.file.max_size_mb * 1024 * 1024)
        if len(encoded) > max_bytes:
            LOG.warning(
                "output_over_size_limit preset=%s size_bytes=%d max_bytes=%d",
                preset.id,
                len(encoded),
                max_bytes,
            )
        LOG.info(
            "photo_processed preset=%s valid=%s errors=%s scale=%.4f",
            preset.id,
            verdict.valid,
            ",".join(verdict.errors) or "-",
            crop.scale,
        )
        return ProcessedPhoto(
            report=report,
            image=crop.image,
            encoded=encoded,
            mime=mime,
            max_size_bytes=max_bytes,
        )

    def analyze(self, *, file_bytes: bytes, filename: str, preset_id: str | None) -> ProcessedPhoto:
        preset = get_preset(preset_id)
        extension = (filename.rsplit(".", 1)[-1] if "." in filename else "").lower()
        rgb = decode_image_bytes(file_bytes, extension=extension)
        return self.process_pixels(rgb, preset, file_size_bytes=len(file_bytes))

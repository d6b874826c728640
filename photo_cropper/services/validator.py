from __future__ import annotations

import logging
from typing import Callable

import numpy as np

from photo_cropper import codes
from photo_cropper.schemas import BackgroundSpec, LandmarkSet, PhotoPreset, ValidationVerdict
from photo_cropper.services.geometry import (
    eye_line_from_bottom_px,
    eye_line_from_top_px,
    head_height_px,
    px_to_mm,
)
from photo_cropper.services.image_ops import BackgroundReport, background_uniformity
from photo_cropper.services.sharpness import SharpnessAnalyzer

LOG = logging.getLogger("photo_cropper.validator")

BackgroundCheck = Callable[[np.ndarray, BackgroundSpec], BackgroundReport]


class Validator:
    """
    Runs the head size, eye position, pose, background and sharpness checks
    in that order. Every check always runs; each contributes at most one code.
    """

    def __init__(
        self,
        sharpness: SharpnessAnalyzer | None = None,
        background_check: BackgroundCheck = background_uniformity,
    ) -> None:
        self.sharpness = sharpness or SharpnessAnalyzer()
        self.background_check = background_check

    def validate(self, landmarks: LandmarkSet, preset: PhotoPreset, pixels: np.ndarray) -> ValidationVerdict:
        errors: list[str] = []
        measurements: dict[str, float] = {}
        image_height = float(np.asarray(pixels).shape[0])

        head_mm = px_to_mm(head_height_px(landmarks), preset.dpi)
        measurements["head_height_mm"] = head_mm
        if head_mm < preset.head_height_range_mm.min:
            errors.append(codes.FACE_TOO_SMALL)
        elif head_mm > preset.head_height_range_mm.max:
            errors.append(codes.FACE_TOO_LARGE)

        eye_code = self._check_eye_line(landmarks, preset, image_height, measurements)
        if eye_code:
            errors.append(eye_code)

        pose = landmarks.pose
        tolerance = preset.pose_tolerance_deg
        if abs(pose.yaw) > tolerance.yaw or abs(pose.pitch) > tolerance.pitch or abs(pose.roll) > tolerance.roll:
            errors.append(codes.POSE_INVALID)

        background = self.background_check(pixels, preset.background)
        measurements["background_in_tolerance_ratio"] = background.in_tolerance_ratio
        if not background.uniform:
            errors.append(codes.BACKGROUND_NONUNIFORM)

        sharpness = self.sharpness.score(pixels)
        measurements["sharpness"] = sharpness
        if sharpness < preset.validation.sharpness_min:
            errors.append(codes.SHARPNESS_LOW)

        LOG.debug("validation_done preset=%s valid=%s errors=%s", preset.id, not errors, ",".join(errors))
        return ValidationVerdict(valid=not errors, errors=tuple(errors), measurements=measurements)

    def _check_eye_line(
        self,
        landmarks: LandmarkSet,
        preset: PhotoPreset,
        image_height: float,
        measurements: dict[str, float],
    ) -> str | None:
        if preset.eye_line_from_bottom_mm is not None:
            eye_line = preset.eye_line_from_bottom_mm
            measured_mm = px_to_mm(eye_line_from_bottom_px(landmarks, image_height), preset.dpi)
            measurements["eye_line_from_bottom_mm"] = measured_mm
        elif preset.eye_line_from_top_mm is not None:
            eye_line = preset.eye_line_from_top_mm
            measured_mm = px_to_mm(eye_line_from_top_px(landmarks), preset.dpi)
            measurements["eye_line_from_top_mm"] = measured_mm
        else:
            return None
        if abs(measured_mm - eye_line.target) > eye_line.tolerance:
            return codes.EYES_OUT_OF_RANGE
        return None


def validate_photo(landmarks: LandmarkSet, preset: PhotoPreset, pixels: np.ndarray) -> ValidationVerdict:
    return Validator().validate(landmarks, preset, pixels)

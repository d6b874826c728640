from __future__ import annotations

from photo_cropper.errors import DegenerateFaceError
from photo_cropper.schemas import CropRect, LandmarkSet, PhotoPreset

MM_PER_INCH = 25.4
DEFAULT_EYE_LINE_FRACTION = 0.35


def px_to_mm(px: float, dpi: float) -> float:
    return px / dpi * MM_PER_INCH


def mm_to_px(mm: float, dpi: float) -> float:
    return mm / MM_PER_INCH * dpi


def head_height_px(landmarks: LandmarkSet) -> float:
    return abs(landmarks.points.crown.y - landmarks.points.chin.y)


def eye_line_y(landmarks: LandmarkSet) -> float:
    return (landmarks.points.left_eye.y + landmarks.points.right_eye.y) / 2.0


def eye_midpoint_x(landmarks: LandmarkSet) -> float:
    return (landmarks.points.left_eye.x + landmarks.points.right_eye.x) / 2.0


def eye_line_from_bottom_px(landmarks: LandmarkSet, image_height: float) -> float:
    return image_height - eye_line_y(landmarks)


def eye_line_from_top_px(landmarks: LandmarkSet) -> float:
    return eye_line_y(landmarks)


def target_head_height_px(preset: PhotoPreset) -> float:
    head_range = preset.head_height_range_mm
    return mm_to_px((head_range.min + head_range.max) / 2.0, preset.dpi)


def required_scale(landmarks: LandmarkSet, preset: PhotoPreset) -> float:
    """Factor that brings the measured head height to the middle of the preset range."""
    head_px = head_height_px(landmarks)
    if head_px == 0:
        raise DegenerateFaceError("Crown and chin coincide; head height is zero.")
    return target_head_height_px(preset) / head_px


def target_eye_line_px(preset: PhotoPreset) -> float:
    """Eye line y position in output pixel space."""
    output_h = float(preset.pixel_dimensions.height)
    if preset.eye_line_from_bottom_mm is not None:
        return output_h - mm_to_px(preset.eye_line_from_bottom_mm.target, preset.dpi)
    if preset.eye_line_from_top_mm is not None:
        return mm_to_px(preset.eye_line_from_top_mm.target, preset.dpi)
    return output_h * DEFAULT_EYE_LINE_FRACTION


def crop_rect(landmarks: LandmarkSet, preset: PhotoPreset, scale: float) -> CropRect:
    """
    Source-space rectangle that, scaled by ``scale`` into the preset's output size,
    puts the eye midpoint on the horizontal center and on the target eye line.
    """
    if scale <= 0:
        raise DegenerateFaceError(f"Scale must be positive, got {scale}.")
    output_w = float(preset.pixel_dimensions.width)
    output_h = float(preset.pixel_dimensions.height)
    return CropRect(
        x=eye_midpoint_x(landmarks) - (output_w / 2.0) / scale,
        y=eye_line_y(landmarks) - target_eye_line_px(preset) / scale,
        width=output_w / scale,
        height=output_h / scale,
    )

from __future__ import annotations

from typing import Sequence

from photo_cropper.schemas import CheckStatus, ValidationVerdict

FACE_TOO_SMALL = "FACE_TOO_SMALL"
FACE_TOO_LARGE = "FACE_TOO_LARGE"
EYES_OUT_OF_RANGE = "EYES_OUT_OF_RANGE"
POSE_INVALID = "POSE_INVALID"
BACKGROUND_NONUNIFORM = "BACKGROUND_NONUNIFORM"
SHARPNESS_LOW = "SHARPNESS_LOW"
# Reserved: no current check emits these.
EXPOSURE_POOR = "EXPOSURE_POOR"
FRAME_TOO_TIGHT = "FRAME_TOO_TIGHT"
EXPRESSION_INVALID = "EXPRESSION_INVALID"

DEGENERATE_FACE = "DEGENERATE_FACE"
IMAGE_TOO_SMALL = "IMAGE_TOO_SMALL"
NO_FACE_DETECTED = "NO_FACE_DETECTED"
MULTIPLE_FACES_DETECTED = "MULTIPLE_FACES_DETECTED"

MESSAGES: dict[str, str] = {
    FACE_TOO_SMALL: "Face is too small for the selected document type",
    FACE_TOO_LARGE: "Face is too large for the selected document type",
    EYES_OUT_OF_RANGE: "Eye position is outside acceptable range",
    FRAME_TOO_TIGHT: "Image frame is too tight, insufficient margins",
    BACKGROUND_NONUNIFORM: "Background is not uniform white/off-white",
    POSE_INVALID: "Head pose exceeds acceptable tolerance",
    EXPRESSION_INVALID: "Expression is not neutral or mouth is not closed",
    SHARPNESS_LOW: "Image is not sharp enough",
    EXPOSURE_POOR: "Image exposure is too bright or too dark",
    DEGENERATE_FACE: "Face landmarks are degenerate (crown and chin coincide)",
    IMAGE_TOO_SMALL: "Image is too small to analyse",
    NO_FACE_DETECTED: "No face detected in the image",
    MULTIPLE_FACES_DETECTED: "Multiple faces detected. Please use an image with only one person",
}

TIPS: dict[str, str] = {
    FACE_TOO_SMALL: "Move closer to the camera or use a higher resolution image",
    FACE_TOO_LARGE: "Move further from the camera or crop the image",
    EYES_OUT_OF_RANGE: "Adjust your position so your eyes are at the correct height",
    POSE_INVALID: "Look straight at the camera and keep your head level",
    BACKGROUND_NONUNIFORM: "Use a plain white or light-colored background",
    SHARPNESS_LOW: "Ensure good lighting and hold the camera steady",
}

CHECK_GROUPS: dict[str, tuple[str, ...]] = {
    "head_size": (FACE_TOO_SMALL, FACE_TOO_LARGE),
    "eye_position": (EYES_OUT_OF_RANGE,),
    "pose": (POSE_INVALID,),
    "background": (BACKGROUND_NONUNIFORM,),
    "quality": (SHARPNESS_LOW, EXPOSURE_POOR),
}


def message_for(code: str) -> str:
    return MESSAGES.get(code, code)


def validation_messages(errors: Sequence[str]) -> list[str]:
    return [message_for(code) for code in errors]


def validation_tips(errors: Sequence[str]) -> list[str]:
    tips: list[str] = []
    for code in errors:
        tip = TIPS.get(code)
        if tip and tip not in tips:
            tips.append(tip)
    return tips


def check_statuses(verdict: ValidationVerdict) -> dict[str, CheckStatus]:
    """Collapse a verdict into one pass/fail status per check group."""
    failed = set(verdict.errors)
    return {
        group: "fail" if failed.intersection(codes) else "pass"
        for group, codes in CHECK_GROUPS.items()
    }

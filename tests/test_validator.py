import numpy as np
import pytest
from pydantic import ValidationError

from photo_cropper import codes
from photo_cropper.errors import ImageTooSmallError
from photo_cropper.schemas import ValidationVerdict
from photo_cropper.services.image_ops import BackgroundReport
from photo_cropper.services.validator import Validator, validate_photo


def _uniform_background(_pixels, _spec):
    return BackgroundReport(uniform=True, in_tolerance_ratio=1.0, reference_rgb=(255.0, 255.0, 255.0), max_distance=24.0, margin_px=2)


def _eye_line_preset(make_preset, **overrides):
    # Eyes at y=300 in a 600px-high image sit 300px = 25.4mm from the bottom at 300dpi.
    return make_preset(eye_line_from_bottom_mm={"target": 25.4, "tolerance": 2.0}, **overrides)


def test_small_head_is_flagged(make_landmarks, make_preset, portrait_image):
    landmarks = make_landmarks(crown_y=0.0, chin_y=400.0)
    verdict = validate_photo(landmarks, make_preset(), portrait_image)
    assert verdict.measurements["head_height_mm"] == pytest.approx(33.8667, abs=1e-3)
    assert codes.FACE_TOO_SMALL in verdict.errors
    assert not verdict.valid


def test_mid_range_head_passes_everything(make_landmarks, make_preset, portrait_image):
    landmarks = make_landmarks(crown_y=100.0, chin_y=513.4, eye_y=300.0)
    verdict = validate_photo(landmarks, _eye_line_preset(make_preset), portrait_image)
    assert verdict.errors == ()
    assert verdict.warnings == ()
    assert verdict.valid
    assert verdict.measurements["head_height_mm"] == pytest.approx(35.0, abs=0.01)


def test_large_head_is_flagged(make_landmarks, make_preset, portrait_image):
    landmarks = make_landmarks(crown_y=50.0, chin_y=550.0)
    verdict = validate_photo(landmarks, make_preset(), portrait_image)
    assert verdict.errors == (codes.FACE_TOO_LARGE,)


def test_head_size_code_precedes_eye_code(make_landmarks, make_preset, portrait_image):
    landmarks = make_landmarks(crown_y=0.0, chin_y=400.0, eye_y=100.0)
    verdict = validate_photo(landmarks, _eye_line_preset(make_preset), portrait_image)
    assert verdict.errors[:2] == (codes.FACE_TOO_SMALL, codes.EYES_OUT_OF_RANGE)


def test_eye_line_skipped_without_target(make_landmarks, make_preset, portrait_image):
    landmarks = make_landmarks(crown_y=100.0, chin_y=513.4, eye_y=20.0)
    verdict = validate_photo(landmarks, make_preset(), portrait_image)
    assert codes.EYES_OUT_OF_RANGE not in verdict.errors
    assert "eye_line_from_bottom_mm" not in verdict.measurements


def test_eye_line_from_top(make_landmarks, make_preset, portrait_image):
    preset = make_preset(eye_line_from_top_mm={"target": 12.7, "tolerance": 1.0})
    ok = validate_photo(make_landmarks(crown_y=0.0, chin_y=413.4, eye_y=150.0), preset, portrait_image)
    off = validate_photo(make_landmarks(crown_y=0.0, chin_y=413.4, eye_y=300.0), preset, portrait_image)
    assert ok.valid
    assert off.errors == (codes.EYES_OUT_OF_RANGE,)
    assert off.measurements["eye_line_from_top_mm"] == pytest.approx(25.4)


def test_pose_reports_single_code(make_landmarks, make_preset, portrait_image):
    landmarks = make_landmarks(crown_y=100.0, chin_y=513.4, pose=(10.0, 0.0, 0.0))
    verdict = validate_photo(landmarks, make_preset(), portrait_image)
    assert verdict.errors == (codes.POSE_INVALID,)


def test_pose_over_on_every_axis_still_single_code(make_landmarks, make_preset, portrait_image):
    landmarks = make_landmarks(crown_y=100.0, chin_y=513.4, pose=(-10.0, 12.0, -8.0))
    verdict = validate_photo(landmarks, make_preset(), portrait_image)
    assert verdict.errors.count(codes.POSE_INVALID) == 1


def test_pose_at_tolerance_passes(make_landmarks, make_preset, portrait_image):
    landmarks = make_landmarks(crown_y=100.0, chin_y=513.4, pose=(5.0, -5.0, 3.0))
    assert validate_photo(landmarks, make_preset(), portrait_image).valid


def test_nonuniform_background(make_landmarks, make_preset, noisy_image):
    landmarks = make_landmarks(crown_y=100.0, chin_y=513.4)
    verdict = validate_photo(landmarks, make_preset(), noisy_image)
    assert verdict.errors == (codes.BACKGROUND_NONUNIFORM,)


def test_flat_image_is_not_sharp(make_landmarks, make_preset, white_image):
    landmarks = make_landmarks(crown_y=100.0, chin_y=513.4)
    verdict = validate_photo(landmarks, make_preset(), white_image)
    assert verdict.errors == (codes.SHARPNESS_LOW,)
    assert verdict.measurements["sharpness"] == 0.0


def test_all_checks_run_and_keep_order(make_landmarks, make_preset, noisy_image):
    landmarks = make_landmarks(crown_y=0.0, chin_y=400.0, eye_y=50.0, pose=(20.0, 0.0, 0.0))
    preset = _eye_line_preset(make_preset, validation={"sharpness_min": 1e12})
    verdict = validate_photo(landmarks, preset, noisy_image)
    assert verdict.errors == (
        codes.FACE_TOO_SMALL,
        codes.EYES_OUT_OF_RANGE,
        codes.POSE_INVALID,
        codes.BACKGROUND_NONUNIFORM,
        codes.SHARPNESS_LOW,
    )


def test_validation_is_deterministic(make_landmarks, make_preset, portrait_image):
    landmarks = make_landmarks(crown_y=0.0, chin_y=400.0, pose=(9.0, 0.0, 0.0))
    validator = Validator()
    first = validator.validate(landmarks, make_preset(), portrait_image)
    second = validator.validate(landmarks, make_preset(), portrait_image)
    assert first == second


def test_injected_background_check(make_landmarks, make_preset, noisy_image):
    validator = Validator(background_check=_uniform_background)
    landmarks = make_landmarks(crown_y=100.0, chin_y=513.4)
    verdict = validator.validate(landmarks, make_preset(), noisy_image)
    assert codes.BACKGROUND_NONUNIFORM not in verdict.errors


def test_tiny_image_raises_instead_of_verdict(make_landmarks, make_preset):
    with pytest.raises(ImageTooSmallError):
        validate_photo(make_landmarks(), make_preset(), np.full((2, 2, 3), 255, dtype=np.uint8))


def test_verdict_valid_flag_must_match_errors():
    with pytest.raises(ValidationError):
        ValidationVerdict(valid=True, errors=[codes.SHARPNESS_LOW])
    with pytest.raises(ValidationError):
        ValidationVerdict(valid=False)


def test_verdict_lists_cannot_be_mutated(make_landmarks, make_preset, portrait_image):
    verdict = validate_photo(make_landmarks(crown_y=0.0, chin_y=400.0), make_preset(), portrait_image)
    assert isinstance(verdict.errors, tuple)
    assert isinstance(verdict.warnings, tuple)
    with pytest.raises(AttributeError):
        verdict.errors.append(codes.POSE_INVALID)

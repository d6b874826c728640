"""Shared fixtures: synthetic landmarks, presets and rasters. No ML models needed."""

from __future__ import annotations

import numpy as np
import pytest

from photo_cropper.schemas import LandmarkSet, PhotoPreset


def build_landmarks(
    crown_y: float = 100.0,
    chin_y: float = 500.0,
    eye_y: float = 300.0,
    eye_x: float = 300.0,
    eye_spread: float = 60.0,
    pose: tuple[float, float, float] = (0.0, 0.0, 0.0),
) -> LandmarkSet:
    yaw, pitch, roll = pose
    top = min(crown_y, chin_y)
    return LandmarkSet(
        bounding_box={"x": eye_x - 120, "y": top, "width": 240, "height": abs(chin_y - crown_y)},
        points={
            "left_eye": {"x": eye_x - eye_spread / 2, "y": eye_y},
            "right_eye": {"x": eye_x + eye_spread / 2, "y": eye_y},
            "nose": {"x": eye_x, "y": eye_y + 40},
            "mouth": {"x": eye_x, "y": eye_y + 90},
            "chin": {"x": eye_x, "y": chin_y},
            "crown": {"x": eye_x, "y": crown_y},
        },
        pose={"yaw": yaw, "pitch": pitch, "roll": roll},
        confidence=0.95,
    )


def build_preset(**overrides) -> PhotoPreset:
    raw = {
        "id": "test_preset",
        "name": "Test Preset",
        "country": "XX",
        "country_name": "Testland",
        "document_type": "passport",
        "photo_size_mm": {"width": 35, "height": 45},
        "dpi": 300,
        "pixel_dimensions": {"width": 413, "height": 531},
        "head_height_range_mm": {"min": 34, "max": 36},
        "pose_tolerance_deg": {"yaw": 5, "pitch": 5, "roll": 3},
        "background": {"color": "white", "uniformity_tolerance": "low"},
        "validation": {"sharpness_min": 80},
        "file": {"format": "jpeg", "quality": 90, "max_size_mb": 5},
    }
    raw.update(overrides)
    return PhotoPreset(**raw)


@pytest.fixture
def make_landmarks():
    return build_landmarks


@pytest.fixture
def make_preset():
    return build_preset


@pytest.fixture
def white_image():
    return np.full((600, 600, 3), 255, dtype=np.uint8)


@pytest.fixture
def portrait_image():
    """White border with a textured center: uniform background and high sharpness."""
    rng = np.random.default_rng(42)
    img = np.full((600, 600, 3), 255, dtype=np.uint8)
    img[100:500, 100:500] = rng.integers(0, 256, size=(400, 400, 3), dtype=np.uint8)
    return img


@pytest.fixture
def noisy_image():
    rng = np.random.default_rng(7)
    return rng.integers(0, 256, size=(600, 600, 3), dtype=np.uint8)


class StubDetector:
    """Returns fixed landmarks (or raises) instead of running a face model."""

    def __init__(self, landmarks: LandmarkSet | None = None, error: Exception | None = None):
        self.landmarks = landmarks
        self.error = error
        self.calls = 0

    @property
    def available(self) -> bool:
        return True

    def detect(self, rgb_image: np.ndarray) -> LandmarkSet:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.landmarks


@pytest.fixture
def make_detector():
    return StubDetector

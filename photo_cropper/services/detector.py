from __future__ import annotations

from typing import Protocol

import numpy as np

from photo_cropper.errors import MultipleFacesDetectedError, NoFaceDetectedError
from photo_cropper.schemas import BoundingBox, FacePoints, LandmarkSet, Point, Pose

try:
    import mediapipe as mp
except Exception:  # pragma: no cover
    mp = None


LEFT_EYE_CENTER_IDX = [33, 133, 159, 145]
RIGHT_EYE_CENTER_IDX = [362, 263, 386, 374]
NOSE_TIP_IDX = 1
MOUTH_TOP_IDX = 13
MOUTH_BOTTOM_IDX = 14
FOREHEAD_IDX = 10
CHIN_IDX = 152
# Face mesh stops at the hairline; the crown sits roughly 10% of face height higher.
CROWN_EXTENSION = 0.10
# Nose sits about halfway between eye line and mouth when the head is level.
NEUTRAL_PITCH_RATIO = 0.50


class FaceDetector(Protocol):
    def detect(self, rgb_image: np.ndarray) -> LandmarkSet:
        """Return landmarks for the single face in ``rgb_image``."""
        ...


def estimate_pose(
    left_eye: np.ndarray,
    right_eye: np.ndarray,
    nose: np.ndarray,
    mouth: np.ndarray,
) -> Pose:
    """Approximate yaw/pitch/roll in degrees from 2D landmark geometry."""
    roll = float(np.degrees(np.arctan2(right_eye[1] - left_eye[1], right_eye[0] - left_eye[0])))
    eye_mid = (left_eye + right_eye) / 2.0
    half_eye = max(float(np.linalg.norm(right_eye - left_eye)) / 2.0, 1e-6)
    yaw_ratio = float(np.clip((nose[0] - eye_mid[0]) / half_eye, -1.0, 1.0))
    denom = max(float(mouth[1] - eye_mid[1]), 1e-6)
    pitch_ratio = float(np.clip(((nose[1] - eye_mid[1]) / denom - NEUTRAL_PITCH_RATIO) * 2.0, -1.0, 1.0))
    return Pose(
        yaw=float(np.degrees(np.arcsin(yaw_ratio))),
        pitch=float(np.degrees(np.arcsin(pitch_ratio))),
        roll=roll,
    )


class MediaPipeFaceDetector:
    def __init__(self, min_detection_confidence: float = 0.5) -> None:
        self.face_mesh = None
        if mp is not None:
            try:
                self.face_mesh = mp.solutions.face_mesh.FaceMesh(
                    static_image_mode=True,
                    max_num_faces=2,
                    refine_landmarks=True,
                    min_detection_confidence=min_detection_confidence,
                )
            except Exception:
                self.face_mesh = None

    @property
    def available(self) -> bool:
        return self.face_mesh is not None

    def detect(self, rgb_image: np.ndarray) -> LandmarkSet:
        if self.face_mesh is None:
            raise RuntimeError("MediaPipe face mesh backend is unavailable.")

        result = self.face_mesh.process(np.ascontiguousarray(rgb_image[:, :, :3]))
        faces = result.multi_face_landmarks or []
        if len(faces) == 0:
            raise NoFaceDetectedError("No face detected in the image.")
        if len(faces) > 1:
            raise MultipleFacesDetectedError(f"Detected {len(faces)} faces. Exactly one person is required.")

        h, w = rgb_image.shape[:2]
        landmarks = np.array([(pt.x * w, pt.y * h) for pt in faces[0].landmark], dtype=np.float64)
        return landmarks_from_mesh(landmarks, w, h)


def landmarks_from_mesh(landmarks: np.ndarray, width: int, height: int) -> LandmarkSet:
    """Build a LandmarkSet from face-mesh pixel coordinates."""
    left_eye = np.mean(landmarks[LEFT_EYE_CENTER_IDX], axis=0)
    right_eye = np.mean(landmarks[RIGHT_EYE_CENTER_IDX], axis=0)
    nose = landmarks[NOSE_TIP_IDX]
    mouth = (landmarks[MOUTH_TOP_IDX] + landmarks[MOUTH_BOTTOM_IDX]) / 2.0
    chin = landmarks[CHIN_IDX]
    forehead = landmarks[FOREHEAD_IDX]
    crown_y = forehead[1] - (chin[1] - forehead[1]) * CROWN_EXTENSION
    crown = np.array([forehead[0], np.clip(crown_y, 0.0, height - 1)])

    def _clamp(pt: np.ndarray) -> Point:
        return Point(x=float(np.clip(pt[0], 0.0, width - 1)), y=float(np.clip(pt[1], 0.0, height - 1)))

    x0 = float(np.clip(np.min(landmarks[:, 0]), 0, width - 1))
    y0 = float(np.clip(np.min(landmarks[:, 1]), 0, height - 1))
    x1 = float(np.clip(np.max(landmarks[:, 0]), 1, width))
    y1 = float(np.clip(np.max(landmarks[:, 1]), 1, height))

    return LandmarkSet(
        bounding_box=BoundingBox(x=x0, y=y0, width=x1 - x0, height=y1 - y0),
        points=FacePoints(
            left_eye=_clamp(left_eye),
            right_eye=_clamp(right_eye),
            nose=_clamp(nose),
            mouth=_clamp(mouth),
            chin=_clamp(chin),
            crown=_clamp(crown),
        ),
        pose=estimate_pose(left_eye, right_eye, nose, mouth),
        confidence=1.0,
    )

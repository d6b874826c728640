from __future__ import annotations


class PhotoCropperError(ValueError):
    """Input-contract violation that ends a single validate/crop call."""

    code = "PHOTO_CROPPER_ERROR"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class DegenerateFaceError(PhotoCropperError):
    code = "DEGENERATE_FACE"


class ImageTooSmallError(PhotoCropperError):
    code = "IMAGE_TOO_SMALL"


class NoFaceDetectedError(PhotoCropperError):
    code = "NO_FACE_DETECTED"


class MultipleFacesDetectedError(PhotoCropperError):
    code = "MULTIPLE_FACES_DETECTED"


class PresetNotFoundError(PhotoCropperError):
    code = "PRESET_NOT_FOUND"


class InvalidPresetError(PhotoCropperError):
    code = "PRESET_INVALID"

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) if self.errors else self.code)

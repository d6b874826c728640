from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


CheckStatus = Literal["pass", "fail"]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class Point(_Frozen):
    x: float
    y: float


class BoundingBox(_Frozen):
    x: float
    y: float
    width: float
    height: float


class Pose(_Frozen):
    yaw: float = 0.0
    pitch: float = 0.0
    roll: float = 0.0


class FacePoints(_Frozen):
    left_eye: Point
    right_eye: Point
    nose: Point
    mouth: Point
    chin: Point
    crown: Point


class LandmarkSet(_Frozen):
    """Detector output for exactly one face, in source-image pixel coordinates."""

    bounding_box: BoundingBox
    points: FacePoints
    pose: Pose = Field(default_factory=Pose)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class SizeMm(_Frozen):
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class PixelSize(_Frozen):
    width: int = Field(gt=0)
    height: int = Field(gt=0)


class RangeMm(_Frozen):
    min: float
    max: float

    @model_validator(mode="after")
    def _check_order(self) -> "RangeMm":
        if self.min >= self.max:
            raise ValueError("range minimum must be less than maximum")
        return self


class EyeLineTarget(_Frozen):
    target: float
    tolerance: float = Field(ge=0)


class ClearanceMm(_Frozen):
    min: float = 0.0


class CropSafeMargins(_Frozen):
    top_min_mm: float = 0.0
    side_min_mm: float = 0.0


class PoseTolerance(_Frozen):
    yaw: float = Field(ge=0)
    pitch: float = Field(ge=0)
    roll: float = Field(ge=0)


UNIFORMITY_TOLERANCE_TAGS = ("low", "medium", "high")


class BackgroundSpec(_Frozen):
    color: str = "white"
    # Either a tag ("low", "medium", "high") or a max RGB distance.
    uniformity_tolerance: str | float = "low"

    @field_validator("uniformity_tolerance")
    @classmethod
    def _known_tolerance(cls, value: str | float) -> str | float:
        if isinstance(value, str):
            tag = value.strip().lower()
            if tag in UNIFORMITY_TOLERANCE_TAGS:
                return tag
            try:
                value = float(tag)
            except ValueError:
                raise ValueError(
                    f"uniformity_tolerance must be one of {', '.join(UNIFORMITY_TOLERANCE_TAGS)} or a number >= 0"
                ) from None
        if not value >= 0:
            raise ValueError("uniformity_tolerance must be a number >= 0")
        return float(value)


class ValidationSpec(_Frozen):
    sharpness_min: float
    exposure_luma_range: tuple[float, float] | None = None
    expression: str | None = None


class FileSpec(_Frozen):
    format: str = "jpeg"
    colorspace: str = "srgb"
    quality: int = Field(default=90, ge=0, le=100)
    max_size_mb: float = Field(default=5, gt=0)


class PhotoPreset(_Frozen):
    """Immutable document photo specification."""

    id: str
    name: str
    country: str
    country_name: str
    document_type: str
    photo_size_mm: SizeMm
    photo_size_inches: SizeMm | None = None
    dpi: int = Field(gt=0)
    pixel_dimensions: PixelSize
    aspect_ratio: str | None = None
    head_height_range_mm: RangeMm
    head_width_range_mm: RangeMm | None = None
    eye_line_from_bottom_mm: EyeLineTarget | None = None
    eye_line_from_top_mm: EyeLineTarget | None = None
    top_clearance_mm: ClearanceMm | None = None
    crop_safe_margins: CropSafeMargins | None = None
    pose_tolerance_deg: PoseTolerance
    background: BackgroundSpec = Field(default_factory=BackgroundSpec)
    validation: ValidationSpec
    file: FileSpec = Field(default_factory=FileSpec)
    if_unmet: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _single_eye_line(self) -> "PhotoPreset":
        if self.eye_line_from_bottom_mm is not None and self.eye_line_from_top_mm is not None:
            raise ValueError("declare either eye_line_from_bottom_mm or eye_line_from_top_mm, not both")
        return self


class ValidationVerdict(_Frozen):
    valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()
    measurements: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _valid_means_no_errors(self) -> "ValidationVerdict":
        if self.valid != (not self.errors):
            raise ValueError("valid must be true exactly when errors is empty")
        return self


class CropRect(_Frozen):
    """Region of the source image to sample, before scaling."""

    x: float
    y: float
    width: float
    height: float


class CountryInfo(BaseModel):
    code: str
    name: str
    document_types: list[str] = Field(default_factory=list)


class DocumentTypeInfo(BaseModel):
    id: str
    name: str


class PresetSummary(BaseModel):
    id: str
    name: str
    country: str
    country_name: str
    document_type: str
    photo_size_mm: SizeMm
    pixel_dimensions: PixelSize
    dpi: int


class PresetDetail(BaseModel):
    preset: PhotoPreset
    specs: list[str] = Field(default_factory=list)


class CustomPresetRequest(BaseModel):
    name: str | None = None
    photo_size_mm: dict[str, float] | None = None
    head_height_range_mm: dict[str, float] | None = None
    head_width_range_mm: dict[str, float] | None = None
    top_clearance_mm: dict[str, float] | None = None
    crop_safe_margins: dict[str, float] | None = None
    dpi: int | None = None
    eye_line_from_bottom_mm: dict[str, float] | None = None
    eye_line_from_top_mm: dict[str, float] | None = None
    pose_tolerance_deg: dict[str, float] | None = None
    background: dict[str, Any] | None = None
    validation: dict[str, Any] | None = None
    file: dict[str, Any] | None = None


class AnalysisReport(BaseModel):
    preset_id: str
    preset_name: str
    width: int
    height: int
    file_size_bytes: int
    verdict: ValidationVerdict
    messages: list[str] = Field(default_factory=list)
    tips: list[str] = Field(default_factory=list)
    checks: dict[str, CheckStatus] = Field(default_factory=dict)
    crop_rect: CropRect | None = None
    scale: float | None = None
    landmarks: LandmarkSet | None = None


class AnalyzeResponse(BaseModel):
    report: AnalysisReport
    processed_image_base64: str | None = None
    processed_image_mime: str | None = None
    processed_size_bytes: int | None = None
    exceeds_max_size: bool = False

from __future__ import annotations

from functools import lru_cache
import os
from pathlib import Path
import time
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from photo_cropper import codes
from photo_cropper.errors import InvalidPresetError, PresetNotFoundError
from photo_cropper.schemas import PhotoPreset

BASE_DIR = Path(__file__).resolve().parents[1]
DEFAULT_PRESET_CATALOG_PATH = BASE_DIR / "photo_cropper" / "config" / "presets.yaml"
PRESET_CATALOG_PATH = Path(os.getenv("PHOTO_CROPPER_PRESETS", str(DEFAULT_PRESET_CATALOG_PATH)))

MIN_CUSTOM_DPI = 150
MAX_CUSTOM_DPI = 600
CUSTOM_IF_UNMET = [
    codes.FACE_TOO_SMALL,
    codes.FACE_TOO_LARGE,
    codes.EYES_OUT_OF_RANGE,
    codes.FRAME_TOO_TIGHT,
    codes.BACKGROUND_NONUNIFORM,
    codes.POSE_INVALID,
    codes.EXPRESSION_INVALID,
]


class Country(BaseModel):
    name: str


class DocumentType(BaseModel):
    name: str


class PresetCatalog(BaseModel):
    default_preset: str
    countries: dict[str, Country]
    document_types: dict[str, DocumentType]
    presets: dict[str, PhotoPreset]

    @model_validator(mode="before")
    @classmethod
    def _inject_preset_ids(cls, raw: Any) -> Any:
        if isinstance(raw, dict) and isinstance(raw.get("presets"), dict):
            raw = dict(raw)
            raw["presets"] = {
                key: {"id": key, **value} if isinstance(value, dict) else value
                for key, value in raw["presets"].items()
            }
        return raw

    @model_validator(mode="after")
    def _default_exists(self) -> "PresetCatalog":
        if self.default_preset not in self.presets:
            raise ValueError(f"default_preset '{self.default_preset}' is not defined")
        return self


def load_catalog_file(path: Path) -> PresetCatalog:
    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)
    return PresetCatalog(**raw)


@lru_cache(maxsize=1)
def load_catalog() -> PresetCatalog:
    return load_catalog_file(PRESET_CATALOG_PATH)


def get_preset(preset_id: str | None) -> PhotoPreset:
    catalog = load_catalog()
    key = (preset_id or catalog.default_preset).strip()
    if key not in catalog.presets:
        raise PresetNotFoundError(f"Unknown preset '{key}'.")
    return catalog.presets[key]


def find_preset(country: str, document_type: str) -> PhotoPreset | None:
    code = (country or "").strip().upper()
    for preset in load_catalog().presets.values():
        if preset.country == code and preset.document_type == document_type:
            return preset
    return None


def list_presets(country: str | None = None, document_type: str | None = None) -> list[PhotoPreset]:
    presets = list(load_catalog().presets.values())
    if country:
        code = country.strip().upper()
        presets = [p for p in presets if p.country == code]
    if document_type:
        presets = [p for p in presets if p.document_type == document_type]
    return presets


def search_presets(query: str) -> list[PhotoPreset]:
    term = (query or "").strip().lower()
    return [
        p
        for p in load_catalog().presets.values()
        if term in p.name.lower() or term in p.country_name.lower() or term in p.document_type.lower()
    ]


def document_types_for(country: str) -> list[str]:
    seen: list[str] = []
    for preset in list_presets(country=country):
        if preset.document_type not in seen:
            seen.append(preset.document_type)
    return seen


def preset_specs(preset: PhotoPreset) -> list[str]:
    size = preset.photo_size_mm
    if preset.photo_size_inches is not None:
        inches = preset.photo_size_inches
        specs = [f'Size: {inches.width:g}"×{inches.height:g}" ({size.width:g}×{size.height:g} mm)']
    else:
        specs = [f"Size: {size.width:g}×{size.height:g} mm"]
    head = preset.head_height_range_mm
    specs.append(f"Head height: {head.min:g}-{head.max:g} mm")
    specs.append(f"Resolution: {preset.dpi} DPI")
    specs.append(f"Background: {preset.background.color}")
    specs.append(f"Format: {preset.file.format.upper()} (Quality: {preset.file.quality}%)")
    return specs


def validate_preset_config(config: dict[str, Any]) -> list[str]:
    errors: list[str] = []
    size = config.get("photo_size_mm") or {}
    if not size.get("width") or not size.get("height"):
        errors.append("Photo size (width and height in mm) is required")

    head = config.get("head_height_range_mm") or {}
    if not head.get("min") or not head.get("max"):
        errors.append("Head height range (min and max in mm) is required")
    elif head["min"] >= head["max"]:
        errors.append("Head height minimum must be less than maximum")

    dpi = config.get("dpi")
    if dpi and (dpi < MIN_CUSTOM_DPI or dpi > MAX_CUSTOM_DPI):
        errors.append(f"DPI must be between {MIN_CUSTOM_DPI} and {MAX_CUSTOM_DPI}")
    return errors


def create_custom_preset(config: dict[str, Any]) -> PhotoPreset:
    """Build a preset from user-supplied values, deriving pixel dimensions from mm and DPI."""
    errors = validate_preset_config(config)
    if errors:
        raise InvalidPresetError(errors)

    size = config["photo_size_mm"]
    dpi = int(config.get("dpi") or 300)
    raw: dict[str, Any] = {
        "id": f"custom_{int(time.time() * 1000)}",
        "name": config.get("name") or "Custom Preset",
        "country": "CUSTOM",
        "country_name": "Custom",
        "document_type": "custom",
        "photo_size_mm": size,
        "dpi": dpi,
        "pixel_dimensions": {
            "width": round(size["width"] / 25.4 * dpi),
            "height": round(size["height"] / 25.4 * dpi),
        },
        "aspect_ratio": f"{size['width']:g}:{size['height']:g}",
        "head_height_range_mm": config["head_height_range_mm"],
        "head_width_range_mm": config.get("head_width_range_mm") or {"min": 15, "max": 25},
        "eye_line_from_bottom_mm": config.get("eye_line_from_bottom_mm"),
        "eye_line_from_top_mm": config.get("eye_line_from_top_mm"),
        "top_clearance_mm": config.get("top_clearance_mm") or {"min": 3},
        "crop_safe_margins": config.get("crop_safe_margins") or {"top_min_mm": 3, "side_min_mm": 3},
        "background": config.get("background") or {"color": "white/off-white", "uniformity_tolerance": "low"},
        "pose_tolerance_deg": config.get("pose_tolerance_deg") or {"yaw": 5, "pitch": 5, "roll": 3},
        "validation": config.get("validation")
        or {"sharpness_min": 80, "exposure_luma_range": [30, 235], "expression": "neutral"},
        "file": config.get("file") or {"format": "jpeg", "colorspace": "srgb", "quality": 90, "max_size_mb": 5},
        "if_unmet": list(CUSTOM_IF_UNMET),
    }
    try:
        return PhotoPreset(**raw)
    except ValidationError as exc:
        raise InvalidPresetError([err["msg"] for err in exc.errors()]) from exc

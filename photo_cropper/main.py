from __future__ import annotations

import logging
import os
import threading
from typing import Any

from fastapi import FastAPI, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from photo_cropper import config
from photo_cropper.errors import InvalidPresetError, PhotoCropperError, PresetNotFoundError
from photo_cropper.schemas import (
    AnalyzeResponse,
    CountryInfo,
    CustomPresetRequest,
    PhotoPreset,
    PresetDetail,
    PresetSummary,
)
from photo_cropper.services.pipeline import PhotoCropPipeline

LOG = logging.getLogger("photo_cropper.api")

app = FastAPI(title="Photo Cropper", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

pipeline = PhotoCropPipeline()

MAX_INFLIGHT_ANALYZE = max(1, int(os.getenv("PHOTO_API_MAX_INFLIGHT", "3")))
MAX_UPLOAD_MB = max(1.0, float(os.getenv("PHOTO_API_MAX_UPLOAD_MB", "20")))
MAX_UPLOAD_BYTES = int(MAX_UPLOAD_MB * 1024 * 1024)
UPLOAD_READ_CHUNK_BYTES = max(64 * 1024, int(os.getenv("PHOTO_API_UPLOAD_CHUNK_BYTES", str(1024 * 1024))))

INFLIGHT_ANALYZE_GUARD = threading.BoundedSemaphore(MAX_INFLIGHT_ANALYZE)


def _content_length_exceeds_limit(request: Request, max_bytes: int) -> bool:
    header = request.headers.get("content-length")
    if not header:
        return False
    try:
        return int(header) > max_bytes
    except ValueError:
        return False


async def _read_upload_with_limit(photo: UploadFile, max_bytes: int, chunk_size: int) -> bytes:
    chunks = bytearray()
    while True:
        chunk = await photo.read(chunk_size)
        if not chunk:
            break
        if len(chunks) + len(chunk) > max_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Uploaded file is too large. Hard limit is {MAX_UPLOAD_MB:.0f}MB.",
            )
        chunks.extend(chunk)
    return bytes(chunks)


def _summary(preset: PhotoPreset) -> PresetSummary:
    return PresetSummary(
        id=preset.id,
        name=preset.name,
        country=preset.country,
        country_name=preset.country_name,
        document_type=preset.document_type,
        photo_size_mm=preset.photo_size_mm,
        pixel_dimensions=preset.pixel_dimensions,
        dpi=preset.dpi,
    )


@app.get("/api/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "detector_available": getattr(pipeline.detector, "available", True),
        "analyze_limits": {
            "max_inflight": MAX_INFLIGHT_ANALYZE,
            "max_upload_mb": MAX_UPLOAD_MB,
        },
    }


@app.get("/api/countries", response_model=list[CountryInfo])
def countries() -> list[CountryInfo]:
    catalog = config.load_catalog()
    return [
        CountryInfo(code=code, name=country.name, document_types=config.document_types_for(code))
        for code, country in catalog.countries.items()
    ]


@app.get("/api/presets", response_model=list[PresetSummary])
def presets(country: str | None = None, document_type: str | None = None, q: str | None = None) -> list[PresetSummary]:
    if q:
        found = config.search_presets(q)
    else:
        found = config.list_presets(country=country, document_type=document_type)
    return [_summary(p) for p in found]


@app.get("/api/presets/{preset_id}", response_model=PresetDetail)
def preset_detail(preset_id: str) -> PresetDetail:
    try:
        preset = config.get_preset(preset_id)
    except PresetNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return PresetDetail(preset=preset, specs=config.preset_specs(preset))


@app.post("/api/presets/custom", response_model=PresetDetail)
def custom_preset(payload: CustomPresetRequest) -> PresetDetail:
    try:
        preset = config.create_custom_preset(payload.model_dump(exclude_none=True))
    except InvalidPresetError as exc:
        raise HTTPException(status_code=400, detail={"error": exc.code, "errors": exc.errors}) from exc
    LOG.info("custom_preset_created id=%s size=%sx%s", preset.id, preset.pixel_dimensions.width, preset.pixel_dimensions.height)
    return PresetDetail(preset=preset, specs=config.preset_specs(preset))


@app.post("/api/analyze", response_model=AnalyzeResponse)
async def analyze(
    request: Request,
    response: Response,
    photo: UploadFile = File(...),
    preset_id: str = Form(""),
) -> AnalyzeResponse:
    if not INFLIGHT_ANALYZE_GUARD.acquire(blocking=False):
        LOG.warning("analyze_rejected reason=max_inflight")
        return JSONResponse(
            status_code=429,
            content={"detail": "Server is busy processing other analyze requests. Please retry shortly."},
            headers={"Retry-After": "5"},
        )

    response.headers["X-InFlight-Limit"] = str(MAX_INFLIGHT_ANALYZE)
    filename = photo.filename or "upload.jpg"
    try:
        if _content_length_exceeds_limit(request, MAX_UPLOAD_BYTES):
            raise HTTPException(
                status_code=413,
                detail=f"Request body is too large. Hard limit is {MAX_UPLOAD_MB:.0f}MB.",
            )

        if photo.content_type is None or not photo.content_type.startswith("image/"):
            raise HTTPException(status_code=400, detail="Please upload a valid image file.")

        file_bytes = await _read_upload_with_limit(
            photo,
            max_bytes=MAX_UPLOAD_BYTES,
            chunk_size=UPLOAD_READ_CHUNK_BYTES,
        )
        if not file_bytes:
            raise HTTPException(status_code=400, detail="Uploaded image is empty.")

        processed = pipeline.analyze(file_bytes=file_bytes, filename=filename, preset_id=preset_id or None)
    except HTTPException:
        raise
    except PresetNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PhotoCropperError as exc:
        LOG.info("analyze_unprocessable filename=%s code=%s", filename, exc.code)
        return JSONResponse(status_code=422, content={"error": exc.code, "detail": str(exc)})
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception:  # pragma: no cover
        LOG.exception("analyze_failed filename=%s", filename)
        return JSONResponse(status_code=500, content={"error": "analysis_failed", "detail": "Internal error"})
    finally:
        await photo.close()
        INFLIGHT_ANALYZE_GUARD.release()

    return AnalyzeResponse(
        report=processed.report,
        processed_image_base64=processed.encoded_base64,
        processed_image_mime=processed.mime,
        processed_size_bytes=len(processed.encoded),
        exceeds_max_size=processed.exceeds_max_size,
    )

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from ...service import FontPipeline
from ..dependencies import get_pipeline
from ..schemas import (
    CacheInfo,
    CacheStatsModel,
    DetectRequest,
    DetectResponse,
    FontRecordModel,
    RequirementModel,
    StoreStatsModel,
)

router = APIRouter(prefix="/api/v1", tags=["fonts"])


@router.post("/detect", summary="Detect font requirements in style text", response_model=DetectResponse)
async def detect_fonts(body: DetectRequest, pipeline: FontPipeline = Depends(get_pipeline)) -> DetectResponse:
    result = await pipeline.detector.detect(
        body.text,
        default_family=body.default_family,
        bypass_cache=body.bypass_cache,
    )
    return DetectResponse(
        requirements=[RequirementModel.from_requirement(item) for item in result.requirements],
        digest=result.digest,
        from_cache=result.from_cache,
    )


@router.get("/fonts", summary="List custom fonts", response_model=list[FontRecordModel])
async def list_fonts(pipeline: FontPipeline = Depends(get_pipeline)) -> list[FontRecordModel]:
    records = await pipeline.store.get_all()
    return [FontRecordModel.from_record(record) for record in records]


@router.post("/fonts", summary="Upload a custom font", status_code=201, response_model=FontRecordModel)
async def upload_font(
    file: UploadFile = File(...),
    family: str | None = Form(None),
    weight: int | None = Form(None),
    style: str | None = Form(None),
    font_id: str | None = Form(None),
    pipeline: FontPipeline = Depends(get_pipeline),
) -> FontRecordModel:
    payload = await file.read()
    if not payload:
        raise HTTPException(status_code=400, detail="EMPTY_FILE")
    if style is not None and style not in {"normal", "italic"}:
        raise HTTPException(status_code=400, detail="INVALID_STYLE")
    record = await pipeline.add_custom_font(
        payload,
        family=family,
        weight=weight,
        style=style,  # type: ignore[arg-type]
        font_id=font_id,
    )
    return FontRecordModel.from_record(record)


@router.get("/fonts/stats", summary="Custom font storage usage", response_model=StoreStatsModel)
async def font_stats(pipeline: FontPipeline = Depends(get_pipeline)) -> StoreStatsModel:
    stats = await pipeline.store.get_stats()
    return StoreStatsModel(**stats.as_dict())


@router.delete("/fonts/{font_id}", summary="Delete one custom font")
async def delete_font(font_id: str, pipeline: FontPipeline = Depends(get_pipeline)) -> dict[str, object]:
    if not await pipeline.store.delete_by_id(font_id):
        raise HTTPException(status_code=404, detail="FONT_NOT_FOUND")
    return {"deleted": font_id}


@router.delete("/fonts", summary="Delete all custom fonts")
async def delete_all_fonts(pipeline: FontPipeline = Depends(get_pipeline)) -> dict[str, object]:
    await pipeline.store.delete_all()
    return {"deleted": "all"}


@router.get("/cache", summary="Cache statistics", response_model=CacheInfo)
def cache_info(pipeline: FontPipeline = Depends(get_pipeline)) -> CacheInfo:
    return CacheInfo(
        fonts=CacheStatsModel(**pipeline.resolver.cache_stats()),
        detection=CacheStatsModel(**pipeline.detector.cache_stats()),
    )


__all__ = ["router"]

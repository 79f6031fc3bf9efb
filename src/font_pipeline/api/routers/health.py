from __future__ import annotations

from fastapi import APIRouter, Depends

from ...service import FontPipeline
from ..dependencies import get_pipeline

router = APIRouter(tags=["health"])


@router.get("/health", summary="Health check")
def health(pipeline: FontPipeline = Depends(get_pipeline)) -> dict[str, object]:
    return {
        "status": "ok",
        "conversions": pipeline.orchestrator is not None,
        "cached_fonts": pipeline.cache.size,
    }


__all__ = ["router"]

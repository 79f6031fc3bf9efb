from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Response

from ...orchestrator import ConversionOrchestrator, JobStage
from ..dependencies import get_orchestrator
from ..schemas import ConversionRequest

router = APIRouter(prefix="/api/v1", tags=["conversions"])


@router.post("/conversions/{slot}", summary="Run a conversion on a slot")
async def start_conversion(
    slot: str,
    body: ConversionRequest,
    orchestrator: ConversionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    job = await orchestrator.convert(
        body.document_source,
        body.config.to_config(),
        slot=slot,
        job_id=body.job_id,
    )
    return job.to_payload()


@router.get("/conversions/{slot}", summary="Current job on a slot")
def get_conversion(slot: str, orchestrator: ConversionOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    job = orchestrator.get(slot)
    if job is None:
        raise HTTPException(status_code=404, detail="JOB_NOT_FOUND")
    return job.to_payload()


@router.get("/conversions/{slot}/result", summary="Download the PDF of a finished job")
def get_conversion_result(slot: str, orchestrator: ConversionOrchestrator = Depends(get_orchestrator)) -> Response:
    job = orchestrator.get(slot)
    if job is None:
        raise HTTPException(status_code=404, detail="JOB_NOT_FOUND")
    if job.stage is not JobStage.SUCCEEDED or job.result is None:
        raise HTTPException(status_code=409, detail="JOB_NOT_READY")
    filename = job.config.filename or f"{job.job_id}.pdf"
    return Response(
        content=job.result,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.delete("/conversions/{slot}", summary="Discard the job on a slot")
def reset_conversion(slot: str, orchestrator: ConversionOrchestrator = Depends(get_orchestrator)) -> dict[str, Any]:
    job = orchestrator.reset(slot)
    return {"slot": slot, "discarded": job.job_id if job is not None else None}


__all__ = ["router"]

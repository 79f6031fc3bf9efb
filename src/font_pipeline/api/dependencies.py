"""FastAPI dependency providers for application services."""

from __future__ import annotations

from fastapi import HTTPException, Request

from ..config import AppConfig
from ..orchestrator import ConversionOrchestrator
from ..service import FontPipeline


def get_config(request: Request) -> AppConfig:
    config = getattr(request.app.state, "config", None)
    if config is None:
        raise HTTPException(status_code=503, detail="CONFIG_UNAVAILABLE")
    return config


def get_pipeline(request: Request) -> FontPipeline:
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(status_code=503, detail="PIPELINE_UNAVAILABLE")
    return pipeline


def get_orchestrator(request: Request) -> ConversionOrchestrator:
    pipeline = getattr(request.app.state, "pipeline", None)
    orchestrator = pipeline.orchestrator if pipeline is not None else None
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="ORCHESTRATOR_UNAVAILABLE")
    return orchestrator


__all__ = ["get_config", "get_orchestrator", "get_pipeline"]

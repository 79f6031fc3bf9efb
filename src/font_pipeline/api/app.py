from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import AppConfig, load_config
from ..errors import ErrorKind, PipelineError
from ..render import Renderer
from ..service import FontPipeline, build_pipeline
from ..settings import Settings, get_settings
from .routers import config as config_router
from .routers import conversions, fonts, health

ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.QUOTA_EXCEEDED: 413,
}


def status_for(error: PipelineError) -> int:
    return ERROR_STATUS.get(error.kind, 502)


def create_app(
    config: AppConfig | None = None,
    *,
    pipeline: FontPipeline | None = None,
    renderer: Renderer | None = None,
    require_enabled: bool = True,
) -> FastAPI:
    if pipeline is not None:
        config = pipeline.config
    elif config is None:
        config = _prepare_config(get_settings())
    if require_enabled and not config.runtime.enable_local_api:
        raise RuntimeError("Local API is disabled. Enable it via configuration or environment.")

    app = FastAPI(title="Font Pipeline", version="0.1.0")
    app.state.config = config
    app.state.pipeline = pipeline or build_pipeline(config, renderer=renderer)

    @app.exception_handler(PipelineError)
    async def _pipeline_error(request: Request, exc: PipelineError) -> JSONResponse:
        return JSONResponse(status_code=status_for(exc), content={"detail": exc.to_dict()})

    app.include_router(health.router)
    app.include_router(fonts.router)
    app.include_router(config_router.router)
    if app.state.pipeline.orchestrator is not None:
        app.include_router(conversions.router)
    return app


def _prepare_config(settings: Settings) -> AppConfig:
    config = load_config(settings.config_path)
    if settings.enable_local_api is not None:
        config.runtime.enable_local_api = settings.enable_local_api
    return config


__all__ = ["ERROR_STATUS", "create_app", "status_for"]

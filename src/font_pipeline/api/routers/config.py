from __future__ import annotations

import json

from fastapi import APIRouter, Depends

from ...config import AppConfig, dump_config
from ..dependencies import get_config

router = APIRouter(prefix="/api/v1", tags=["config"])


@router.get("/config", summary="Effective configuration")
def read_config(config: AppConfig = Depends(get_config)) -> dict[str, object]:
    return json.loads(dump_config(config))


__all__ = ["router"]

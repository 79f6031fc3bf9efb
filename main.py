from fastapi import FastAPI, HTTPException

from font_pipeline.api import create_app

try:
    app = create_app(require_enabled=True)
except RuntimeError:
    app = FastAPI(title="Font Pipeline", version="0.1.0")

    @app.get("/")
    async def api_disabled() -> dict[str, str]:
        raise HTTPException(
            status_code=503,
            detail="Local API disabled. Enable by setting enable_local_api = true in config.toml "
            "or FONTPIPE_ENABLE_LOCAL_API=1",
        )

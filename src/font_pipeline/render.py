"""Render boundary: turns a document plus its fonts into PDF bytes."""

from __future__ import annotations

from typing import Callable, Protocol

from .errors import PipelineError, RenderError
from .executors import run_sync
from .models import ConversionConfig, FontCollection

PDF_MAGIC = b"%PDF-"

RenderFunc = Callable[[str, ConversionConfig, FontCollection], bytes]


class Renderer(Protocol):
    async def render(
        self, document_source: str, config: ConversionConfig, fonts: FontCollection
    ) -> bytes:  # pragma: no cover - interface
        ...


class ThreadedRenderer:
    """Adapt a blocking render callable to the async boundary."""

    def __init__(self, func: RenderFunc) -> None:
        self._func = func

    async def render(self, document_source: str, config: ConversionConfig, fonts: FontCollection) -> bytes:
        try:
            return await run_sync(self._func, document_source, config, fonts)
        except PipelineError:
            raise
        except Exception as exc:
            raise RenderError(str(exc) or exc.__class__.__name__) from exc


def validate_output(data: bytes) -> bytes:
    if not isinstance(data, (bytes, bytearray)) or bytes(data[: len(PDF_MAGIC)]) != PDF_MAGIC:
        raise RenderError("Renderer output is not a PDF document")
    return bytes(data)


__all__ = ["PDF_MAGIC", "RenderFunc", "Renderer", "ThreadedRenderer", "validate_output"]

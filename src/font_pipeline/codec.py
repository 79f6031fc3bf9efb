"""Font container sniffing, metadata extraction and the decompression codec boundary."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from io import BytesIO
from typing import Literal, Protocol

from .errors import CodecError
from .executors import run_sync
from .models import FontStyle

FontFormat = Literal["ttf", "otf", "woff", "woff2"]

MAGIC_BYTES: dict[bytes, FontFormat] = {
    b"\x00\x01\x00\x00": "ttf",
    b"true": "ttf",
    b"OTTO": "otf",
    b"wOFF": "woff",
    b"wOF2": "woff2",
}

COMPRESSED_FORMATS: frozenset[str] = frozenset({"woff", "woff2"})

# Checked in order; "bold" comes last so "semibold" and "extrabold" win.
SUBFAMILY_WEIGHTS: tuple[tuple[str, int], ...] = (
    ("thin", 100),
    ("extralight", 200),
    ("ultra light", 200),
    ("light", 300),
    ("medium", 500),
    ("semibold", 600),
    ("demibold", 600),
    ("extrabold", 800),
    ("ultra bold", 800),
    ("black", 900),
    ("heavy", 900),
    ("bold", 700),
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FontMetadata:
    family: str
    weight: int
    style: FontStyle


FALLBACK_METADATA = FontMetadata(family="Unknown Font", weight=400, style="normal")


def detect_font_format(data: bytes) -> FontFormat | None:
    if len(data) < 4:
        return None
    return MAGIC_BYTES.get(bytes(data[:4]))


def parse_subfamily(subfamily: str) -> tuple[int, FontStyle]:
    lower = subfamily.lower()
    style: FontStyle = "italic" if "italic" in lower or "oblique" in lower else "normal"
    for keyword, weight in SUBFAMILY_WEIGHTS:
        if keyword in lower:
            return weight, style
    return 400, style


def _read_metadata_blocking(data: bytes) -> FontMetadata:
    from fontTools.ttLib import TTFont

    try:
        font = TTFont(BytesIO(data), lazy=True)
        names = font["name"]
        family = names.getDebugName(16) or names.getDebugName(1) or names.getDebugName(4)
        subfamily = names.getDebugName(17) or names.getDebugName(2) or "Regular"
        weight, style = parse_subfamily(subfamily)
        if "OS/2" in font:
            os2 = font["OS/2"]
            if os2.usWeightClass:
                weight = min(900, max(100, int(os2.usWeightClass / 100 + 0.5) * 100))
            if os2.fsSelection & 0x01:
                style = "italic"
    except Exception as exc:
        logger.warning("Could not read font metadata, using defaults: %s", exc)
        return FALLBACK_METADATA
    return FontMetadata(family=(family or FALLBACK_METADATA.family).strip(), weight=weight, style=style)


async def read_font_metadata(data: bytes) -> FontMetadata:
    """Family, weight and style declared by an uncompressed font's ``name`` and ``OS/2`` tables."""

    return await run_sync(_read_metadata_blocking, data)


class FontCodec(Protocol):
    async def decompress(self, container_format: str, data: bytes) -> bytes:  # pragma: no cover - interface
        ...


def _decompress_blocking(data: bytes) -> bytes:
    from fontTools.ttLib import TTFont

    try:
        font = TTFont(BytesIO(data))
        font.flavor = None
        output = BytesIO()
        font.save(output)
    except Exception as exc:
        raise CodecError(f"Unable to decode font container: {exc}") from exc
    return output.getvalue()


class FontToolsCodec:
    """Decompress WOFF/WOFF2 containers to sfnt outline data with fontTools."""

    async def decompress(self, container_format: str, data: bytes) -> bytes:
        if container_format not in COMPRESSED_FORMATS:
            raise CodecError(f"Unsupported container format: {container_format}")
        detected = detect_font_format(data)
        if detected != container_format:
            raise CodecError(f"Expected {container_format} data, found {detected or 'unknown'}")
        return await run_sync(_decompress_blocking, data)


__all__ = [
    "COMPRESSED_FORMATS",
    "FALLBACK_METADATA",
    "FontCodec",
    "FontFormat",
    "FontMetadata",
    "FontToolsCodec",
    "detect_font_format",
    "parse_subfamily",
    "read_font_metadata",
]

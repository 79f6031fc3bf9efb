import asyncio
from typing import Callable

import pytest

from font_pipeline.codec import (
    FALLBACK_METADATA,
    FontMetadata,
    FontToolsCodec,
    detect_font_format,
    parse_subfamily,
    read_font_metadata,
)
from font_pipeline.errors import CodecError


@pytest.mark.parametrize("flavor", ["woff", "woff2"])
def test_fonttools_codec_unwraps_compressed_containers(make_font: Callable[..., bytes], flavor: str) -> None:
    packed = make_font("Brand Sans", "Bold", weight=700, flavor=flavor)
    assert detect_font_format(packed) == flavor

    data = asyncio.run(FontToolsCodec().decompress(flavor, packed))

    assert detect_font_format(data) == "ttf"
    assert asyncio.run(read_font_metadata(data)) == FontMetadata("Brand Sans", 700, "normal")


def test_fonttools_codec_rejects_mismatched_or_corrupt_data(make_font: Callable[..., bytes]) -> None:
    codec = FontToolsCodec()
    with pytest.raises(CodecError):
        asyncio.run(codec.decompress("woff2", make_font()))
    with pytest.raises(CodecError):
        asyncio.run(codec.decompress("woff", b"wOFF" + b"\xff" * 40))


def test_metadata_reads_name_and_os2_tables(make_font: Callable[..., bytes]) -> None:
    data = make_font("Serif Display", "Light Italic", weight=300, italic=True)
    assert asyncio.run(read_font_metadata(data)) == FontMetadata("Serif Display", 300, "italic")


def test_metadata_falls_back_for_unreadable_fonts() -> None:
    assert asyncio.run(read_font_metadata(b"\x00\x01\x00\x00" + b"\x00" * 28)) == FALLBACK_METADATA


def test_subfamily_names() -> None:
    assert parse_subfamily("Regular") == (400, "normal")
    assert parse_subfamily("SemiBold Italic") == (600, "italic")
    assert parse_subfamily("ExtraBold") == (800, "normal")
    assert parse_subfamily("Bold Oblique") == (700, "italic")
    assert parse_subfamily("Thin") == (100, "normal")
    assert parse_subfamily("Black") == (900, "normal")

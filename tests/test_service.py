import asyncio
from pathlib import Path
from typing import Callable

import pytest

from font_pipeline.config import AppConfig, FontsConfig, RuntimeConfig
from font_pipeline.errors import ValidationError
from font_pipeline.service import FontPipeline, build_pipeline
from font_pipeline.store import MemoryFontStorage


def build(tmp_path: Path, **fonts: object) -> FontPipeline:
    config = AppConfig(fonts=FontsConfig(**fonts), runtime=RuntimeConfig(data_dir=tmp_path))
    return build_pipeline(config, storage=MemoryFontStorage())


def test_metadata_is_read_from_the_font(tmp_path: Path, make_font: Callable[..., bytes]) -> None:
    pipeline = build(tmp_path)
    data = make_font("Brand Sans", "SemiBold Italic", weight=600, italic=True, flavor="woff2")

    record = asyncio.run(pipeline.add_custom_font(data))

    assert (record.family, record.weight, record.style) == ("Brand Sans", 600, "italic")
    assert record.id == "Brand-Sans-600-italic"
    assert record.data[:4] == b"\x00\x01\x00\x00"


def test_given_values_override_font_metadata(tmp_path: Path, make_font: Callable[..., bytes]) -> None:
    pipeline = build(tmp_path)
    record = asyncio.run(
        pipeline.add_custom_font(make_font("Brand Sans", "Bold", weight=700), family="House Face", style="normal")
    )
    assert (record.family, record.weight, record.style) == ("House Face", 700, "normal")


def test_oversized_files_are_rejected(tmp_path: Path) -> None:
    pipeline = build(tmp_path, max_font_file_mb=1)
    data = b"\x00\x01\x00\x00" + b"\x00" * (1024 * 1024)

    with pytest.raises(ValidationError) as exc:
        asyncio.run(pipeline.add_custom_font(data, family="Huge"))
    assert "exceeds 1MB limit" in exc.value.message
    assert asyncio.run(pipeline.store.get_stats()).count == 0


def test_non_font_data_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValidationError):
        asyncio.run(build(tmp_path).add_custom_font(b"<html></html>", family="Brand"))

import asyncio

import pytest

from font_pipeline.detection import FontDetector, parse_weight, scan_requirements, validate_requirement
from font_pipeline.errors import ValidationError
from font_pipeline.models import CustomFontRecord, FontRequirement
from font_pipeline.store import CustomFontStore

CSS = """
body { font-family: "Open Sans", Arial, sans-serif; }
h1 { font-family: 'Playfair Display', serif; font-weight: bold; font-style: italic; }
code { font-family: monospace; }
"""


def detect(text: str, store: CustomFontStore | None = None, **kwargs: object):
    return asyncio.run(FontDetector(store).detect(text, **kwargs))


def test_css_blocks() -> None:
    result = detect(CSS)
    assert [(item.family, item.weight, item.style, item.origin) for item in result.requirements] == [
        ("Open Sans", 400, "normal", "remote"),
        ("Playfair Display", 700, "italic", "remote"),
    ]


def test_jsx_style_objects_and_inline_attributes() -> None:
    source = """
    <p style={{ fontFamily: 'Roboto, sans-serif', fontWeight: 300 }}>Hi</p>
    <span style="font-family: Lato; font-style: oblique">x</span>
    """
    result = detect(source)
    assert {(item.family, item.weight, item.style) for item in result.requirements} == {
        ("Roboto", 300, "normal"),
        ("Lato", 400, "italic"),
    }


def test_generic_only_declarations_yield_nothing() -> None:
    assert detect("p { font-family: system-ui, ui-sans-serif, sans-serif; }").requirements == ()


def test_identical_declarations_deduplicate() -> None:
    source = "\n".join(".c%d { font-family: Inter; font-weight: 700; }" % index for index in range(10))
    result = detect(source)
    assert len(result.requirements) == 1
    assert result.requirements[0] == FontRequirement("Inter", 700, "normal", "remote")


def test_family_names_compare_case_insensitively() -> None:
    result = detect("a { font-family: 'open  sans'; } b { font-family: Open Sans; }")
    assert len(result.requirements) == 1


def test_weight_keywords_and_rounding() -> None:
    assert parse_weight("normal") == 400
    assert parse_weight("bolder") == 700
    assert parse_weight("lighter") == 300
    assert parse_weight("450") == 500
    assert parse_weight("1000") == 900
    assert parse_weight("20") == 100
    assert parse_weight("var(--weight)") is None
    assert parse_weight("NaN") is None
    assert parse_weight("1e999") is None
    assert parse_weight("-inf") is None


def test_non_finite_weights_fall_back_to_default() -> None:
    result = detect("p { font-family: Roboto; font-weight: NaN } h1 { font-family: Lato; font-weight: 1e999 }")
    assert [(item.family, item.weight) for item in result.requirements] == [("Roboto", 400), ("Lato", 400)]


def test_system_and_custom_origins() -> None:
    async def scenario():
        store = CustomFontStore()
        await store.save(
            CustomFontRecord(id="brand", family="Brand Sans", weight=400, style="normal", data=b"\x00\x01\x00\x00")
        )
        detector = FontDetector(store)
        return await detector.detect("a { font-family: brand sans } b { font-family: helvetica }")

    result = asyncio.run(scenario())
    assert [(item.family, item.origin) for item in result.requirements] == [
        ("Brand Sans", "custom"),
        ("Helvetica", "system"),
    ]


def test_weight_only_rule_uses_default_family() -> None:
    requirements = scan_requirements("strong { font-weight: 700 }", default_family="Merriweather")
    assert requirements == (FontRequirement("Merriweather", 700, "normal", "remote"),)
    assert scan_requirements("strong { font-weight: 700 }") == ()


def test_cache_hit_matches_fresh_scan() -> None:
    async def scenario():
        detector = FontDetector(cache_size=4)
        first = await detector.detect(CSS)
        second = await detector.detect(CSS)
        fresh = await detector.detect(CSS, bypass_cache=True)
        return detector, first, second, fresh

    detector, first, second, fresh = asyncio.run(scenario())
    assert not first.from_cache
    assert second.from_cache
    assert not fresh.from_cache
    assert first == second == fresh
    assert detector.cache_stats()["size"] == 1


def test_cache_key_tracks_custom_fonts() -> None:
    async def scenario():
        store = CustomFontStore()
        detector = FontDetector(store)
        before = await detector.detect("p { font-family: Brand Sans }")
        await store.save(
            CustomFontRecord(id="brand", family="Brand Sans", weight=400, style="normal", data=b"\x00\x01\x00\x00")
        )
        after = await detector.detect("p { font-family: Brand Sans }")
        return before, after

    before, after = asyncio.run(scenario())
    assert before.requirements[0].origin == "remote"
    assert after.requirements[0].origin == "custom"
    assert not after.from_cache


def test_validate_requirement() -> None:
    assert validate_requirement(FontRequirement("Inter", 700, "italic"))
    with pytest.raises(ValidationError):
        validate_requirement(FontRequirement("Inter", 750))
    with pytest.raises(ValidationError):
        validate_requirement(FontRequirement("  "))
    with pytest.raises(ValidationError):
        validate_requirement(FontRequirement("Inter", 400, "slanted"))  # type: ignore[arg-type]

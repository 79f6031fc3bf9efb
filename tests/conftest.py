from io import BytesIO
from typing import Callable

import pytest
from fontTools.fontBuilder import FontBuilder
from fontTools.pens.ttGlyphPen import TTGlyphPen


def build_font(
    family: str = "Brand Sans",
    style_name: str = "Regular",
    *,
    weight: int = 400,
    italic: bool = False,
    flavor: str | None = None,
) -> bytes:
    builder = FontBuilder(1000, isTTF=True)
    builder.setupGlyphOrder([".notdef"])
    builder.setupCharacterMap({})
    builder.setupGlyf({".notdef": TTGlyphPen(None).glyph()})
    builder.setupHorizontalMetrics({".notdef": (500, 0)})
    builder.setupHorizontalHeader(ascent=800, descent=-200)
    builder.setupNameTable({"familyName": family, "styleName": style_name})
    builder.setupOS2(usWeightClass=weight, fsSelection=0x01 if italic else 0x40)
    builder.setupPost()
    builder.font.flavor = flavor
    output = BytesIO()
    builder.save(output)
    return output.getvalue()


@pytest.fixture
def make_font() -> Callable[..., bytes]:
    return build_font

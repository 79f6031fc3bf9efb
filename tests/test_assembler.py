import pytest

from font_pipeline.assembler import assemble_collection
from font_pipeline.errors import ErrorKind, FontFetchError, FontResolutionFailedError
from font_pipeline.models import FontRequirement

PRIMARY = FontRequirement("Inter", 400, "normal", "remote")


def test_one_entry_per_resolved_font() -> None:
    bold = FontRequirement("Inter", 700, "italic", "remote")
    brand = FontRequirement("Brand", 400, "normal", "custom")
    helvetica = FontRequirement("Helvetica", 400, "normal", "system")
    resolved = {PRIMARY.key: b"regular", bold.key: b"bold", brand.key: b"brand"}

    collection, missing = assemble_collection([PRIMARY, bold, brand, helvetica, bold], resolved, PRIMARY)

    assert missing == []
    assert [(entry.family, entry.weight, entry.italic) for entry in collection] == [
        ("Inter", 400, False),
        ("Inter", 700, True),
        ("Brand", 400, False),
    ]
    assert collection.total_bytes == len(b"regularboldbrand")


def test_unresolved_fonts_are_reported() -> None:
    extra = FontRequirement("Lobster", 400, "normal", "remote")
    collection, missing = assemble_collection([PRIMARY, extra], {PRIMARY.key: b"regular"}, PRIMARY)
    assert len(collection) == 1
    assert missing == [extra]


def test_unresolved_primary_is_fatal() -> None:
    reason = FontFetchError(ErrorKind.NOT_FOUND, "Inter", "Font Inter 400 normal not found (HTTP 404)")
    with pytest.raises(FontResolutionFailedError) as exc:
        assemble_collection([PRIMARY], {}, PRIMARY, {PRIMARY.key: reason})
    assert exc.value.kind is ErrorKind.FONT_RESOLUTION_FAILED
    assert "404" in exc.value.message


def test_system_primary_needs_no_bytes() -> None:
    primary = FontRequirement("Helvetica", 400, "normal", "system")
    collection, missing = assemble_collection([primary], {}, primary)
    assert len(collection) == 0
    assert missing == []


def test_frozen_collection_rejects_entries() -> None:
    collection, _ = assemble_collection([PRIMARY], {PRIMARY.key: b"regular"}, PRIMARY)
    collection.freeze()
    with pytest.raises(RuntimeError):
        collection.add(next(iter(collection)))

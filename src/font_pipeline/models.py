"""Domain models for font resolution and conversion jobs."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Iterator, Literal, Mapping

from .errors import PipelineError, ValidationError

FontStyle = Literal["normal", "italic"]
FontOrigin = Literal["system", "custom", "remote"]
PageSize = Literal["Letter", "A4", "Legal"]
FontKey = tuple[str, int, str]

FONT_STYLES: tuple[str, ...] = ("normal", "italic")
PAGE_SIZES: tuple[str, ...] = ("Letter", "A4", "Legal")


def normalize_family(family: str) -> str:
    """Collapse whitespace and strip quotes from a family name."""

    cleaned = family.strip().strip("'\"").strip()
    return " ".join(cleaned.split())


def font_key(family: str, weight: int, style: str) -> FontKey:
    return (normalize_family(family).casefold(), int(weight), style)


@dataclass(frozen=True, slots=True)
class FontRequirement:
    """A distinct (family, weight, style) a document needs rendered."""

    family: str
    weight: int = 400
    style: FontStyle = "normal"
    origin: FontOrigin = "remote"

    @property
    def key(self) -> FontKey:
        return font_key(self.family, self.weight, self.style)

    @property
    def italic(self) -> bool:
        return self.style == "italic"

    def label(self) -> str:
        return f"{self.family} {self.weight} {self.style}"


@dataclass(slots=True)
class CachedFont:
    key: FontKey
    data: bytes
    size_bytes: int
    inserted_at: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class CustomFontRecord:
    """User-supplied font binary persisted by the custom font store."""

    id: str
    family: str
    weight: int
    style: FontStyle
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def key(self) -> FontKey:
        return font_key(self.family, self.weight, self.style)

    def metadata(self) -> dict[str, object]:
        return {
            "id": self.id,
            "family": self.family,
            "weight": self.weight,
            "style": self.style,
            "size_bytes": self.size_bytes,
        }


@dataclass(slots=True)
class StoreStats:
    count: int
    total_bytes: int
    max_bytes: int

    @property
    def percent_used(self) -> float:
        if self.max_bytes <= 0:
            return 0.0
        return round(self.total_bytes / self.max_bytes * 100, 2)

    def as_dict(self) -> dict[str, object]:
        return {
            "count": self.count,
            "total_bytes": self.total_bytes,
            "max_bytes": self.max_bytes,
            "percent_used": self.percent_used,
        }


@dataclass(frozen=True, slots=True)
class FontEntry:
    family: str
    weight: int
    italic: bool
    data: bytes


class FontCollection:
    """Ordered, append-only set of fonts handed to the render boundary."""

    def __init__(self) -> None:
        self._entries: list[FontEntry] = []
        self._frozen = False

    def add(self, entry: FontEntry) -> None:
        if self._frozen:
            raise RuntimeError("FontCollection is frozen")
        self._entries.append(entry)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def entries(self) -> tuple[FontEntry, ...]:
        return tuple(self._entries)

    @property
    def total_bytes(self) -> int:
        return sum(len(entry.data) for entry in self._entries)

    def __iter__(self) -> Iterator[FontEntry]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(slots=True)
class FontResolution:
    """Outcome of resolving one requirement; exactly one of data/error is set."""

    requirement: FontRequirement
    data: bytes | None = None
    error: PipelineError | None = None

    @property
    def ok(self) -> bool:
        return self.data is not None


@dataclass(slots=True)
class Margin:
    top: float = 0.5
    right: float = 0.5
    bottom: float = 0.5
    left: float = 0.5

    def as_dict(self) -> dict[str, float]:
        return {"top": self.top, "right": self.right, "bottom": self.bottom, "left": self.left}


@dataclass(slots=True)
class ConversionConfig:
    """Page and typography options forwarded to the render boundary."""

    page_size: PageSize = "Letter"
    margin: Margin = field(default_factory=Margin)
    font_size: float = 11.0
    font_family: str = "Helvetica"
    filename: str | None = None
    compress: bool = True
    include_metadata: bool = True

    def validate(self) -> None:
        problems: list[str] = []
        if self.page_size not in PAGE_SIZES:
            problems.append(f"page_size must be one of {', '.join(PAGE_SIZES)}")
        for side, value in self.margin.as_dict().items():
            if not 0 <= value <= 2:
                problems.append(f"{side} margin must be between 0 and 2 inches")
        if not 6 <= self.font_size <= 72:
            problems.append("font_size must be between 6 and 72 points")
        family = normalize_family(self.font_family)
        if not family:
            problems.append("font_family cannot be empty")
        elif len(family) > 100:
            problems.append("font_family too long (max 100 characters)")
        if self.filename is not None and len(self.filename) > 255:
            problems.append("filename too long (max 255 characters)")
        if problems:
            raise ValidationError("Invalid conversion config: " + "; ".join(problems))

    def as_dict(self) -> dict[str, object]:
        return {
            "page_size": self.page_size,
            "margin": self.margin.as_dict(),
            "font_size": self.font_size,
            "font_family": self.font_family,
            "filename": self.filename,
            "compress": self.compress,
            "include_metadata": self.include_metadata,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "ConversionConfig":
        margin_data = data.get("margin")
        margin = Margin()
        if isinstance(margin_data, Mapping):
            margin = Margin(
                top=float(margin_data.get("top", margin.top)),
                right=float(margin_data.get("right", margin.right)),
                bottom=float(margin_data.get("bottom", margin.bottom)),
                left=float(margin_data.get("left", margin.left)),
            )
        filename = data.get("filename")
        return cls(
            page_size=str(data.get("page_size", "Letter")),  # type: ignore[arg-type]
            margin=margin,
            font_size=float(data.get("font_size", 11.0)),
            font_family=str(data.get("font_family", "Helvetica")),
            filename=str(filename) if filename is not None else None,
            compress=bool(data.get("compress", True)),
            include_metadata=bool(data.get("include_metadata", True)),
        )


__all__ = [
    "CachedFont",
    "ConversionConfig",
    "CustomFontRecord",
    "FONT_STYLES",
    "FontCollection",
    "FontEntry",
    "FontKey",
    "FontOrigin",
    "FontRequirement",
    "FontResolution",
    "FontStyle",
    "Margin",
    "PAGE_SIZES",
    "StoreStats",
    "font_key",
    "normalize_family",
]

"""Font requirement detection over style text.

The scanner understands CSS declaration blocks, inline ``style="..."``
attributes and JSX style objects (``{ fontFamily: 'X', fontWeight: 700 }``).
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field, replace
from typing import Iterable, Mapping

from .cache import LRUCache
from .errors import ValidationError
from .models import FONT_STYLES, FontKey, FontOrigin, FontRequirement, FontStyle, normalize_family
from .store import CustomFontStore
from .utils import content_hash

logger = logging.getLogger(__name__)

SYSTEM_FONTS: tuple[str, ...] = (
    # PDF base-14
    "Helvetica",
    "Times",
    "Times-Roman",
    "Courier",
    "Symbol",
    "ZapfDingbats",
    # web-safe
    "Arial",
    "Arial Black",
    "Comic Sans MS",
    "Courier New",
    "Georgia",
    "Impact",
    "Lucida Console",
    "Lucida Sans Unicode",
    "Palatino Linotype",
    "Tahoma",
    "Times New Roman",
    "Trebuchet MS",
    "Verdana",
)

GENERIC_FAMILIES: frozenset[str] = frozenset(
    {
        "serif",
        "sans-serif",
        "monospace",
        "cursive",
        "fantasy",
        "system-ui",
        "emoji",
        "math",
        "fangsong",
        "inherit",
        "initial",
        "unset",
        "revert",
    }
)

WEIGHT_KEYWORDS: dict[str, int] = {
    "normal": 400,
    "bold": 700,
    "lighter": 300,
    "bolder": 700,
}

_PROPERTY_RE = re.compile(
    r"(?<![\w-])(?P<prop>font-family|fontFamily|font-weight|fontWeight|font-style|fontStyle)\s*:\s*"
)
_BLOCK_RE = re.compile(r"\{([^{}]*)\}")
_STYLE_ATTR_RE = re.compile(r"""(?<![\w-])style\s*=\s*(?P<quote>["'])(?P<body>.*?)(?P=quote)""", re.S)
_QUOTES = "\"'`"


@dataclass(frozen=True, slots=True)
class DetectionResult:
    requirements: tuple[FontRequirement, ...]
    digest: str
    from_cache: bool = field(default=False, compare=False)

    def by_origin(self, origin: FontOrigin) -> tuple[FontRequirement, ...]:
        return tuple(item for item in self.requirements if item.origin == origin)

    def families(self) -> list[str]:
        seen: dict[str, str] = {}
        for item in self.requirements:
            seen.setdefault(item.family.casefold(), item.family)
        return list(seen.values())


def is_generic_family(name: str) -> bool:
    lowered = name.casefold()
    return lowered in GENERIC_FAMILIES or lowered.startswith("ui-") or lowered.startswith("var(")


def parse_family(value: str) -> str | None:
    """Return the first concrete family in a ``font-family`` value."""

    for token in value.split(","):
        family = normalize_family(token.replace("!important", ""))
        if family and not is_generic_family(family):
            return family
    return None


def parse_weight(value: str) -> int | None:
    cleaned = value.replace("!important", "").strip().strip(_QUOTES).strip().lower()
    if cleaned in WEIGHT_KEYWORDS:
        return WEIGHT_KEYWORDS[cleaned]
    try:
        number = float(cleaned)
    except ValueError:
        return None
    if not math.isfinite(number):
        return None
    rounded = int(number / 100 + 0.5) * 100
    return min(900, max(100, rounded))


def parse_style(value: str) -> FontStyle:
    cleaned = value.replace("!important", "").strip().strip(_QUOTES).strip().lower()
    if cleaned.startswith("italic") or cleaned.startswith("oblique"):
        return "italic"
    return "normal"


def validate_requirement(requirement: FontRequirement) -> FontRequirement:
    family = normalize_family(requirement.family)
    if not family:
        raise ValidationError("Font family cannot be empty")
    if len(family) > 100:
        raise ValidationError("Font family too long (max 100 characters)")
    if not isinstance(requirement.weight, int) or not 100 <= requirement.weight <= 900 or requirement.weight % 100:
        raise ValidationError(f"Invalid font weight {requirement.weight!r}: expected 100..900 in steps of 100")
    if requirement.style not in FONT_STYLES:
        raise ValidationError(f"Invalid font style {requirement.style!r}: expected one of {', '.join(FONT_STYLES)}")
    return requirement


def _read_value(text: str, start: int, *, allow_commas: bool) -> str:
    if start < len(text) and text[start] in _QUOTES:
        quote = text[start]
        end = text.find(quote, start + 1)
        if end != -1:
            return text[start + 1 : end]
    stops = ";}\n" if allow_commas else ";,}\n"
    end = start
    while end < len(text) and text[end] not in stops:
        end += 1
    return text[start:end].strip()


def _groups(text: str) -> list[str]:
    spans: list[tuple[int, str]] = [(match.start(), match.group(1)) for match in _BLOCK_RE.finditer(text)]
    spans.extend((match.start(), match.group("body")) for match in _STYLE_ATTR_RE.finditer(text))
    if not spans:
        return [text]
    spans.sort(key=lambda item: item[0])
    return [body for _, body in spans]


def _scan_group(group: str, default_family: str | None) -> Iterable[tuple[str, int, FontStyle]]:
    family: str | None = None
    weight: int | None = None
    style: FontStyle | None = None
    pending = False
    for match in _PROPERTY_RE.finditer(group):
        prop = match.group("prop").lower().replace("-", "")
        if prop == "fontfamily":
            parsed = parse_family(_read_value(group, match.end(), allow_commas=True))
            if parsed is None:
                continue
            if pending and family is not None:
                yield family, weight or 400, style or "normal"
                weight = None
                style = None
            family = parsed
            pending = True
        elif prop == "fontweight":
            weight = parse_weight(_read_value(group, match.end(), allow_commas=False))
            pending = True
        else:
            style = parse_style(_read_value(group, match.end(), allow_commas=False))
            pending = True
    if not pending:
        return
    if family is None:
        # weight/style only: the block inherits the document's default family
        if default_family is None or (weight is None and style is None):
            return
        family = normalize_family(default_family)
    yield family, weight or 400, style or "normal"


def scan_requirements(
    text: str,
    *,
    custom_families: Mapping[str, str] | None = None,
    system_families: Mapping[str, str] | None = None,
    default_family: str | None = None,
) -> tuple[FontRequirement, ...]:
    """Extract deduplicated requirements from *text* in first-seen order."""

    custom = custom_families or {}
    system = system_families if system_families is not None else _family_map(SYSTEM_FONTS)
    found: dict[FontKey, FontRequirement] = {}
    for group in _groups(text):
        for family, weight, style in _scan_group(group, default_family):
            lowered = family.casefold()
            origin: FontOrigin
            if lowered in custom:
                origin, family = "custom", custom[lowered]
            elif lowered in system:
                origin, family = "system", system[lowered]
            else:
                origin = "remote"
            requirement = FontRequirement(family=family, weight=weight, style=style, origin=origin)
            found.setdefault(requirement.key, requirement)
    return tuple(found.values())


def _family_map(families: Iterable[str]) -> dict[str, str]:
    return {normalize_family(name).casefold(): normalize_family(name) for name in families}


class FontDetector:
    """Classifies the fonts a document needs, memoizing recent scans."""

    def __init__(
        self,
        custom_store: CustomFontStore | None = None,
        *,
        system_fonts: Iterable[str] = SYSTEM_FONTS,
        cache_size: int = 32,
    ) -> None:
        self._custom_store = custom_store
        self._system = _family_map(system_fonts)
        self._cache: LRUCache[str, DetectionResult] = LRUCache(cache_size)

    def is_system_font(self, family: str) -> bool:
        return normalize_family(family).casefold() in self._system

    async def detect(
        self,
        text: str,
        *,
        default_family: str | None = None,
        bypass_cache: bool = False,
    ) -> DetectionResult:
        if not isinstance(text, str):
            raise ValidationError("Document source must be text")
        custom = await self._custom_store.families() if self._custom_store is not None else {}
        digest = content_hash(text, [default_family or "", *sorted(custom)])
        if not bypass_cache:
            cached = self._cache.get(digest)
            if cached is not None:
                logger.debug("Detection cache hit for %s", digest[:12])
                return replace(cached, from_cache=True)
        requirements = scan_requirements(
            text,
            custom_families=custom,
            system_families=self._system,
            default_family=default_family,
        )
        result = DetectionResult(requirements=requirements, digest=digest)
        self._cache.set(digest, result)
        logger.debug("Detected %d font requirement(s)", len(requirements))
        return result

    def cache_stats(self) -> dict[str, int]:
        return self._cache.stats()

    def clear_cache(self) -> None:
        self._cache.clear()


__all__ = [
    "DetectionResult",
    "FontDetector",
    "GENERIC_FAMILIES",
    "SYSTEM_FONTS",
    "WEIGHT_KEYWORDS",
    "is_generic_family",
    "parse_family",
    "parse_style",
    "parse_weight",
    "scan_requirements",
    "validate_requirement",
]

"""Wiring of long-lived pipeline components from an :class:`AppConfig`."""

from __future__ import annotations

from dataclasses import dataclass

from .cache import LRUCache
from .codec import COMPRESSED_FORMATS, FontCodec, FontToolsCodec, detect_font_format, read_font_metadata
from .config import AppConfig
from .detection import FontDetector, validate_requirement
from .errors import CodecError, ValidationError
from .logging import RunLogger
from .models import CachedFont, CustomFontRecord, FontKey, FontRequirement, FontStyle, normalize_family
from .orchestrator import ConversionOrchestrator
from .remote import HttpTransport, RemoteFontResolver
from .render import Renderer
from .retry import STORAGE_RETRY, RetryPolicy
from .store import MIB, CustomFontStore, DirectoryFontStorage, FontStorage
from .utils import slugify


@dataclass(slots=True)
class FontPipeline:
    config: AppConfig
    cache: LRUCache[FontKey, CachedFont]
    store: CustomFontStore
    detector: FontDetector
    resolver: RemoteFontResolver
    run_logger: RunLogger
    codec: FontCodec
    orchestrator: ConversionOrchestrator | None = None

    async def add_custom_font(
        self,
        data: bytes,
        *,
        family: str | None = None,
        weight: int | None = None,
        style: FontStyle | None = None,
        font_id: str | None = None,
    ) -> CustomFontRecord:
        """Validate an uploaded font binary and save it to the custom store.

        Family, weight and style that are not given are read from the font's
        own ``name`` and ``OS/2`` tables.
        """

        limit = self.config.fonts.max_font_file_bytes
        if len(data) > limit:
            raise ValidationError(f"File size {len(data) / MIB:.1f}MB exceeds {limit / MIB:.0f}MB limit")
        container = detect_font_format(data)
        if container is None:
            raise ValidationError("Uploaded data is not a TTF, OTF, WOFF or WOFF2 font")
        if container in COMPRESSED_FORMATS:
            try:
                data = await self.codec.decompress(container, data)
            except CodecError as exc:
                raise ValidationError(f"Could not decode uploaded {container} font: {exc}") from exc
        if family is None or weight is None or style is None:
            metadata = await read_font_metadata(data)
            family = metadata.family if family is None else family
            weight = metadata.weight if weight is None else weight
            style = metadata.style if style is None else style
        family = normalize_family(family)
        validate_requirement(FontRequirement(family=family, weight=weight, style=style, origin="custom"))
        record = CustomFontRecord(
            id=font_id or slugify(f"{family}-{weight}-{style}"),
            family=family,
            weight=weight,
            style=style,
            data=data,
        )
        await self.store.save(record)
        return record


def build_pipeline(
    config: AppConfig,
    *,
    transport: HttpTransport | None = None,
    codec: FontCodec | None = None,
    storage: FontStorage | None = None,
    renderer: Renderer | None = None,
    retry: RetryPolicy | None = None,
) -> FontPipeline:
    """Construct the cache, store, detector and resolver.

    The orchestrator is only built when a renderer is supplied.
    """

    cache: LRUCache[FontKey, CachedFont] = LRUCache(config.fonts.cache_capacity)
    codec = codec or FontToolsCodec()
    store = CustomFontStore(
        storage if storage is not None else DirectoryFontStorage(config.runtime.fonts_dir),
        max_bytes=config.fonts.custom_quota_bytes,
        max_fonts=config.fonts.max_custom_fonts or None,
        retry=RetryPolicy(STORAGE_RETRY),
    )
    detector = FontDetector(store, cache_size=config.fonts.detection_cache_size)
    resolver = RemoteFontResolver(
        transport,
        cache=cache,
        retry=retry or RetryPolicy(config.retry.to_retry_config()),
        codec=codec,
        stylesheet_url=config.fonts.stylesheet_url,
        timeout_s=config.fonts.request_timeout_s,
    )
    run_logger = RunLogger(config.runtime.log_path)
    orchestrator = None
    if renderer is not None:
        orchestrator = ConversionOrchestrator(
            detector,
            resolver,
            renderer,
            custom_store=store,
            run_logger=run_logger,
        )
    return FontPipeline(
        config=config,
        cache=cache,
        store=store,
        detector=detector,
        resolver=resolver,
        run_logger=run_logger,
        codec=codec,
        orchestrator=orchestrator,
    )


__all__ = ["FontPipeline", "build_pipeline"]

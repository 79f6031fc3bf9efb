"""Remote font resolution against a Google Fonts style stylesheet service."""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Protocol
from urllib.parse import quote, urlsplit

import requests

from .cache import LRUCache
from .codec import COMPRESSED_FORMATS, FontCodec, FontToolsCodec, detect_font_format
from .detection import validate_requirement
from .errors import CodecError, ErrorKind, FontFetchError, PipelineError, is_transient
from .executors import run_sync
from .models import CachedFont, FontKey, FontRequirement, FontResolution, FontStyle, normalize_family
from .retry import RetryCallback, RetryPolicy

DEFAULT_STYLESHEET_URL = "https://fonts.googleapis.com/css2"
DEFAULT_TIMEOUT_S = 30.0
DEFAULT_CACHE_CAPACITY = 50

URL_PREFERENCE: tuple[str, ...] = (".ttf", ".otf", ".woff2", ".woff")

_URL_RE = re.compile(r"""url\(\s*['"]?(?P<url>[^'")\s]+)['"]?\s*\)""")

ResolutionRetryCallback = Callable[[FontRequirement, int, int, BaseException], None]
SettledCallback = Callable[[FontResolution], None]

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int
    content: bytes = b""

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")


class HttpTransport(Protocol):
    async def get(self, url: str, timeout: float) -> HttpResponse:  # pragma: no cover - interface
        ...


class RequestsTransport:
    """HTTP transport backed by a shared ``requests.Session``."""

    def __init__(self, session: requests.Session | None = None, *, headers: Mapping[str, str] | None = None) -> None:
        self._session = session or requests.Session()
        self._headers = dict(headers or {})

    def _get_blocking(self, url: str, timeout: float) -> HttpResponse:
        try:
            response = self._session.get(url, timeout=timeout, headers=self._headers)
        except requests.Timeout as exc:
            raise PipelineError(ErrorKind.NETWORK_TIMEOUT, f"Request to {url} timed out after {timeout:g}s") from exc
        except requests.RequestException as exc:
            raise PipelineError(ErrorKind.NETWORK_ERROR, f"Request to {url} failed: {exc}") from exc
        return HttpResponse(status=response.status_code, content=response.content)

    async def get(self, url: str, timeout: float) -> HttpResponse:
        return await run_sync(self._get_blocking, url, timeout)

    def close(self) -> None:
        self._session.close()


def build_stylesheet_url(
    family: str,
    weight: int = 400,
    style: FontStyle = "normal",
    *,
    base_url: str = DEFAULT_STYLESHEET_URL,
) -> str:
    encoded = quote(normalize_family(family), safe="")
    if style == "italic":
        return f"{base_url}?family={encoded}:ital,wght@1,{weight}&display=swap"
    return f"{base_url}?family={encoded}:wght@{weight}&display=swap"


def extract_font_url(stylesheet: str) -> str | None:
    """Pick the most embeddable font file referenced by *stylesheet*."""

    urls = [match.group("url") for match in _URL_RE.finditer(stylesheet)]
    urls = [url for url in urls if not url.startswith("data:")]
    if not urls:
        return None
    for extension in URL_PREFERENCE:
        for url in urls:
            if urlsplit(url).path.lower().endswith(extension):
                return url
    return urls[0]


class RemoteFontResolver:
    """Fetches remote font binaries through a bounded cache.

    Concurrent requests for the same (family, weight, style) share one
    in-flight fetch. Only network errors and timeouts are retried: an injected
    policy's own ``should_retry`` can narrow that further but never widen it.
    """

    def __init__(
        self,
        transport: HttpTransport | None = None,
        *,
        cache: LRUCache[FontKey, CachedFont] | None = None,
        retry: RetryPolicy | None = None,
        codec: FontCodec | None = None,
        stylesheet_url: str = DEFAULT_STYLESHEET_URL,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._transport = transport or RequestsTransport()
        self._cache = cache if cache is not None else LRUCache(DEFAULT_CACHE_CAPACITY)
        policy = retry or RetryPolicy()
        narrowed = policy.config.should_retry
        self._retry = policy.with_config(should_retry=lambda exc: is_transient(exc) and narrowed(exc))
        self._codec = codec or FontToolsCodec()
        self._stylesheet_url = stylesheet_url
        self._timeout_s = timeout_s
        self._inflight: dict[FontKey, asyncio.Future[bytes]] = {}

    @property
    def cache(self) -> LRUCache[FontKey, CachedFont]:
        return self._cache

    def cache_stats(self) -> dict[str, int]:
        return self._cache.stats()

    async def resolve(self, requirement: FontRequirement, on_retry: RetryCallback | None = None) -> bytes:
        validate_requirement(requirement)
        key = requirement.key
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("Font cache hit for %s", requirement.label())
            return cached.data
        pending = self._inflight.get(key)
        if pending is None:
            pending = asyncio.ensure_future(self._retry.execute(lambda: self._fetch(requirement), on_retry))
            self._inflight[key] = pending
            pending.add_done_callback(lambda _: self._inflight.pop(key, None))
        else:
            logger.debug("Joining in-flight fetch for %s", requirement.label())
        return await asyncio.shield(pending)

    async def resolve_many(
        self,
        requirements: Iterable[FontRequirement],
        on_retry: ResolutionRetryCallback | None = None,
        on_settled: SettledCallback | None = None,
    ) -> list[FontResolution]:
        """Resolve every requirement concurrently; failures are returned, not raised.

        ``on_settled`` is called once per requirement as soon as its resolution
        completes, in completion order.
        """

        async def settle(requirement: FontRequirement) -> FontResolution:
            callback: RetryCallback | None = None
            if on_retry is not None:
                callback = lambda attempt, delay, exc: on_retry(requirement, attempt, delay, exc)  # noqa: E731
            try:
                data = await self.resolve(requirement, callback)
            except PipelineError as exc:
                logger.warning("Could not resolve %s: %s", requirement.label(), exc.message)
                resolution = FontResolution(requirement, error=exc)
            else:
                resolution = FontResolution(requirement, data=data)
            if on_settled is not None:
                on_settled(resolution)
            return resolution

        return list(await asyncio.gather(*(settle(item) for item in requirements)))

    async def _get(self, url: str, family: str) -> HttpResponse:
        try:
            return await asyncio.wait_for(self._transport.get(url, self._timeout_s), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            raise FontFetchError(
                ErrorKind.NETWORK_TIMEOUT,
                family,
                f"Request to {url} timed out after {self._timeout_s:g}s",
            ) from exc
        except PipelineError as exc:
            raise FontFetchError(exc.kind, family, exc.message) from exc
        except Exception as exc:
            raise FontFetchError(ErrorKind.NETWORK_ERROR, family, f"Request to {url} failed: {exc}") from exc

    async def _fetch(self, requirement: FontRequirement) -> bytes:
        family = requirement.family
        label = requirement.label()
        stylesheet_url = build_stylesheet_url(
            family,
            requirement.weight,
            requirement.style,
            base_url=self._stylesheet_url,
        )
        response = await self._get(stylesheet_url, family)
        if response.status == 404:
            raise FontFetchError(ErrorKind.NOT_FOUND, family, f"Font {label} not found (HTTP 404)")
        if response.status != 200:
            raise FontFetchError(
                ErrorKind.NETWORK_ERROR,
                family,
                f"Stylesheet request for {label} failed with HTTP {response.status}",
            )

        font_url = extract_font_url(response.text)
        if font_url is None:
            raise FontFetchError(ErrorKind.PARSE_ERROR, family, f"No font URL in stylesheet for {label}")

        font_response = await self._get(font_url, family)
        if font_response.status != 200:
            raise FontFetchError(
                ErrorKind.NETWORK_ERROR,
                family,
                f"Font download for {label} failed with HTTP {font_response.status}",
            )

        data = font_response.content
        container = detect_font_format(data)
        if container is None:
            raise FontFetchError(ErrorKind.PARSE_ERROR, family, f"Downloaded data for {label} is not a font")
        if container in COMPRESSED_FORMATS:
            try:
                data = await self._codec.decompress(container, data)
            except CodecError as exc:
                raise FontFetchError(ErrorKind.PARSE_ERROR, family, f"Could not decode {label}: {exc}") from exc

        self._cache.set(requirement.key, CachedFont(key=requirement.key, data=data, size_bytes=len(data)))
        logger.debug("Fetched %s (%s, %d bytes)", label, container, len(data))
        return data


__all__ = [
    "DEFAULT_STYLESHEET_URL",
    "HttpResponse",
    "HttpTransport",
    "RemoteFontResolver",
    "RequestsTransport",
    "ResolutionRetryCallback",
    "SettledCallback",
    "build_stylesheet_url",
    "extract_font_url",
]

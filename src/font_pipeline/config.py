from __future__ import annotations

import json
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .errors import is_transient
from .remote import DEFAULT_STYLESHEET_URL
from .retry import RetryConfig

CONFIG_FILE = Path("config.toml")


@dataclass(slots=True)
class FontsConfig:
    cache_capacity: int = 50
    custom_quota_mb: int = 50
    max_custom_fonts: int = 0
    max_font_file_mb: int = 10
    stylesheet_url: str = DEFAULT_STYLESHEET_URL
    request_timeout_s: float = 30.0
    detection_cache_size: int = 32

    @property
    def custom_quota_bytes(self) -> int:
        return self.custom_quota_mb * 1024 * 1024

    @property
    def max_font_file_bytes(self) -> int:
        return self.max_font_file_mb * 1024 * 1024


@dataclass(slots=True)
class RetrySettings:
    max_attempts: int = 3
    base_delay_ms: int = 1000
    max_delay_ms: int = 8000
    timeout_ms: int = 20000
    jitter: float = 0.3

    def to_retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay_ms=self.base_delay_ms,
            max_delay_ms=self.max_delay_ms or None,
            timeout_ms=self.timeout_ms or None,
            should_retry=is_transient,
            jitter=self.jitter,
        )


@dataclass(slots=True)
class RuntimeConfig:
    data_dir: Path = Path("fontdata")
    log_file: str = "conversions.jsonl"
    enable_local_api: bool = False

    @property
    def fonts_dir(self) -> Path:
        return self.data_dir / "custom"

    @property
    def log_path(self) -> Path:
        return self.data_dir / self.log_file


@dataclass(slots=True)
class APIConfig:
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass(slots=True)
class AppConfig:
    fonts: FontsConfig = field(default_factory=FontsConfig)
    retry: RetrySettings = field(default_factory=RetrySettings)
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    api: APIConfig = field(default_factory=APIConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _section(raw: Mapping[str, object], name: str) -> Mapping[str, object] | None:
    data = raw.get(name)
    return data if isinstance(data, Mapping) else None


def _build_fonts(data: Mapping[str, object] | None) -> FontsConfig:
    if not data:
        return FontsConfig()
    return FontsConfig(
        cache_capacity=int(data.get("cache_capacity", 50)),
        custom_quota_mb=int(data.get("custom_quota_mb", 50)),
        max_custom_fonts=int(data.get("max_custom_fonts", 0)),
        max_font_file_mb=int(data.get("max_font_file_mb", 10)),
        stylesheet_url=str(data.get("stylesheet_url", DEFAULT_STYLESHEET_URL)),
        request_timeout_s=float(data.get("request_timeout_s", 30.0)),
        detection_cache_size=int(data.get("detection_cache_size", 32)),
    )


def _build_retry(data: Mapping[str, object] | None) -> RetrySettings:
    if not data:
        return RetrySettings()
    return RetrySettings(
        max_attempts=int(data.get("max_attempts", 3)),
        base_delay_ms=int(data.get("base_delay_ms", 1000)),
        max_delay_ms=int(data.get("max_delay_ms", 8000)),
        timeout_ms=int(data.get("timeout_ms", 20000)),
        jitter=float(data.get("jitter", 0.3)),
    )


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    return RuntimeConfig(
        data_dir=Path(str(data.get("data_dir", "fontdata"))),
        log_file=str(data.get("log_file", "conversions.jsonl")),
        enable_local_api=bool(data.get("enable_local_api", False)),
    )


def _build_api(data: Mapping[str, object] | None) -> APIConfig:
    if not data:
        return APIConfig()
    return APIConfig(host=str(data.get("host", "127.0.0.1")), port=int(data.get("port", 8000)))


def load_config(path: Path | None = None) -> AppConfig:
    path = path or CONFIG_FILE
    raw = _read_toml(path)
    return AppConfig(
        fonts=_build_fonts(_section(raw, "fonts")),
        retry=_build_retry(_section(raw, "retry")),
        runtime=_build_runtime(_section(raw, "runtime")),
        api=_build_api(_section(raw, "api")),
    )


def dump_config(config: AppConfig) -> str:
    payload = {
        "fonts": {
            "cache_capacity": config.fonts.cache_capacity,
            "custom_quota_mb": config.fonts.custom_quota_mb,
            "max_custom_fonts": config.fonts.max_custom_fonts,
            "max_font_file_mb": config.fonts.max_font_file_mb,
            "stylesheet_url": config.fonts.stylesheet_url,
            "request_timeout_s": config.fonts.request_timeout_s,
            "detection_cache_size": config.fonts.detection_cache_size,
        },
        "retry": {
            "max_attempts": config.retry.max_attempts,
            "base_delay_ms": config.retry.base_delay_ms,
            "max_delay_ms": config.retry.max_delay_ms,
            "timeout_ms": config.retry.timeout_ms,
            "jitter": config.retry.jitter,
        },
        "runtime": {
            "data_dir": str(config.runtime.data_dir),
            "log_file": config.runtime.log_file,
            "enable_local_api": config.runtime.enable_local_api,
        },
        "api": {
            "host": config.api.host,
            "port": config.api.port,
        },
    }
    return json.dumps(payload, indent=2)


__all__ = [
    "APIConfig",
    "AppConfig",
    "FontsConfig",
    "RetrySettings",
    "RuntimeConfig",
    "dump_config",
    "load_config",
]

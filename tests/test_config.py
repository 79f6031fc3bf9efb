import json
from pathlib import Path

import pytest

from font_pipeline.config import AppConfig, dump_config, load_config
from font_pipeline.errors import ErrorKind, PipelineError, ValidationError
from font_pipeline.models import ConversionConfig
from font_pipeline.settings import get_settings


def test_defaults_when_file_missing(tmp_path: Path) -> None:
    config = load_config(tmp_path / "missing.toml")
    assert config == AppConfig()
    assert config.fonts.cache_capacity == 50
    assert config.fonts.custom_quota_bytes == 50 * 1024 * 1024
    assert config.fonts.max_font_file_bytes == 10 * 1024 * 1024
    assert config.runtime.log_path == Path("fontdata") / "conversions.jsonl"


def test_load_sections(tmp_path: Path) -> None:
    path = tmp_path / "config.toml"
    path.write_text(
        """
[fonts]
cache_capacity = 10
max_font_file_mb = 4
request_timeout_s = 5

[retry]
max_attempts = 5
jitter = 0.0

[runtime]
data_dir = "state"
enable_local_api = true

[api]
port = 9000
""",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.fonts.cache_capacity == 10
    assert config.fonts.max_font_file_mb == 4
    assert config.fonts.request_timeout_s == 5.0
    assert config.runtime.data_dir == Path("state")
    assert config.runtime.enable_local_api is True
    assert config.api.port == 9000

    retry = config.retry.to_retry_config()
    assert retry.max_attempts == 5
    assert retry.should_retry(PipelineError(ErrorKind.NETWORK_ERROR, "reset"))
    assert not retry.should_retry(PipelineError(ErrorKind.NOT_FOUND, "missing"))


def test_dump_config_round_trips_values() -> None:
    payload = json.loads(dump_config(AppConfig()))
    assert payload["fonts"]["stylesheet_url"] == "https://fonts.googleapis.com/css2"
    assert payload["retry"]["max_attempts"] == 3
    assert payload["runtime"]["enable_local_api"] is False


def test_settings_read_prefixed_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("FONTPIPE_CONFIG_PATH", str(tmp_path / "alt.toml"))
    monkeypatch.setenv("FONTPIPE_ENABLE_LOCAL_API", "true")
    get_settings.cache_clear()
    try:
        settings = get_settings()
        assert settings.config_path == tmp_path / "alt.toml"
        assert settings.enable_local_api is True
    finally:
        get_settings.cache_clear()


def test_conversion_config_validation() -> None:
    ConversionConfig().validate()
    config = ConversionConfig.from_dict({"page_size": "A5", "font_size": 4, "margin": {"top": 3}})
    with pytest.raises(ValidationError) as exc:
        config.validate()
    assert "page_size" in exc.value.message
    assert "top margin" in exc.value.message
    assert "font_size" in exc.value.message

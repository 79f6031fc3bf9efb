import json
from pathlib import Path

from typer.testing import CliRunner

from font_pipeline.cli import app

runner = CliRunner()

TTF = b"\x00\x01\x00\x00" + b"\x00" * 28


def write_config(tmp_path: Path) -> Path:
    config = tmp_path / "config.toml"
    config.write_text(f'[runtime]\ndata_dir = "{(tmp_path / "data").as_posix()}"\n', encoding="utf-8")
    return config


def test_detect_lists_requirements(tmp_path: Path) -> None:
    styles = tmp_path / "page.css"
    styles.write_text("h1 { font-family: Merriweather; font-weight: 900 }", encoding="utf-8")
    result = runner.invoke(app, ["detect", str(styles), "--config", str(write_config(tmp_path))])
    assert result.exit_code == 0
    assert "Merriweather" in result.stdout
    assert "900" in result.stdout


def test_fonts_add_list_and_remove(tmp_path: Path) -> None:
    config = str(write_config(tmp_path))
    font = tmp_path / "brand.ttf"
    font.write_bytes(TTF)

    added = runner.invoke(app, ["fonts", "add", str(font), "--family", "Brand", "--id", "brand", "--config", config])
    assert added.exit_code == 0
    listed = runner.invoke(app, ["fonts", "list", "--config", config])
    assert "brand" in listed.stdout
    assert runner.invoke(app, ["fonts", "remove", "brand", "--config", config]).exit_code == 0
    missing = runner.invoke(app, ["fonts", "remove", "brand", "--config", config])
    assert missing.exit_code == 1


def test_fonts_add_rejects_non_font(tmp_path: Path) -> None:
    bogus = tmp_path / "notes.txt"
    bogus.write_text("not a font", encoding="utf-8")
    result = runner.invoke(
        app, ["fonts", "add", str(bogus), "--family", "Brand", "--config", str(write_config(tmp_path))]
    )
    assert result.exit_code == 1
    assert "validation_error" in result.stdout


def test_cache_info_shows_configured_limits(tmp_path: Path) -> None:
    result = runner.invoke(app, ["cache-info", "--config", str(write_config(tmp_path))])
    assert result.exit_code == 0
    assert "Font cache capacity" in result.stdout
    assert "Custom fonts: 0" in result.stdout


def test_history_lists_logged_conversions(tmp_path: Path) -> None:
    config = write_config(tmp_path)
    assert "No conversions logged." in runner.invoke(app, ["history", "--config", str(config)]).stdout

    entry = {
        "job_id": "job-1",
        "slot": "default",
        "status": "failed",
        "error_kind": "render_error",
        "fonts_required": 2,
        "fonts_embedded": 1,
        "size_bytes": 0,
    }
    log_file = tmp_path / "data" / "conversions.jsonl"
    log_file.parent.mkdir(parents=True, exist_ok=True)
    log_file.write_text(json.dumps(entry) + "\n", encoding="utf-8")

    result = runner.invoke(app, ["history", "--config", str(config)])
    assert result.exit_code == 0
    assert "job-1" in result.stdout
    assert "render_error" in result.stdout

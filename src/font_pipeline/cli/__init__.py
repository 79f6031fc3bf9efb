from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ..config import AppConfig, load_config
from ..errors import PipelineError
from ..models import FontRequirement
from ..service import FontPipeline, build_pipeline
from ..utils import slugify

console = Console()

app = typer.Typer(help="Font detection, fetching and custom font management")
fonts_app = typer.Typer(help="Manage custom fonts")
app.add_typer(fonts_app, name="fonts")


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


def _load_config(path: Path | None) -> AppConfig:
    return load_config(path)


def _pipeline(config: Path | None) -> FontPipeline:
    return build_pipeline(_load_config(config))


def _fail(exc: PipelineError) -> typer.Exit:
    console.print(f"[red]{exc.kind.value}[/red]: {exc.message}")
    return typer.Exit(1)


@app.command()
def detect(
    file: Path,
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    default_family: str | None = typer.Option(None, "--default-family", help="Family for weight-only rules"),
) -> None:
    """List the fonts a document's styles require."""

    pipeline = _pipeline(config)
    text = file.read_text(encoding="utf-8")
    try:
        result = asyncio.run(pipeline.detector.detect(text, default_family=default_family))
    except PipelineError as exc:
        raise _fail(exc) from exc
    if not result.requirements:
        console.print("No font declarations found.")
        return
    table = Table(title=f"Fonts in {file.name}")
    table.add_column("Family")
    table.add_column("Weight", justify="right")
    table.add_column("Style")
    table.add_column("Origin")
    for requirement in result.requirements:
        table.add_row(requirement.family, str(requirement.weight), requirement.style, requirement.origin)
    console.print(table)


@app.command()
def fetch(
    family: str,
    weight: int = typer.Option(400, "--weight", min=100, max=900, help="Font weight"),
    italic: bool = typer.Option(False, "--italic", help="Fetch the italic variant"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the font binary here"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Download one remote font variant."""

    pipeline = _pipeline(config)
    requirement = FontRequirement(family=family, weight=weight, style="italic" if italic else "normal")

    def report(attempt: int, delay_ms: int, error: BaseException) -> None:
        console.print(f"[yellow]Attempt {attempt} failed[/yellow] ({error}); retrying in {delay_ms}ms")

    try:
        data = asyncio.run(pipeline.resolver.resolve(requirement, on_retry=report))
    except PipelineError as exc:
        raise _fail(exc) from exc
    target = output or Path(f"{slugify(requirement.label())}.ttf")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_bytes(data)
    console.print(f"[green]Fetched[/green] {requirement.label()} ({len(data)} bytes) -> {target}")


@app.command("cache-info")
def cache_info(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Show configured cache limits and custom font storage usage.

    Font caches live inside a running process; query GET /api/v1/cache on
    ``serve`` for their current contents.
    """

    cfg = _load_config(config)
    pipeline = build_pipeline(cfg)
    table = Table(title="Configured limits")
    table.add_column("Setting")
    table.add_column("Value", justify="right")
    table.add_row("Font cache capacity", str(cfg.fonts.cache_capacity))
    table.add_row("Detection cache capacity", str(cfg.fonts.detection_cache_size))
    table.add_row("Custom font quota", f"{cfg.fonts.custom_quota_mb} MB")
    table.add_row("Largest font file", f"{cfg.fonts.max_font_file_mb} MB")
    table.add_row("Custom font count limit", str(cfg.fonts.max_custom_fonts or "unlimited"))
    console.print(table)
    stats = asyncio.run(pipeline.store.get_stats())
    console.print(
        f"Custom fonts: {stats.count} using {stats.total_bytes} of {stats.max_bytes} bytes "
        f"({stats.percent_used}%)"
    )


@app.command()
def history(
    limit: int = typer.Option(20, "--limit", min=1, help="Number of recent conversions to show"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Show recent conversions from the run log."""

    pipeline = _pipeline(config)
    entries = pipeline.run_logger.read(limit)
    if not entries:
        console.print("No conversions logged.")
        return
    table = Table(title=f"Last {len(entries)} conversions")
    table.add_column("Job")
    table.add_column("Slot")
    table.add_column("Status")
    table.add_column("Error")
    table.add_column("Fonts", justify="right")
    table.add_column("Bytes", justify="right")
    for entry in entries:
        table.add_row(
            str(entry["job_id"]),
            str(entry["slot"]),
            str(entry["status"]),
            str(entry.get("error_kind") or ""),
            f"{entry['fonts_embedded']}/{entry['fonts_required']}",
            str(entry["size_bytes"]),
        )
    console.print(table)


@fonts_app.command("list")
def list_fonts(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    pipeline = _pipeline(config)
    records = asyncio.run(pipeline.store.get_all())
    if not records:
        console.print("No custom fonts installed.")
        return
    table = Table(title="Custom fonts")
    table.add_column("ID")
    table.add_column("Family")
    table.add_column("Weight", justify="right")
    table.add_column("Style")
    table.add_column("Bytes", justify="right")
    for record in sorted(records, key=lambda item: (item.family.casefold(), item.weight, item.style)):
        table.add_row(record.id, record.family, str(record.weight), record.style, str(record.size_bytes))
    console.print(table)


@fonts_app.command("add")
def add_font(
    file: Path,
    family: str | None = typer.Option(None, "--family", help="Family name; read from the font when omitted"),
    weight: int | None = typer.Option(None, "--weight", min=100, max=900, help="Read from the font when omitted"),
    style: str | None = typer.Option(None, "--style", help="normal or italic; read from the font when omitted"),
    font_id: str | None = typer.Option(None, "--id", help="Identifier; derived from family when omitted"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    pipeline = _pipeline(config)
    try:
        record = asyncio.run(
            pipeline.add_custom_font(
                file.read_bytes(),
                family=family,
                weight=weight,
                style=style,  # type: ignore[arg-type]
                font_id=font_id,
            )
        )
    except PipelineError as exc:
        raise _fail(exc) from exc
    console.print(f"[green]Saved[/green] {record.family} {record.weight} {record.style} as {record.id}")


@fonts_app.command("remove")
def remove_font(
    font_id: str,
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    pipeline = _pipeline(config)
    if not asyncio.run(pipeline.store.delete_by_id(font_id)):
        console.print(f"[red]not_found[/red]: no custom font with id {font_id}")
        raise typer.Exit(1)
    console.print(f"Removed {font_id}.")


@fonts_app.command("clear")
def clear_fonts(
    yes: bool = typer.Option(False, "--yes", help="Skip confirmation"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    if not yes and not typer.confirm("Delete all custom fonts?"):
        raise typer.Exit()
    pipeline = _pipeline(config)
    asyncio.run(pipeline.store.delete_all())
    console.print("Removed all custom fonts.")


@fonts_app.command("stats")
def font_stats(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    pipeline = _pipeline(config)
    stats = asyncio.run(pipeline.store.get_stats())
    for key, value in stats.as_dict().items():
        console.print(f"{key}: {value}")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address; defaults to [api].host"),
    port: int | None = typer.Option(None, "--port", help="Port; defaults to [api].port"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Run the local HTTP API."""

    import uvicorn

    from ..api import create_app

    cfg = _load_config(config)
    cfg.runtime.enable_local_api = True
    uvicorn.run(create_app(cfg), host=host or cfg.api.host, port=port or cfg.api.port)


if __name__ == "__main__":
    app()

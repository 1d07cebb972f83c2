"""CLI entrypoint using typer."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Iterator
from pathlib import Path
from typing import Any, TypeVar

import structlog
import typer
from rich.console import Console
from rich.markup import escape

from filecache_core.config.settings import CacheSettings
from filecache_core.exceptions import CacheError
from filecache_infra.cache.file_cache import FileCache
from filecache_infra.cache.stream import CacheStream
from filecache_infra.cache.sweeper import SweepReport
from filecache_infra.observability import bind_cache_context, configure_logging

app = typer.Typer(
    name="filecache",
    help="Inspect and maintain a filecache directory",
)
console = Console(stderr=True)
logger = structlog.get_logger()

_DIR_OPTION = typer.Option(None, "--dir", help="Cache directory (overrides FILECACHE_CACHE_DIR)")
_VERBOSE_OPTION = typer.Option(False, "-v", "--verbose", help="Enable debug logging")
_FILE_CHUNK_SIZE = 64 * 1024

T = TypeVar("T")


@app.command()
def get(
    key: str = typer.Argument(..., help="Cache key"),
    cache_dir: Path | None = _DIR_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Print the value stored under KEY; exit 1 on a miss."""
    settings = _load_settings(cache_dir, verbose)
    value = _run(_get(settings, key))
    if value is None:
        console.print(f"[yellow]Miss:[/yellow] {escape(key)}")
        raise typer.Exit(code=1)
    typer.echo(value, nl=False)


@app.command("set")
def set_(
    key: str = typer.Argument(..., help="Cache key"),
    value: str | None = typer.Argument(None, help="Value to store as UTF-8"),
    from_file: Path | None = typer.Option(
        None,
        "--file",
        help="Stream the value from this file instead",
        exists=True,
        dir_okay=False,
    ),
    ttl: int | None = typer.Option(
        None, "--ttl", help="Seconds until expiry; omit to never expire"
    ),
    cache_dir: Path | None = _DIR_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Store VALUE (or --file contents) under KEY."""
    if (value is None) == (from_file is None):
        console.print("[red]Error:[/red] Provide exactly one of VALUE or --file", style="bold")
        raise typer.Exit(code=1)

    settings = _load_settings(cache_dir, verbose)
    _run(_set(settings, key, value, from_file, ttl))
    console.print(f"[green]Stored:[/green] {escape(key)}")


@app.command()
def delete(
    key: str = typer.Argument(..., help="Cache key"),
    cache_dir: Path | None = _DIR_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Remove KEY from the cache."""
    settings = _load_settings(cache_dir, verbose)
    if _run(_delete(settings, key)):
        console.print(f"[green]Deleted:[/green] {escape(key)}")
    else:
        console.print(f"[dim]Nothing to delete:[/dim] {escape(key)}")


@app.command()
def exists(
    key: str = typer.Argument(..., help="Cache key"),
    cache_dir: Path | None = _DIR_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Exit 0 if KEY holds a valid entry, 1 otherwise."""
    settings = _load_settings(cache_dir, verbose)
    if not _run(_exists(settings, key)):
        console.print(f"[yellow]Missing:[/yellow] {escape(key)}")
        raise typer.Exit(code=1)
    console.print(f"[green]Present:[/green] {escape(key)}")


@app.command()
def sweep(
    cache_dir: Path | None = _DIR_OPTION,
    verbose: bool = _VERBOSE_OPTION,
) -> None:
    """Evict expired and corrupt records now."""
    settings = _load_settings(cache_dir, verbose)
    report = _run(_sweep(settings))
    console.print(f"[bold]Sweep complete:[/bold] {settings.cache_dir}")
    console.print(f"  Scanned: {report.scanned}")
    console.print(f"  Evicted: {report.evicted}")
    console.print(f"  Temp files removed: {report.temp_removed}")
    if report.failed:
        console.print(f"  [yellow]Failed: {report.failed}[/yellow]")


@app.command()
def version() -> None:
    """Show version."""
    console.print("filecache v0.1.0")


def _load_settings(cache_dir: Path | None, verbose: bool) -> CacheSettings:
    """Read settings from the environment and apply CLI overrides."""
    settings = CacheSettings()
    if cache_dir is not None:
        settings.cache_dir = cache_dir
    if verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)
    bind_cache_context(str(settings.cache_dir))
    return settings


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a cache coroutine, turning cache errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except CacheError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc


async def _get(settings: CacheSettings, key: str) -> bytes | None:
    async with FileCache.from_settings(settings, start_sweeper=False) as cache:
        value = await cache.get(key)
        if isinstance(value, CacheStream):
            async with value:
                return await value.buffer()
        return value


async def _set(
    settings: CacheSettings,
    key: str,
    value: str | None,
    from_file: Path | None,
    ttl: int | None,
) -> None:
    async with FileCache.from_settings(settings, start_sweeper=False) as cache:
        if from_file is not None:
            await cache.set_stream(key, _read_file_chunks(from_file), ttl_seconds=ttl)
        else:
            await cache.set(key, (value or "").encode("utf-8"), ttl_seconds=ttl)
    logger.info("cli_value_stored", key=key, ttl_seconds=ttl)


async def _delete(settings: CacheSettings, key: str) -> bool:
    async with FileCache.from_settings(settings, start_sweeper=False) as cache:
        return await cache.delete(key)


async def _exists(settings: CacheSettings, key: str) -> bool:
    async with FileCache.from_settings(settings, start_sweeper=False) as cache:
        return await cache.exists(key)


async def _sweep(settings: CacheSettings) -> SweepReport:
    cache = FileCache.from_settings(settings, start_sweeper=False)
    return await cache.sweep()


def _read_file_chunks(path: Path) -> Iterator[bytes]:
    """Yield the file in fixed-size chunks."""
    with path.open("rb") as f:
        while chunk := f.read(_FILE_CHUNK_SIZE):
            yield chunk


if __name__ == "__main__":
    app()

"""Typer-based CLI entry point."""

from __future__ import annotations

import functools
import logging
import os
from pathlib import Path
from typing import Optional

import typer
from rich import print
from rich.table import Table

from .config import DEFAULT_THUMBNAIL_WIDTH
from .core.url_strategy import resolve_full_size, resolve_thumbnail
from .errors import GalleryManifestError, IGalleryError, ImageFetchError, SettingsError
from .utils.console_logger import ensure_console_logger

app = typer.Typer(help="Resolve, fetch and prefetch gallery images")

_LOGGER_NAME = "iGallery"
_HANDLER_NAME = "igallery-cli"


def _handle_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except (GalleryManifestError, ImageFetchError, SettingsError) as exc:
            typer.echo(f"Error: {exc}", err=True)
            raise typer.Exit(1) from exc
        except IGalleryError as exc:
            typer.echo(f"Unexpected error: {exc}", err=True)
            raise typer.Exit(1) from exc

    return wrapper


def _context(settings_path: Optional[Path]):
    from PySide6.QtCore import QCoreApplication

    from .appctx import AppContext
    from .settings.manager import SettingsManager

    if QCoreApplication.instance() is None:
        os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
        QCoreApplication([])
    settings = SettingsManager(settings_path)
    settings.load()
    return AppContext(settings=settings)


def _wait(pending: set, timeout: float) -> None:
    """Spin a Qt event loop until *pending* is empty or *timeout* elapses."""

    from PySide6.QtCore import QEventLoop, QTimer

    if not pending:
        return
    loop = QEventLoop()
    poll = QTimer()
    poll.setInterval(20)
    poll.timeout.connect(lambda: None if pending else loop.quit())
    poll.start()
    QTimer.singleShot(int(timeout * 1000), loop.quit)
    loop.exec()
    poll.stop()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Log loader activity")) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    ensure_console_logger(logging.getLogger(_LOGGER_NAME), _HANDLER_NAME, level=level)


@app.command()
def resolve(
    reference: str = typer.Argument(..., help="Image URL"),
    width: int = typer.Option(DEFAULT_THUMBNAIL_WIDTH, "--width", "-w", min=1),
    full: bool = typer.Option(False, "--full", help="Resolve the full-size rendition"),
) -> None:
    """Show which URL would be downloaded for REFERENCE."""

    if full:
        print(resolve_full_size(reference))
        return
    plan = resolve_thumbnail(reference, width)
    print(plan.resource_key)
    if plan.needs_client_resize:
        print(f"[yellow]client-side resize to {width}px required")


@app.command()
@_handle_errors
def fetch(
    reference: str = typer.Argument(..., help="Image URL"),
    output: Path = typer.Option(..., "--output", "-o", help="Where to save the image"),
    width: Optional[int] = typer.Option(None, "--width", "-w", min=1, help="Thumbnail width"),
    full: bool = typer.Option(False, "--full", help="Fetch the largest rendition"),
    timeout: float = typer.Option(30.0, "--timeout", min=0.1),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Settings file"),
) -> None:
    """Download REFERENCE through the image loader and save it to OUTPUT."""

    ctx = _context(settings_path)
    loader = ctx.image_loader
    outcome: dict = {}
    pending = {reference}

    def _done(result) -> None:
        outcome["result"] = result
        pending.discard(reference)

    if full:
        loader.request_full_size(reference, _done)
    else:
        loader.request_thumbnail(reference, _done, width or ctx.thumbnail_width)
    _wait(pending, timeout)
    ctx.shutdown()

    result = outcome.get("result")
    if result is None:
        typer.echo(f"Error: timed out after {timeout:.1f}s", err=True)
        raise typer.Exit(1)
    if not result.ok:
        raise result.error
    output.parent.mkdir(parents=True, exist_ok=True)
    if not result.image.save(str(output)):
        typer.echo(f"Error: could not write {output}", err=True)
        raise typer.Exit(1)
    print(f"[green]Saved {result.image.width()}x{result.image.height()} image to {output}")


@app.command()
@_handle_errors
def prefetch(
    manifest: Path = typer.Argument(..., exists=True, dir_okay=False, help="Gallery JSON"),
    width: Optional[int] = typer.Option(None, "--width", "-w", min=1, help="Thumbnail width"),
    timeout: float = typer.Option(60.0, "--timeout", min=0.1),
    settings_path: Optional[Path] = typer.Option(None, "--settings", help="Settings file"),
) -> None:
    """Warm the thumbnail cache for every item in MANIFEST."""

    from .models.gallery_item import load_gallery_manifest

    items = load_gallery_manifest(manifest)
    ctx = _context(settings_path)
    loader = ctx.image_loader
    target = width or ctx.thumbnail_width
    results: dict[int, object] = {}
    pending = set(range(len(items)))

    def _callback_for(index: int):
        def _done(result) -> None:
            results[index] = result
            pending.discard(index)

        return _done

    for index, item in enumerate(items):
        loader.request_thumbnail(item.image_url, _callback_for(index), target)
    _wait(pending, timeout)
    stats = loader.stats
    ctx.shutdown()

    table = Table(title=f"Prefetched {len(items)} thumbnails")
    table.add_column("Title")
    table.add_column("Result")
    failures = 0
    for index, item in enumerate(items):
        result = results.get(index)
        if result is None:
            status = "[yellow]timed out"
            failures += 1
        elif result.ok:
            status = f"[green]{result.image.width()}x{result.image.height()}"
        else:
            status = f"[red]{result.error.__class__.__name__}"
            failures += 1
        table.add_row(item.title, status)
    print(table)
    print(
        f"hits={stats.hits} joins={stats.joins} fetches={stats.fetches} "
        f"hit_rate={stats.hit_rate:.0%}"
    )
    if failures:
        raise typer.Exit(1)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    app()

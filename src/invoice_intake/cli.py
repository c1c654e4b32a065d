"""CLI entry point for invoice-intake."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
import httpx

from invoice_intake.config import get_http_timeout
from invoice_intake.models import ProcessingOutcome, RawAttachment
from invoice_intake.processor import build_processor

_CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".heic": "image/heic",
}
_PARTIAL_SUFFIXES = (".crdownload", ".download", ".partial")


def guess_content_type(path: Path) -> str:
    """Map a file extension to the content type the pipeline expects."""
    return _CONTENT_TYPES.get(path.suffix.lower(), "application/octet-stream")


def is_invoice_file(path: Path) -> bool:
    """True for visible, fully-downloaded PDF or image files."""
    name = path.name.lower()
    if name.startswith(".") or name.endswith(_PARTIAL_SUFFIXES):
        return False
    return path.suffix.lower() in _CONTENT_TYPES


def collect_files(paths: tuple[Path, ...]) -> list[Path]:
    """Expand directories (non-recursively) into their invoice files."""
    files: list[Path] = []
    for path in paths:
        if path.is_dir():
            files.extend(
                child
                for child in sorted(path.iterdir())
                if child.is_file() and is_invoice_file(child)
            )
        else:
            files.append(path)
    return files


def read_attachments(files: list[Path]) -> list[RawAttachment]:
    """Load files as attachments, typed by extension."""
    return [
        RawAttachment(
            filename=path.name,
            content_type=guess_content_type(path),
            data=path.read_bytes(),
        )
        for path in files
    ]


async def _process_attachments(
    attachments: list[RawAttachment],
) -> list[ProcessingOutcome]:
    async with httpx.AsyncClient(timeout=get_http_timeout()) as http_client:
        processor = build_processor(http_client)
        return await processor.process_many(attachments)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
def cli(verbose: bool) -> None:
    """Invoice Intake: extract invoice fields and file them by month."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
@click.argument(
    "paths",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, path_type=Path),
)
def process(paths: tuple[Path, ...]) -> None:
    """Process invoice files, or every invoice file in given directories."""
    files = collect_files(paths)
    if not files:
        click.echo("No invoice files found.")
        return

    try:
        attachments = read_attachments(files)
    except OSError as exc:
        msg = f"Cannot read {exc.filename}: {exc.strerror}"
        raise click.ClickException(msg) from exc

    try:
        outcomes = asyncio.run(_process_attachments(attachments))
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc

    failed = 0
    for outcome in outcomes:
        if outcome.ok:
            click.echo(f"OK      {outcome.filename} -> {outcome.folder}")
        else:
            failed += 1
            click.echo(f"FAILED  {outcome.filename} [{outcome.stage}]: {outcome.error}")

    click.echo(f"{len(outcomes) - failed} processed, {failed} failed.")
    if failed:
        raise SystemExit(1)


@cli.command("check-config")
def check_config() -> None:
    """Validate configuration without processing anything."""

    async def _build() -> None:
        async with httpx.AsyncClient(timeout=get_http_timeout()) as http_client:
            build_processor(http_client)

    try:
        asyncio.run(_build())
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo("Configuration OK.")

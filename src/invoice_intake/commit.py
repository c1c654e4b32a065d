"""Durable commit of an extracted invoice: file upload plus ledger row."""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, TypeVar

from invoice_intake.errors import CommitError, StorageError
from invoice_intake.models import LEDGER_HEADER, LedgerRow, StorageTarget

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Sequence

    from invoice_intake.models import ExtractedInvoiceFields, StorageItem
    from invoice_intake.store import StorageClient

logger = logging.getLogger(__name__)

LEDGER_FILENAME = "invoices.csv"

T = TypeVar("T")


def resolve_folder_name(invoice_date: str) -> str:
    """Return the ``YYYY.MM`` folder for an invoice date.

    Raises CommitError for an unparsable date; the current date is never
    used as a fallback.
    """
    try:
        return StorageTarget.from_invoice_date(invoice_date).folder_name
    except (TypeError, ValueError) as exc:
        msg = f"Invalid invoice_date: {invoice_date!r}"
        raise CommitError(msg) from exc


def format_csv_rows(rows: Sequence[Sequence[str]]) -> str:
    """Render rows as CSV text with ``\\n`` line endings."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerows(rows)
    return buffer.getvalue()


class StorageCommitter:
    """Upload the original document and append a row to the folder ledger.

    The steps are not atomic: if the upload succeeds and the ledger
    update fails, the file stays uploaded without a row. Commits to the
    same folder are serialized within this process so concurrent ledger
    appends cannot overwrite each other. Separate processes writing the
    same ledger can still race.
    """

    def __init__(
        self,
        store: StorageClient,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.store = store
        self.clock = clock or _utcnow
        self._folder_locks: dict[str, asyncio.Lock] = {}

    async def commit(
        self, fields: ExtractedInvoiceFields, data: bytes, filename: str
    ) -> str:
        """Store ``data`` as ``filename`` and record ``fields`` in the ledger.

        Returns the folder name. Raises CommitError on any failed step.
        """
        folder_name = resolve_folder_name(fields.invoice_date)
        if _is_ledger_name(filename):
            msg = f"Filename {filename!r} is reserved for the ledger"
            raise CommitError(msg)

        async with self._lock_for(folder_name):
            folder_id = await self._step(
                "resolve folder", self.store.ensure_folder(folder_name)
            )
            children = await self._step(
                "list folder", self.store.list_children(folder_id)
            )
            if any(_same_name(child.name, filename) for child in children):
                logger.warning(
                    "%s already exists in %s and will be overwritten",
                    filename,
                    folder_name,
                )

            await self._step(
                "upload file", self.store.upload(folder_id, filename, data)
            )
            ledger_id = await self._step(
                "create ledger", self._ensure_ledger(folder_id, children)
            )
            row = LedgerRow.from_fields(fields, self.clock())
            await self._step(
                "append ledger row", self._append_row(folder_id, ledger_id, row)
            )

        logger.debug("Committed %s to %s", filename, folder_name)
        return folder_name

    async def _ensure_ledger(
        self, folder_id: str, children: list[StorageItem]
    ) -> str:
        for child in children:
            if _is_ledger_name(child.name):
                return child.id

        logger.info("Creating ledger %s in folder %s", LEDGER_FILENAME, folder_id)
        header = format_csv_rows([LEDGER_HEADER])
        return await self.store.upload(
            folder_id, LEDGER_FILENAME, header.encode("utf-8")
        )

    async def _append_row(self, folder_id: str, ledger_id: str, row: LedgerRow) -> None:
        # The storage layer has no append primitive, so the whole ledger
        # is downloaded and written back.
        existing = (await self.store.download(ledger_id)).decode("utf-8-sig")
        if existing and not existing.endswith("\n"):
            existing += "\n"
        updated = existing + format_csv_rows([row.as_csv_values()])
        await self.store.upload(folder_id, LEDGER_FILENAME, updated.encode("utf-8"))

    def _lock_for(self, folder_name: str) -> asyncio.Lock:
        lock = self._folder_locks.get(folder_name)
        if lock is None:
            lock = self._folder_locks[folder_name] = asyncio.Lock()
        return lock

    @staticmethod
    async def _step(action: str, awaitable: Awaitable[T]) -> T:
        try:
            return await awaitable
        except StorageError as exc:
            msg = f"Failed to {action}: {exc}"
            raise CommitError(msg) from exc
        except UnicodeDecodeError as exc:
            msg = f"Failed to {action}: ledger is not valid UTF-8"
            raise CommitError(msg) from exc


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


def _same_name(left: str, right: str) -> bool:
    # OneDrive and most desktop filesystems compare names case-insensitively.
    return left.casefold() == right.casefold()


def _is_ledger_name(filename: str) -> bool:
    return _same_name(filename, LEDGER_FILENAME)

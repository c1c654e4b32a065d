"""Storage client abstraction and local filesystem implementation."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Protocol

from invoice_intake.config import (
    get_onedrive_config,
    get_storage_backend,
    get_store_path,
)
from invoice_intake.errors import StorageError
from invoice_intake.models import StorageItem
from invoice_intake.onedrive import OneDriveStore

if TYPE_CHECKING:
    from pathlib import Path

    import httpx

logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Protocol for invoice storage backends.

    Folders live directly under the backend's root. Ids are opaque to
    callers; ``upload`` creates or overwrites.
    """

    async def ensure_folder(self, name: str) -> str: ...

    async def list_children(self, folder_id: str) -> list[StorageItem]: ...

    async def upload(self, folder_id: str, filename: str, data: bytes) -> str: ...

    async def download(self, item_id: str) -> bytes: ...


class LocalFileStore:
    """Local filesystem implementation of StorageClient.

    Directory layout: {root}/{YYYY.MM}/{filename}. Folder ids are folder
    names and item ids are paths relative to the root.
    """

    def __init__(self, root: Path) -> None:
        self.root = root

    async def ensure_folder(self, name: str) -> str:
        path = self._resolve(name)
        path.mkdir(parents=True, exist_ok=True)
        return name

    async def list_children(self, folder_id: str) -> list[StorageItem]:
        path = self._resolve(folder_id)
        if not path.is_dir():
            msg = f"Folder not found: {folder_id}"
            raise StorageError(msg)
        return [
            StorageItem(id=f"{folder_id}/{child.name}", name=child.name)
            for child in sorted(path.iterdir())
            if child.is_file()
        ]

    async def upload(self, folder_id: str, filename: str, data: bytes) -> str:
        item_id = f"{folder_id}/{filename}"
        path = self._resolve(item_id)
        if not path.parent.is_dir():
            msg = f"Folder not found: {folder_id}"
            raise StorageError(msg)
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as exc:
            msg = f"Cannot write {item_id}: {exc}"
            raise StorageError(msg) from exc
        logger.debug("Wrote %d bytes to %s", len(data), path)
        return item_id

    async def download(self, item_id: str) -> bytes:
        path = self._resolve(item_id)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except FileNotFoundError as exc:
            msg = f"File not found: {item_id}"
            raise StorageError(msg) from exc
        except OSError as exc:
            msg = f"Cannot read {item_id}: {exc}"
            raise StorageError(msg) from exc

    def _resolve(self, relative_path: str) -> Path:
        """Return the absolute path, refusing anything outside the root."""
        root = self.root.resolve()
        path = (root / relative_path).resolve()
        if path == root or not path.is_relative_to(root):
            msg = f"Path escapes the store root: {relative_path!r}"
            raise StorageError(msg)
        return path


def create_store(http_client: httpx.AsyncClient) -> StorageClient:
    """Build the storage backend selected by STORAGE_BACKEND."""
    backend = get_storage_backend()
    if backend == "onedrive":
        return OneDriveStore(get_onedrive_config(), http_client)

    root = get_store_path()
    root.mkdir(parents=True, exist_ok=True)
    logger.info("Using local invoice store at %s", root)
    return LocalFileStore(root)

"""OneDrive storage backend over the Microsoft Graph REST API."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from invoice_intake.errors import StorageError
from invoice_intake.models import StorageItem

if TYPE_CHECKING:
    from invoice_intake.config import OneDriveConfig

logger = logging.getLogger(__name__)

GRAPH_URL = "https://graph.microsoft.com/v1.0"
LOGIN_URL = "https://login.microsoftonline.com"
GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Refresh the token this many seconds before Graph says it expires
_TOKEN_LEEWAY = 60


class OneDriveStore:
    """StorageClient backed by a user's OneDrive.

    Uses the client-credentials flow; the app registration needs
    Files.ReadWrite.All. Folders are created under ``root_folder``.
    """

    def __init__(self, config: OneDriveConfig, client: httpx.AsyncClient) -> None:
        self.config = config
        self.client = client
        self.drive_url = f"{GRAPH_URL}/users/{quote(config.user_id)}/drive"
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = asyncio.Lock()

    async def ensure_folder(self, name: str) -> str:
        path = f"{self.config.root_folder}/{name}"
        response = await self._request("GET", f"/root:/{quote(path)}")
        if response.status_code == 200:
            return str(response.json()["id"])
        if response.status_code != 404:
            _raise_for_status(response, f"look up folder {path}")

        logger.info("Creating OneDrive folder %s", path)
        response = await self._request(
            "POST",
            f"/root:/{quote(self.config.root_folder)}:/children",
            json={
                "name": name,
                "folder": {},
                "@microsoft.graph.conflictBehavior": "rename",
            },
        )
        _raise_for_status(response, f"create folder {path}")
        return str(response.json()["id"])

    async def list_children(self, folder_id: str) -> list[StorageItem]:
        items: list[StorageItem] = []
        url: str | None = f"/items/{folder_id}/children?$select=name,id"
        while url is not None:
            response = await self._request("GET", url)
            _raise_for_status(response, f"list folder {folder_id}")
            payload = response.json()
            items.extend(
                StorageItem(id=str(child["id"]), name=str(child["name"]))
                for child in payload.get("value", [])
            )
            url = payload.get("@odata.nextLink")
        return items

    async def upload(self, folder_id: str, filename: str, data: bytes) -> str:
        response = await self._request(
            "PUT",
            f"/items/{folder_id}:/{quote(filename)}:/content",
            content=data,
            headers={"Content-Type": "application/octet-stream"},
        )
        _raise_for_status(response, f"upload {filename}")
        return str(response.json()["id"])

    async def download(self, item_id: str) -> bytes:
        response = await self._request("GET", f"/items/{item_id}/content")
        _raise_for_status(response, f"download {item_id}")
        return response.content

    async def _request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        token = await self._get_token()
        url = path if path.startswith("https://") else f"{self.drive_url}{path}"
        try:
            return await self.client.request(
                method,
                url,
                headers={"Authorization": f"Bearer {token}", **(headers or {})},
                follow_redirects=True,
                **kwargs,
            )
        except httpx.HTTPError as exc:
            msg = f"Graph request {method} {path} failed: {exc}"
            raise StorageError(msg) from exc

    async def _get_token(self) -> str:
        async with self._token_lock:
            if self._token is not None and time.monotonic() < self._token_expires_at:
                return self._token

            try:
                response = await self.client.post(
                    f"{LOGIN_URL}/{self.config.tenant_id}/oauth2/v2.0/token",
                    data={
                        "grant_type": "client_credentials",
                        "client_id": self.config.client_id,
                        "client_secret": self.config.client_secret,
                        "scope": GRAPH_SCOPE,
                    },
                )
                data = response.json()
            except (httpx.HTTPError, ValueError) as exc:
                msg = f"Graph token request failed: {exc}"
                raise StorageError(msg) from exc

            if "access_token" not in data:
                detail = data.get("error_description", data.get("error", "unknown error"))
                msg = f"Graph token error: {detail}"
                raise StorageError(msg)

            self._token = str(data["access_token"])
            expires_in = int(data.get("expires_in", 3600))
            self._token_expires_at = time.monotonic() + expires_in - _TOKEN_LEEWAY
            return self._token


def _raise_for_status(response: httpx.Response, action: str) -> None:
    if response.is_success:
        return
    try:
        payload = response.json()
    except ValueError:
        payload = None
    error = payload.get("error") if isinstance(payload, dict) else None
    detail = error.get("message") if isinstance(error, dict) else response.text
    msg = f"Graph failed to {action}: {response.status_code} {detail}"
    raise StorageError(msg)

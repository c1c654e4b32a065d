"""PDF text extraction, either locally via pypdf or through a remote service."""

from __future__ import annotations

import asyncio
import io
import logging
from typing import Protocol

import httpx
from pypdf import PdfReader

from invoice_intake.errors import ExtractionError

logger = logging.getLogger(__name__)


class TextExtractor(Protocol):
    """Protocol for PDF-to-text strategies."""

    async def extract(self, data: bytes) -> str: ...


class RemoteTextExtractor:
    """POST the raw PDF to an extraction service and return its text body."""

    def __init__(self, endpoint: str, client: httpx.AsyncClient) -> None:
        self.endpoint = endpoint
        self.client = client

    async def extract(self, data: bytes) -> str:
        try:
            response = await self.client.post(
                self.endpoint,
                content=data,
                headers={"Content-Type": "application/pdf"},
            )
        except httpx.HTTPError as exc:
            msg = f"PDF extraction service unreachable: {exc}"
            raise ExtractionError(msg) from exc

        if not response.is_success:
            msg = (
                "PDF extraction service error: "
                f"{response.status_code} {response.reason_phrase}"
            )
            raise ExtractionError(msg)

        return _require_text(response.text)


class LocalTextExtractor:
    """Decode the PDF in-process with pypdf.

    Parsing runs in a worker thread so concurrent attachments are not
    blocked on CPU-bound decoding.
    """

    async def extract(self, data: bytes) -> str:
        if not isinstance(data, (bytes, bytearray)) or len(data) == 0:
            msg = "Invalid input: empty or non-binary buffer provided to PDF parser"
            raise ExtractionError(msg)

        logger.debug("Parsing PDF locally (%d bytes)", len(data))
        try:
            text = await asyncio.to_thread(_read_pdf_text, bytes(data))
        except Exception as exc:
            msg = f"PDF parsing error: {exc}"
            raise ExtractionError(msg) from exc

        return _require_text(text)


def create_text_extractor(
    endpoint: str | None, client: httpx.AsyncClient | None = None
) -> TextExtractor:
    """Pick the remote strategy when an endpoint is configured, else local."""
    if endpoint:
        if client is None:
            msg = "An HTTP client is required for remote PDF extraction"
            raise ValueError(msg)
        return RemoteTextExtractor(endpoint, client)
    logger.info("PDF_EXTRACT_ENDPOINT not configured, using local PDF parsing")
    return LocalTextExtractor()


def _read_pdf_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    return "\n".join(page.extract_text() or "" for page in reader.pages)


def _require_text(text: str) -> str:
    if not text.strip():
        msg = "PDF parsing error: no text extracted from document"
        raise ExtractionError(msg)
    return text

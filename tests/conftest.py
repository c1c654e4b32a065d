"""Shared test fixtures."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from invoice_intake.commit import StorageCommitter
from invoice_intake.extraction import FieldExtractor
from invoice_intake.models import ExtractedInvoiceFields
from invoice_intake.processor import AttachmentProcessor
from invoice_intake.store import LocalFileStore

if TYPE_CHECKING:
    from pathlib import Path

ORGANIZATION = "Timelessoft"
FIXED_NOW = datetime(2025, 7, 4, 9, 30, 0, tzinfo=UTC)

# 1x1 transparent PNG
PNG_BYTES = bytes.fromhex(
    "89504e470d0a1a0a0000000d4948445200000001000000010806000000"
    "1f15c4890000000d49444154789c6360000002000154a24f5d0000000049454e44ae426082"
)

ACME_RESPONSE = json.dumps(
    {
        "invoice_date": "2025-03-01",
        "seller": "Acme",
        "total": "100.00",
        "tax": "19%",
        "payment_method": "Cash",
    }
)


@pytest.fixture
def store_root(tmp_path: Path) -> Path:
    """Provide a temporary directory as the invoice store root."""
    root = tmp_path / "invoices"
    root.mkdir()
    return root


@pytest.fixture
def store(store_root: Path) -> LocalFileStore:
    return LocalFileStore(store_root)


@pytest.fixture
def committer(store: LocalFileStore) -> StorageCommitter:
    """Committer with a frozen clock."""
    return StorageCommitter(store, clock=lambda: FIXED_NOW)


@pytest.fixture
def ai_client() -> AsyncMock:
    """CompletionClient stand-in answering with the Acme invoice."""
    client = AsyncMock()
    client.complete_text.return_value = ACME_RESPONSE
    client.complete_image.return_value = ACME_RESPONSE
    return client


@pytest.fixture
def text_extractor() -> AsyncMock:
    extractor = AsyncMock()
    extractor.extract.return_value = "ACME GmbH\nInvoice 2025-03-01\nTotal 100.00"
    return extractor


@pytest.fixture
def field_extractor(ai_client: AsyncMock, text_extractor: AsyncMock) -> FieldExtractor:
    return FieldExtractor(ai_client, text_extractor, ORGANIZATION)


@pytest.fixture
def processor(
    field_extractor: FieldExtractor, committer: StorageCommitter
) -> AttachmentProcessor:
    return AttachmentProcessor(field_extractor, committer)


@pytest.fixture
def acme_fields() -> ExtractedInvoiceFields:
    return ExtractedInvoiceFields(
        invoice_date="2025-03-01",
        seller="Acme",
        total="100.00",
        tax="19%",
        payment_method="Cash",
    )

"""Domain and extraction models for invoice intake."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

LEDGER_HEADER: tuple[str, ...] = (
    "Timestamp",
    "Invoice Date",
    "Seller",
    "Total",
    "Tax",
    "Payment Method",
)


@dataclass
class RawAttachment:
    """A document handed to the pipeline by a source (mail, webhook, disk)."""

    filename: str
    content_type: str
    data: bytes


class ExtractedInvoiceFields(BaseModel):
    """The five canonical invoice fields extracted by the LLM.

    Every field is a string; anything the model could not determine is
    the empty string. ``total_amount`` is accepted as an alias for
    ``total`` and never survives validation.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    invoice_date: str = ""
    seller: str = ""
    total: str = ""
    tax: str = ""
    payment_method: str = ""

    @model_validator(mode="before")
    @classmethod
    def _migrate_total_amount(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        alternate = data.pop("total_amount", None)
        if data.get("total") is None and alternate is not None:
            data["total"] = alternate
        return data

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_to_string(cls, value: Any) -> str:
        if value is None or isinstance(value, (bool, dict, list)):
            return ""
        if isinstance(value, (int, float, Decimal)):
            return str(value) if value else ""
        if isinstance(value, str):
            return value.strip()
        return ""


@dataclass(frozen=True)
class StorageTarget:
    """Year-month folder an invoice is filed under, named ``YYYY.MM``."""

    year: int
    month: int

    @classmethod
    def from_invoice_date(cls, invoice_date: str) -> StorageTarget:
        """Derive the target from an ISO ``YYYY-MM-DD`` invoice date.

        Raises ValueError for anything that is not a calendar date.
        """
        parsed = date.fromisoformat(invoice_date.strip())
        return cls(year=parsed.year, month=parsed.month)

    @property
    def folder_name(self) -> str:
        return f"{self.year:04d}.{self.month:02d}"


@dataclass(frozen=True)
class LedgerRow:
    """One row of the per-folder ``invoices.csv`` ledger."""

    HEADER: ClassVar[tuple[str, ...]] = LEDGER_HEADER

    processed_at: datetime
    invoice_date: str
    seller: str
    total: str
    tax: str
    payment_method: str

    @classmethod
    def from_fields(
        cls, fields: ExtractedInvoiceFields, processed_at: datetime
    ) -> LedgerRow:
        return cls(
            processed_at=processed_at,
            invoice_date=fields.invoice_date,
            seller=fields.seller,
            total=fields.total,
            tax=fields.tax,
            payment_method=fields.payment_method,
        )

    def as_csv_values(self) -> list[str]:
        return [
            self.processed_at.isoformat(timespec="milliseconds"),
            self.invoice_date,
            self.seller,
            self.total,
            self.tax,
            self.payment_method,
        ]


@dataclass(frozen=True)
class StorageItem:
    """A child entry of a storage folder."""

    id: str
    name: str


class ProcessingOutcome(BaseModel):
    """Result of processing one attachment.

    ``stage`` names the pipeline step that failed (``format``,
    ``extraction``, ``validation``, ``commit`` or ``unexpected``) and is
    ``None`` on success.
    """

    ok: bool
    filename: str
    error: str | None = None
    stage: str | None = None
    fields: ExtractedInvoiceFields | None = None
    folder: str | None = None

    @classmethod
    def success(
        cls, filename: str, fields: ExtractedInvoiceFields, folder: str
    ) -> ProcessingOutcome:
        return cls(ok=True, filename=filename, fields=fields, folder=folder)

    @classmethod
    def failure(cls, filename: str, error: str, stage: str) -> ProcessingOutcome:
        return cls(ok=False, filename=filename, error=error, stage=stage)

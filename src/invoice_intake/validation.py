"""Completeness check applied before an invoice is committed."""

from __future__ import annotations

from typing import TYPE_CHECKING

from invoice_intake.errors import InvoiceValidationError

if TYPE_CHECKING:
    from invoice_intake.models import ExtractedInvoiceFields

REQUIRED_FIELDS = ("invoice_date", "total")


def validate_fields(fields: ExtractedInvoiceFields) -> ExtractedInvoiceFields:
    """Return ``fields`` unchanged if ``invoice_date`` and ``total`` are set.

    Every other field may be empty; partial data is preferred over
    rejecting the invoice.
    """
    missing = [name for name in REQUIRED_FIELDS if not getattr(fields, name)]
    if missing:
        msg = (
            "Validation error: required fields missing in extraction results: "
            f"{', '.join(missing)}"
        )
        raise InvoiceValidationError(msg)
    return fields

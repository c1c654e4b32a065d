"""Tests for invoice_intake.validation."""

from __future__ import annotations

import pytest

from invoice_intake.errors import InvoiceValidationError
from invoice_intake.models import ExtractedInvoiceFields
from invoice_intake.validation import validate_fields


class TestValidateFields:
    """Tests for validate_fields."""

    def test_date_and_total_suffice(self) -> None:
        fields = ExtractedInvoiceFields(invoice_date="2025-03-01", total="5.00")
        assert validate_fields(fields) is fields

    def test_full_record_passes(self, acme_fields: ExtractedInvoiceFields) -> None:
        assert validate_fields(acme_fields) is acme_fields

    def test_missing_total(self) -> None:
        fields = ExtractedInvoiceFields(invoice_date="2025-03-01", seller="Acme")
        with pytest.raises(InvoiceValidationError, match="total"):
            validate_fields(fields)

    def test_missing_date(self) -> None:
        fields = ExtractedInvoiceFields(total="5.00", seller="Acme")
        with pytest.raises(InvoiceValidationError, match="invoice_date"):
            validate_fields(fields)

    def test_both_missing_named(self) -> None:
        with pytest.raises(InvoiceValidationError, match="invoice_date, total"):
            validate_fields(ExtractedInvoiceFields())

    def test_zero_total_rejected(self) -> None:
        fields = ExtractedInvoiceFields.model_validate(
            {"invoice_date": "2025-03-01", "total": 0}
        )
        with pytest.raises(InvoiceValidationError, match="total"):
            validate_fields(fields)

    def test_stage(self) -> None:
        with pytest.raises(InvoiceValidationError) as exc_info:
            validate_fields(ExtractedInvoiceFields())
        assert exc_info.value.stage == "validation"

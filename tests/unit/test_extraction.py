"""Tests for invoice_intake.extraction."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from invoice_intake.errors import ExtractionError, UnsupportedFormatError
from invoice_intake.extraction import (
    build_instruction,
    classify_content_type,
    media_type_of,
    parse_fields,
    strip_fence,
)
from tests.conftest import ORGANIZATION, PNG_BYTES

if TYPE_CHECKING:
    from unittest.mock import AsyncMock

    from invoice_intake.extraction import FieldExtractor


class TestStripFence:
    """Tests for strip_fence."""

    def test_json_fence(self) -> None:
        assert strip_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_untagged_fence(self) -> None:
        assert strip_fence('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_uppercase_tag(self) -> None:
        assert strip_fence('```JSON\n{"a": 1}\n```') == '{"a": 1}'

    def test_fence_with_surrounding_prose(self) -> None:
        text = 'Here you go:\n```json\n{"a": 1}\n```\nAnything else?'
        assert strip_fence(text) == '{"a": 1}'

    def test_first_fence_wins(self) -> None:
        text = '```json\n{"a": 1}\n```\n```json\n{"b": 2}\n```'
        assert strip_fence(text) == '{"a": 1}'

    def test_unfenced_trimmed(self) -> None:
        assert strip_fence('  {"a": 1}\n') == '{"a": 1}'

    def test_zero_width_characters_removed(self) -> None:
        text = "\ufeff```json\n{\"a\":\u200b 1}\u200d\n```"
        assert strip_fence(text) == '{"a": 1}'

    def test_empty(self) -> None:
        assert strip_fence("") == ""

    @pytest.mark.parametrize(
        "obj",
        [
            {},
            {"invoice_date": "2025-03-01", "total": 12.5},
            {"seller": "Müller & Söhne", "tax": "19%", "nested": {"x": [1, 2]}},
        ],
    )
    def test_fenced_and_unfenced_parse_back(self, obj: dict[str, object]) -> None:
        encoded = json.dumps(obj)
        assert json.loads(strip_fence(f"```json\n{encoded}\n```")) == obj
        assert json.loads(strip_fence(encoded)) == obj


class TestParseFields:
    """Tests for parse_fields."""

    def test_plain_json(self) -> None:
        fields = parse_fields('{"invoice_date": "2025-03-01", "total": "9.99"}')
        assert fields.invoice_date == "2025-03-01"
        assert fields.total == "9.99"

    def test_fenced_json(self) -> None:
        fields = parse_fields('```json\n{"seller": "Acme"}\n```')
        assert fields.seller == "Acme"

    def test_total_amount_migrated(self) -> None:
        fields = parse_fields('{"invoice_date": "2025-03-01", "total_amount": 12.5}')
        assert fields.total == "12.5"
        assert "total_amount" not in fields.model_dump()

    def test_free_text_rejected(self) -> None:
        with pytest.raises(ExtractionError, match="not valid JSON"):
            parse_fields("Sorry, I could not read this invoice.")

    def test_fenced_garbage_rejected(self) -> None:
        with pytest.raises(ExtractionError, match="not valid JSON"):
            parse_fields("```json\nnot json\n```")

    def test_non_object_rejected(self) -> None:
        with pytest.raises(ExtractionError, match="not a JSON object"):
            parse_fields("[1, 2, 3]")


class TestClassifyContentType:
    """Tests for classify_content_type and media_type_of."""

    @pytest.mark.parametrize(
        "content_type",
        [
            "application/pdf",
            "APPLICATION/PDF",
            "application/x-pdf",
            "application/pdf; name=a.pdf",
        ],
    )
    def test_pdf(self, content_type: str) -> None:
        assert classify_content_type(content_type) == "pdf"

    @pytest.mark.parametrize("content_type", ["image/png", "image/jpeg", "Image/WebP"])
    def test_image(self, content_type: str) -> None:
        assert classify_content_type(content_type) == "image"

    @pytest.mark.parametrize("content_type", ["application/zip", "text/plain", ""])
    def test_unsupported(self, content_type: str) -> None:
        with pytest.raises(UnsupportedFormatError, match="Unsupported document format"):
            classify_content_type(content_type)

    def test_media_type_strips_parameters(self) -> None:
        assert media_type_of("Image/JPEG; name=scan.jpg") == "image/jpeg"


class TestBuildInstruction:
    """Tests for build_instruction."""

    def test_names_all_keys(self) -> None:
        instruction = build_instruction("Timelessoft")
        for key in ("invoice_date", "seller", "total", "tax", "payment_method"):
            assert key in instruction

    def test_organization_is_never_seller(self) -> None:
        instruction = build_instruction("Timelessoft")
        assert "the seller is never Timelessoft" in instruction

    def test_empty_string_convention(self) -> None:
        assert 'use an empty string ("")' in build_instruction("X")


class TestFieldExtractor:
    """Tests for FieldExtractor."""

    @pytest.mark.asyncio
    async def test_image_path(
        self, field_extractor: FieldExtractor, ai_client: AsyncMock
    ) -> None:
        fields = await field_extractor.extract(PNG_BYTES, "image/png")

        assert fields.seller == "Acme"
        assert fields.total == "100.00"
        ai_client.complete_image.assert_awaited_once_with(
            field_extractor.instruction, PNG_BYTES, "image/png"
        )
        ai_client.complete_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_image_uses_declared_media_type(
        self, field_extractor: FieldExtractor, ai_client: AsyncMock
    ) -> None:
        await field_extractor.extract(b"jpeg-bytes", "image/jpeg; name=scan.jpg")

        _instruction, _data, media_type = ai_client.complete_image.call_args[0]
        assert media_type == "image/jpeg"

    @pytest.mark.asyncio
    async def test_pdf_path(
        self,
        field_extractor: FieldExtractor,
        ai_client: AsyncMock,
        text_extractor: AsyncMock,
    ) -> None:
        fields = await field_extractor.extract(b"%PDF-1.4", "application/pdf")

        assert fields.invoice_date == "2025-03-01"
        text_extractor.extract.assert_awaited_once_with(b"%PDF-1.4")
        instruction, document_text = ai_client.complete_text.call_args[0]
        assert instruction == field_extractor.instruction
        assert document_text == text_extractor.extract.return_value
        ai_client.complete_image.assert_not_called()

    @pytest.mark.asyncio
    async def test_pdf_text_failure_skips_ai(
        self,
        field_extractor: FieldExtractor,
        ai_client: AsyncMock,
        text_extractor: AsyncMock,
    ) -> None:
        text_extractor.extract.side_effect = ExtractionError("no text")

        with pytest.raises(ExtractionError, match="no text"):
            await field_extractor.extract(b"%PDF-1.4", "application/pdf")
        ai_client.complete_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_unsupported_skips_everything(
        self,
        field_extractor: FieldExtractor,
        ai_client: AsyncMock,
        text_extractor: AsyncMock,
    ) -> None:
        with pytest.raises(UnsupportedFormatError):
            await field_extractor.extract(b"PK\x03\x04", "application/zip")
        text_extractor.extract.assert_not_called()
        ai_client.complete_image.assert_not_called()
        ai_client.complete_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_malformed_response(
        self, field_extractor: FieldExtractor, ai_client: AsyncMock
    ) -> None:
        ai_client.complete_image.return_value = "I think the total is 100 euros."

        with pytest.raises(ExtractionError):
            await field_extractor.extract(PNG_BYTES, "image/png")

    @pytest.mark.asyncio
    async def test_own_organization_cleared_as_seller(
        self, field_extractor: FieldExtractor, ai_client: AsyncMock
    ) -> None:
        ai_client.complete_image.return_value = json.dumps(
            {"invoice_date": "2025-03-01", "seller": ORGANIZATION.upper(), "total": "5"}
        )

        fields = await field_extractor.extract(PNG_BYTES, "image/png")

        assert fields.seller == ""
        assert fields.total == "5"

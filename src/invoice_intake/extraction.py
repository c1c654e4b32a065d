"""LLM-based invoice field extraction."""

from __future__ import annotations

import json
import logging
import re
from typing import TYPE_CHECKING, Literal

from invoice_intake.errors import ExtractionError, UnsupportedFormatError
from invoice_intake.models import ExtractedInvoiceFields

if TYPE_CHECKING:
    from invoice_intake.ai import CompletionClient
    from invoice_intake.text import TextExtractor

logger = logging.getLogger(__name__)

DocumentKind = Literal["pdf", "image"]

_INSTRUCTION_TEMPLATE = """\
Extract the following from the provided invoice:
- invoice_date: the date the invoice was issued (YYYY-MM-DD)
- seller: the business that issued the invoice
- total: the total amount charged (number, two decimals)
- tax: the tax amount (number, two decimals) or the tax rate (e.g. "19%")
- payment_method: how the invoice was or will be paid

Return ONLY a valid JSON object with exactly those five keys.
Do NOT wrap the output in ``` fences.
If a value is missing, use an empty string ("").

Important: {organization} is the company that is going to be processing \
the invoice. Meaning that the seller is never {organization}.\
"""

# Zero-width characters some models emit, which break json.loads
_INVISIBLE_CHARS = re.compile("[\u200b-\u200d\ufeff]")
_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(.*?)```", re.IGNORECASE | re.DOTALL)


def build_instruction(organization_name: str) -> str:
    """Return the extraction instruction for ``organization_name``."""
    return _INSTRUCTION_TEMPLATE.format(organization=organization_name)


def strip_fence(text: str) -> str:
    """Return the part of an LLM response that should hold the JSON payload.

    Invisible characters are dropped first. If the response contains a
    triple-backtick block (optionally tagged ``json``) its trimmed
    interior is returned, otherwise the whole trimmed response.
    """
    text = _INVISIBLE_CHARS.sub("", text or "")
    match = _FENCED_BLOCK.search(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_fields(response_text: str) -> ExtractedInvoiceFields:
    """Parse an LLM response into the canonical field set.

    Raises ExtractionError if the response holds no JSON object.
    """
    payload = strip_fence(response_text)
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        msg = f"AI response is not valid JSON: {exc}"
        raise ExtractionError(msg) from exc

    if not isinstance(data, dict):
        msg = f"AI response is not a JSON object (got {type(data).__name__})"
        raise ExtractionError(msg)

    return ExtractedInvoiceFields.model_validate(data)


def media_type_of(content_type: str) -> str:
    """Strip parameters and normalize case: ``Image/PNG; x=y`` -> ``image/png``."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def classify_content_type(content_type: str) -> DocumentKind:
    """Decide which extraction path a content type takes.

    Raises UnsupportedFormatError for anything that is neither a PDF nor
    an image.
    """
    media_type = media_type_of(content_type)
    if "pdf" in media_type:
        return "pdf"
    if media_type.startswith("image/"):
        return "image"
    msg = f"Unsupported document format: {content_type or '(none)'}"
    raise UnsupportedFormatError(msg)


class FieldExtractor:
    """Turn a PDF or image into ``ExtractedInvoiceFields``.

    PDFs are reduced to text first; images go to the model as-is.
    """

    def __init__(
        self,
        client: CompletionClient,
        text_extractor: TextExtractor,
        organization_name: str,
    ) -> None:
        self.client = client
        self.text_extractor = text_extractor
        self.organization_name = organization_name
        self.instruction = build_instruction(organization_name)

    async def extract(self, data: bytes, content_type: str) -> ExtractedInvoiceFields:
        """Extract invoice fields from ``data``.

        Raises UnsupportedFormatError or ExtractionError.
        """
        kind = classify_content_type(content_type)

        if kind == "pdf":
            logger.info("Processing PDF document")
            text = await self.text_extractor.extract(data)
            response = await self.client.complete_text(self.instruction, text)
        else:
            logger.info("Processing image document")
            response = await self.client.complete_image(
                self.instruction, data, media_type_of(content_type)
            )

        return self._drop_own_seller(parse_fields(response))

    def _drop_own_seller(
        self, fields: ExtractedInvoiceFields
    ) -> ExtractedInvoiceFields:
        """Blank the seller if the model named the processing organization."""
        if fields.seller.casefold() == self.organization_name.strip().casefold():
            logger.warning(
                "Model returned %r as seller; clearing it", fields.seller
            )
            return fields.model_copy(update={"seller": ""})
        return fields

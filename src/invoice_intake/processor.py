"""Attachment pipeline: sanitize, extract, validate, commit."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from typing import TYPE_CHECKING

from invoice_intake.ai import create_completion_client
from invoice_intake.commit import StorageCommitter
from invoice_intake.config import get_organization_name, get_pdf_extract_endpoint
from invoice_intake.errors import IntakeError
from invoice_intake.extraction import FieldExtractor, media_type_of
from invoice_intake.models import ProcessingOutcome
from invoice_intake.sanitize import sanitize_filename
from invoice_intake.store import create_store
from invoice_intake.text import create_text_extractor
from invoice_intake.validation import validate_fields

if TYPE_CHECKING:
    from collections.abc import Iterable

    import httpx

    from invoice_intake.models import RawAttachment

logger = logging.getLogger(__name__)

FALLBACK_STEM = "attachment"


class AttachmentProcessor:
    """Run one attachment at a time through the full pipeline.

    The processor holds only shared, stateless collaborators, so a
    single instance can serve many concurrent ``process_attachment``
    calls.
    """

    def __init__(self, extractor: FieldExtractor, committer: StorageCommitter) -> None:
        self.extractor = extractor
        self.committer = committer

    async def process_attachment(self, attachment: RawAttachment) -> ProcessingOutcome:
        """Process one attachment and report the outcome.

        Never raises: every failure is returned as ``ok=False`` with the
        error message and the stage that failed. A failure after the
        upload leaves the uploaded file in place.
        """
        filename = _storage_filename(attachment)
        logger.info(
            "Processing %s (%s, %d bytes)",
            filename,
            attachment.content_type,
            len(attachment.data or b""),
        )

        try:
            fields = await self.extractor.extract(
                attachment.data, attachment.content_type
            )
            validate_fields(fields)
            folder = await self.committer.commit(fields, attachment.data, filename)
        except IntakeError as exc:
            logger.warning("%s failed at %s: %s", filename, exc.stage, exc)
            return ProcessingOutcome.failure(filename, str(exc), exc.stage)
        except Exception as exc:
            logger.exception("%s failed unexpectedly", filename)
            return ProcessingOutcome.failure(
                filename, str(exc) or type(exc).__name__, "unexpected"
            )

        logger.info("Stored %s in %s", filename, folder)
        return ProcessingOutcome.success(filename, fields, folder)

    async def process_many(
        self, attachments: Iterable[RawAttachment]
    ) -> list[ProcessingOutcome]:
        """Process attachments concurrently; outcomes keep the input order."""
        return list(
            await asyncio.gather(
                *(self.process_attachment(attachment) for attachment in attachments)
            )
        )


def build_processor(http_client: httpx.AsyncClient) -> AttachmentProcessor:
    """Wire a processor from environment configuration.

    ``http_client`` is shared by the remote text extractor and the
    OneDrive backend; its timeout bounds every outbound call.
    """
    extractor = FieldExtractor(
        client=create_completion_client(),
        text_extractor=create_text_extractor(get_pdf_extract_endpoint(), http_client),
        organization_name=get_organization_name(),
    )
    return AttachmentProcessor(extractor, StorageCommitter(create_store(http_client)))


def _storage_filename(attachment: RawAttachment) -> str:
    filename = sanitize_filename(attachment.filename)
    if filename.strip("."):
        return filename
    extension = mimetypes.guess_extension(media_type_of(attachment.content_type)) or ""
    return f"{FALLBACK_STEM}{extension}"

"""Invoice intake: extract invoice fields with an LLM and file them by month."""

from invoice_intake.models import ProcessingOutcome, RawAttachment
from invoice_intake.processor import AttachmentProcessor, build_processor

__all__ = [
    "AttachmentProcessor",
    "ProcessingOutcome",
    "RawAttachment",
    "build_processor",
]

"""Failure taxonomy for the attachment pipeline.

Each pipeline step raises its own subclass of ``IntakeError``; the
orchestrator is the only place these are caught and turned into a
failed ``ProcessingOutcome``.
"""

from __future__ import annotations


class IntakeError(Exception):
    """Base class for terminal failures of one attachment."""

    stage = "unexpected"


class UnsupportedFormatError(IntakeError):
    """Content type is neither a PDF nor an image."""

    stage = "format"


class ExtractionError(IntakeError):
    """Text or field extraction failed."""

    stage = "extraction"


class InvoiceValidationError(IntakeError):
    """Extraction succeeded but required fields are empty."""

    stage = "validation"


class CommitError(IntakeError):
    """Folder resolution, upload or ledger update failed."""

    stage = "commit"


class StorageError(Exception):
    """A storage backend call failed."""

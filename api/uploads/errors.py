"""
Upload ingestion errors.

The pipeline catches these and turns them into an `IngestOutcome`; they never
reach the HTTP caller as raw exceptions.
"""

from __future__ import annotations


class IngestError(Exception):
    """Base class for ingestion failures."""


class StreamMalformed(IngestError):
    """CSV framing or encoding could not be decoded."""


class StorageError(IngestError):
    """The batch store failed to create a batch or insert its records."""

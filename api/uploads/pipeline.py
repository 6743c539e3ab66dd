"""
CSV ingestion pipeline.

One `ingest` call handles one uploaded file:

1. drain the CSV stream, validating every row (no short-circuit),
2. reject the whole file if any row failed,
3. otherwise create the batch and bulk-insert its rows in one transaction,
4. release the temporary upload on every exit path.

Data and storage failures are reported as an `IngestOutcome`, never as raw
exceptions. Cancellation still propagates after cleanup, as do programming
errors such as using a `Database` whose pool was never opened.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from starlette.concurrency import run_in_threadpool

from . import csv_stream, validation
from .errors import StorageError, StreamMalformed
from .repository import BatchStore
from .transport import SpooledUpload
from .validation import NormalizedRow

MANUAL_ENTRY_LABEL = "manual-entry"

logger = logging.getLogger(__name__)


class IngestOutcome(str, enum.Enum):
    COMMITTED = "committed"
    STREAM_MALFORMED = "stream_malformed"
    VALIDATION_FAILED = "validation_failed"
    PERSISTENCE_FAILED = "persistence_failed"


@dataclass(frozen=True)
class ScanResult:
    rows: list[NormalizedRow]
    invalid_rows: int

    @property
    def total_rows(self) -> int:
        return len(self.rows) + self.invalid_rows


@dataclass(frozen=True)
class CommitResult:
    batch_id: int
    records: list[dict[str, Any]]

    @property
    def inserted_count(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class IngestResult:
    outcome: IngestOutcome
    file_name: str
    message: str
    committed: CommitResult | None = None
    invalid_rows: int = 0

    @property
    def ok(self) -> bool:
        return self.committed is not None

    @property
    def batch_id(self) -> int | None:
        return self.committed.batch_id if self.committed is not None else None

    @property
    def inserted_count(self) -> int:
        return self.committed.inserted_count if self.committed is not None else 0


def scan_upload(upload: SpooledUpload) -> ScanResult:
    """
    Parse and validate every row of the upload (blocking I/O).

    Valid rows are kept in file order. Raises StreamMalformed on bad framing
    and StorageError when the spooled file itself cannot be read.
    """
    rows: list[NormalizedRow] = []
    invalid = 0
    try:
        with upload.open() as stream:
            for raw_row in csv_stream.iter_raw_rows(stream):
                normalized = validation.validate(raw_row)
                if normalized is None:
                    invalid += 1
                    continue
                rows.append(normalized)
    except OSError as exc:
        raise StorageError(f"Failed to read spooled upload {upload.path}.") from exc
    return ScanResult(rows=rows, invalid_rows=invalid)


class IngestionPipeline:
    def __init__(self, store: BatchStore) -> None:
        self._store = store

    async def commit_rows(self, label: str, rows: Sequence[NormalizedRow]) -> CommitResult:
        """
        Create a batch and insert its rows atomically.

        Used by CSV ingestion and by manual single-record entry.
        Raises StorageError; nothing is persisted in that case.
        """
        async with self._store.transaction() as tx:
            batch_id = await tx.create_batch(label, total_rows=len(rows))
            records = await tx.bulk_insert_records(batch_id, rows)
        return CommitResult(batch_id=batch_id, records=records)

    async def ingest(self, upload: SpooledUpload) -> IngestResult:
        file_name = upload.file_name
        try:
            try:
                scan = await run_in_threadpool(scan_upload, upload)
            except StreamMalformed as exc:
                logger.warning("ingest_stream_malformed file_name=%s error=%s", file_name, exc)
                return IngestResult(
                    outcome=IngestOutcome.STREAM_MALFORMED,
                    file_name=file_name,
                    message="Could not read the CSV file. Check its format.",
                )
            except StorageError:
                logger.exception("ingest_upload_unreadable file_name=%s", file_name)
                return IngestResult(
                    outcome=IngestOutcome.PERSISTENCE_FAILED,
                    file_name=file_name,
                    message="Error while reading the uploaded file.",
                )

            if scan.invalid_rows:
                logger.warning(
                    "ingest_validation_failed file_name=%s total_rows=%s invalid_rows=%s",
                    file_name,
                    scan.total_rows,
                    scan.invalid_rows,
                )
                return IngestResult(
                    outcome=IngestOutcome.VALIDATION_FAILED,
                    file_name=file_name,
                    message="Invalid data in one or more rows. Check the CSV.",
                    invalid_rows=scan.invalid_rows,
                )

            try:
                committed = await self.commit_rows(file_name, scan.rows)
            except StorageError:
                logger.exception("ingest_persistence_failed file_name=%s rows=%s", file_name, len(scan.rows))
                return IngestResult(
                    outcome=IngestOutcome.PERSISTENCE_FAILED,
                    file_name=file_name,
                    message="Error while saving data to the database.",
                )

            logger.info(
                "ingest_committed file_name=%s batch_id=%s inserted=%s",
                file_name,
                committed.batch_id,
                committed.inserted_count,
            )
            return IngestResult(
                outcome=IngestOutcome.COMMITTED,
                file_name=file_name,
                message=f"File processed: {committed.inserted_count} rows inserted.",
                committed=committed,
            )
        finally:
            upload.release()

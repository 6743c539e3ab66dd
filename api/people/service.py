"""
Record business logic.

Every write path validates with the same rules as CSV ingestion, and manual
creation goes through the batch store so each record has an owning batch.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from core.db import Database
from uploads.errors import StorageError
from uploads.pipeline import MANUAL_ENTRY_LABEL, IngestionPipeline
from uploads.validation import NormalizedRow, normalize_fields

from . import repository, schemas

logger = logging.getLogger(__name__)


def _normalize(payload: schemas.RecordIn) -> NormalizedRow:
    row = normalize_fields(payload.name, payload.age, payload.city)
    if row is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid data: name and city are required and age must be a positive integer.",
        )
    return row


def _to_record_response(row: dict) -> schemas.RecordResponse:
    return schemas.RecordResponse(
        id=int(row["id"]),
        name=str(row["name"]),
        age=int(row["age"]),
        city=str(row["city"]),
        upload_id=int(row["upload_id"]),
    )


def _storage_failure(exc: StorageError, detail: str) -> HTTPException:
    logger.error("record_storage_failed error=%s cause=%r", exc, exc.__cause__)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


async def list_records(db: Database, *, limit: int, offset: int) -> list[schemas.RecordResponse]:
    try:
        rows = await repository.list_records(db, limit=limit, offset=offset)
    except StorageError as exc:
        raise _storage_failure(exc, "Could not load records.") from exc
    return [_to_record_response(r) for r in rows]


async def create_manual_record(
    pipeline: IngestionPipeline,
    payload: schemas.RecordIn,
) -> schemas.RecordMutationResponse:
    """
    Create a single record as a one-row `manual-entry` batch.
    """
    row = _normalize(payload)
    try:
        committed = await pipeline.commit_rows(MANUAL_ENTRY_LABEL, [row])
    except StorageError as exc:
        raise _storage_failure(exc, "Internal error while creating the record.") from exc

    # The record comes back from the insert itself; no read after commit.
    (created,) = committed.records

    logger.info("record_created record_id=%s batch_id=%s", created["id"], committed.batch_id)
    return schemas.RecordMutationResponse(
        message="Manual record created",
        record=_to_record_response(created),
    )


async def update_record(
    db: Database,
    record_id: int,
    payload: schemas.RecordIn,
) -> schemas.RecordMutationResponse:
    row = _normalize(payload)
    try:
        updated = await repository.update_record(db, record_id, row)
    except StorageError as exc:
        raise _storage_failure(exc, "Error while updating the record.") from exc

    if updated is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found.")
    return schemas.RecordMutationResponse(message="Record updated", record=_to_record_response(updated))


async def delete_record(db: Database, record_id: int) -> schemas.RecordMutationResponse:
    try:
        deleted = await repository.delete_record(db, record_id)
    except StorageError as exc:
        raise _storage_failure(exc, "Error while deleting the record.") from exc

    if deleted is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Record not found.")
    logger.info("record_deleted record_id=%s", record_id)
    return schemas.RecordMutationResponse(message="Record deleted", record=_to_record_response(deleted))

"""
FastAPI router for CSV uploads and batch browsing.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status

from core.db import Database
from core.dependencies import get_db

from . import repository, transport
from .dependencies import get_pipeline
from .errors import StorageError
from .pipeline import IngestionPipeline, IngestOutcome
from .schemas import BatchRecordResponse, BatchResponse, UploadCommittedResponse

router = APIRouter()

_FAILURE_STATUS = {
    IngestOutcome.STREAM_MALFORMED: status.HTTP_400_BAD_REQUEST,
    IngestOutcome.VALIDATION_FAILED: status.HTTP_400_BAD_REQUEST,
    IngestOutcome.PERSISTENCE_FAILED: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post("/uploads", status_code=status.HTTP_201_CREATED, response_model=UploadCommittedResponse)
async def upload_csv(
    file: UploadFile = File(...),
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> UploadCommittedResponse:
    """
    Upload a CSV of people (`name,age,city`) and store it as one batch.

    The file is all-or-nothing: a single invalid row rejects the whole upload.
    """
    upload = await transport.receive_upload(file)
    result = await pipeline.ingest(upload)

    committed = result.committed
    if committed is None:
        raise HTTPException(status_code=_FAILURE_STATUS[result.outcome], detail=result.message)

    return UploadCommittedResponse(
        message=result.message,
        batch_id=committed.batch_id,
        file_name=result.file_name,
        inserted_count=committed.inserted_count,
    )


@router.get("/uploads", response_model=list[BatchResponse])
async def list_uploads(
    db: Database = Depends(get_db),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
) -> list[dict]:
    try:
        return await repository.list_batches(db, limit=limit, offset=offset)
    except StorageError as exc:
        raise HTTPException(status_code=500, detail="Could not load the list of uploads.") from exc


@router.get("/uploads/{upload_id}/records", response_model=list[BatchRecordResponse])
async def list_upload_records(
    upload_id: int,
    db: Database = Depends(get_db),
) -> list[dict]:
    try:
        batch = await repository.get_batch(db, upload_id)
        if batch is None:
            raise HTTPException(status_code=404, detail="Upload not found.")
        return await repository.list_batch_records(db, upload_id)
    except StorageError as exc:
        raise HTTPException(status_code=500, detail="Could not load the upload's records.") from exc

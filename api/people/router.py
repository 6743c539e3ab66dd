"""
Record CRUD endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from core.db import Database
from core.dependencies import get_db
from uploads.dependencies import get_pipeline
from uploads.pipeline import IngestionPipeline

from . import schemas, service

router = APIRouter(prefix="/api")


@router.get("/records", response_model=list[schemas.RecordResponse])
async def list_records(
    db: Database = Depends(get_db),
    limit: int = Query(500, ge=1, le=5000),
    offset: int = Query(0, ge=0),
) -> list[schemas.RecordResponse]:
    return await service.list_records(db, limit=limit, offset=offset)


@router.post(
    "/records",
    status_code=status.HTTP_201_CREATED,
    response_model=schemas.RecordMutationResponse,
)
async def create_record(
    payload: schemas.RecordIn,
    pipeline: IngestionPipeline = Depends(get_pipeline),
) -> schemas.RecordMutationResponse:
    return await service.create_manual_record(pipeline, payload)


@router.put("/records/{record_id}", response_model=schemas.RecordMutationResponse)
async def update_record(
    record_id: int,
    payload: schemas.RecordIn,
    db: Database = Depends(get_db),
) -> schemas.RecordMutationResponse:
    return await service.update_record(db, record_id, payload)


@router.delete("/records/{record_id}", response_model=schemas.RecordMutationResponse)
async def delete_record(
    record_id: int,
    db: Database = Depends(get_db),
) -> schemas.RecordMutationResponse:
    return await service.delete_record(db, record_id)

"""
FastAPI dependencies for the ingestion pipeline.

Tests override `get_batch_store` to run the pipeline without PostgreSQL.
"""

from __future__ import annotations

from fastapi import Depends

from core.db import Database
from core.dependencies import get_db

from .pipeline import IngestionPipeline
from .repository import BatchStore, PostgresBatchStore


def get_batch_store(db: Database = Depends(get_db)) -> BatchStore:
    return PostgresBatchStore(db)


def get_pipeline(store: BatchStore = Depends(get_batch_store)) -> IngestionPipeline:
    return IngestionPipeline(store)

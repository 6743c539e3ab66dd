"""
Pydantic schemas for upload endpoints.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class UploadCommittedResponse(BaseModel):
    message: str
    batch_id: int
    file_name: str
    inserted_count: int


class BatchResponse(BaseModel):
    id: int
    file_name: str
    uploaded_at: datetime
    total_rows: int | None = None


class BatchRecordResponse(BaseModel):
    id: int
    name: str
    age: int
    city: str

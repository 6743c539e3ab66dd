"""
Record API schemas (request/response models).
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class RecordIn(BaseModel):
    name: str = Field(..., max_length=200)
    # Strict: "30" or 30.5 in the JSON body is a type error, not an age.
    age: int = Field(..., strict=True)
    city: str = Field(..., max_length=200)


class RecordResponse(BaseModel):
    id: int
    name: str
    age: int
    city: str
    upload_id: int


class RecordMutationResponse(BaseModel):
    message: str
    record: RecordResponse

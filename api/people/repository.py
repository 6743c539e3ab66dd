"""
Person record persistence helpers.

Records are created only through the batch store (see `uploads/pipeline.py`),
so this module covers reads, updates and deletes.
"""

from __future__ import annotations

from typing import Any

from core.db import Database
from uploads.repository import storage_errors
from uploads.validation import NormalizedRow


async def list_records(db: Database, *, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
    with storage_errors("list records"):
        return await db.fetch_all(
            """
            SELECT id, name, age, city, upload_id
            FROM records
            ORDER BY id
            LIMIT $1
            OFFSET $2
            """,
            limit,
            offset,
        )


async def update_record(db: Database, record_id: int, row: NormalizedRow) -> dict[str, Any] | None:
    """
    Overwrite a record's fields. Returns the updated row, or None when missing.
    """
    with storage_errors("update record"):
        return await db.fetch_one(
            """
            UPDATE records
            SET name = $1, age = $2, city = $3
            WHERE id = $4
            RETURNING id, name, age, city, upload_id
            """,
            row.name,
            row.age,
            row.city,
            record_id,
        )


async def delete_record(db: Database, record_id: int) -> dict[str, Any] | None:
    # The owning batch keeps its total_rows; it counts rows at creation time.
    with storage_errors("delete record"):
        return await db.fetch_one(
            """
            DELETE FROM records
            WHERE id = $1
            RETURNING id, name, age, city, upload_id
            """,
            record_id,
        )

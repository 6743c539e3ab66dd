"""
Upload batch persistence.

This module is where batch-related SQL lives. `PostgresBatchStore` is the
write side used by the ingestion pipeline; the module-level functions are the
read side used by the batch browsing endpoints.

Expected tables:
- uploads(id bigserial, file_name text, uploaded_at timestamptz, total_rows int)
- records(id bigserial, name text, age int, city text, upload_id bigint -> uploads.id)
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncContextManager, AsyncIterator, Iterator, Protocol, Sequence

import asyncpg

from core.db import DB_ERRORS, Database

from .errors import StorageError
from .validation import NormalizedRow

logger = logging.getLogger(__name__)


@contextmanager
def storage_errors(action: str) -> Iterator[None]:
    """
    Re-raise driver/connection failures as StorageError.
    """
    try:
        yield
    except DB_ERRORS as exc:
        raise StorageError(f"Failed to {action}.") from exc


class BatchWriter(Protocol):
    async def create_batch(self, label: str, *, total_rows: int) -> int: ...

    async def bulk_insert_records(self, batch_id: int, rows: Sequence[NormalizedRow]) -> list[dict[str, Any]]: ...


class BatchStore(Protocol):
    """
    Both writer calls must run inside one `transaction()` block so a failed
    insert cannot leave an orphan batch behind.
    """

    def transaction(self) -> AsyncContextManager[BatchWriter]: ...


class _PostgresBatchWriter:
    def __init__(self, conn: asyncpg.Connection) -> None:
        self._conn = conn

    async def create_batch(self, label: str, *, total_rows: int) -> int:
        with storage_errors("create upload batch"):
            row = await self._conn.fetchrow(
                """
                INSERT INTO uploads (file_name, uploaded_at, total_rows)
                VALUES ($1, now(), $2)
                RETURNING id
                """,
                label,
                total_rows,
            )
        if row is None or "id" not in row:
            raise StorageError("Failed to create upload batch.")
        return int(row["id"])

    async def bulk_insert_records(self, batch_id: int, rows: Sequence[NormalizedRow]) -> list[dict[str, Any]]:
        """
        Insert all rows in a single statement; either every row lands or none.

        Returns the inserted records ordered by id; the inserted count is
        their length.
        """
        if not rows:
            return []

        names = [r.name for r in rows]
        ages = [r.age for r in rows]
        cities = [r.city for r in rows]

        with storage_errors("insert records"):
            inserted = await self._conn.fetch(
                """
                INSERT INTO records (name, age, city, upload_id)
                SELECT r.name, r.age, r.city, $4
                FROM unnest($1::text[], $2::int[], $3::text[]) WITH ORDINALITY AS r(name, age, city, ord)
                ORDER BY r.ord
                RETURNING id, name, age, city, upload_id
                """,
                names,
                ages,
                cities,
                batch_id,
            )
        return sorted((dict(r) for r in inserted), key=lambda r: r["id"])


class PostgresBatchStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[BatchWriter]:
        # Covers acquire/commit failures; errors from the body are already StorageError.
        with storage_errors("complete batch transaction"):
            async with self._db.transaction() as conn:
                yield _PostgresBatchWriter(conn)


async def list_batches(db: Database, *, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
    """
    List upload batches, newest first.
    """
    with storage_errors("list upload batches"):
        return await db.fetch_all(
            """
            SELECT id, file_name, uploaded_at, total_rows
            FROM uploads
            ORDER BY uploaded_at DESC, id DESC
            LIMIT $1
            OFFSET $2
            """,
            limit,
            offset,
        )


async def get_batch(db: Database, batch_id: int) -> dict[str, Any] | None:
    with storage_errors("load upload batch"):
        return await db.fetch_one(
            """
            SELECT id, file_name, uploaded_at, total_rows
            FROM uploads
            WHERE id = $1
            """,
            batch_id,
        )


async def list_batch_records(db: Database, batch_id: int) -> list[dict[str, Any]]:
    with storage_errors("list batch records"):
        return await db.fetch_all(
            """
            SELECT id, name, age, city, upload_id
            FROM records
            WHERE upload_id = $1
            ORDER BY id ASC
            """,
            batch_id,
        )

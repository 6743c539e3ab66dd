from __future__ import annotations

import itertools
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

import pytest
from fastapi.testclient import TestClient

from core.dependencies import get_db
from main import app
from people import repository as people_repository
from uploads import repository as uploads_repository
from uploads.dependencies import get_batch_store
from uploads.errors import StorageError
from uploads.transport import SpooledUpload
from uploads.validation import NormalizedRow


class _StagedWriter:
    def __init__(self, store: "InMemoryBatchStore") -> None:
        self._store = store
        self.batches: list[dict[str, Any]] = []
        self.records: list[dict[str, Any]] = []

    async def create_batch(self, label: str, *, total_rows: int) -> int:
        if self._store.fail_on == "create_batch":
            raise StorageError("Failed to create upload batch.")
        batch_id = next(self._store.batch_ids)
        self.batches.append(
            {
                "id": batch_id,
                "file_name": label,
                "uploaded_at": datetime.now(timezone.utc),
                "total_rows": total_rows,
            }
        )
        return batch_id

    async def bulk_insert_records(self, batch_id: int, rows: Sequence[NormalizedRow]) -> list[dict[str, Any]]:
        if self._store.fail_on == "bulk_insert":
            raise StorageError("Failed to insert records.")
        inserted = [
            {
                "id": next(self._store.record_ids),
                "name": row.name,
                "age": row.age,
                "city": row.city,
                "upload_id": batch_id,
            }
            for row in rows
        ]
        self.records.extend(inserted)
        return [dict(r) for r in inserted]


class InMemoryBatchStore:
    """
    Batch store with the same commit/rollback behavior as the Postgres one:
    writes are staged and only applied if the transaction block exits cleanly.
    """

    def __init__(self) -> None:
        self.batches: dict[int, dict[str, Any]] = {}
        self.records: dict[int, dict[str, Any]] = {}
        self.batch_ids = itertools.count(1)
        self.record_ids = itertools.count(1)
        self.fail_on: str | None = None
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        writer = _StagedWriter(self)
        yield writer
        for batch in writer.batches:
            self.batches[batch["id"]] = batch
        for record in writer.records:
            self.records[record["id"]] = record

    def batch_records(self, batch_id: int) -> list[dict[str, Any]]:
        return sorted(
            (r for r in self.records.values() if r["upload_id"] == batch_id),
            key=lambda r: r["id"],
        )


@pytest.fixture(autouse=True)
def upload_dir(tmp_path, monkeypatch) -> Path:
    path = tmp_path / "uploads"
    monkeypatch.setenv("UPLOAD_TMP_DIR", str(path))
    monkeypatch.delenv("MAX_UPLOAD_BYTES", raising=False)
    return path


@pytest.fixture
def store() -> InMemoryBatchStore:
    return InMemoryBatchStore()


@pytest.fixture
def spool(upload_dir):
    """Write bytes to a temp upload, as the transport would."""
    upload_dir.mkdir(parents=True, exist_ok=True)
    counter = itertools.count(1)

    def _spool(content: bytes, file_name: str = "people.csv") -> SpooledUpload:
        path = upload_dir / f"upload-{next(counter)}.csv"
        path.write_bytes(content)
        return SpooledUpload(path=path, file_name=file_name, size_bytes=len(content))

    return _spool


@pytest.fixture
def store_reads(monkeypatch, store):
    """Point the read-side repository functions at the in-memory store."""

    async def list_batches(db, *, limit=100, offset=0):
        batches = sorted(store.batches.values(), key=lambda b: b["id"], reverse=True)
        return batches[offset : offset + limit]

    async def get_batch(db, batch_id):
        return store.batches.get(batch_id)

    async def list_batch_records(db, batch_id):
        return store.batch_records(batch_id)

    async def list_records(db, *, limit=100, offset=0):
        rows = sorted(store.records.values(), key=lambda r: r["id"])
        return rows[offset : offset + limit]

    async def update_record(db, record_id, row):
        record = store.records.get(record_id)
        if record is None:
            return None
        record.update(name=row.name, age=row.age, city=row.city)
        return dict(record)

    async def delete_record(db, record_id):
        return store.records.pop(record_id, None)

    monkeypatch.setattr(uploads_repository, "list_batches", list_batches)
    monkeypatch.setattr(uploads_repository, "get_batch", get_batch)
    monkeypatch.setattr(uploads_repository, "list_batch_records", list_batch_records)
    monkeypatch.setattr(people_repository, "list_records", list_records)
    monkeypatch.setattr(people_repository, "update_record", update_record)
    monkeypatch.setattr(people_repository, "delete_record", delete_record)
    return store


@pytest.fixture
def client(store, store_reads):
    # No lifespan: the test client never opens a real pool.
    app.dependency_overrides[get_db] = lambda: object()
    app.dependency_overrides[get_batch_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()

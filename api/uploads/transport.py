"""
Upload transport: accept a multipart CSV and spool it to a temporary file.

Type and size checks happen here, before the ingestion pipeline runs. The
resulting `SpooledUpload` is owned by one request and must be released
exactly once; the pipeline does that on every exit path.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from fastapi import HTTPException, UploadFile
from starlette.concurrency import run_in_threadpool

from core import settings

ALLOWED_EXTENSIONS = {".csv"}
ALLOWED_CONTENT_TYPES = {"text/csv", "application/csv"}

READ_CHUNK_BYTES = 1024 * 1024  # 1 MiB

logger = logging.getLogger(__name__)


@dataclass
class SpooledUpload:
    path: Path
    file_name: str
    size_bytes: int
    released: bool = field(default=False, init=False)

    def open(self) -> BinaryIO:
        if self.released:
            raise RuntimeError(f"Upload {self.path} was already released.")
        return self.path.open("rb")

    def release(self) -> None:
        """
        Delete the temporary file. Safe to call more than once.
        """
        if self.released:
            return None
        self.released = True
        try:
            self.path.unlink(missing_ok=True)
        except OSError:
            logger.exception("upload_cleanup_failed path=%s", self.path)
        else:
            logger.debug("upload_released path=%s", self.path)


def _file_ext(filename: str) -> str:
    return Path(filename).suffix.lower()


def validate_upload(file: UploadFile) -> str:
    """
    Return the original filename if this upload looks like a CSV.

    Either a `.csv` extension or a CSV content type is enough; browsers are
    inconsistent about the content type they send.
    """
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file was uploaded.")

    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()
    if _file_ext(file.filename) not in ALLOWED_EXTENSIONS and content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Only CSV files are accepted.")

    return file.filename


def _max_upload_bytes() -> int:
    try:
        return settings.max_upload_bytes()
    except settings.SettingsError as exc:
        raise HTTPException(status_code=500, detail=str(exc)) from exc


async def receive_upload(file: UploadFile) -> SpooledUpload:
    """
    Validate the upload and copy it to a request-owned temporary file.

    The copy is streamed in chunks with a size ceiling. If the client goes
    away or the limit is exceeded, the partial file is removed before the
    error propagates.
    """
    filename = validate_upload(file)
    max_bytes = _max_upload_bytes()

    tmp = tempfile.NamedTemporaryFile(
        mode="wb",
        prefix="upload-",
        suffix=".csv",
        dir=settings.upload_tmp_dir(),
        delete=False,
    )
    upload = SpooledUpload(path=Path(tmp.name), file_name=filename, size_bytes=0)

    try:
        with tmp:
            while True:
                chunk = await file.read(READ_CHUNK_BYTES)
                if not chunk:
                    break
                upload.size_bytes += len(chunk)
                if upload.size_bytes > max_bytes:
                    raise HTTPException(
                        status_code=413,
                        detail=f"File too large. Max is {max_bytes} bytes.",
                    )
                await run_in_threadpool(tmp.write, chunk)
    except BaseException:
        upload.release()
        raise

    logger.info(
        "upload_received file_name=%s size_bytes=%s path=%s",
        upload.file_name,
        upload.size_bytes,
        upload.path,
    )
    return upload

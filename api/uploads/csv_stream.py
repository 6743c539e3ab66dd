"""
Streaming CSV reader for person uploads.

Rows are decoded incrementally from a binary stream, so large files are never
held in memory. The generator is single-pass: the pipeline drains it once.
"""

from __future__ import annotations

import csv
import io
from typing import BinaryIO, Iterator

from .errors import StreamMalformed
from .validation import REQUIRED_COLUMNS


def _read_header(reader: Iterator[list[str]]) -> dict[str, int]:
    try:
        header = next(reader)
    except StopIteration:
        raise StreamMalformed("CSV is empty; expected a header row.") from None

    columns = [h.strip().lower() for h in header]
    missing = [c for c in REQUIRED_COLUMNS if c not in columns]
    if missing:
        raise StreamMalformed(f"CSV header is missing required columns: {', '.join(missing)}")

    # First occurrence wins if a column name is repeated.
    return {c: columns.index(c) for c in REQUIRED_COLUMNS}


def iter_raw_rows(stream: BinaryIO, *, encoding: str = "utf-8-sig") -> Iterator[dict[str, str | None]]:
    """
    Yield one `{column: raw_text}` mapping per data row.

    - The header is matched case-insensitively; extra columns are ignored.
    - Short rows yield None for the missing fields (the validator rejects them).
    - Blank lines are skipped.
    - Bad quoting or undecodable bytes raise StreamMalformed.

    The underlying binary stream is left open; the caller owns it.
    """
    text = io.TextIOWrapper(stream, encoding=encoding, newline="")
    try:
        reader = csv.reader(text, strict=True)
        try:
            positions = _read_header(reader)

            for fields in reader:
                if not fields:
                    continue
                yield {
                    column: (fields[idx] if idx < len(fields) else None)
                    for column, idx in positions.items()
                }
        except (csv.Error, UnicodeDecodeError) as exc:
            raise StreamMalformed(f"Malformed CSV near line {reader.line_num}: {exc}") from exc
    finally:
        text.detach()

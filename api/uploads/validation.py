"""
Row validation for person records.

`validate` is the per-row check used by CSV ingestion. `normalize_fields`
applies the same rules to typed values coming from the manual-entry and
update endpoints, so every stored record satisfies one set of invariants.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Mapping, Optional

REQUIRED_COLUMNS = ("name", "age", "city")

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")

# `records.age` is a Postgres `integer`.
MAX_AGE = 2**31 - 1


@dataclass(frozen=True)
class NormalizedRow:
    name: str
    age: int
    city: str


RawRow = Mapping[str, Optional[str]]


def _clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = value.strip()
    return text or None


def parse_age(raw: str | None) -> int | None:
    """
    Parse a base-10 integer age; None unless it is an exact integer in
    1..MAX_AGE.

    `int()` alone is too lenient (it accepts "1_000" and non-ASCII digits),
    so the literal is matched first.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not _INTEGER_RE.fullmatch(text):
        return None
    value = int(text, 10)
    return value if 0 < value <= MAX_AGE else None


def validate(raw_row: RawRow) -> NormalizedRow | None:
    """
    Return the normalized row, or None if any field rule fails.
    """
    name = _clean_text(raw_row.get("name"))
    if name is None:
        return None

    age = parse_age(raw_row.get("age"))
    if age is None:
        return None

    city = _clean_text(raw_row.get("city"))
    if city is None:
        return None

    return NormalizedRow(name=name, age=age, city=city)


def normalize_fields(name: str | None, age: int | None, city: str | None) -> NormalizedRow | None:
    clean_name = _clean_text(name)
    clean_city = _clean_text(city)
    # bool is an int subclass; True must not become age 1.
    if isinstance(age, bool) or not isinstance(age, int) or not 0 < age <= MAX_AGE:
        return None
    if clean_name is None or clean_city is None:
        return None
    return NormalizedRow(name=clean_name, age=age, city=clean_city)

"""
Shared FastAPI dependencies.
"""

from __future__ import annotations

from fastapi import Request

from .db import Database


def get_db(request: Request) -> Database:
    db = getattr(request.app.state, "db", None)
    if db is None:
        raise RuntimeError("Database is not attached to app.state. Is the lifespan running?")
    return db

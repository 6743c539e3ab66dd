"""
Runtime settings read from environment variables.

Every helper reads the environment on each call so tests can use
`monkeypatch.setenv` without reloading modules.
"""

from __future__ import annotations

import os
from pathlib import Path

DEFAULT_MAX_UPLOAD_BYTES = 5 * 1024 * 1024  # 5 MiB
DEFAULT_UPLOAD_TMP_DIR = "uploads"
DEFAULT_CORS_ORIGINS = (
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
)


class SettingsError(RuntimeError):
    pass


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def database_url() -> str:
    url = os.environ.get("DATABASE_URL", "").strip()
    if not url:
        raise SettingsError("DATABASE_URL is not set.")
    return url


def pool_min_size() -> int:
    return _env_int("DB_POOL_MIN_SIZE", 1)


def pool_max_size() -> int:
    return _env_int("DB_POOL_MAX_SIZE", 5)


def command_timeout() -> int:
    return _env_int("DB_COMMAND_TIMEOUT", 30)


def max_upload_bytes() -> int:
    """
    Read MAX_UPLOAD_BYTES from env, falling back to the default ceiling.

    A non-integer or non-positive value raises SettingsError.
    """
    raw = os.environ.get("MAX_UPLOAD_BYTES", "").strip()
    if not raw:
        return DEFAULT_MAX_UPLOAD_BYTES

    try:
        value = int(raw)
    except ValueError as exc:
        raise SettingsError("Invalid MAX_UPLOAD_BYTES. It must be an integer.") from exc

    if value <= 0:
        raise SettingsError("Invalid MAX_UPLOAD_BYTES. It must be > 0.")

    return value


def upload_tmp_dir() -> Path:
    raw = os.environ.get("UPLOAD_TMP_DIR", "").strip() or DEFAULT_UPLOAD_TMP_DIR
    path = Path(raw)
    path.mkdir(parents=True, exist_ok=True)
    return path


def cors_allow_origins() -> list[str]:
    raw = os.environ.get("CORS_ALLOW_ORIGINS", "").strip()
    if not raw:
        return list(DEFAULT_CORS_ORIGINS)
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO"

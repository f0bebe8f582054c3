# backend/mams/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/mams.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///mams.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Seconds a SQLite connection waits on the database lock before "database is locked"
    SQLITE_BUSY_TIMEOUT_SECONDS = float(os.environ.get("SQLITE_BUSY_TIMEOUT_SECONDS", "15"))

    # Audit records are handed to a background worker unless AUDIT_SYNC is set
    AUDIT_SYNC = _env_bool("AUDIT_SYNC", False)
    AUDIT_QUEUE_SIZE = int(os.environ.get("AUDIT_QUEUE_SIZE", "1000"))

    LIST_DEFAULT_LIMIT = int(os.environ.get("LIST_DEFAULT_LIMIT", "20"))
    LIST_MAX_LIMIT = int(os.environ.get("LIST_MAX_LIMIT", "100"))
    AUDIT_DEFAULT_LIMIT = int(os.environ.get("AUDIT_DEFAULT_LIMIT", "50"))
    AUDIT_MAX_LIMIT = int(os.environ.get("AUDIT_MAX_LIMIT", "200"))

    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    # bcrypt cost factor
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Client-supplied event timestamps may run slightly ahead of the server clock
    OCCURRED_AT_FUTURE_TOLERANCE_SECONDS = int(
        os.environ.get("OCCURRED_AT_FUTURE_TOLERANCE_SECONDS", "120")
    )

# backend/pos_events/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///pos_events.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared secret POS terminals use to sign request bodies (HMAC-SHA256)
    POS_SIGNATURE_SECRET = os.environ.get("POS_SIGNATURE_SECRET")
    # Only disable for local development
    SIGNATURE_VERIFICATION_ENABLED = _env_bool("SIGNATURE_VERIFICATION_ENABLED", True)

    # Deferred writes
    EVENT_WORKER_THREADS = int(os.environ.get("EVENT_WORKER_THREADS", "4"))
    EVENTS_RUN_INLINE = _env_bool("EVENTS_RUN_INLINE", False)
    EVENT_WRITE_ATTEMPTS = int(os.environ.get("EVENT_WRITE_ATTEMPTS", "3"))
    EVENT_RETRY_BACKOFF = float(os.environ.get("EVENT_RETRY_BACKOFF", "0.1"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

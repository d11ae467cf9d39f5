# backend/channelhub/config.py
from __future__ import annotations
import os


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/channelhub.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location (postgres in production)
        "sqlite:///channelhub.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session lifetime for bearer tokens issued by /api/auth/login
    SESSION_TTL_HOURS = _env_int("SESSION_TTL_HOURS", 24)

    # Channel sync fan-out
    SYNC_MAX_WORKERS = _env_int("SYNC_MAX_WORKERS", 4)
    SYNC_BATCH_TIMEOUT = _env_int("SYNC_BATCH_TIMEOUT", 60)  # seconds, whole batch
    CHANNEL_HTTP_TIMEOUT = _env_int("CHANNEL_HTTP_TIMEOUT", 15)  # seconds, per request

    # Vendor endpoints
    SHOPIFY_API_VERSION = os.environ.get("SHOPIFY_API_VERSION", "2024-01")
    SIIGO_API_BASE_URL = os.environ.get("SIIGO_API_BASE_URL", "https://api.siigo.com")
    ERP_API_BASE_URL = os.environ.get("ERP_API_BASE_URL", "")

    CORS_ALLOWED_ORIGINS = {
        origin.strip()
        for origin in os.environ.get(
            "CORS_ALLOWED_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if origin.strip()
    }

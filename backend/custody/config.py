# backend/custody/config.py
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

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///custody.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Business calendar runs on a fixed UTC offset (GMT-5), not the host timezone
    BUSINESS_UTC_OFFSET_HOURS = int(os.environ.get("BUSINESS_UTC_OFFSET_HOURS", "-5"))
    SKIP_WEEKENDS_DEFAULT = _env_bool("SKIP_WEEKENDS_DEFAULT", False)

    BATCH_MAX_TRANSACTIONS = int(os.environ.get("BATCH_MAX_TRANSACTIONS", "200"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test"
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SKIP_WEEKENDS_DEFAULT = False
    BATCH_MAX_TRANSACTIONS = 50

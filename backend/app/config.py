# backend/app/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pharmaflow.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pharmaflow.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Checkout options offered to buyers
    PAY_ON_DELIVERY_ENABLED = _env_flag("PAY_ON_DELIVERY_ENABLED", True)

    # Pay-on-delivery orders may be approved straight from "Payment Pending"
    POD_DIRECT_APPROVAL = _env_flag("POD_DIRECT_APPROVAL", True)

    # Retry policy for lock contention and optimistic-lock conflicts
    RETRY_ATTEMPTS = int(os.environ.get("RETRY_ATTEMPTS", "5"))
    RETRY_BACKOFF_SECONDS = float(os.environ.get("RETRY_BACKOFF_SECONDS", "0.05"))

    # bcrypt cost factor for account passwords
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

# backend/ledgerpos/config.py
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

    # SQLite DB stored next to the instance by default
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///ledgerpos.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    # SQLite busy timeout: how long a writer waits on BEGIN IMMEDIATE before OperationalError
    SQLALCHEMY_ENGINE_OPTIONS = {
        "connect_args": {"timeout": float(os.environ.get("SQLITE_BUSY_TIMEOUT", "5"))},
    }

    # Unit of work: every sale/return runs as one all-or-nothing transaction
    UNIT_OF_WORK_ATTEMPTS = int(os.environ.get("UNIT_OF_WORK_ATTEMPTS", "3"))
    UNIT_OF_WORK_BACKOFF_SECONDS = float(os.environ.get("UNIT_OF_WORK_BACKOFF_SECONDS", "0.1"))
    UNIT_OF_WORK_TIMEOUT_SECONDS = float(os.environ.get("UNIT_OF_WORK_TIMEOUT_SECONDS", "10"))

    # "settlement": discount is credited to the account debited for revenue (AR or Cash/Bank)
    # "revenue":    discount is credited to Sales Revenue
    DISCOUNT_CREDIT_POLICY = os.environ.get("DISCOUNT_CREDIT_POLICY", "settlement")

    # Post-commit side effects
    RECEIPTS_ENABLED = _env_bool("RECEIPTS_ENABLED", True)
    RECEIPT_DIR = os.environ.get("RECEIPT_DIR")  # None -> <instance_path>/receipts
    AUDIT_ENABLED = _env_bool("AUDIT_ENABLED", True)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

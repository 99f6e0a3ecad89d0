# backend/bizledger/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/bizledger.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///bizledger.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # VAT applied to invoice lines and expenses unless disabled per line
    DEFAULT_TAX_RATE_PERCENT = float(os.environ.get("DEFAULT_TAX_RATE_PERCENT", "15"))

    # Attempts for ledger writes that lose an optimistic-concurrency race
    LEDGER_RETRY_ATTEMPTS = int(os.environ.get("LEDGER_RETRY_ATTEMPTS", "3"))

    # Sheet exports land here when the CLI is run without --out
    EXPORT_DIR = os.environ.get("EXPORT_DIR", "exports")

    # Browser origins allowed to call the API (comma separated)
    CORS_ORIGINS = {
        o.strip()
        for o in os.environ.get(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173",
        ).split(",")
        if o.strip()
    }

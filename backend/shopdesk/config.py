# backend/shopdesk/config.py
from __future__ import annotations
import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shopdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///shopdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Cost policy for lines whose product has no stored cost.
    # false -> cost 0, true -> cost = selling price
    USE_SELL_PRICE_AS_COST = _env_flag("USE_SELL_PRICE_AS_COST")

    # true -> stock decrement only applies while stock >= qty, otherwise the sale aborts
    STRICT_STOCK_DECREMENT = _env_flag("STRICT_STOCK_DECREMENT")

    # Retry policy for aborted transactions (applied by the API/CLI, never by the engine)
    TRANSACTION_RETRY_ATTEMPTS = int(os.environ.get("TRANSACTION_RETRY_ATTEMPTS", "3"))
    TRANSACTION_RETRY_BACKOFF = float(os.environ.get("TRANSACTION_RETRY_BACKOFF", "0.1"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

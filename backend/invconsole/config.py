# backend/invconsole/config.py
from __future__ import annotations
import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/invconsole.sqlite3 unless DATABASE_URL is set
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///invconsole.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Connect / lock-wait timeout applied to every store connection
    STORE_TIMEOUT_SECONDS = float(os.environ.get("STORE_TIMEOUT_SECONDS", "10"))

    # Command interpreter (OpenAI-compatible chat completions endpoint)
    INTERPRETER_URL = os.environ.get(
        "INTERPRETER_URL",
        "https://api.openai.com/v1/chat/completions",
    )
    INTERPRETER_API_KEY = os.environ.get("INTERPRETER_API_KEY")
    INTERPRETER_MODEL = os.environ.get("INTERPRETER_MODEL", "gpt-4o-mini")
    INTERPRETER_TIMEOUT_SECONDS = float(os.environ.get("INTERPRETER_TIMEOUT_SECONDS", "30"))
    INTERPRETER_TEMPERATURE = float(os.environ.get("INTERPRETER_TEMPERATURE", "0.1"))

    # Optimistic-lock / lock-conflict retry policy
    RETRY_ATTEMPTS = int(os.environ.get("RETRY_ATTEMPTS", "3"))
    RETRY_BACKOFF_SECONDS = float(os.environ.get("RETRY_BACKOFF_SECONDS", "0.1"))

    SUGGESTION_LIMIT = 5
    TRANSACTION_VIEW_LIMIT = 50


def engine_options(uri: str, timeout: float) -> dict:
    """SQLAlchemy engine options carrying the store timeout for the given backend."""
    if uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout}}
    return {
        "pool_pre_ping": True,
        "pool_timeout": timeout,
        "connect_args": {"connect_timeout": int(timeout)},
    }

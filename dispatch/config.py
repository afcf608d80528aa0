# dispatch/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

One Settings object for the whole process. Nothing here needs secrets at
import time; the database URL falls back to a local SQLite file.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

ENV_PREFIX = "DISPATCH"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: Optional[str] = None) -> Optional[str]:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Server ----
    host: str
    port: int
    database_url: str
    data_dir: Path

    # ---- Auth ----
    session_days: int
    cookie_name: str

    # ---- Offline cache ----
    cache_name: str

    # ---- Views / client ----
    focus_window_days: int
    autosave_delay: float
    client_state_path: Path

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "Dispatch")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        host = _env(_k("HOST"), "0.0.0.0")
        # PORT is what most hosting platforms inject.
        port = _env_int(_k("PORT"), _env_int("PORT", 8000))

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/dispatch"))
        database_url = _first_env(
            _k("DATABASE_URL"),
            "DATABASE_URL",
            default=f"sqlite:///{data_dir / 'dispatch.sqlite3'}",
        ) or ""

        session_days = _env_int(_k("SESSION_DAYS"), 7)
        cookie_name = _env(_k("COOKIE_NAME"), "dispatch_session")

        cache_name = _env(_k("CACHE_NAME"), "dispatch-v1")

        focus_window_days = _env_int(_k("FOCUS_WINDOW_DAYS"), 7)
        autosave_delay = _env_float(_k("AUTOSAVE_DELAY"), 1.0)
        client_state_path = _env_path(_k("CLIENT_STATE_PATH"), data_dir / "client_state.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            host=host,
            port=port,
            database_url=database_url,
            data_dir=data_dir,
            session_days=session_days,
            cookie_name=cookie_name,
            cache_name=cache_name,
            focus_window_days=focus_window_days,
            autosave_delay=autosave_delay,
            client_state_path=client_state_path,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()

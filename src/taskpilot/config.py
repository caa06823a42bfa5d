# src/taskpilot/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time (the LLM key is only checked when a client is built).
- Malformed values fall back to defaults instead of raising.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "TASKPILOT"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _load_dotenv_if_available() -> None:
    """Load .env locally if python-dotenv is installed. Safe no-op otherwise."""
    try:
        from dotenv import load_dotenv
    except ImportError:
        return
    load_dotenv(override=False)


_load_dotenv_if_available()


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


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


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- LLM endpoint (OpenAI-compatible) ----
    llm_api_key: str | None
    llm_base_url: str
    llm_model: str
    llm_reasoning_effort: str | None
    llm_connect_timeout: float
    llm_read_timeout: float
    llm_router_enabled: bool

    # ---- Local data paths ----
    data_dir: Path
    db_path: Path

    # ---- Prompt tuning ----
    history_limit: int
    summary_history_limit: int

    # ---- Console ----
    owner_id: int

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "taskpilot").strip() or "taskpilot"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        llm_api_key = _first_env(_k("LLM_API_KEY"), "OPENAI_API_KEY", default=None)
        llm_base_url = _env(_k("LLM_BASE_URL"), "https://api.openai.com/v1")
        llm_model = _env(_k("LLM_MODEL"), "gpt-4o-mini").strip() or "gpt-4o-mini"
        llm_reasoning_effort = _first_env(_k("LLM_REASONING_EFFORT"), default=None)

        connect_timeout = _env_float(_k("LLM_CONNECT_TIMEOUT_SECONDS"), 5.0)
        read_timeout = _env_float(_k("LLM_READ_TIMEOUT_SECONDS"), 60.0)

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskpilot"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "taskpilot.sqlite3")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            llm_api_key=llm_api_key,
            llm_base_url=llm_base_url,
            llm_model=llm_model,
            llm_reasoning_effort=llm_reasoning_effort,
            llm_connect_timeout=max(0.1, connect_timeout),
            # keep read >= connect as a sane baseline
            llm_read_timeout=max(read_timeout, connect_timeout),
            llm_router_enabled=_env_bool(_k("LLM_ROUTER"), False),
            data_dir=data_dir,
            db_path=db_path,
            history_limit=max(0, _env_int(_k("HISTORY_LIMIT"), 20)),
            summary_history_limit=max(0, _env_int(_k("SUMMARY_HISTORY_LIMIT"), 12)),
            owner_id=_env_int(_k("OWNER_ID"), 1),
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    """Return the process-wide settings, reading the environment on first use."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "POS_DATA_DIR"
SESSION_DATA_DIR = "pos_data_dir"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "MXN"
    search_limit: int = 20
    stock_on_checkout: bool = False
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    # Not a hard-coded absolute path: uses the user's home directory.
    return Path.home() / ".pos_ticket"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def _env_bool(value: Optional[str]) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}


def _env_int(value: Optional[str], default: int) -> int:
    try:
        n = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    return n if n > 0 else default


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    # Update session for immediate effect
    st.session_state[SESSION_DATA_DIR] = str(data_dir)


def load_settings(
    env: Optional[Mapping[str, str]] = None,
    session_data_dir: Optional[str] = None,
) -> Settings:
    # Priority order for the data directory:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    env = os.environ if env is None else env

    if session_data_dir:
        data_dir = Path(session_data_dir).expanduser().resolve()
    elif env.get(ENV_DATA_DIR):
        data_dir = Path(env.get(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "pos.db"
    return Settings(
        data_dir=data_dir,
        db_path=db_path,
        currency=(env.get("POS_CURRENCY") or "MXN").strip().upper(),
        search_limit=_env_int(env.get("POS_SEARCH_LIMIT"), 20),
        stock_on_checkout=_env_bool(env.get("POS_STOCK_ON_CHECKOUT")),
        log_level=(env.get("POS_LOG_LEVEL") or "INFO").strip().upper(),
    )


@st.cache_resource
def get_settings() -> Settings:
    settings = load_settings(session_data_dir=st.session_state.get(SESSION_DATA_DIR))
    configure_logging(settings.log_level)
    return settings


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the ``pos`` logger tree."""
    logger = logging.getLogger("pos")
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, "_pos_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._pos_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    return logger

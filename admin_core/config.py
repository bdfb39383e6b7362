from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path

import streamlit as st

CONFIG_FILE_NAME = "settings.json"
ENV_DATA_DIR = "GROCERY_ADMIN_DATA_DIR"
ENV_LOG_LEVEL = "GROCERY_ADMIN_LOG_LEVEL"

# Variants whose resolved stock falls below this are surfaced as low stock.
LOW_STOCK_THRESHOLD = 20

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


@dataclass(frozen=True)
class Settings:
    data_dir: Path
    db_path: Path
    currency: str = "INR"
    low_stock_threshold: int = LOW_STOCK_THRESHOLD
    log_level: str = "INFO"


def _default_data_dir() -> Path:
    return Path.home() / ".grocery_admin"


def _load_persisted_settings(data_dir: Path) -> dict:
    cfg = data_dir / CONFIG_FILE_NAME
    if cfg.exists():
        try:
            return json.loads(cfg.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
    return {}


def persist_data_dir(data_dir_str: str) -> None:
    data_dir = Path(data_dir_str).expanduser().resolve()
    data_dir.mkdir(parents=True, exist_ok=True)

    cfg = data_dir / CONFIG_FILE_NAME
    payload = {"data_dir": str(data_dir)}
    cfg.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    st.session_state["grocery_admin_data_dir"] = str(data_dir)


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger (idempotent across reruns)."""
    root = logging.getLogger()
    if not any(getattr(h, "_grocery_admin", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._grocery_admin = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(str(level).upper())


@st.cache_resource
def get_settings() -> Settings:
    # Priority order:
    # 1) Session state (set via Data Management page)
    # 2) Environment variable
    # 3) Persisted settings in default folder
    # 4) Default folder
    if "grocery_admin_data_dir" in st.session_state:
        data_dir = Path(st.session_state["grocery_admin_data_dir"]).expanduser().resolve()
    elif os.getenv(ENV_DATA_DIR):
        data_dir = Path(os.getenv(ENV_DATA_DIR, "")).expanduser().resolve()
    else:
        default_dir = _default_data_dir()
        persisted = _load_persisted_settings(default_dir)
        data_dir = Path(persisted.get("data_dir", default_dir)).expanduser().resolve()

    data_dir.mkdir(parents=True, exist_ok=True)
    db_path = data_dir / "admin.db"
    log_level = os.getenv(ENV_LOG_LEVEL, "INFO").strip().upper() or "INFO"
    return Settings(data_dir=data_dir, db_path=db_path, log_level=log_level)

"""Environment-driven settings for Job Tracker.

Importing this module loads a `.env` file (path from TRACKER_DOTENV,
default ".env") so the API, scripts and tests all see the same variables.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv(dotenv_path=os.getenv("TRACKER_DOTENV", ".env"))

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def parse_bool(value: Optional[str]) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


def log_level() -> str:
    return os.getenv("TRACKER_LOG_LEVEL", "INFO").upper()


def cors_origins() -> list[str]:
    raw = os.getenv("TRACKER_CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()] or ["*"]


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for CLI scripts and the API process."""
    logging.basicConfig(
        level=getattr(logging, (level or log_level()), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

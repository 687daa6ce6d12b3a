"""Runtime settings read from the environment (and a local .env file)."""

from __future__ import annotations

import logging
import os
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger("uvicorn.error")

DEFAULT_PREVIEW_DELAY_MS = 800
DEFAULT_MAX_PREVIEW_POINTS = 500


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip() or default


def _env_int(key: str, default: int) -> int:
    raw = _env(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r, using %d", key, raw, default)
        return default
    if value < 0:
        logger.warning("Ignoring negative %s=%d, using %d", key, value, default)
        return default
    return value


def preview_delay_ms() -> int:
    """Simulated record-source latency applied before each preview."""
    return _env_int("PREVIEW_DELAY_MS", DEFAULT_PREVIEW_DELAY_MS)


def max_preview_points() -> int:
    return _env_int("MAX_PREVIEW_POINTS", DEFAULT_MAX_PREVIEW_POINTS)


def catalog_path() -> Optional[str]:
    return _env("CATALOG_PATH")


def cors_origins() -> List[str]:
    raw = _env("CORS_ORIGINS", "*") or "*"
    return [o.strip() for o in raw.split(",") if o.strip()]

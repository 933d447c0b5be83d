"""FEATUREGATE FILE PURPOSE
Purpose: environment configuration helpers (safe defaults).
Hot path: yes (read-only env lookups; lightweight).
Feature flags: GATE_DEBUG, GATE_EXT_*.
Failure mode: safe defaults when unset or unparseable.
"""

from __future__ import annotations

import os

DEFAULT_DB_PATH = "ops/featuregate.sqlite3"
DEFAULT_PACKAGES_DIR = "ops/packages"


def env_flag(name: str, default: str = "0") -> bool:
    v = (os.getenv(name) or default).strip().lower()
    return v in ("1", "true", "yes", "on")


def env_str(name: str, default: str = "") -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip()


def env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def is_debug() -> bool:
    return env_flag("GATE_DEBUG", "0")


def db_path() -> str:
    return env_str("GATE_DB_PATH") or DEFAULT_DB_PATH


def packages_dir() -> str:
    return env_str("GATE_PACKAGES_DIR") or DEFAULT_PACKAGES_DIR


def catalog_url() -> str | None:
    return env_str("GATE_CATALOG_URL") or None


def catalog_cache_ttl() -> int:
    return max(0, env_int("GATE_CATALOG_CACHE_TTL", 43200))


def install_lock_ttl() -> int:
    return max(1, env_int("GATE_INSTALL_LOCK_TTL", 120))


def download_timeout() -> int:
    return max(1, env_int("GATE_DOWNLOAD_TIMEOUT", 300))


def loopback_url() -> str | None:
    # Unset means in-process activation; point it at a server with GATE_EXT_LOOPBACK_ACTIVATE=1.
    return env_str("GATE_LOOPBACK_URL") or None


def loopback_timeout() -> int:
    return max(1, env_int("GATE_LOOPBACK_TIMEOUT", 30))


def admin_api_key() -> str | None:
    return env_str("GATE_ADMIN_API_KEY") or None

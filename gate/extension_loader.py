"""FEATUREGATE FILE PURPOSE
Purpose: discover and mount one-file extension modules from `extensions/`.
Hot path: no (startup only).
Feature flags: GATE_EXT_*.
Failure mode: invalid extension => skipped (warning logged only when GATE_DEBUG=1).
"""

from __future__ import annotations

import importlib
import pkgutil
import re
from typing import Any

from fastapi import FastAPI

from gate.config import env_flag, is_debug
from gate.logging import logger
from gate.registry import ExtensionSpec, set_discovered, set_enabled

_ENV_RE = re.compile(r"^GATE_EXT_[A-Z0-9_]+$")
_REQUIRED = {"key", "router", "enabled_env", "selftests"}


def _validate(extension: Any) -> dict[str, Any] | None:
    if not isinstance(extension, dict):
        return None
    if not _REQUIRED.issubset(extension.keys()):
        return None
    if not isinstance(extension.get("key"), str) or not extension["key"]:
        return None
    env = extension.get("enabled_env")
    if not isinstance(env, str) or not _ENV_RE.match(env):
        return None
    if not callable(extension.get("selftests")):
        return None
    return extension


def load_extensions(app: FastAPI) -> None:
    import extensions  # package

    discovered: dict[str, ExtensionSpec] = {}
    enabled: dict[str, ExtensionSpec] = {}

    for mod in pkgutil.iter_modules(extensions.__path__):
        if mod.ispkg or mod.name.startswith("_"):
            continue
        m = importlib.import_module(f"extensions.{mod.name}")
        d = _validate(getattr(m, "EXTENSION", None))
        if d is None:
            if is_debug():
                logger.warning("EXTENSION_INVALID module=%s", mod.name)
            continue

        spec = ExtensionSpec(
            key=d["key"],
            enabled_env=d["enabled_env"],
            router=d["router"],
            selftests=d["selftests"],
        )
        discovered[spec.key] = spec

        if env_flag(spec.enabled_env, "0"):
            app.include_router(spec.router)
            enabled[spec.key] = spec

    set_discovered(discovered)
    set_enabled(enabled)

    if is_debug():
        logger.info("EXTENSIONS_DISCOVERED keys=%s", sorted(discovered.keys()))
        logger.info("EXTENSIONS_ENABLED keys=%s", sorted(enabled.keys()))

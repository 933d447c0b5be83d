"""FEATUREGATE FILE PURPOSE
Purpose: extension registry (discovered/enabled HTTP extension modules).
Hot path: low (read-only lookups).
Feature flags: GATE_EXT_*.
Failure mode: registry empty => app has only core routes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable


@dataclass(frozen=True)
class ExtensionSpec:
    key: str
    enabled_env: str
    router: Any
    selftests: Callable[[], Any]


_DISCOVERED: dict[str, ExtensionSpec] = {}
_ENABLED: dict[str, ExtensionSpec] = {}


def set_discovered(specs: dict[str, ExtensionSpec]) -> None:
    global _DISCOVERED
    _DISCOVERED = dict(specs)


def set_enabled(specs: dict[str, ExtensionSpec]) -> None:
    global _ENABLED
    _ENABLED = dict(specs)


def discovered_extensions() -> dict[str, ExtensionSpec]:
    return dict(_DISCOVERED)


def enabled_extensions() -> dict[str, ExtensionSpec]:
    return dict(_ENABLED)

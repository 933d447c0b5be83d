"""FEATUREGATE FILE PURPOSE
Purpose: typed error results returned by the feature engine.
Hot path: no.
Feature flags: none.
Failure mode: expected failures are values, never raised; only resolver misconfiguration raises.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NOT_FOUND = "feature_not_found"
    TYPE_MISMATCH = "feature_type_mismatch"
    INSTALL_LOCKED = "install_locked"
    PACKAGE_FETCH_FAILED = "package_fetch_failed"
    DOWNLOAD_REF_MISSING = "download_ref_missing"
    INSTALL_FAILED = "install_failed"
    PACKAGE_NOT_FOUND = "package_not_found"
    OWNERSHIP_MISMATCH = "package_ownership_mismatch"
    PREFLIGHT_INVALID = "preflight_invalid_package"
    PREFLIGHT_REQUIREMENTS_NOT_MET = "preflight_requirements_not_met"
    ACTIVATION_FAILED = "activation_failed"
    ACTIVATION_FATAL = "activation_fatal"
    DEACTIVATION_FAILED = "deactivation_failed"
    CATALOG_UNAVAILABLE = "catalog_unavailable"


@dataclass(frozen=True)
class FeatureError:
    """An expected failure of a feature operation.

    ``kind`` is usually an :class:`ErrorKind`. Errors relayed from the
    sandbox endpoint keep the code the endpoint reported, which may be any
    string.
    """

    kind: ErrorKind | str
    message: str

    @property
    def code(self) -> str:
        return self.kind.value if isinstance(self.kind, ErrorKind) else str(self.kind)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class StrategyNotRegistered(LookupError):
    """No strategy is registered for a feature type (catalog/engine mismatch)."""


def is_error(value: object) -> bool:
    return isinstance(value, FeatureError)

"""FEATUREGATE FILE PURPOSE
Purpose: immutable feature definitions (built-in flags and installable packages) and stored-state values.
Hot path: low (constructed once per catalog fetch).
Feature flags: none.
Failure mode: malformed catalog entries raise ValueError from from_dict(); the catalog skips them.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar

TYPE_BUILT_IN = "built_in"
TYPE_INSTALLABLE = "installable"


class StoredState(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    UNKNOWN = "unknown"

    @classmethod
    def from_bool(cls, active: bool) -> "StoredState":
        return cls.ACTIVE if active else cls.INACTIVE


def _required_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} is required")
    return value.strip()


def _optional_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


@dataclass(frozen=True)
class Feature:
    slug: str
    name: str = ""
    description: str = ""
    group: str = ""
    tier: str = ""
    is_available: bool = True
    documentation: str = ""

    # Each subclass pins its own tag; the tag never changes after construction.
    TYPE: ClassVar[str] = ""

    @property
    def type(self) -> str:
        return self.TYPE

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Feature":
        raise NotImplementedError

    @classmethod
    def _common_fields(cls, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "slug": _required_str(data, "slug"),
            "name": _optional_str(data, "name"),
            "description": _optional_str(data, "description"),
            "group": _optional_str(data, "group"),
            "tier": _optional_str(data, "tier"),
            "is_available": bool(data.get("is_available", True)),
            "documentation": _optional_str(data, "documentation"),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "group": self.group,
            "tier": self.tier,
            "is_available": self.is_available,
            "documentation": self.documentation,
            "type": self.type,
        }


@dataclass(frozen=True)
class BuiltIn(Feature):
    TYPE: ClassVar[str] = TYPE_BUILT_IN

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "BuiltIn":
        return cls(**cls._common_fields(data))


@dataclass(frozen=True)
class Installable(Feature):
    package_ref: str = ""
    download_url: str = ""
    expected_authors: tuple[str, ...] = field(default_factory=tuple)

    TYPE: ClassVar[str] = TYPE_INSTALLABLE

    def __post_init__(self) -> None:
        if not self.package_ref:
            raise ValueError("package_ref is required")
        # Lists from callers are frozen into a tuple; blank names never match anything.
        authors = tuple(a.strip() for a in self.expected_authors if isinstance(a, str) and a.strip())
        object.__setattr__(self, "expected_authors", authors)

    @property
    def package_slug(self) -> str:
        """Directory part of ``package_ref``; install locks are keyed by it."""
        return posixpath.dirname(self.package_ref) or self.package_ref

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Installable":
        authors = data.get("authors", data.get("expected_authors", []))
        if not isinstance(authors, (list, tuple)):
            raise ValueError("authors must be a list")
        return cls(
            **cls._common_fields(data),
            package_ref=_required_str(data, "package_ref"),
            download_url=_optional_str(data, "download_url"),
            expected_authors=tuple(a for a in authors if isinstance(a, str) and a.strip()),
        )

    def to_dict(self) -> dict[str, Any]:
        out = super().to_dict()
        out.update(
            {
                "package_ref": self.package_ref,
                "download_url": self.download_url,
                "authors": list(self.expected_authors),
            }
        )
        return out

from __future__ import annotations

import io
import zipfile

import pytest

from gate.bootstrap import build_engine
from gate.catalog import CatalogClient
from gate.collection import FeatureCollection
from gate.db import query_events
from gate.errors import ErrorKind, FeatureError, StrategyNotRegistered
from gate.manager import (
    FEATURE_DISABLED,
    FEATURE_DISABLING,
    FEATURE_ENABLED,
    FEATURE_ENABLING,
    Manager,
)
from gate.models import BuiltIn, StoredState
from gate.packages import PackageHost
from gate.strategy import Resolver

REF = "stellar-export/stellar-export.py"

CATALOG = [
    {"slug": "advanced-tickets", "type": "built_in", "name": "Advanced Tickets", "group": "events", "tier": "pro"},
    {"slug": "dark-mode", "type": "built_in", "name": "Dark Mode", "group": "ui", "tier": "free"},
    {
        "slug": "stellar-export",
        "type": "installable",
        "name": "Stellar Export",
        "group": "tools",
        "tier": "pro",
        "package_ref": REF,
        "download_url": "https://packages.test/stellar-export.zip",
        "authors": ["StellarWP"],
    },
]


def _zip(author: str = "StellarWP") -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        zf.writestr(REF, f'"""\nPackage Name: Stellar Export\nAuthor: {author}\n"""\n')
    return buf.getvalue()


class _NoSandbox:
    def activate(self, package_ref: str):
        return None


def _engine(tmp_path, entries=None, blob: bytes | None = None, fetch_error: Exception | None = None):
    db = str(tmp_path / "gate.sqlite3")

    def _catalog_fetch(url: str, timeout: int):
        if fetch_error is not None:
            raise fetch_error
        return list(CATALOG if entries is None else entries)

    def _package_fetch(url: str, timeout: int) -> bytes:
        return blob if blob is not None else _zip()

    catalog = CatalogClient(url="https://catalog.test/features", fetch=_catalog_fetch)
    packages = PackageHost(root=tmp_path / "packages", db_path=db, fetch=_package_fetch)
    return build_engine(catalog=catalog, packages=packages, activator=_NoSandbox(), db_path=db)


def test_built_in_feature_round_trip(tmp_path) -> None:
    engine = _engine(tmp_path)
    manager = engine.manager
    seen: list[tuple[str, str]] = []
    manager.add_listener(lambda e: seen.append((e.name, e.slug)))

    assert manager.enable("dark-mode") is True
    assert manager.is_enabled("dark-mode") is True
    assert engine.store.get("dark-mode") is StoredState.ACTIVE

    assert manager.disable("dark-mode") is True
    assert manager.is_enabled("dark-mode") is False
    assert engine.store.get("dark-mode") is StoredState.INACTIVE

    assert seen == [
        (FEATURE_ENABLING, "dark-mode"),
        (FEATURE_ENABLED, "dark-mode"),
        (FEATURE_DISABLING, "dark-mode"),
        (FEATURE_DISABLED, "dark-mode"),
    ]


def test_installable_feature_installs_and_activates(tmp_path) -> None:
    engine = _engine(tmp_path)

    assert engine.manager.enable("stellar-export") is True
    assert engine.packages.is_active(REF)
    assert engine.manager.is_enabled("stellar-export") is True


def test_ownership_failure_suppresses_post_event(tmp_path) -> None:
    engine = _engine(tmp_path, blob=_zip(author="Foreign Developer"))
    seen: list[str] = []
    engine.manager.add_listener(lambda e: seen.append(e.name))

    result = engine.manager.enable("stellar-export")

    assert isinstance(result, FeatureError)
    assert result.kind is ErrorKind.OWNERSHIP_MISMATCH
    assert seen == [FEATURE_ENABLING]
    assert engine.manager.is_enabled("stellar-export") is False


def test_unknown_slug_is_not_found_without_events(tmp_path) -> None:
    engine = _engine(tmp_path)
    seen: list[str] = []
    engine.manager.add_listener(lambda e: seen.append(e.name))

    result = engine.manager.enable("does-not-exist")

    assert isinstance(result, FeatureError)
    assert result.kind is ErrorKind.NOT_FOUND
    assert "does-not-exist" in result.message
    assert engine.manager.disable("does-not-exist").kind is ErrorKind.NOT_FOUND
    assert engine.manager.is_enabled("does-not-exist") is False
    assert engine.manager.is_available("does-not-exist") is False
    assert seen == []


def test_catalog_error_is_passed_through(tmp_path) -> None:
    engine = _engine(tmp_path, fetch_error=OSError("catalog down"))

    result = engine.manager.enable("dark-mode")

    assert isinstance(result, FeatureError)
    assert result.kind is ErrorKind.CATALOG_UNAVAILABLE
    assert engine.manager.get_features() == result
    assert engine.manager.is_enabled("dark-mode") is False
    assert engine.manager.is_available("dark-mode") is False


def test_is_available_for_catalog_features(tmp_path) -> None:
    manager = _engine(tmp_path).manager

    assert manager.is_available("dark-mode") is True
    assert manager.is_available("stellar-export") is True


def test_get_features_returns_filterable_collection(tmp_path) -> None:
    features = _engine(tmp_path).manager.get_features()

    assert not isinstance(features, FeatureError)
    assert features.slugs() == ["advanced-tickets", "dark-mode", "stellar-export"]
    assert features.filter(type="installable").slugs() == ["stellar-export"]
    assert features.filter(tier="pro").slugs() == ["advanced-tickets", "stellar-export"]
    assert features.filter(group="ui", tier="free").slugs() == ["dark-mode"]


def test_global_listeners_run_before_slug_listeners(tmp_path) -> None:
    manager = _engine(tmp_path).manager
    order: list[str] = []
    manager.add_listener(lambda e: order.append("slug"), slug="dark-mode")
    manager.add_listener(lambda e: order.append("global"))
    manager.add_listener(lambda e: order.append("other-slug"), slug="stellar-export")

    assert manager.enable("dark-mode") is True

    assert order == ["global", "slug", "global", "slug"]


def test_event_filtered_listener_only_sees_its_event(tmp_path) -> None:
    manager = _engine(tmp_path).manager
    seen: list[str] = []
    manager.add_listener(lambda e: seen.append(e.name), event=FEATURE_ENABLED)

    manager.enable("dark-mode")
    manager.disable("dark-mode")

    assert seen == [FEATURE_ENABLED]


def test_unknown_event_name_is_rejected(tmp_path) -> None:
    manager = _engine(tmp_path).manager

    with pytest.raises(ValueError):
        manager.add_listener(lambda e: None, event="feature_exploded")


def test_listener_exception_does_not_change_result(tmp_path) -> None:
    manager = _engine(tmp_path).manager
    seen: list[str] = []

    def _boom(event) -> None:
        raise RuntimeError("listener bug")

    manager.add_listener(_boom)
    manager.add_listener(lambda e: seen.append(e.name))

    assert manager.enable("dark-mode") is True
    assert seen == [FEATURE_ENABLING, FEATURE_ENABLED]


def test_removed_listener_is_not_called(tmp_path) -> None:
    manager = _engine(tmp_path).manager
    seen: list[str] = []

    def _listener(event) -> None:
        seen.append(event.name)

    manager.add_listener(_listener)
    manager.remove_listener(_listener)
    manager.enable("dark-mode")

    assert seen == []


def test_unregistered_type_raises(tmp_path) -> None:
    class _Catalog:
        def get_features(self):
            return FeatureCollection([BuiltIn(slug="dark-mode")])

    manager = Manager(_Catalog(), Resolver())

    with pytest.raises(StrategyNotRegistered):
        manager.enable("dark-mode")


def test_audit_log_records_lifecycle_events(tmp_path) -> None:
    engine = _engine(tmp_path)
    db = str(tmp_path / "gate.sqlite3")

    engine.manager.enable("dark-mode")
    engine.manager.enable("does-not-exist")

    rows = query_events(slug="dark-mode", db_path=db)
    assert [r["event_type"] for r in rows] == [FEATURE_ENABLING, FEATURE_ENABLED]
    assert rows[1]["payload"] == {"slug": "dark-mode", "type": "built_in", "event": FEATURE_ENABLED}
    assert query_events(slug="does-not-exist", db_path=db) == []


def test_package_toggled_outside_engine_syncs_stored_state(tmp_path) -> None:
    engine = _engine(tmp_path)
    assert engine.manager.enable("stellar-export") is True

    engine.packages.deactivate(REF)
    assert engine.store.get("stellar-export") is StoredState.INACTIVE

    assert engine.packages.activate(REF) == (True, "")
    assert engine.store.get("stellar-export") is StoredState.ACTIVE


def test_advanced_tickets_enable_disable(tmp_path) -> None:
    manager = _engine(tmp_path).manager

    assert manager.enable("advanced-tickets") is True
    assert manager.is_enabled("advanced-tickets") is True
    assert manager.disable("advanced-tickets") is True
    assert manager.is_enabled("advanced-tickets") is False


def test_built_in_enable_and_disable_are_idempotent(tmp_path) -> None:
    engine = _engine(tmp_path)
    manager = engine.manager

    assert manager.enable("advanced-tickets") is True
    assert manager.enable("advanced-tickets") is True
    assert engine.store.get("advanced-tickets") is StoredState.ACTIVE
    assert manager.is_enabled("advanced-tickets") is True

    assert manager.disable("advanced-tickets") is True
    assert manager.disable("advanced-tickets") is True
    assert engine.store.get("advanced-tickets") is StoredState.INACTIVE
    assert manager.is_enabled("advanced-tickets") is False

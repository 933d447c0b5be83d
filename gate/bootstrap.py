"""FEATUREGATE FILE PURPOSE
Purpose: wire the default engine (sqlite state + locks, package host, loopback activator, catalog, strategies, manager).
Hot path: no (startup only).
Feature flags: all GATE_* settings are read here or lazily by the components.
Failure mode: misconfiguration surfaces on first use, not at wiring time.
"""

from __future__ import annotations

from dataclasses import dataclass

from gate.builtin_strategy import BuiltInStrategy
from gate.catalog import CatalogClient
from gate.db import emit_event
from gate.errors import is_error
from gate.locks import SqliteLockManager
from gate.loopback import LoopbackActivator
from gate.manager import FeatureEvent, Manager
from gate.models import TYPE_BUILT_IN, TYPE_INSTALLABLE, BuiltIn, Installable
from gate.packages import PackageHost
from gate.state import SqliteStateStore
from gate.strategy import Resolver
from gate.zip_strategy import ZipStrategy


@dataclass
class Engine:
    manager: Manager
    catalog: CatalogClient
    resolver: Resolver
    store: SqliteStateStore
    locks: SqliteLockManager
    packages: PackageHost
    zip_strategy: ZipStrategy


def build_package_host(db_path: str | None = None) -> PackageHost:
    return PackageHost(db_path=db_path)


def _audit_listener(db_path: str | None):
    def _record(event: FeatureEvent) -> None:
        emit_event(
            event.slug,
            event.name,
            {"slug": event.slug, "type": event.feature.type, "event": event.name},
            db_path=db_path,
        )

    return _record


def build_engine(
    catalog: CatalogClient | None = None,
    packages: PackageHost | None = None,
    activator: LoopbackActivator | None = None,
    db_path: str | None = None,
    audit: bool = True,
) -> Engine:
    """Wire the default engine.

    ``db_path`` overrides GATE_DB_PATH for this process only. The loopback
    endpoint records activations through its own PackageHost, which always
    reads GATE_DB_PATH, so with GATE_LOOPBACK_URL set both sides must point at
    the same database or every sandboxed activation reads back as inactive.
    """
    catalog = catalog or CatalogClient()
    catalog.register_type(TYPE_BUILT_IN, BuiltIn)
    catalog.register_type(TYPE_INSTALLABLE, Installable)

    store = SqliteStateStore(db_path)
    locks = SqliteLockManager(db_path)
    packages = packages or build_package_host(db_path)

    def _feature_for_package(package_ref: str) -> Installable | None:
        features = catalog.get_features()
        if is_error(features):
            return None
        for feature in features:
            if isinstance(feature, Installable) and feature.package_ref == package_ref:
                return feature
        return None

    zip_strategy = ZipStrategy(
        store,
        packages,
        locks,
        activator=activator or LoopbackActivator(),
        feature_resolver=_feature_for_package,
    )
    packages.add_activation_listener(zip_strategy.on_activated)
    packages.add_deactivation_listener(zip_strategy.on_deactivated)

    resolver = Resolver()
    resolver.register(TYPE_BUILT_IN, BuiltInStrategy(store))
    resolver.register(TYPE_INSTALLABLE, zip_strategy)

    manager = Manager(catalog, resolver)
    if audit:
        manager.add_listener(_audit_listener(db_path))

    return Engine(
        manager=manager,
        catalog=catalog,
        resolver=resolver,
        store=store,
        locks=locks,
        packages=packages,
        zip_strategy=zip_strategy,
    )


def build_manager() -> Manager:
    return build_engine().manager

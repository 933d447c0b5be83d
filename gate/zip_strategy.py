"""FEATUREGATE FILE PURPOSE
Purpose: installable features: download + unpack a package archive, verify its author, activate it in a sandbox.
Hot path: is_active() yes (live lookup + stored-state compare); enable/disable no.
Feature flags: GATE_INSTALL_LOCK_TTL (lock lease), loopback settings via LoopbackActivator.
Failure mode:
  - every expected failure is returned as a FeatureError, never raised
  - install lock is always released, including on exceptions
  - package files are never deleted; disable only deactivates
"""

from __future__ import annotations

import platform
import sys
from typing import Any, Callable

from gate.errors import ErrorKind, FeatureError
from gate.locks import LockManager
from gate.logging import debug_note
from gate.loopback import LoopbackActivator
from gate.models import Feature, Installable, StoredState
from gate.packages import LiveStateOracle
from gate.state import StateStore
from gate.strategy import Result, Strategy

LOCK_PREFIX = "install_lock:"

PackageInfo = Callable[[Installable], dict[str, Any]]
FeatureResolver = Callable[[str], Feature | None]


def lock_key_for(feature: Installable) -> str:
    return LOCK_PREFIX + feature.package_slug


def _catalog_package_info(feature: Installable) -> dict[str, Any]:
    return {"download_link": feature.download_url}


def _parse_version(raw: str) -> tuple[int, ...] | None:
    cleaned = raw.strip().lstrip(">=~^ ").strip()
    if not cleaned:
        return None
    try:
        parts = tuple(int(p) for p in cleaned.split(".")[:3])
    except ValueError:
        return None
    return parts or None


class ZipStrategy(Strategy):
    """Install-and-activate strategy for :class:`Installable` features.

    The package host's live state is authoritative. The stored flag is a
    cache that ``is_active`` self-heals whenever the two disagree, which
    covers packages toggled outside the engine.

    ``package_info`` resolves the download reference for a feature (it
    defaults to the catalog's ``download_url``). ``feature_resolver`` maps a
    package_ref back to a feature for the sync hooks; without one those
    hooks do nothing.
    """

    def __init__(
        self,
        store: StateStore,
        oracle: LiveStateOracle,
        locks: LockManager,
        activator: LoopbackActivator | None = None,
        package_info: PackageInfo | None = None,
        feature_resolver: FeatureResolver | None = None,
        lock_ttl: int | None = None,
    ) -> None:
        super().__init__(store)
        self._oracle = oracle
        self._locks = locks
        self._activator = activator
        self._package_info = package_info or _catalog_package_info
        self._feature_resolver = feature_resolver
        self._lock_ttl = lock_ttl

    def set_feature_resolver(self, resolver: FeatureResolver | None) -> None:
        self._feature_resolver = resolver

    def enable(self, feature: Feature) -> Result:
        if not isinstance(feature, Installable):
            return FeatureError(ErrorKind.TYPE_MISMATCH, "ZipStrategy can only enable Installable features.")

        if self._oracle.is_active(feature.package_ref):
            ownership = self.verify_ownership(feature)
            if isinstance(ownership, FeatureError):
                return ownership
            self.update_stored_state(feature.slug, True)
            return True

        ensured = self._ensure_installed(feature)
        if isinstance(ensured, FeatureError):
            return ensured

        return self._activate(feature)

    def disable(self, feature: Feature) -> Result:
        if not isinstance(feature, Installable):
            return FeatureError(ErrorKind.TYPE_MISMATCH, "ZipStrategy can only disable Installable features.")

        package_ref = feature.package_ref
        if not self._oracle.is_active(package_ref):
            self.update_stored_state(feature.slug, False)
            return True

        try:
            self._oracle.deactivate(package_ref)
        except Exception as e:
            return FeatureError(
                ErrorKind.DEACTIVATION_FAILED,
                f'Deactivation of "{package_ref}" raised {type(e).__name__}: {e}',
            )

        # Deactivation hooks may re-activate the package; trust the live state only.
        if self._oracle.is_active(package_ref):
            return FeatureError(
                ErrorKind.DEACTIVATION_FAILED,
                f'Package "{package_ref}" is still active after deactivation attempt.',
            )

        self.update_stored_state(feature.slug, False)
        return True

    def is_active(self, feature: Feature) -> bool:
        if not isinstance(feature, Installable):
            return False

        live = self._oracle.is_active(feature.package_ref)
        stored = self.get_stored_state(feature.slug)
        if stored is not StoredState.from_bool(live):
            self.update_stored_state(feature.slug, live)
            debug_note(f"FEATURE_SELF_HEALED slug={feature.slug} stored={stored.value} live={live}")
        return live

    def on_activated(self, package_ref: str) -> None:
        feature = self._resolve_feature(package_ref)
        if feature is None:
            return
        self.update_stored_state(feature.slug, True)

    def on_deactivated(self, package_ref: str) -> None:
        feature = self._resolve_feature(package_ref)
        if feature is None:
            return
        self.update_stored_state(feature.slug, False)

    def verify_ownership(self, feature: Installable) -> Result:
        expected = feature.expected_authors
        if not expected:
            return True

        actual = self._oracle.read_author(feature.package_ref).strip()
        # A package without an Author header never matches.
        if actual:
            for author in expected:
                if author.strip().casefold() == actual.casefold():
                    return True

        wanted = "\" or \"".join(expected)
        return FeatureError(
            ErrorKind.OWNERSHIP_MISMATCH,
            f'Package at "{feature.package_ref}" belongs to a different developer '
            f'(expected Author: "{wanted}", found: "{actual}").',
        )

    def _ensure_installed(self, feature: Installable) -> Result:
        package_ref = feature.package_ref
        if self._oracle.is_installed(package_ref):
            return self.verify_ownership(feature)

        # Two requests could both see "not installed" and unpack over each other.
        lock_key = lock_key_for(feature)
        if not self._locks.acquire(lock_key, self._lock_ttl):
            debug_note(f"INSTALL_LOCKED slug={feature.slug} lock_key={lock_key}")
            return FeatureError(
                ErrorKind.INSTALL_LOCKED,
                f'Another install is in progress for "{feature.slug}". Try again in a moment.',
            )

        try:
            installed = self._install(feature)
            if isinstance(installed, FeatureError):
                return installed
            if not self._oracle.is_installed(package_ref):
                return FeatureError(
                    ErrorKind.PACKAGE_NOT_FOUND,
                    f'Package file "{package_ref}" not found after install. '
                    "The archive may contain a different directory name.",
                )
        finally:
            self._locks.release(lock_key)

        return self.verify_ownership(feature)

    def _install(self, feature: Installable) -> Result:
        try:
            info = self._package_info(feature)
        except Exception as e:
            return FeatureError(
                ErrorKind.PACKAGE_FETCH_FAILED,
                f'Package info lookup failed for "{feature.slug}": {e}',
            )

        link = info.get("download_link") if isinstance(info, dict) else None
        if not isinstance(link, str) or not link.strip():
            return FeatureError(
                ErrorKind.DOWNLOAD_REF_MISSING,
                f'No download link resolved for "{feature.slug}".',
            )

        try:
            ok, detail = self._oracle.install(link.strip())
        except Exception as e:
            ok, detail = False, f"{type(e).__name__}: {e}"
        if not ok:
            return FeatureError(
                ErrorKind.INSTALL_FAILED,
                f'Package install failed for "{feature.slug}": {detail}',
            )
        return True

    def _preflight(self, package_ref: str) -> Result:
        if not self._oracle.is_installed(package_ref):
            return FeatureError(
                ErrorKind.PREFLIGHT_INVALID,
                f'Pre-flight check failed for "{package_ref}": package file does not exist.',
            )

        headers = self._oracle.read_headers(package_ref)
        if not headers.get("Name"):
            return FeatureError(
                ErrorKind.PREFLIGHT_INVALID,
                f'Pre-flight check failed for "{package_ref}": no valid package header.',
            )

        requires = headers.get("RequiresPython")
        if requires:
            wanted = _parse_version(requires)
            if wanted is None:
                return FeatureError(
                    ErrorKind.PREFLIGHT_INVALID,
                    f'Pre-flight check failed for "{package_ref}": unreadable "Requires Python" value "{requires}".',
                )
            if tuple(sys.version_info[: len(wanted)]) < wanted:
                return FeatureError(
                    ErrorKind.PREFLIGHT_REQUIREMENTS_NOT_MET,
                    f'Requirements not met for "{package_ref}": requires Python {requires}, '
                    f"running {platform.python_version()}.",
                )
        return True

    def _activate(self, feature: Installable) -> Result:
        package_ref = feature.package_ref

        preflight = self._preflight(package_ref)
        if isinstance(preflight, FeatureError):
            return preflight

        outcome = self._activator.activate(package_ref) if self._activator is not None else None
        if isinstance(outcome, FeatureError):
            return outcome
        if outcome is None:
            debug_note(f"ACTIVATION_IN_PROCESS slug={feature.slug} package_ref={package_ref}")
            fallback = self._activate_in_process(package_ref)
            if isinstance(fallback, FeatureError):
                return fallback

        if not self._oracle.is_active(package_ref):
            return FeatureError(
                ErrorKind.ACTIVATION_FAILED,
                f'Package "{package_ref}" is not active after activation attempt.',
            )

        self.update_stored_state(feature.slug, True)
        return True

    def _activate_in_process(self, package_ref: str) -> Result:
        try:
            ok, detail = self._oracle.activate(package_ref)
        except Exception as e:
            return FeatureError(
                ErrorKind.ACTIVATION_FATAL,
                f'Fatal error during activation of "{package_ref}": {type(e).__name__}: {e}',
            )
        if not ok:
            return FeatureError(
                ErrorKind.ACTIVATION_FAILED,
                f'Activation failed for "{package_ref}": {detail}',
            )
        return True

    def _resolve_feature(self, package_ref: str) -> Installable | None:
        if self._feature_resolver is None:
            return None
        resolved = self._feature_resolver(package_ref)
        return resolved if isinstance(resolved, Installable) else None

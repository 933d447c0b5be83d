"""FEATUREGATE FILE PURPOSE
Purpose: central orchestrator for enabling, disabling and querying catalog features.
Hot path: is_enabled() yes; enable/disable no.
Feature flags: none.
Failure mode:
  - catalog errors are returned untouched (no retries)
  - unknown slug => feature_not_found
  - listener exceptions are logged and never change the result
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

from gate.collection import FeatureCollection
from gate.errors import ErrorKind, FeatureError
from gate.logging import logger
from gate.models import Feature
from gate.strategy import Resolver, Result

FEATURE_ENABLING = "feature_enabling"
FEATURE_ENABLED = "feature_enabled"
FEATURE_DISABLING = "feature_disabling"
FEATURE_DISABLED = "feature_disabled"

EVENT_NAMES = (FEATURE_ENABLING, FEATURE_ENABLED, FEATURE_DISABLING, FEATURE_DISABLED)


class Catalog(Protocol):
    def get_features(self) -> FeatureCollection | FeatureError: ...


@dataclass(frozen=True)
class FeatureEvent:
    name: str
    feature: Feature

    @property
    def slug(self) -> str:
        return self.feature.slug


Listener = Callable[[FeatureEvent], None]


@dataclass(frozen=True)
class _Subscription:
    listener: Listener
    event: str | None
    slug: str | None


class Manager:
    def __init__(self, catalog: Catalog, resolver: Resolver) -> None:
        self._catalog = catalog
        self._resolver = resolver
        self._subscriptions: list[_Subscription] = []

    def add_listener(self, listener: Listener, event: str | None = None, slug: str | None = None) -> None:
        """Subscribe to lifecycle events.

        ``event=None`` receives every event name. ``slug=None`` subscribes
        globally; a slug subscribes to that feature only. Global listeners
        run before slug-scoped ones, each group in registration order.
        """
        if event is not None and event not in EVENT_NAMES:
            raise ValueError(f"unknown feature event {event!r}")
        self._subscriptions.append(_Subscription(listener=listener, event=event, slug=slug))

    def remove_listener(self, listener: Listener) -> None:
        self._subscriptions = [s for s in self._subscriptions if s.listener is not listener]

    def enable(self, slug: str) -> Result:
        return self._transition(slug, FEATURE_ENABLING, FEATURE_ENABLED, enabling=True)

    def disable(self, slug: str) -> Result:
        return self._transition(slug, FEATURE_DISABLING, FEATURE_DISABLED, enabling=False)

    def is_enabled(self, slug: str) -> bool:
        feature = self._get_feature(slug)
        if isinstance(feature, FeatureError):
            return False
        return self._resolver.resolve(feature).is_active(feature)

    def is_available(self, slug: str) -> bool:
        return not isinstance(self._get_feature(slug), FeatureError)

    def get_features(self) -> FeatureCollection | FeatureError:
        return self._catalog.get_features()

    def _transition(self, slug: str, before: str, after: str, enabling: bool) -> Result:
        feature = self._get_feature(slug)
        if isinstance(feature, FeatureError):
            return feature

        strategy = self._resolver.resolve(feature)
        self._emit(FeatureEvent(name=before, feature=feature))

        result = strategy.enable(feature) if enabling else strategy.disable(feature)
        if result is True:
            self._emit(FeatureEvent(name=after, feature=feature))
        return result

    def _get_feature(self, slug: str) -> Feature | FeatureError:
        features = self._catalog.get_features()
        if isinstance(features, FeatureError):
            return features
        feature = features.get(slug)
        if feature is None:
            return FeatureError(ErrorKind.NOT_FOUND, f'Feature "{slug}" was not found in the catalog.')
        return feature

    def _emit(self, event: FeatureEvent) -> None:
        ordered = [s for s in self._subscriptions if s.slug is None]
        ordered += [s for s in self._subscriptions if s.slug == event.slug]
        for sub in ordered:
            if sub.event is not None and sub.event != event.name:
                continue
            try:
                sub.listener(event)
            except Exception as e:
                logger.warning("FEATURE_LISTENER_FAILED event=%s slug=%s error=%r", event.name, event.slug, e)

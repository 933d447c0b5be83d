"""FEATUREGATE FILE PURPOSE
Purpose: strategy base class (shared stored-state helpers) and the type -> strategy resolver.
Hot path: yes (resolve() runs on every feature check).
Feature flags: none.
Failure mode: unregistered feature type raises StrategyNotRegistered (configuration fault).
"""

from __future__ import annotations

from typing import Literal, Union

from gate.errors import FeatureError, StrategyNotRegistered
from gate.models import Feature, StoredState
from gate.state import StateStore

Result = Union[Literal[True], FeatureError]


class Strategy:
    """Enable/disable/is-active mechanics for one feature type.

    Subclasses share the stored-state store; what the stored flag means
    (source of truth or cache) is up to the subclass.
    """

    def __init__(self, store: StateStore) -> None:
        self._store = store

    def enable(self, feature: Feature) -> Result:
        raise NotImplementedError

    def disable(self, feature: Feature) -> Result:
        raise NotImplementedError

    def is_active(self, feature: Feature) -> bool:
        raise NotImplementedError

    def get_stored_state(self, slug: str) -> StoredState:
        return self._store.get(slug)

    def update_stored_state(self, slug: str, active: bool) -> None:
        self._store.set(slug, active)


class Resolver:
    def __init__(self) -> None:
        self._map: dict[str, Strategy] = {}

    def register(self, feature_type: str, strategy: Strategy) -> None:
        self._map[feature_type] = strategy

    def registered_types(self) -> list[str]:
        return sorted(self._map.keys())

    def resolve(self, feature: Feature) -> Strategy:
        strategy = self._map.get(feature.type)
        if strategy is None:
            raise StrategyNotRegistered(f'No strategy registered for feature type "{feature.type}".')
        return strategy

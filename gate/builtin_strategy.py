"""FEATUREGATE FILE PURPOSE
Purpose: built-in features toggled by a stored flag (the flag is the source of truth).
Hot path: yes (is_active on every check).
Feature flags: none.
Failure mode: wrong feature type returns feature_type_mismatch / False.
"""

from __future__ import annotations

from gate.errors import ErrorKind, FeatureError
from gate.models import BuiltIn, Feature, StoredState
from gate.strategy import Result, Strategy


class BuiltInStrategy(Strategy):
    def enable(self, feature: Feature) -> Result:
        if not isinstance(feature, BuiltIn):
            return FeatureError(ErrorKind.TYPE_MISMATCH, "BuiltInStrategy can only enable BuiltIn features.")
        self.update_stored_state(feature.slug, True)
        return True

    def disable(self, feature: Feature) -> Result:
        if not isinstance(feature, BuiltIn):
            return FeatureError(ErrorKind.TYPE_MISMATCH, "BuiltInStrategy can only disable BuiltIn features.")
        self.update_stored_state(feature.slug, False)
        return True

    def is_active(self, feature: Feature) -> bool:
        if not isinstance(feature, BuiltIn):
            return False
        return self.get_stored_state(feature.slug) is StoredState.ACTIVE

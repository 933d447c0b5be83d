"""FEATUREGATE FILE PURPOSE
Purpose: slug-keyed feature collection returned by the catalog.
Hot path: low (read-only lookups).
Feature flags: none.
Failure mode: unknown slugs resolve to None.
"""

from __future__ import annotations

from typing import Iterable, Iterator

from gate.models import Feature


class FeatureCollection:
    def __init__(self, features: Iterable[Feature] = ()) -> None:
        self._features: dict[str, Feature] = {}
        for feature in features:
            self.add(feature)

    def add(self, feature: Feature) -> Feature:
        # First definition of a slug wins.
        return self._features.setdefault(feature.slug, feature)

    def get(self, slug: str) -> Feature | None:
        return self._features.get(slug)

    def remove(self, slug: str) -> None:
        self._features.pop(slug, None)

    def slugs(self) -> list[str]:
        return list(self._features.keys())

    def filter(
        self,
        group: str | None = None,
        tier: str | None = None,
        available: bool | None = None,
        type: str | None = None,
    ) -> "FeatureCollection":
        filtered = FeatureCollection()
        for feature in self:
            if group is not None and feature.group != group:
                continue
            if tier is not None and feature.tier != tier:
                continue
            if available is not None and feature.is_available != available:
                continue
            if type is not None and feature.type != type:
                continue
            filtered.add(feature)
        return filtered

    def __contains__(self, slug: object) -> bool:
        return slug in self._features

    def __iter__(self) -> Iterator[Feature]:
        return iter(list(self._features.values()))

    def __len__(self) -> int:
        return len(self._features)

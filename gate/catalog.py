"""FEATUREGATE FILE PURPOSE
Purpose: feature catalog client (fetch, hydrate by type, TTL cache).
Hot path: yes (every manager call reads the cached catalog).
Feature flags: GATE_CATALOG_URL, GATE_CATALOG_CACHE_TTL.
Failure mode:
  - fetch errors => catalog_unavailable FeatureError (cached for the TTL like a successful fetch)
  - unknown types / malformed entries => skipped with a warning
  - no catalog URL configured => empty catalog
"""

from __future__ import annotations

import json
import time
import urllib.error
import urllib.request
from typing import Any, Callable

from gate.collection import FeatureCollection
from gate.config import catalog_cache_ttl, catalog_url
from gate.errors import ErrorKind, FeatureError
from gate.logging import debug_note, logger
from gate.models import Feature

Fetcher = Callable[[str, int], Any]


def _http_get_json(url: str, timeout: int) -> Any:
    req = urllib.request.Request(url=url, headers={"Accept": "application/json"}, method="GET")
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return json.loads(resp.read().decode("utf-8"))


class CatalogClient:
    def __init__(
        self,
        url: str | None = None,
        cache_ttl: int | None = None,
        timeout: int = 15,
        fetch: Fetcher | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._url = url
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._fetch = fetch or _http_get_json
        self._clock = clock
        self._type_map: dict[str, type[Feature]] = {}
        self._cached: FeatureCollection | FeatureError | None = None
        self._expires_at = 0.0

    @property
    def url(self) -> str | None:
        return self._url if self._url is not None else catalog_url()

    @property
    def cache_ttl(self) -> int:
        return self._cache_ttl if self._cache_ttl is not None else catalog_cache_ttl()

    def register_type(self, feature_type: str, feature_class: type[Feature]) -> None:
        self._type_map[feature_type] = feature_class

    def get_features(self) -> FeatureCollection | FeatureError:
        if self._cached is not None and self._clock() < self._expires_at:
            return self._cached
        return self._fetch_features()

    def refresh(self) -> FeatureCollection | FeatureError:
        self._cached = None
        self._expires_at = 0.0
        return self._fetch_features()

    def _fetch_features(self) -> FeatureCollection | FeatureError:
        response = self._request()
        result = response if isinstance(response, FeatureError) else self._hydrate(response)
        self._cached = result
        self._expires_at = self._clock() + self.cache_ttl
        return result

    def _request(self) -> list[Any] | FeatureError:
        url = self.url
        if url is None:
            debug_note("CATALOG_EMPTY reason=no_url")
            return []

        try:
            payload = self._fetch(url, self._timeout)
        except urllib.error.HTTPError as e:
            return FeatureError(ErrorKind.CATALOG_UNAVAILABLE, f"Catalog request failed with HTTP {e.code}.")
        except (urllib.error.URLError, OSError, ValueError) as e:
            return FeatureError(ErrorKind.CATALOG_UNAVAILABLE, f"Catalog request failed: {e}")

        if isinstance(payload, dict):
            payload = payload.get("features")
        if not isinstance(payload, list):
            return FeatureError(ErrorKind.CATALOG_UNAVAILABLE, "Catalog response is not a feature list.")
        return payload

    def _hydrate(self, entries: list[Any]) -> FeatureCollection:
        collection = FeatureCollection()
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            feature_type = entry.get("type")
            feature_class = self._type_map.get(feature_type) if isinstance(feature_type, str) else None
            if feature_class is None:
                logger.warning("CATALOG_UNKNOWN_TYPE type=%r slug=%r", feature_type, entry.get("slug"))
                continue
            try:
                collection.add(feature_class.from_dict(entry))
            except ValueError as e:
                logger.warning("CATALOG_INVALID_ENTRY slug=%r error=%s", entry.get("slug"), e)
        return collection

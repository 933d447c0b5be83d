from __future__ import annotations

import json
import urllib.error

import pytest

from gate.catalog import CatalogClient
from gate.collection import FeatureCollection
from gate.errors import ErrorKind, FeatureError
from gate.models import TYPE_BUILT_IN, TYPE_INSTALLABLE, BuiltIn, Installable

ENTRIES = [
    {"slug": "dark-mode", "type": "built_in", "name": "Dark Mode", "tier": "free"},
    {
        "slug": "stellar-export",
        "type": "installable",
        "package_ref": "stellar-export/stellar-export.py",
        "download_url": "https://packages.test/stellar-export.zip",
        "authors": ["StellarWP", "Liquid Web"],
        "is_available": False,
    },
]


class _Clock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _client(payload=None, error: Exception | None = None, **kwargs) -> tuple[CatalogClient, list[str]]:
    calls: list[str] = []

    def _fetch(url: str, timeout: int):
        calls.append(url)
        if error is not None:
            raise error
        return ENTRIES if payload is None else payload

    client = CatalogClient(url="https://catalog.test/features", fetch=_fetch, **kwargs)
    client.register_type(TYPE_BUILT_IN, BuiltIn)
    client.register_type(TYPE_INSTALLABLE, Installable)
    return client, calls


def test_entries_hydrate_to_their_registered_type() -> None:
    client, _ = _client()

    features = client.get_features()

    assert isinstance(features, FeatureCollection)
    dark_mode = features.get("dark-mode")
    export = features.get("stellar-export")
    assert isinstance(dark_mode, BuiltIn)
    assert dark_mode.type == "built_in"
    assert dark_mode.tier == "free"
    assert isinstance(export, Installable)
    assert export.type == "installable"
    assert export.package_slug == "stellar-export"
    assert export.expected_authors == ("StellarWP", "Liquid Web")
    assert export.is_available is False


def test_unknown_types_and_invalid_entries_are_skipped() -> None:
    payload = ENTRIES + [
        {"slug": "mystery", "type": "quantum"},
        {"slug": "broken-package", "type": "installable"},
        {"type": "built_in"},
        "not-a-dict",
    ]
    client, _ = _client(payload)

    features = client.get_features()

    assert not isinstance(features, FeatureError)
    assert features.slugs() == ["dark-mode", "stellar-export"]


def test_first_definition_of_a_slug_wins() -> None:
    client, _ = _client([
        {"slug": "dark-mode", "type": "built_in", "name": "First"},
        {"slug": "dark-mode", "type": "built_in", "name": "Second"},
    ])

    features = client.get_features()

    assert len(features) == 1
    assert features.get("dark-mode").name == "First"


def test_wrapped_payload_is_accepted() -> None:
    client, _ = _client({"features": ENTRIES})

    assert client.get_features().slugs() == ["dark-mode", "stellar-export"]


def test_results_are_cached_until_ttl_expires() -> None:
    clock = _Clock()
    client, calls = _client(cache_ttl=60, clock=clock)

    client.get_features()
    client.get_features()
    assert len(calls) == 1

    clock.now += 61
    client.get_features()
    assert len(calls) == 2


def test_refresh_bypasses_cache() -> None:
    client, calls = _client(cache_ttl=3600)

    client.get_features()
    client.refresh()

    assert len(calls) == 2


def test_fetch_errors_are_cached_like_results() -> None:
    clock = _Clock()
    client, calls = _client(error=urllib.error.URLError("offline"), cache_ttl=60, clock=clock)

    first = client.get_features()
    second = client.get_features()

    assert isinstance(first, FeatureError)
    assert first.kind is ErrorKind.CATALOG_UNAVAILABLE
    assert second is first
    assert len(calls) == 1


def test_http_error_status_is_reported() -> None:
    error = urllib.error.HTTPError("https://catalog.test/features", 503, "unavailable", {}, None)
    client, _ = _client(error=error)

    result = client.get_features()

    assert isinstance(result, FeatureError)
    assert "HTTP 503" in result.message


@pytest.mark.parametrize("payload", [{"items": []}, "nope", 42])
def test_unexpected_payload_shape_is_an_error(payload) -> None:
    client, _ = _client(payload)

    result = client.get_features()

    assert isinstance(result, FeatureError)
    assert result.kind is ErrorKind.CATALOG_UNAVAILABLE


def test_no_catalog_url_means_empty_catalog(monkeypatch) -> None:
    monkeypatch.delenv("GATE_CATALOG_URL", raising=False)

    features = CatalogClient().get_features()

    assert isinstance(features, FeatureCollection)
    assert len(features) == 0


def test_catalog_can_be_read_from_file_url(tmp_path) -> None:
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({"features": ENTRIES}), encoding="utf-8")
    client = CatalogClient(url=path.as_uri())
    client.register_type(TYPE_BUILT_IN, BuiltIn)

    features = client.get_features()

    assert features.slugs() == ["dark-mode"]


def test_collection_filters_combine() -> None:
    collection = FeatureCollection(
        [
            BuiltIn(slug="a", group="ui", tier="free"),
            BuiltIn(slug="b", group="ui", tier="pro", is_available=False),
            Installable(slug="c", group="tools", tier="pro", package_ref="c/c.py"),
        ]
    )

    assert collection.filter(group="ui").slugs() == ["a", "b"]
    assert collection.filter(tier="pro", available=True).slugs() == ["c"]
    assert collection.filter(type="built_in", available=False).slugs() == ["b"]
    assert "c" in collection
    collection.remove("c")
    assert "c" not in collection


def test_installable_requires_package_ref() -> None:
    with pytest.raises(ValueError):
        Installable(slug="broken")

from __future__ import annotations

from fastapi.testclient import TestClient

from gate.app import create_app
from gate.packages import PackageHost
import extensions.loopback_activate as loopback_activate

REF = "stellar-export/stellar-export.py"


def _client(monkeypatch, tmp_path, enabled: str = "1") -> TestClient:
    monkeypatch.setenv("GATE_EXT_LOOPBACK_ACTIVATE", enabled)
    monkeypatch.setenv("GATE_ADMIN_API_KEY", "admin-secret")
    monkeypatch.setenv("GATE_PACKAGES_DIR", str(tmp_path / "packages"))
    monkeypatch.setenv("GATE_DB_PATH", str(tmp_path / "gate.sqlite3"))
    return TestClient(create_app(), raise_server_exceptions=False)


def _install(tmp_path, body: str = "") -> None:
    path = tmp_path / "packages" / REF
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text('"""\nPackage Name: Stellar Export\nAuthor: StellarWP\n"""\n' + body, encoding="utf-8")


def _auth() -> dict[str, str]:
    return {"Authorization": "Bearer admin-secret"}


def test_route_is_absent_when_extension_disabled(monkeypatch, tmp_path) -> None:
    client = _client(monkeypatch, tmp_path, enabled="0")

    resp = client.post("/gate/v1/activate-package", json={"package_ref": REF}, headers=_auth())

    assert resp.status_code == 404
    assert client.get("/").json() == {"ok": True}


def test_requires_admin_bearer(monkeypatch, tmp_path) -> None:
    client = _client(monkeypatch, tmp_path)

    assert client.post("/gate/v1/activate-package", json={"package_ref": REF}).status_code == 401
    wrong = client.post(
        "/gate/v1/activate-package",
        json={"package_ref": REF},
        headers={"Authorization": "Bearer nope"},
    )
    assert wrong.status_code == 401


def test_rejects_unknown_fields(monkeypatch, tmp_path) -> None:
    client = _client(monkeypatch, tmp_path)

    resp = client.post(
        "/gate/v1/activate-package",
        json={"package_ref": REF, "force": True},
        headers=_auth(),
    )

    assert resp.status_code == 422


def test_activates_installed_package(monkeypatch, tmp_path) -> None:
    client = _client(monkeypatch, tmp_path)
    _install(tmp_path)

    resp = client.post("/gate/v1/activate-package", json={"package_ref": REF}, headers=_auth())

    assert resp.status_code == 200
    assert resp.json() == {"success": True}
    assert PackageHost().is_active(REF)


def test_missing_package_returns_failure_payload(monkeypatch, tmp_path) -> None:
    client = _client(monkeypatch, tmp_path)

    resp = client.post("/gate/v1/activate-package", json={"package_ref": REF}, headers=_auth())

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is False
    assert body["data"]["code"] == "activation_failed"
    assert "does not exist" in body["data"]["message"]


def test_crashing_package_is_server_error(monkeypatch, tmp_path) -> None:
    client = _client(monkeypatch, tmp_path)
    _install(tmp_path, 'def activate():\n    raise RuntimeError("boom")\n')

    resp = client.post("/gate/v1/activate-package", json={"package_ref": REF}, headers=_auth())

    assert resp.status_code == 500
    assert not PackageHost().is_active(REF)


def test_selftests_pass(monkeypatch) -> None:
    monkeypatch.delenv("GATE_ADMIN_API_KEY", raising=False)

    out = loopback_activate.selftests()

    assert out.ok is True

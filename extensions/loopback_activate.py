"""FEATUREGATE FILE PURPOSE
Purpose: private loopback endpoint that activates one installed package inside its own request.
Hot path: no (called only by LoopbackActivator during feature enable).
Feature flags: GATE_EXT_LOOPBACK_ACTIVATE.
Failure mode:
  - unauthorized => 401
  - rejected activation => 200 with success=false and a code/message
  - package code raising => unhandled 500 (the caller classifies it as activation_fatal)
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass
from pathlib import Path

from fastapi import APIRouter, Header, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from gate.bootstrap import build_package_host
from gate.config import admin_api_key
from gate.errors import ErrorKind
from gate.logging import debug_note
from gate.packages import PackageHost

router = APIRouter(prefix="/gate/v1", tags=["loopback-activate"])


class ActivateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", strict=True)

    package_ref: str = Field(min_length=1, max_length=512)


def _authorized(auth_header: str | None) -> bool:
    configured = admin_api_key()
    if configured is None or not isinstance(auth_header, str):
        return False
    prefix = "Bearer "
    if not auth_header.startswith(prefix):
        return False
    token = auth_header[len(prefix) :].strip()
    return token == configured


def _require_admin_bearer(authorization: str | None) -> None:
    if not _authorized(authorization):
        raise HTTPException(status_code=401, detail="unauthorized")


def _package_host() -> PackageHost:
    return build_package_host()


def _activate(host: PackageHost, package_ref: str) -> dict[str, object]:
    ok, detail = host.activate(package_ref)
    if not ok:
        return {
            "success": False,
            "data": {
                "code": ErrorKind.ACTIVATION_FAILED.value,
                "message": f'Activation failed for "{package_ref}": {detail}',
            },
        }
    return {"success": True}


@router.post("/activate-package")
async def activate_package(
    body: ActivateRequest,
    authorization: str | None = Header(default=None),
) -> dict[str, object]:
    _require_admin_bearer(authorization)
    debug_note(f"LOOPBACK_ACTIVATE package_ref={body.package_ref}")
    return _activate(_package_host(), body.package_ref)


@dataclass
class SelfTestResult:
    ok: bool
    message: str = ""


def selftests() -> SelfTestResult:
    if _authorized(None) or _authorized("Basic abc"):
        return SelfTestResult(ok=False, message="missing/invalid bearer accepted")

    with tempfile.TemporaryDirectory() as tmp:
        root = Path(tmp) / "packages"
        pkg = root / "selftest-pkg" / "selftest-pkg.py"
        pkg.parent.mkdir(parents=True)
        pkg.write_text('"""\nPackage Name: Selftest\nAuthor: featuregate\n"""\n', encoding="utf-8")
        host = PackageHost(root=root, db_path=str(Path(tmp) / "selftest.sqlite3"))

        missing = _activate(host, "nope/nope.py")
        if missing.get("success") is not False:
            return SelfTestResult(ok=False, message="missing package should fail activation")

        ok = _activate(host, "selftest-pkg/selftest-pkg.py")
        if ok.get("success") is not True or not host.is_active("selftest-pkg/selftest-pkg.py"):
            return SelfTestResult(ok=False, message="valid package should activate")

    return SelfTestResult(ok=True, message="loopback activate selftests ok")


EXTENSION = {
    "key": "loopback_activate",
    "router": router,
    "enabled_env": "GATE_EXT_LOOPBACK_ACTIVATE",
    "selftests": selftests,
}

"""FEATUREGATE FILE PURPOSE
Purpose: package host (live state for installable features): download/unpack archives, read package headers, run activation hooks.
Hot path: is_active() yes (one sqlite lookup); install/activate no.
Feature flags: GATE_PACKAGES_DIR, GATE_DOWNLOAD_TIMEOUT.
Failure mode:
  - install() returns (False, detail) on transfer/unpack errors
  - activate() returns (False, detail) on a rejected activation; exceptions raised by package code propagate
  - deactivate() propagates exceptions raised by package code
"""

from __future__ import annotations

import importlib.util
import io
import re
import time
import urllib.error
import urllib.request
import zipfile
from pathlib import Path
from types import ModuleType
from typing import Callable, Protocol

from gate.config import download_timeout, packages_dir
from gate.db import get_conn
from gate.logging import debug_note, logger

HEADER_BYTES = 8192
HEADER_FIELDS = {
    "Name": "Package Name",
    "Author": "Author",
    "Version": "Version",
    "Description": "Description",
    "RequiresPython": "Requires Python",
}

PackageListener = Callable[[str], None]
Fetcher = Callable[[str, int], bytes]


class LiveStateOracle(Protocol):
    def is_installed(self, package_ref: str) -> bool: ...

    def is_active(self, package_ref: str) -> bool: ...

    def install(self, download_url: str) -> tuple[bool, str]: ...

    def activate(self, package_ref: str) -> tuple[bool, str]: ...

    def deactivate(self, package_ref: str) -> None: ...

    def read_headers(self, package_ref: str) -> dict[str, str]: ...

    def read_author(self, package_ref: str) -> str: ...


def _http_fetch(url: str, timeout: int) -> bytes:
    req = urllib.request.Request(url=url, headers={"Accept": "application/zip"}, method="GET")
    with urllib.request.urlopen(req, timeout=timeout) as resp:
        return resp.read()


def parse_headers(text: str) -> dict[str, str]:
    out: dict[str, str] = {}
    for key, label in HEADER_FIELDS.items():
        m = re.search(rf"^[ \t#*/\"']*{re.escape(label)}:(.*)$", text, re.IGNORECASE | re.MULTILINE)
        if m:
            value = m.group(1).strip().rstrip("\"'").strip()
            if value:
                out[key] = value
    return out


class PackageHost:
    def __init__(
        self,
        root: str | Path | None = None,
        db_path: str | None = None,
        timeout: int | None = None,
        fetch: Fetcher | None = None,
    ) -> None:
        self._root = Path(root) if root is not None else None
        self._db_path = db_path
        self._timeout = timeout
        self._fetch = fetch or _http_fetch
        self._modules: dict[str, ModuleType] = {}
        self._on_activated: list[PackageListener] = []
        self._on_deactivated: list[PackageListener] = []

    @property
    def root(self) -> Path:
        return self._root if self._root is not None else Path(packages_dir())

    def path_for(self, package_ref: str) -> Path | None:
        root = self.root.resolve()
        candidate = (root / package_ref).resolve()
        if root not in candidate.parents:
            return None
        return candidate

    def add_activation_listener(self, listener: PackageListener) -> None:
        self._on_activated.append(listener)

    def add_deactivation_listener(self, listener: PackageListener) -> None:
        self._on_deactivated.append(listener)

    def is_installed(self, package_ref: str) -> bool:
        path = self.path_for(package_ref)
        return path is not None and path.is_file()

    def is_active(self, package_ref: str) -> bool:
        with get_conn(self._db_path) as conn:
            row = conn.execute(
                "SELECT active FROM package_activations WHERE package_ref = ?",
                (package_ref,),
            ).fetchone()
        return row is not None and bool(row["active"])

    def read_headers(self, package_ref: str) -> dict[str, str]:
        path = self.path_for(package_ref)
        if path is None or not path.is_file():
            return {}
        with path.open("rb") as fh:
            head = fh.read(HEADER_BYTES)
        return parse_headers(head.decode("utf-8", errors="ignore"))

    def read_author(self, package_ref: str) -> str:
        return self.read_headers(package_ref).get("Author", "")

    def install(self, download_url: str) -> tuple[bool, str]:
        timeout = self._timeout if self._timeout is not None else download_timeout()
        try:
            blob = self._fetch(download_url, timeout)
        except urllib.error.HTTPError as e:
            return False, f"download failed with HTTP {e.code}"
        except (urllib.error.URLError, OSError, ValueError) as e:
            return False, f"download failed: {e!r}"

        try:
            with zipfile.ZipFile(io.BytesIO(blob)) as zf:
                names = self._extract(zf)
        except zipfile.BadZipFile as e:
            return False, f"archive is not a valid zip file: {e}"
        except (OSError, ValueError) as e:
            return False, f"unpack failed: {e}"

        debug_note(f"PACKAGE_INSTALLED url={download_url} files={len(names)}")
        return True, f"installed {len(names)} files"

    def _extract(self, zf: zipfile.ZipFile) -> list[str]:
        root = self.root.resolve()
        root.mkdir(parents=True, exist_ok=True)
        for member in zf.infolist():
            target = (root / member.filename).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"unsafe archive member {member.filename!r}")
        zf.extractall(root)
        return [m.filename for m in zf.infolist() if not m.is_dir()]

    def _load_module(self, package_ref: str) -> ModuleType:
        cached = self._modules.get(package_ref)
        if cached is not None:
            return cached
        path = self.path_for(package_ref)
        if path is None or not path.is_file():
            raise FileNotFoundError(package_ref)
        module_name = "featuregate_pkg_" + re.sub(r"\W", "_", package_ref)
        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"cannot load package module {package_ref!r}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        self._modules[package_ref] = module
        return module

    def activate(self, package_ref: str) -> tuple[bool, str]:
        if not self.is_installed(package_ref):
            return False, "Package file does not exist."

        module = self._load_module(package_ref)
        hook = getattr(module, "activate", None)
        if callable(hook) and hook() is False:
            return False, "Package activation hook rejected the activation."

        self._record(package_ref, True)
        self._notify(self._on_activated, package_ref)
        return True, ""

    def deactivate(self, package_ref: str) -> None:
        if self.is_installed(package_ref):
            hook = getattr(self._load_module(package_ref), "deactivate", None)
            if callable(hook):
                hook()
        self._modules.pop(package_ref, None)
        self._record(package_ref, False)
        self._notify(self._on_deactivated, package_ref)

    def _record(self, package_ref: str, active: bool) -> None:
        with get_conn(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO package_activations(package_ref, active, updated_ts) VALUES (?, ?, ?)
                ON CONFLICT(package_ref) DO UPDATE SET active = excluded.active, updated_ts = excluded.updated_ts
                """,
                (package_ref, 1 if active else 0, int(time.time())),
            )
            conn.commit()

    def _notify(self, listeners: list[PackageListener], package_ref: str) -> None:
        for listener in list(listeners):
            try:
                listener(package_ref)
            except Exception as e:
                logger.warning("PACKAGE_LISTENER_FAILED package_ref=%s error=%r", package_ref, e)

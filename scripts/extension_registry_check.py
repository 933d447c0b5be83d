"""FEATUREGATE FILE PURPOSE
Purpose: policy checks for extension modules (EXTENSION contract + no cross-extension imports).
Hot path: no.
"""

from __future__ import annotations

import ast
import re
import sys
from pathlib import Path

RE_ENV = re.compile(r"GATE_EXT_[A-Z0-9_]+")

REQUIRED = {"key", "router", "enabled_env", "selftests"}


def fail(msg: str) -> None:
    print(f"EXTENSION_CHECK_FAIL: {msg}", file=sys.stderr)
    raise SystemExit(1)


def check_file(path: Path) -> None:
    src = path.read_text(encoding="utf-8")
    tree = ast.parse(src, filename=str(path))

    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for a in node.names:
                if a.name == "extensions" or a.name.startswith("extensions."):
                    fail(f"cross-extension import in {path}")
        if isinstance(node, ast.ImportFrom):
            if node.level and node.level > 0:
                fail(f"relative import not allowed in {path}")
            mod = node.module or ""
            if mod == "extensions" or mod.startswith("extensions."):
                fail(f"cross-extension import in {path}")

    # EXTENSION dict (best-effort)
    if "EXTENSION" not in src:
        fail(f"EXTENSION missing in {path}")
    for k in REQUIRED:
        if f"'{k}'" not in src and f'"{k}"' not in src:
            fail(f"EXTENSION missing key {k} in {path}")
    if not RE_ENV.search(src):
        fail(f"enabled_env missing/invalid in {path}")


def main(ext_dir: Path = Path("extensions")) -> None:
    for path in sorted(ext_dir.glob("*.py")):
        if path.name.startswith("_"):
            continue
        check_file(path)

    print("EXTENSION_CHECK_OK")


if __name__ == "__main__":
    main()

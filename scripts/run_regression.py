"""Run featuregate extension regression (no HTTP).

Writes: ops/QUALITY_REPORTS/latest_regression.json
Exit: 0 if all ok, 2 otherwise.

Supported invocation from repo root:
  python scripts/run_regression.py
"""

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from gate.app import create_app  # noqa: E402
from gate.quality import run_regression  # noqa: E402


def main() -> int:
    create_app()  # mounts extensions and fills the registry
    report = run_regression()
    print(report)
    return 0 if report.get("status") == "ok" else 2


if __name__ == "__main__":
    raise SystemExit(main())

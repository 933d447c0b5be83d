"""FEATUREGATE FILE PURPOSE
Purpose: regression runner over enabled extension selftests (used by scripts/run_regression.py).
Hot path: no.
Feature flags: none (extension gating happens in the loader).
Failure mode: report per-extension failures; CLI can exit non-zero.
"""

from __future__ import annotations

import json
import time
from pathlib import Path
from typing import Any

from gate.registry import enabled_extensions

REPORT_PATH = Path("ops/QUALITY_REPORTS/latest_regression.json")


def run_regression(report_path: Path | None = None) -> dict[str, Any]:
    results: list[dict[str, Any]] = []
    ok = True
    path = report_path or REPORT_PATH

    for key, spec in enabled_extensions().items():
        t0 = time.perf_counter()
        try:
            out = spec.selftests()
            if isinstance(out, dict):
                passed = bool(out.get("ok", True))
                msg = out.get("message")
            else:
                passed = bool(getattr(out, "ok", True))
                msg = getattr(out, "message", None)
        except Exception as e:
            passed = False
            msg = f"{type(e).__name__}: {e}"

        dt_ms = (time.perf_counter() - t0) * 1000.0
        ok = ok and passed
        results.append({"extension": key, "ok": passed, "ms": round(dt_ms, 2), "message": msg})

    report = {
        "status": "ok" if ok else "fail",
        "ts": int(time.time()),
        "enabled_extensions": sorted(enabled_extensions().keys()),
        "results": results,
        "report_path": str(path),
    }

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report, indent=2), encoding="utf-8")
    return report

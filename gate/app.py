"""FEATUREGATE FILE PURPOSE
Purpose: create FastAPI app and mount enabled extensions (sandbox activation endpoint).
Hot path: no (startup only).
Feature flags: GATE_EXT_*.
Failure mode: start with core routes even if no extensions enabled.
"""

from __future__ import annotations

from fastapi import FastAPI

from gate.extension_loader import load_extensions


def create_app() -> FastAPI:
    app = FastAPI(title="featuregate")

    @app.get("/")
    async def root() -> dict[str, bool]:
        return {"ok": True}

    load_extensions(app)
    return app

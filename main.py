"""FEATUREGATE FILE PURPOSE
Purpose: FastAPI entrypoint (serves the loopback activation endpoint).
Hot path: no (process-level startup only).
Feature flags: none.
Failure mode: fail fast on import errors.
"""

from gate.app import create_app

app = create_app()

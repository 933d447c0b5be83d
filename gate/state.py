"""FEATUREGATE FILE PURPOSE
Purpose: persisted per-slug feature flag (source of truth for built-in features, cache for installable ones).
Hot path: yes (read on every feature check).
Feature flags: none.
Failure mode: sqlite errors propagate; missing rows read as UNKNOWN.
"""

from __future__ import annotations

import time
from typing import Protocol

from gate.db import get_conn
from gate.models import StoredState


class StateStore(Protocol):
    def get(self, slug: str) -> StoredState: ...

    def set(self, slug: str, active: bool) -> None: ...


class SqliteStateStore:
    def __init__(self, db_path: str | None = None) -> None:
        self._db_path = db_path

    def get(self, slug: str) -> StoredState:
        with get_conn(self._db_path) as conn:
            row = conn.execute("SELECT active FROM feature_state WHERE slug = ?", (slug,)).fetchone()
        if row is None:
            return StoredState.UNKNOWN
        return StoredState.from_bool(bool(row["active"]))

    def set(self, slug: str, active: bool) -> None:
        with get_conn(self._db_path) as conn:
            conn.execute(
                """
                INSERT INTO feature_state(slug, active, updated_ts) VALUES (?, ?, ?)
                ON CONFLICT(slug) DO UPDATE SET active = excluded.active, updated_ts = excluded.updated_ts
                """,
                (slug, 1 if active else 0, int(time.time())),
            )
            conn.commit()

    def delete(self, slug: str) -> None:
        with get_conn(self._db_path) as conn:
            conn.execute("DELETE FROM feature_state WHERE slug = ?", (slug,))
            conn.commit()

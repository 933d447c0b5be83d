"""FEATUREGATE FILE PURPOSE
Purpose: SQLite scaffold for feature state, install locks, package activations and the audit event log.
Hot path: yes for feature_state reads (one indexed lookup per check).
Feature flags: none.
Failure mode: deterministic exceptions; caller controls retry/rollback behavior.
"""

from __future__ import annotations

import json
import sqlite3
import time
import uuid
from pathlib import Path
from typing import Any

from gate.config import db_path as _configured_db_path


def _validate_required(value: str, name: str) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} is required")


def init_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS feature_state (
            slug TEXT PRIMARY KEY,
            active INTEGER NOT NULL,
            updated_ts INTEGER NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS install_locks (
            lock_key TEXT PRIMARY KEY,
            expires_ts REAL NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS package_activations (
            package_ref TEXT PRIMARY KEY,
            active INTEGER NOT NULL,
            updated_ts INTEGER NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS events (
            event_id TEXT PRIMARY KEY,
            slug TEXT NOT NULL,
            event_type TEXT NOT NULL,
            ts INTEGER NOT NULL,
            payload_json TEXT NOT NULL
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_events_slug_ts ON events(slug, ts)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_events_type_ts ON events(event_type, ts)")
    conn.commit()


def get_conn(db_path: str | None = None) -> sqlite3.Connection:
    path = db_path or _configured_db_path()
    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, timeout=10)
    conn.row_factory = sqlite3.Row
    init_schema(conn)
    return conn


def emit_event(
    slug: str,
    event_type: str,
    payload_dict: dict[str, Any],
    db_path: str | None = None,
) -> str:
    _validate_required(slug, "slug")
    _validate_required(event_type, "event_type")
    if not isinstance(payload_dict, dict):
        raise ValueError("payload_dict must be a dict")

    event_id = str(uuid.uuid4())
    payload_json = json.dumps(payload_dict, sort_keys=True, separators=(",", ":"))
    with get_conn(db_path) as conn:
        conn.execute(
            "INSERT INTO events(event_id, slug, event_type, ts, payload_json) VALUES (?, ?, ?, ?, ?)",
            (event_id, slug, event_type, int(time.time()), payload_json),
        )
        conn.commit()
    return event_id


def query_events(
    slug: str | None = None,
    event_type: str | None = None,
    since_ts: int | None = None,
    limit: int = 100,
    db_path: str | None = None,
) -> list[dict[str, Any]]:
    safe_limit = max(1, min(int(limit), 1000))

    query = "SELECT event_id, slug, event_type, ts, payload_json FROM events WHERE 1 = 1"
    params: list[Any] = []

    if slug is not None:
        query += " AND slug = ?"
        params.append(slug)
    if event_type is not None:
        query += " AND event_type = ?"
        params.append(event_type)
    if since_ts is not None:
        query += " AND ts >= ?"
        params.append(int(since_ts))

    query += " ORDER BY ts ASC, rowid ASC LIMIT ?"
    params.append(safe_limit)

    with get_conn(db_path) as conn:
        rows = conn.execute(query, params).fetchall()

    out: list[dict[str, Any]] = []
    for row in rows:
        out.append(
            {
                "event_id": str(row["event_id"]),
                "slug": str(row["slug"]),
                "event_type": str(row["event_type"]),
                "ts": int(row["ts"]),
                "payload": json.loads(str(row["payload_json"])),
            }
        )
    return out

"""FEATUREGATE FILE PURPOSE
Purpose: lease-based install locks keyed by package identifier.
Hot path: no (only taken around package installs).
Feature flags: GATE_INSTALL_LOCK_TTL.
Failure mode: an unreleased lock expires after its TTL; contention returns False, never blocks.
"""

from __future__ import annotations

import sqlite3
import time
from typing import Callable, Protocol

from gate.config import install_lock_ttl
from gate.db import get_conn


class LockManager(Protocol):
    def acquire(self, key: str, ttl: int | None = None) -> bool: ...

    def release(self, key: str) -> None: ...


class SqliteLockManager:
    """Set-if-absent locks on a sqlite table.

    Expired rows are purged inside the same transaction as the insert, and the
    insert relies on the primary key, so two callers can never both acquire.
    """

    def __init__(
        self,
        db_path: str | None = None,
        ttl: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db_path = db_path
        self._ttl = ttl
        self._clock = clock

    @property
    def ttl(self) -> int:
        return self._ttl if self._ttl is not None else install_lock_ttl()

    def acquire(self, key: str, ttl: int | None = None) -> bool:
        now = self._clock()
        expires = now + (ttl if ttl is not None else self.ttl)
        with get_conn(self._db_path) as conn:
            conn.execute("DELETE FROM install_locks WHERE lock_key = ? AND expires_ts <= ?", (key, now))
            try:
                conn.execute(
                    "INSERT INTO install_locks(lock_key, expires_ts) VALUES (?, ?)",
                    (key, expires),
                )
            except sqlite3.IntegrityError:
                conn.commit()
                return False
            conn.commit()
        return True

    def release(self, key: str) -> None:
        with get_conn(self._db_path) as conn:
            conn.execute("DELETE FROM install_locks WHERE lock_key = ?", (key,))
            conn.commit()

    def is_locked(self, key: str) -> bool:
        with get_conn(self._db_path) as conn:
            row = conn.execute(
                "SELECT 1 FROM install_locks WHERE lock_key = ? AND expires_ts > ?",
                (key, self._clock()),
            ).fetchone()
        return row is not None

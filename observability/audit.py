from __future__ import annotations

import json
import os
import sqlite3
import threading
import time
from typing import Any, Dict, Optional


class AuditLog:
    """
    Optional SQLite audit log of finished intent jobs.

    This is OFF by default. Enable by setting `AUDIT_DB_PATH` (or `TXT2TX_AUDIT_DB_PATH`).

    Only a summary is stored: the intent kind, chain, hashes and the final status.
    Never pass signatures or key material in `summary`.
    """

    def __init__(self, db_path: str | None = None) -> None:
        self._lock = threading.Lock()
        self._conn: Optional[sqlite3.Connection] = None
        self._explicit_path = db_path

    def enabled(self) -> bool:
        return bool(self._db_path())

    def append(
        self,
        *,
        ts_ms: int,
        job_id: str,
        owner: str,
        kind: str | None,
        status: str,
        ok: bool,
        error_code: str | None = None,
        chain: str | None = None,
        summary: Dict[str, Any] | None = None,
    ) -> None:
        conn = self._get_conn()
        if conn is None:
            return
        payload = json.dumps(summary or {}, sort_keys=True)
        with self._lock:
            conn.execute(
                """
                INSERT INTO intent_events(
                    ts_ms, job_id, owner, kind, status, ok, error_code, chain, summary_json
                )
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    int(ts_ms),
                    str(job_id),
                    str(owner),
                    kind,
                    str(status),
                    1 if ok else 0,
                    error_code,
                    chain,
                    payload,
                ),
            )
            conn.commit()

    def recent(self, limit: int = 50) -> list[Dict[str, Any]]:
        conn = self._get_conn()
        if conn is None:
            return []
        with self._lock:
            rows = conn.execute(
                """
                SELECT ts_ms, job_id, owner, kind, status, ok, error_code, chain, summary_json
                FROM intent_events ORDER BY id DESC LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
        return [
            {
                "ts_ms": r[0],
                "job_id": r[1],
                "owner": r[2],
                "kind": r[3],
                "status": r[4],
                "ok": bool(r[5]),
                "error_code": r[6],
                "chain": r[7],
                "summary": json.loads(r[8]),
            }
            for r in rows
        ]

    def _db_path(self) -> str:
        if self._explicit_path:
            return self._explicit_path
        return (os.getenv("TXT2TX_AUDIT_DB_PATH") or os.getenv("AUDIT_DB_PATH") or "").strip()

    def _get_conn(self) -> Optional[sqlite3.Connection]:
        path = self._db_path()
        if not path:
            return None
        with self._lock:
            if self._conn is None:
                self._conn = sqlite3.connect(path, check_same_thread=False)
                if path != ":memory:":
                    self._conn.execute("PRAGMA journal_mode=WAL;")
                self._conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS intent_events(
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        ts_ms INTEGER NOT NULL,
                        job_id TEXT NOT NULL,
                        owner TEXT NOT NULL,
                        kind TEXT,
                        status TEXT NOT NULL,
                        ok INTEGER NOT NULL,
                        error_code TEXT,
                        chain TEXT,
                        summary_json TEXT NOT NULL
                    )
                    """
                )
                self._conn.commit()
            return self._conn


def now_ms() -> int:
    return int(time.time() * 1000)

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator
from uuid import uuid4

from booking.session_record import SESSION_COLUMNS, session_from_record, session_to_record
from core.enums import INITIAL_STEP
from core.errors import SessionConflictError
from core.models import BookingSession, ReconciliationFlag


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class BookingRepository:
    def __init__(self, sqlite_path: str, busy_timeout_sec: float = 5.0) -> None:
        self.sqlite_path = Path(sqlite_path)
        self.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
        self.busy_timeout_sec = float(busy_timeout_sec)
        self._init_schema()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.sqlite_path, timeout=self.busy_timeout_sec)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS booking_sessions (
                    identity TEXT PRIMARY KEY,
                    step TEXT NOT NULL,
                    sport TEXT,
                    venue TEXT,
                    booking_date TEXT,
                    time_slot TEXT,
                    player_count INTEGER,
                    add_ons_json TEXT NOT NULL DEFAULT '[]',
                    contact_name TEXT,
                    paid INTEGER NOT NULL DEFAULT 0,
                    total_amount INTEGER NOT NULL DEFAULT 0,
                    last_processed_message_id TEXT,
                    working_state_json TEXT,
                    confirmed_event_id TEXT,
                    payment_reference TEXT,
                    payment_link TEXT,
                    payment_id TEXT,
                    version INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                CREATE UNIQUE INDEX IF NOT EXISTS idx_sessions_payment_reference
                    ON booking_sessions(payment_reference);

                CREATE TABLE IF NOT EXISTS reconciliation_flags (
                    flag_id TEXT PRIMARY KEY,
                    identity TEXT NOT NULL,
                    reason TEXT NOT NULL,
                    details_json TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_reconciliation_identity
                    ON reconciliation_flags(identity, created_at);
                """
            )
            conn.commit()

    def get_session(self, identity: str) -> BookingSession | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(SESSION_COLUMNS)} FROM booking_sessions WHERE identity = ?",
                (identity,),
            ).fetchone()
        if row is None:
            return None
        return session_from_record(dict(row))

    def create_session(self, identity: str) -> BookingSession:
        now = _utc_now()
        session = BookingSession(identity=identity, step=INITIAL_STEP.value, created_at=now, updated_at=now)
        record = session_to_record(session)
        placeholders = ", ".join("?" for _ in SESSION_COLUMNS)
        with self._connect() as conn:
            cur = conn.execute(
                f"INSERT INTO booking_sessions({', '.join(SESSION_COLUMNS)}) VALUES({placeholders}) "
                "ON CONFLICT(identity) DO NOTHING",
                tuple(record[column] for column in SESSION_COLUMNS),
            )
            conn.commit()
            if cur.rowcount == 0:
                raise SessionConflictError(f"session already exists: identity={identity}")
        return session

    def save_session(self, session: BookingSession) -> None:
        session.updated_at = _utc_now()
        record = session_to_record(session)
        expected_version = int(session.version)
        record["version"] = expected_version + 1
        columns = [column for column in SESSION_COLUMNS if column not in {"identity", "created_at"}]
        assignments = ", ".join(f"{column} = ?" for column in columns)
        with self._connect() as conn:
            cur = conn.execute(
                f"UPDATE booking_sessions SET {assignments} WHERE identity = ? AND version = ?",
                (*(record[column] for column in columns), session.identity, expected_version),
            )
            conn.commit()
            if cur.rowcount == 0:
                raise SessionConflictError(
                    f"session changed concurrently: identity={session.identity} version={expected_version}"
                )
        session.version = expected_version + 1

    def delete_session(self, identity: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM booking_sessions WHERE identity = ?", (identity,))
            conn.commit()

    def record_message_id(self, identity: str, message_id: str) -> bool:
        key = (message_id or "").strip()
        if not key:
            return True
        with self._connect() as conn:
            cur = conn.execute(
                """
                UPDATE booking_sessions
                SET last_processed_message_id = ?
                WHERE identity = ?
                  AND (last_processed_message_id IS NULL OR last_processed_message_id <> ?)
                """,
                (key, identity, key),
            )
            conn.commit()
            return cur.rowcount > 0

    def find_session_by_payment_reference(self, reference: str) -> BookingSession | None:
        key = (reference or "").strip()
        if not key:
            return None
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {', '.join(SESSION_COLUMNS)} FROM booking_sessions WHERE payment_reference = ?",
                (key,),
            ).fetchone()
        if row is None:
            return None
        return session_from_record(dict(row))

    def flag_for_reconciliation(self, identity: str, reason: str, details: dict[str, Any]) -> str:
        flag_id = str(uuid4())
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO reconciliation_flags(flag_id, identity, reason, details_json, created_at)
                VALUES(?, ?, ?, ?, ?)
                """,
                (flag_id, identity, reason, json.dumps(details, ensure_ascii=False, default=str), _utc_now()),
            )
            conn.commit()
        return flag_id

    def list_reconciliation_flags(self, identity: str | None = None) -> list[ReconciliationFlag]:
        query = "SELECT flag_id, identity, reason, details_json, created_at FROM reconciliation_flags"
        params: tuple[Any, ...] = ()
        if identity:
            query += " WHERE identity = ?"
            params = (identity,)
        query += " ORDER BY created_at"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        flags: list[ReconciliationFlag] = []
        for row in rows:
            try:
                details = json.loads(row["details_json"])
            except ValueError:
                details = {}
            flags.append(
                ReconciliationFlag(
                    flag_id=row["flag_id"],
                    identity=row["identity"],
                    reason=row["reason"],
                    details=details if isinstance(details, dict) else {},
                    created_at=row["created_at"],
                )
            )
        return flags

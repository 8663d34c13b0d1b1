"""
Session Store — append-only, hash-chained turn log plus world snapshots.

Every attempted turn produces one TurnLogEntry.

Behavioral Contract:
- Append-only. No turn entry is ever modified or deleted.
- Each entry is hashed and chained to the previous entry of the same session.
- Accepted entries carry the exact ordered patch batch that was applied, so
  the latest record can be rebuilt by replaying them against the initial record.
- Each session keeps its initial record and its latest snapshot.
"""

import hashlib
import json
import logging
import sqlite3
from datetime import datetime
from typing import List, Optional
from uuid import uuid4

from chronicle_kernel.errors import LedgerIntegrityError, SessionNotFoundError
from chronicle_kernel.ledger.arbiter import apply_patches
from chronicle_kernel.models.record import WorldRecord
from chronicle_kernel.models.session import TurnLogEntry

logger = logging.getLogger(__name__)


def record_hash(record: WorldRecord) -> str:
    """sha256 over the canonical JSON form of a record."""
    payload = json.dumps(record.model_dump(mode="json"), sort_keys=True, default=str).encode()
    return hashlib.sha256(payload).hexdigest()


def _sign(entry: TurnLogEntry) -> str:
    entry_dict = entry.model_dump(mode="json")
    # Signature is zeroed before hashing (it's what we're computing)
    entry_dict["signature"] = ""
    return hashlib.sha256(json.dumps(entry_dict, sort_keys=True, default=str).encode()).hexdigest()


class SessionStore:
    """
    Session persistence.
    SQLite; ``:memory:`` for tests, a file path for durable sessions.
    """

    def __init__(self, db_path: str = ":memory:"):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self) -> None:
        """Create the session and turn tables if they don't exist."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id TEXT PRIMARY KEY,
                initial_json TEXT NOT NULL,
                snapshot_json TEXT NOT NULL,
                turn INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL DEFAULT (datetime('now')),
                updated_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS turns (
                id TEXT PRIMARY KEY,
                session_id TEXT NOT NULL,
                turn INTEGER NOT NULL,
                accepted INTEGER NOT NULL DEFAULT 1,
                signature TEXT NOT NULL,
                prior_record_hash TEXT,
                entry_json TEXT NOT NULL,
                created_at TEXT NOT NULL DEFAULT (datetime('now'))
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_turns_session_id ON turns(session_id)
        """)
        self._conn.commit()

    # --- Sessions ---

    def create_session(self, record: WorldRecord, session_id: Optional[str] = None) -> str:
        session_id = session_id or f"session-{uuid4().hex[:12]}"
        payload = json.dumps(record.model_dump(mode="json"))
        self._conn.execute(
            "INSERT INTO sessions (id, initial_json, snapshot_json, turn) VALUES (?, ?, ?, ?)",
            (session_id, payload, payload, record.meta.turn),
        )
        self._conn.commit()
        return session_id

    def has_session(self, session_id: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM sessions WHERE id = ?", (session_id,)).fetchone()
        return row is not None

    def list_sessions(self) -> List[str]:
        rows = self._conn.execute("SELECT id FROM sessions ORDER BY rowid").fetchall()
        return [r["id"] for r in rows]

    def _session_row(self, session_id: str) -> sqlite3.Row:
        row = self._conn.execute(
            "SELECT initial_json, snapshot_json FROM sessions WHERE id = ?", (session_id,)
        ).fetchone()
        if row is None:
            raise SessionNotFoundError(session_id)
        return row

    def load_snapshot(self, session_id: str) -> WorldRecord:
        return WorldRecord.model_validate_json(self._session_row(session_id)["snapshot_json"])

    def load_initial(self, session_id: str) -> WorldRecord:
        return WorldRecord.model_validate_json(self._session_row(session_id)["initial_json"])

    def save_snapshot(self, session_id: str, record: WorldRecord) -> None:
        cursor = self._conn.execute(
            "UPDATE sessions SET snapshot_json = ?, turn = ?, updated_at = datetime('now') WHERE id = ?",
            (json.dumps(record.model_dump(mode="json")), record.meta.turn, session_id),
        )
        if cursor.rowcount == 0:
            raise SessionNotFoundError(session_id)
        self._conn.commit()

    # --- Turn log ---

    def new_entry(self, session_id: str, **fields) -> TurnLogEntry:
        return TurnLogEntry(
            id=f"turn-{uuid4().hex[:12]}",
            session_id=session_id,
            created_at=datetime.utcnow(),
            **fields,
        )

    def append_turn(self, entry: TurnLogEntry) -> TurnLogEntry:
        """
        Append a turn entry. Computes its signature and chains it to the
        previous entry of the same session.
        """
        if not self.has_session(entry.session_id):
            raise SessionNotFoundError(entry.session_id)

        entry.prior_record_hash = self._get_latest_hash(entry.session_id)
        entry.signature = _sign(entry)

        self._conn.execute(
            """
            INSERT INTO turns (
                id, session_id, turn, accepted, signature, prior_record_hash, entry_json
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.session_id,
                entry.turn,
                int(entry.accepted),
                entry.signature,
                entry.prior_record_hash,
                json.dumps(entry.model_dump(mode="json"), default=str),
            ),
        )
        self._conn.commit()
        return entry

    def _get_latest_hash(self, session_id: str) -> Optional[str]:
        """Get the signature of the session's most recent entry."""
        row = self._conn.execute(
            "SELECT signature FROM turns WHERE session_id = ? ORDER BY rowid DESC LIMIT 1",
            (session_id,),
        ).fetchone()
        return row["signature"] if row else None

    def get_turn_log(self, session_id: str, accepted_only: bool = False) -> List[TurnLogEntry]:
        query = "SELECT entry_json FROM turns WHERE session_id = ?"
        if accepted_only:
            query += " AND accepted = 1"
        rows = self._conn.execute(query + " ORDER BY rowid", (session_id,)).fetchall()
        return [TurnLogEntry.model_validate_json(r["entry_json"]) for r in rows]

    def get_entry(self, entry_id: str) -> Optional[TurnLogEntry]:
        row = self._conn.execute("SELECT entry_json FROM turns WHERE id = ?", (entry_id,)).fetchone()
        return TurnLogEntry.model_validate_json(row["entry_json"]) if row else None

    def replay(self, session_id: str) -> WorldRecord:
        """Rebuild the latest record from the initial record and the accepted batches."""
        record = self.load_initial(session_id)
        for entry in self.get_turn_log(session_id, accepted_only=True):
            record = apply_patches(record, entry.patches, entry.note)
            if entry.record_hash and record_hash(record) != entry.record_hash:
                raise LedgerIntegrityError(
                    f"Replay diverged at turn {entry.turn} of session {session_id}"
                )
        return record

    def verify_chain_integrity(self, session_id: str) -> bool:
        """Verify no entry of the session has been tampered with."""
        rows = self._conn.execute(
            "SELECT entry_json, signature FROM turns WHERE session_id = ? ORDER BY rowid",
            (session_id,),
        ).fetchall()

        prior_signature = None
        for row in rows:
            entry = TurnLogEntry.model_validate_json(row["entry_json"])
            if entry.signature != row["signature"] or _sign(entry) != entry.signature:
                logger.error("Turn %s of session %s fails signature check", entry.id, session_id)
                return False
            if entry.prior_record_hash != prior_signature:
                logger.error("Turn %s of session %s breaks the hash chain", entry.id, session_id)
                return False
            prior_signature = entry.signature
        return True

    def count(self, session_id: Optional[str] = None) -> int:
        """Number of logged turns, for one session or overall."""
        if session_id is None:
            row = self._conn.execute("SELECT COUNT(*) as cnt FROM turns").fetchone()
        else:
            row = self._conn.execute(
                "SELECT COUNT(*) as cnt FROM turns WHERE session_id = ?", (session_id,)
            ).fetchone()
        return row["cnt"]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

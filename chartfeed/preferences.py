from __future__ import annotations

import json
import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from .audit import AuditLogger
from .errors import SchemaMismatch


@dataclass
class PreferenceRecord:
    key: str
    value: Any
    version: int
    updated_at: str


class PreferenceStore:
    """Schema-validated JSON key/value store on top of sqlite.

    Persistence is best effort: reads fall back to the caller's default and
    storage failures turn writes into no-ops. The one error surfaced to
    callers is :class:`SchemaMismatch` from :meth:`set`.
    """

    def __init__(self, db_path: str, audit: Optional[AuditLogger] = None) -> None:
        self.db_path = db_path
        self.audit = audit
        self._schemas: Dict[str, TypeAdapter] = {}
        self._ensure_parent()
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self._init_db()

    def _ensure_parent(self) -> None:
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    def _init_db(self) -> None:
        self.conn.execute(
            """
            CREATE TABLE IF NOT EXISTS preferences (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                version INTEGER NOT NULL DEFAULT 1,
                updated_at TEXT
            )
            """
        )
        self.conn.commit()

    def register(self, key: str, schema: Any) -> None:
        self._schemas[key] = TypeAdapter(schema)

    def _validate(self, key: str, value: Any) -> Any:
        adapter = self._schemas.get(key)
        if adapter is None:
            return value
        try:
            return adapter.validate_python(value)
        except ValidationError as exc:
            raise SchemaMismatch(key, str(exc.errors()[0].get("msg", ""))) from exc

    def _dump(self, key: str, value: Any) -> str:
        adapter = self._schemas.get(key)
        if adapter is None:
            return json.dumps(value)
        return adapter.dump_json(value).decode("utf-8")

    def set(self, key: str, value: Any) -> bool:
        validated = self._validate(key, value)
        try:
            payload = self._dump(key, validated)
            now = datetime.now(timezone.utc).isoformat()
            with self.conn:
                self.conn.execute(
                    """
                    INSERT INTO preferences (key, value, version, updated_at) VALUES (?, ?, 1, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        version = preferences.version + 1,
                        updated_at = excluded.updated_at
                    """,
                    (key, payload, now),
                )
        except (TypeError, ValueError, sqlite3.Error) as exc:
            self._log("pref_error", f"set {key} failed", key, error=repr(exc))
            return False
        self._log("pref_write", f"set {key}", key)
        return True

    def record(self, key: str) -> Optional[PreferenceRecord]:
        try:
            row = self.conn.execute(
                "SELECT key, value, version, updated_at FROM preferences WHERE key = ?",
                (key,),
            ).fetchone()
        except sqlite3.Error as exc:
            self._log("pref_error", f"read {key} failed", key, error=repr(exc))
            return None
        if row is None:
            return None
        try:
            value = self._validate(key, json.loads(row["value"]))
        except (ValueError, SchemaMismatch) as exc:
            # corrupt and schema-invalid payloads both read as absent
            self._log("pref_invalid", f"stored {key} unreadable", key, error=repr(exc))
            return None
        return PreferenceRecord(key=row["key"], value=value, version=row["version"], updated_at=row["updated_at"])

    def get(self, key: str, default: Any = None) -> Any:
        rec = self.record(key)
        return default if rec is None else rec.value

    def delete(self, key: str) -> bool:
        try:
            with self.conn:
                cur = self.conn.execute("DELETE FROM preferences WHERE key = ?", (key,))
        except sqlite3.Error as exc:
            self._log("pref_error", f"delete {key} failed", key, error=repr(exc))
            return False
        return cur.rowcount > 0

    def keys(self) -> List[str]:
        try:
            rows = self.conn.execute("SELECT key FROM preferences ORDER BY key").fetchall()
        except sqlite3.Error:
            return []
        return [r["key"] for r in rows]

    def close(self) -> None:
        self.conn.close()

    def _log(self, event_type: str, message: str, key: str, **context: Any) -> None:
        if self.audit is not None:
            self.audit.log(event_type, message, {"key": key, **context})

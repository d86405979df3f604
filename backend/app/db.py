import hashlib
import json
import sqlite3
from pathlib import Path
from typing import Any, Optional

# одна строка на событие; payload лежит как есть, в JSON
SCHEMA = """
CREATE TABLE IF NOT EXISTS ingest_batches (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    received_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    client_version TEXT,
    events_count INTEGER NOT NULL,
    api_key_hash TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS session_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    event_id TEXT NOT NULL UNIQUE,
    event_type TEXT NOT NULL,
    event_ts TEXT NOT NULL,
    received_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
    participant_id TEXT NOT NULL,
    session_id TEXT NOT NULL,
    client_version TEXT,
    payload_json TEXT NOT NULL,
    batch_id INTEGER NOT NULL REFERENCES ingest_batches(id)
);
CREATE INDEX IF NOT EXISTS idx_session_events_session ON session_events(session_id, id);
CREATE INDEX IF NOT EXISTS idx_session_events_participant ON session_events(participant_id, event_type, id);
"""

MAX_READ_ROWS = 5000


def ensure_db(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(path) as conn:
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.executescript(SCHEMA)


def _event_row(event: dict[str, Any], client_version: str, batch_id: int) -> tuple:
    payload = event.get("payload", {})
    if not isinstance(payload, dict):
        payload = {"raw_payload": payload}
    return (
        event["event_id"],
        event["event_type"],
        event["event_ts"],
        event["user_id"],
        event["session_id"],
        event.get("model_version") or client_version,
        json.dumps(payload, ensure_ascii=False, separators=(",", ":")),
        batch_id,
    )


def write_batch(db_path: Path, api_key: str, client_version: str, events: list[dict[str, Any]]) -> int:
    """Пишет пачку событий, возвращает сколько реально добавилось (повторы event_id пропускаются)."""
    api_key_hash = hashlib.sha256(api_key.encode("utf-8")).hexdigest()
    with sqlite3.connect(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO ingest_batches (client_version, events_count, api_key_hash) VALUES (?, ?, ?)",
            (client_version, len(events), api_key_hash),
        )
        batch_id = int(cur.lastrowid)
        before = conn.total_changes
        conn.executemany(
            """
            INSERT OR IGNORE INTO session_events (
                event_id, event_type, event_ts, participant_id, session_id, client_version, payload_json, batch_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [_event_row(e, client_version, batch_id) for e in events],
        )
        return conn.total_changes - before


def _decode_payload(payload_json: Optional[str]) -> dict[str, Any]:
    try:
        payload = json.loads(payload_json) if payload_json else {}
    except json.JSONDecodeError:
        return {}
    return payload if isinstance(payload, dict) else {}


def read_events(
    db_path: Path,
    event_type: Optional[str] = None,
    participant_id: Optional[str] = None,
    session_id: Optional[str] = None,
    limit: int = 1000,
    offset: int = 0,
) -> list[dict[str, Any]]:
    if not db_path.exists():
        return []

    filters = {"event_type": event_type, "participant_id": participant_id, "session_id": session_id}
    active = {column: value for column, value in filters.items() if value}
    where = ""
    if active:
        where = "WHERE " + " AND ".join(f"{column} = ?" for column in active)
    params = [*active.values(), max(1, min(MAX_READ_ROWS, int(limit))), max(0, int(offset))]

    with sqlite3.connect(f"file:{db_path}?mode=ro", uri=True) as conn:
        rows = conn.execute(
            f"""
            SELECT event_id, event_type, event_ts, participant_id, session_id, payload_json
            FROM session_events
            {where}
            ORDER BY id ASC
            LIMIT ? OFFSET ?
            """,
            params,
        ).fetchall()

    keys = ("event_id", "event_type", "event_ts", "participant_id", "session_id")
    return [{**dict(zip(keys, row[:5])), "payload": _decode_payload(row[5])} for row in rows]

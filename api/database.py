import json
import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

DB_PATH = os.environ.get("DB_PATH", "/data/delivery.db")

SCHEMA = """
PRAGMA journal_mode = WAL;

CREATE TABLE IF NOT EXISTS job_queues (
    name TEXT PRIMARY KEY,
    items TEXT NOT NULL DEFAULT '[]',
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS station_profiles (
    station_id TEXT PRIMARY KEY,
    body TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_connection() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


@contextmanager
def db():
    conn = get_connection()
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db():
    db_dir = os.path.dirname(DB_PATH)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    conn = get_connection()
    try:
        conn.executescript(SCHEMA)
        conn.commit()
    finally:
        conn.close()


class SqliteJobStore:
    """One queue persisted as a single JSON list; every save replaces the whole list."""

    def __init__(self, name: str):
        self.name = name

    def load(self) -> list[dict]:
        with db() as conn:
            row = conn.execute("SELECT items FROM job_queues WHERE name=?", (self.name,)).fetchone()
        if not row:
            return []
        return json.loads(row["items"])

    def save(self, items: list[dict]) -> None:
        with db() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO job_queues (name, items, updated_at) VALUES (?, ?, ?)",
                (self.name, json.dumps(items), _now()),
            )


class MemoryJobStore:
    def __init__(self, items: list[dict] | None = None):
        self._items = json.dumps(items or [])

    def load(self) -> list[dict]:
        return json.loads(self._items)

    def save(self, items: list[dict]) -> None:
        # serialize so callers never share references with what was stored
        self._items = json.dumps(items)


def load_profile_body(station_id: str) -> dict | None:
    with db() as conn:
        row = conn.execute("SELECT body FROM station_profiles WHERE station_id=?", (station_id,)).fetchone()
    return json.loads(row["body"]) if row else None


def save_profile_body(station_id: str, body: dict) -> None:
    with db() as conn:
        conn.execute(
            "INSERT OR REPLACE INTO station_profiles (station_id, body, updated_at) VALUES (?, ?, ?)",
            (station_id, json.dumps(body), _now()),
        )


def delete_profile_body(station_id: str) -> None:
    with db() as conn:
        conn.execute("DELETE FROM station_profiles WHERE station_id=?", (station_id,))

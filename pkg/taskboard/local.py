"""
Offline board storage (SQLite).

The whole board is kept as one JSON document under a single key, so every
save rewrites the full list of tasks.
"""
import json
import logging
import sqlite3
from pathlib import Path
from typing import List, Optional

from .schema import Task, utc_now

logger = logging.getLogger(__name__)

DEFAULT_KEY = "taskDashboard"


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in WAL mode."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


class LocalStorage:
    """Single-key document store for the offline board."""

    def __init__(self, db_path: Optional[str] = None, key: str = DEFAULT_KEY):
        if db_path is None:
            db_path = str(Path.home() / ".local" / "share" / "taskboard" / "board.db")
        self.db_path = db_path
        self.key = key
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS board_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()

    def load(self) -> List[Task]:
        """Load the saved board. A missing or unreadable document is an empty board."""
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM board_state WHERE key = ?", (self.key,)
            ).fetchone()
        if not row:
            return []
        try:
            items = json.loads(row["value"])
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable board document {self.key!r}: {e}")
            return []
        if not isinstance(items, list):
            return []
        return [Task.from_dict(item) for item in items if isinstance(item, dict)]

    def save(self, tasks: List[Task]) -> None:
        payload = json.dumps([t.to_dict() for t in tasks], ensure_ascii=False)
        with _connect(self.db_path) as conn:
            conn.execute("""
                INSERT INTO board_state (key, value, updated_at)
                VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value, updated_at=excluded.updated_at
            """, (self.key, payload, utc_now()))
            conn.commit()

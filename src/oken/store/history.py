"""SQLite connection history, used for recency in the picker."""

import sqlite3
from pathlib import Path

from oken.types import RecentHost

SCHEMA = """
CREATE TABLE IF NOT EXISTS connections (
    id           INTEGER PRIMARY KEY AUTOINCREMENT,
    host_alias   TEXT NOT NULL,
    hostname     TEXT,
    user         TEXT,
    port         INTEGER,
    connected_at TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_connections_host_alias ON connections (host_alias);
"""


class HistoryStore:
    """SQLite-based connection history."""

    def __init__(self, db_path: Path):
        self.db_path = db_path
        self._conn: sqlite3.Connection | None = None

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.executescript(SCHEMA)
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def record_connection(
        self,
        alias: str,
        hostname: str | None = None,
        user: str | None = None,
        port: int | None = None,
        connected_at: str | None = None,
    ) -> None:
        if connected_at is None:
            self.conn.execute(
                "INSERT INTO connections (host_alias, hostname, user, port) VALUES (?, ?, ?, ?)",
                (alias, hostname, user, port),
            )
        else:
            self.conn.execute(
                """
                INSERT INTO connections (host_alias, hostname, user, port, connected_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (alias, hostname, user, port, connected_at),
            )
        self.conn.commit()

    def last_connected_hosts(self) -> list[RecentHost]:
        rows = self.conn.execute(
            """
            SELECT host_alias, MAX(connected_at) AS last_connected
            FROM connections
            GROUP BY host_alias
            ORDER BY last_connected DESC
            """
        ).fetchall()
        return [
            RecentHost(alias=row["host_alias"], last_connected=row["last_connected"])
            for row in rows
        ]

"""SQLite storage for leak episodes."""

import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from leak_hunter.history import Episode, Resolution

log = structlog.get_logger()

SCHEMA_VERSION = 1


SCHEMA = """
CREATE TABLE IF NOT EXISTS daemon_state (
    key TEXT PRIMARY KEY,
    value TEXT,
    updated_at REAL
);

CREATE TABLE IF NOT EXISTS episodes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    pid INTEGER NOT NULL,
    process_name TEXT NOT NULL,
    detected_at REAL NOT NULL,
    resolved_at REAL NOT NULL,
    resolution TEXT NOT NULL,
    total_leaked_mb REAL NOT NULL,
    peak_growth_rate REAL NOT NULL,
    peak_confidence REAL NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_episodes_resolved
    ON episodes(resolved_at);
CREATE INDEX IF NOT EXISTS idx_episodes_name
    ON episodes(process_name);
"""


def init_database(db_path: Path) -> None:
    """Initialize database with WAL mode and schema.

    If the database exists with a different schema version, it is deleted
    and recreated. No migrations - schema mismatch means fresh start.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    if db_path.exists():
        conn = sqlite3.connect(db_path)
        try:
            existing_version = _get_schema_version_raw(conn)
            if existing_version != SCHEMA_VERSION:
                log.info(
                    "schema_mismatch",
                    existing=existing_version,
                    expected=SCHEMA_VERSION,
                    action="recreate",
                )
                conn.close()
                _remove_database(db_path)
            else:
                conn.close()
                return
        except sqlite3.DatabaseError:
            # Corrupted or incompatible DB - delete and recreate
            conn.close()
            _remove_database(db_path)

    conn = sqlite3.connect(db_path)
    try:
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.executescript(SCHEMA)
        conn.execute(
            "INSERT OR REPLACE INTO daemon_state (key, value, updated_at) VALUES (?, ?, ?)",
            ("schema_version", str(SCHEMA_VERSION), time.time()),
        )
        conn.commit()
        log.info("database_initialized", path=str(db_path), version=SCHEMA_VERSION)
    finally:
        conn.close()


def _remove_database(db_path: Path) -> None:
    db_path.unlink()
    for suffix in (".db-wal", ".db-shm"):
        sidecar = db_path.with_suffix(suffix)
        if sidecar.exists():
            sidecar.unlink()


def _get_schema_version_raw(conn: sqlite3.Connection) -> int:
    """Get schema version without error handling (for init_database use)."""
    row = conn.execute("SELECT value FROM daemon_state WHERE key = 'schema_version'").fetchone()
    return int(row[0]) if row else 0


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Get a database connection usable from the daemon's worker threads."""
    return sqlite3.connect(db_path, check_same_thread=False)


class DatabaseNotAvailable(Exception):
    """Raised when database doesn't exist and command should exit gracefully."""

    pass


@contextmanager
def require_database(db_path: Path) -> Generator[sqlite3.Connection, None, None]:
    """Context manager for commands requiring database access.

    Raises:
        DatabaseNotAvailable: If the database doesn't exist (after printing a hint)
    """
    import click

    if not db_path.exists():
        click.echo("Database not found. Run 'leak-hunter daemon' first.")
        raise DatabaseNotAvailable()

    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get current schema version from database."""
    try:
        row = conn.execute("SELECT value FROM daemon_state WHERE key = 'schema_version'").fetchone()
        return int(row[0]) if row else 0
    except sqlite3.OperationalError:
        return 0


def insert_episode(conn: sqlite3.Connection, episode: Episode) -> int:
    """Persist a closed episode. Returns the row id."""
    cursor = conn.execute(
        """INSERT INTO episodes
           (pid, process_name, detected_at, resolved_at, resolution,
            total_leaked_mb, peak_growth_rate, peak_confidence)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (
            episode.process_id,
            episode.process_name,
            episode.detected_at,
            episode.resolved_at,
            episode.resolution.value,
            episode.total_leaked_mb,
            episode.peak_growth_rate_mb_per_hour,
            episode.peak_confidence,
        ),
    )
    conn.commit()
    result = cursor.lastrowid
    assert result is not None
    return result


def get_episodes(
    conn: sqlite3.Connection,
    time_cutoff: float | None = None,
    limit: int = 100,
) -> list[Episode]:
    """Get episodes, most recently resolved first.

    Args:
        conn: Database connection
        time_cutoff: Only episodes resolved at or after this timestamp
        limit: Maximum number of episodes to return
    """
    query = """SELECT pid, process_name, detected_at, resolved_at, resolution,
                      total_leaked_mb, peak_growth_rate, peak_confidence
               FROM episodes"""
    params: list = []
    if time_cutoff is not None:
        query += " WHERE resolved_at >= ?"
        params.append(time_cutoff)
    query += " ORDER BY resolved_at DESC, id DESC LIMIT ?"
    params.append(limit)

    return [
        Episode(
            process_id=r[0],
            process_name=r[1],
            detected_at=r[2],
            resolved_at=r[3],
            resolution=Resolution(r[4]),
            total_leaked_mb=r[5],
            peak_growth_rate_mb_per_hour=r[6],
            peak_confidence=r[7],
        )
        for r in conn.execute(query, params).fetchall()
    ]


def prune_old_episodes(conn: sqlite3.Connection, episodes_days: int = 90) -> int:
    """Delete episodes resolved more than episodes_days ago.

    Returns:
        Number of episodes deleted

    Raises:
        ValueError: If retention days < 1
    """
    if episodes_days < 1:
        raise ValueError("Retention days must be >= 1")

    cutoff = time.time() - (episodes_days * 86400)
    cursor = conn.execute("DELETE FROM episodes WHERE resolved_at < ?", (cutoff,))
    deleted = cursor.rowcount
    conn.commit()

    log.info("prune_complete", episodes_deleted=deleted)
    return deleted


class EpisodeStore:
    """Episode listener that writes every closed episode to SQLite."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self.conn = conn

    def __call__(self, episode: Episode) -> None:
        insert_episode(self.conn, episode)

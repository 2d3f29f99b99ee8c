from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from timetable_app.logging import get_logger

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"

logger = get_logger(__name__)


class Database:
    """Local SQLite file holding the persisted application state."""

    def __init__(self, db_path: Path, *, migrations_dir: Path = MIGRATIONS_DIR, timeout: float = 5.0) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._migrations_dir = Path(migrations_dir)
        self._timeout = timeout

    @property
    def path(self) -> Path:
        return self._db_path

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Open a connection that commits on success and rolls back on error."""

        connection = sqlite3.connect(self._db_path, timeout=self._timeout)
        connection.row_factory = sqlite3.Row
        try:
            yield connection
            connection.commit()
        except Exception:
            connection.rollback()
            raise
        finally:
            connection.close()

    def initialize(self) -> list[str]:
        """Apply pending ``*.sql`` migrations in file-name order.

        Returns the names applied by this call; an up-to-date database yields
        an empty list.
        """

        pending: list[str] = []
        with self.connect() as connection:
            connection.execute(
                """
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    name TEXT PRIMARY KEY,
                    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
                )
                """
            )
            done = {row["name"] for row in connection.execute("SELECT name FROM schema_migrations")}

            for script in sorted(self._migrations_dir.glob("*.sql")):
                if script.name in done:
                    continue
                connection.executescript(script.read_text(encoding="utf-8"))
                connection.execute("INSERT INTO schema_migrations(name) VALUES (?)", (script.name,))
                pending.append(script.name)

        if pending:
            logger.info("migrations_applied", database=str(self._db_path), migrations=pending)
        return pending

    def applied_migrations(self) -> list[str]:
        with self.connect() as connection:
            rows = connection.execute("SELECT name FROM schema_migrations ORDER BY name").fetchall()
        return [row["name"] for row in rows]

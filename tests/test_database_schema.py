from __future__ import annotations

import sqlite3
from pathlib import Path

import pytest

from timetable_app.data import Database


def test_initialize_applies_bundled_migrations_once(tmp_path: Path) -> None:
    database = Database(tmp_path / "nested" / "timetable.db")

    assert database.initialize() == ["001_app_state.sql"]
    assert database.initialize() == []

    with database.connect() as connection:
        tables = {row["name"] for row in connection.execute("SELECT name FROM sqlite_master WHERE type='table'")}
    assert {"app_state", "schema_migrations"} <= tables
    assert database.applied_migrations() == ["001_app_state.sql"]


def test_migrations_run_in_file_name_order(tmp_path: Path) -> None:
    scripts = tmp_path / "migrations"
    scripts.mkdir()
    (scripts / "002_seed.sql").write_text("INSERT INTO demo (value) VALUES ('seeded');", encoding="utf-8")
    (scripts / "001_demo.sql").write_text("CREATE TABLE demo (value TEXT);", encoding="utf-8")

    database = Database(tmp_path / "demo.db", migrations_dir=scripts)

    assert database.initialize() == ["001_demo.sql", "002_seed.sql"]
    with database.connect() as connection:
        assert [row["value"] for row in connection.execute("SELECT value FROM demo")] == ["seeded"]


def test_failed_write_is_rolled_back(tmp_path: Path) -> None:
    database = Database(tmp_path / "timetable.db")
    database.initialize()

    with pytest.raises(sqlite3.IntegrityError):
        with database.connect() as connection:
            connection.execute("INSERT INTO app_state (key, value) VALUES ('schoolName', '\"A\"')")
            connection.execute("INSERT INTO app_state (key, value) VALUES ('schoolName', '\"B\"')")

    with database.connect() as connection:
        assert connection.execute("SELECT COUNT(*) FROM app_state").fetchone()[0] == 0

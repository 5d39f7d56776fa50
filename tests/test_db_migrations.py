import sqlite3

from cibulb.db_migrations import migrate_repository_db


def test_migrate_repository_db_runs_from_packaged_scripts(tmp_path, monkeypatch):
    db_path = tmp_path / "runtime" / "repositories.sqlite3"
    monkeypatch.chdir(tmp_path)

    migrate_repository_db(db_path, revision="head")

    with sqlite3.connect(str(db_path)) as conn:
        tables = {
            row[0]
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        revision = conn.execute("SELECT version_num FROM alembic_version").fetchone()[0]
        columns = [
            row[1] for row in conn.execute("PRAGMA table_info(repositories)").fetchall()
        ]

    assert "repositories" in tables
    assert revision == "0001_initial"
    assert columns == ["name", "status", "first_seen_at", "last_seen_at"]


def test_migrate_repository_db_is_repeatable(tmp_path):
    db_path = tmp_path / "repositories.sqlite3"

    migrate_repository_db(db_path)
    migrate_repository_db(db_path)

    with sqlite3.connect(str(db_path)) as conn:
        count = conn.execute("SELECT COUNT(*) FROM alembic_version").fetchone()[0]

    assert count == 1

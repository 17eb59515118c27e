import sqlite3

from app.database import MIGRATIONS, SCHEMA_SQL, init_db


def _columns(db_path, table):
    conn = sqlite3.connect(str(db_path))
    try:
        return {row[1] for row in conn.execute(f"PRAGMA table_info({table})")}
    finally:
        conn.close()


class TestInitDb:
    def test_schema_carries_current_columns(self, tmp_path):
        db_path = tmp_path / "db.sqlite"
        init_db(db_path)
        assert "cancellation_reason" in _columns(db_path, "jobs")
        assert "sub_type" in _columns(db_path, "notifications")
        assert {"job_id", "kind", "current_stage"} <= _columns(db_path, "approval_processes")

    def test_init_is_idempotent(self, tmp_path):
        db_path = tmp_path / "db.sqlite"
        init_db(db_path)
        init_db(db_path)
        conn = sqlite3.connect(str(db_path))
        try:
            assert conn.execute("PRAGMA integrity_check").fetchone()[0] == "ok"
        finally:
            conn.close()

    def test_no_migration_repeats_a_schema_column(self, tmp_path):
        db_path = tmp_path / "schema-only.sqlite"
        conn = sqlite3.connect(str(db_path))
        conn.executescript(SCHEMA_SQL)
        conn.close()
        for migration in MIGRATIONS:
            _, _, table, _, _, column, *_ = migration.split()
            assert column not in _columns(db_path, table)

"""Fixtures for tests that need a real PostgreSQL.

pytest-postgresql starts a throwaway server; every test gets a database with
all of migrations/*.sql applied and one climber already registered.
"""

from __future__ import annotations

from pathlib import Path

import psycopg
import pytest
from pytest_postgresql import factories

MIGRATIONS_DIR = Path(__file__).resolve().parents[2] / "migrations"

postgresql_proc = factories.postgresql_proc()
postgresql = factories.postgresql("postgresql_proc")


def _dsn(info) -> str:
    return (
        f"host={info.host} port={info.port} dbname={info.dbname} "
        f"user={info.user} password={info.password or ''}"
    )


@pytest.fixture
def db_conn(postgresql):
    """(conn, dsn) for a migrated climbs database.

    conn is left in manual-commit mode; the CLI tests connect separately
    through dsn.
    """
    dsn = _dsn(postgresql.info)
    conn = psycopg.connect(dsn, autocommit=True)
    try:
        # Files are numbered, so name order is apply order.
        for migration in sorted(MIGRATIONS_DIR.glob("*.sql")):
            conn.execute(migration.read_text(encoding="utf-8"))
        conn.autocommit = False
        yield conn, dsn
    finally:
        conn.close()


@pytest.fixture
def user_id(db_conn) -> str:
    conn, _ = db_conn
    row = conn.execute(
        "INSERT INTO app_user (email, display_name) VALUES (%s, %s) RETURNING id",
        ("climber@example.com", "Climber"),
    ).fetchone()
    conn.commit()
    return str(row[0])

from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy import select

from reliefops.core.identity_insert import allow_explicit_key_insert
from reliefops.models import Category


class RecordingConnection:
    """Stands in for a Connection on another dialect"""

    def __init__(self, dialect):
        self.dialect = SimpleNamespace(name=dialect)
        self.statements = []

    def execute(self, statement):
        self.statements.append(str(statement))


def test_sqlite_accepts_explicit_keys(db):
    with allow_explicit_key_insert(db, "category"):
        db.add(Category(id=500, name="Explicit"))
        db.flush()
    db.commit()

    assert db.execute(select(Category.name).where(Category.id == 500)).scalar() == "Explicit"


def test_unknown_table_is_refused(db):
    with pytest.raises(ValueError):
        with allow_explicit_key_insert(db, "category; DROP TABLE stock"):
            pass


def test_mssql_switches_identity_insert_off_after_failure():
    conn = RecordingConnection("mssql")

    with pytest.raises(RuntimeError):
        with allow_explicit_key_insert(conn, "category"):
            raise RuntimeError("insert failed")

    assert conn.statements == [
        "SET IDENTITY_INSERT [category] ON",
        "SET IDENTITY_INSERT [category] OFF",
    ]


def test_mssql_skips_tables_without_identity():
    conn = RecordingConnection("mssql")
    with allow_explicit_key_insert(conn, "relief_good_category"):
        pass
    assert conn.statements == []


def test_postgresql_resyncs_sequence():
    conn = RecordingConnection("postgresql")
    with allow_explicit_key_insert(conn, "stock"):
        pass

    assert len(conn.statements) == 1
    assert "pg_get_serial_sequence('stock', 'id')" in conn.statements[0]

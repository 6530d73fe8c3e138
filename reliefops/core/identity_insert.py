"""
Explicit primary-key insertion for auto-generated identity columns

Restoring an archived row and syncing rows between stores both need to
insert rows with their original numeric ids. Each backend handles this
differently, so the capability is a context manager scoped to one table:

    with allow_explicit_key_insert(session, "category"):
        session.add(restored)
        session.flush()

SQL Server toggles IDENTITY_INSERT and always switches it off again.
PostgreSQL accepts explicit keys but its serial sequence must be moved past
the inserted ids afterwards. SQLite accepts explicit keys as-is.
"""
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Union
import logging

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.orm import Session

from .database import Base

logger = logging.getLogger(__name__)

Target = Union[Session, Connection]


def _dialect_name(target: Target) -> str:
    bind = target.get_bind() if isinstance(target, Session) else target
    return bind.dialect.name


def _safe_table(table_name: str) -> str:
    """Only mapped tables may be named in raw SQL"""
    if table_name not in Base.metadata.tables:
        raise ValueError(f"Explicit key insert not allowed for table: {table_name}")
    return table_name


def _identity_column(table_name: str) -> str:
    table = Base.metadata.tables[table_name]
    keys = list(table.primary_key.columns)
    return keys[0].name if len(keys) == 1 else ""


@contextmanager
def _mssql(target: Target, table_name: str) -> Iterator[None]:
    if not _identity_column(table_name):
        yield
        return
    target.execute(text(f"SET IDENTITY_INSERT [{table_name}] ON"))
    try:
        yield
    finally:
        target.execute(text(f"SET IDENTITY_INSERT [{table_name}] OFF"))


@contextmanager
def _postgresql(target: Target, table_name: str) -> Iterator[None]:
    yield
    pk = _identity_column(table_name)
    if not pk:
        return
    # Move the serial sequence past the explicit ids
    target.execute(text(
        f"SELECT setval(pg_get_serial_sequence('{table_name}', '{pk}'), "
        f"COALESCE((SELECT MAX({pk}) FROM {table_name}), 0) + 1, false)"
    ))


@contextmanager
def _passthrough(target: Target, table_name: str) -> Iterator[None]:
    yield


_HANDLERS: Dict[str, Callable] = {
    "mssql": _mssql,
    "postgresql": _postgresql,
    "sqlite": _passthrough,
}


@contextmanager
def allow_explicit_key_insert(target: Target, table_name: str) -> Iterator[None]:
    """Permit explicit primary-key values on table_name for the enclosed block"""
    table_name = _safe_table(table_name)
    dialect = _dialect_name(target)
    handler = _HANDLERS.get(dialect, _passthrough)
    logger.debug(f"Explicit key insert on {table_name} ({dialect})")
    with handler(target, table_name):
        yield

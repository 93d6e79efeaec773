"""Dialect-specific INSERT constructs.

``ON CONFLICT DO NOTHING`` is spelled the same way on PostgreSQL and SQLite
but lives in each dialect's own ``insert()``; this picks the right one for
the session's bind.
"""

from sqlalchemy import Table
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


def insert_ignoring_conflicts(session: AsyncSession, table: Table, index_elements):
    """INSERT for ``table`` that silently skips rows clashing on ``index_elements``."""
    name = dialect_name(session)
    try:
        insert = _INSERTS[name]
    except KeyError:
        raise NotImplementedError(f"Idempotent insert not supported for dialect {name!r}")
    return insert(table).on_conflict_do_nothing(index_elements=index_elements)

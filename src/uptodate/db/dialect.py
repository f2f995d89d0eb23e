"""Dialect-specific INSERT constructs for keyed upserts."""

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

UPSERT_DIALECTS = ("sqlite", "postgresql")


def dialect_name(session: AsyncSession) -> str:
    return session.get_bind().dialect.name


def supports_upsert(session: AsyncSession) -> bool:
    """True when the bound dialect has INSERT ... ON CONFLICT."""
    return dialect_name(session) in UPSERT_DIALECTS


def upsert_insert(session: AsyncSession, table):
    """Return an ``insert()`` that exposes ``on_conflict_do_*`` for the session's dialect."""
    name = dialect_name(session)
    if name == "postgresql":
        return postgresql.insert(table)
    if name == "sqlite":
        return sqlite.insert(table)
    raise NotImplementedError(f"ON CONFLICT upserts are not supported on {name!r}")

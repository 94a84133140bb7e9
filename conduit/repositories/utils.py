"""Shared SQL helpers for the SQLAlchemy repositories."""
from sqlalchemy import Table
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession


async def insert_ignore_conflict(
    db: AsyncSession,
    table: Table,
    values: dict,
    index_elements: list[str],
) -> None:
    """
    Insert a row unless one with the same key already exists.

    Uses INSERT ... ON CONFLICT DO NOTHING on PostgreSQL and SQLite so
    concurrent callers converge on a single row; other dialects fall
    back to a savepoint that swallows the duplicate-key error.
    """
    bind = db.get_bind()
    dialect = bind.dialect.name if bind else ""

    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as pg_insert

        stmt = pg_insert(table).values(**values).on_conflict_do_nothing(
            index_elements=index_elements
        )
        await db.execute(stmt)
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert

        stmt = sqlite_insert(table).values(**values).on_conflict_do_nothing(
            index_elements=index_elements
        )
        await db.execute(stmt)
    else:
        try:
            async with db.begin_nested():
                await db.execute(table.insert().values(**values))
        except IntegrityError:
            pass  # Savepoint rolled back; the row is already there


def integrity_message(exc: IntegrityError) -> str:
    """Lower-cased driver message, used to tell which constraint fired."""
    return str(exc.orig).lower()

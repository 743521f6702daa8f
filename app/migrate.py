"""
Schema synchronisation against the ORM metadata.

``migrate`` creates any missing tables.  With ``drop_columns=True`` it also
drops columns that exist in the database but no longer exist on a model.
That step discards data, so it only ever runs when an operator asks for it
(``scripts/migrate.py --drop-columns``), never at application startup.
Tables unknown to the models are left alone in both modes.

Versioned migrations still go through Alembic (``alembic/env.py``); this is
the quick path for development databases.
"""
import logging

from alembic.autogenerate import compare_metadata
from alembic.operations import Operations
from alembic.runtime.migration import MigrationContext
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import AsyncEngine

from app.database import Base

import app.models  # noqa: F401  (registers every table on Base.metadata)

logger = logging.getLogger(__name__)


def _sync_schema(connection: Connection, drop_columns: bool) -> list[tuple[str, str]]:
    Base.metadata.create_all(connection)
    if not drop_columns:
        return []

    context = MigrationContext.configure(connection)
    ops = Operations(context)
    dropped: list[tuple[str, str]] = []
    for diff in compare_metadata(context, Base.metadata):
        # Column-level modifications come back as nested lists; only plain
        # "remove_column" tuples are acted on.
        if not isinstance(diff, tuple) or diff[0] != "remove_column":
            continue
        _, schema, table, column = diff
        ops.drop_column(table, column.name, schema=schema)
        dropped.append((table, column.name))
    return dropped


async def migrate(
    engine: AsyncEngine,
    drop_columns: bool = False,
    log: logging.Logger | None = None,
) -> list[tuple[str, str]]:
    """
    Bring the database schema in line with the models.

    Returns the ``(table, column)`` pairs that were dropped.
    """
    log = log or logger
    async with engine.begin() as conn:
        dropped = await conn.run_sync(_sync_schema, drop_columns)
    for table, column in dropped:
        log.warning("dropped column %s.%s (not present in the model)", table, column)
    log.info("schema synchronised (drop_columns=%s)", drop_columns)
    return dropped

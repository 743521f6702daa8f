"""Synchronise the database schema with the ORM models.

    python scripts/migrate.py                 # create missing tables
    python scripts/migrate.py --drop-columns  # also drop columns removed from models
"""
import argparse
import asyncio

from sqlalchemy.ext.asyncio import create_async_engine

from app.config import settings
from app.log import build_logger
from app.migrate import migrate


async def main(drop_columns: bool) -> None:
    logger = build_logger(settings)
    engine = create_async_engine(settings.DATABASE_URL)
    try:
        dropped = await migrate(engine, drop_columns=drop_columns, log=logger)
    finally:
        await engine.dispose()
    print(f"Schema synchronised; {len(dropped)} column(s) dropped")
    for table, column in dropped:
        print(f"  - {table}.{column}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Synchronise the schema with the models")
    parser.add_argument(
        "--drop-columns",
        action="store_true",
        help="Drop columns that no longer exist on a model (destroys their data)",
    )
    args = parser.parse_args()
    asyncio.run(main(args.drop_columns))

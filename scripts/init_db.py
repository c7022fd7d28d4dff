#!/usr/bin/env python3
"""Initialize the message service database schema."""

import asyncio

from hnn.common.config import BaseConfig
from hnn.storage.postgres import SCHEMA_STATEMENTS, PostgresStore


async def init_database():
    """Create the users, models, versions, and messages tables."""
    config = BaseConfig()

    print(f"Initializing database ({len(SCHEMA_STATEMENTS)} statements)")

    store = PostgresStore(
        dsn=config.hnn_db_dsn,
        pool_size=1,
        command_timeout=config.hnn_db_command_timeout,
    )
    try:
        await store.ensure_schema()
        print("✓ tables and indexes created")
        print("Database initialization completed successfully!")
    finally:
        await store.close()


if __name__ == "__main__":
    asyncio.run(init_database())

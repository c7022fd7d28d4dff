"""Store factory.

Centralizes creation of concrete store backends so the service entrypoint
doesn't depend on implementation details.
"""

from enum import Enum
from typing import Union

import structlog

from hnn.common.config import BaseConfig

from .memory import InMemoryStore
from .postgres import PostgresStore

logger = structlog.get_logger("storage.factory")


class StoreType(Enum):
    """Supported store backends."""
    POSTGRES = "postgres"
    MEMORY = "memory"


def create_store(config: BaseConfig) -> Union[PostgresStore, InMemoryStore]:
    """Create the metadata/message store selected by ``hnn_store_backend``.

    The returned object implements both ``MetadataStore`` and ``MessageStore``.
    """
    try:
        store_type = StoreType(config.hnn_store_backend.lower())
    except ValueError:
        raise ValueError(f"Unsupported store backend: {config.hnn_store_backend}") from None

    if store_type == StoreType.POSTGRES:
        if not config.hnn_db_dsn:
            raise ValueError("PostgreSQL store requires HNN_DB_DSN")
        logger.info("Using PostgreSQL store", pool_size=config.hnn_db_pool_size)
        return PostgresStore(
            dsn=config.hnn_db_dsn,
            pool_size=config.hnn_db_pool_size,
            command_timeout=config.hnn_db_command_timeout,
        )

    logger.warning("Using in-memory store; messages are not durable")
    return InMemoryStore()

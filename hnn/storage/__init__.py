"""Metadata and message stores.

- ``base``: abstract interfaces, the ``Message`` record, storage errors
- ``postgres``: asyncpg-backed implementation
- ``memory``: in-process implementation for development and tests
- ``factory``: backend selection from configuration
"""

from .base import (
    Message,
    MessageStore,
    MetadataStore,
    StorageConnectionError,
    StorageError,
    StorageNotFoundError,
    StorageQueryError,
)

__all__ = [
    "Message",
    "MessageStore",
    "MetadataStore",
    "StorageConnectionError",
    "StorageError",
    "StorageNotFoundError",
    "StorageQueryError",
]

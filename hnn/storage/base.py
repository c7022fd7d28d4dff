"""Base store interfaces.

Defines the abstract contracts the orchestrator depends on, independent of
the backing implementation (PostgreSQL, in-memory, ...):

- ``MetadataStore`` resolves opaque model/version ids to the names the
  inference engine understands and removes model metadata on deletion.
- ``MessageStore`` durably records processed messages and reads them back.

All methods are asynchronous.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import List, Optional


@dataclass(frozen=True)
class Message:
    """A processed message as persisted.

    ``input0``/``input1`` are the exact raw little-endian buffers that were
    sent to the engine. Records are never mutated after creation.
    """

    user_id: int
    model_id: int
    version_id: int
    input0: bytes
    input1: bytes
    results: List[str]
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    id: Optional[int] = None

    def with_id(self, message_id: int) -> "Message":
        return replace(self, id=message_id)


class MetadataStore(ABC):
    """Model and version metadata."""

    @abstractmethod
    async def resolve_model_name(self, model_id: int) -> str:
        """Engine model name for ``model_id``.

        Raises ``StorageNotFoundError`` when the id is unknown.
        """
        pass

    @abstractmethod
    async def resolve_version_number(self, version_id: int) -> int:
        """Engine version number for ``version_id``.

        Raises ``StorageNotFoundError`` when the id is unknown.
        """
        pass

    @abstractmethod
    async def delete_model(self, model_id: int) -> bool:
        """Delete a model, its versions, and its messages.

        Returns ``True`` if a model row was deleted.
        """
        pass


class MessageStore(ABC):
    """Durable message history."""

    @abstractmethod
    async def save_message(self, message: Message) -> Message:
        """Persist ``message`` and return it with its assigned id."""
        pass

    @abstractmethod
    async def query_messages(self, user_id: int, model_id: int) -> List[Message]:
        """Messages for a user and model, oldest first."""
        pass

    async def health_check(self) -> bool:
        """Check if the store is reachable."""
        return True

    async def close(self) -> None:
        return None


class StorageError(Exception):
    """Base exception for store operations."""
    pass


class StorageConnectionError(StorageError):
    """Connection error to the backing store."""
    pass


class StorageQueryError(StorageError):
    """Query error in the backing store."""
    pass


class StorageNotFoundError(StorageError):
    """Requested record does not exist."""
    pass

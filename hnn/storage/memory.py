"""In-memory implementation of the metadata and message stores.

Used for local development without a database and as the store behind the
service tests. Stored records are frozen dataclasses, so handing them out
does not expose mutable state.
"""

import itertools
from typing import Dict, List, Tuple

import structlog

from .base import Message, MessageStore, MetadataStore, StorageNotFoundError

logger = structlog.get_logger("storage.memory")


class InMemoryStore(MetadataStore, MessageStore):
    """Dictionary-backed store.

    Models and versions are registered with ``add_model``/``add_version``;
    messages are appended in save order, which is also creation order.
    """

    def __init__(self):
        self._models: Dict[int, str] = {}
        self._versions: Dict[int, Tuple[int, int]] = {}
        self._messages: List[Message] = []
        self._model_ids = itertools.count(1)
        self._version_ids = itertools.count(1)
        self._message_ids = itertools.count(1)

    def add_model(self, name: str) -> int:
        """Register a model name and return its id."""
        model_id = next(self._model_ids)
        self._models[model_id] = name
        return model_id

    def add_version(self, model_id: int, number: int) -> int:
        """Register a version number for ``model_id`` and return its id."""
        if model_id not in self._models:
            raise StorageNotFoundError(f"model {model_id} not found")
        version_id = next(self._version_ids)
        self._versions[version_id] = (model_id, number)
        return version_id

    async def resolve_model_name(self, model_id: int) -> str:
        try:
            return self._models[model_id]
        except KeyError:
            raise StorageNotFoundError(f"model {model_id} not found") from None

    async def resolve_version_number(self, version_id: int) -> int:
        try:
            return self._versions[version_id][1]
        except KeyError:
            raise StorageNotFoundError(f"version {version_id} not found") from None

    async def delete_model(self, model_id: int) -> bool:
        if model_id not in self._models:
            return False
        self._messages = [m for m in self._messages if m.model_id != model_id]
        self._versions = {
            version_id: entry
            for version_id, entry in self._versions.items()
            if entry[0] != model_id
        }
        del self._models[model_id]
        logger.info("Deleted model metadata", model_id=model_id)
        return True

    async def save_message(self, message: Message) -> Message:
        stored = message.with_id(next(self._message_ids))
        self._messages.append(stored)
        return stored

    async def query_messages(self, user_id: int, model_id: int) -> List[Message]:
        return [
            message
            for message in self._messages
            if message.user_id == user_id and message.model_id == model_id
        ]

"""Conversation storage contract and the in-memory implementation."""

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import fields
from typing import Any

from ..models.turn import ConversationTurn

logger = logging.getLogger(__name__)

_TURN_FIELDS = {f.name for f in fields(ConversationTurn)} - {"id"}


class MessageNotFoundError(KeyError):
    def __init__(self, thread_id: str, message_id: str):
        super().__init__(f"Message {message_id} not found in thread {thread_id}")
        self.thread_id = thread_id
        self.message_id = message_id


class ConversationStore(ABC):
    """Ordered turns per thread. Each call applies atomically."""

    @abstractmethod
    async def get_thread_messages(self, thread_id: str) -> list[ConversationTurn]:
        pass

    @abstractmethod
    async def get_message(self, thread_id: str, message_id: str) -> ConversationTurn | None:
        pass

    @abstractmethod
    async def add_message(self, thread_id: str, turn: ConversationTurn) -> ConversationTurn:
        pass

    @abstractmethod
    async def update_message(self, thread_id: str, message_id: str, patch: dict[str, Any]) -> ConversationTurn:
        """Apply ``patch`` (field name -> value) and return the updated turn."""

    @abstractmethod
    async def clear_thread(self, thread_id: str) -> None:
        pass

    @abstractmethod
    async def replace_thread(self, thread_id: str, turns: list[ConversationTurn]) -> None:
        pass


class InMemoryConversationStore(ConversationStore):
    """Process-local store; returns copies so callers never alias stored turns."""

    def __init__(self) -> None:
        self._threads: dict[str, list[ConversationTurn]] = {}

    def thread_ids(self) -> list[str]:
        return list(self._threads)

    async def get_thread_messages(self, thread_id: str) -> list[ConversationTurn]:
        return [copy.deepcopy(turn) for turn in self._threads.get(thread_id, [])]

    async def get_message(self, thread_id: str, message_id: str) -> ConversationTurn | None:
        for turn in self._threads.get(thread_id, []):
            if turn.id == message_id:
                return copy.deepcopy(turn)
        return None

    async def add_message(self, thread_id: str, turn: ConversationTurn) -> ConversationTurn:
        self._threads.setdefault(thread_id, []).append(copy.deepcopy(turn))
        return copy.deepcopy(turn)

    async def update_message(self, thread_id: str, message_id: str, patch: dict[str, Any]) -> ConversationTurn:
        unknown = set(patch) - _TURN_FIELDS
        if unknown:
            raise ValueError(f"Cannot patch unknown field(s): {', '.join(sorted(unknown))}")

        for turn in self._threads.get(thread_id, []):
            if turn.id == message_id:
                for name, value in patch.items():
                    setattr(turn, name, copy.deepcopy(value))
                return copy.deepcopy(turn)
        raise MessageNotFoundError(thread_id, message_id)

    async def clear_thread(self, thread_id: str) -> None:
        self._threads.pop(thread_id, None)

    async def replace_thread(self, thread_id: str, turns: list[ConversationTurn]) -> None:
        self._threads[thread_id] = [copy.deepcopy(turn) for turn in turns]

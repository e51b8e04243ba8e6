"""Model handles: one streaming interface over every provider SDK.

A handle streams ``StreamChunk`` objects for a list of adapted turns.
Chunks carry text, complete tool calls, indexed tool-call fragments and
citations; the streaming session merges them.
"""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

from ..models.content import AdaptedTurn, extract_text
from ..providers.profile import ProviderProfile
from ..tools.definitions import ToolDefinition
from ..utils.config import ModelDefinition

logger = logging.getLogger(__name__)


@dataclass
class ToolCallChunk:
    """A streamed piece of one tool call, keyed by its index."""
    index: int
    id: str | None = None
    name: str | None = None
    args: str | None = None


@dataclass
class StreamChunk:
    """One increment of a streamed (or the whole of an invoked) response.

    ``tool_calls`` only holds calls whose name and arguments are complete,
    as ``{"id", "name", "args"}`` where ``args`` is a dict or JSON string.
    """
    content: Any = ""
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    tool_call_chunks: list[ToolCallChunk] = field(default_factory=list)
    citations: list[str] | None = None

    @property
    def text(self) -> str:
        return extract_text(self.content)


class ModelHandle(ABC):
    """Abstract base class for provider model handles."""

    def __init__(
        self,
        definition: ModelDefinition,
        profile: ProviderProfile,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ):
        self.definition = definition
        self.profile = profile
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.tools: list[ToolDefinition] = []

    @property
    def model(self) -> str:
        return self.definition.model_id

    @property
    def label(self) -> str:
        return self.definition.label

    @abstractmethod
    def stream(self, turns: list[AdaptedTurn]) -> AsyncIterator[StreamChunk]:
        """Open one streaming generation for ``turns``."""

    async def invoke(self, turns: list[AdaptedTurn]) -> StreamChunk:
        """Non-streaming generation; drains ``stream`` unless overridden."""
        texts: list[str] = []
        result = StreamChunk()
        async for chunk in self.stream(turns):
            texts.append(chunk.text)
            result.tool_calls.extend(chunk.tool_calls)
            result.tool_call_chunks.extend(chunk.tool_call_chunks)
            if chunk.citations:
                result.citations = chunk.citations
        result.content = "".join(texts)
        return result

    def bind_tools(self, tools: list[ToolDefinition]) -> "ModelHandle":
        """Return a copy of this handle that requests tool calls natively."""
        if not self.profile.tool_binding_supported:
            logger.debug(f"{self.profile.kind.value} does not support tool binding; using plain handle")
            return self
        bound = copy.copy(self)
        bound.tools = list(tools)
        return bound

    async def aclose(self) -> None:
        """Release SDK resources held by the handle."""

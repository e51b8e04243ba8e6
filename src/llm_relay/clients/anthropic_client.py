"""Model handle for the Anthropic Messages API."""

from __future__ import annotations

import logging
import os
from typing import Any, AsyncIterator

from anthropic import AsyncAnthropic

from ..models.content import AdaptedTurn
from ..models.turn import ROLE_SYSTEM
from ..providers.profile import ProviderProfile
from ..utils.config import ModelDefinition
from .base import ModelHandle, StreamChunk, ToolCallChunk

logger = logging.getLogger(__name__)


class AnthropicModelHandle(ModelHandle):
    """Streams Messages API events as relay chunks.

    ``tool_use`` blocks arrive as a ``content_block_start`` carrying id and
    name, followed by ``input_json_delta`` fragments for the same index.
    """

    def __init__(
        self,
        definition: ModelDefinition,
        profile: ProviderProfile,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        timeout: float | None = None,
        client: AsyncAnthropic | None = None,
    ):
        super().__init__(definition, profile, temperature, max_tokens)
        if client is not None:
            self.client = client
        else:
            api_key = definition.resolved_api_key() or os.getenv("ANTHROPIC_API_KEY")
            kwargs: dict[str, Any] = {"api_key": api_key}
            if definition.base_url:
                kwargs["base_url"] = definition.resolved_base_url()
            if timeout is not None:
                kwargs["timeout"] = timeout
            self.client = AsyncAnthropic(**kwargs)

    def _build_kwargs(self, turns: list[AdaptedTurn]) -> dict[str, Any]:
        system = "\n\n".join(turn.text for turn in turns if turn.role == ROLE_SYSTEM)
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [turn.to_dict() for turn in turns if turn.role != ROLE_SYSTEM],
        }
        if system:
            kwargs["system"] = system
        if self.tools:
            kwargs["tools"] = [tool.to_anthropic_schema() for tool in self.tools]
        return kwargs

    async def stream(self, turns: list[AdaptedTurn]) -> AsyncIterator[StreamChunk]:
        stream = await self.client.messages.create(stream=True, **self._build_kwargs(turns))
        try:
            async for chunk in self._map_events(stream):
                yield chunk
        finally:
            # Release the HTTP response when the consumer stops early
            await stream.close()

    async def _map_events(self, events: AsyncIterator[Any]) -> AsyncIterator[StreamChunk]:
        # tool_use block index -> whether any input JSON arrived
        open_tool_blocks: dict[int, bool] = {}
        async for event in events:
            event_type = getattr(event, "type", None)

            if event_type == "content_block_start":
                block = event.content_block
                if getattr(block, "type", None) == "tool_use":
                    open_tool_blocks[event.index] = False
                    yield StreamChunk(tool_call_chunks=[
                        ToolCallChunk(index=event.index, id=block.id, name=block.name, args="")
                    ])

            elif event_type == "content_block_delta":
                delta = event.delta
                delta_type = getattr(delta, "type", None)
                if delta_type == "text_delta" and delta.text:
                    yield StreamChunk(content=delta.text)
                elif delta_type == "input_json_delta" and delta.partial_json:
                    open_tool_blocks[event.index] = True
                    yield StreamChunk(tool_call_chunks=[
                        ToolCallChunk(index=event.index, args=delta.partial_json)
                    ])

            elif event_type == "content_block_stop":
                if open_tool_blocks.pop(event.index, True) is False:
                    # Tool called without input
                    yield StreamChunk(tool_call_chunks=[ToolCallChunk(index=event.index, args="{}")])

            elif event_type == "message_delta":
                stop_reason = getattr(event.delta, "stop_reason", None)
                if stop_reason:
                    logger.debug(f"Anthropic stream stopped: {stop_reason}")

    async def invoke(self, turns: list[AdaptedTurn]) -> StreamChunk:
        response = await self.client.messages.create(**self._build_kwargs(turns))
        texts: list[str] = []
        tool_calls: list[dict[str, Any]] = []
        for block in response.content:
            if block.type == "text":
                texts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append({"id": block.id, "name": block.name, "args": dict(block.input or {})})
        return StreamChunk(content="".join(texts), tool_calls=tool_calls)

    async def aclose(self) -> None:
        await self.client.close()

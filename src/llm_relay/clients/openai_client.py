"""Model handle for OpenAI and OpenAI-compatible chat completion endpoints.

Covers OpenAI itself plus vLLM, Ollama, Perplexity, Google's OpenAI
endpoint and any compatible server reachable through ``base_url``.
"""

from __future__ import annotations

import logging
import os
from typing import Any, AsyncIterator

from openai import AsyncOpenAI, OpenAIError

from ..models.content import AdaptedTurn
from ..providers.profile import ProviderKind, ProviderProfile
from ..utils.config import ModelDefinition
from .base import ModelHandle, StreamChunk, ToolCallChunk

logger = logging.getLogger(__name__)

# Placeholder key for local and compatible servers that ignore authentication
DUMMY_API_KEY = "dummy-key"


class OpenAIModelHandle(ModelHandle):
    """Streams chat completions through ``openai.AsyncOpenAI``."""

    def __init__(
        self,
        definition: ModelDefinition,
        profile: ProviderProfile,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        timeout: float | None = None,
        client: AsyncOpenAI | None = None,
    ):
        super().__init__(definition, profile, temperature, max_tokens)
        self.base_url = definition.resolved_base_url()
        api_key = definition.resolved_api_key()
        if not api_key and profile.kind == ProviderKind.OPENAI:
            api_key = os.getenv("OPENAI_API_KEY")
        if not api_key and profile.kind == ProviderKind.OPENAI and not self.base_url:
            raise ValueError("OpenAI API key not found. Set OPENAI_API_KEY or api_key_env in models.yaml.")

        if client is not None:
            self.client = client
        else:
            self.client = AsyncOpenAI(
                api_key=api_key or DUMMY_API_KEY,
                base_url=self.base_url,
                timeout=timeout,
            )
            if self.base_url:
                logger.debug(f"OpenAI handle using custom endpoint: {self.base_url}")

    def _model_supports_temperature_top_p(self) -> bool:
        """Reasoning and preview models reject sampling parameters."""
        unsupported_patterns = ("-chat-latest", "-search-preview", "-audio-preview")
        unsupported_prefixes = ("o1", "o3", "o4")
        if any(pattern in self.model for pattern in unsupported_patterns):
            return False
        return not self.model.startswith(unsupported_prefixes)

    def _model_requires_max_completion_tokens(self) -> bool:
        if self.profile.kind != ProviderKind.OPENAI:
            return False
        legacy_models = ("gpt-3.5-turbo", "gpt-4", "gpt-4-turbo", "gpt-4-0314", "gpt-4-0613", "gpt-4-32k")
        if self.model in legacy_models:
            return False
        return not self.model.startswith(("gpt-3.5-", "gpt-4-turbo-", "gpt-4-32k-"))

    def _initial_token_param_key(self) -> str:
        if self._model_requires_max_completion_tokens():
            return "max_completion_tokens"
        return "max_tokens"

    def _build_payload(self, turns: list[AdaptedTurn], stream: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": [turn.to_dict() for turn in turns],
            "stream": stream,
            self._initial_token_param_key(): self.max_tokens,
        }
        if self._model_supports_temperature_top_p():
            payload["temperature"] = self.temperature
        if self.tools:
            payload["tools"] = [tool.to_openai_schema() for tool in self.tools]
            payload["tool_choice"] = "auto"
        return payload

    @staticmethod
    def _citations(obj: Any) -> list[str] | None:
        citations = getattr(obj, "citations", None)
        if citations is None:
            extra = getattr(obj, "model_extra", None) or {}
            citations = extra.get("citations")
        return list(citations) if citations else None

    def _is_stream_disconnect_error(self, err: Exception) -> bool:
        """Detect transport-level stream disconnects from compatible backends."""
        seen: set[int] = set()
        current: BaseException | None = err
        while current is not None and id(current) not in seen:
            seen.add(id(current))
            msg = str(current).lower()
            if (
                "incomplete chunked read" in msg
                or "peer closed connection without sending complete message body" in msg
                or current.__class__.__name__ == "RemoteProtocolError"
            ):
                return True
            current = current.__cause__ or current.__context__
        return False

    def _map_chunk(self, chunk: Any) -> StreamChunk | None:
        citations = self._citations(chunk)
        delta = chunk.choices[0].delta if chunk.choices else None
        if delta is None:
            return StreamChunk(citations=citations) if citations else None

        fragments = [
            ToolCallChunk(
                index=tc.index,
                id=tc.id,
                name=tc.function.name if tc.function else None,
                args=tc.function.arguments if tc.function else None,
            )
            for tc in delta.tool_calls or []
        ]
        if delta.content or fragments or citations:
            return StreamChunk(
                content=delta.content or "",
                tool_call_chunks=fragments,
                citations=citations,
            )
        return None

    async def stream(self, turns: list[AdaptedTurn]) -> AsyncIterator[StreamChunk]:
        payload = self._build_payload(turns, stream=True)
        try:
            stream = await self.client.chat.completions.create(**payload)
            try:
                async for chunk in stream:
                    mapped = self._map_chunk(chunk)
                    if mapped is not None:
                        yield mapped
            finally:
                # Release the HTTP response when the consumer stops early
                await stream.close()
        except OpenAIError as e:
            if self._is_stream_disconnect_error(e):
                logger.warning("Stream disconnected for model '%s': %s", self.model, e)
            raise

    async def invoke(self, turns: list[AdaptedTurn]) -> StreamChunk:
        response = await self.client.chat.completions.create(**self._build_payload(turns, stream=False))
        message = response.choices[0].message
        tool_calls = [
            {"id": tc.id, "name": tc.function.name, "args": tc.function.arguments}
            for tc in message.tool_calls or []
        ]
        return StreamChunk(
            content=message.content or "",
            tool_calls=tool_calls,
            citations=self._citations(response),
        )

    async def aclose(self) -> None:
        await self.client.close()

"""Tests for the llama.cpp handle with an injected fake model."""

from __future__ import annotations

import asyncio

import pytest

from llm_relay.clients.local_client import LocalModelHandle
from llm_relay.models.content import AdaptedTurn
from llm_relay.providers import ProviderKind, get_profile
from llm_relay.utils.config import ModelDefinition

TURNS = [AdaptedTurn("system", "sys"), AdaptedTurn("user", [{"type": "text", "text": "hi"}])]


class _FakeLlama:
    def __init__(self, pieces=(), error: Exception | None = None):
        self.pieces = pieces
        self.error = error
        self.calls: list[dict] = []

    def create_chat_completion(self, **params):
        self.calls.append(params)
        if not params["stream"]:
            return {"choices": [{"message": {"content": "".join(self.pieces)}}]}
        return self._stream()

    def _stream(self):
        yield {"choices": [{"delta": {"role": "assistant"}}]}
        for piece in self.pieces:
            yield {"choices": [{"delta": {"content": piece}}]}
        if self.error is not None:
            raise self.error


def _handle(llm: _FakeLlama) -> LocalModelHandle:
    return LocalModelHandle(
        ModelDefinition(alias="gguf", type="local", model_path="~/models/tiny.gguf"),
        get_profile(ProviderKind.LOCAL),
        max_tokens=64,
        llm=llm,
    )


def _collect(handle: LocalModelHandle):
    async def gather():
        return [chunk.text async for chunk in handle.stream(TURNS)]

    return asyncio.run(gather())


def test_stream_yields_text_in_order() -> None:
    llm = _FakeLlama(pieces=["Hel", "lo"])
    assert _collect(_handle(llm)) == ["Hel", "lo"]
    assert llm.calls[0]["messages"] == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
    ]
    assert llm.calls[0]["max_tokens"] == 64


def test_worker_errors_reach_the_consumer() -> None:
    llm = _FakeLlama(pieces=["partial"], error=RuntimeError("llama crashed"))
    with pytest.raises(RuntimeError, match="llama crashed"):
        _collect(_handle(llm))


def test_invoke_runs_non_streaming() -> None:
    llm = _FakeLlama(pieces=["all ", "at once"])
    result = asyncio.run(_handle(llm).invoke(TURNS))

    assert result.text == "all at once"
    assert llm.calls[0]["stream"] is False


def test_local_profile_does_not_bind_tools() -> None:
    handle = _handle(_FakeLlama())
    assert handle.bind_tools([]) is handle

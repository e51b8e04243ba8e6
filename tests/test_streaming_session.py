"""Tests for StreamingSession with scripted model handles."""

from __future__ import annotations

import asyncio

import pytest

from llm_relay.clients.base import ModelHandle, StreamChunk, ToolCallChunk
from llm_relay.core.cancellation import CancelToken
from llm_relay.models.content import AdaptedTurn
from llm_relay.providers import ProviderKind, get_profile
from llm_relay.streaming.session import StreamingSession
from llm_relay.utils.config import ModelDefinition


class _ScriptedHandle(ModelHandle):
    """Yields preset chunks; ``on_resume`` runs after the consumer takes chunk i."""

    def __init__(self, chunks, on_resume=None, error: Exception | None = None):
        super().__init__(ModelDefinition(alias="fake", model_id="fake-model"), get_profile(ProviderKind.OPENAI))
        self.chunks = chunks
        self.on_resume = on_resume
        self.error = error
        self.closed = False
        self.seen_turns = None

    async def stream(self, turns):
        self.seen_turns = turns
        try:
            for i, chunk in enumerate(self.chunks):
                yield chunk
                if self.on_resume is not None:
                    self.on_resume(i)
            if self.error is not None:
                raise self.error
        finally:
            self.closed = True


TURNS = [AdaptedTurn("system", "sys"), AdaptedTurn("user", "Hello!")]


def _run(session, handle, token=None):
    updates: list[tuple[str, list[str] | None]] = []

    async def on_text(text, citations):
        updates.append((text, citations))

    result = asyncio.run(session.run(TURNS, handle, token, on_text=on_text))
    return result, updates


def test_streams_text_and_reports_cumulative_updates() -> None:
    handle = _ScriptedHandle([StreamChunk(content="Hi"), StreamChunk(content=" there"), StreamChunk(content="!")])
    result, updates = _run(StreamingSession(), handle)

    assert result.text == "Hi there!"
    assert result.cancelled is False
    assert [text for text, _ in updates] == ["Hi", "Hi there", "Hi there!"]
    assert handle.seen_turns == TURNS
    assert handle.closed is True


def test_cancel_stops_before_next_chunk() -> None:
    token = CancelToken()

    def cancel_after_second(i: int) -> None:
        if i == 1:
            token.cancel()

    chunks = [StreamChunk(content=c) for c in ["one ", "two ", "three ", "four"]]
    handle = _ScriptedHandle(chunks, on_resume=cancel_after_second)
    result, updates = _run(StreamingSession(), handle, token)

    assert result.cancelled is True
    assert result.text == "one two "
    assert updates[-1][0] == "one two "
    assert result.tool_invocations == []
    assert handle.closed is True


def test_cancel_after_last_chunk_still_reports_cancelled() -> None:
    token = CancelToken()
    handle = _ScriptedHandle([StreamChunk(content="done")], on_resume=lambda i: token.cancel())
    result, _ = _run(StreamingSession(), handle, token)

    assert result.cancelled is True
    assert result.text == "done"


def test_tool_fragments_finalized_at_end() -> None:
    handle = _ScriptedHandle([
        StreamChunk(tool_call_chunks=[ToolCallChunk(index=0, id="c1", name="time", args="")]),
        StreamChunk(tool_call_chunks=[ToolCallChunk(index=0, args="{}")]),
    ])
    result, updates = _run(StreamingSession(), handle)

    assert [(i.id, i.name) for i in result.tool_invocations] == [("c1", "time")]
    assert updates == []


def test_citation_only_chunk_triggers_update() -> None:
    handle = _ScriptedHandle([StreamChunk(content="A"), StreamChunk(citations=["https://src"])])
    result, updates = _run(StreamingSession(), handle)

    assert result.citations == ["https://src"]
    assert updates[-1] == ("A", ["https://src"])


def test_provider_error_propagates_and_closes_stream() -> None:
    handle = _ScriptedHandle([StreamChunk(content="partial")], error=RuntimeError("boom"))
    with pytest.raises(RuntimeError, match="boom"):
        _run(StreamingSession(), handle)
    assert handle.closed is True


def test_rate_samples_reported() -> None:
    ticks = iter(float(t) for t in range(100))
    session = StreamingSession(sample_interval=1.0, clock=lambda: next(ticks))
    handle = _ScriptedHandle([StreamChunk(content="abcd" * 3) for _ in range(3)])
    samples = []

    async def on_rate(sample):
        samples.append(sample)

    asyncio.run(session.run(TURNS, handle, on_rate=on_rate))

    assert samples
    assert samples[-1].total_tokens == 9

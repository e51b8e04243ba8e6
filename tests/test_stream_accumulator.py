"""Tests for StreamAccumulator: fragments, citations, rate samples and finalize."""

from __future__ import annotations

from llm_relay.clients.base import StreamChunk, ToolCallChunk
from llm_relay.streaming.accumulator import StreamAccumulator, estimate_tokens, parse_tool_arguments


class _FakeClock:
    def __init__(self, now: float = 100.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_text_is_concatenated_in_order() -> None:
    acc = StreamAccumulator()
    for piece in ["Hel", "lo", "!"]:
        acc.add_chunk(StreamChunk(content=piece))

    invocations, text = acc.finalize()
    assert text == "Hello!"
    assert invocations == []


def test_structured_content_contributes_its_text() -> None:
    acc = StreamAccumulator()
    returned = acc.add_chunk(StreamChunk(content=[{"type": "text", "text": "a"}, {"type": "tool_use"}, "b"]))
    assert returned == "ab"
    assert acc.text_buffer == "ab"


def test_fragments_reassemble_by_index() -> None:
    acc = StreamAccumulator()
    acc.add_chunk(StreamChunk(tool_call_chunks=[ToolCallChunk(index=0, id="c1", name="search", args='{"q":')]))
    acc.add_chunk(StreamChunk(tool_call_chunks=[ToolCallChunk(index=0, args='"x"}')]))

    invocations, _ = acc.finalize()
    assert len(invocations) == 1
    assert invocations[0].id == "c1"
    assert invocations[0].name == "search"
    assert invocations[0].parameters == {"q": "x"}
    assert invocations[0].error is None


def test_later_empty_id_does_not_erase_earlier_id() -> None:
    acc = StreamAccumulator()
    acc.add_chunk(StreamChunk(tool_call_chunks=[ToolCallChunk(index=2, id="abc", name="t", args="{")]))
    acc.add_chunk(StreamChunk(tool_call_chunks=[ToolCallChunk(index=2, id="", name="", args="}")]))

    fragment = acc.tool_call_fragments[2]
    assert (fragment.id, fragment.name, fragment.args) == ("abc", "t", "{}")


def test_fragments_are_ordered_by_index() -> None:
    acc = StreamAccumulator()
    acc.add_chunk(StreamChunk(tool_call_chunks=[
        ToolCallChunk(index=1, id="b", name="second", args="{}"),
        ToolCallChunk(index=0, id="a", name="first", args="{}"),
    ]))
    invocations, _ = acc.finalize()
    assert [i.name for i in invocations] == ["first", "second"]


def test_fragment_without_name_is_discarded() -> None:
    acc = StreamAccumulator()
    acc.add_chunk(StreamChunk(tool_call_chunks=[ToolCallChunk(index=0, args='{"q": 1}')]))
    invocations, _ = acc.finalize()
    assert invocations == []


def test_malformed_fragment_arguments_are_recorded() -> None:
    acc = StreamAccumulator()
    acc.add_chunk(StreamChunk(tool_call_chunks=[ToolCallChunk(index=0, id="c", name="search", args='{"q": ')]))

    invocations, _ = acc.finalize()
    assert invocations[0].parameters == {}
    assert "Malformed arguments for tool 'search'" in invocations[0].error


def test_complete_calls_win_over_fragments() -> None:
    acc = StreamAccumulator()
    acc.add_chunk(StreamChunk(tool_call_chunks=[ToolCallChunk(index=0, id="f", name="frag", args="{}")]))
    acc.add_chunk(StreamChunk(tool_calls=[{"id": "c", "name": "complete", "args": {"a": 1}}]))

    invocations, _ = acc.finalize()
    assert [(i.id, i.name, i.parameters) for i in invocations] == [("c", "complete", {"a": 1})]


def test_embedded_json_used_only_without_native_calls() -> None:
    text = 'Let me look.\n```json\n{"tool": "web_search", "parameters": {"query": "cats"}}\n```'
    acc = StreamAccumulator()
    acc.add_chunk(StreamChunk(content=text))

    invocations, cleaned = acc.finalize()
    assert invocations[0].name == "web_search"
    assert invocations[0].parameters == {"query": "cats"}
    assert cleaned == "Let me look."


def test_citations_last_wins() -> None:
    acc = StreamAccumulator()
    acc.add_chunk(StreamChunk(content="a", citations=["https://one"]))
    acc.add_chunk(StreamChunk(content="b"))
    assert acc.citations == ["https://one"]

    acc.add_chunk(StreamChunk(content="c", citations=["https://two", "https://three"]))
    assert acc.citations == ["https://two", "https://three"]


def test_rate_sampling_respects_interval_and_warmup() -> None:
    clock = _FakeClock()
    acc = StreamAccumulator(sample_interval=1.0, clock=clock)
    acc.add_chunk(StreamChunk(content="x" * 40))

    clock.now += 0.4
    assert acc.sample_rate() is None

    clock.now += 0.7
    sample = acc.sample_rate()
    assert sample is not None
    assert sample.total_tokens == 10
    assert sample.tokens_per_second == round(10 / 1.1, 2)

    clock.now += 0.5
    assert acc.sample_rate() is None


def test_estimate_tokens_never_zero() -> None:
    assert estimate_tokens("a") == 1
    assert estimate_tokens("abcdefgh") == 2


def test_tool_call_only_chunks_still_count_tokens() -> None:
    acc = StreamAccumulator()
    acc.add_chunk(StreamChunk(tool_call_chunks=[ToolCallChunk(index=0, id="c1", name="search", args='{"q":')]))
    acc.add_chunk(StreamChunk(tool_call_chunks=[ToolCallChunk(index=0, args='"x"}')]))

    assert acc.token_count == 2
    assert acc.text_buffer == ""


def test_parse_tool_arguments() -> None:
    assert parse_tool_arguments("t", {"a": 1}) == ({"a": 1}, None)
    assert parse_tool_arguments("t", "") == ({}, None)
    assert parse_tool_arguments("t", None) == ({}, None)
    assert parse_tool_arguments("t", "[1, 2]")[1] == "Malformed arguments for tool 't': expected an object"
    assert parse_tool_arguments("t", 5)[1].endswith("got int")

"""Per-call accumulation of streamed text, tool-call fragments and citations."""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable
from uuid import uuid4

from ..clients.base import StreamChunk, ToolCallChunk
from ..models.turn import ToolInvocation
from ..tools.parser import parse_embedded_tool_calls

logger = logging.getLogger(__name__)

# Streaming must run this long before a rate sample is meaningful
MIN_RATE_ELAPSED = 0.5


@dataclass
class ToolCallFragment:
    index: int
    id: str = ""
    name: str = ""
    args: str = ""


@dataclass
class RateSample:
    tokens_per_second: float
    total_tokens: int


def estimate_tokens(text: str) -> int:
    return max(1, len(text) // 4)


def parse_tool_arguments(name: str, args: Any) -> tuple[dict[str, Any], str | None]:
    """Parse tool-call arguments into a dict.

    Returns:
        Tuple of (parameters, error). ``error`` is set when the arguments
        are not a JSON object; the invocation is then reported, not run.
    """
    if isinstance(args, dict):
        return args, None
    if args is None or (isinstance(args, str) and not args.strip()):
        return {}, None
    if not isinstance(args, str):
        return {}, f"Malformed arguments for tool '{name}': expected an object, got {type(args).__name__}"
    try:
        parsed = json.loads(args)
    except json.JSONDecodeError as e:
        return {}, f"Malformed arguments for tool '{name}': {e.msg}"
    if not isinstance(parsed, dict):
        return {}, f"Malformed arguments for tool '{name}': expected an object"
    return parsed, None


@dataclass
class StreamAccumulator:
    """Owned by one streaming session; finalized once when the stream ends."""

    sample_interval: float = 1.0
    clock: Callable[[], float] = time.monotonic
    text_buffer: str = ""
    tool_call_fragments: dict[int, ToolCallFragment] = field(default_factory=dict)
    complete_tool_calls: list[dict[str, Any]] = field(default_factory=list)
    citations: list[str] | None = None
    token_count: int = 0
    started_at: float = 0.0
    last_sample_time: float = 0.0

    def __post_init__(self) -> None:
        now = self.clock()
        self.started_at = now
        self.last_sample_time = now

    def add_chunk(self, chunk: StreamChunk) -> str:
        """Merge one chunk and return the text it contributed."""
        text = chunk.text
        if chunk.citations:
            self.citations = list(chunk.citations)
        for fragment in chunk.tool_call_chunks:
            self._merge_fragment(fragment)
        if chunk.tool_calls:
            self.complete_tool_calls.extend(chunk.tool_calls)
        if text:
            self.text_buffer += text
        # Every chunk counts, including tool-call-only chunks
        self.token_count += estimate_tokens(text)
        return text

    def _merge_fragment(self, incoming: ToolCallChunk) -> None:
        existing = self.tool_call_fragments.get(incoming.index)
        if existing is None:
            self.tool_call_fragments[incoming.index] = ToolCallFragment(
                index=incoming.index,
                id=incoming.id or "",
                name=incoming.name or "",
                args=incoming.args or "",
            )
            return
        if incoming.id:
            existing.id = incoming.id
        if incoming.name:
            existing.name = incoming.name
        if incoming.args:
            existing.args += incoming.args

    def sample_rate(self) -> RateSample | None:
        """A tokens/second sample, at most once per ``sample_interval``."""
        now = self.clock()
        if now - self.last_sample_time < self.sample_interval:
            return None
        elapsed = now - self.started_at
        if elapsed <= MIN_RATE_ELAPSED:
            return None
        self.last_sample_time = now
        return RateSample(tokens_per_second=round(self.token_count / elapsed, 2), total_tokens=self.token_count)

    def finalize(self) -> tuple[list[ToolInvocation], str]:
        """Build tool invocations and the display text.

        Complete provider tool calls win over fragments; fragments win over
        JSON recovered from the text. Recovered blocks are stripped from
        the returned text.
        """
        if self.complete_tool_calls:
            return [self._from_complete(call) for call in self.complete_tool_calls], self.text_buffer

        invocations = [
            self._from_fragment(fragment)
            for _, fragment in sorted(self.tool_call_fragments.items())
            if fragment.name and fragment.args
        ]
        if invocations:
            return invocations, self.text_buffer

        recovered, cleaned = parse_embedded_tool_calls(self.text_buffer)
        if recovered:
            return recovered, cleaned
        return [], self.text_buffer

    @staticmethod
    def _from_complete(call: dict[str, Any]) -> ToolInvocation:
        name = call.get("name", "")
        parameters, error = parse_tool_arguments(name, call.get("args", call.get("arguments")))
        return ToolInvocation(id=call.get("id") or f"call_{uuid4().hex[:12]}", name=name,
                              parameters=parameters, error=error)

    @staticmethod
    def _from_fragment(fragment: ToolCallFragment) -> ToolInvocation:
        parameters, error = parse_tool_arguments(fragment.name, fragment.args)
        if error:
            logger.warning(error)
        return ToolInvocation(id=fragment.id or f"call_{uuid4().hex[:12]}", name=fragment.name,
                              parameters=parameters, error=error)

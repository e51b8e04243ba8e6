from .accumulator import RateSample, StreamAccumulator, ToolCallFragment, estimate_tokens, parse_tool_arguments
from .session import StreamingSession, StreamResult

__all__ = [
    "RateSample",
    "StreamAccumulator",
    "StreamResult",
    "StreamingSession",
    "ToolCallFragment",
    "estimate_tokens",
    "parse_tool_arguments",
]

"""Tool definitions, execution and the continuation round."""

from .definitions import TIME_TOOL, ToolDefinition, ToolParameter
from .executor import FunctionToolExecutor, ToolExecutor, default_executor
from .parser import KNOWN_TOOLS, parse_embedded_tool_calls

__all__ = [
    "KNOWN_TOOLS",
    "TIME_TOOL",
    "FunctionToolExecutor",
    "ToolDefinition",
    "ToolExecutor",
    "ToolParameter",
    "default_executor",
    "parse_embedded_tool_calls",
]

"""Tool executors.

The continuation loop only needs ``execute(name, parameters)``; the
``FunctionToolExecutor`` maps tool names to plain Python callables and
also supplies the definitions bound to tool-capable models.
"""

import asyncio
import inspect
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Callable

from ..core.errors import ToolExecutionError
from .definitions import TIME_TOOL, ToolDefinition

logger = logging.getLogger(__name__)


class ToolExecutor(ABC):
    """Runs a named tool; may raise."""

    @abstractmethod
    async def execute(self, name: str, parameters: dict[str, Any]) -> Any:
        pass

    def definitions(self) -> list[ToolDefinition]:
        """Tools to bind to models that support native tool calling."""
        return []


class FunctionToolExecutor(ToolExecutor):
    """Executes registered callables; synchronous ones run in a worker thread."""

    def __init__(self) -> None:
        self._tools: dict[str, tuple[ToolDefinition, Callable[..., Any]]] = {}

    def register(self, definition: ToolDefinition, func: Callable[..., Any]) -> None:
        self._tools[definition.name] = (definition, func)

    def definitions(self) -> list[ToolDefinition]:
        return [definition for definition, _ in self._tools.values()]

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    async def execute(self, name: str, parameters: dict[str, Any]) -> Any:
        entry = self._tools.get(name)
        if entry is None:
            raise ToolExecutionError(name, f"Unknown tool: {name}")
        _, func = entry

        start = time.time()
        if inspect.iscoroutinefunction(func):
            result = await func(**parameters)
        else:
            result = await asyncio.to_thread(func, **parameters)
        logger.debug(f"Tool '{name}' finished in {(time.time() - start) * 1000:.0f}ms")
        return result


def current_time() -> str:
    """Current local date and time, e.g. 'Thursday, January 23, 2026 at 06:45 PM (UTC)'."""
    now = datetime.now().astimezone()
    return f"{now.strftime('%A, %B %d, %Y at %I:%M %p')} ({now.tzname()})"


def default_executor() -> FunctionToolExecutor:
    executor = FunctionToolExecutor()
    executor.register(TIME_TOOL, current_time)
    return executor

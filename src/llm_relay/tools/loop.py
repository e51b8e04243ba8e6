"""Tool-execution continuation round.

After a stream ends with tool invocations:
1. Execute them sequentially (stopping if the turn is cancelled)
2. Fold the results into one synthetic follow-up user turn
3. Stream exactly once more so the model can answer with the results

Tool calls produced by the second round are not executed.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from ..adapters.alternation import normalize_alternation
from ..clients.base import ModelHandle
from ..core.cancellation import CancelToken
from ..models.content import AdaptedTurn
from ..models.turn import ROLE_ASSISTANT, ROLE_SYSTEM, ROLE_USER, ToolInvocation, ToolResult
from ..providers.profile import ProviderProfile
from ..shared.logging import get_service_logger
from ..streaming.session import RateCallback, StreamingSession, StreamResult, TextCallback
from .executor import ToolExecutor

logger = logging.getLogger(__name__)
log = get_service_logger(__name__)

FOLLOW_UP_INSTRUCTION = (
    "Please respond to the user with the relevant information from the tool results. "
    "Include the actual content/data from the tools when it's helpful to the user."
)

ResultsCallback = Callable[[list[ToolResult]], Awaitable[None]]


def format_tool_result(result: Any) -> str:
    """Display text for one tool result.

    Prefers a ``content`` or ``text`` field, then ``error`` (prefixed
    ``Error:``), then ``key: value`` pairs; anything else is stringified.
    """
    if isinstance(result, str):
        return result
    if isinstance(result, dict):
        for key in ("content", "text"):
            value = result.get(key)
            if value:
                return value if isinstance(value, str) else str(value)
        if result.get("error"):
            return f"Error: {result['error']}"
        if result:
            return ", ".join(f"{key}: {value}" for key, value in result.items())
    return str(result)


def build_follow_up_prompt(results: list[ToolResult]) -> str:
    joined = "\n\n".join(f"Tool {r.name} result:\n{format_tool_result(r.result)}" for r in results)
    return f"Tool execution results:\n{joined}\n\n{FOLLOW_UP_INSTRUCTION}"


def build_follow_up_turns(
    turns: list[AdaptedTurn],
    assistant_text: str,
    results: list[ToolResult],
    profile: ProviderProfile,
) -> list[AdaptedTurn]:
    follow_up = [*turns]
    if assistant_text.strip():
        follow_up.append(AdaptedTurn(ROLE_ASSISTANT, assistant_text))
    follow_up.append(AdaptedTurn(ROLE_USER, build_follow_up_prompt(results)))

    if profile.requires_strict_alternation:
        system = [turn for turn in follow_up if turn.role == ROLE_SYSTEM]
        rest = [turn for turn in follow_up if turn.role != ROLE_SYSTEM]
        follow_up = system[:1] + normalize_alternation(rest)
    return follow_up


@dataclass
class ContinuationResult:
    results: list[ToolResult] = field(default_factory=list)
    stream: StreamResult | None = None
    cancelled: bool = False


class ToolContinuationLoop:
    """Executes one round of tool invocations and streams the follow-up."""

    def __init__(self, executor: ToolExecutor, session: StreamingSession):
        self.executor = executor
        self.session = session

    async def execute_all(
        self,
        invocations: list[ToolInvocation],
        cancel_token: CancelToken | None = None,
    ) -> tuple[list[ToolResult], bool]:
        """Run invocations in order.

        Returns:
            Tuple of (results, cancelled). Failures become
            ``{"success": False, "error": ...}`` entries.
        """
        results: list[ToolResult] = []
        for invocation in invocations:
            if cancel_token is not None and cancel_token.is_cancelled:
                return results, True

            if invocation.error:
                log.tool_call(invocation.name, invocation.parameters, success=False)
                results.append(ToolResult(invocation.id, invocation.name,
                                          {"success": False, "error": invocation.error}))
                continue

            start = time.time()
            try:
                result = await self.executor.execute(invocation.name, invocation.parameters)
            except Exception as e:
                log.tool_call(invocation.name, invocation.parameters, success=False,
                              duration_ms=(time.time() - start) * 1000)
                logger.warning(f"Tool '{invocation.name}' failed: {e}")
                result = {"success": False, "error": str(e) or e.__class__.__name__}
            else:
                log.tool_call(invocation.name, invocation.parameters,
                              duration_ms=(time.time() - start) * 1000)
            results.append(ToolResult(invocation.id, invocation.name, result))

        cancelled = cancel_token is not None and cancel_token.is_cancelled
        return results, cancelled

    async def run(
        self,
        turns: list[AdaptedTurn],
        first_round: StreamResult,
        handle: ModelHandle,
        cancel_token: CancelToken | None = None,
        on_results: ResultsCallback | None = None,
        on_text: TextCallback | None = None,
        on_rate: RateCallback | None = None,
    ) -> ContinuationResult:
        results, cancelled = await self.execute_all(first_round.tool_invocations, cancel_token)
        if cancelled:
            return ContinuationResult(results=results, cancelled=True)

        if on_results is not None:
            await on_results(results)

        follow_up = build_follow_up_turns(turns, first_round.text, results, handle.profile)
        log.llm_request(handle.label, handle.profile.kind.value, len(follow_up), round_number=2)
        second = await self.session.run(follow_up, handle, cancel_token, on_text=on_text, on_rate=on_rate)
        if second.tool_invocations:
            logger.info(f"Ignoring {len(second.tool_invocations)} tool call(s) from the continuation round")
        return ContinuationResult(results=results, stream=second, cancelled=second.cancelled)

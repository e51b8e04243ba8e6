"""One streaming generation over a model handle."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from ..clients.base import ModelHandle
from ..core.cancellation import CancelToken
from ..models.content import AdaptedTurn
from ..models.turn import ToolInvocation
from .accumulator import RateSample, StreamAccumulator

logger = logging.getLogger(__name__)

TextCallback = Callable[[str, "list[str] | None"], Awaitable[None]]
RateCallback = Callable[[RateSample], Awaitable[None]]


@dataclass
class StreamResult:
    text: str
    tool_invocations: list[ToolInvocation] = field(default_factory=list)
    citations: list[str] | None = None
    token_count: int = 0
    elapsed: float = 0.0
    cancelled: bool = False


class StreamingSession:
    """Drives ``handle.stream`` and merges chunks into a ``StreamResult``.

    Progress goes out through two callbacks: ``on_text`` receives the
    cumulative text (and latest citations) whenever a chunk changes them,
    and ``on_rate`` receives tokens/second samples. Provider errors are not
    retried; they propagate to the caller.
    """

    def __init__(self, sample_interval: float = 1.0, clock: Callable[[], float] = time.monotonic):
        self.sample_interval = sample_interval
        self.clock = clock

    async def run(
        self,
        turns: list[AdaptedTurn],
        handle: ModelHandle,
        cancel_token: CancelToken | None = None,
        on_text: TextCallback | None = None,
        on_rate: RateCallback | None = None,
    ) -> StreamResult:
        accumulator = StreamAccumulator(sample_interval=self.sample_interval, clock=self.clock)
        started = self.clock()
        cancelled = False

        stream = handle.stream(turns)
        try:
            async for chunk in stream:
                if cancel_token is not None and cancel_token.is_cancelled:
                    cancelled = True
                    break

                text = accumulator.add_chunk(chunk)
                if on_text is not None and (text or chunk.citations):
                    await on_text(accumulator.text_buffer, accumulator.citations)

                sample = accumulator.sample_rate()
                if sample is not None and on_rate is not None:
                    await on_rate(sample)
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()

        if not cancelled and cancel_token is not None and cancel_token.is_cancelled:
            cancelled = True

        elapsed = self.clock() - started
        if cancelled:
            logger.debug(f"Stream cancelled after ~{accumulator.token_count} tokens")
            return StreamResult(
                text=accumulator.text_buffer,
                citations=accumulator.citations,
                token_count=accumulator.token_count,
                elapsed=elapsed,
                cancelled=True,
            )

        invocations, text = accumulator.finalize()
        return StreamResult(
            text=text,
            tool_invocations=invocations,
            citations=accumulator.citations,
            token_count=accumulator.token_count,
            elapsed=elapsed,
        )

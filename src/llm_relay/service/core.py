"""Long-lived service state shared by the HTTP routes."""

import asyncio
import json
import time
from typing import AsyncIterator

from ..core.cancellation import CancelToken
from ..core.controller import HandleFactory, SessionController
from ..core.errors import ProviderConfigError
from ..core.publisher import ProgressPublisher
from ..core.store import ConversationStore, InMemoryConversationStore
from ..clients.factory import create_model_handle
from ..models.turn import ConversationTurn
from ..shared.logging import get_service_logger
from ..tools.executor import ToolExecutor, default_executor
from ..utils.config import Config
from .schemas import MessageRequest, ServiceStatusResponse

log = get_service_logger(__name__)

# Seconds of silence before an SSE keepalive comment is sent
KEEPALIVE_INTERVAL = 15.0


def sse_event(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"


class RelayService:
    def __init__(
        self,
        config: Config,
        store: ConversationStore | None = None,
        executor: ToolExecutor | None = None,
        handle_factory: HandleFactory = create_model_handle,
    ):
        self.config = config
        self.store = store or InMemoryConversationStore()
        self.publisher = ProgressPublisher(max_queue_size=config.PUBLISHER_QUEUE_SIZE)
        self.controller = SessionController(
            store=self.store,
            publisher=self.publisher,
            config=config,
            executor=executor or default_executor(),
            handle_factory=handle_factory,
        )
        self.keepalive_interval = KEEPALIVE_INTERVAL
        self._started_at = time.time()

    def get_status(self) -> ServiceStatusResponse:
        return ServiceStatusResponse(
            uptime_seconds=round(time.time() - self._started_at, 1),
            active_generations=len(self.controller.cancellations),
            event_subscribers=self.publisher.subscriber_count(self.config.PROGRESS_TOPIC),
            available_models=self.config.get_model_options(),
            default_model=self.config.DEFAULT_MODEL_ALIAS,
        )

    async def send_message(self, thread_id: str, request: MessageRequest,
                           cancel_token: CancelToken | None = None, on_update=None) -> ConversationTurn:
        return await self.controller.process_message(
            thread_id,
            request.content,
            model_alias=request.model,
            system_prompt=request.system_prompt,
            images=[image.to_attachment() for image in request.images],
            notes=[note.to_attachment() for note in request.notes],
            user_message_id=request.message_id,
            include_prior_conversation=request.include_prior_conversation,
            cancel_token=cancel_token,
            on_update=on_update,
        )

    async def send_message_stream(self, thread_id: str, request: MessageRequest) -> AsyncIterator[str]:
        """SSE stream of assistant turn snapshots while the message is processed.

        Closing the stream (client disconnect) cancels the generation.
        """
        updates: asyncio.Queue = asyncio.Queue()
        cancel_token = CancelToken()

        async def on_update(turn: ConversationTurn) -> None:
            updates.put_nowait(turn)

        task = asyncio.create_task(self.send_message(thread_id, request, cancel_token, on_update))
        task.add_done_callback(lambda _: updates.put_nowait(None))  # Sentinel

        try:
            while True:
                try:
                    turn = await asyncio.wait_for(updates.get(), timeout=self.keepalive_interval)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                if turn is None:
                    break
                yield sse_event({"thread_id": thread_id, "message": turn.to_dict()})

            try:
                final = await task
            except (ValueError, ProviderConfigError) as e:
                log.warning(f"Rejected streamed message in thread {thread_id}: {e}")
                yield sse_event({"thread_id": thread_id, "error": str(e), "done": True})
            else:
                yield sse_event({"thread_id": thread_id, "message": final.to_dict(), "done": True})
            yield "data: [DONE]\n\n"
        finally:
            if not task.done():
                log.info(f"Client disconnected; cancelling generation in thread {thread_id}")
                cancel_token.cancel()
                await asyncio.wait({task})

    async def events(self, topic: str | None = None) -> AsyncIterator[str]:
        """SSE fan-out of progress events for ``topic``."""
        with self.publisher.subscribe(topic or self.config.PROGRESS_TOPIC) as subscription:
            while True:
                try:
                    event = await subscription.get(timeout=self.keepalive_interval)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                yield sse_event(event)

    async def shutdown(self) -> None:
        await self.controller.aclose()

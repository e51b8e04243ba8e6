"""Session controller: one user message in, one finished assistant turn out.

    Idle -> UserPersisted -> Streaming(1) -> [ToolExecuting -> Streaming(2)]?
         -> Finalized | Cancelled | Failed

Every state change is patched into the conversation store and published
on the progress topic. Provider failures never escape ``process_message``;
they end as a cancelled assistant turn carrying a readable explanation.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from enum import Enum
from typing import Any, Awaitable, Callable

from ..adapters.content import turn_text
from ..adapters.message_adapter import adapt
from ..clients.base import ModelHandle
from ..clients.factory import create_model_handle
from ..models.turn import (
    ROLE_ASSISTANT,
    ROLE_SYSTEM,
    ROLE_USER,
    Attachments,
    ConversationTurn,
    ImageAttachment,
    NotesAttachment,
    ToolResult,
    TurnStatus,
)
from ..shared.logging import generate_request_id, get_request_id, get_service_logger, set_request_id
from ..streaming.accumulator import RateSample
from ..streaming.session import StreamingSession, StreamResult
from ..tools.executor import FunctionToolExecutor, ToolExecutor
from ..tools.loop import ToolContinuationLoop
from ..utils.config import Config, ModelDefinition
from .cancellation import CancellationRegistry, CancelToken
from .errors import classify_error
from .publisher import ProgressPublisher
from .store import ConversationStore, MessageNotFoundError

log = get_service_logger(__name__)

UpdateCallback = Callable[[ConversationTurn], "Awaitable[None] | None"]
HandleFactory = Callable[[ModelDefinition, Config], ModelHandle]


def _serialize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_serialize(item) for item in value]
    if hasattr(value, "to_dict"):
        return value.to_dict()
    return value


class SessionController:
    def __init__(
        self,
        store: ConversationStore,
        publisher: ProgressPublisher,
        config: Config,
        executor: ToolExecutor | None = None,
        handle_factory: HandleFactory = create_model_handle,
        cancellations: CancellationRegistry | None = None,
        session: StreamingSession | None = None,
    ):
        self.store = store
        self.publisher = publisher
        self.config = config
        self.executor = executor or FunctionToolExecutor()
        self.handle_factory = handle_factory
        self.cancellations = cancellations or CancellationRegistry()
        self.session = session or StreamingSession(sample_interval=config.RATE_SAMPLE_INTERVAL)
        self.continuation = ToolContinuationLoop(self.executor, self.session)
        self._handles: dict[str, ModelHandle] = {}

    @property
    def topic(self) -> str:
        return self.config.PROGRESS_TOPIC

    # -------------------------------------------------------------------------
    # Model handles
    # -------------------------------------------------------------------------

    def get_handle(self, definition: ModelDefinition) -> ModelHandle:
        handle = self._handles.get(definition.alias)
        if handle is None:
            handle = self.handle_factory(definition, self.config)
            self._handles[definition.alias] = handle
        return handle

    def _bound_handle(self, definition: ModelDefinition) -> ModelHandle:
        handle = self.get_handle(definition)
        tools = self.executor.definitions()
        if tools and handle.profile.tool_binding_supported:
            return handle.bind_tools(tools)
        return handle

    async def aclose(self) -> None:
        for handle in self._handles.values():
            await handle.aclose()
        self._handles.clear()

    # -------------------------------------------------------------------------
    # Progress events
    # -------------------------------------------------------------------------

    def _publish_create(self, thread_id: str, turn: ConversationTurn) -> None:
        self.publisher.publish(self.topic, {
            "type": "create",
            "entity_type": "message",
            "thread_id": thread_id,
            "entity": turn.to_dict(),
        })

    def _publish_update(self, thread_id: str, message_id: str, patch: dict[str, Any]) -> None:
        entity = {"id": message_id}
        entity.update({name: _serialize(value) for name, value in patch.items()})
        self.publisher.publish(self.topic, {
            "type": "update",
            "entity_type": "message",
            "thread_id": thread_id,
            "entity": entity,
        })

    def _publish_rate(self, thread_id: str, message_id: str, sample: RateSample, final: bool = False) -> None:
        event = {
            "type": "token",
            "thread_id": thread_id,
            "message_id": message_id,
            "tokens_per_second": sample.tokens_per_second,
            "total_tokens": sample.total_tokens,
        }
        if final:
            event["final"] = True
        self.publisher.publish(self.topic, event)

    async def _patch(
        self,
        thread_id: str,
        message_id: str,
        patch: dict[str, Any],
        on_update: UpdateCallback | None = None,
    ) -> ConversationTurn:
        turn = await self.store.update_message(thread_id, message_id, patch)
        self._publish_update(thread_id, message_id, patch)
        if on_update is not None:
            try:
                result = on_update(turn)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                log.warning(f"Update callback failed for message {message_id}: {e}")
                log.debug("Update callback traceback", exc_info=True)
        return turn

    # -------------------------------------------------------------------------
    # process_message
    # -------------------------------------------------------------------------

    def resolve_system_prompt(self, system_prompt: str | None) -> str:
        """The prompt to use; raises ``ValueError`` when it is blank."""
        system_prompt = system_prompt if system_prompt is not None else self.config.SYSTEM_MESSAGE
        if not system_prompt or not system_prompt.strip():
            raise ValueError("A non-empty system prompt is required")
        return system_prompt

    async def process_message(
        self,
        thread_id: str,
        user_message: str,
        *,
        model_alias: str | None = None,
        system_prompt: str | None = None,
        images: list[ImageAttachment] | None = None,
        notes: list[NotesAttachment] | None = None,
        user_message_id: str | None = None,
        include_prior_conversation: bool | None = None,
        cancel_token: CancelToken | None = None,
        on_update: UpdateCallback | None = None,
    ) -> ConversationTurn:
        """Answer ``user_message`` in ``thread_id`` and return the assistant turn."""
        system_prompt = self.resolve_system_prompt(system_prompt)
        if not isinstance(user_message, str):
            raise ValueError("User message must be a string")
        if include_prior_conversation is None:
            include_prior_conversation = self.config.INCLUDE_PRIOR_CONVERSATION

        if get_request_id() is None:
            set_request_id(generate_request_id())

        definition = self.config.get_model(model_alias)

        await self._persist_user_turn(thread_id, user_message, images, notes, user_message_id)

        placeholder = ConversationTurn(
            role=ROLE_ASSISTANT,
            content="",
            status=TurnStatus.PROCESSING,
            model=definition.label,
        )
        await self.store.add_message(thread_id, placeholder)
        self._publish_create(thread_id, placeholder)

        token = self.cancellations.register(thread_id, placeholder.id, cancel_token)
        try:
            return await self._generate(thread_id, placeholder.id, definition, system_prompt,
                                        include_prior_conversation, token, on_update)
        except asyncio.CancelledError:
            await self._final_patch(thread_id, placeholder.id, {"status": TurnStatus.CANCELLED}, None)
            raise
        except Exception as e:
            return await self._fail(thread_id, placeholder.id, e, on_update)
        finally:
            self.cancellations.release(thread_id, placeholder.id)

    async def _persist_user_turn(
        self,
        thread_id: str,
        content: str,
        images: list[ImageAttachment] | None,
        notes: list[NotesAttachment] | None,
        message_id: str | None,
    ) -> ConversationTurn:
        if message_id:
            existing = await self.store.get_message(thread_id, message_id)
            if existing is not None:
                log.debug(f"User turn {message_id} already stored; reusing it")
                return existing

        attachments = Attachments(images=list(images or []), notes=list(notes or []))
        turn = ConversationTurn(role=ROLE_USER, content=content, attachments=attachments or None)
        if message_id:
            turn.id = message_id
        log.turn_received(thread_id, content, len(attachments.images), len(attachments.notes))
        await self.store.add_message(thread_id, turn)
        self._publish_create(thread_id, turn)
        return turn

    async def _generate(
        self,
        thread_id: str,
        message_id: str,
        definition: ModelDefinition,
        system_prompt: str,
        include_prior_conversation: bool,
        token: CancelToken,
        on_update: UpdateCallback | None,
    ) -> ConversationTurn:
        handle = self._bound_handle(definition)
        history = [turn for turn in await self.store.get_thread_messages(thread_id) if turn.id != message_id]
        turns = adapt(history, handle.profile, system_prompt, include_prior_conversation)
        log.llm_request(definition.label, handle.profile.kind.value, len(turns),
                        payload=[turn.to_dict() for turn in turns])

        async def on_text(text: str, citations: list[str] | None) -> None:
            patch: dict[str, Any] = {"content": text}
            if citations:
                patch["citations"] = citations
            await self._patch(thread_id, message_id, patch, on_update)

        async def on_rate(sample: RateSample) -> None:
            self._publish_rate(thread_id, message_id, sample)

        first = await self.session.run(turns, handle, token, on_text=on_text, on_rate=on_rate)
        if first.cancelled:
            return await self._mark_cancelled(thread_id, message_id, on_update)

        log.llm_response(definition.label, first.elapsed * 1000, first.token_count, len(first.tool_invocations))

        if not first.tool_invocations:
            self._publish_final_rate(thread_id, message_id, [first])
            return await self._patch(thread_id, message_id, {
                "content": first.text,
                "status": TurnStatus.COMPLETED,
                "citations": first.citations,
            }, on_update)

        await self._patch(thread_id, message_id, {
            "content": first.text,
            "tool_calls": first.tool_invocations,
            "status": TurnStatus.PROCESSING,
            "citations": first.citations,
        }, on_update)

        async def on_results(results: list[ToolResult]) -> None:
            await self._patch(thread_id, message_id, {"tool_results": results, "content": ""}, on_update)

        continuation = await self.continuation.run(
            turns, first, handle, token,
            on_results=on_results, on_text=on_text, on_rate=on_rate,
        )
        if continuation.cancelled:
            return await self._mark_cancelled(thread_id, message_id, on_update)

        second = continuation.stream
        log.llm_response(definition.label, second.elapsed * 1000, second.token_count)
        self._publish_final_rate(thread_id, message_id, [first, second])
        return await self._patch(thread_id, message_id, {
            "content": second.text,
            "status": TurnStatus.COMPLETED,
            "citations": second.citations or first.citations,
        }, on_update)

    def _publish_final_rate(self, thread_id: str, message_id: str, rounds: list[StreamResult]) -> None:
        total_tokens = sum(r.token_count for r in rounds)
        elapsed = sum(r.elapsed for r in rounds)
        rate = round(total_tokens / elapsed, 2) if elapsed > 0 else 0.0
        self._publish_rate(thread_id, message_id, RateSample(rate, total_tokens), final=True)

    async def _mark_cancelled(self, thread_id: str, message_id: str,
                              on_update: UpdateCallback | None) -> ConversationTurn:
        log.cancelled(thread_id, message_id)
        return await self._final_patch(thread_id, message_id, {"status": TurnStatus.CANCELLED}, on_update)

    async def _fail(self, thread_id: str, message_id: str, error: Exception,
                    on_update: UpdateCallback | None) -> ConversationTurn:
        classification = classify_error(error)
        log.failure(classification.kind.value, error)

        current = await self.store.get_message(thread_id, message_id)
        content = turn_text(current.content) if current else ""
        content = f"{content}\n\n{classification.message}" if content else classification.message
        return await self._final_patch(thread_id, message_id, {
            "content": content,
            "status": TurnStatus.CANCELLED,
        }, on_update)

    async def _final_patch(self, thread_id: str, message_id: str, patch: dict[str, Any],
                           on_update: UpdateCallback | None) -> ConversationTurn:
        """Record a terminal state; a turn removed mid-generation is returned detached."""
        try:
            return await self._patch(thread_id, message_id, patch, on_update)
        except MessageNotFoundError:
            log.warning(f"Message {message_id} was removed from thread {thread_id} during generation")
            return ConversationTurn(
                id=message_id,
                role=ROLE_ASSISTANT,
                content=patch.get("content", ""),
                status=patch["status"],
            )

    # -------------------------------------------------------------------------
    # Other operations
    # -------------------------------------------------------------------------

    async def cancel_message(self, thread_id: str, message_id: str) -> bool:
        """Stop an in-flight assistant turn.

        Returns:
            True if a running generation was signalled or a processing turn
            was marked cancelled.
        """
        signalled = self.cancellations.cancel(thread_id, message_id)
        turn = await self.store.get_message(thread_id, message_id)
        if turn is None or turn.status != TurnStatus.PROCESSING:
            return signalled
        await self._patch(thread_id, message_id, {"status": TurnStatus.CANCELLED})
        log.cancelled(thread_id, message_id)
        return True

    async def get_conversation(self, thread_id: str) -> list[ConversationTurn]:
        return [turn for turn in await self.store.get_thread_messages(thread_id) if turn.role != ROLE_SYSTEM]

    async def clear_conversation(self, thread_id: str) -> None:
        await self.store.clear_thread(thread_id)

    async def load_conversation(self, thread_id: str, turns: list[ConversationTurn]) -> None:
        await self.store.replace_thread(thread_id, turns)

    async def invoke(
        self,
        thread_id: str,
        user_message: str,
        *,
        model_alias: str | None = None,
        system_prompt: str | None = None,
    ) -> str:
        """Single non-streaming completion over the thread plus ``user_message``.

        Nothing is persisted and tools are not bound.
        """
        definition = self.config.get_model(model_alias)
        handle = self.get_handle(definition)
        history = await self.store.get_thread_messages(thread_id)
        history.append(ConversationTurn(role=ROLE_USER, content=user_message))
        turns = adapt(history, handle.profile, system_prompt or self.config.SYSTEM_MESSAGE)

        start = time.time()
        response = await handle.invoke(turns)
        log.llm_response(definition.label, (time.time() - start) * 1000, max(1, len(response.text) // 4))
        return response.text

"""Tests for the in-memory store, progress publisher and cancellation registry."""

from __future__ import annotations

import asyncio

import pytest

from llm_relay.core.cancellation import CancellationRegistry, CancelToken
from llm_relay.core.publisher import ProgressPublisher
from llm_relay.core.store import InMemoryConversationStore, MessageNotFoundError
from llm_relay.models.turn import ConversationTurn, TurnStatus


class TestInMemoryStore:
    def test_turns_kept_in_insertion_order(self):
        store = InMemoryConversationStore()

        async def scenario():
            await store.add_message("t", ConversationTurn(role="user", content="one"))
            await store.add_message("t", ConversationTurn(role="assistant", content="two"))
            return await store.get_thread_messages("t")

        assert [turn.content for turn in asyncio.run(scenario())] == ["one", "two"]

    def test_returned_turns_are_copies(self):
        store = InMemoryConversationStore()
        turn = ConversationTurn(role="user", content="original")

        async def scenario():
            await store.add_message("t", turn)
            turn.content = "mutated"
            fetched = await store.get_message("t", turn.id)
            fetched.content = "also mutated"
            return await store.get_message("t", turn.id)

        assert asyncio.run(scenario()).content == "original"

    def test_update_applies_patch(self):
        store = InMemoryConversationStore()
        turn = ConversationTurn(role="assistant", status=TurnStatus.PROCESSING)

        async def scenario():
            await store.add_message("t", turn)
            return await store.update_message("t", turn.id, {"content": "done", "status": TurnStatus.COMPLETED})

        updated = asyncio.run(scenario())
        assert updated.content == "done"
        assert updated.status == TurnStatus.COMPLETED

    def test_update_rejects_unknown_fields_and_ids(self):
        store = InMemoryConversationStore()
        turn = ConversationTurn(role="user")
        asyncio.run(store.add_message("t", turn))

        with pytest.raises(ValueError, match="bogus"):
            asyncio.run(store.update_message("t", turn.id, {"bogus": 1}))
        with pytest.raises(MessageNotFoundError):
            asyncio.run(store.update_message("t", "nope", {"content": "x"}))

    def test_clear_and_replace(self):
        store = InMemoryConversationStore()

        async def scenario():
            await store.add_message("t", ConversationTurn(role="user", content="old"))
            await store.replace_thread("t", [ConversationTurn(role="user", content="new")])
            replaced = await store.get_thread_messages("t")
            await store.clear_thread("t")
            return replaced, await store.get_thread_messages("t")

        replaced, cleared = asyncio.run(scenario())
        assert [turn.content for turn in replaced] == ["new"]
        assert cleared == []
        assert store.thread_ids() == []


class TestProgressPublisher:
    def test_events_fan_out_to_topic_subscribers(self):
        publisher = ProgressPublisher()

        async def scenario():
            first = publisher.subscribe("unified-events")
            second = publisher.subscribe("unified-events")
            other = publisher.subscribe("elsewhere")
            publisher.publish("unified-events", {"type": "create"})
            return await first.get(timeout=1), await second.get(timeout=1), other.queue.qsize()

        first, second, other_size = asyncio.run(scenario())
        assert first == second == {"type": "create"}
        assert other_size == 0

    def test_full_queue_drops_without_blocking(self):
        publisher = ProgressPublisher(max_queue_size=2)
        subscription = publisher.subscribe("topic")

        for i in range(5):
            publisher.publish("topic", {"type": "token", "n": i})

        assert subscription.queue.qsize() == 2
        assert subscription.dropped == 3

    def test_publish_without_subscribers_is_a_no_op(self):
        ProgressPublisher().publish("nobody", {"type": "update"})

    def test_closing_subscription_unsubscribes(self):
        publisher = ProgressPublisher()
        with publisher.subscribe("topic"):
            assert publisher.subscriber_count("topic") == 1
        assert publisher.subscriber_count("topic") == 0

    def test_get_times_out(self):
        publisher = ProgressPublisher()
        subscription = publisher.subscribe("topic")
        with pytest.raises(asyncio.TimeoutError):
            asyncio.run(subscription.get(timeout=0.01))


class TestCancellationRegistry:
    def test_cancel_trips_registered_token(self):
        registry = CancellationRegistry()
        token = registry.register("t", "m")

        assert registry.cancel("t", "m") is True
        assert token.is_cancelled is True

    def test_cancel_unknown_returns_false(self):
        assert CancellationRegistry().cancel("t", "m") is False

    def test_release_removes_token(self):
        registry = CancellationRegistry()
        existing = CancelToken()
        assert registry.register("t", "m", existing) is existing
        assert len(registry) == 1

        registry.release("t", "m")
        assert len(registry) == 0
        assert registry.cancel("t", "m") is False

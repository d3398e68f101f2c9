"""
Tests for auto-capture: filters, categories, rate limiting and duplicates.
"""

import asyncio

import pytest

from conftest import FakeEmbeddings, FakeQdrant
from vaultrecall.memory.capture import (
    AutoCapture,
    CaptureOutcome,
    CaptureRateLimiter,
    detect_category,
    should_capture,
)


class FakeClock:

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _capture(store=None, embeddings=None, limiter=None, **kwargs) -> AutoCapture:
    return AutoCapture(
        store or FakeQdrant(),
        embeddings or FakeEmbeddings(),
        limiter if limiter is not None else CaptureRateLimiter(),
        **kwargs,
    )


class TestShouldCapture:
    """Trigger and exclusion rules."""

    @pytest.mark.parametrize("text", [
        "Please remember that my dentist is on Friday",
        "I prefer dark roast coffee in the morning",
        "We decided to use Postgres for the billing service",
        "My name is Ada Lovelace",
        "Reach me at ada@example.com for the report",
        "Prefiro reuniões pela manhã, sempre",
        "Meu nome é Joana e moro em Lisboa",
        "Call me on +351912345678 after lunch",
    ])
    def test_captures_facts(self, text):
        assert should_capture(text)

    @pytest.mark.parametrize("text", [
        "short",
        "x" * 501,
        "Do you remember what I prefer for lunch?",
        "<tool_result>I prefer this</tool_result>",
        "Remember this:\n```\nprint('hi')\n```",
        "- I prefer tea\n- I prefer coffee",
        "Got it, I will remember that for you!",
        "The weather is lovely this afternoon",
        "I prefer 🍕🍕🍕🍕 over everything",
        "<relevant-memories> I prefer tea",
    ])
    def test_rejects(self, text):
        assert not should_capture(text)


class TestDetectCategory:

    def test_categories(self):
        assert detect_category("I prefer dark roast coffee") == "preference"
        assert detect_category("We decided to use Postgres") == "project"
        assert detect_category("My name is Ada") == "personal"
        assert detect_category("Always back up on Fridays") == "other"

    def test_preference_wins(self):
        assert detect_category("We decided I love tabs") == "preference"


class TestRateLimiter:
    """Sliding window per conversation key."""

    def test_window(self):
        clock = FakeClock()
        limiter = CaptureRateLimiter(window_seconds=300, max_per_window=3, clock=clock)

        assert all(limiter.try_acquire("conv") for _ in range(3))
        assert not limiter.try_acquire("conv")
        assert limiter.try_acquire("other")

        clock.now += 301
        assert limiter.try_acquire("conv")

    def test_cleanup_drops_idle_keys(self):
        clock = FakeClock()
        limiter = CaptureRateLimiter(window_seconds=10, max_per_window=3, clock=clock)
        limiter.try_acquire("old")
        clock.now += 20
        limiter.try_acquire("fresh")

        assert limiter.cleanup() == 1
        assert len(limiter) == 1


class TestAutoCapture:

    @pytest.mark.asyncio
    async def test_captures_and_stores(self):
        store = FakeQdrant()
        capture = _capture(store, clock=lambda: 1700000000.5)

        outcome = await capture.handle_message(
            "I prefer dark roast coffee in the morning", session_key="telegram:42",
        )

        assert outcome == CaptureOutcome.CAPTURED
        stored = store.captured()
        assert len(stored) == 1
        assert stored[0]["category"] == "preference"
        assert stored[0]["capturedAt"] == 1700000000500
        assert stored[0]["sessionKey"] == "telegram:42"
        assert stored[0]["file"] == "captured/preference"

    @pytest.mark.asyncio
    async def test_excluded(self):
        store = FakeQdrant()
        embeddings = FakeEmbeddings()
        capture = _capture(store, embeddings)

        assert await capture.handle_message("What time is it?") == CaptureOutcome.EXCLUDED
        assert await capture.handle_message(None) == CaptureOutcome.EXCLUDED
        assert embeddings.calls == []

    @pytest.mark.asyncio
    async def test_duplicate_skipped(self):
        store = FakeQdrant()
        capture = _capture(store)
        text = "I prefer dark roast coffee in the morning"

        assert await capture.handle_message(text, conversation_id="a") == CaptureOutcome.CAPTURED
        assert await capture.handle_message(text, conversation_id="b") == CaptureOutcome.DUPLICATE
        assert len(store.captured()) == 1

    @pytest.mark.asyncio
    async def test_duplicate_check_error_proceeds(self):
        store = FakeQdrant(fail_search=True)
        capture = _capture(store)

        outcome = await capture.handle_message("I prefer dark roast coffee in the morning")

        assert outcome == CaptureOutcome.CAPTURED
        assert len(store.captured()) == 1

    @pytest.mark.asyncio
    async def test_embedding_failure(self):
        store = FakeQdrant()
        capture = _capture(store, FakeEmbeddings(fail=True))

        outcome = await capture.handle_message("I prefer dark roast coffee in the morning")

        assert outcome == CaptureOutcome.FAILED
        assert store.captured() == []

    @pytest.mark.asyncio
    async def test_rate_limit_under_concurrency(self):
        store = FakeQdrant()
        limiter = CaptureRateLimiter(window_seconds=1, max_per_window=1)
        capture = _capture(store, limiter=limiter)
        texts = [
            "I prefer dark roast coffee in the morning",
            "My name is Ada and I live in Lisbon",
            "We decided to use Postgres for billing",
        ]

        outcomes = await asyncio.gather(*(
            capture.handle_message(text, conversation_id="same") for text in texts
        ))

        assert outcomes.count(CaptureOutcome.CAPTURED) == 1
        assert outcomes.count(CaptureOutcome.RATE_LIMITED) == 2
        assert len(store.captured()) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_key_fallback(self):
        limiter = CaptureRateLimiter(max_per_window=1)
        capture = _capture(limiter=limiter)

        await capture.handle_message("I prefer dark roast coffee in the morning", sender="alice")
        outcome = await capture.handle_message("My name is Ada and I live in Lisbon", sender="alice")
        assert outcome == CaptureOutcome.RATE_LIMITED

        outcome = await capture.handle_message("My name is Ada and I live in Lisbon", sender="bob")
        assert outcome == CaptureOutcome.CAPTURED

    @pytest.mark.asyncio
    async def test_ids_unique_for_same_timestamp(self):
        store = FakeQdrant()
        capture = _capture(store, limiter=CaptureRateLimiter(max_per_window=10), clock=lambda: 1.0)

        await capture.handle_message("I prefer dark roast coffee in the morning", conversation_id="a")
        await capture.handle_message("My name is Ada and I live in Lisbon", conversation_id="a")

        assert len(store.captured()) == 2

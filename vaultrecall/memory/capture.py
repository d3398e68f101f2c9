"""
Auto-capture of durable facts from conversation.

Pipeline for each inbound message:
- Exclusion rules (tool output, code, lists, questions, confirmations, size)
- Trigger rules in English and Portuguese
- Per-conversation sliding-window rate limit
- Semantic duplicate suppression against the vector store
- Category inference and storage
"""

import itertools
import re
import time
from enum import Enum
from typing import Callable

from loguru import logger

from vaultrecall.memory.chunker import generate_point_id
from vaultrecall.memory.embeddings import EmbeddingError, OllamaEmbeddings
from vaultrecall.memory.types import CapturedCategory, CapturedMemory
from vaultrecall.memory.vector import QdrantError, QdrantStore


RECALL_MARKER = "<relevant-memories>"

MIN_CAPTURE_CHARS = 15
MAX_CAPTURE_CHARS = 500
MAX_EMOJI = 3

MEMORY_TRIGGERS = [
    # Explicit memory requests
    re.compile(
        r"\b(remember|remind\s+me|don['’]?t\s+forget|please\s+remember|note\s+this|"
        r"save\s+this|log\s+this|track\s+this|remember\s+that|lembra|lembre|guarda|salva|"
        r"anota|memoriza|memorizar|memoria|não\s+esquece|nao\s+esquece|não\s+esquecer|"
        r"nao\s+esquecer|por\s+favor\s+lembra|por\s+favor\s+lembre)\b",
        re.IGNORECASE,
    ),
    # Preferences
    re.compile(r"\b(prefer|prefiro|gosto|não gosto|odeio|adoro|quero|não quero)\b", re.IGNORECASE),
    re.compile(r"\b(i like|i love|i hate|i prefer|i want|i need)\b", re.IGNORECASE),
    # Decisions
    re.compile(r"\b(decidimos|decidiu|vamos usar|escolhi|optei)\b", re.IGNORECASE),
    re.compile(r"\b(decided|will use|going to use|chose|picked)\b", re.IGNORECASE),
    # Phone numbers and emails
    re.compile(r"\+\d{10,}"),
    re.compile(r"[\w.-]+@[\w.-]+\.\w{2,}"),
    # Identity
    re.compile(r"\b(meu nome é|me chamo|sou o|sou a)\b", re.IGNORECASE),
    re.compile(r"\b(my name is|i am called|call me)\b", re.IGNORECASE),
    # Possessive facts
    re.compile(r"\b(meu|minha|meus|minhas)\s+\w+\s+(é|são|fica|mora)", re.IGNORECASE),
    re.compile(r"\b(my|our)\s+\w+\s+(is|are|lives|works)", re.IGNORECASE),
    # Importance qualifiers
    re.compile(r"\b(sempre|nunca|importante|crucial|essencial)\b", re.IGNORECASE),
    re.compile(r"\b(always|never|important|crucial|essential)\b", re.IGNORECASE),
    # Timezone and location
    re.compile(r"\b(moro em|trabalho em|fuso horário|timezone)\b", re.IGNORECASE),
    re.compile(r"\b(i live in|i work at|my timezone)\b", re.IGNORECASE),
]

MEMORY_EXCLUSIONS = [
    re.compile(r"<[^>]+>"),  # XML-like tags
    re.compile(r"```.*?```", re.DOTALL),  # Fenced code
    re.compile(r"^\s*[-*]\s+", re.MULTILINE),  # Markdown lists
    # Agent confirmations
    re.compile(r"\b(pronto|feito|ok|certo|entendi|anotado)\b.*!?\s*$", re.IGNORECASE),
    re.compile(r"\b(done|got it|noted|understood|saved)\b.*!?\s*$", re.IGNORECASE),
    re.compile(r"\?\s*$"),  # Questions
]

EMOJI_RE = re.compile("[\U0001F300-\U0001F9FF]")

PREFERENCE_RE = re.compile(r"prefer|prefiro|gosto|like|love|hate|want|quero|odeio|adoro")
PROJECT_RE = re.compile(
    r"decidimos|decided|will use|vamos usar|escolhi|chose|projeto|project|feature|roadmap|meta|objetivo"
)
PERSONAL_RE = re.compile(r"\+\d{10,}|@[\w.-]+\.\w+|nome é|name is|chamo|called|moro|sou|trabalho")


def should_capture(text: str) -> bool:
    """Decide whether a message holds a fact worth remembering."""
    if len(text) < MIN_CAPTURE_CHARS or len(text) > MAX_CAPTURE_CHARS:
        return False
    if any(pattern.search(text) for pattern in MEMORY_EXCLUSIONS):
        return False
    if RECALL_MARKER in text:
        return False
    if len(EMOJI_RE.findall(text)) > MAX_EMOJI:
        return False
    return any(pattern.search(text) for pattern in MEMORY_TRIGGERS)


def detect_category(text: str) -> CapturedCategory:
    """Classify a captured fact: preference, then project, then personal."""
    lower = text.lower()
    if PREFERENCE_RE.search(lower):
        return "preference"
    if PROJECT_RE.search(lower):
        return "project"
    if PERSONAL_RE.search(lower):
        return "personal"
    return "other"


class CaptureRateLimiter:
    """
    Sliding-window limiter keyed by conversation.

    A slot is reserved before the capture work starts, so concurrent
    messages cannot overshoot the window.
    """

    def __init__(
        self,
        window_seconds: float = 300.0,
        max_per_window: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.window_seconds = window_seconds
        self.max_per_window = max_per_window
        self.clock = clock
        self._windows: dict[str, list[float]] = {}

    def __len__(self) -> int:
        return len(self._windows)

    def _recent(self, key: str, now: float) -> list[float]:
        return [ts for ts in self._windows.get(key, []) if now - ts <= self.window_seconds]

    def try_acquire(self, key: str) -> bool:
        """Reserve a capture slot for key; False when the window is full."""
        now = self.clock()
        recent = self._recent(key, now)
        if len(recent) >= self.max_per_window:
            self._windows[key] = recent
            return False
        recent.append(now)
        self._windows[key] = recent
        return True

    def cleanup(self) -> int:
        """Drop keys with no capture inside the window. Returns how many were dropped."""
        now = self.clock()
        removed = 0
        for key in list(self._windows):
            recent = self._recent(key, now)
            if recent:
                self._windows[key] = recent
            else:
                del self._windows[key]
                removed += 1
        if removed:
            logger.debug(f"capture: cleaned {removed} idle conversation windows")
        return removed


class CaptureOutcome(str, Enum):
    """What happened to an inbound message."""
    EXCLUDED = "excluded"
    RATE_LIMITED = "rate_limited"
    DUPLICATE = "duplicate"
    CAPTURED = "captured"
    FAILED = "failed"


class AutoCapture:
    """Runs the capture pipeline for inbound messages."""

    def __init__(
        self,
        store: QdrantStore,
        embeddings: OllamaEmbeddings,
        limiter: CaptureRateLimiter,
        dup_threshold: float = 0.92,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.embeddings = embeddings
        self.limiter = limiter
        self.dup_threshold = dup_threshold
        self.clock = clock
        self._sequence = itertools.count()

    async def handle_message(
        self,
        text: str,
        conversation_id: str | None = None,
        session_key: str | None = None,
        sender: str | None = None,
    ) -> CaptureOutcome:
        """
        Capture a message if it passes every gate.

        Args:
            text: Message content.
            conversation_id: Preferred rate-limit key.
            session_key: Fallback key, also stored with the fact.
            sender: Last-resort key.

        Returns:
            The stage the message stopped at.
        """
        if not isinstance(text, str) or not should_capture(text):
            return CaptureOutcome.EXCLUDED

        key = conversation_id or session_key or sender or "default"
        if not self.limiter.try_acquire(key):
            logger.debug(f"capture: rate limit reached for {key}")
            return CaptureOutcome.RATE_LIMITED

        try:
            vector = await self.embeddings.embed(text)

            duplicate = await self.store.search_for_duplicates(vector, self.dup_threshold)
            if duplicate.error:
                logger.warning(f"capture: duplicate check failed (proceeding anyway): {duplicate.error}")
            if duplicate.exists:
                logger.debug(f"capture: skipping duplicate ({duplicate.score:.2f}): {text[:50]}...")
                return CaptureOutcome.DUPLICATE

            category = detect_category(text)
            captured_at = int(self.clock() * 1000)
            memory = CapturedMemory(
                id=generate_point_id(f"{next(self._sequence)}-{captured_at}-{text}"),
                text=text,
                category=category,
                captured_at=captured_at,
                session_key=session_key,
            )
            await self.store.upsert_captured(memory, vector)
        except (QdrantError, EmbeddingError) as e:
            logger.warning(f"capture: auto-capture failed: {e}")
            return CaptureOutcome.FAILED

        logger.debug(f"capture: stored [{category}]: {text[:50]}...")
        return CaptureOutcome.CAPTURED

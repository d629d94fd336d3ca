"""Ephemeral conversation context with decaying topic salience.

One ``SessionContext`` exists per user for the lifetime of the process (or
until cleared). It keeps a bounded FIFO of recent messages and a keyword
index whose scores drift toward 1.0 with each repeat mention and are
weighted down by age when ranked.
"""

import logging
import re
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Callable, Deque, Dict, List, Optional, Tuple

from ..core.logging_utils import truncate_text
from .state import ChatMessage, ConversationTopic, MessageRole

logger = logging.getLogger(__name__)

DEFAULT_MAX_MESSAGES = 50
INITIAL_TOPIC_SCORE = 0.7
RECENCY_HALF_LIFE_MINUTES = 30.0
SAMPLE_CONTEXT_LENGTH = 100
MIN_KEYWORD_LENGTH = 4

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "as", "is", "was", "are", "were", "be", "been",
    "being", "have", "has", "had", "do", "does", "did", "will", "would",
    "should", "could", "may", "might", "must", "can", "i", "you", "he", "she",
    "it", "we", "they", "what", "which", "who", "when", "where", "why", "how",
    "this", "that", "these", "those",
})

_PUNCTUATION = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def extract_keywords(text: str) -> List[str]:
    """
    Extract candidate topic keywords from free text.

    Lowercases, replaces punctuation with spaces, drops stop words and
    tokens shorter than four characters, and de-duplicates while keeping
    first-seen order.
    """
    cleaned = _PUNCTUATION.sub(" ", text.lower())
    keywords: List[str] = []
    seen = set()
    for word in _WHITESPACE.split(cleaned):
        if len(word) < MIN_KEYWORD_LENGTH or word in STOP_WORDS or word in seen:
            continue
        seen.add(word)
        keywords.append(word)
    return keywords


def recency_weight(timestamp: datetime, now: datetime) -> float:
    """Weight in (0, 1]; halves after about 30 minutes."""
    age_minutes = max(int((now - timestamp).total_seconds() // 60), 0)
    return 1.0 / (1.0 + age_minutes / RECENCY_HALF_LIFE_MINUTES)


class SessionContext:
    """Per-user conversation memory used to ground model output."""

    def __init__(
        self,
        user_id: str,
        max_messages: int = DEFAULT_MAX_MESSAGES,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        if max_messages < 1:
            raise ValueError("max_messages must be at least 1")
        self.user_id = user_id
        self.max_messages = max_messages
        self._now = clock or datetime.utcnow
        self._session_start = self._now()
        self._messages: Deque[ChatMessage] = deque()
        self._topics: Dict[str, ConversationTopic] = {}

    @property
    def session_start(self) -> datetime:
        return self._session_start

    # =========================================================================
    # Messages
    # =========================================================================

    def add_message(self, message: ChatMessage) -> None:
        """Append a message, evict the oldest beyond the bound, then index its topics."""
        self._messages.append(message)
        while len(self._messages) > self.max_messages:
            self._messages.popleft()

        self._extract_topics(message)

        logger.debug(
            f"Message added to session context for {self.user_id}. Total: {len(self._messages)}"
        )

    def get_recent_messages(self, limit: int = 10) -> List[ChatMessage]:
        """Return up to ``limit`` most recent messages, oldest first."""
        if limit <= 0:
            return []
        return list(self._messages)[-limit:]

    def get_all_messages(self) -> Tuple[ChatMessage, ...]:
        return tuple(self._messages)

    @property
    def message_count(self) -> int:
        return len(self._messages)

    # =========================================================================
    # Topics
    # =========================================================================

    def _extract_topics(self, message: ChatMessage) -> None:
        content = message.content.lower()
        sample = content[:SAMPLE_CONTEXT_LENGTH]

        for keyword in extract_keywords(content):
            existing = self._topics.get(keyword)
            if existing is not None:
                existing.score = (existing.score + 1.0) / 2
                existing.mention_count += 1
                existing.last_mention = max(existing.last_mention, message.timestamp)
                existing.sample_context = sample
            else:
                self._topics[keyword] = ConversationTopic(
                    topic=keyword,
                    score=INITIAL_TOPIC_SCORE,
                    last_mention=message.timestamp,
                    sample_context=sample,
                )

    def get_topic(self, topic: str) -> Optional[ConversationTopic]:
        return self._topics.get(topic.lower().strip())

    def get_recent_topics(
        self,
        window: Optional[timedelta] = None,
        top_k: int = 10,
    ) -> List[ConversationTopic]:
        """
        Rank tracked topics by ``score * recency_weight``.

        Args:
            window: Only consider topics mentioned within this window
                (default: since session start)
            top_k: Maximum number of topics to return

        Returns:
            Topics ordered from most to least salient
        """
        now = self._now()
        cutoff = now - window if window is not None else self._session_start

        candidates = [t for t in self._topics.values() if t.last_mention >= cutoff]
        candidates.sort(key=lambda t: t.score * recency_weight(t.last_mention, now), reverse=True)
        return candidates[:top_k]

    def _matching_topics(self, topic: str) -> List[ConversationTopic]:
        normalized = topic.lower().strip()
        if not normalized:
            return []

        exact = self._topics.get(normalized)
        if exact is not None:
            return [exact]

        return [
            tracked
            for key, tracked in self._topics.items()
            if key in normalized or normalized in key
        ]

    def has_discussed_topic(self, topic: str, threshold: float = 0.5) -> bool:
        """True iff an exact or substring-overlapping topic has ``score >= threshold``."""
        return any(t.score >= threshold for t in self._matching_topics(topic))

    def find_best_topic(self, topic: str) -> Optional[ConversationTopic]:
        """Highest-scoring tracked topic that overlaps ``topic``."""
        matches = self._matching_topics(topic)
        if not matches:
            return None
        return max(matches, key=lambda t: t.score)

    # =========================================================================
    # Summaries
    # =========================================================================

    def duration_minutes(self) -> int:
        return int((self._now() - self._session_start).total_seconds() // 60)

    def get_context_summary(self, message_limit: int = 10) -> str:
        """Render a plain-text summary of the session for prompt building."""
        recent_messages = self.get_recent_messages(limit=message_limit)
        recent_topics = self.get_recent_topics(top_k=5)

        lines = [
            "Session Context:",
            f"Duration: {self.duration_minutes()} minutes",
            f"Messages: {len(self._messages)}",
        ]

        if recent_topics:
            lines.append("")
            lines.append("Recent Topics:")
            for topic in recent_topics:
                lines.append(
                    f"- {topic.topic} (score: {topic.score:.2f}, mentions: {topic.mention_count})"
                )

        if recent_messages:
            lines.append("")
            lines.append("Recent Messages:")
            for msg in recent_messages:
                role = "User" if msg.role == MessageRole.USER else "AI"
                lines.append(f"[{role}]: {truncate_text(msg.content, 100)}")

        return "\n".join(lines) + "\n"

    def clear(self) -> None:
        self._messages.clear()
        self._topics.clear()
        logger.info(f"Session context cleared for user: {self.user_id}")

    def get_statistics(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "message_count": len(self._messages),
            "topic_count": len(self._topics),
            "session_duration_minutes": self.duration_minutes(),
            "session_start": self._session_start.isoformat(),
        }

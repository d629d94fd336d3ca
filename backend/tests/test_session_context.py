"""
Tests for per-user session context and topic salience.
"""

from datetime import timedelta

import pytest

from tutor_guard.session import (
    ChatMessage,
    MessageRole,
    SessionContext,
    extract_keywords,
    make_user_message,
    recency_weight,
    to_langchain_messages,
)


class TestKeywordExtraction:
    def test_drops_stop_words_and_short_tokens(self):
        keywords = extract_keywords("What is the process of photosynthesis in a leaf?")
        assert keywords == ["process", "photosynthesis", "leaf"]

    def test_strips_punctuation_and_lowercases(self):
        assert extract_keywords("Fractions, DECIMALS; percentages!") == ["fractions", "decimals", "percentages"]

    def test_deduplicates_in_order(self):
        assert extract_keywords("algebra geometry algebra") == ["algebra", "geometry"]

    def test_empty_text(self):
        assert extract_keywords("") == []


class TestMessageBound:
    """The message buffer is a bounded FIFO."""

    @pytest.mark.parametrize("total", [1, 3, 5, 12])
    def test_length_is_min_of_added_and_max(self, clock, add_user_message, total):
        session = SessionContext("u", max_messages=5, clock=clock)
        for i in range(total):
            add_user_message(session, f"message number {i}")

        messages = session.get_all_messages()
        assert len(messages) == min(total, 5)
        assert messages[-1].content == f"message number {total - 1}"
        assert [m.content for m in messages] == [
            f"message number {i}" for i in range(max(0, total - 5), total)
        ]

    def test_rejects_non_positive_max(self):
        with pytest.raises(ValueError):
            SessionContext("u", max_messages=0)

    def test_recent_messages_limit(self, session_context, add_user_message):
        for i in range(4):
            add_user_message(session_context, f"note {i}")

        recent = session_context.get_recent_messages(limit=2)
        assert [m.content for m in recent] == ["note 2", "note 3"]
        assert session_context.get_recent_messages(limit=0) == []


class TestTopicScoring:
    def test_single_mention_scores_initial(self, session_context, add_user_message):
        add_user_message(session_context, "Tell me about photosynthesis")
        topic = session_context.get_topic("photosynthesis")

        assert topic.score == pytest.approx(0.7)
        assert topic.mention_count == 1

    def test_second_mention_smooths_toward_one(self, session_context, add_user_message):
        add_user_message(session_context, "photosynthesis basics")
        add_user_message(session_context, "more photosynthesis please")
        topic = session_context.get_topic("photosynthesis")

        assert topic.score == pytest.approx(0.85)
        assert topic.mention_count == 2
        assert topic.sample_context == "more photosynthesis please"

    def test_repeated_mention_in_one_message_counts_once(self, session_context, add_user_message):
        add_user_message(session_context, "photosynthesis and photosynthesis")
        assert session_context.get_topic("photosynthesis").mention_count == 1

    def test_score_stays_in_range(self, session_context, add_user_message):
        for _ in range(30):
            add_user_message(session_context, "calculus")
        assert 0.0 <= session_context.get_topic("calculus").score <= 1.0

    def test_last_mention_never_moves_backwards(self, session_context, clock):
        later = clock.now + timedelta(minutes=10)
        session_context.add_message(make_user_message("vectors", timestamp=later))
        session_context.add_message(make_user_message("vectors", timestamp=clock.now))

        assert session_context.get_topic("vectors").last_mention == later

    def test_sample_context_truncated(self, session_context, add_user_message):
        add_user_message(session_context, "geometry " + "x" * 200)
        assert len(session_context.get_topic("geometry").sample_context) == 100


class TestHasDiscussedTopic:
    def test_crosses_threshold_on_second_mention(self, session_context, add_user_message):
        assert not session_context.has_discussed_topic("photosynthesis", 0.75)

        add_user_message(session_context, "photosynthesis")
        assert not session_context.has_discussed_topic("photosynthesis", 0.75)

        add_user_message(session_context, "photosynthesis again")
        assert session_context.has_discussed_topic("photosynthesis", 0.75)

    def test_substring_overlap_matches(self, session_context, add_user_message):
        add_user_message(session_context, "fractions")
        assert session_context.has_discussed_topic("adding fractions", 0.5)

    def test_empty_topic_never_discussed(self, session_context, add_user_message):
        add_user_message(session_context, "fractions")
        assert not session_context.has_discussed_topic("", 0.0)


class TestRecentTopics:
    def test_ranked_by_score_and_recency(self, session_context, clock, add_user_message):
        add_user_message(session_context, "algebra")
        clock.advance(minutes=60)
        add_user_message(session_context, "geometry")

        topics = session_context.get_recent_topics()
        assert [t.topic for t in topics] == ["geometry", "algebra"]

    def test_window_filters_old_topics(self, session_context, clock, add_user_message):
        add_user_message(session_context, "algebra")
        clock.advance(minutes=45)
        add_user_message(session_context, "geometry")

        topics = session_context.get_recent_topics(window=timedelta(minutes=30))
        assert [t.topic for t in topics] == ["geometry"]

    def test_top_k(self, session_context, add_user_message):
        add_user_message(session_context, "alpha bravo charlie delta")
        assert len(session_context.get_recent_topics(top_k=2)) == 2

    def test_recency_weight_halves_after_thirty_minutes(self, clock):
        assert recency_weight(clock.now, clock.now) == 1.0
        assert recency_weight(clock.now - timedelta(minutes=30), clock.now) == pytest.approx(0.5)


class TestSummaryAndStatistics:
    def test_context_summary(self, session_context, clock, add_user_message, add_assistant_message):
        add_user_message(session_context, "Explain photosynthesis")
        clock.advance(minutes=3)
        add_assistant_message(session_context, "Plants convert light into chemical energy.")

        summary = session_context.get_context_summary()

        assert summary.startswith("Session Context:\nDuration: 3 minutes\nMessages: 2\n")
        assert "Recent Topics:" in summary
        assert "[User]: Explain photosynthesis" in summary
        assert "[AI]: Plants convert light into chemical energy." in summary

    def test_long_messages_truncated(self, session_context, add_user_message):
        add_user_message(session_context, "a" * 150)
        assert "[User]: " + "a" * 100 + "..." in session_context.get_context_summary()

    def test_statistics(self, session_context, add_user_message):
        add_user_message(session_context, "algebra geometry")
        stats = session_context.get_statistics()

        assert stats["user_id"] == "student-1"
        assert stats["message_count"] == 1
        assert stats["topic_count"] == 2
        assert stats["session_duration_minutes"] == 0

    def test_clear(self, session_context, add_user_message):
        add_user_message(session_context, "algebra")
        session_context.clear()

        assert session_context.message_count == 0
        assert session_context.get_topic("algebra") is None


class TestLangChainConversion:
    def test_roles_map_to_message_types(self):
        messages = [
            ChatMessage(id="1", content="hi", role=MessageRole.USER),
            ChatMessage(id="2", content="hello", role=MessageRole.ASSISTANT),
            ChatMessage(id="3", content="rules", role=MessageRole.SYSTEM),
        ]
        converted = to_langchain_messages(messages)

        assert [m.type for m in converted] == ["human", "ai", "system"]
        assert converted[1].content == "hello"

    def test_chat_message_is_immutable(self):
        message = ChatMessage(id="1", content="hi", role=MessageRole.USER)
        with pytest.raises(Exception):
            message.content = "changed"

"""
Tests for learning style detection.
"""

import pytest

from tutor_guard.profile.models import LearningStylePreferences
from tutor_guard.validators.learning_style import (
    DetectedLearningStyle,
    LearningStyleDetector,
    estimate_learning_style,
    get_recommendations,
)


@pytest.fixture
def detector() -> LearningStyleDetector:
    return LearningStyleDetector()


class TestScoring:
    def test_empty_session_is_neutral(self, detector, session_context):
        style = detector.estimate(session_context)
        prefs = style.preferences

        assert (prefs.visual, prefs.auditory, prefs.kinesthetic, prefs.reading) == (0.5, 0.5, 0.5, 0.5)
        assert prefs.preferred_depth == "medium"
        assert style.confidence == 0.0

    def test_visual_keywords_score_high(self, detector, session_context):
        style = detector.estimate(session_context, "Can you show me a diagram?")

        assert style.preferences.visual == 1.0
        assert style.preferences.auditory == 0.0

    def test_density_is_scaled_and_capped(self):
        words = ["show"] + ["word"] * 39
        assert LearningStyleDetector.score(words, LearningStyleDetector.VISUAL_KEYWORDS) == pytest.approx(0.5)
        assert LearningStyleDetector.score(["show"], LearningStyleDetector.VISUAL_KEYWORDS) == 1.0

    def test_only_user_messages_are_analyzed(self, detector, session_context, add_assistant_message):
        add_assistant_message(session_context, "Here is a diagram and a chart and a picture")
        style = detector.estimate(session_context)

        assert style.preferences.visual == 0.5
        assert style.confidence == 0.0

    def test_deterministic(self, detector, session_context, add_user_message):
        add_user_message(session_context, "Let me practice with an exercise")
        first = detector.estimate(session_context, "try another one")
        second = detector.estimate(session_context, "try another one")
        assert first == second


class TestDepth:
    def test_brief(self, detector, session_context):
        style = detector.estimate(session_context, "give me a quick brief overview")
        assert style.preferences.preferred_depth == "brief"

    def test_detailed(self, detector, session_context):
        style = detector.estimate(session_context, "I want a detailed and thorough walkthrough")
        assert style.preferences.preferred_depth == "detailed"

    def test_balanced_is_medium(self, detector, session_context):
        style = detector.estimate(session_context, "quick but thorough")
        assert style.preferences.preferred_depth == "medium"


class TestConfidence:
    def test_grows_with_messages(self, detector, session_context, add_user_message):
        confidences = []
        for _ in range(8):
            add_user_message(session_context, "please show me an example")
            confidences.append(detector.estimate(session_context).confidence)

        assert confidences == sorted(confidences)
        assert confidences[0] < confidences[-1]

    def test_saturates(self):
        assert LearningStyleDetector.confidence(5, 100) == 1.0
        assert LearningStyleDetector.confidence(50, 1000) == 1.0
        assert LearningStyleDetector.confidence(1, 50) == pytest.approx(0.35)


class TestEvidence:
    def test_collects_matching_sentences(self, detector, session_context):
        style = detector.estimate(session_context, "I want to see a diagram. Tell me more!")

        assert style.evidence["visual"] == ["i want to see a diagram"]
        assert style.evidence["auditory"] == ["tell me more"]

    def test_at_most_three_sentences(self, detector, session_context):
        message = ". ".join(["show me the graph"] * 5)
        style = detector.estimate(session_context, message)
        assert len(style.evidence["visual"]) == 3

    def test_long_sentences_truncated(self, detector, session_context):
        message = "please draw " + "a" * 100
        evidence = detector.estimate(session_context, message).evidence["visual"]

        assert len(evidence[0]) == 83
        assert evidence[0].endswith("...")

    def test_phrases_match(self):
        evidence = LearningStyleDetector.find_evidence(
            "can we work through it", LearningStyleDetector.KINESTHETIC_KEYWORDS
        )
        assert evidence == ["can we work through it"]


class TestSummaryAndRecommendations:
    def test_summary(self, session_context):
        style = estimate_learning_style(session_context, "Can you show me a diagram?")
        assert style.summary() == "Dominant: visual (medium detail) - Confidence: 13%"

    def test_recommendations_follow_strong_styles(self):
        style = DetectedLearningStyle(
            preferences=LearningStylePreferences(visual=0.9, kinesthetic=0.7, preferred_depth="brief"),
            confidence=0.5,
        )
        recommendations = get_recommendations(style)

        assert "Include diagrams, charts, or visual examples" in recommendations
        assert "Offer hands-on exercises and practice problems" in recommendations
        assert "Keep responses concise with key takeaways" in recommendations
        assert "Provide verbal explanations and analogies" not in recommendations

    def test_neutral_style_has_no_recommendations(self):
        style = DetectedLearningStyle(preferences=LearningStylePreferences(), confidence=0.0)
        assert get_recommendations(style) == []

"""Learning style detection from conversation text.

Scores four style axes (visual, auditory, kinesthetic, reading) and a
depth preference from keyword density in everything the user has said this
session. The detector is pure: same session + message, same result.
"""

import logging
import re
import string
from typing import Dict, FrozenSet, List, Optional

from pydantic import BaseModel, Field

from ..profile.models import LearningStylePreferences
from ..session.context import SessionContext

logger = logging.getLogger(__name__)

# Keyword hits are rare relative to total words, so density is scaled up before capping.
DENSITY_SCALE = 20.0
NEUTRAL_SCORE = 0.5
DEPTH_RATIO = 1.5
CONFIDENT_MESSAGE_COUNT = 5.0
CONFIDENT_WORD_COUNT = 100.0
MAX_EVIDENCE_PER_STYLE = 3
EVIDENCE_LENGTH = 80

_SENTENCE_SPLIT = re.compile(r"[.!?]+")


class DetectedLearningStyle(BaseModel):
    """Detected learning style from conversation analysis."""

    preferences: LearningStylePreferences
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: Dict[str, List[str]] = Field(default_factory=dict)  # style -> example phrases

    def summary(self) -> str:
        dominant = self.preferences.dominant_style()
        depth = self.preferences.preferred_depth
        return f"Dominant: {dominant} ({depth} detail) - Confidence: {self.confidence * 100:.0f}%"


class LearningStyleDetector:
    """Detects learning styles from user messages."""

    VISUAL_KEYWORDS: FrozenSet[str] = frozenset({
        "show", "see", "look", "visual", "diagram", "picture", "image", "graph",
        "chart", "illustration", "draw", "sketch", "color", "map", "video",
        "watch", "visualize", "display", "example", "demonstration",
    })

    AUDITORY_KEYWORDS: FrozenSet[str] = frozenset({
        "explain", "tell", "say", "hear", "listen", "sound", "speak", "talk",
        "discuss", "describe", "verbal", "lecture", "audio", "voice",
        "read aloud", "pronunciation", "rhythm", "tone",
    })

    KINESTHETIC_KEYWORDS: FrozenSet[str] = frozenset({
        "do", "practice", "try", "hands-on", "interactive", "experiment",
        "build", "make", "create", "work through", "apply", "exercise",
        "activity", "physical", "movement", "touch", "feel", "manipulate",
    })

    READING_KEYWORDS: FrozenSet[str] = frozenset({
        "write", "read", "text", "note", "list", "summary", "outline",
        "document", "article", "book", "essay", "definition", "description",
        "written", "bullet points", "paragraph",
    })

    BRIEF_KEYWORDS: FrozenSet[str] = frozenset({
        "quick", "brief", "short", "simple", "concise", "summary", "tldr",
        "key points", "main idea", "overview", "just tell me", "in a nutshell",
    })

    DETAILED_KEYWORDS: FrozenSet[str] = frozenset({
        "detailed", "explain fully", "comprehensive", "in-depth", "thorough",
        "complete", "all the details", "step-by-step", "elaborate",
        "extensive", "deep dive", "everything",
    })

    @property
    def style_keywords(self) -> Dict[str, FrozenSet[str]]:
        return {
            "visual": self.VISUAL_KEYWORDS,
            "auditory": self.AUDITORY_KEYWORDS,
            "kinesthetic": self.KINESTHETIC_KEYWORDS,
            "reading": self.READING_KEYWORDS,
        }

    def estimate(
        self,
        session_context: SessionContext,
        current_message: Optional[str] = None,
    ) -> DetectedLearningStyle:
        """
        Estimate learning style from the session's user messages.

        Args:
            session_context: Session whose user-authored messages are analyzed
            current_message: Message being processed this turn, if any

        Returns:
            DetectedLearningStyle with scores, depth, confidence and evidence
        """
        user_messages = [
            msg.content.lower() for msg in session_context.get_all_messages() if msg.is_user
        ]
        if current_message is not None:
            user_messages.append(current_message.lower())

        all_text = " ".join(user_messages)
        words = all_text.split()

        scores = {
            style: self.score(words, keywords)
            for style, keywords in self.style_keywords.items()
        }

        brief_score = self.score(words, self.BRIEF_KEYWORDS)
        detailed_score = self.score(words, self.DETAILED_KEYWORDS)
        if brief_score > detailed_score * DEPTH_RATIO:
            preferred_depth = "brief"
        elif detailed_score > brief_score * DEPTH_RATIO:
            preferred_depth = "detailed"
        else:
            preferred_depth = "medium"

        confidence = self.confidence(len(user_messages), len(words))

        evidence = {
            style: self.find_evidence(all_text, keywords)
            for style, keywords in self.style_keywords.items()
        }

        logger.debug(
            f"Learning style detected: V:{scores['visual']:.2f} A:{scores['auditory']:.2f} "
            f"K:{scores['kinesthetic']:.2f} R:{scores['reading']:.2f}"
        )

        return DetectedLearningStyle(
            preferences=LearningStylePreferences(preferred_depth=preferred_depth, **scores),
            confidence=confidence,
            evidence=evidence,
        )

    @staticmethod
    def score(words: List[str], keywords: FrozenSet[str]) -> float:
        """Keyword density scaled 20x and capped at 1.0; 0.5 for no text."""
        if not words:
            return NEUTRAL_SCORE

        matches = sum(1 for word in words if word.strip(string.punctuation) in keywords)
        frequency = matches / len(words)
        return min(max(frequency * DENSITY_SCALE, 0.0), 1.0)

    @staticmethod
    def confidence(message_count: int, word_count: int) -> float:
        """Grows with message and word volume, saturating at 5 messages / 100 words."""
        message_confidence = min(max(message_count / CONFIDENT_MESSAGE_COUNT, 0.0), 1.0)
        word_confidence = min(max(word_count / CONFIDENT_WORD_COUNT, 0.0), 1.0)
        return (message_confidence + word_confidence) / 2.0

    @staticmethod
    def find_evidence(text: str, keywords: FrozenSet[str]) -> List[str]:
        """Up to three sentences containing a keyword, truncated to 80 chars."""
        patterns = [re.compile(rf"\b{re.escape(keyword)}\b") for keyword in sorted(keywords)]
        evidence: List[str] = []

        for sentence in _SENTENCE_SPLIT.split(text):
            if len(evidence) >= MAX_EVIDENCE_PER_STYLE:
                break
            cleaned = sentence.strip()
            if not cleaned:
                continue
            if any(pattern.search(cleaned) for pattern in patterns):
                if len(cleaned) > EVIDENCE_LENGTH:
                    cleaned = cleaned[:EVIDENCE_LENGTH] + "..."
                evidence.append(cleaned)

        return evidence


def get_recommendations(style: DetectedLearningStyle) -> List[str]:
    """Prompt-level adaptation hints for a detected style."""
    recommendations: List[str] = []
    prefs = style.preferences

    if prefs.visual > 0.6:
        recommendations.append("Include diagrams, charts, or visual examples")
        recommendations.append("Use color coding and formatting for clarity")

    if prefs.auditory > 0.6:
        recommendations.append("Provide verbal explanations and analogies")
        recommendations.append("Use conversational, descriptive language")

    if prefs.kinesthetic > 0.6:
        recommendations.append("Offer hands-on exercises and practice problems")
        recommendations.append("Include interactive examples and experiments")

    if prefs.reading > 0.6:
        recommendations.append("Provide written summaries and bullet points")
        recommendations.append("Include references to additional reading materials")

    if prefs.preferred_depth == "brief":
        recommendations.append("Keep responses concise with key takeaways")
        recommendations.append("Offer expandable sections for more detail")
    elif prefs.preferred_depth == "detailed":
        recommendations.append("Provide comprehensive explanations")
        recommendations.append("Include step-by-step breakdowns")

    return recommendations


_default_detector = LearningStyleDetector()


def estimate_learning_style(
    session_context: SessionContext,
    current_message: Optional[str] = None,
) -> DetectedLearningStyle:
    """Estimate with the default keyword sets."""
    return _default_detector.estimate(session_context, current_message)

"""Detection and correction of false "we discussed X" claims.

Generated text is scanned for phrases that assert a shared history with the
user. Each claim is checked against the session's topic index (and, for
preference claims, the opt-in profile); unsupported claims are rewritten
into an honest disclaimer.
"""

import logging
import re
from typing import List, Optional, Pattern, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, Field

from ..profile.models import UserProfile
from ..session.context import SessionContext

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.75
SESSION_CONFIDENCE = 0.8
STYLE_PROFILE_CONFIDENCE = 0.9
SUBJECT_PROFILE_CONFIDENCE = 0.8
STYLE_PROFILE_MINIMUM = 0.6

PREFERENCE_KEYWORDS = (
    "learning style",
    "preference",
    "prefer",
    "like",
    "interest",
    "enjoy",
    "visual",
    "auditory",
    "kinesthetic",
)

_CLAIM_TEMPLATES = (
    # Past conversation references
    r"we discussed ([\w\s]+)",
    r"we talked about ([\w\s]+)",
    r"we covered ([\w\s]+)",
    r"we explored ([\w\s]+)",
    r"we went over ([\w\s]+)",
    r"we looked at ([\w\s]+)",
    r"we reviewed ([\w\s]+)",
    r"we examined ([\w\s]+)",
    # User statements
    r"you (told|said|mentioned|asked|stated|explained) (me )?([\w\s]+)",
    r"you asked about ([\w\s]+)",
    r"you were interested in ([\w\s]+)",
    r"you wanted to (know|learn|understand) (about )?([\w\s]+)",
    # Temporal references
    r"(earlier|previously|before|last time) (we |you |I )?([\w\s]+)",
    r"(in|during) (our|the) (last|previous|earlier) (session|conversation|discussion|chat) ([\w\s]*)",
    # Recall language
    r"(remember|recall|recollect) (when |that |how |our )?([\w\s]+)",
    r"(I|we) remember ([\w\s]+)",
    r"as (I|we) (mentioned|discussed|said|explained|noted) ([\w\s]+)",
    r"(do you |don't you )?remember (when |that |how )?([\w\s]+)",
    # Teaching references
    r"(when |as )(I|we) (taught|showed|explained|demonstrated) (you )?([\w\s]+)",
    r"you (learned|studied|practiced|worked on) ([\w\s]+)",
    r"(in|from) (our|the) ([\w\s]+) (lesson|session|discussion)",
    # Preference claims
    r"your (learning style|preference|interest|goal) (is|was) ([\w\s]+)",
    r"you prefer ([\w\s]+)",
    r"you (like|enjoy|want) ([\w\s]+)",
    r"you're (interested in|working on|focusing on) ([\w\s]+)",
    # Session references
    r"(based on|from) our (previous|earlier|last) (conversation|discussion|session|chat)",
    r"(continuing|building on) (from |on )?(where we left off|our discussion|what we covered)",
    # Completion claims
    r"(we|you|I) (already |just )?(went through|covered|finished|completed) ([\w\s]+)",
    r"(since|after) we (discussed|talked about|covered) ([\w\s]+)",
)

DEFAULT_CLAIM_PATTERNS: Sequence[Pattern[str]] = tuple(
    re.compile(template, re.IGNORECASE) for template in _CLAIM_TEMPLATES
)

_SENTENCE = re.compile(r"[^.!?]+[.!?]*")


class ClaimCandidate(BaseModel):
    """A phrase asserting shared history, with the topic it refers to."""

    claim_text: str
    topic: str


class MemoryClaim(BaseModel):
    """A verified claim about prior conversation or the user."""

    claim_text: str
    topic: str
    is_valid: bool
    confidence: float = Field(ge=0.0, le=1.0)
    evidence: Optional[str] = None


class MemoryValidationResult(BaseModel):
    valid: bool
    claims: List[MemoryClaim] = Field(default_factory=list)
    corrected_response: Optional[str] = None

    @property
    def has_invalid_claims(self) -> bool:
        return any(not claim.is_valid for claim in self.claims)

    @property
    def invalid_claims(self) -> List[MemoryClaim]:
        return [claim for claim in self.claims if not claim.is_valid]


@runtime_checkable
class ClaimExtractor(Protocol):
    """Finds candidate memory claims in text."""

    def extract(self, text: str) -> List[ClaimCandidate]:
        ...


class RegexClaimExtractor:
    """
    Regex-template claim extractor.

    Every match of every template yields one candidate. The topic is the
    last non-empty capture group (the phrase after the trigger), trimmed.
    """

    def __init__(self, patterns: Optional[Sequence[Pattern[str]]] = None):
        self.patterns = tuple(patterns) if patterns is not None else DEFAULT_CLAIM_PATTERNS

    def extract(self, text: str) -> List[ClaimCandidate]:
        candidates: List[ClaimCandidate] = []
        for pattern in self.patterns:
            for match in pattern.finditer(text):
                groups = [" ".join(g.split()) for g in match.groups() if g and g.strip()]
                candidates.append(ClaimCandidate(
                    claim_text=match.group(0).strip(),
                    topic=groups[-1] if groups else "",
                ))
        return candidates


def generate_honest_alternative(topic: str) -> str:
    """Standalone disclaimer offering three ways to continue with ``topic``."""
    return (
        f"I don't have a record of us discussing {topic} in our conversation history.\n\n"
        f"However, I'd be happy to help you with {topic}! Would you like me to:\n"
        "1. Provide a quick summary or overview\n"
        "2. Continue from where you think we left off\n"
        "3. Start fresh with a comprehensive explanation\n\n"
        "Which would be most helpful for you?"
    )


def honest_statement(topic: str) -> str:
    """Sentence-sized disclaimer used in place of a false claim."""
    return (
        f"I don't have a record of discussing {topic}. "
        f"Would you like a quick summary of {topic}, to continue from where you think we left off, "
        "or a fresh explanation from the start?"
    )


def replace_claim_sentence(text: str, claim_text: str, replacement: str) -> str:
    """
    Replace the first sentence containing ``claim_text`` (case-insensitive).

    Surrounding text keeps its original spacing; text with no matching
    sentence is returned unchanged.
    """
    needle = claim_text.lower()

    for match in _SENTENCE.finditer(text):
        sentence = match.group(0)
        if needle not in sentence.lower():
            continue
        start = match.start() + len(sentence) - len(sentence.lstrip())
        end = match.end() - (len(sentence) - len(sentence.rstrip()))
        return text[:start] + replacement + text[end:]

    return text


class MemoryClaimValidator:
    """Validates memory claims in generated responses."""

    def __init__(self, extractor: Optional[ClaimExtractor] = None, threshold: float = DEFAULT_THRESHOLD):
        self.extractor = extractor or RegexClaimExtractor()
        self.threshold = threshold

    def validate(
        self,
        response: str,
        session_context: SessionContext,
        profile: Optional[UserProfile] = None,
        threshold: Optional[float] = None,
    ) -> MemoryValidationResult:
        """
        Verify every memory claim in ``response``.

        Args:
            response: Generated text to check
            session_context: Session whose topic index backs valid claims
            profile: Opt-in profile used for preference claims
            threshold: Minimum confidence for a claim to count as valid

        Returns:
            MemoryValidationResult; ``corrected_response`` is set only when
            at least one claim is invalid
        """
        threshold = self.threshold if threshold is None else threshold
        claims: List[MemoryClaim] = []

        for candidate in self.extractor.extract(response):
            claim = self.verify_claim(candidate, session_context, profile, threshold)
            claims.append(claim)
            if not claim.is_valid:
                logger.info(
                    f'Invalid memory claim detected: "{candidate.claim_text}" '
                    f"(confidence: {claim.confidence})"
                )

        has_invalid = any(not claim.is_valid for claim in claims)
        corrected = self.correct_response(response, claims) if has_invalid else None

        return MemoryValidationResult(valid=not has_invalid, claims=claims, corrected_response=corrected)

    def verify_claim(
        self,
        candidate: ClaimCandidate,
        session_context: SessionContext,
        profile: Optional[UserProfile],
        threshold: float,
    ) -> MemoryClaim:
        confidence = 0.0
        evidence: Optional[str] = None

        if session_context.has_discussed_topic(candidate.topic, threshold=threshold):
            confidence = SESSION_CONFIDENCE
            best = session_context.find_best_topic(candidate.topic)
            evidence = best.sample_context if best else None

        if profile is not None and is_preference_claim(candidate.claim_text):
            profile_confidence = check_profile(candidate.claim_text, profile)
            if profile_confidence > confidence:
                confidence = profile_confidence
                evidence = "User profile data"

        return MemoryClaim(
            claim_text=candidate.claim_text,
            topic=candidate.topic,
            is_valid=confidence >= threshold,
            confidence=confidence,
            evidence=evidence,
        )

    @staticmethod
    def correct_response(response: str, claims: Sequence[MemoryClaim]) -> str:
        corrected = response
        for claim in claims:
            if not claim.is_valid:
                corrected = replace_claim_sentence(corrected, claim.claim_text, honest_statement(claim.topic))
        return corrected

    generate_honest_alternative = staticmethod(generate_honest_alternative)


def is_preference_claim(claim_text: str) -> bool:
    lowered = claim_text.lower()
    return any(keyword in lowered for keyword in PREFERENCE_KEYWORDS)


def check_profile(claim_text: str, profile: UserProfile) -> float:
    """Confidence that the profile backs a preference claim."""
    lowered = claim_text.lower()
    prefs = profile.learning_preferences

    for style in ("visual", "auditory", "kinesthetic"):
        if style in lowered and getattr(prefs, style) > STYLE_PROFILE_MINIMUM:
            return STYLE_PROFILE_CONFIDENCE

    for subject in profile.skill_scores.subject_mastery:
        if subject.lower() in lowered:
            return SUBJECT_PROFILE_CONFIDENCE

    return 0.0

"""Stateless validation pass over a finished model response.

Unlike ``TutorMiddleware.post_process_response`` this does not touch
session state and does not rewrite sentences: memory disclaimers are
prepended and math warnings appended, and every finding is itemized.
Useful for batch or offline scoring.
"""

import logging
from typing import List, Optional

from ..profile.models import UserProfile
from ..profile.store import ProfileStore
from ..session.context import SessionContext
from ..validators.learning_style import DetectedLearningStyle, LearningStyleDetector
from ..validators.math_engine import MathEngine, format_number
from ..validators.memory_claims import MemoryClaimValidator, generate_honest_alternative
from .prompts import MATH_WARNING_TEMPLATE
from .state import MathIssue, MathValidation, MemoryIssue, ProcessedAIResponse

logger = logging.getLogger(__name__)

RECENT_TOPIC_COUNT = 3


async def _load_profile(profile_store: Optional[ProfileStore], user_id: str) -> Optional[UserProfile]:
    if profile_store is None:
        return None
    try:
        return await profile_store.get_profile(user_id)
    except Exception as e:
        logger.error(f"Error loading profile for {user_id}: {e}")
        return None


def _collect_memory_issues(
    ai_response: str,
    session_context: SessionContext,
    profile: Optional[UserProfile],
    validator: MemoryClaimValidator,
) -> List[MemoryIssue]:
    result = validator.validate(ai_response, session_context, profile=profile)
    if result.valid:
        return []

    recent = ", ".join(t.topic for t in session_context.get_recent_topics(top_k=RECENT_TOPIC_COUNT))
    return [
        MemoryIssue(
            claim=claim.claim_text,
            honest_alternative=generate_honest_alternative(recent or claim.topic),
        )
        for claim in result.invalid_claims
    ]


async def process_ai_response(
    user_query: str,
    ai_response: str,
    session_context: SessionContext,
    profile_store: Optional[ProfileStore] = None,
    style_detector: Optional[LearningStyleDetector] = None,
    memory_validator: Optional[MemoryClaimValidator] = None,
    math_engine: Optional[MathEngine] = None,
) -> ProcessedAIResponse:
    """
    Run style detection, memory validation and math validation on a response.

    Each step fails open: an error is logged and the step contributes
    nothing to the result.

    Args:
        user_query: The user's message for this turn
        ai_response: Model output to check
        session_context: Session the claims are checked against (not modified)
        profile_store: Optional store used to back preference claims

    Returns:
        ProcessedAIResponse with the assembled text and itemized findings
    """
    style_detector = style_detector or LearningStyleDetector()
    memory_validator = memory_validator or MemoryClaimValidator()
    math_engine = math_engine or MathEngine()

    detected_style: Optional[DetectedLearningStyle] = None
    try:
        detected_style = style_detector.estimate(session_context, current_message=user_query)
        logger.debug(f"Learning style detected: {detected_style.summary()}")
    except Exception as e:
        logger.error(f"Error detecting learning style: {e}")

    profile = await _load_profile(profile_store, session_context.user_id)

    memory_issues: List[MemoryIssue] = []
    try:
        memory_issues = _collect_memory_issues(ai_response, session_context, profile, memory_validator)
    except Exception as e:
        logger.error(f"Error validating memory: {e}")
    if memory_issues:
        logger.info(f"Found {len(memory_issues)} false memory claims")

    math_issues: List[MathIssue] = []
    math_validations: List[MathValidation] = []
    try:
        math_result = math_engine.validate_and_annotate(ai_response)
        math_issues = [
            MathIssue(expression=issue.split(":")[0].strip(), description=issue)
            for issue in math_result.issues
        ]
        if math_result.valid:
            math_validations = [
                MathValidation(
                    expression=expression,
                    result=format_number(value),
                    explanation=f"Validated: {expression} = {format_number(value)}",
                )
                for expression, value in math_result.calculated_values.items()
            ]
    except Exception as e:
        logger.error(f"Error validating math: {e}")

    final_response = ai_response

    if memory_issues:
        disclaimers = "\n\n".join(issue.honest_alternative for issue in memory_issues)
        final_response = f"{disclaimers}\n\n{final_response}"

    if math_issues:
        warnings = "\n".join(
            MATH_WARNING_TEMPLATE.format(expression=issue.expression, description=issue.description)
            for issue in math_issues
        )
        final_response = f"{final_response}\n\n{warnings}"

    return ProcessedAIResponse(
        final_response=final_response,
        detected_learning_style=detected_style,
        memory_issues=memory_issues,
        math_issues=math_issues,
        math_validations=math_validations,
    )

"""Prompt and response templates for the tutor middleware."""

from typing import List, Optional

from ..profile.models import UserProfile
from ..session.context import SessionContext
from ..validators.learning_style import DetectedLearningStyle, get_recommendations


# =============================================================================
# SYSTEM PROMPT
# =============================================================================

SYSTEM_PROMPT_HEADER = "System: You are {tutor_name}, an expert educational AI assistant."

CRITICAL_RULES_TEMPLATE = """CRITICAL RULES:
1. NEVER assert prior conversations or stored facts unless sessionContext or userProfile contains supporting evidence.
   - Use semantic search threshold of {threshold:.2f} for memory claims.
   - If uncertain, ask "Would you like me to explain X?" instead of "We discussed X".

2. ALWAYS structure responses in this format:
   - Start with a 1-2 sentence SHORT ANSWER
   - Follow with an "Expand" section with examples and details
   - End with "Next Actions" (2-3 suggestions)

3. For mathematical calculations:
   - Show step-by-step derivation
   - Double-check arithmetic
   - Verify final answer

4. Emotional awareness:
   - Acknowledge user emotions (frustration, excitement, confusion)
   - Offer calming, supportive scaffolding questions
   - Adapt tone to match user state

5. Learning style adaptation:
{style_rules}
"""

DEFAULT_STYLE_RULE = "Offer multiple formats (text, visual descriptions, examples)"


def format_profile_section(profile: Optional[UserProfile]) -> List[str]:
    """Profile lines; details are shown only for opted-in profiles."""
    if profile is None or not profile.opt_in_flags.profile_storage:
        return ["- User Profile: Not available (user has not opted in)"]

    lines = [
        "- User Profile: Available (opted in)",
        f"  - Dominant Learning Style: {profile.learning_preferences.dominant_style()}",
        f"  - Preferred Detail Level: {profile.learning_preferences.preferred_depth}",
    ]
    if profile.skill_scores.subject_mastery:
        lines.append(f"  - Subject Mastery: {', '.join(profile.skill_scores.subject_mastery)}")
    return lines


def format_session_section(session_context: SessionContext, top_k: int = 5) -> List[str]:
    lines = [f"- Session Context: {session_context.message_count} messages"]
    recent_topics = session_context.get_recent_topics(top_k=top_k)
    if recent_topics:
        lines.append(f"  - Recent Topics: {', '.join(t.topic for t in recent_topics)}")
    return lines


def format_style_section(detected_style: Optional[DetectedLearningStyle]) -> List[str]:
    if detected_style is None:
        return []

    prefs = detected_style.preferences
    return [
        "- Detected Learning Style (current session):",
        f"  - Visual: {prefs.visual * 100:.0f}%",
        f"  - Auditory: {prefs.auditory * 100:.0f}%",
        f"  - Kinesthetic: {prefs.kinesthetic * 100:.0f}%",
        f"  - Reading: {prefs.reading * 100:.0f}%",
        f"  - Preferred Depth: {prefs.preferred_depth}",
    ]


def build_system_prompt(
    session_context: SessionContext,
    profile: Optional[UserProfile] = None,
    detected_style: Optional[DetectedLearningStyle] = None,
    tutor_name: str = "StudyPals Tutor",
    threshold: float = 0.75,
) -> str:
    """
    Build the grounded system prompt for one turn.

    Args:
        session_context: Current session (message count and recent topics)
        profile: Opt-in profile, summarized only when storage is opted in
        detected_style: Learning style detected this turn, if any
        tutor_name: Name the tutor introduces itself with
        threshold: Memory claim threshold quoted in the rules

    Returns:
        System prompt text
    """
    recommendations = get_recommendations(detected_style) if detected_style is not None else []
    style_rules = "\n".join(f"   - {rec}" for rec in (recommendations or [DEFAULT_STYLE_RULE]))

    lines = [
        SYSTEM_PROMPT_HEADER.format(tutor_name=tutor_name),
        "",
        "CONTEXT PROVIDED:",
        *format_profile_section(profile),
        *format_session_section(session_context),
        *format_style_section(detected_style),
        "",
        CRITICAL_RULES_TEMPLATE.format(threshold=threshold, style_rules=style_rules),
    ]
    return "\n".join(lines)


# =============================================================================
# RESPONSE TEMPLATES
# =============================================================================

MATH_VERIFICATION_TEMPLATE = "\n\n---\n**Math Verification:**\n{corrected_steps}"

FALLBACK_HEADER = "I want to make sure I give you the most accurate help possible."
FALLBACK_MEMORY_LINE = "I noticed some uncertainty about our conversation history."
FALLBACK_MATH_LINE = "I also want to double-check any calculations to ensure accuracy."

FALLBACK_OPTIONS = """To help you best, I can:
1. **Quick Summary**: Give you a brief overview of the topic
2. **Step-by-Step Solution**: Walk through the problem methodically
3. **Extended Explanation**: Provide comprehensive coverage with examples

Which approach would be most helpful for you right now?"""

MATH_WARNING_TEMPLATE = "⚠️ Math check: {expression} - {description}"


def build_fallback_response(memory_issue: bool = True, math_issue: bool = True) -> str:
    """Safety response used when several validators reject the same turn."""
    lines = [FALLBACK_HEADER, ""]
    if memory_issue:
        lines.append(FALLBACK_MEMORY_LINE)
    if math_issue:
        lines.append(FALLBACK_MATH_LINE)
    lines.extend(["", FALLBACK_OPTIONS])
    return "\n".join(lines)


def format_math_verification(corrected_steps: str) -> str:
    return MATH_VERIFICATION_TEMPLATE.format(corrected_steps=corrected_steps)

"""
Tests for the stateless response validation pass.
"""

import pytest

from tutor_guard.core.exceptions import ProfileStoreError
from tutor_guard.middleware import process_ai_response
from tutor_guard.validators.memory_claims import generate_honest_alternative

FALSE_CLAIM = "As we discussed photosynthesis earlier, plants use light to make sugar."


class BrokenProfileStore:
    async def get_profile(self, user_id):
        raise ProfileStoreError("profile database unavailable")


@pytest.mark.asyncio
class TestMemoryIssues:
    async def test_disclaimers_are_prepended(self, session_context):
        result = await process_ai_response("What is photosynthesis?", FALSE_CLAIM, session_context)

        assert result.memory_issues
        assert result.has_issues
        first = result.memory_issues[0]
        assert first.honest_alternative == generate_honest_alternative("photosynthesis earlier")
        assert result.final_response.startswith(first.honest_alternative)
        assert result.final_response.endswith(FALSE_CLAIM)

    async def test_recent_topics_used_for_alternative(self, session_context, add_user_message):
        add_user_message(session_context, "fractions")

        result = await process_ai_response("Next?", FALSE_CLAIM, session_context)

        assert result.memory_issues[0].honest_alternative == generate_honest_alternative("fractions")

    async def test_session_is_not_modified(self, session_context):
        await process_ai_response("What is photosynthesis?", FALSE_CLAIM, session_context)
        assert session_context.message_count == 0

    async def test_profile_store_backs_preference_claim(self, session_context, profile_store):
        result = await process_ai_response(
            "Show me", "Your preference is visual learning.", session_context, profile_store=profile_store
        )
        assert result.memory_issues == []

    async def test_broken_profile_store_is_ignored(self, session_context):
        result = await process_ai_response(
            "Show me", "Your preference is visual learning.", session_context,
            profile_store=BrokenProfileStore(),
        )
        assert len(result.memory_issues) == 1


@pytest.mark.asyncio
class TestMathIssues:
    async def test_warnings_are_appended(self, session_context):
        response = "The answer is 2 + 2 = 5."
        result = await process_ai_response("What is 2 + 2?", response, session_context)

        assert len(result.math_issues) == 1
        issue = result.math_issues[0]
        assert issue.expression == 'Expression "2 + 2"'
        assert issue.severity == "warning"
        assert result.final_response.startswith(response + "\n\n")
        assert result.final_response.endswith(f"⚠️ Math check: {issue.expression} - {issue.description}")
        assert result.math_validations == []

    async def test_correct_math_is_itemized(self, session_context):
        result = await process_ai_response("What is 2 + 2?", "So 2 + 2 = 4.", session_context)

        assert result.math_issues == []
        assert not result.has_issues
        assert result.final_response == "So 2 + 2 = 4."
        assert [(v.expression, v.result, v.explanation) for v in result.math_validations] == [
            ("2 + 2", "4.0", "Validated: 2 + 2 = 4.0"),
        ]


@pytest.mark.asyncio
class TestCombined:
    async def test_both_issue_kinds(self, session_context):
        result = await process_ai_response("Help", "As we discussed photosynthesis earlier, 2 + 2 = 5.", session_context)

        assert result.memory_issues and result.math_issues
        assert result.issue_count == len(result.memory_issues) + 1
        assert "⚠️ Math check:" in result.final_response

    async def test_style_is_detected(self, session_context):
        result = await process_ai_response("Can you draw a diagram?", "Sure.", session_context)

        assert result.detected_learning_style is not None
        assert 0.0 <= result.detected_learning_style.confidence <= 1.0

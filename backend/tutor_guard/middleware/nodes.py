"""Nodes for the post-process graph.

Each node takes the current ``PostProcessState`` and returns the keys it
changes. Validators run through the shared ``ResilienceExecutor`` without
retries; a validator that raises is recorded in telemetry and treated as
passed.
"""

import logging
from typing import Any, Callable, Dict

from ..core.feature_flags import MATH_VALIDATION, MEMORY_VALIDATION, FeatureFlags
from ..core.logging_utils import log_pipeline_step
from ..core.resilience import ResilienceExecutor
from ..session.context import SessionContext
from ..session.message_utils import make_assistant_message, make_user_message
from ..validators.math_engine import MathEngine
from ..validators.memory_claims import MemoryClaimValidator
from .prompts import build_fallback_response, format_math_verification
from .state import PostProcessState

logger = logging.getLogger(__name__)

MEMORY_OPERATION = "memory_validation"
MATH_OPERATION = "math_validation"


class PostProcessNodes:
    """Post-process steps bound to the middleware's collaborators."""

    def __init__(
        self,
        get_session: Callable[[str], SessionContext],
        executor: ResilienceExecutor,
        feature_flags: FeatureFlags,
        memory_validator: MemoryClaimValidator,
        math_engine: MathEngine,
        memory_threshold: float = 0.75,
    ):
        self.get_session = get_session
        self.executor = executor
        self.feature_flags = feature_flags
        self.memory_validator = memory_validator
        self.math_engine = math_engine
        self.memory_threshold = memory_threshold

    def _failure_reason(self, operation_name: str) -> str:
        return self.executor.last_error(operation_name) or f"{operation_name} unavailable"

    # =========================================================================
    # SESSION
    # =========================================================================

    @log_pipeline_step("post_process")
    async def resolve_session_node(self, state: PostProcessState) -> Dict[str, Any]:
        """Reuse the pre-processed session, or fetch or create one for the user."""
        context = state.get("context")
        if context is not None:
            session = context.session_context
        else:
            session = self.get_session(state["user_id"])
        return {"session_context": session}

    @log_pipeline_step("post_process")
    async def record_turn_node(self, state: PostProcessState) -> Dict[str, Any]:
        """Append the user message and the final response to the session."""
        session = state["session_context"] or self.get_session(state["user_id"])
        session.add_message(make_user_message(state["message"], user_id=state["user_id"]))
        session.add_message(make_assistant_message(state["response"], user_id=state["user_id"]))
        return {}

    # =========================================================================
    # VALIDATION
    # =========================================================================

    @log_pipeline_step("post_process")
    async def validate_memory_node(self, state: PostProcessState) -> Dict[str, Any]:
        """Rewrite sentences that claim history the session cannot back up."""
        if not self.feature_flags.is_enabled(MEMORY_VALIDATION, state["user_id"]):
            return {}

        session = state["session_context"]
        telemetry = dict(state["telemetry"])

        result = await self.executor.execute_with_fallback(
            MEMORY_OPERATION,
            lambda: self.memory_validator.validate(
                state["llm_response"],
                session,
                profile=state.get("profile"),
                threshold=self.memory_threshold,
            ),
            retry_enabled=False,
        )

        if result is None:
            error = self._failure_reason(MEMORY_OPERATION)
            logger.error(f"Error in memory validation: {error}")
            telemetry["memory_validation_error"] = error
            return {"telemetry": telemetry}

        telemetry["memory_claims_detected"] = len(result.claims)
        telemetry["invalid_memory_claims"] = len(result.invalid_claims)
        update: Dict[str, Any] = {"memory_valid": result.valid, "telemetry": telemetry}

        if not result.valid and result.corrected_response is not None:
            update["response"] = result.corrected_response
            update["corrections"] = [*state["corrections"], "Corrected false memory claims"]
            logger.info(f"Memory claims corrected for user: {state['user_id']}")

        return update

    @log_pipeline_step("post_process")
    async def validate_math_node(self, state: PostProcessState) -> Dict[str, Any]:
        """Append a verification block when stated arithmetic is wrong."""
        if not self.feature_flags.is_enabled(MATH_VALIDATION, state["user_id"]):
            return {}

        telemetry = dict(state["telemetry"])

        result = await self.executor.execute_with_fallback(
            MATH_OPERATION,
            lambda: self.math_engine.validate_and_annotate(state["llm_response"]),
            retry_enabled=False,
        )

        if result is None:
            error = self._failure_reason(MATH_OPERATION)
            logger.error(f"Error in math validation: {error}")
            telemetry["math_validation_error"] = error
            return {"telemetry": telemetry}

        telemetry["math_expressions_found"] = len(result.calculated_values)
        telemetry["math_issues"] = len(result.issues)
        update: Dict[str, Any] = {"math_valid": result.valid, "telemetry": telemetry}

        if not result.valid and result.corrected_steps is not None:
            update["math_corrections"] = result.corrected_steps
            update["response"] = state["response"] + format_math_verification(result.corrected_steps)
            update["corrections"] = [*state["corrections"], "Added math corrections"]
            logger.info(f"Math corrections added for user: {state['user_id']}")

        return update

    # =========================================================================
    # FALLBACK
    # =========================================================================

    @log_pipeline_step("post_process")
    async def apply_fallback_node(self, state: PostProcessState) -> Dict[str, Any]:
        """Replace the whole response with the safety message."""
        logger.warning(f"Multiple validation failures detected for {state['user_id']} - using fallback")
        telemetry = dict(state["telemetry"])
        telemetry["used_fallback"] = True
        return {
            "response": build_fallback_response(
                memory_issue=not state["memory_valid"],
                math_issue=not state["math_valid"],
            ),
            "corrections": [*state["corrections"], "Used safety fallback"],
            "telemetry": telemetry,
        }


def route_after_validation(state: PostProcessState) -> str:
    """Fall back only when memory and math both rejected the response."""
    if not state["memory_valid"] and not state["math_valid"]:
        return "apply_fallback"
    return "record_turn"

"""Tutor middleware: pre-process and post-process hooks around a model call.

    context = await middleware.pre_process_message(user_id, message)
    reply = await llm.ainvoke(context.to_langchain_messages(message))
    result = await middleware.post_process_response(user_id, message, reply.content, context)

The middleware keeps one ``SessionContext`` per user in memory. Callers must
not run two turns for the same user concurrently.
"""

import logging
from typing import Any, Dict, Optional

from ..core.config import Settings, get_settings
from ..core.feature_flags import FeatureFlags
from ..core.resilience import ResilienceExecutor
from ..profile.models import UserProfile
from ..profile.store import ProfileStore
from ..session.context import SessionContext
from ..session.message_utils import make_assistant_message, make_user_message
from ..validators.learning_style import DetectedLearningStyle, LearningStyleDetector
from ..validators.math_engine import MathEngine
from ..validators.memory_claims import MemoryClaimValidator
from .graph import PostProcessGraph
from .nodes import PostProcessNodes
from .prompts import build_system_prompt
from .state import PostProcessedResponse, PreProcessedContext, create_post_process_state

logger = logging.getLogger(__name__)

PROFILE_OPERATION = "profile_fetch"


class TutorMiddleware:
    """Grounds prompts in session state and validates model responses."""

    def __init__(
        self,
        profile_store: Optional[ProfileStore] = None,
        feature_flags: Optional[FeatureFlags] = None,
        executor: Optional[ResilienceExecutor] = None,
        settings: Optional[Settings] = None,
        style_detector: Optional[LearningStyleDetector] = None,
        memory_validator: Optional[MemoryClaimValidator] = None,
        math_engine: Optional[MathEngine] = None,
    ):
        """
        Initialize the middleware.

        Args:
            profile_store: Opt-in profile store; profiles are skipped when None
            feature_flags: Per-user validation switches (default: from settings)
            executor: Resilience executor shared by all guarded steps
            settings: Application settings
            style_detector: Learning style detector
            memory_validator: Memory claim validator
            math_engine: Math expression engine
        """
        self.settings = settings or get_settings()
        self.profile_store = profile_store
        self.feature_flags = feature_flags or FeatureFlags.from_settings(self.settings)
        self.executor = executor or ResilienceExecutor.from_settings(self.settings)
        self.style_detector = style_detector or LearningStyleDetector()
        self.memory_validator = memory_validator or MemoryClaimValidator(
            threshold=self.settings.MEMORY_CLAIM_THRESHOLD
        )
        self.math_engine = math_engine or MathEngine()
        self._sessions: Dict[str, SessionContext] = {}

        self.post_process_graph = PostProcessGraph(
            PostProcessNodes(
                get_session=self.get_or_create_session,
                executor=self.executor,
                feature_flags=self.feature_flags,
                memory_validator=self.memory_validator,
                math_engine=self.math_engine,
                memory_threshold=self.settings.MEMORY_CLAIM_THRESHOLD,
            )
        )

    # =========================================================================
    # Sessions
    # =========================================================================

    def get_or_create_session(self, user_id: str, max_messages: Optional[int] = None) -> SessionContext:
        session = self._sessions.get(user_id)
        if session is None:
            session = SessionContext(
                user_id=user_id,
                max_messages=max_messages or self.settings.SESSION_MAX_MESSAGES,
            )
            self._sessions[user_id] = session
            logger.debug(f"Created session context for user: {user_id}")
        return session

    def clear_session(self, user_id: str) -> None:
        session = self._sessions.pop(user_id, None)
        if session is not None:
            session.clear()
        logger.info(f"Session cleared for user: {user_id}")

    def get_session_stats(self, user_id: str) -> Dict[str, Any]:
        session = self._sessions.get(user_id)
        if session is None:
            return {"exists": False}
        return {"exists": True, **session.get_statistics()}

    # =========================================================================
    # Pre-process
    # =========================================================================

    async def _load_profile(self, user_id: str) -> Optional[UserProfile]:
        if self.profile_store is None:
            return None
        return await self.executor.execute_with_fallback(
            PROFILE_OPERATION,
            lambda: self.profile_store.get_profile(user_id),
        )

    def _detect_style(self, session: SessionContext, message: str) -> Optional[DetectedLearningStyle]:
        try:
            style = self.style_detector.estimate(session, current_message=message)
        except Exception as e:
            logger.error(f"Error detecting learning style: {e}")
            return None
        logger.debug(f"Learning style detected: {style.summary()}")
        return style

    async def pre_process_message(
        self,
        user_id: str,
        message: str,
        max_messages: Optional[int] = None,
    ) -> PreProcessedContext:
        """
        Prepare the grounded system prompt for a user message.

        Profile and style failures are logged and the turn proceeds
        without them.
        """
        logger.info(f"Pre-processing message for user: {user_id}")

        session = self.get_or_create_session(user_id, max_messages)
        profile = await self._load_profile(user_id)
        detected_style = self._detect_style(session, message)

        system_prompt = build_system_prompt(
            session,
            profile=profile,
            detected_style=detected_style,
            tutor_name=self.settings.TUTOR_NAME,
            threshold=self.settings.MEMORY_CLAIM_THRESHOLD,
        )

        return PreProcessedContext(
            session_context=session,
            profile=profile,
            detected_style=detected_style,
            system_prompt=system_prompt,
            metadata={
                "message_length": len(message),
                "session_message_count": session.message_count,
                "has_profile": profile is not None,
                "style_confidence": detected_style.confidence if detected_style else 0.0,
            },
        )

    # =========================================================================
    # Post-process
    # =========================================================================

    def _record_raw_turn(
        self,
        user_id: str,
        message: str,
        llm_response: str,
        context: Optional[PreProcessedContext],
    ) -> None:
        """Record an unvalidated turn after the post-process graph failed."""
        try:
            session = context.session_context if context is not None else self.get_or_create_session(user_id)
            session.add_message(make_user_message(message, user_id=user_id))
            session.add_message(make_assistant_message(llm_response, user_id=user_id))
        except Exception as e:
            logger.error(f"Error recording turn for {user_id}: {e}")

    async def post_process_response(
        self,
        user_id: str,
        message: str,
        llm_response: str,
        context: Optional[PreProcessedContext] = None,
    ) -> PostProcessedResponse:
        """
        Validate a model response, correct or replace it, and record the turn.

        Args:
            user_id: User the turn belongs to
            message: The user's message
            llm_response: Raw model output
            context: Result of ``pre_process_message`` for this turn, if any

        Returns:
            PostProcessedResponse with final text, validator outcomes,
            applied corrections and telemetry
        """
        logger.info(f"Post-processing response for user: {user_id}")

        state = create_post_process_state(user_id, message, llm_response, context)
        try:
            final_state = await self.post_process_graph.invoke(state)
        except Exception as e:
            logger.error(f"Post-processing failed for {user_id}: {e}")
            self._record_raw_turn(user_id, message, llm_response, context)
            return PostProcessedResponse(
                response=llm_response,
                telemetry={"post_process_error": str(e)},
            )

        return PostProcessedResponse(
            response=final_state["response"],
            memory_valid=final_state["memory_valid"],
            math_valid=final_state["math_valid"],
            corrections=final_state["corrections"],
            telemetry=final_state["telemetry"],
        )

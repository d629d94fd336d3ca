"""State and result types for the tutor middleware.

Result objects are pydantic models; the post-process graph state is a
TypedDict passed between LangGraph nodes.
"""

from typing import Any, Dict, List, Optional

from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage
from pydantic import BaseModel, ConfigDict, Field
from typing_extensions import TypedDict

from ..profile.models import UserProfile
from ..session.context import SessionContext
from ..session.message_utils import to_langchain_messages
from ..validators.learning_style import DetectedLearningStyle


class PreProcessedContext(BaseModel):
    """Everything the caller needs to make the model call for one turn."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_context: SessionContext
    profile: Optional[UserProfile] = None
    detected_style: Optional[DetectedLearningStyle] = None
    system_prompt: str
    metadata: Dict[str, Any] = Field(default_factory=dict)

    def to_langchain_messages(self, user_message: str, history_limit: Optional[int] = None) -> List[BaseMessage]:
        """
        Build ``[system, *history, user]`` messages for a LangChain chat model.

        Args:
            user_message: The message being answered this turn
            history_limit: Only include this many recent session messages
        """
        history = (
            self.session_context.get_all_messages()
            if history_limit is None
            else self.session_context.get_recent_messages(limit=history_limit)
        )
        return [
            SystemMessage(content=self.system_prompt),
            *to_langchain_messages(history),
            HumanMessage(content=user_message),
        ]


class PostProcessedResponse(BaseModel):
    """Final text for one turn plus validation outcome and telemetry."""

    response: str
    memory_valid: bool = True
    math_valid: bool = True
    corrections: List[str] = Field(default_factory=list)
    telemetry: Dict[str, Any] = Field(default_factory=dict)

    @property
    def has_issues(self) -> bool:
        return not self.memory_valid or not self.math_valid

    @property
    def issue_count(self) -> int:
        return (0 if self.memory_valid else 1) + (0 if self.math_valid else 1)


class MemoryIssue(BaseModel):
    """A false memory claim and the honest text to use instead."""

    claim: str
    honest_alternative: str


class MathIssue(BaseModel):
    expression: str
    description: str
    severity: str = "warning"


class MathValidation(BaseModel):
    expression: str
    result: str
    explanation: str


class ProcessedAIResponse(BaseModel):
    """Result of the stateless validation pass."""

    final_response: str
    detected_learning_style: Optional[DetectedLearningStyle] = None
    memory_issues: List[MemoryIssue] = Field(default_factory=list)
    math_issues: List[MathIssue] = Field(default_factory=list)
    math_validations: List[MathValidation] = Field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.memory_issues) or bool(self.math_issues)

    @property
    def issue_count(self) -> int:
        return len(self.memory_issues) + len(self.math_issues)


class PostProcessState(TypedDict):
    """State flowing through the post-process graph for one turn."""

    # Inputs
    user_id: str
    message: str
    llm_response: str
    context: Optional[PreProcessedContext]

    # Resolved per turn
    session_context: Optional[SessionContext]
    profile: Optional[UserProfile]

    # Outcome
    response: str
    memory_valid: bool
    math_valid: bool
    math_corrections: Optional[str]
    corrections: List[str]
    telemetry: Dict[str, Any]


def create_post_process_state(
    user_id: str,
    message: str,
    llm_response: str,
    context: Optional[PreProcessedContext] = None,
) -> PostProcessState:
    """Create the initial graph state for one post-process run."""
    return PostProcessState(
        user_id=user_id,
        message=message,
        llm_response=llm_response,
        context=context,
        session_context=None,
        profile=context.profile if context is not None else None,
        response=llm_response,
        memory_valid=True,
        math_valid=True,
        math_corrections=None,
        corrections=[],
        telemetry={},
    )

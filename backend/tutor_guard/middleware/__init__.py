"""Pre/post-processing middleware around tutor model calls."""

from .graph import PostProcessGraph
from .middleware import TutorMiddleware
from .processing import process_ai_response
from .prompts import build_fallback_response, build_system_prompt
from .state import (
    MathIssue,
    MathValidation,
    MemoryIssue,
    PostProcessedResponse,
    PreProcessedContext,
    ProcessedAIResponse,
)

__all__ = [
    "TutorMiddleware",
    "PostProcessGraph",
    "process_ai_response",
    "build_system_prompt",
    "build_fallback_response",
    "PreProcessedContext",
    "PostProcessedResponse",
    "ProcessedAIResponse",
    "MemoryIssue",
    "MathIssue",
    "MathValidation",
]

"""Tutor Guard - grounding and validation middleware for AI tutor responses.

Sits between a user's message, the model call, and the text shown to the
user:
- Pre-process: build a system prompt grounded in session state, the opt-in
  profile and the detected learning style
- Post-process: catch false memory claims and wrong arithmetic, correct or
  replace the response, and record the turn
"""

from .core import FeatureFlags, ResilienceExecutor, Settings, configure_logging, get_settings
from .middleware import (
    PostProcessedResponse,
    PreProcessedContext,
    ProcessedAIResponse,
    TutorMiddleware,
    process_ai_response,
)
from .profile import InMemoryProfileStore, ProfileStore, UserProfile
from .session import ChatMessage, SessionContext
from .validators import LearningStyleDetector, MathEngine, MemoryClaimValidator

__version__ = "0.1.0"

__all__ = [
    "FeatureFlags",
    "ResilienceExecutor",
    "Settings",
    "configure_logging",
    "get_settings",
    "TutorMiddleware",
    "process_ai_response",
    "PreProcessedContext",
    "PostProcessedResponse",
    "ProcessedAIResponse",
    "InMemoryProfileStore",
    "ProfileStore",
    "UserProfile",
    "ChatMessage",
    "SessionContext",
    "LearningStyleDetector",
    "MathEngine",
    "MemoryClaimValidator",
]

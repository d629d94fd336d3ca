"""User profile records and the opt-in profile store contract."""

from .models import (
    CURRENT_SCHEMA_VERSION,
    LearningStylePreferences,
    OptInFlags,
    SkillScores,
    UserProfile,
)
from .store import InMemoryProfileStore, ProfileStore

__all__ = [
    "CURRENT_SCHEMA_VERSION",
    "LearningStylePreferences",
    "OptInFlags",
    "SkillScores",
    "UserProfile",
    "ProfileStore",
    "InMemoryProfileStore",
]

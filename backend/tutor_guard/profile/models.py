"""Typed user profile records stored by the (opt-in) profile store.

Stored documents use camelCase keys; the models accept either camelCase
or snake_case, ignore unknown keys, and carry a schema version so older
or newer documents are handled deterministically.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core.exceptions import ProfileSchemaError

CURRENT_SCHEMA_VERSION = 1

DepthPreference = Literal["brief", "medium", "detailed"]

STYLE_CATEGORIES = ("visual", "auditory", "kinesthetic", "reading")


class ProfileRecord(BaseModel):
    """Base for profile sub-records: camelCase aliases, unknown keys ignored."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class LearningStylePreferences(ProfileRecord):
    """Four-axis learning style scores plus preferred depth."""

    visual: float = Field(default=0.5, ge=0.0, le=1.0)
    auditory: float = Field(default=0.5, ge=0.0, le=1.0)
    kinesthetic: float = Field(default=0.5, ge=0.0, le=1.0)
    reading: float = Field(default=0.5, ge=0.0, le=1.0)
    preferred_depth: DepthPreference = "medium"

    def dominant_style(self) -> str:
        """Category with the highest score; earlier categories win ties."""
        scores = {name: getattr(self, name) for name in STYLE_CATEGORIES}
        best = STYLE_CATEGORIES[0]
        for name in STYLE_CATEGORIES[1:]:
            if scores[name] > scores[best]:
                best = name
        return best


class SkillScores(ProfileRecord):
    """Skill mastery scores by subject."""

    subject_mastery: Dict[str, float] = Field(default_factory=dict)  # subject -> 0.0 to 1.0
    topic_attempts: Dict[str, int] = Field(default_factory=dict)
    concept_confidence: Dict[str, float] = Field(default_factory=dict)


class OptInFlags(ProfileRecord):
    """Privacy and feature opt-in flags."""

    profile_storage: bool = False
    learning_analytics: bool = False
    personalization: bool = False
    semantic_memory: bool = False

    @property
    def any_enabled(self) -> bool:
        return self.profile_storage or self.learning_analytics or self.personalization or self.semantic_memory


class UserProfile(ProfileRecord):
    """Complete user profile for tutor personalization."""

    schema_version: int = CURRENT_SCHEMA_VERSION
    user_id: str
    display_name: Optional[str] = None
    learning_preferences: LearningStylePreferences = Field(default_factory=LearningStylePreferences)
    skill_scores: SkillScores = Field(default_factory=SkillScores)
    last_seen: datetime = Field(default_factory=datetime.utcnow)
    opt_in_flags: OptInFlags = Field(default_factory=OptInFlags)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "UserProfile":
        """
        Parse a stored profile document.

        Raises:
            ProfileSchemaError: Unsupported schema version or invalid fields
        """
        version = document.get("schemaVersion", document.get("schema_version", CURRENT_SCHEMA_VERSION))
        if not isinstance(version, int) or version < 1 or version > CURRENT_SCHEMA_VERSION:
            raise ProfileSchemaError(f"Unsupported profile schema version: {version!r}")

        try:
            return cls.model_validate(dict(document))
        except ValidationError as e:
            raise ProfileSchemaError(f"Invalid profile document: {e}") from e

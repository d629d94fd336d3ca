"""Opt-in user profile storage.

The real store is an external collaborator (a document database keyed by
user id). ``ProfileStore`` is the contract the middleware depends on;
``InMemoryProfileStore`` is a process-local implementation with the same
privacy rules, used for tests and local runs.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Protocol, runtime_checkable

from pydantic.alias_generators import to_camel

from ..core.exceptions import ProfileSchemaError
from .models import LearningStylePreferences, OptInFlags, SkillScores, UserProfile

logger = logging.getLogger(__name__)


def _camel_keys(patch: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize top-level snake_case keys to the stored camelCase form."""
    return {(to_camel(key) if "_" in key else key): value for key, value in patch.items()}


PRIVACY_NOTICE = """By enabling profile storage, you allow the tutor to:
- Remember your learning preferences and style
- Track your progress across subjects
- Personalize your tutoring experience
- Store conversation history for better context

You can opt out at any time, and all stored data will be deleted.
Your data is encrypted and never shared with third parties."""


@runtime_checkable
class ProfileStore(Protocol):
    """Read side of the profile store used by the middleware."""

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """Return the profile, or None if missing or not opted in."""
        ...


class InMemoryProfileStore:
    """Dictionary-backed profile store that enforces opt-in rules."""

    def __init__(self, documents: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._documents: Dict[str, Dict[str, Any]] = {
            user_id: dict(doc) for user_id, doc in (documents or {}).items()
        }

    async def get_profile(self, user_id: str) -> Optional[UserProfile]:
        document = self._documents.get(user_id)
        if document is None:
            logger.debug(f"No profile found for user: {user_id}")
            return None

        profile = UserProfile.from_document(document)

        # Respect privacy - only return if user has opted in
        if not profile.opt_in_flags.profile_storage:
            logger.debug(f"User has not opted in to profile storage: {user_id}")
            return None

        return profile

    async def set_profile(self, user_id: str, profile: UserProfile) -> bool:
        if not profile.opt_in_flags.profile_storage:
            logger.info(f"Cannot store profile - user has not opted in: {user_id}")
            return False

        self._documents[user_id] = profile.model_copy(update={"user_id": user_id}).to_document()
        logger.debug(f"Profile set for user: {user_id}")
        return True

    async def merge_profile(self, user_id: str, patch: Mapping[str, Any]) -> bool:
        """
        Merge a partial update into the stored profile.

        Creates a new profile only when the patch itself opts in to
        profile storage.
        """
        existing = await self.get_profile(user_id)

        try:
            if existing is None:
                opt_in = OptInFlags.model_validate(patch.get("optInFlags") or patch.get("opt_in_flags") or {})
                if not opt_in.profile_storage:
                    logger.info(f"Cannot create profile - no opt-in in patch: {user_id}")
                    return False
                profile = UserProfile.from_document({**patch, "userId": user_id})
                return await self.set_profile(user_id, profile)

            merged = {**existing.to_document(), **_camel_keys(patch), "userId": user_id}
            merged["lastSeen"] = datetime.utcnow().isoformat()
            profile = UserProfile.from_document(merged)
        except (ProfileSchemaError, ValueError) as e:
            logger.error(f"Error merging profile for {user_id}: {e}")
            return False

        self._documents[user_id] = profile.to_document()
        logger.debug(f"Profile merged for user: {user_id}")
        return True

    async def update_opt_in_flags(self, user_id: str, flags: OptInFlags) -> bool:
        document = self._documents.get(user_id)
        if document is None:
            return await self.set_profile(user_id, UserProfile(user_id=user_id, opt_in_flags=flags))

        self._documents[user_id] = {
            **document,
            "optInFlags": flags.to_document(),
            "lastSeen": datetime.utcnow().isoformat(),
        }
        return True

    async def update_learning_preferences(self, user_id: str, preferences: LearningStylePreferences) -> bool:
        return await self.merge_profile(user_id, {"learningPreferences": preferences.to_document()})

    async def update_skill_scores(self, user_id: str, skill_scores: SkillScores) -> bool:
        return await self.merge_profile(user_id, {"skillScores": skill_scores.to_document()})

    async def delete_profile(self, user_id: str) -> bool:
        removed = self._documents.pop(user_id, None) is not None
        logger.info(f"Profile deleted for user: {user_id}")
        return removed

    async def has_opted_in(self, user_id: str) -> bool:
        profile = await self.get_profile(user_id)
        return profile is not None and profile.opt_in_flags.profile_storage

    @staticmethod
    def privacy_notice() -> str:
        return PRIVACY_NOTICE

"""Per-user feature flags for gradual rollout of validation features."""

import logging
import zlib
from typing import Any, Dict, Iterable, Optional, Set

from .config import Settings, get_settings

logger = logging.getLogger(__name__)

MEMORY_VALIDATION = "memory_validation"
MATH_VALIDATION = "math_validation"
STYLE_ADAPTATION = "style_adaptation"
PROFILE_STORAGE = "profile_storage"

KNOWN_FLAGS = (MEMORY_VALIDATION, MATH_VALIDATION, STYLE_ADAPTATION, PROFILE_STORAGE)

# camelCase names used by stored configs and older callers
_FLAG_ALIASES = {
    "memoryValidation": MEMORY_VALIDATION,
    "mathValidation": MATH_VALIDATION,
    "styleAdaptation": STYLE_ADAPTATION,
    "profileStorage": PROFILE_STORAGE,
}


def normalize_flag_name(flag_name: str) -> str:
    """Map camelCase or snake_case flag names onto the canonical name."""
    return _FLAG_ALIASES.get(flag_name, flag_name)


def rollout_bucket(user_id: str) -> float:
    """Stable bucket in [0, 1) for a user id."""
    return (zlib.crc32(user_id.encode("utf-8")) % 100) / 100.0


class FeatureFlags:
    """
    Feature switches plus rollout targeting.

    Resolution order for ``is_enabled``:
    1. Internal users get every feature, known or not.
    2. Beta users get every globally enabled feature.
    3. Users whose rollout bucket falls under the rollout percentage get
       globally enabled features.
    4. Everyone else gets nothing.
    """

    def __init__(
        self,
        enabled: Optional[Iterable[str]] = None,
        rollout_percentage: float = 0.0,
        beta_users: Optional[Iterable[str]] = None,
        internal_users: Optional[Iterable[str]] = None,
    ):
        self._enabled: Set[str] = {normalize_flag_name(name) for name in (enabled or [])}
        self.rollout_percentage = min(max(rollout_percentage, 0.0), 1.0)
        self.beta_users: Set[str] = set(beta_users or [])
        self.internal_users: Set[str] = set(internal_users or [])

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FeatureFlags":
        """Build flags from FEATURE_* settings."""
        settings = settings or get_settings()
        switches = {
            MEMORY_VALIDATION: settings.FEATURE_MEMORY_VALIDATION,
            MATH_VALIDATION: settings.FEATURE_MATH_VALIDATION,
            STYLE_ADAPTATION: settings.FEATURE_STYLE_ADAPTATION,
            PROFILE_STORAGE: settings.FEATURE_PROFILE_STORAGE,
        }
        return cls(
            enabled=[name for name, on in switches.items() if on],
            rollout_percentage=settings.FEATURE_ROLLOUT_PERCENTAGE,
            beta_users=settings.beta_users_list,
            internal_users=settings.internal_users_list,
        )

    # Presets

    @classmethod
    def development(cls) -> "FeatureFlags":
        """All features enabled for all users."""
        return cls(enabled=KNOWN_FLAGS, rollout_percentage=1.0)

    @classmethod
    def staging(cls) -> "FeatureFlags":
        """All features enabled, but only for beta and internal users."""
        return cls(enabled=KNOWN_FLAGS, rollout_percentage=0.0)

    @classmethod
    def production(cls, percentage: float = 0.0) -> "FeatureFlags":
        """Validation features rolled out gradually; style/profile stay off."""
        return cls(enabled=[MEMORY_VALIDATION, MATH_VALIDATION], rollout_percentage=percentage)

    # Queries

    def is_enabled(self, flag_name: str, user_id: str) -> bool:
        """Check whether a feature is on for a specific user."""
        flag = normalize_flag_name(flag_name)

        if user_id in self.internal_users:
            return True

        if user_id in self.beta_users:
            return self.is_globally_enabled(flag)

        if self.rollout_percentage > 0.0 and rollout_bucket(user_id) < self.rollout_percentage:
            return self.is_globally_enabled(flag)

        return False

    def is_globally_enabled(self, flag_name: str) -> bool:
        flag = normalize_flag_name(flag_name)
        return flag in KNOWN_FLAGS and flag in self._enabled

    # Mutation

    def enable_global(self, flag_name: str) -> None:
        flag = normalize_flag_name(flag_name)
        if flag not in KNOWN_FLAGS:
            logger.warning(f"Ignoring unknown feature flag: {flag_name}")
            return
        self._enabled.add(flag)

    def disable_global(self, flag_name: str) -> None:
        self._enabled.discard(normalize_flag_name(flag_name))

    def add_beta_user(self, user_id: str) -> None:
        self.beta_users.add(user_id)

    def remove_beta_user(self, user_id: str) -> None:
        self.beta_users.discard(user_id)

    def add_internal_user(self, user_id: str) -> None:
        self.internal_users.add(user_id)

    def set_rollout_percentage(self, percentage: float) -> None:
        self.rollout_percentage = min(max(percentage, 0.0), 1.0)

    def reset(self) -> None:
        """Turn everything off. Internal users are kept."""
        self._enabled.clear()
        self.rollout_percentage = 0.0
        self.beta_users.clear()

    def configuration(self) -> Dict[str, Any]:
        """Current configuration snapshot."""
        return {
            **{flag: flag in self._enabled for flag in KNOWN_FLAGS},
            "rollout_percentage": self.rollout_percentage,
            "beta_user_count": len(self.beta_users),
            "internal_user_count": len(self.internal_users),
        }

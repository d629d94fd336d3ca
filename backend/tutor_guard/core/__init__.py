"""Core configuration, resilience and shared infrastructure for Tutor Guard."""

from .config import Settings, get_settings
from .exceptions import (
    ExpressionError,
    OperationTimeoutError,
    ProfileSchemaError,
    ProfileStoreError,
    TutorGuardError,
)
from .feature_flags import FeatureFlags
from .logging_utils import configure_logging, log_pipeline_step, truncate_text
from .resilience import CircuitBreakerState, ResilienceExecutor

__all__ = [
    "Settings",
    "get_settings",
    "TutorGuardError",
    "ProfileStoreError",
    "ProfileSchemaError",
    "OperationTimeoutError",
    "ExpressionError",
    "FeatureFlags",
    "configure_logging",
    "log_pipeline_step",
    "truncate_text",
    "CircuitBreakerState",
    "ResilienceExecutor",
]

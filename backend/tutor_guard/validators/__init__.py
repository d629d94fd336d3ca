"""Heuristic validators for generated tutor responses."""

from .learning_style import (
    DetectedLearningStyle,
    LearningStyleDetector,
    estimate_learning_style,
    get_recommendations,
)
from .math_engine import (
    MathEngine,
    MathStep,
    MathValidationResult,
    evaluate_expression,
    extract_expressions,
)
from .memory_claims import (
    ClaimCandidate,
    ClaimExtractor,
    MemoryClaim,
    MemoryClaimValidator,
    MemoryValidationResult,
    RegexClaimExtractor,
    generate_honest_alternative,
)

__all__ = [
    "DetectedLearningStyle",
    "LearningStyleDetector",
    "estimate_learning_style",
    "get_recommendations",
    "MathEngine",
    "MathStep",
    "MathValidationResult",
    "evaluate_expression",
    "extract_expressions",
    "ClaimCandidate",
    "ClaimExtractor",
    "MemoryClaim",
    "MemoryClaimValidator",
    "MemoryValidationResult",
    "RegexClaimExtractor",
    "generate_honest_alternative",
]

"""Exception types raised inside Tutor Guard components."""


class TutorGuardError(Exception):
    """Base exception for all Tutor Guard errors."""
    pass


class ProfileStoreError(TutorGuardError):
    """Raised when the profile store cannot be read or written."""
    pass


class ProfileSchemaError(TutorGuardError):
    """Raised when a stored profile document does not match a supported schema."""
    pass


class OperationTimeoutError(TutorGuardError):
    """Raised when a guarded operation exceeds its per-attempt timeout."""

    def __init__(self, operation_name: str, timeout_seconds: float):
        self.operation_name = operation_name
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Operation {operation_name} timed out after {timeout_seconds:g} seconds"
        )


class ExpressionError(TutorGuardError):
    """Raised when an arithmetic expression cannot be tokenized or evaluated."""
    pass

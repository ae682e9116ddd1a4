"""
Shared error types for identity store services.
"""


class ValidationIssue(ValueError):
    def __init__(
        self,
        message: str,
        field: str = "unknown",
        error_type: str = "invalid",
        error_code: str | None = None,
        data: dict | None = None,
    ):
        super().__init__(message)
        self.field = field
        self.error_type = error_type
        self.error_code = error_code
        self.data = data


class AltNameConflict(ValidationIssue):
    """Raised when a display name is already held by a sibling alt."""

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(
            message,
            field="display_name",
            error_type="conflict",
            error_code="ALT_NAME_CONFLICT",
            data=data,
        )


class AltAllocationConflict(ValidationIssue):
    """Raised when the derived alt id was taken before the insert landed."""

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(
            message,
            field="alt_id",
            error_type="conflict",
            error_code="ALT_ALLOCATION_CONFLICT",
            data=data,
        )


class StoreUnavailable(RuntimeError):
    """Raised when no live database connection is configured."""

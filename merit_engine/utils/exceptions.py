"""
Custom exceptions for merit engine business logic.

Skips (duplicate, cap, no_points) are NOT exceptions; they are ordinary
AwardResult values. Everything here is a failure the caller must see.
"""


class MeritEngineError(Exception):
    """Base exception for all merit engine errors."""

    def __init__(self, message: str, code: str = "MERIT_ENGINE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class NotFoundError(MeritEngineError):
    """Resource not found."""

    def __init__(self, resource: str, identifier=None):
        message = f"{resource} not found"
        if identifier:
            message = f"{resource} with ID {identifier} not found"
        super().__init__(message, f"{resource.upper()}_NOT_FOUND")


class SeasonNotFoundError(NotFoundError):
    """Season not found."""

    def __init__(self, identifier=None):
        super().__init__("Season", identifier)


class ValidationError(MeritEngineError):
    """Invalid input data."""

    def __init__(self, message: str, field: str = None):
        self.field = field
        code = f"INVALID_{field.upper()}" if field else "VALIDATION_ERROR"
        super().__init__(message, code)


class InvalidStatusTransitionError(MeritEngineError):
    """Invalid status transition for a resource."""

    def __init__(self, resource: str, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        message = f"Cannot change {resource} status from '{from_status}' to '{to_status}'"
        super().__init__(message, "INVALID_STATUS_TRANSITION")


class ConfigurationError(MeritEngineError):
    """
    The system is not in an awardable state.

    Fatal to the operation and never defaulted away; routed to alerting.
    """

    def __init__(self, message: str, code: str = "CONFIGURATION_ERROR"):
        super().__init__(message, code)


class NoActiveSeasonError(ConfigurationError):
    """No season has status=active."""

    def __init__(self):
        super().__init__("No active season", "NO_ACTIVE_SEASON")


class MultipleActiveSeasonsError(ConfigurationError):
    """More than one season has status=active."""

    def __init__(self, season_ids):
        self.season_ids = list(season_ids)
        super().__init__(
            f"Multiple active seasons: {self.season_ids}",
            "MULTIPLE_ACTIVE_SEASONS"
        )


class StorageError(MeritEngineError):
    """
    Transient storage failure (timeout, lost connection, lock conflict).

    Safe to retry the whole award with the same source_key.
    """

    def __init__(self, message: str, original_error: Exception = None):
        self.original_error = original_error
        super().__init__(message, "STORAGE_ERROR")


class InvariantViolationError(MeritEngineError):
    """A state invariant broke. This is a bug, not a user error."""

    def __init__(self, message: str):
        super().__init__(message, "INVARIANT_VIOLATION")


class AuthorizationError(MeritEngineError):
    """Caller not authorized for this operation."""

    def __init__(self, message: str = "Not authorized for this operation"):
        super().__init__(message, "AUTHORIZATION_ERROR")

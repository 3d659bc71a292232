"""
Utility modules for the merit engine.
"""
from .logging_config import setup_logging, get_logger, get_alert_logger
from .errors import (
    ErrorCode,
    error_response,
    bad_request,
    unauthorized,
    forbidden,
    not_found,
    conflict,
    service_unavailable,
    internal_error,
    exception_response,
)
from .exceptions import (
    MeritEngineError,
    NotFoundError,
    SeasonNotFoundError,
    ValidationError,
    InvalidStatusTransitionError,
    ConfigurationError,
    NoActiveSeasonError,
    MultipleActiveSeasonsError,
    StorageError,
    InvariantViolationError,
    AuthorizationError,
)

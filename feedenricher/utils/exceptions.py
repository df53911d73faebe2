"""
FeedEnricher Exceptions
=======================

Every error raised by the package carries an ``ErrorCode``, a context dict
for logs and a message that can be shown to a user.

Two families matter to the pipeline:

- ``FeedError`` and its subclasses abort a run and reach the caller.
- ``ProcessingError`` and its subclasses concern a single item. The
  orchestrator logs them and still emits a record for that item.

Subclasses only declare their defaults; keyword arguments that are not one
of ``error_code``, ``user_message``, ``recoverable`` or ``context`` become
context entries (``FeedFetchError("HTTP 500", feed_url=url)``).
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes, grouped by the stage that raises them."""

    # Configuration (C)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Feed retrieval and parsing (F)
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_ACCESS_DENIED = "F005"
    FEED_NOT_FOUND = "F006"

    # Article pages (P)
    CONTENT_INVALID = "P001"
    CONTENT_EXTRACTION_FAILED = "P003"
    CONTENT_FETCH_FAILED = "P004"
    CONTENT_TIMEOUT = "P005"

    # Item identity (I)
    IDENTITY_GENERATION_FAILED = "I001"

    # Whole run (L)
    PIPELINE_TIMEOUT = "L001"

    # Input validation (V)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"

    # Host system (S)
    SYSTEM_PERMISSION_DENIED = "S002"
    SYSTEM_MEMORY_ERROR = "S004"


class FeedEnricherError(Exception):
    """Base exception for all FeedEnricher errors."""

    default_code: Optional[ErrorCode] = None
    recoverable_by_default = False

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
        context: Optional[Dict[str, Any]] = None,
        **context_fields: Any,
    ):
        """
        Args:
            message: Technical message for logs
            error_code: Overrides the class default code
            user_message: Overrides the class default user-facing message
            recoverable: Whether retrying the operation may succeed
            context: Extra context entries
            **context_fields: Context entries given by name; None values are dropped
        """
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})
        self.context.update({k: v for k, v in context_fields.items() if v is not None})
        self.recoverable = self.recoverable_by_default if recoverable is None else recoverable
        self.user_message = user_message or self.describe(message)

    def describe(self, message: str) -> str:
        """User-facing message when none was given."""
        return message

    def to_dict(self) -> Dict[str, Any]:
        """Fields for structured log records."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "error_context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        message = super().__str__()
        if self.error_code:
            return f"[{self.error_code.value}] {message}"
        return message


class ConfigurationError(FeedEnricherError):
    """Settings could not be loaded or are inconsistent."""

    default_code = ErrorCode.CONFIG_INVALID

    def describe(self, message: str) -> str:
        return f"Configuration error: {message}"


class FeedError(FeedEnricherError):
    """Feed retrieval and parsing errors. Always fatal to a pipeline run."""

    default_code = ErrorCode.FEED_NETWORK_ERROR

    def describe(self, message: str) -> str:
        return f"Feed processing failed: {message}"


class FeedFetchError(FeedError):
    """Feed could not be downloaded (network failure, non-2xx, timeout)."""


class FeedParseError(FeedError):
    """Feed was downloaded but is not a usable syndication document."""

    default_code = ErrorCode.FEED_PARSE_ERROR


class PipelineTimeoutError(FeedError):
    """The whole enrichment run exceeded its deadline."""

    default_code = ErrorCode.PIPELINE_TIMEOUT

    def __init__(self, message: str, timeout: float = 0, **kwargs: Any):
        super().__init__(message, timeout_seconds=timeout, **kwargs)


class ProcessingError(FeedEnricherError):
    """Errors confined to one feed item."""

    default_code = ErrorCode.CONTENT_INVALID
    recoverable_by_default = True

    def describe(self, message: str) -> str:
        return "Article processing failed"


class ContentExtractionError(ProcessingError):
    """Article page could not be fetched or its content extracted."""

    default_code = ErrorCode.CONTENT_EXTRACTION_FAILED

    @property
    def status(self) -> Optional[int]:
        """HTTP status of the article response, if one was received."""
        return self.context.get("status")


class IdentityError(ProcessingError):
    """No identifier could be generated for an item."""

    default_code = ErrorCode.IDENTITY_GENERATION_FAILED

    def describe(self, message: str) -> str:
        return "Item identifier could not be generated"


class ValidationError(FeedEnricherError):
    """User-supplied input (usually a URL) was rejected."""

    default_code = ErrorCode.VALIDATION_INVALID_FORMAT

    def describe(self, message: str) -> str:
        return f"Invalid {self.context.get('field_name', 'input')}: {message}"


# (exception types, code, user message, recoverable)
_BUILTIN_ERRORS = (
    ((ConnectionError, TimeoutError), ErrorCode.FEED_NETWORK_ERROR, "Network connection failed", True),
    (PermissionError, ErrorCode.SYSTEM_PERMISSION_DENIED, "Access denied", False),
    (FileNotFoundError, ErrorCode.CONFIG_MISSING, "Required file missing", False),
    (MemoryError, ErrorCode.SYSTEM_MEMORY_ERROR, "System resources exhausted", True),
)


def handle_exception(exception: Exception, logger, operation: str) -> FeedEnricherError:
    """Log ``exception`` and return it as a FeedEnricherError.

    Package errors are returned unchanged. Built-in errors are mapped to a
    code by type; anything else becomes a generic recoverable error.

    Args:
        exception: Error caught at a boundary (CLI command, public API)
        logger: Logger or adapter the failure is reported to
        operation: What was being done, e.g. "feed enrichment"
    """
    if isinstance(exception, FeedEnricherError):
        error = exception
    else:
        code, user_message, recoverable = None, "An unexpected error occurred", True
        for types, mapped_code, mapped_message, mapped_recoverable in _BUILTIN_ERRORS:
            if isinstance(exception, types):
                code, user_message, recoverable = mapped_code, mapped_message, mapped_recoverable
                break

        error = FeedEnricherError(
            f"{operation} failed with {type(exception).__name__}: {exception}",
            error_code=code,
            user_message=user_message,
            recoverable=recoverable,
            operation=operation,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def is_item_level_error(exception: Exception) -> bool:
    """True if the pipeline should absorb ``exception`` and keep the item."""
    return isinstance(exception, ProcessingError)


def get_user_friendly_message(exception: Exception) -> str:
    """Message suitable for the CLI, for any exception."""
    if isinstance(exception, FeedEnricherError):
        return exception.user_message

    return "An unexpected error occurred. Please try again later."

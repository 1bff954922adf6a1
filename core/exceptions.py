"""
Custom exceptions for the grant sync pipeline with structured error context.

Each exception carries a context dictionary for debugging and monitoring,
and can be serialized with ``to_dict()`` for the sync run error log.

Exception Hierarchy:
    SyncError (base)
    ├── FetchError
    │   ├── TransientFetchError      (retryable)
    │   ├── AuthenticationError      (non-retryable)
    │   ├── ResourceNotFoundError    (non-retryable)
    │   ├── UpstreamRejectedError    (non-retryable)
    │   └── ResponseFormatError
    ├── RecordTransformError
    ├── RateLimitExceeded
    ├── TooManyErrors
    ├── AlreadyRunning
    ├── ConfigurationError
    ├── StoreError
    │   ├── UpsertError
    │   └── CheckpointError
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime


class SyncError(Exception):
    """
    Base exception for all sync pipeline errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (source, page, record id, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncError):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Upstream throttling (HTTP 429)
    - Service unavailable (HTTP 5xx)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0
    ):
        super().__init__(message, context, original_exception)
        self.max_retries = max_retries
        self.retry_delay = retry_delay


class NonRetryableError(SyncError):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Resource not found (HTTP 404)
    - Invalid configuration
    """
    pass


# ============================================================================
# Fetch Errors
# ============================================================================

class FetchError(SyncError):
    """
    Base exception for failures talking to an upstream registry.

    Context should include:
        - source: Source name
        - api_url: The endpoint that failed
        - status_code: HTTP status code (if applicable)
    """
    pass


class TransientFetchError(RetryableError, FetchError):
    """Network failure, timeout, upstream throttling or 5xx. Does not abort a run."""
    pass


class AuthenticationError(NonRetryableError, FetchError):
    """Authentication failures (HTTP 401, 403) that should not be retried."""
    pass


class ResourceNotFoundError(NonRetryableError, FetchError):
    """Resource not found errors (HTTP 404) that should not be retried."""
    pass


class UpstreamRejectedError(NonRetryableError, FetchError):
    """Any other 4xx: the request itself is wrong, so repeating it cannot succeed."""
    pass


class ResponseFormatError(FetchError):
    """Upstream answered 2xx with a body that is not the expected JSON shape."""
    pass


# ============================================================================
# Transform Errors
# ============================================================================

class RecordTransformError(SyncError):
    """
    A single raw record could not be transformed. Isolated to that record.

    Context should include:
        - source: Source name
        - source_native_id: Native identifier (if it could be read)
        - field_errors: Validation errors, when available
    """
    pass


# ============================================================================
# Guard Errors
# ============================================================================

class RateLimitExceeded(SyncError):
    """The per-source request window is exhausted."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after_seconds: int = 0
    ):
        super().__init__(message, context, original_exception)
        self.retry_after_seconds = retry_after_seconds
        self.context["retry_after_seconds"] = retry_after_seconds


class TooManyErrors(SyncError):
    """Accumulated page/record errors crossed the run's error threshold."""
    pass


class AlreadyRunning(SyncError):
    """Another process holds the sync lock for this source."""
    pass


class ConfigurationError(NonRetryableError):
    """
    Invalid schedule or source configuration.

    Context should include:
        - source: Source name
        - cron_expression: The rejected expression (if applicable)
    """
    pass


# ============================================================================
# Store Errors
# ============================================================================

class StoreError(SyncError):
    """
    Base exception for persistent store failures.

    Context should include:
        - operation: Type of operation (UPSERT, UPDATE, SELECT)
        - table_name: Name of the table
    """
    pass


class UpsertError(StoreError):
    """
    Grant upsert failed.

    Context should include:
        - source: Source name
        - source_native_id: Natural key component
    """
    pass


class CheckpointError(StoreError):
    """
    Checkpoint read or write failed.

    Context should include:
        - source: Source name
        - state_key: Checkpoint key
        - operation: read / write
    """
    pass

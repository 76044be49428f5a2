"""
Custom exceptions and warnings for vector feature-service acquisition.

This module defines a hierarchy of exceptions for the error conditions
that may occur while discovering layers or paging through features, plus
the non-fatal warnings surfaced to callers.
"""

from typing import Optional


class AcquisitionError(Exception):
    """Base exception for all acquisition-related errors."""

    def __init__(self, message: str, cause: Optional[Exception] = None) -> None:
        """
        Initialize the acquisition error.

        Args:
            message: Human-readable error description.
            cause: The underlying exception that caused this error, if any.
        """
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message} (caused by: {self.cause})"
        return self.message


class InputError(AcquisitionError, ValueError):
    """Raised for caller input that is rejected before any request is made."""

    pass


class TransportError(AcquisitionError):
    """Raised when the service or the OGR layer fails during a fetch."""

    def __init__(
        self,
        message: str,
        offset: Optional[int] = None,
        pages_discarded: int = 0,
        cause: Optional[Exception] = None,
    ) -> None:
        """
        Initialize the transport error.

        Args:
            message: Human-readable error description.
            offset: Feature offset of the page request that failed, if paging.
            pages_discarded: Number of already merged pages thrown away.
            cause: The underlying exception that caused this error.
        """
        super().__init__(message, cause)
        self.offset = offset
        self.pages_discarded = pages_discarded


class ConnectionError(TransportError):
    """Raised when unable to establish connection to the service."""

    pass


class TimeoutError(TransportError):
    """Raised when a request times out."""

    def __init__(
        self,
        message: str,
        timeout_type: str = "unknown",
        cause: Optional[Exception] = None,
    ) -> None:
        """
        Initialize the timeout error.

        Args:
            message: Human-readable error description.
            timeout_type: Type of timeout (connect, read, write, pool).
            cause: The underlying exception that caused this error.
        """
        super().__init__(message, cause=cause)
        self.timeout_type = timeout_type


class ServerError(TransportError):
    """Raised when the service returns a 5xx error."""

    def __init__(
        self,
        message: str,
        status_code: int,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code


class NotFoundError(TransportError):
    """Raised when the requested resource is not found (404)."""

    def __init__(
        self,
        message: str,
        url: str,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.url = url


class InvalidResponseError(TransportError):
    """Raised when the service returns an invalid or unparseable response."""

    def __init__(
        self,
        message: str,
        response_text: Optional[str] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        """
        Initialize the invalid response error.

        Args:
            message: Human-readable error description.
            response_text: The raw response text that couldn't be parsed.
            cause: The underlying exception that caused this error.
        """
        super().__init__(message, cause=cause)
        self.response_text = response_text[:500] if response_text else None


class SchemaError(AcquisitionError):
    """Raised when the geometry column of a batch cannot be identified or decoded."""

    def __init__(
        self,
        message: str,
        columns: Optional[list[str]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        """
        Initialize the schema error.

        Args:
            message: Human-readable error description.
            columns: Column names present in the offending batch.
            cause: The underlying exception that caused this error.
        """
        super().__init__(message, cause)
        self.columns = list(columns) if columns else []


class ReadCancelledError(AcquisitionError):
    """Raised when a read is cancelled between two page requests."""

    def __init__(self, message: str, offset: int = 0) -> None:
        super().__init__(message)
        self.offset = offset


class TruncationWarning(UserWarning):
    """A read returned fewer features than the service reported."""


class DegradedPagingWarning(UserWarning):
    """A read could not page and issued a single capped request instead."""

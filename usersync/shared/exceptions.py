"""
Custom exceptions for the application.

Centralized exception hierarchy for startup, messaging and domain errors.
"""

from typing import Any, Dict, Optional


class UsersyncError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Additional context (dict)
            original_error: Original exception if wrapped
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.original_error = original_error

    def __str__(self) -> str:
        """String representation with details."""
        base = self.message
        if self.details:
            base += f" | Details: {self.details}"
        if self.original_error:
            base += f" | Caused by: {type(self.original_error).__name__}"
        return base


class RecoverableError(UsersyncError):
    """Transient failure: a consumer requeues the message instead of dropping it."""

    pass


class ConfigurationError(UsersyncError):
    """Configuration or settings error."""

    pass


class BrokerConnectionError(UsersyncError, ConnectionError):
    """Broker unreachable or credentials rejected. Fatal at startup."""

    pass


class TopologyError(UsersyncError):
    """A virtual host or one of its queues could not be declared. Fatal at startup."""

    pass


class PublishError(UsersyncError):
    """A publish attempt failed after the broker was up."""

    def __init__(
        self,
        message: str,
        vhost: Optional[str] = None,
        destination: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details, original_error)
        self.vhost = vhost
        self.destination = destination

    def __str__(self) -> str:
        base = super().__str__()
        if self.vhost or self.destination:
            base = f"[{self.vhost}/{self.destination}] {base}"
        return base


class NotFoundError(UsersyncError):
    """Requested handle or entity does not exist."""

    pass


class ResourceNotFoundError(NotFoundError):
    """Domain entity not found; surfaced to HTTP clients as 404."""

    pass


class StorageError(RecoverableError):
    """Database/storage error."""

    pass


class StorageConnectionError(UsersyncError, ConnectionError):
    """Database unreachable or credentials rejected. Fatal at startup."""

    pass


class ExternalFetchError(UsersyncError):
    """External HTTP data source rejected the request or returned garbage.

    Permanent: retrying the same request gives the same answer.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        api_name: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message, details, original_error)
        self.status_code = status_code
        self.api_name = api_name

    def __str__(self) -> str:
        """String representation with API info."""
        base = super().__str__()
        if self.api_name:
            base = f"[{self.api_name}] {base}"
        if self.status_code:
            base += f" (HTTP {self.status_code})"
        return base


class ExternalFetchUnavailableError(ExternalFetchError, RecoverableError):
    """External HTTP data source unreachable, 5xx or out of retries."""

    pass


class UnknownCommandError(UsersyncError):
    """Administrative invocation named an operation that does not exist."""

    pass


__all__ = [
    "UsersyncError",
    "RecoverableError",
    "ConfigurationError",
    "BrokerConnectionError",
    "TopologyError",
    "PublishError",
    "NotFoundError",
    "ResourceNotFoundError",
    "StorageError",
    "StorageConnectionError",
    "ExternalFetchError",
    "ExternalFetchUnavailableError",
    "UnknownCommandError",
]

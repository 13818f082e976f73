"""
Platform-specific exceptions.

This module defines exceptions that can occur when talking to a hosting
backend (GitHub, GitLab, Gitea or the local filesystem).
"""

from typing import Any, Optional


class PlatformError(Exception):
    """Base exception for all platform errors."""

    def __init__(
        self,
        message: str,
        *,
        platform: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.platform = platform
        self.status_code = status_code
        self.details = details or {}

    def __str__(self) -> str:
        parts = [self.message]
        if self.platform:
            parts.append(f"platform={self.platform}")
        if self.status_code is not None:
            parts.append(f"status_code={self.status_code}")
        return " ".join(parts)


class AuthenticationError(PlatformError):
    """Raised when the credential is missing or rejected."""

    pass


class NotFoundError(PlatformError):
    """Raised when an organization, user, repository or path does not exist."""

    pass


class PermissionDenied(PlatformError):
    """Raised when the acting user lacks the rights for an operation."""

    pass


class RateLimited(PlatformError):
    """Raised when the backend throttles requests."""

    def __init__(
        self,
        message: str,
        *,
        retry_after: Optional[float] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class BackendError(PlatformError):
    """Raised for any other backend failure (unexpected status, transport error)."""

    pass


class PlatformNotFoundError(PlatformError):
    """Raised when no backend is registered for a platform type."""

    pass

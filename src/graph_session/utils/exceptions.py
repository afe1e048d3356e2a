"""Custom exceptions for Graph Session."""

from typing import Optional


class GraphSessionError(Exception):
    """Base exception for graph session errors."""


class AuthenticationError(GraphSessionError):
    """Raised when a credential cannot be obtained or applied.

    Carries a machine-readable ``code`` alongside the human message so UI
    layers can decide what feedback to show.
    """

    GENERAL_EXCEPTION = "generalException"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code or self.GENERAL_EXCEPTION
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class TokenCacheError(GraphSessionError):
    """Raised when token cache operations fail."""


class ConfigurationError(GraphSessionError):
    """Raised when configuration is invalid."""


class GraphRequestError(GraphSessionError):
    """Raised when a Graph API call fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

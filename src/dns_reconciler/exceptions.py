"""
Exception classes for the DNS reconciler.

All exceptions inherit from ReconcilerError and provide structured
error information with codes, messages, and optional details.
"""

from typing import Optional


class ReconcilerError(Exception):
    """Base exception for all reconciler errors."""

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"

    def to_dict(self) -> dict:
        """Convert exception to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ReconcilerError):
    """Raised when a domain name cannot be turned into a query name."""

    pass


class NetworkError(ReconcilerError):
    """Raised when the resolver endpoint is unusable (e.g. not HTTPS)."""

    pass


class PersistenceError(ReconcilerError):
    """Raised when persistence operations fail (file I/O, malformed stored values)."""

    pass


class TamperingError(PersistenceError):
    """Raised when HMAC validation of the state file fails."""

    pass

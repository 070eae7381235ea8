"""
Exception hierarchy for the realtime client.

Errors carry the server's ``system:error`` code when one was received and
the websocket close code when the server closed the connection.
"""

from typing import Optional


class RealtimeClientError(Exception):
    """
    Base exception for all realtime client errors.

    Attributes:
        message: Human-readable error message
        error_code: Server error code (e.g., "AUTH_FAILED")
        close_code: Websocket close code (if applicable)
    """

    def __init__(
        self,
        message: str,
        *,
        error_code: Optional[str] = None,
        close_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.close_code = close_code

    def __str__(self) -> str:
        parts = [self.message]
        if self.error_code:
            parts.insert(0, f"[{self.error_code}]")
        if self.close_code:
            parts.append(f"(close {self.close_code})")
        return " ".join(parts)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"close_code={self.close_code})"
        )


class AuthenticationError(RealtimeClientError):
    """
    The server rejected the credential.

    Raised when:
    - No token was supplied
    - The token is expired or cannot be verified
    - The user does not exist or is inactive

    Never retried automatically; reconnect with a fresh token.
    """

    def __init__(self, message: str = "Authentication failed", **kwargs):
        kwargs.setdefault("error_code", "AUTH_FAILED")
        kwargs.setdefault("close_code", 4001)
        super().__init__(message, **kwargs)


class ConnectionInProgressError(RealtimeClientError):
    """``connect`` was called while a handshake is already running."""

    def __init__(self, message: str = "A connection attempt is already in progress", **kwargs):
        super().__init__(message, **kwargs)


class ConnectionLostError(RealtimeClientError):
    """The transport could not be (re-)established."""

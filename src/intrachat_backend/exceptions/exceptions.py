"""
Exception hierarchy for the realtime layer.

Every exception carries an error code and a client-visible message that is
sent as a ``system:error`` event. The ``detail`` stays server-side and is
only written to the log, so denial reasons never reach the client.
"""

from typing import Any, Dict, Optional

from intrachat_types.websocket import WSError


class RealtimeException(Exception):
    """
    Base exception class for all realtime errors.

    Provides:
    - Error code for the client-visible ``system:error`` event
    - Internal detail for logging
    - Optional websocket close code for errors fatal to the connection
    - Context metadata for logging and debugging
    """

    error_code: str = "INTERNAL_ERROR"
    client_message: str = "Operation failed"
    close_code: Optional[int] = None

    def __init__(
        self,
        detail: Optional[str] = None,
        *,
        error_code: Optional[str] = None,
        client_message: Optional[str] = None,
        close_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        """
        Args:
            detail: Internal description, logged but never sent
            error_code: Overrides the class error code
            client_message: Overrides the class client message
            close_code: Overrides the class websocket close code
            context: Additional context for debugging
        """
        if error_code is not None:
            self.error_code = error_code
        if client_message is not None:
            self.client_message = client_message
        if close_code is not None:
            self.close_code = close_code
        self.detail = detail or self.client_message
        self.context = context or {}
        super().__init__(self.detail)

    @property
    def is_fatal(self) -> bool:
        return self.close_code is not None

    def to_error_event(self) -> WSError:
        return WSError(code=self.error_code, message=self.client_message)


# ============================================================================
# CONNECTION-FATAL EXCEPTIONS
# ============================================================================


class UnauthenticatedException(RealtimeException):
    """Missing, malformed, expired or unverifiable credential, or inactive user."""

    error_code = "AUTH_FAILED"
    client_message = "Authentication failed"
    close_code = 4001

    def __init__(self, reason: str = "Authentication failed", **kwargs):
        # The reason is safe to return: it tells the client whether to fetch a fresh token
        kwargs.setdefault("client_message", reason)
        super().__init__(reason, **kwargs)

    @property
    def reason(self) -> str:
        return self.client_message


class ConnectionLimitException(RealtimeException):
    """Raised when connection limits are exceeded."""

    error_code = "CONNECTION_LIMIT"
    client_message = "Server connection limit reached"
    close_code = 4008

    def __init__(self, message: str = "Server connection limit reached", **kwargs):
        kwargs.setdefault("client_message", message)
        super().__init__(message, **kwargs)


# ============================================================================
# OPERATION EXCEPTIONS (connection stays open)
# ============================================================================

# Forbidden and NotFound share code and message so that a client cannot probe
# which private chats exist.
ACCESS_DENIED_CODE = "CHAT_ACCESS_DENIED"
ACCESS_DENIED_MESSAGE = "Chat not found or access denied"


class ForbiddenException(RealtimeException):
    """User is not authorized for the chat, or the connection is not a member."""

    error_code = ACCESS_DENIED_CODE
    client_message = ACCESS_DENIED_MESSAGE


class NotFoundException(RealtimeException):
    """Chat does not exist or is archived, or a replied-to message is missing."""

    error_code = ACCESS_DENIED_CODE
    client_message = ACCESS_DENIED_MESSAGE


class ValidationFailedException(RealtimeException):
    """Malformed message content or type."""

    error_code = "VALIDATION_FAILED"
    client_message = "Invalid message"

    def __init__(self, message: str = "Invalid message", **kwargs):
        kwargs.setdefault("client_message", message)
        super().__init__(message, **kwargs)


class PersistenceException(RealtimeException):
    """The store failed to persist a message; nothing was broadcast."""

    error_code = "MESSAGE_NOT_SENT"
    client_message = "Failed to send message"


class JoinFailedException(RealtimeException):
    """The store failed while authorizing a join."""

    error_code = "JOIN_FAILED"
    client_message = "Failed to join chat"

"""
Error handling package for the realtime backend.

Usage:
    from intrachat_backend.exceptions import (
        ForbiddenException,
        NotFoundException,
        RealtimeException,
    )
"""

from intrachat_backend.exceptions.exceptions import (
    # Base exception
    RealtimeException,

    # Fatal to the connection attempt
    UnauthenticatedException,
    ConnectionLimitException,

    # Reported as system:error, connection stays open
    ForbiddenException,
    NotFoundException,
    ValidationFailedException,
    PersistenceException,
    JoinFailedException,

    # Shared client-visible denial
    ACCESS_DENIED_CODE,
    ACCESS_DENIED_MESSAGE,
)

__all__ = [
    "RealtimeException",
    "UnauthenticatedException",
    "ConnectionLimitException",
    "ForbiddenException",
    "NotFoundException",
    "ValidationFailedException",
    "PersistenceException",
    "JoinFailedException",
    "ACCESS_DENIED_CODE",
    "ACCESS_DENIED_MESSAGE",
]

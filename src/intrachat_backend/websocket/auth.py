"""
Session authentication for websocket handshakes.

A handshake carries a bearer JWT in one of three places, checked in order:

1. the auth payload, sent as the subprotocol pair ``["bearer", <token>]``
2. an ``Authorization: Bearer <token>`` header
3. a ``?token=`` query parameter

The first non-empty value wins. The token is verified once per connection;
later events trust the cached ``Identity`` for the lifetime of the session.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Mapping, Optional, Sequence

from jose import JWTError, jwt
from jose.exceptions import ExpiredSignatureError

from intrachat_backend.exceptions import UnauthenticatedException
from intrachat_backend.repositories.base import UserStore
from intrachat_types.auth import Identity

logger = logging.getLogger(__name__)

BEARER_SUBPROTOCOL = "bearer"

TOKEN_REQUIRED = "Authentication token required"
TOKEN_EXPIRED = "Token expired"
TOKEN_INVALID = "Invalid token"
USER_INACTIVE = "User not found or inactive"


@dataclass
class Handshake:
    """Transport-neutral view of the credential locations of a handshake."""
    auth: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)


def token_from_subprotocols(subprotocols: Sequence[str]) -> Optional[str]:
    """Return the value following ``bearer`` in a subprotocol list."""
    items = list(subprotocols)
    for index, item in enumerate(items[:-1]):
        if item.strip().lower() == BEARER_SUBPROTOCOL:
            return items[index + 1].strip() or None
    return None


def _bearer_value(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    scheme, _, value = header.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    return value.strip() or None


def extract_token(handshake: Handshake) -> Optional[str]:
    """Pick the credential from a handshake, first non-empty location wins."""
    if handshake.auth and handshake.auth.strip():
        return handshake.auth.strip()

    headers = {k.lower(): v for k, v in handshake.headers.items()}
    token = _bearer_value(headers.get("authorization"))
    if token:
        return token

    query_token = handshake.query.get("token")
    if query_token and query_token.strip():
        return query_token.strip()

    return None


def create_access_token(
    user_id: str,
    secret: str,
    *,
    expires_in: timedelta = timedelta(hours=1),
    algorithm: str = "HS256",
    issuer: Optional[str] = "internal-chat-api",
    audience: Optional[str] = "internal-chat-app",
    extra_claims: Optional[Dict[str, Any]] = None,
) -> str:
    """Mint a token that ``SessionAuthenticator`` accepts."""
    now = datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": user_id,
        "iat": now,
        "exp": now + expires_in,
    }
    if issuer:
        claims["iss"] = issuer
    if audience:
        claims["aud"] = audience
    if extra_claims:
        claims.update(extra_claims)
    return jwt.encode(claims, secret, algorithm=algorithm)


class SessionAuthenticator:
    """
    Resolves a bearer credential to an active user ``Identity``.

    Pure lookup: nothing here touches presence or connection state.
    """

    def __init__(
        self,
        users: UserStore,
        secret: Optional[str],
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
    ):
        self.users = users
        self.secret = secret
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience

    def verify_token(self, token: Optional[str]) -> Dict[str, Any]:
        """
        Check signature, expiry, issuer and audience.

        Returns:
            The decoded claims

        Raises:
            UnauthenticatedException: If the token is missing or unverifiable
        """
        if not token:
            raise UnauthenticatedException(TOKEN_REQUIRED)

        if not self.secret:
            logger.error("JWT_SECRET is not configured; rejecting websocket handshake")
            raise UnauthenticatedException(TOKEN_INVALID, context={"cause": "missing secret"})

        options = {"verify_aud": self.audience is not None}
        try:
            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options=options,
            )
        except ExpiredSignatureError:
            raise UnauthenticatedException(TOKEN_EXPIRED)
        except JWTError as e:
            logger.debug(f"Token verification failed: {e}")
            raise UnauthenticatedException(TOKEN_INVALID)

    async def authenticate(self, token: Optional[str]) -> Identity:
        """
        Verify a token and resolve its subject to an active user.

        Raises:
            UnauthenticatedException: On any verification or lookup failure
        """
        claims = self.verify_token(token)

        user_id = claims.get("sub") or claims.get("userId")
        if not user_id:
            raise UnauthenticatedException(TOKEN_INVALID, context={"cause": "missing subject"})

        identity = await self.users.find_active_by_id(str(user_id))
        if identity is None:
            raise UnauthenticatedException(USER_INACTIVE, context={"user_id": str(user_id)})

        logger.debug(f"Authenticated user {identity.id}")
        return identity

    async def authenticate_handshake(self, handshake: Handshake) -> Identity:
        return await self.authenticate(extract_token(handshake))

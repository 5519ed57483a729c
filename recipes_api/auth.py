"""Credential checks, token issuing and the login gate for protected routes.

Tokens are produced by a :class:`TokenStrategy`. Exactly one strategy is active
per deployment:

* :class:`JWTTokenStrategy` signs stateless HS256 tokens that clients send in
  the ``Authorization: Bearer`` header. Refreshing is only allowed during the
  last :data:`REFRESH_GRACE` of a token's life.
* :class:`SessionTokenStrategy` mints opaque tokens kept in a server-side
  :class:`~recipes_api.storage.SessionStore` and mirrored to the client through
  the signed Flask session cookie.
"""

from __future__ import annotations

import functools
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Protocol, TypeVar

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from flask import g, request, session

from .errors import (
    ConflictError,
    RefreshTooEarlyError,
    UnauthorizedError,
    ValidationError,
)
from .models import IssuedToken, TokenClaims, UserAccount
from .storage import SessionStore, UserRepository

logger = logging.getLogger(__name__)

ACCESS_TOKEN_LIFETIME = timedelta(minutes=10)
REFRESHED_TOKEN_LIFETIME = timedelta(minutes=5)
REFRESH_GRACE = timedelta(seconds=30)

JWT_ALGORITHM = "HS256"
SESSION_TOKEN_KEY = "token"

_password_hasher = PasswordHasher()
_DUMMY_HASH = _password_hasher.hash("not-a-real-password")

F = TypeVar("F", bound=Callable[..., Any])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hash_password(password: str) -> str:
    """Hash a password with a per-call random salt using Argon2."""
    return _password_hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _password_hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


class TokenStrategy(Protocol):
    """How tokens are minted, checked and carried between client and server."""

    refresh_grace: Optional[timedelta]

    def issue(self, username: str, lifetime: timedelta) -> IssuedToken:
        ...

    def verify(self, token: str) -> TokenClaims:
        """Return the claims of a valid token or raise :class:`UnauthorizedError`."""

    def revoke(self, token: str) -> None:
        ...

    def read_token(self) -> Optional[str]:
        """Extract the caller's token from the current request."""

    def deliver(self, issued: IssuedToken) -> None:
        """Mirror a freshly issued token to the client, if the transport needs it."""

    def forget(self) -> None:
        ...


class JWTTokenStrategy:
    refresh_grace: Optional[timedelta] = REFRESH_GRACE

    def __init__(self, secret: str, *, refresh_grace: timedelta = REFRESH_GRACE) -> None:
        if not secret:
            raise ValueError("A signing secret is required for JWT tokens.")
        self._secret = secret
        self.refresh_grace = refresh_grace

    def issue(self, username: str, lifetime: timedelta) -> IssuedToken:
        # exp is serialized in whole seconds.
        now = _utcnow().replace(microsecond=0)
        expires = now + lifetime
        payload = {"sub": username, "iat": now, "exp": expires}
        token = jwt.encode(payload, self._secret, algorithm=JWT_ALGORITHM)
        return IssuedToken(token=token, expires=expires)

    def verify(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[JWT_ALGORITHM],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise UnauthorizedError("token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError("invalid token") from exc

        issued_at = payload.get("iat")
        return TokenClaims(
            subject=str(payload["sub"]),
            issued_at=datetime.fromtimestamp(issued_at, timezone.utc) if issued_at else None,
            expires_at=datetime.fromtimestamp(payload["exp"], timezone.utc),
        )

    def revoke(self, token: str) -> None:
        # Signed tokens are stateless and simply run out.
        return None

    def read_token(self) -> Optional[str]:
        authorization = request.headers.get("Authorization", "")
        parts = authorization.strip().split(" ", 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return None
        return parts[1].strip() or None

    def deliver(self, issued: IssuedToken) -> None:
        return None

    def forget(self) -> None:
        return None


class SessionTokenStrategy:
    refresh_grace: Optional[timedelta] = None

    def __init__(self, store: SessionStore) -> None:
        self._store = store

    def issue(self, username: str, lifetime: timedelta) -> IssuedToken:
        token = secrets.token_urlsafe(32)
        expires = _utcnow() + lifetime
        self._store.save(token, username, expires)
        return IssuedToken(token=token, expires=expires)

    def verify(self, token: str) -> TokenClaims:
        entry = self._store.lookup(token)
        if entry is None:
            raise UnauthorizedError("invalid session")

        username, expires = entry
        if expires <= _utcnow():
            raise UnauthorizedError("session expired")
        return TokenClaims(subject=username, issued_at=None, expires_at=expires)

    def revoke(self, token: str) -> None:
        self._store.revoke(token)

    def read_token(self) -> Optional[str]:
        token = session.get(SESSION_TOKEN_KEY)
        return token if isinstance(token, str) and token else None

    def deliver(self, issued: IssuedToken) -> None:
        session[SESSION_TOKEN_KEY] = issued.token

    def forget(self) -> None:
        session.pop(SESSION_TOKEN_KEY, None)


class AuthService:
    """Sign-up, sign-in and refresh on top of a user store and a token strategy."""

    def __init__(
        self,
        users: UserRepository,
        strategy: TokenStrategy,
        *,
        token_lifetime: timedelta = ACCESS_TOKEN_LIFETIME,
        refresh_lifetime: timedelta = REFRESHED_TOKEN_LIFETIME,
    ) -> None:
        self.users = users
        self.strategy = strategy
        self.token_lifetime = token_lifetime
        self.refresh_lifetime = refresh_lifetime

    def sign_up(self, username: Any, password: Any) -> IssuedToken:
        if not (isinstance(username, str) and isinstance(password, str)) or not (username and password):
            raise ValidationError("username and password cannot be empty")

        if self.users.get_user(username) is not None:
            raise ConflictError("username already in use")

        account = UserAccount(username=username, password_hash=hash_password(password))
        try:
            self.users.add_user(account)
        except KeyError as exc:
            raise ConflictError("username already in use") from exc

        logger.info("Signed up user %s", username)
        return self.strategy.issue(username, self.token_lifetime)

    def sign_in(self, username: Any, password: Any) -> IssuedToken:
        if not (isinstance(username, str) and isinstance(password, str)) or not username:
            raise UnauthorizedError("invalid username or password")

        account = self.users.get_user(username)
        # Unknown users still pay for one hash check.
        password_hash = account.password_hash if account is not None else _DUMMY_HASH
        if not verify_password(password, password_hash) or account is None:
            logger.info("Rejected sign-in for %s", username)
            raise UnauthorizedError("invalid username or password")

        return self.strategy.issue(account.username, self.token_lifetime)

    def authenticate(self, token: Optional[str]) -> TokenClaims:
        if not token:
            raise UnauthorizedError("not logged in")
        return self.strategy.verify(token)

    def refresh(self, token: Optional[str]) -> IssuedToken:
        claims = self.authenticate(token)

        grace = self.strategy.refresh_grace
        if grace is not None and claims.expires_at - _utcnow() > grace:
            raise RefreshTooEarlyError("token is not expired yet")

        self.strategy.revoke(token)
        logger.info("Refreshed token for %s", claims.subject)
        return self.strategy.issue(claims.subject, self.refresh_lifetime)

    def sign_out(self, token: Optional[str]) -> None:
        self.authenticate(token)
        self.strategy.revoke(token)

    def login_required(self, view: F) -> F:
        """Reject the request unless it carries a valid token."""

        @functools.wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            claims = self.authenticate(self.strategy.read_token())
            g.username = claims.subject
            return view(*args, **kwargs)

        return wrapper  # type: ignore[return-value]


__all__ = [
    "ACCESS_TOKEN_LIFETIME",
    "AuthService",
    "JWTTokenStrategy",
    "REFRESHED_TOKEN_LIFETIME",
    "REFRESH_GRACE",
    "SessionTokenStrategy",
    "TokenStrategy",
    "hash_password",
    "verify_password",
]

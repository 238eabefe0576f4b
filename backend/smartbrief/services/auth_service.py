"""
SmartBrief Backend — Authentication Gate
==========================================

What:  Verifies bearer credentials and resolves them to (user id, role).
Why:   Every other component receives an already-resolved Principal and only
       asks role questions through `has_any_role`.
How:   Tokens are HS256 JWTs (PyJWT) whose `sub` claim is the user UUID. The
       user row is then loaded to read the current role, so role changes take
       effect without re-issuing tokens.

Failure split:
    Bad credential (missing, malformed, expired, unknown user) → UnauthenticatedError
    Broken infrastructure (no secret configured, DB unavailable) → AuthError
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional
from uuid import UUID

import jwt
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from smartbrief.exceptions import AuthError, UnauthenticatedError
from smartbrief.models.user import Role, User

logger = logging.getLogger(__name__)

# Role sets used by the rest of the core
MUTATE_ANY_ROLES = frozenset({Role.EDITOR, Role.ADMIN})
VIEW_ANY_ROLES = frozenset({Role.REVIEWER, Role.EDITOR, Role.ADMIN})
CREDIT_ADMIN_ROLES = frozenset({Role.ADMIN})


@dataclass(frozen=True)
class Principal:
    """The authenticated caller."""

    user_id: UUID
    role: Role

    def is_self(self, user_id: UUID) -> bool:
        return self.user_id == user_id


def has_any_role(role: Role, allowed: Iterable[Role]) -> bool:
    """Role-membership predicate shared by every component."""
    return Role(role) in {Role(r) for r in allowed}


class AuthGate:
    """Resolves `Authorization: Bearer <token>` headers into Principals."""

    SCHEME = "bearer"

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self._secret = secret
        self._algorithm = algorithm

    has_any_role = staticmethod(has_any_role)

    def _extract_token(self, authorization: Optional[str]) -> str:
        if not authorization:
            raise UnauthenticatedError("Access token required")
        parts = authorization.split()
        if len(parts) != 2 or parts[0].lower() != self.SCHEME:
            raise UnauthenticatedError("Malformed authorization header. Expected 'Bearer <token>'")
        return parts[1]

    def decode_token(self, token: str) -> UUID:
        """
        Verifies signature and expiry and returns the subject user id.

        Raises:
            UnauthenticatedError: expired, badly signed or malformed token
            AuthError: no verification secret configured
        """
        if not self._secret:
            logger.error("Bearer token received but no JWT secret is configured")
            raise AuthError(context={"reason": "jwt_secret_missing"})
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise UnauthenticatedError("Token expired")
        except jwt.InvalidTokenError:
            raise UnauthenticatedError("Invalid token")

        try:
            return UUID(str(payload["sub"]))
        except ValueError:
            raise UnauthenticatedError("Invalid token")

    async def authenticate(self, db: AsyncSession, authorization: Optional[str]) -> Principal:
        """
        Full resolution: header → token → user id → current role.

        The user row is looked up on every request; a deleted account stops
        working immediately even if its token has not expired.
        """
        user_id = self.decode_token(self._extract_token(authorization))

        try:
            result = await db.execute(select(User.id, User.role).where(User.id == user_id))
            row = result.one_or_none()
        except SQLAlchemyError as e:
            logger.error("Identity lookup failed for %s: %s", user_id, type(e).__name__)
            raise AuthError(context={"user_id": str(user_id), "error_type": type(e).__name__})

        if row is None:
            raise UnauthenticatedError("Invalid token")

        try:
            role = Role(row.role)
        except ValueError:
            logger.error("User %s has unknown role %r", user_id, row.role)
            raise AuthError(context={"user_id": str(user_id)})

        return Principal(user_id=user_id, role=role)

    def create_access_token(self, user_id: UUID, expires_in: timedelta = timedelta(hours=24)) -> str:
        """
        Issues a token for `user_id`.

        Production tokens come from the account subsystem; this exists for
        local development and tests, and uses the same claims it expects.
        """
        now = datetime.now(timezone.utc)
        payload = {"sub": str(user_id), "iat": now, "exp": now + expires_in}
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

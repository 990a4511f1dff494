"""
Catalog Authentication

Bearer token verification for write endpoints. Tokens are issued by an
external identity provider and signed with a shared secret; this module
only verifies them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from jose.exceptions import JWTError

from .config import Settings
from .exceptions import AuthenticationException

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """Identity extracted from a verified token."""

    subject: str
    email: Optional[str] = None
    claims: Dict[str, Any] = field(default_factory=dict)


class JWTAuthenticator:
    """Verifies HS256 bearer tokens against the configured secret."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        issuer: Optional[str] = None,
        audience: Optional[str] = None,
        leeway_seconds: int = 30,
    ):
        self.secret_key = secret_key
        self.algorithm = algorithm
        self.issuer = issuer
        self.audience = audience
        self.leeway_seconds = leeway_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> "JWTAuthenticator":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.JWT_ALGORITHM,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            leeway_seconds=settings.JWT_LEEWAY_SECONDS,
        )

    def verify(self, token: str) -> AuthContext:
        """
        Verify token signature and claims.

        Args:
            token: Encoded JWT without the ``Bearer`` prefix

        Returns:
            AuthContext for the token subject

        Raises:
            AuthenticationException: If the token is invalid, expired or
                lacks a subject
        """
        try:
            claims = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "verify_aud": self.audience is not None,
                    "verify_exp": True,
                    "leeway": self.leeway_seconds,
                },
            )
        except JWTError as e:
            logger.warning(
                "Token verification failed", extra={"error": str(e)}
            )
            raise AuthenticationException("Invalid token", original_error=e) from e

        subject = claims.get("sub")
        if not subject:
            raise AuthenticationException("Token has no subject")

        return AuthContext(
            subject=str(subject), email=claims.get("email"), claims=claims
        )


async def require_authenticated_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AuthContext:
    """FastAPI dependency that rejects requests without a valid bearer token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationException("Not authenticated")

    authenticator: JWTAuthenticator = request.app.state.authenticator
    return authenticator.verify(credentials.credentials)

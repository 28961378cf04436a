"""
JWT token handling for authentication.

Tokens are issued by the auth collaborator; this module verifies them and
turns their claims into an Actor. ``create_access_token`` exists for the
collaborator and for tests that need a signed token.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from ..config import Settings
from ..errors import ConfigurationError
from ..services.tenancy import Actor

logger = logging.getLogger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 1440  # 24 hours

ACTOR_CLAIMS = ("sub", "organization_id", "role")


class JWTHandler:
    """JWT token handler bound to one secret."""

    def __init__(self, secret_key: str, algorithm: str = "HS256"):
        self.secret_key = secret_key
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "JWTHandler":
        secret = settings.jwt_secret
        if not secret:
            if settings.is_production:
                raise ConfigurationError("SECRET_KEY environment variable is required in production")
            logger.warning("SECRET_KEY not set; using a per-process secret, tokens will not survive restarts")
            secret = secrets.token_urlsafe(32)
        return cls(secret, settings.jwt_algorithm)

    def create_access_token(self, data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
        """
        Create a JWT access token.

        Args:
            data: Token payload data
            expires_delta: Token expiration delta

        Returns:
            str: Encoded JWT token
        """
        to_encode = data.copy()
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
        to_encode.update({"exp": expire})
        return jwt.encode(to_encode, self.secret_key, algorithm=self.algorithm)

    def create_actor_token(self, actor: Actor, expires_delta: Optional[timedelta] = None) -> str:
        return self.create_access_token(
            {"sub": actor.id, "organization_id": actor.organization_id, "role": actor.role, "type": "access"},
            expires_delta,
        )

    def verify_token(self, token: str) -> Optional[Dict[str, Any]]:
        """
        Verify and decode a JWT token.

        Returns:
            Optional[Dict[str, Any]]: Token payload if valid, None if invalid
        """
        try:
            return jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except JWTError:
            return None

    def actor_from_token(self, token: str) -> Optional[Actor]:
        payload = self.verify_token(token)
        if payload is None or any(not payload.get(claim) for claim in ACTOR_CLAIMS):
            return None
        return Actor(id=str(payload["sub"]), organization_id=str(payload["organization_id"]),
                     role=str(payload["role"]))

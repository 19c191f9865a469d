"""
Identity tokens: signed (HS256), time-bounded credentials carrying a user id.

Verification is stateless. There is no server-side revocation list, so a
token stays valid until its `exp` elapses.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

import jwt

from socialgraph.errors import AuthenticationFailure, InfrastructureFailure

logger = logging.getLogger(__name__)

_JWT_ALG = "HS256"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    def __init__(
        self,
        secret: str,
        ttl_seconds: int,
        *,
        now: Callable[[], datetime] = _utcnow,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._secret = secret
        self._ttl = timedelta(seconds=ttl_seconds)
        self._now = now

    @property
    def ttl_seconds(self) -> int:
        return int(self._ttl.total_seconds())

    def issue(self, user_id: int) -> str:
        if not self._secret:
            raise InfrastructureFailure("Token signing key is not configured")
        issued_at = self._now()
        payload: Dict[str, Any] = {
            "authorized": True,
            "sub": str(user_id),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self._ttl).timestamp()),
        }
        return jwt.encode(payload, self._secret, algorithm=_JWT_ALG)

    def resolve(self, token: str) -> int:
        """Return the user id embedded in `token`.

        Raises AuthenticationFailure on a bad signature, an undecodable
        payload, or once the current time reaches the embedded expiry.
        """
        if not self._secret:
            raise InfrastructureFailure("Token signing key is not configured")
        if not token:
            raise AuthenticationFailure("Missing token")
        # Time claims are checked below against the service clock, not PyJWT's.
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[_JWT_ALG],
                options={
                    "require": ["exp", "iat", "sub"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected token: %s", exc)
            raise AuthenticationFailure("Invalid token")

        try:
            expires_at = int(payload["exp"])
        except (TypeError, ValueError):
            raise AuthenticationFailure("Invalid token")
        if int(self._now().timestamp()) >= expires_at:
            raise AuthenticationFailure("Token expired")

        try:
            user_id = int(payload["sub"])
        except (TypeError, ValueError):
            raise AuthenticationFailure("Invalid token subject")
        if user_id <= 0:
            raise AuthenticationFailure("Invalid token subject")
        return user_id

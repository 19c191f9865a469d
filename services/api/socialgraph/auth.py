"""
Request identity extraction.

`get_principal` is the single choke point for protected routes: it turns the
`Authorization: Bearer <token>` header into a `Principal` or raises
AuthenticationFailure. Handlers authorize against the Principal only, never
against an identifier supplied by the client.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from socialgraph.errors import AuthenticationFailure, InfrastructureFailure
from socialgraph.telemetry import AUTH_FAILURES_TOTAL
from socialgraph.tokens import TokenService

logger = logging.getLogger(__name__)

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: int


def extract_principal(authorization: Optional[str], tokens: TokenService) -> Principal:
    if not authorization:
        AUTH_FAILURES_TOTAL.labels(reason="missing").inc()
        raise AuthenticationFailure("Missing Authorization header")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        AUTH_FAILURES_TOTAL.labels(reason="malformed").inc()
        raise AuthenticationFailure("Authorization header must be 'Bearer <token>'")

    try:
        user_id = tokens.resolve(parts[1])
    except AuthenticationFailure as exc:
        AUTH_FAILURES_TOTAL.labels(reason="invalid").inc()
        logger.info("Token rejected: %s", exc.message)
        raise
    return Principal(user_id=user_id)


def get_token_service(request: Request) -> TokenService:
    tokens = getattr(request.app.state, "token_service", None)
    if tokens is None:
        raise InfrastructureFailure("Token service is not configured")
    return tokens


def get_principal(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Principal:
    """FastAPI dependency resolving the acting Principal for this request."""
    tokens = get_token_service(request)
    if credentials is None:
        # No header, or not a Bearer one: report which, as a 401.
        return extract_principal(request.headers.get("Authorization"), tokens)
    return extract_principal(f"{credentials.scheme} {credentials.credentials}", tokens)

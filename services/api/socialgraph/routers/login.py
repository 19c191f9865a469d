"""
Login endpoint:
  POST /login — exchange e-mail + password for an identity token
"""
import logging

from fastapi import APIRouter, Depends
from opentelemetry import trace

from socialgraph.auth import get_token_service
from socialgraph.dependencies import get_repositories
from socialgraph.errors import AuthenticationFailure
from socialgraph.repositories import Repositories
from socialgraph.schemas import AuthData, LoginRequest
from socialgraph.security import verify_password
from socialgraph.telemetry import LOGINS_TOTAL
from socialgraph.tokens import TokenService

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


@router.post("", response_model=AuthData)
async def login(
    body: LoginRequest,
    repos: Repositories = Depends(get_repositories),
    tokens: TokenService = Depends(get_token_service),
):
    """
    Authenticate a user and issue a token.

    An unknown e-mail and a wrong password produce the same 401, so the
    response does not reveal which accounts exist.
    """
    with tracer.start_as_current_span("login"):
        stored = await repos.users.get_by_email(body.email)
        if stored is None or not verify_password(stored.password_hash, body.password):
            LOGINS_TOTAL.labels(outcome="bad_credentials").inc()
            raise AuthenticationFailure("Invalid credentials")

        token = tokens.issue(stored.id)
        LOGINS_TOTAL.labels(outcome="success").inc()
        logger.info("User %s logged in", stored.id)
        return AuthData(id=str(stored.id), token=token)

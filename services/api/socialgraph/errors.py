"""
Error taxonomy and its HTTP translation.

Every failure the core raises belongs to one of a closed set of kinds.
Handlers never build error responses themselves; they raise one of the
exceptions below and the handlers registered by `register_exception_handlers`
map each kind 1:1 onto a status code.
"""
import enum
import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    UNREADABLE_BODY = "unreadable_body"
    AUTHENTICATION = "authentication"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    INFRASTRUCTURE = "infrastructure"


class SocialGraphError(Exception):
    kind: ErrorKind = ErrorKind.INFRASTRUCTURE
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(SocialGraphError):
    """Malformed or missing input. The client's fault; never retried."""
    kind = ErrorKind.VALIDATION
    status_code = status.HTTP_400_BAD_REQUEST


class UnreadableBody(ValidationFailure):
    kind = ErrorKind.UNREADABLE_BODY
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class AuthenticationFailure(SocialGraphError):
    """Missing, malformed, expired or unverifiable credential."""
    kind = ErrorKind.AUTHENTICATION
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenOperation(SocialGraphError):
    """Authenticated, but not allowed to act on the target resource."""
    kind = ErrorKind.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN


class NotFound(SocialGraphError):
    kind = ErrorKind.NOT_FOUND
    status_code = status.HTTP_404_NOT_FOUND


class InfrastructureFailure(SocialGraphError):
    """Store unreachable, dependency binding missing, signing key unavailable."""
    kind = ErrorKind.INFRASTRUCTURE
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_response(exc: SocialGraphError) -> JSONResponse:
    headers = None
    if isinstance(exc, AuthenticationFailure):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "kind": exc.kind.value},
        headers=headers,
    )


async def _handle_social_graph_error(request: Request, exc: SocialGraphError) -> JSONResponse:
    if isinstance(exc, InfrastructureFailure):
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    elif isinstance(exc, ForbiddenOperation):
        logger.warning("%s %s forbidden: %s", request.method, request.url.path, exc.message)
    return error_response(exc)


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    # A body that is absent altogether could not be read; anything else is malformed input.
    if any(e.get("type") == "missing" and tuple(e.get("loc", ())) == ("body",) for e in errors):
        return error_response(UnreadableBody("Request body is missing or unreadable"))
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return error_response(ValidationFailure(message))


async def _handle_store_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.exception("Store error on %s %s", request.method, request.url.path)
    return error_response(InfrastructureFailure("Data store unavailable"))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SocialGraphError, _handle_social_graph_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(SQLAlchemyError, _handle_store_error)

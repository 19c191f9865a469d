"""
Per-request dependency context.

`DependencyContextMiddleware` borrows a store handle for every HTTP request,
binds the resulting `Repositories` into the request scope under
`REPOSITORIES_KEY`, and releases the handle once the request is finished,
whether it completed, raised, or was cancelled by a client abort.
Handlers reach the repositories only through `get_repositories`.
"""
import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncContextManager, AsyncIterator, Callable

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.types import ASGIApp, Receive, Scope, Send

from socialgraph.errors import InfrastructureFailure, error_response
from socialgraph.repositories import (
    InMemoryStore,
    Repositories,
    build_memory_repositories,
    build_sql_repositories,
)

logger = logging.getLogger(__name__)

REPOSITORIES_KEY = "repositories"

RepositoriesProvider = Callable[[], AsyncContextManager[Repositories]]


def sql_repositories(session_factory: async_sessionmaker[AsyncSession]) -> RepositoriesProvider:
    @asynccontextmanager
    async def _provide() -> AsyncIterator[Repositories]:
        # Closing the session rolls back anything left open and returns the
        # connection to the pool.
        async with session_factory() as session:
            yield build_sql_repositories(session)

    return _provide


def memory_repositories(store: InMemoryStore) -> RepositoriesProvider:
    @asynccontextmanager
    async def _provide() -> AsyncIterator[Repositories]:
        yield build_memory_repositories(store)

    return _provide


class DependencyContextMiddleware:
    def __init__(self, app: ASGIApp, provider: RepositoriesProvider):
        self.app = app
        self.provider = provider

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        async with AsyncExitStack() as stack:
            try:
                repos = await stack.enter_async_context(self.provider())
            except (SQLAlchemyError, OSError) as exc:
                logger.error("Could not open a store handle: %s", exc)
                response = error_response(InfrastructureFailure("Could not connect to the database"))
                await response(scope, receive, send)
                return

            scope.setdefault("state", {})[REPOSITORIES_KEY] = repos
            await self.app(scope, receive, send)


def get_repositories(request: Request) -> Repositories:
    """FastAPI dependency returning the repositories bound to this request."""
    repos = getattr(request.state, REPOSITORIES_KEY, None)
    if repos is None:
        raise InfrastructureFailure("Repositories are not bound to this request")
    return repos

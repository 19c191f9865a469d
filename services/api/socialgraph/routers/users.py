"""
User management endpoints:
  POST   /users                      — register (public)
  GET    /users?user=<name or nick>  — search
  GET    /users/{id}                 — fetch a profile
  PUT    /users/{id}                 — edit own profile
  DELETE /users/{id}                 — delete own account
  POST   /users/{id}/follow          — follow a user
  POST   /users/{id}/unfollow        — unfollow
  GET    /users/{id}/followers       — list followers
  GET    /users/{id}/following       — list followed users
  GET    /users/{id}/posts           — posts by a user
  POST   /users/{id}/update-password — rotate own password
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, Response, status
from opentelemetry import trace

from socialgraph.auth import Principal, get_principal
from socialgraph.dependencies import get_repositories
from socialgraph.errors import AuthenticationFailure, ForbiddenOperation, NotFound
from socialgraph.repositories import Repositories
from socialgraph.schemas import (
    NewUser,
    PasswordChange,
    PostRead,
    UserCreate,
    UserRead,
    UserUpdate,
)
from socialgraph.security import hash_password, verify_password
from socialgraph.telemetry import GRAPH_MUTATIONS_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


def account_owner(action: str):
    """
    Dependency admitting only the owner of the `{user_id}` account.

    FastAPI resolves dependencies before it validates the request body, so a
    caller acting on someone else's account gets 403 whatever it sent.
    """
    def _check(user_id: int, principal: Principal = Depends(get_principal)) -> Principal:
        if principal.user_id != user_id:
            raise ForbiddenOperation(f"Cannot {action} a user other than yourself")
        return principal

    return _check


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(body: UserCreate, repos: Repositories = Depends(get_repositories)):
    """Register a new user. The password is hashed before it reaches the store."""
    with tracer.start_as_current_span("create_user"):
        new_user = NewUser(
            name=body.name,
            nick=body.nick,
            email=str(body.email),
            password_hash=hash_password(body.password),
        )
        user_id = await repos.users.create(new_user)
        created = await repos.users.get(user_id)
        if created is None:
            raise NotFound("User not found")
        return created


@router.get("", response_model=List[UserRead])
async def search_users(
    user: str = Query("", description="Name or nick, matched case-insensitively"),
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    return await repos.users.search(user.strip().lower())


@router.get("/{user_id}", response_model=UserRead)
async def get_user(
    user_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    user = await repos.users.get(user_id)
    if user is None:
        raise NotFound("User not found")
    return user


@router.put("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_user(
    user_id: int,
    body: UserUpdate,
    principal: Principal = Depends(account_owner("update")),
    repos: Repositories = Depends(get_repositories),
):
    await repos.users.update(user_id, body)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: int,
    principal: Principal = Depends(account_owner("delete")),
    repos: Repositories = Depends(get_repositories),
):
    await repos.users.delete(user_id)
    logger.info("Deleted user %s", user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user_id}/follow", status_code=status.HTTP_204_NO_CONTENT)
async def follow_user(
    user_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    """
    Create a follower → followee edge in the social graph.

    Following yourself is refused before the store is touched; following
    someone twice leaves exactly one edge.
    """
    with tracer.start_as_current_span("follow_user"):
        if principal.user_id == user_id:
            raise ForbiddenOperation("Cannot follow yourself")
        if await repos.users.get(user_id) is None:
            raise NotFound("User not found")

        await repos.users.follow(user_id, principal.user_id)
        GRAPH_MUTATIONS_TOTAL.labels(operation="follow").inc()
        logger.info("%s followed %s", principal.user_id, user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{user_id}/unfollow", status_code=status.HTTP_204_NO_CONTENT)
async def unfollow_user(
    user_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    with tracer.start_as_current_span("unfollow_user"):
        if principal.user_id == user_id:
            raise ForbiddenOperation("Cannot unfollow yourself")

        await repos.users.unfollow(user_id, principal.user_id)
        GRAPH_MUTATIONS_TOTAL.labels(operation="unfollow").inc()
        return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{user_id}/followers", response_model=List[UserRead])
async def list_followers(
    user_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    return await repos.users.followers(user_id)


@router.get("/{user_id}/following", response_model=List[UserRead])
async def list_following(
    user_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    return await repos.users.following(user_id)


@router.get("/{user_id}/posts", response_model=List[PostRead])
async def list_user_posts(
    user_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    return await repos.posts.by_author(user_id)


@router.post("/{user_id}/update-password", status_code=status.HTTP_204_NO_CONTENT)
async def update_password(
    user_id: int,
    body: PasswordChange,
    principal: Principal = Depends(account_owner("change the password of")),
    repos: Repositories = Depends(get_repositories),
):
    """
    Rotate the caller's password.

    The current password must match the stored hash; otherwise the stored
    hash is left untouched and the request fails with 401.
    """
    with tracer.start_as_current_span("update_password"):
        stored = await repos.users.get_password(user_id)
        if stored is None:
            raise NotFound("User not found")
        if not verify_password(stored, body.current):
            raise AuthenticationFailure("Current password does not match")

        await repos.users.update_password(user_id, hash_password(body.new))
        logger.info("Password rotated for user %s", user_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

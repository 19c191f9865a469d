"""
Post endpoints:
  POST   /posts             — publish a post as the caller
  GET    /posts             — the caller's feed (own posts + followed users)
  GET    /posts/{id}        — fetch a single post
  PUT    /posts/{id}        — edit own post
  DELETE /posts/{id}        — delete own post
  POST   /posts/{id}/like   — like a post
  POST   /posts/{id}/unlike — remove a like
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status
from opentelemetry import trace

from socialgraph.auth import Principal, get_principal
from socialgraph.dependencies import get_repositories
from socialgraph.errors import ForbiddenOperation, NotFound
from socialgraph.repositories import Repositories
from socialgraph.schemas import NewPost, PostCreate, PostRead, PostUpdate
from socialgraph.telemetry import GRAPH_MUTATIONS_TOTAL

logger = logging.getLogger(__name__)
router = APIRouter()
tracer = trace.get_tracer(__name__)


async def owned_post(
    post_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
) -> PostRead:
    """
    Fetch a post right before mutating it and check the caller authored it.

    Runs as a dependency, so ownership is settled before the body is validated.
    """
    post = await repos.posts.get(post_id)
    if post is None:
        raise NotFound("Post not found")
    if post.author_id != principal.user_id:
        raise ForbiddenOperation("Cannot modify a post that is not yours")
    return post


@router.post("", response_model=PostRead, status_code=status.HTTP_201_CREATED)
async def create_post(
    body: PostCreate,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    """The author is always the caller; any author field in the body is ignored."""
    with tracer.start_as_current_span("create_post") as span:
        post_id = await repos.posts.create(
            NewPost(title=body.title, content=body.content, author_id=principal.user_id)
        )
        span.set_attribute("post.id", post_id)
        span.set_attribute("post.author_id", principal.user_id)

        post = await repos.posts.get(post_id)
        if post is None:
            raise NotFound("Post not found")
        return post


@router.get("", response_model=List[PostRead])
async def get_feed(
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    return await repos.posts.feed(principal.user_id)


@router.get("/{post_id}", response_model=PostRead)
async def get_post(
    post_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    post = await repos.posts.get(post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


@router.put("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def update_post(
    post_id: int,
    body: PostUpdate,
    post: PostRead = Depends(owned_post),
    repos: Repositories = Depends(get_repositories),
):
    with tracer.start_as_current_span("update_post"):
        await repos.posts.update(post_id, body)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{post_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_post(
    post_id: int,
    post: PostRead = Depends(owned_post),
    repos: Repositories = Depends(get_repositories),
):
    with tracer.start_as_current_span("delete_post"):
        await repos.posts.delete(post_id)
        logger.info("Post %s deleted by user %s", post_id, post.author_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/like", status_code=status.HTTP_204_NO_CONTENT)
async def like_post(
    post_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    """Add one like. The counter is adjusted by the store in a single statement."""
    with tracer.start_as_current_span("like_post"):
        if not await repos.posts.like(post_id):
            raise NotFound("Post not found")
        GRAPH_MUTATIONS_TOTAL.labels(operation="like").inc()
        return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{post_id}/unlike", status_code=status.HTTP_204_NO_CONTENT)
async def unlike_post(
    post_id: int,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    with tracer.start_as_current_span("unlike_post"):
        if not await repos.posts.unlike(post_id):
            raise NotFound("Post not found")
        GRAPH_MUTATIONS_TOTAL.labels(operation="unlike").inc()
        return Response(status_code=status.HTTP_204_NO_CONTENT)

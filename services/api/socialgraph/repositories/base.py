"""
Repository contracts consumed by the routers.

Both ports are ownership-agnostic: they trust the caller. Ownership checks
belong to the handlers, which compare the request Principal with the owner
fetched just before a mutation.
"""
from dataclasses import dataclass
from typing import List, Optional, Protocol

from socialgraph.errors import ValidationFailure
from socialgraph.schemas import (
    Credentials,
    NewPost,
    NewUser,
    PostRead,
    PostUpdate,
    UserRead,
    UserUpdate,
)
from socialgraph.security import is_password_hash


class UserRepository(Protocol):
    async def create(self, user: NewUser) -> int: ...
    async def search(self, name_or_nick: str) -> List[UserRead]: ...
    async def get(self, user_id: int) -> Optional[UserRead]: ...
    async def update(self, user_id: int, user: UserUpdate) -> None: ...
    async def delete(self, user_id: int) -> None: ...
    async def get_by_email(self, email: str) -> Optional[Credentials]: ...

    async def follow(self, user_id: int, follower_id: int) -> None:
        """Create the edge follower → user. An existing edge is left as is."""
        ...

    async def unfollow(self, user_id: int, follower_id: int) -> None:
        """Remove the edge follower → user. A missing edge is not an error."""
        ...

    async def followers(self, user_id: int) -> List[UserRead]: ...
    async def following(self, user_id: int) -> List[UserRead]: ...
    async def get_password(self, user_id: int) -> Optional[str]: ...

    async def update_password(self, user_id: int, password_hash: str) -> None:
        """Store a hash produced by security.hash_password; plaintext is refused."""
        ...


class PostRepository(Protocol):
    async def create(self, post: NewPost) -> int: ...
    async def get(self, post_id: int) -> Optional[PostRead]: ...

    async def feed(self, user_id: int) -> List[PostRead]:
        """Posts by the user and by everyone they follow, newest first."""
        ...

    async def update(self, post_id: int, post: PostUpdate) -> None: ...
    async def delete(self, post_id: int) -> None: ...
    async def by_author(self, user_id: int) -> List[PostRead]: ...

    async def like(self, post_id: int) -> bool:
        """Atomically add one like. False when the post does not exist."""
        ...

    async def unlike(self, post_id: int) -> bool:
        """Atomically remove one like, never below zero. False when the post does not exist."""
        ...


@dataclass(frozen=True)
class Repositories:
    users: UserRepository
    posts: PostRepository


def ensure_password_hash(value: str) -> str:
    if not is_password_hash(value):
        raise ValidationFailure("Refusing to store a password that is not hashed")
    return value

"""
In-memory repositories. Test/dummy store with the same contracts as the SQL
implementation, including idempotent follows and clamped like counters.

State lives in an `InMemoryStore` shared by every request of one app; each
request gets fresh repository objects bound to it. Mutations happen inside a
lock and never await, so concurrent requests observe them as atomic.
"""
import threading
from datetime import datetime, timezone
from typing import Dict, List, Optional, Set, Tuple

from socialgraph.errors import NotFound, ValidationFailure
from socialgraph.repositories.base import Repositories, ensure_password_hash
from socialgraph.schemas import (
    Credentials,
    NewPost,
    NewUser,
    PostRead,
    PostUpdate,
    UserRead,
    UserUpdate,
)


class InMemoryStore:
    def __init__(self):
        self.lock = threading.Lock()
        self.users: Dict[int, dict] = {}
        self.posts: Dict[int, dict] = {}
        # (user_id, follower_id)
        self.follows: Set[Tuple[int, int]] = set()
        self._next_user_id = 1
        self._next_post_id = 1

    def next_user_id(self) -> int:
        uid = self._next_user_id
        self._next_user_id += 1
        return uid

    def next_post_id(self) -> int:
        pid = self._next_post_id
        self._next_post_id += 1
        return pid


def _user_read(rec: dict) -> UserRead:
    return UserRead(
        id=rec["id"],
        name=rec["name"],
        nick=rec["nick"],
        email=rec["email"],
        created_at=rec["created_at"],
    )


class InMemoryUserRepository:
    def __init__(self, store: InMemoryStore):
        self._store = store

    def _check_unique(self, nick: str, email: str, *, exclude: Optional[int] = None) -> None:
        for rec in self._store.users.values():
            if rec["id"] == exclude:
                continue
            if rec["nick"] == nick or rec["email"] == email:
                raise ValidationFailure("Nick or e-mail already in use")

    async def create(self, user: NewUser) -> int:
        password = ensure_password_hash(user.password_hash)
        with self._store.lock:
            self._check_unique(user.nick, user.email)
            uid = self._store.next_user_id()
            self._store.users[uid] = {
                "id": uid,
                "name": user.name,
                "nick": user.nick,
                "email": user.email,
                "password": password,
                "created_at": datetime.now(timezone.utc),
            }
        return uid

    async def search(self, name_or_nick: str) -> List[UserRead]:
        term = name_or_nick.lower()
        with self._store.lock:
            return [
                _user_read(rec)
                for rec in sorted(self._store.users.values(), key=lambda r: r["id"])
                if term in rec["name"].lower() or term in rec["nick"].lower()
            ]

    async def get(self, user_id: int) -> Optional[UserRead]:
        with self._store.lock:
            rec = self._store.users.get(user_id)
            return _user_read(rec) if rec else None

    async def update(self, user_id: int, user: UserUpdate) -> None:
        with self._store.lock:
            rec = self._store.users.get(user_id)
            if rec is None:
                return
            self._check_unique(user.nick, str(user.email), exclude=user_id)
            rec.update(name=user.name, nick=user.nick, email=str(user.email))

    async def delete(self, user_id: int) -> None:
        with self._store.lock:
            if self._store.users.pop(user_id, None) is None:
                return
            self._store.follows = {
                edge for edge in self._store.follows if user_id not in edge
            }
            for pid in [p for p, rec in self._store.posts.items() if rec["author_id"] == user_id]:
                del self._store.posts[pid]

    async def get_by_email(self, email: str) -> Optional[Credentials]:
        with self._store.lock:
            for rec in self._store.users.values():
                if rec["email"] == email:
                    return Credentials(id=rec["id"], password_hash=rec["password"])
        return None

    async def follow(self, user_id: int, follower_id: int) -> None:
        with self._store.lock:
            if user_id not in self._store.users or follower_id not in self._store.users:
                raise NotFound("User not found")
            if user_id == follower_id:
                return
            self._store.follows.add((user_id, follower_id))

    async def unfollow(self, user_id: int, follower_id: int) -> None:
        with self._store.lock:
            self._store.follows.discard((user_id, follower_id))

    async def followers(self, user_id: int) -> List[UserRead]:
        with self._store.lock:
            ids = sorted(f for (u, f) in self._store.follows if u == user_id)
            return [_user_read(self._store.users[i]) for i in ids]

    async def following(self, user_id: int) -> List[UserRead]:
        with self._store.lock:
            ids = sorted(u for (u, f) in self._store.follows if f == user_id)
            return [_user_read(self._store.users[i]) for i in ids]

    async def get_password(self, user_id: int) -> Optional[str]:
        with self._store.lock:
            rec = self._store.users.get(user_id)
            return rec["password"] if rec else None

    async def update_password(self, user_id: int, password_hash: str) -> None:
        password = ensure_password_hash(password_hash)
        with self._store.lock:
            rec = self._store.users.get(user_id)
            if rec is not None:
                rec["password"] = password


class InMemoryPostRepository:
    def __init__(self, store: InMemoryStore):
        self._store = store

    def _read(self, rec: dict) -> PostRead:
        author = self._store.users.get(rec["author_id"])
        return PostRead(
            id=rec["id"],
            title=rec["title"],
            content=rec["content"],
            author_id=rec["author_id"],
            author_nick=author["nick"] if author else None,
            likes=rec["likes"],
            created_at=rec["created_at"],
        )

    def _newest_first(self, records) -> List[PostRead]:
        ordered = sorted(records, key=lambda r: (r["created_at"], r["id"]), reverse=True)
        return [self._read(r) for r in ordered]

    async def create(self, post: NewPost) -> int:
        with self._store.lock:
            if post.author_id not in self._store.users:
                raise NotFound("Author not found")
            pid = self._store.next_post_id()
            self._store.posts[pid] = {
                "id": pid,
                "title": post.title,
                "content": post.content,
                "author_id": post.author_id,
                "likes": 0,
                "created_at": datetime.now(timezone.utc),
            }
        return pid

    async def get(self, post_id: int) -> Optional[PostRead]:
        with self._store.lock:
            rec = self._store.posts.get(post_id)
            return self._read(rec) if rec else None

    async def feed(self, user_id: int) -> List[PostRead]:
        with self._store.lock:
            authors = {user_id} | {u for (u, f) in self._store.follows if f == user_id}
            return self._newest_first(
                r for r in self._store.posts.values() if r["author_id"] in authors
            )

    async def update(self, post_id: int, post: PostUpdate) -> None:
        with self._store.lock:
            rec = self._store.posts.get(post_id)
            if rec is not None:
                rec.update(title=post.title, content=post.content)

    async def delete(self, post_id: int) -> None:
        with self._store.lock:
            self._store.posts.pop(post_id, None)

    async def by_author(self, user_id: int) -> List[PostRead]:
        with self._store.lock:
            return self._newest_first(
                r for r in self._store.posts.values() if r["author_id"] == user_id
            )

    async def like(self, post_id: int) -> bool:
        with self._store.lock:
            rec = self._store.posts.get(post_id)
            if rec is None:
                return False
            rec["likes"] += 1
            return True

    async def unlike(self, post_id: int) -> bool:
        with self._store.lock:
            rec = self._store.posts.get(post_id)
            if rec is None:
                return False
            rec["likes"] = max(0, rec["likes"] - 1)
            return True


def build_memory_repositories(store: InMemoryStore) -> Repositories:
    return Repositories(users=InMemoryUserRepository(store), posts=InMemoryPostRepository(store))

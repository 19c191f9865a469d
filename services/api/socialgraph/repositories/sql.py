"""
SQLAlchemy-backed repositories.

Each repository works on the one AsyncSession the request's dependency
context borrowed from the engine, and commits per operation. Graph mutations
are single statements so the store serialises concurrent requests:

  follow   — INSERT IGNORE / INSERT OR IGNORE on the (user_id, follower_id) key
  unfollow — DELETE, zero affected rows is fine
  like     — UPDATE posts SET likes = likes + 1
  unlike   — UPDATE posts SET likes = CASE WHEN likes > 0 THEN likes - 1 ELSE 0 END

Reads select plain columns rather than ORM entities, so counters updated by
those statements are never served stale from the identity map.
"""
import logging
from typing import List, Optional

from sqlalchemy import case, delete, insert, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from socialgraph.errors import NotFound, ValidationFailure
from socialgraph.models import Follow, Post, User
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

logger = logging.getLogger(__name__)

_USER_COLUMNS = (User.id, User.name, User.nick, User.email, User.created_at)
_POST_COLUMNS = (
    Post.id,
    Post.title,
    Post.content,
    Post.author_id,
    User.nick.label("author_nick"),
    Post.likes,
    Post.created_at,
)


def _select_posts():
    return select(*_POST_COLUMNS).join(User, User.id == Post.author_id)


class SqlUserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, user: NewUser) -> int:
        row = User(
            name=user.name,
            nick=user.nick,
            email=user.email,
            password=ensure_password_hash(user.password_hash),
        )
        self.session.add(row)
        try:
            await self.session.flush()
            user_id = row.id
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ValidationFailure("Nick or e-mail already in use")
        logger.info("Created user %s (id=%s)", user.nick, user_id)
        return user_id

    async def search(self, name_or_nick: str) -> List[UserRead]:
        term = name_or_nick.lower()
        query = (
            select(*_USER_COLUMNS)
            .where(
                or_(
                    User.name.ilike(f"%{_escape_like(term)}%", escape="\\"),
                    User.nick.ilike(f"%{_escape_like(term)}%", escape="\\"),
                )
            )
            .order_by(User.id)
        )
        rows = await self.session.execute(query)
        return [UserRead.model_validate(dict(r._mapping)) for r in rows.all()]

    async def get(self, user_id: int) -> Optional[UserRead]:
        rows = await self.session.execute(select(*_USER_COLUMNS).where(User.id == user_id))
        row = rows.first()
        return UserRead.model_validate(dict(row._mapping)) if row else None

    async def update(self, user_id: int, user: UserUpdate) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(name=user.name, nick=user.nick, email=str(user.email))
            .execution_options(synchronize_session=False)
        )
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise ValidationFailure("Nick or e-mail already in use")

    async def delete(self, user_id: int) -> None:
        await self.session.execute(
            delete(User).where(User.id == user_id).execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def get_by_email(self, email: str) -> Optional[Credentials]:
        rows = await self.session.execute(
            select(User.id, User.password).where(User.email == email)
        )
        row = rows.first()
        if row is None:
            return None
        return Credentials(id=row.id, password_hash=row.password)

    async def follow(self, user_id: int, follower_id: int) -> None:
        stmt = (
            insert(Follow)
            .values(user_id=user_id, follower_id=follower_id)
            .prefix_with("IGNORE", dialect="mysql")
            .prefix_with("OR IGNORE", dialect="sqlite")
        )
        try:
            await self.session.execute(stmt)
            await self.session.commit()
        except IntegrityError:
            # SQLite still enforces foreign keys under OR IGNORE.
            await self.session.rollback()
            raise NotFound("User not found")

    async def unfollow(self, user_id: int, follower_id: int) -> None:
        await self.session.execute(
            delete(Follow).where(
                Follow.user_id == user_id,
                Follow.follower_id == follower_id,
            )
        )
        await self.session.commit()

    async def followers(self, user_id: int) -> List[UserRead]:
        query = (
            select(*_USER_COLUMNS)
            .join(Follow, Follow.follower_id == User.id)
            .where(Follow.user_id == user_id)
            .order_by(User.id)
        )
        rows = await self.session.execute(query)
        return [UserRead.model_validate(dict(r._mapping)) for r in rows.all()]

    async def following(self, user_id: int) -> List[UserRead]:
        query = (
            select(*_USER_COLUMNS)
            .join(Follow, Follow.user_id == User.id)
            .where(Follow.follower_id == user_id)
            .order_by(User.id)
        )
        rows = await self.session.execute(query)
        return [UserRead.model_validate(dict(r._mapping)) for r in rows.all()]

    async def get_password(self, user_id: int) -> Optional[str]:
        rows = await self.session.execute(select(User.password).where(User.id == user_id))
        return rows.scalar_one_or_none()

    async def update_password(self, user_id: int, password_hash: str) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(password=ensure_password_hash(password_hash))
            .execution_options(synchronize_session=False)
        )
        await self.session.execute(stmt)
        await self.session.commit()


class SqlPostRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, post: NewPost) -> int:
        row = Post(title=post.title, content=post.content, author_id=post.author_id, likes=0)
        self.session.add(row)
        try:
            await self.session.flush()
            post_id = row.id
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            raise NotFound("Author not found")
        logger.info("Post created: %s by user %s", post_id, post.author_id)
        return post_id

    async def get(self, post_id: int) -> Optional[PostRead]:
        rows = await self.session.execute(_select_posts().where(Post.id == post_id))
        row = rows.first()
        return PostRead.model_validate(dict(row._mapping)) if row else None

    async def feed(self, user_id: int) -> List[PostRead]:
        followed = select(Follow.user_id).where(Follow.follower_id == user_id)
        query = (
            _select_posts()
            .where(or_(Post.author_id == user_id, Post.author_id.in_(followed)))
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        rows = await self.session.execute(query)
        return [PostRead.model_validate(dict(r._mapping)) for r in rows.all()]

    async def update(self, post_id: int, post: PostUpdate) -> None:
        await self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(title=post.title, content=post.content)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def delete(self, post_id: int) -> None:
        await self.session.execute(
            delete(Post).where(Post.id == post_id).execution_options(synchronize_session=False)
        )
        await self.session.commit()

    async def by_author(self, user_id: int) -> List[PostRead]:
        query = (
            _select_posts()
            .where(Post.author_id == user_id)
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        rows = await self.session.execute(query)
        return [PostRead.model_validate(dict(r._mapping)) for r in rows.all()]

    async def like(self, post_id: int) -> bool:
        result = await self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(likes=Post.likes + 1)
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount > 0

    async def unlike(self, post_id: int) -> bool:
        result = await self.session.execute(
            update(Post)
            .where(Post.id == post_id)
            .values(likes=case((Post.likes > 0, Post.likes - 1), else_=0))
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        return result.rowcount > 0


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_sql_repositories(session: AsyncSession) -> Repositories:
    return Repositories(users=SqlUserRepository(session), posts=SqlPostRepository(session))

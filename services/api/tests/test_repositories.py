import asyncio

import pytest

from socialgraph.database import build_engine, build_session_factory, init_db
from socialgraph.errors import NotFound, ValidationFailure
from socialgraph.repositories import (
    InMemoryStore,
    build_memory_repositories,
    build_sql_repositories,
)
from socialgraph.schemas import NewPost, NewUser, PostUpdate, UserUpdate
from socialgraph.security import hash_password, verify_password

PASSWORD_HASH = hash_password("secret123")


@pytest.fixture(params=["memory", "sql"])
async def repos(request, test_settings):
    if request.param == "memory":
        yield build_memory_repositories(InMemoryStore())
        return
    engine = build_engine(test_settings)
    await init_db(engine)
    async with build_session_factory(engine)() as session:
        yield build_sql_repositories(session)
    await engine.dispose()


async def add_user(repos, nick):
    return await repos.users.create(
        NewUser(name=nick.title(), nick=nick, email=f"{nick}@example.com", password_hash=PASSWORD_HASH)
    )


async def add_post(repos, author_id, title="hello"):
    return await repos.posts.create(NewPost(title=title, content="some content", author_id=author_id))


# ──────────────────────────── Users ───────────────────────────────────────

@pytest.mark.anyio
async def test_create_get_and_search_users(repos):
    alice = await add_user(repos, "alice")
    await add_user(repos, "bob")

    user = await repos.users.get(alice)
    assert user.nick == "alice" and user.email == "alice@example.com"
    assert await repos.users.get(9999) is None

    assert [u.nick for u in await repos.users.search("ALI")] == ["alice"]
    assert [u.nick for u in await repos.users.search("b")] == ["bob"]
    assert len(await repos.users.search("")) == 2


@pytest.mark.anyio
async def test_duplicate_nick_or_email_is_a_validation_failure(repos):
    await add_user(repos, "alice")
    with pytest.raises(ValidationFailure):
        await add_user(repos, "alice")

    bob = await add_user(repos, "bob")
    with pytest.raises(ValidationFailure):
        await repos.users.update(bob, UserUpdate(name="Bob", nick="alice", email="bob@example.com"))


@pytest.mark.anyio
async def test_update_user_profile(repos):
    alice = await add_user(repos, "alice")
    await repos.users.update(alice, UserUpdate(name="Alice B", nick="alice_b", email="ab@example.com"))
    user = await repos.users.get(alice)
    assert (user.name, user.nick, user.email) == ("Alice B", "alice_b", "ab@example.com")


@pytest.mark.anyio
async def test_get_by_email_returns_hash_not_plaintext(repos):
    alice = await add_user(repos, "alice")
    creds = await repos.users.get_by_email("alice@example.com")
    assert creds.id == alice
    assert creds.password_hash != "secret123"
    assert verify_password(creds.password_hash, "secret123")
    assert await repos.users.get_by_email("nobody@example.com") is None


@pytest.mark.anyio
async def test_plaintext_passwords_are_refused(repos):
    with pytest.raises(ValidationFailure):
        await repos.users.create(
            NewUser(name="Eve", nick="eve", email="eve@example.com", password_hash="plaintext")
        )
    alice = await add_user(repos, "alice")
    with pytest.raises(ValidationFailure):
        await repos.users.update_password(alice, "new-plaintext")
    assert await repos.users.get_password(alice) == PASSWORD_HASH


@pytest.mark.anyio
async def test_update_password_stores_new_hash(repos):
    alice = await add_user(repos, "alice")
    await repos.users.update_password(alice, hash_password("rotated"))
    stored = await repos.users.get_password(alice)
    assert verify_password(stored, "rotated")
    assert not verify_password(stored, "secret123")


# ──────────────────────────── Follows ─────────────────────────────────────

@pytest.mark.anyio
async def test_follow_twice_leaves_one_edge(repos):
    alice = await add_user(repos, "alice")
    bob = await add_user(repos, "bob")

    await repos.users.follow(bob, alice)
    await repos.users.follow(bob, alice)

    assert [u.id for u in await repos.users.followers(bob)] == [alice]
    assert [u.id for u in await repos.users.following(alice)] == [bob]
    assert await repos.users.followers(alice) == []


@pytest.mark.anyio
async def test_unfollow_missing_edge_is_a_no_op(repos):
    alice = await add_user(repos, "alice")
    bob = await add_user(repos, "bob")

    await repos.users.unfollow(bob, alice)
    assert await repos.users.followers(bob) == []

    await repos.users.follow(bob, alice)
    await repos.users.unfollow(bob, alice)
    await repos.users.unfollow(bob, alice)
    assert await repos.users.followers(bob) == []


@pytest.mark.anyio
async def test_follow_unknown_user_is_not_found(repos):
    alice = await add_user(repos, "alice")
    with pytest.raises(NotFound):
        await repos.users.follow(4242, alice)


@pytest.mark.anyio
async def test_deleting_a_user_removes_edges_and_posts(repos):
    alice = await add_user(repos, "alice")
    bob = await add_user(repos, "bob")
    await repos.users.follow(bob, alice)
    post = await add_post(repos, bob)

    await repos.users.delete(bob)

    assert await repos.users.get(bob) is None
    assert await repos.users.following(alice) == []
    assert await repos.posts.get(post) is None


# ──────────────────────────── Posts ───────────────────────────────────────

@pytest.mark.anyio
async def test_feed_contains_own_and_followed_posts_only(repos):
    alice = await add_user(repos, "alice")
    bob = await add_user(repos, "bob")
    carol = await add_user(repos, "carol")
    await repos.users.follow(bob, alice)

    mine = await add_post(repos, alice, "mine")
    bobs = await add_post(repos, bob, "bobs")
    await add_post(repos, carol, "carols")

    feed = await repos.posts.feed(alice)
    assert sorted(p.id for p in feed) == sorted([mine, bobs])
    # newest first
    assert feed[0].id == bobs
    assert {p.author_nick for p in feed} == {"alice", "bob"}


@pytest.mark.anyio
async def test_update_delete_and_list_by_author(repos):
    alice = await add_user(repos, "alice")
    post = await add_post(repos, alice)

    await repos.posts.update(post, PostUpdate(title="edited", content="new body"))
    fetched = await repos.posts.get(post)
    assert (fetched.title, fetched.content, fetched.author_id) == ("edited", "new body", alice)
    assert [p.id for p in await repos.posts.by_author(alice)] == [post]

    await repos.posts.delete(post)
    assert await repos.posts.get(post) is None
    assert await repos.posts.by_author(alice) == []


@pytest.mark.anyio
async def test_like_then_unlike_restores_count(repos):
    alice = await add_user(repos, "alice")
    post = await add_post(repos, alice)

    assert await repos.posts.like(post)
    assert (await repos.posts.get(post)).likes == 1
    assert await repos.posts.unlike(post)
    assert (await repos.posts.get(post)).likes == 0


@pytest.mark.anyio
async def test_unlike_clamps_at_zero(repos):
    alice = await add_user(repos, "alice")
    post = await add_post(repos, alice)

    assert await repos.posts.unlike(post)
    assert await repos.posts.unlike(post)
    assert (await repos.posts.get(post)).likes == 0

    await repos.posts.like(post)
    assert (await repos.posts.get(post)).likes == 1


@pytest.mark.anyio
async def test_like_unknown_post_reports_missing(repos):
    assert await repos.posts.like(777) is False
    assert await repos.posts.unlike(777) is False


@pytest.mark.anyio
async def test_concurrent_likes_are_not_lost_in_memory():
    store = InMemoryStore()
    setup = build_memory_repositories(store)
    post = await add_post(setup, await add_user(setup, "alice"))

    async def like_once():
        # a fresh repository set per call, as each request gets
        assert await build_memory_repositories(store).posts.like(post)

    await asyncio.gather(*(like_once() for _ in range(50)))
    assert (await setup.posts.get(post)).likes == 50


@pytest.mark.anyio
async def test_concurrent_likes_are_not_lost_in_sql(session_factory):
    async with session_factory() as session:
        setup = build_sql_repositories(session)
        post = await add_post(setup, await add_user(setup, "alice"))

    async def like_once():
        async with session_factory() as session:
            assert await build_sql_repositories(session).posts.like(post)

    await asyncio.gather(*(like_once() for _ in range(10)))

    async with session_factory() as session:
        assert (await build_sql_repositories(session).posts.get(post)).likes == 10


@pytest.mark.anyio
async def test_concurrent_follows_leave_one_edge_in_sql(session_factory):
    async with session_factory() as session:
        setup = build_sql_repositories(session)
        alice = await add_user(setup, "alice")
        bob = await add_user(setup, "bob")

    async def follow_once():
        async with session_factory() as session:
            await build_sql_repositories(session).users.follow(bob, alice)

    await asyncio.gather(*(follow_once() for _ in range(5)))

    async with session_factory() as session:
        assert [u.id for u in await build_sql_repositories(session).users.followers(bob)] == [alice]

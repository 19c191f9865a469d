import pytest

from _helpers import signup


def publish(client, headers, title="hello", content="first post"):
    res = client.post("/posts", json={"title": title, "content": content}, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def test_create_post_uses_caller_as_author(client):
    alice, headers = signup(client, "alice")
    post = publish(client, headers)
    assert post["author_id"] == alice
    assert post["author_nick"] == "alice"
    assert post["likes"] == 0


def test_author_in_body_is_ignored(client):
    alice, headers = signup(client, "alice")
    bob, _ = signup(client, "bob")
    res = client.post(
        "/posts",
        json={"title": "t", "content": "c", "author_id": bob},
        headers=headers,
    )
    assert res.status_code == 201
    assert res.json()["author_id"] == alice


@pytest.mark.parametrize(
    "body",
    [
        {"title": "", "content": "c"},
        {"title": "   ", "content": "c"},
        {"title": "t", "content": ""},
        {"title": "x" * 51, "content": "c"},
        {"title": "t", "content": "x" * 301},
        {"content": "c"},
    ],
)
def test_invalid_post_bodies_are_400(client, body):
    _, headers = signup(client, "alice")
    res = client.post("/posts", json=body, headers=headers)
    assert res.status_code == 400
    assert res.json()["kind"] == "validation"


def test_unreadable_post_body_is_422(client):
    _, headers = signup(client, "alice")
    res = client.post("/posts", headers=headers)
    assert res.status_code == 422
    assert res.json()["kind"] == "unreadable_body"


def test_get_post_and_missing_post(client):
    _, headers = signup(client, "alice")
    post = publish(client, headers)
    assert client.get(f"/posts/{post['id']}", headers=headers).json()["title"] == "hello"
    assert client.get("/posts/999", headers=headers).status_code == 404


def test_feed_shows_own_and_followed_posts(client):
    _, alice_headers = signup(client, "alice")
    bob, bob_headers = signup(client, "bob")
    _, carol_headers = signup(client, "carol")

    publish(client, alice_headers, content="from alice")
    publish(client, bob_headers, content="from bob")
    publish(client, carol_headers, content="from carol")
    client.post(f"/users/{bob}/follow", headers=alice_headers)

    feed = client.get("/posts", headers=alice_headers).json()
    assert [p["content"] for p in feed] == ["from bob", "from alice"]


def test_owner_can_edit_and_delete(client):
    _, headers = signup(client, "alice")
    post = publish(client, headers)

    res = client.put(f"/posts/{post['id']}", json={"title": "edited", "content": "new"}, headers=headers)
    assert res.status_code == 204
    assert client.get(f"/posts/{post['id']}", headers=headers).json()["title"] == "edited"

    assert client.delete(f"/posts/{post['id']}", headers=headers).status_code == 204
    assert client.get(f"/posts/{post['id']}", headers=headers).status_code == 404


def test_non_owner_cannot_edit_or_delete(client):
    _, alice_headers = signup(client, "alice")
    _, bob_headers = signup(client, "bob")
    post = publish(client, alice_headers)

    res = client.put(f"/posts/{post['id']}", json={"title": "mine", "content": "now"}, headers=bob_headers)
    assert res.status_code == 403
    assert res.json()["detail"] == "Cannot modify a post that is not yours"
    assert client.delete(f"/posts/{post['id']}", headers=bob_headers).status_code == 403

    unchanged = client.get(f"/posts/{post['id']}", headers=alice_headers).json()
    assert unchanged["title"] == "hello"


def test_edit_or_delete_missing_post_is_404(client):
    _, headers = signup(client, "alice")
    assert client.put("/posts/999", json={"title": "t", "content": "c"}, headers=headers).status_code == 404
    assert client.delete("/posts/999", headers=headers).status_code == 404


def test_like_and_unlike_adjust_counter(client):
    _, alice_headers = signup(client, "alice")
    _, bob_headers = signup(client, "bob")
    post = publish(client, alice_headers)
    url = f"/posts/{post['id']}"

    assert client.post(f"{url}/like", headers=bob_headers).status_code == 204
    assert client.post(f"{url}/like", headers=alice_headers).status_code == 204
    assert client.get(url, headers=alice_headers).json()["likes"] == 2

    assert client.post(f"{url}/unlike", headers=bob_headers).status_code == 204
    assert client.post(f"{url}/unlike", headers=bob_headers).status_code == 204
    assert client.post(f"{url}/unlike", headers=bob_headers).status_code == 204
    assert client.get(url, headers=alice_headers).json()["likes"] == 0


def test_like_missing_post_is_404(client):
    _, headers = signup(client, "alice")
    assert client.post("/posts/999/like", headers=headers).status_code == 404
    assert client.post("/posts/999/unlike", headers=headers).status_code == 404


def test_metrics_and_health_are_public(client):
    assert client.get("/health").json()["status"] == "ok"
    res = client.get("/metrics")
    assert res.status_code == 200
    assert "logins_total" in res.text


def test_post_ownership_is_checked_before_the_body(client):
    _, alice_headers = signup(client, "alice")
    _, bob_headers = signup(client, "bob")
    post = publish(client, alice_headers)

    res = client.put(f"/posts/{post['id']}", json={"title": ""}, headers=bob_headers)
    assert res.status_code == 403
    res = client.put(f"/posts/{post['id']}", json={"title": ""}, headers=alice_headers)
    assert res.status_code == 400

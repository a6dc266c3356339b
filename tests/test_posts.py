"""Post listing, reading and admin-only writes."""

import pytest

from conftest import bearer


@pytest.fixture
def create_post(client, admin):
    def _create(title="Hello", content="Hello world", tags=None):
        body = {"title": title, "content": content}
        if tags is not None:
            body["tags"] = tags
        resp = client.post("/api/post", json=body, headers=bearer(admin["token"]))
        assert resp.status_code == 201, resp.text
        return resp.json()["id"]
    return _create


def test_create_post(client, admin):
    resp = client.post(
        "/api/post",
        json={"title": "First post", "content": "Some content", "tags": "python, web"},
        headers=bearer(admin["token"]),
    )
    assert resp.status_code == 201
    post_id = resp.json()["id"]
    assert resp.headers["location"] == f"/api/post/{post_id}"

    post = client.get(f"/api/post/{post_id}").json()
    assert post["title"] == "First post"
    assert post["content"] == "Some content"
    assert post["tags"] == ["python", "web"]
    assert post["published"] is True
    assert post["authorId"] == admin["id"]
    assert post["authorName"] == "admin_user"
    assert "updatedAt" in post


def test_create_post_requires_admin(client, reader):
    resp = client.post("/api/post", json={"title": "Nope", "content": "Nope"}, headers=bearer(reader["token"]))
    assert resp.status_code == 403


def test_create_post_requires_token(client):
    resp = client.post("/api/post", json={"title": "Nope", "content": "Nope"})
    assert resp.status_code == 401
    assert resp.headers["www-authenticate"] == "Bearer"


def test_create_post_validation(client, admin):
    resp = client.post("/api/post", json={"title": "", "content": "x"}, headers=bearer(admin["token"]))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Title must be between 1 and 255 characters"

    resp = client.post(
        "/api/post",
        json={"title": "Title", "content": "x", "tags": "c++"},
        headers=bearer(admin["token"]),
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Tags must be alphanumeric"


def test_tags_are_shared_between_posts(client, create_post):
    first = create_post(tags="python")
    second = create_post(tags="python, rust")
    assert client.get(f"/api/post/{first}").json()["tags"] == ["python"]
    assert client.get(f"/api/post/{second}").json()["tags"] == ["python", "rust"]


def test_list_posts_newest_first_with_abstract(client, create_post):
    create_post(title="Old", content="a" * 150)
    create_post(title="New", content="short")

    posts = client.get("/api/post").json()
    assert [p["title"] for p in posts] == ["New", "Old"]
    assert posts[0]["abstract"] == "short"
    assert posts[1]["abstract"] == "a" * 97 + "..."
    assert len(posts[1]["abstract"]) == 100
    assert "content" not in posts[0]


def test_list_posts_cursor_pagination(client, create_post):
    ids = [create_post(title=f"Post {i}") for i in range(5)]

    page = client.get("/api/post", params={"limit": 2}).json()
    assert [p["id"] for p in page] == [ids[4], ids[3]]

    page = client.get("/api/post", params={"limit": 2, "cursor": page[-1]["id"]}).json()
    assert [p["id"] for p in page] == [ids[2], ids[1]]

    page = client.get("/api/post", params={"limit": 2, "cursor": page[-1]["id"]}).json()
    assert [p["id"] for p in page] == [ids[0]]


def test_list_posts_unknown_cursor(client, create_post):
    create_post()
    assert client.get("/api/post", params={"cursor": 9999}).json() == []


def test_list_posts_limit_is_capped(client, create_post):
    for i in range(3):
        create_post(title=f"Post {i}")
    assert len(client.get("/api/post", params={"limit": 1000}).json()) == 3
    assert client.get("/api/post", params={"limit": 0}).status_code == 400


@pytest.mark.parametrize("params, message", [
    ({"cursor": "abc"}, "Cursor must be an integer"),
    ({"cursor": "1.5"}, "Cursor must be an integer"),
    ({"limit": "0"}, "Limit must be an integer greater than 0"),
    ({"limit": "-3"}, "Limit must be an integer greater than 0"),
    ({"limit": "many"}, "Limit must be an integer greater than 0"),
    ({"from": "yesterday"}, "From must be a date"),
    ({"to": "2024-13-40"}, "To must be a date"),
])
def test_list_posts_bad_query_messages(client, params, message):
    resp = client.get("/api/post", params=params)
    assert resp.status_code == 400
    assert resp.json() == {"message": message}


def test_list_posts_by_tags(client, create_post):
    python = create_post(title="Python", tags="python")
    rust = create_post(title="Rust", tags="rust")
    create_post(title="Untagged")

    posts = client.get("/api/post", params={"tags": "python"}).json()
    assert [p["id"] for p in posts] == [python]

    posts = client.get("/api/post", params={"tags": "python,rust"}).json()
    assert {p["id"] for p in posts} == {python, rust}


def test_list_posts_bad_tags(client):
    resp = client.get("/api/post", params={"tags": "python;drop"})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Tags must be alphanumeric"}


def test_list_posts_date_range(client, create_post):
    create_post()
    assert len(client.get("/api/post", params={"from": "2000-01-01"}).json()) == 1
    assert client.get("/api/post", params={"from": "2000-01-01", "to": "2000-01-02"}).json() == []


def test_unpublished_post_visible_to_admin_only(client, admin, create_post):
    post_id = create_post(title="Draft")
    resp = client.put(f"/api/post/{post_id}", json={"published": False}, headers=bearer(admin["token"]))
    assert resp.status_code == 200
    assert resp.json()["published"] is False

    assert client.get(f"/api/post/{post_id}").status_code == 404
    assert client.get("/api/post").json() == []

    assert client.get(f"/api/post/{post_id}", headers=bearer(admin["token"])).status_code == 200
    assert len(client.get("/api/post", headers=bearer(admin["token"])).json()) == 1


def test_update_post(client, admin, create_post):
    post_id = create_post(title="Before", tags="python")
    before = client.get(f"/api/post/{post_id}").json()

    resp = client.put(
        f"/api/post/{post_id}",
        json={"title": "After", "tags": "rust, web"},
        headers=bearer(admin["token"]),
    )
    assert resp.status_code == 200
    post = resp.json()
    assert post["title"] == "After"
    assert post["content"] == "Hello world"
    assert post["tags"] == ["rust", "web"]
    assert post["updatedAt"] >= before["updatedAt"]


def test_update_post_invalid_published(client, admin, create_post):
    post_id = create_post()
    resp = client.put(f"/api/post/{post_id}", json={"published": "yes"}, headers=bearer(admin["token"]))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Published must be a boolean"


def test_update_missing_post(client, admin):
    resp = client.put("/api/post/9999", json={"title": "x"}, headers=bearer(admin["token"]))
    assert resp.status_code == 404


def test_delete_post(client, admin, create_post):
    post_id = create_post()
    resp = client.delete(f"/api/post/{post_id}", headers=bearer(admin["token"]))
    assert resp.status_code == 204

    assert client.get(f"/api/post/{post_id}").status_code == 404
    assert client.get("/api/post").json() == []
    assert client.delete(f"/api/post/{post_id}", headers=bearer(admin["token"])).status_code == 404


def test_delete_post_requires_admin(client, reader, create_post):
    post_id = create_post()
    assert client.delete(f"/api/post/{post_id}", headers=bearer(reader["token"])).status_code == 403

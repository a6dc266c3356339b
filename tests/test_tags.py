"""Tag cloud counts."""

from conftest import bearer


def _post(client, token, tags, published=True):
    post_id = client.post(
        "/api/post", json={"title": "T", "content": "C", "tags": tags}, headers=bearer(token)
    ).json()["id"]
    if not published:
        client.put(f"/api/post/{post_id}", json={"published": False}, headers=bearer(token))
    return post_id


def test_empty(client):
    assert client.get("/api/tag").json() == []


def test_counts_sorted_by_count_then_name(client, admin):
    _post(client, admin["token"], "web")
    _post(client, admin["token"], "python, web")
    _post(client, admin["token"], "python, api")
    _post(client, admin["token"], "python")

    assert client.get("/api/tag").json() == [
        {"tag": "python", "count": 3},
        {"tag": "web", "count": 2},
        {"tag": "api", "count": 1},
    ]


def test_unpublished_and_deleted_posts_not_counted(client, admin):
    _post(client, admin["token"], "python")
    _post(client, admin["token"], "draft", published=False)
    deleted = _post(client, admin["token"], "gone, python")
    client.delete(f"/api/post/{deleted}", headers=bearer(admin["token"]))

    assert client.get("/api/tag").json() == [{"tag": "python", "count": 1}]

"""Comments on posts."""

import pytest

from conftest import bearer


@pytest.fixture
def post_id(client, admin):
    resp = client.post("/api/post", json={"title": "Hello", "content": "Hello world"}, headers=bearer(admin["token"]))
    return resp.json()["id"]


def _comment(client, post_id, token, content="Nice post"):
    return client.post("/api/comment", params={"postId": post_id}, json={"content": content}, headers=bearer(token))


def test_create_and_list_comments(client, reader, post_id):
    resp = _comment(client, post_id, reader["token"])
    assert resp.status_code == 201
    comment = resp.json()
    assert comment["postId"] == post_id
    assert comment["authorId"] == reader["id"]
    assert comment["authorName"] == "reader_one"
    assert comment["content"] == "Nice post"

    comments = client.get("/api/comment", params={"postId": post_id}).json()
    assert comments == [comment]


def test_comments_newest_first_with_cursor(client, reader, post_id):
    ids = [_comment(client, post_id, reader["token"], f"Comment {i}").json()["id"] for i in range(3)]

    page = client.get("/api/comment", params={"postId": post_id, "limit": 2}).json()
    assert [c["id"] for c in page] == [ids[2], ids[1]]

    page = client.get("/api/comment", params={"postId": post_id, "cursor": ids[1]}).json()
    assert [c["id"] for c in page] == [ids[0]]


def test_list_comments_unknown_post(client):
    assert client.get("/api/comment", params={"postId": 9999}).json() == []


def test_comment_requires_token(client, post_id):
    resp = client.post("/api/comment", params={"postId": post_id}, json={"content": "Hi"})
    assert resp.status_code == 401


def test_comment_on_missing_post(client, reader):
    assert _comment(client, 9999, reader["token"]).status_code == 404


@pytest.mark.parametrize("content", ["", "   ", "x" * 1025])
def test_comment_length(client, reader, post_id, content):
    resp = _comment(client, post_id, reader["token"], content)
    assert resp.status_code == 400
    assert resp.json() == {"message": "Comment must be between 1 and 1024 characters"}


def test_only_author_can_edit(client, signup, reader, post_id):
    comment_id = _comment(client, post_id, reader["token"]).json()["id"]
    other = signup("other_reader")

    resp = client.put(f"/api/comment/{comment_id}", json={"content": "Hijacked"}, headers=bearer(other["token"]))
    assert resp.status_code == 404

    resp = client.put(f"/api/comment/{comment_id}", json={"content": "Edited"}, headers=bearer(reader["token"]))
    assert resp.status_code == 200
    assert resp.json()["content"] == "Edited"


def test_author_can_delete(client, reader, post_id):
    comment_id = _comment(client, post_id, reader["token"]).json()["id"]
    resp = client.delete(f"/api/comment/{comment_id}", headers=bearer(reader["token"]))
    assert resp.status_code == 204
    assert client.get("/api/comment", params={"postId": post_id}).json() == []


def test_admin_can_delete_any_comment(client, admin, reader, post_id):
    comment_id = _comment(client, post_id, reader["token"]).json()["id"]
    assert client.delete(f"/api/comment/{comment_id}", headers=bearer(admin["token"])).status_code == 204
    assert client.delete(f"/api/comment/{comment_id}", headers=bearer(admin["token"])).status_code == 404


def test_other_user_cannot_delete(client, signup, reader, post_id):
    comment_id = _comment(client, post_id, reader["token"]).json()["id"]
    other = signup("other_reader")
    assert client.delete(f"/api/comment/{comment_id}", headers=bearer(other["token"])).status_code == 404


def _unpublish(client, admin, post_id):
    resp = client.put(f"/api/post/{post_id}", json={"published": False}, headers=bearer(admin["token"]))
    assert resp.status_code == 200


def test_draft_comments_hidden_from_readers(client, admin, reader, post_id):
    comment = _comment(client, post_id, reader["token"]).json()
    _unpublish(client, admin, post_id)

    assert client.get("/api/comment", params={"postId": post_id}).json() == []
    assert client.get("/api/comment", params={"postId": post_id}, headers=bearer(reader["token"])).json() == []

    listed = client.get("/api/comment", params={"postId": post_id}, headers=bearer(admin["token"])).json()
    assert [c["id"] for c in listed] == [comment["id"]]


def test_cannot_comment_on_draft(client, admin, reader, post_id):
    _unpublish(client, admin, post_id)

    resp = _comment(client, post_id, reader["token"])
    assert resp.status_code == 404
    assert resp.json() == {"message": "Post not found"}

    assert _comment(client, post_id, admin["token"]).status_code == 201


def test_comments_of_deleted_post_are_gone(client, admin, reader, post_id):
    _comment(client, post_id, reader["token"])
    assert client.delete(f"/api/post/{post_id}", headers=bearer(admin["token"])).status_code == 204
    assert client.get("/api/comment", params={"postId": post_id}).json() == []


@pytest.mark.parametrize("params, message", [
    ({"cursor": "abc"}, "Cursor must be an integer"),
    ({"limit": "0"}, "Limit must be an integer greater than 0"),
    ({"limit": "ten"}, "Limit must be an integer greater than 0"),
])
def test_list_comments_bad_paging(client, post_id, params, message):
    resp = client.get("/api/comment", params={"postId": post_id, **params})
    assert resp.status_code == 400
    assert resp.json() == {"message": message}

"""Account lifecycle: signup, login, update, refresh, logout and delete."""

from conftest import ADMIN_CODE, bearer
from fancyblog.auth.models import RefreshSession


def test_signup_returns_identity_and_token(client):
    resp = client.post("/api/user", json={"username": "testuser", "password": "testpassword"})
    assert resp.status_code == 201
    assert resp.headers["location"] == "/api/user"

    body = resp.json()
    assert body["username"] == "testuser"
    assert body["isAdmin"] is False
    assert isinstance(body["id"], int)
    assert body["token"]

    login = client.post("/api/user/login", json={"username": "testuser", "password": "testpassword"})
    assert login.status_code == 200
    assert login.json() == body


def test_signup_duplicate_username(client, signup):
    signup("testuser")
    resp = client.post("/api/user", json={"username": "testuser", "password": "otherpassword"})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Username already exists"}


def test_signup_validation_messages(client):
    resp = client.post("/api/user", json={})
    assert resp.status_code == 400
    message = resp.json()["message"]
    assert "Username must be between 6 and 64 characters" in message
    assert "Username must be alphanumeric characters, and '_' or '-'" in message
    assert "Password must be between 6 and 64 characters" in message


def test_signup_rejects_bad_characters(client):
    resp = client.post("/api/user", json={"username": "bad user!", "password": "testpassword"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Username must be alphanumeric characters, and '_' or '-'"


def test_signup_rejects_short_password(client):
    resp = client.post("/api/user", json={"username": "testuser", "password": "12345"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Password must be between 6 and 64 characters"


def test_login_wrong_password(client, signup):
    signup("testuser")
    resp = client.post("/api/user/login", json={"username": "testuser", "password": "wrongpassword"})
    assert resp.status_code == 401
    assert resp.json() == {"message": "Incorrect username or password"}
    assert resp.headers["www-authenticate"] == "Bearer"


def test_login_unknown_user(client):
    resp = client.post("/api/user/login", json={"username": "nobody_here", "password": "testpassword"})
    assert resp.status_code == 401


def test_profile_requires_token(client):
    resp = client.get("/api/user")
    assert resp.status_code == 401
    assert resp.json() == {"message": "Not authenticated"}


def test_profile_with_garbage_token(client):
    resp = client.get("/api/user", headers=bearer("not-a-jwt"))
    assert resp.status_code == 401
    assert resp.json() == {"message": "Invalid token"}


def test_profile(client, signup):
    user = signup("testuser")
    resp = client.get("/api/user", headers=bearer(user["token"]))
    assert resp.status_code == 200
    assert resp.json() == {
        "id": user["id"],
        "username": "testuser",
        "isAdmin": False,
        "oauthProviders": [],
    }


# --- Update ---

def test_password_only_update_keeps_token(client, signup):
    user = signup("testuser")
    resp = client.put("/api/user", json={"password": "newpassword"}, headers=bearer(user["token"]))
    assert resp.status_code == 200
    assert resp.json()["token"] == user["token"]

    login = client.post("/api/user/login", json={"username": "testuser", "password": "newpassword"})
    assert login.status_code == 200
    assert login.json()["token"] == user["token"]

    old = client.post("/api/user/login", json={"username": "testuser", "password": "testpassword"})
    assert old.status_code == 401


def test_username_update_issues_new_token(client, signup):
    user = signup("testuser")
    resp = client.put("/api/user", json={"username": "renamed_user"}, headers=bearer(user["token"]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["username"] == "renamed_user"
    assert body["token"] != user["token"]

    assert client.get("/api/user", headers=bearer(user["token"])).status_code == 401
    assert client.get("/api/user", headers=bearer(body["token"])).status_code == 200


def test_username_update_to_taken_name(client, signup):
    signup("first_user")
    second = signup("second_user")
    resp = client.put("/api/user", json={"username": "first_user"}, headers=bearer(second["token"]))
    assert resp.status_code == 400
    assert resp.json() == {"message": "Username already exists"}


def test_admin_promotion_invalidates_old_token(client, signup):
    user = signup("testuser")
    resp = client.put("/api/user", json={"adminCode": ADMIN_CODE}, headers=bearer(user["token"]))
    assert resp.status_code == 200
    body = resp.json()
    assert body["isAdmin"] is True
    assert body["token"] != user["token"]

    stale = client.get("/api/user", headers=bearer(user["token"]))
    assert stale.status_code == 401
    assert client.get("/api/user", headers=bearer(body["token"])).json()["isAdmin"] is True


def test_wrong_admin_code(client, signup):
    user = signup("testuser")
    resp = client.put("/api/user", json={"adminCode": "not-the-code"}, headers=bearer(user["token"]))
    assert resp.status_code == 403
    assert resp.json() == {"message": "Invalid admin code"}


def test_admin_code_length(client, signup):
    user = signup("testuser")
    resp = client.put("/api/user", json={"adminCode": "abc"}, headers=bearer(user["token"]))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Admin code must be between 6 and 64 characters"


def test_update_without_fields(client, signup):
    user = signup("testuser")
    resp = client.put("/api/user", json={}, headers=bearer(user["token"]))
    assert resp.status_code == 400
    assert resp.json() == {"message": "No fields to update"}


# --- Delete ---

def test_deleted_user_token_rejected(client, signup):
    user = signup("testuser")
    resp = client.delete("/api/user", headers=bearer(user["token"]))
    assert resp.status_code == 204

    assert client.get("/api/user", headers=bearer(user["token"])).status_code == 401
    login = client.post("/api/user/login", json={"username": "testuser", "password": "testpassword"})
    assert login.status_code == 401


def test_deleted_username_can_be_reused(client, signup):
    user = signup("testuser")
    client.delete("/api/user", headers=bearer(user["token"]))

    again = signup("testuser")
    assert again["id"] != user["id"]


# --- Refresh & logout ---

def test_refresh_rotates_token(client, signup):
    user = signup("testuser")

    resp = client.post("/api/user/refresh")
    assert resp.status_code == 200
    refreshed = resp.json()
    assert refreshed["id"] == user["id"]
    assert refreshed["token"] != user["token"]

    assert client.get("/api/user", headers=bearer(user["token"])).status_code == 401
    assert client.get("/api/user", headers=bearer(refreshed["token"])).status_code == 200

    # The cookie now points at the rotated session
    again = client.post("/api/user/refresh")
    assert again.status_code == 200
    assert again.json()["token"] != refreshed["token"]


def _live_sessions(app, user_id):
    with app.state.session_factory() as db:
        return db.query(RefreshSession).filter(
            RefreshSession.user_id == user_id,
            RefreshSession.revoked == False,  # noqa: E712
        ).count()


def test_repeated_logins_keep_one_live_session(client, app, signup):
    user = signup("testuser")
    tokens = set()
    for _ in range(10):
        resp = client.post("/api/user/login", json={"username": "testuser", "password": "testpassword"})
        assert resp.status_code == 200
        tokens.add(resp.json()["token"])

    assert _live_sessions(app, user["id"]) == 1
    # Replacing the session does not start a new token epoch
    assert tokens == {user["token"]}
    assert client.post("/api/user/refresh").status_code == 200


def test_refresh_without_session(client):
    resp = client.post("/api/user/refresh")
    assert resp.status_code == 401


def test_logout_revokes_token_and_session(client, signup):
    user = signup("testuser")

    resp = client.get("/api/user/logout", headers=bearer(user["token"]))
    assert resp.status_code == 200
    assert resp.json() == {"message": "OK"}

    assert client.get("/api/user", headers=bearer(user["token"])).status_code == 401
    assert client.post("/api/user/refresh").status_code == 401

    login = client.post("/api/user/login", json={"username": "testuser", "password": "testpassword"})
    assert login.status_code == 200
    assert login.json()["token"] != user["token"]


def test_concurrent_signup_loser_gets_conflict(client, app, monkeypatch):
    """The database constraint decides when two signups race past the lookup."""
    assert client.post("/api/user", json={"username": "testuser", "password": "testpassword"}).status_code == 201

    monkeypatch.setattr(app.state.auth_service, "username_taken", lambda username, db: False)
    resp = client.post("/api/user", json={"username": "testuser", "password": "testpassword"})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Username already exists"}

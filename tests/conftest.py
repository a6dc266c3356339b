"""Shared fixtures: one app per test over its own SQLite file."""

import pytest
from fastapi.responses import RedirectResponse
from fastapi.testclient import TestClient

from fancyblog.auth.oauth import OAuthProfile, OAuthProvider
from fancyblog.config import AuthSettings, Settings
from fancyblog.main import create_app

ADMIN_CODE = "open-sesame"


class FakeProvider(OAuthProvider):
    """Provider stand-in: the callback query string plays the provider profile."""

    def __init__(self, name: str):
        super().__init__(client=None)
        self.name = name

    async def authorize_redirect(self, request, redirect_uri: str):
        return RedirectResponse(f"https://{self.name}.test/authorize?redirect_uri={redirect_uri}")

    async def fetch_profile(self, request) -> OAuthProfile:
        return OAuthProfile(
            subject=request.query_params["subject"],
            display_name=request.query_params.get("name"),
        )


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def settings(tmp_path):
    return Settings(
        auth=AuthSettings(
            jwt_secret="test-secret",
            jwt_refresh_secret="test-refresh-secret",
            bcrypt_rounds=4,
            admin_code=ADMIN_CODE,
        ),
        environment="test",
        database_url=f"sqlite:///{tmp_path / 'fancyblog.db'}",
        rate_limit_enabled=False,
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    app.state.oauth_providers = {
        "google": FakeProvider("google"),
        "github": FakeProvider("github"),
    }
    return app


@pytest.fixture
def client(app):
    # Entering the client runs the lifespan, which creates the tables
    with TestClient(app) as c:
        yield c


@pytest.fixture
def signup(client):
    """Create an account and return the signup response body."""
    def _signup(username="testuser", password="testpassword"):
        resp = client.post("/api/user", json={"username": username, "password": password})
        assert resp.status_code == 201, resp.text
        return resp.json()
    return _signup


@pytest.fixture
def admin(client, signup):
    """An admin account; the returned token reflects the admin flag."""
    signup("admin_user", "adminpassword")
    login = client.post("/api/user/login", json={"username": "admin_user", "password": "adminpassword"})
    resp = client.put("/api/user", json={"adminCode": ADMIN_CODE}, headers=bearer(login.json()["token"]))
    assert resp.status_code == 200, resp.text
    return resp.json()


@pytest.fixture
def reader(signup):
    """A regular signed-up user."""
    return signup("reader_one", "readerpassword")

import datetime

import jwt
import pytest
from fastapi.testclient import TestClient

from auth_service.app.main import app
from auth_service.app.routes import auth


@pytest.fixture
def client(users_table, monkeypatch):
    monkeypatch.setattr(auth, "get_users_table", lambda: users_table)
    return TestClient(app)


def create_token(user_id, expires_in=datetime.timedelta(hours=2)):
    """Tokens are issued by the login flow outside these services; sign one the same way."""
    expiration = datetime.datetime.now(datetime.timezone.utc) + expires_in
    return jwt.encode({"sub": user_id, "exp": expiration}, auth.JWT_SECRET_KEY, algorithm=auth.JWT_ALGORITHM)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def test_verify_returns_identity(client):
    resp = client.get("/auth/verify", headers=bearer(create_token("u1")))

    assert resp.status_code == 200
    assert resp.json() == {"user_id": "u1", "name": "Asha Rao", "email": "asha@campus.edu"}


def test_missing_header(client):
    assert client.get("/auth/verify").status_code == 401


def test_non_bearer_header(client):
    resp = client.get("/auth/verify", headers={"Authorization": create_token("u1")})
    assert resp.status_code == 401


def test_expired_token(client):
    expired = create_token("u1", expires_in=datetime.timedelta(minutes=-1))
    assert client.get("/auth/verify", headers=bearer(expired)).status_code == 401


def test_tampered_token(client):
    forged = jwt.encode({"sub": "u1"}, "another-secret-key-that-is-long-enough", algorithm="HS256")
    assert client.get("/auth/verify", headers=bearer(forged)).status_code == 401


def test_unknown_user(client):
    resp = client.get("/auth/verify", headers=bearer(create_token("ghost")))
    assert resp.status_code == 401
    assert resp.json()["detail"] == "User not found"


def test_decode_roundtrip():
    assert auth.decode_jwt_token(create_token("u2")) == "u2"
    assert auth.decode_jwt_token("not-a-token") is None


def test_health(client):
    assert client.get("/").json() == {"message": "Auth Service Running"}
    assert client.get("/ping").json() == {"message": "pong"}

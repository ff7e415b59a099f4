import pytest
from fastapi import HTTPException, Request
from fastapi.testclient import TestClient

from message_service.app.database import create_tables
from message_service.app.dependencies import get_current_user, get_store, get_directory, get_publisher
from message_service.app.main import app
from message_service.app.store import ChatStore

PROFILES = {
    "u1": {"id": "u1", "name": "Asha Rao", "avatar": None, "stream": "CSE"},
    "u2": {"id": "u2", "name": "Ben Thomas", "avatar": "https://img.example/ben.png", "stream": "ECE"},
    "u3": {"id": "u3", "name": "Chitra", "avatar": None, "stream": None},
}


class FakeDirectory:
    def __init__(self, profiles):
        self.profiles = profiles

    async def get_profile(self, user_id, token):
        return self.profiles.get(user_id)

    async def get_profiles(self, user_ids, token):
        return {uid: self.profiles.get(uid, {"id": uid}) for uid in user_ids}


class FakePublisher:
    def __init__(self):
        self.published = []

    async def publish(self, message, sender_profile=None):
        self.published.append((message, sender_profile))
        return True


# Tests authenticate as "Bearer <user_id>"
async def fake_current_user(request: Request):
    token = request.headers.get("Authorization", "")
    if not token.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Token not found")
    return {"user_id": token.split("Bearer ")[1], "token": token}


@pytest.fixture
def store(dynamodb):
    create_tables(dynamodb)
    return ChatStore(dynamodb)


@pytest.fixture
def publisher():
    return FakePublisher()


@pytest.fixture
def client(store, publisher):
    app.dependency_overrides[get_current_user] = fake_current_user
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_directory] = lambda: FakeDirectory(PROFILES)
    app.dependency_overrides[get_publisher] = lambda: publisher
    yield TestClient(app)
    app.dependency_overrides.clear()

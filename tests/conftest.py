import os
import tempfile

# Must be set before the app (and its settings) are imported
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="vidtube-uploads-"))

import mongomock
import pytest
from fastapi.testclient import TestClient

from database import ensure_indexes, get_db
from main import app
from storage import MediaStorage, get_storage


@pytest.fixture
def mock_db():
    database = mongomock.MongoClient()["vidtube_test"]
    ensure_indexes(database)
    return database


@pytest.fixture
def storage(tmp_path):
    return MediaStorage(str(tmp_path / "media"))


@pytest.fixture
def client(mock_db, storage):
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


def register(client, username, email=None, password="secret123", fullname=None, cover=False):
    files = {"avatar": ("avatar.png", b"\x89PNG avatar", "image/png")}
    if cover:
        files["coverImage"] = ("cover.png", b"\x89PNG cover", "image/png")
    data = {
        "fullname": fullname or username.title(),
        "username": username,
        "email": email or f"{username}@vidtube.io",
        "password": password,
    }
    return client.post("/api/v1/users/register", data=data, files=files)


def login(client, username, password="secret123"):
    resp = client.post("/api/v1/users/login", json={"username": username, "password": password})
    assert resp.status_code == 200, resp.text
    # Tests pass tokens explicitly
    client.cookies.clear()
    return resp.json()["data"]


def auth(tokens):
    return {"Authorization": f"Bearer {tokens['accessToken']}"}


def signup(client, username):
    """Register and log in; returns (user, headers)."""
    assert register(client, username).status_code == 201
    data = login(client, username)
    return data["user"], auth(data)


def publish(client, headers, title="My video", description="About it"):
    resp = client.post(
        "/api/v1/videos",
        data={"title": title, "description": description, "duration": "12.5"},
        files={
            "videoFile": ("clip.mp4", b"fake mp4 bytes", "video/mp4"),
            "thumbnail": ("thumb.jpg", b"fake jpg bytes", "image/jpeg"),
        },
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]

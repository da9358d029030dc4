import os

from pymongo.errors import DuplicateKeyError

import main
from conftest import auth, login, register, signup


def test_register_creates_user(client, mock_db):
    resp = register(client, "Alice", cover=True)
    assert resp.status_code == 201
    body = resp.json()
    assert body["statusCode"] == 201
    user = body["data"]
    assert user["username"] == "alice"
    assert user["avatar"]["url"].startswith("/static/images/")
    assert user["coverImage"]["publicId"]
    assert "password" not in user
    assert "refreshToken" not in user
    assert mock_db["user"].find_one({"username": "alice"})["password"] != "secret123"


def test_register_rejects_blank_fields(client):
    resp = client.post(
        "/api/v1/users/register",
        data={"fullname": "   ", "username": "bob", "email": "bob@vidtube.io", "password": "pw"},
        files={"avatar": ("a.png", b"png", "image/png")},
    )
    assert resp.status_code == 400
    assert resp.json() == {"statusCode": 400, "message": "All fields are required", "success": False}


def test_register_requires_avatar(client):
    resp = client.post(
        "/api/v1/users/register",
        data={"fullname": "Bob", "username": "bob", "email": "bob@vidtube.io", "password": "pw"},
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "Avatar is required"


def test_register_rejects_invalid_email(client, mock_db):
    resp = register(client, "bob", email="not-an-email")
    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert mock_db["user"].count_documents({}) == 0


def test_register_duplicate_username_or_email(client):
    assert register(client, "alice").status_code == 201
    assert register(client, "ALICE", email="other@vidtube.io").status_code == 409
    assert register(client, "alice2", email="alice@vidtube.io").status_code == 409


def test_login_returns_tokens_and_sets_cookies(client):
    register(client, "alice")
    resp = client.post("/api/v1/users/login", json={"email": "alice@vidtube.io", "password": "secret123"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["user"]["username"] == "alice"
    assert "password" not in data["user"]
    assert data["accessToken"] and data["refreshToken"]
    cookies = " ".join(resp.headers.get_list("set-cookie"))
    assert "accessToken=" in cookies
    assert "refreshToken=" in cookies
    assert "HttpOnly" in cookies


def test_login_rejects_bad_credentials(client):
    register(client, "alice")
    bad = client.post("/api/v1/users/login", json={"username": "alice", "password": "nope"})
    assert bad.status_code == 401
    unknown = client.post("/api/v1/users/login", json={"username": "ghost", "password": "nope"})
    assert unknown.status_code == 401
    missing = client.post("/api/v1/users/login", json={"password": "nope"})
    assert missing.status_code == 400


def test_protected_route_requires_token(client):
    resp = client.get("/api/v1/users/current-user")
    assert resp.status_code == 401
    assert resp.json()["success"] is False
    bad = client.get("/api/v1/users/current-user", headers={"Authorization": "Bearer junk"})
    assert bad.status_code == 401


def test_current_user(client):
    user, headers = signup(client, "alice")
    resp = client.get("/api/v1/users/current-user", headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == user["id"]


def test_refresh_rotates_and_rejects_old_token(client):
    register(client, "alice")
    tokens = login(client, "alice")

    resp = client.post("/api/v1/users/refreshtoken", json={"refreshToken": tokens["refreshToken"]})
    assert resp.status_code == 200
    client.cookies.clear()
    rotated = resp.json()["data"]
    assert rotated["refreshToken"] != tokens["refreshToken"]

    replay = client.post("/api/v1/users/refreshtoken", json={"refreshToken": tokens["refreshToken"]})
    assert replay.status_code == 401

    again = client.post("/api/v1/users/refreshtoken", json={"refreshToken": rotated["refreshToken"]})
    assert again.status_code == 200


def test_refresh_without_token(client):
    assert client.post("/api/v1/users/refreshtoken").status_code == 401


def test_logout_revokes_refresh_token(client, mock_db):
    register(client, "alice")
    tokens = login(client, "alice")
    resp = client.post("/api/v1/users/logout", headers=auth(tokens))
    assert resp.status_code == 200
    assert "refreshToken" not in mock_db["user"].find_one({"username": "alice"})

    replay = client.post("/api/v1/users/refreshtoken", json={"refreshToken": tokens["refreshToken"]})
    assert replay.status_code == 401


def test_login_again_invalidates_other_session(client):
    register(client, "alice")
    first = login(client, "alice")
    login(client, "alice")
    resp = client.post("/api/v1/users/refreshtoken", json={"refreshToken": first["refreshToken"]})
    assert resp.status_code == 401


def test_change_password(client):
    _, headers = signup(client, "alice")
    wrong = client.post(
        "/api/v1/users/change-password",
        json={"oldPassword": "nope", "newPassword": "newsecret"},
        headers=headers,
    )
    assert wrong.status_code == 401

    ok = client.post(
        "/api/v1/users/change-password",
        json={"oldPassword": "secret123", "newPassword": "newsecret"},
        headers=headers,
    )
    assert ok.status_code == 200
    assert login(client, "alice", "newsecret")["accessToken"]


def test_update_account(client):
    _, headers = signup(client, "alice")
    register(client, "bob")

    empty = client.patch("/api/v1/users/update-account", json={"fullname": "  "}, headers=headers)
    assert empty.status_code == 400

    taken = client.patch("/api/v1/users/update-account", json={"email": "bob@vidtube.io"}, headers=headers)
    assert taken.status_code == 409

    resp = client.patch(
        "/api/v1/users/update-account",
        json={"fullname": "Alice Liddell", "email": "ALICE@wonder.land"},
        headers=headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["fullname"] == "Alice Liddell"
    assert data["email"] == "alice@wonder.land"


def test_update_avatar_replaces_stored_file(client, storage, mock_db):
    _, headers = signup(client, "alice")
    old_public_id = mock_db["user"].find_one({"username": "alice"})["avatar"]["publicId"]

    resp = client.patch(
        "/api/v1/users/avatar",
        files={"avatar": ("new.png", b"new avatar", "image/png")},
        headers=headers,
    )
    assert resp.status_code == 200
    new_public_id = resp.json()["data"]["avatar"]["publicId"]
    assert new_public_id != old_public_id
    assert not storage.delete(old_public_id)  # already removed
    assert storage.delete(new_public_id)


def test_channel_profile_unknown_user(client):
    _, headers = signup(client, "alice")
    assert client.get("/api/v1/users/c/nobody", headers=headers).status_code == 404


def test_register_duplicate_race_removes_uploads(client, storage, monkeypatch):
    def already_taken(*args, **kwargs):
        raise DuplicateKeyError("E11000 duplicate key error")

    monkeypatch.setattr(main, "create_document", already_taken)
    resp = register(client, "alice", cover=True)
    assert resp.status_code == 409
    assert os.listdir(os.path.join(storage.root, "images")) == []

from datetime import timedelta

import mongomock
import pytest
from bson import ObjectId

from auth import (
    _encode,
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    issue_tokens,
    revoke_refresh_token,
    rotate_refresh_token,
    verify_password,
)
from config import get_settings
from responses import ApiError

settings = get_settings()


@pytest.fixture
def user_db():
    database = mongomock.MongoClient()["auth_test"]
    user = {"username": "alice", "email": "alice@vidtube.io", "fullname": "Alice"}
    user["_id"] = database["user"].insert_one(user).inserted_id
    return database, user


def test_password_hashing():
    hashed = hash_password("hunter22")
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("wrong", hashed)
    assert not verify_password("hunter22", "")


def test_access_token_carries_user_id():
    uid = ObjectId()
    token = create_access_token({"_id": uid, "username": "alice"})
    assert decode_token(token, settings.ACCESS_TOKEN_SECRET, "access") == uid


def test_access_token_is_not_a_refresh_token():
    token = create_access_token({"_id": ObjectId()})
    with pytest.raises(ApiError) as exc:
        decode_token(token, settings.REFRESH_TOKEN_SECRET, "refresh")
    assert exc.value.status_code == 401


def test_token_type_is_checked_even_with_matching_secret():
    token = _encode({"sub": str(ObjectId()), "type": "access"}, settings.REFRESH_TOKEN_SECRET, timedelta(minutes=5))
    with pytest.raises(ApiError):
        decode_token(token, settings.REFRESH_TOKEN_SECRET, "refresh")


def test_expired_token_rejected():
    token = _encode({"sub": str(ObjectId()), "type": "access"}, settings.ACCESS_TOKEN_SECRET, timedelta(minutes=-1))
    with pytest.raises(ApiError) as exc:
        decode_token(token, settings.ACCESS_TOKEN_SECRET, "access")
    assert exc.value.status_code == 401
    assert "expired" in exc.value.message


def test_garbage_token_rejected():
    with pytest.raises(ApiError):
        decode_token("not.a.jwt", settings.ACCESS_TOKEN_SECRET, "access")


def test_refresh_tokens_are_unique():
    user = {"_id": ObjectId()}
    assert create_refresh_token(user) != create_refresh_token(user)


def test_issue_tokens_persists_single_refresh_token(user_db):
    database, user = user_db
    first = issue_tokens(database, user)
    second = issue_tokens(database, user)
    stored = database["user"].find_one({"_id": user["_id"]})
    assert stored["refreshToken"] == second["refreshToken"]
    assert stored["refreshToken"] != first["refreshToken"]


def test_rotation_invalidates_previous_refresh_token(user_db):
    database, user = user_db
    tokens = issue_tokens(database, user)
    rotated = rotate_refresh_token(database, tokens["refreshToken"])
    assert rotated["refreshToken"] != tokens["refreshToken"]

    with pytest.raises(ApiError) as exc:
        rotate_refresh_token(database, tokens["refreshToken"])
    assert exc.value.status_code == 401

    # The newest token is still good
    assert rotate_refresh_token(database, rotated["refreshToken"])


def test_revoked_refresh_token_rejected(user_db):
    database, user = user_db
    tokens = issue_tokens(database, user)
    revoke_refresh_token(database, user["_id"])
    assert "refreshToken" not in database["user"].find_one({"_id": user["_id"]})
    with pytest.raises(ApiError):
        rotate_refresh_token(database, tokens["refreshToken"])


def test_missing_refresh_token_rejected(user_db):
    database, _ = user_db
    with pytest.raises(ApiError) as exc:
        rotate_refresh_token(database, None)
    assert exc.value.status_code == 401


def test_refresh_token_for_unknown_user_rejected(user_db):
    database, _ = user_db
    token = create_refresh_token({"_id": ObjectId()})
    with pytest.raises(ApiError):
        rotate_refresh_token(database, token)

"""
Access/refresh token lifecycle.

A user is Authenticated while the refresh token stored on their record matches
the one they present. Only one refresh token is active per user: issuing a
new pair (login or refresh) overwrites it, which signs out every other
session; logout removes it.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from bson import ObjectId
from fastapi import Cookie, Depends, Header
from fastapi.responses import Response
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from pymongo.database import Database

from config import get_settings
from database import get_db
from logger import logger
from responses import ApiError

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

ACCESS_COOKIE = "accessToken"
REFRESH_COOKIE = "refreshToken"

# Fields never returned to clients
PRIVATE_USER_FIELDS = {"password": 0, "refreshToken": 0}


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(password, hashed)


def _encode(claims: dict, secret: str, expires_delta: timedelta) -> str:
    settings = get_settings()
    to_encode = claims.copy()
    to_encode.update({"exp": datetime.utcnow() + expires_delta})
    return jwt.encode(to_encode, secret, algorithm=settings.JWT_ALGORITHM)


def create_access_token(user: dict) -> str:
    settings = get_settings()
    return _encode(
        {
            "sub": str(user["_id"]),
            "email": user.get("email"),
            "username": user.get("username"),
            "fullname": user.get("fullname"),
            "type": "access",
        },
        settings.ACCESS_TOKEN_SECRET,
        timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
    )


def create_refresh_token(user: dict) -> str:
    settings = get_settings()
    return _encode(
        {"sub": str(user["_id"]), "type": "refresh", "jti": uuid.uuid4().hex},
        settings.REFRESH_TOKEN_SECRET,
        timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def decode_token(token: str, secret: str, expected_type: str) -> ObjectId:
    """Verify signature, expiry and token type; return the user id it was issued to."""
    settings = get_settings()
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise ApiError(401, f"{expected_type.capitalize()} token expired")
    except JWTError:
        raise ApiError(401, f"Invalid {expected_type} token")
    sub = payload.get("sub")
    if payload.get("type") != expected_type or not sub or not ObjectId.is_valid(sub):
        raise ApiError(401, f"Invalid {expected_type} token")
    return ObjectId(sub)


def issue_tokens(db: Database, user: dict) -> dict:
    """Mint a new pair and make its refresh token the user's only active one."""
    access_token = create_access_token(user)
    refresh_token = create_refresh_token(user)
    db["user"].update_one(
        {"_id": user["_id"]},
        {"$set": {"refreshToken": refresh_token, "updatedAt": datetime.utcnow()}},
    )
    return {"accessToken": access_token, "refreshToken": refresh_token}


def rotate_refresh_token(db: Database, incoming: Optional[str]) -> dict:
    if not incoming:
        raise ApiError(401, "Unauthorized request: refresh token missing")
    settings = get_settings()
    user_id = decode_token(incoming, settings.REFRESH_TOKEN_SECRET, "refresh")
    user = db["user"].find_one({"_id": user_id})
    if not user:
        raise ApiError(401, "Invalid refresh token")
    if incoming != user.get("refreshToken"):
        logger.warning(f"Rejected stale or revoked refresh token for user {user_id}")
        raise ApiError(401, "Refresh token is expired or used")
    tokens = issue_tokens(db, user)
    logger.info(f"Rotated refresh token for user {user_id}")
    return tokens


def revoke_refresh_token(db: Database, user_id: ObjectId) -> None:
    db["user"].update_one(
        {"_id": user_id},
        {"$unset": {"refreshToken": ""}, "$set": {"updatedAt": datetime.utcnow()}},
    )


def set_auth_cookies(response: Response, tokens: dict) -> None:
    settings = get_settings()
    options = {"httponly": True, "secure": settings.COOKIE_SECURE, "samesite": "lax"}
    response.set_cookie(
        ACCESS_COOKIE, tokens["accessToken"],
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60, **options
    )
    response.set_cookie(
        REFRESH_COOKIE, tokens["refreshToken"],
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600, **options
    )


def clear_auth_cookies(response: Response) -> None:
    settings = get_settings()
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, secure=settings.COOKIE_SECURE, samesite="lax")


# -------------------- Dependencies --------------------

def _extract_access_token(authorization: Optional[str], cookie_token: Optional[str]) -> Optional[str]:
    if cookie_token:
        return cookie_token
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def _user_from_token(db: Database, token: str) -> dict:
    settings = get_settings()
    user_id = decode_token(token, settings.ACCESS_TOKEN_SECRET, "access")
    user = db["user"].find_one({"_id": user_id}, PRIVATE_USER_FIELDS)
    if not user:
        raise ApiError(401, "Invalid access token")
    return user


def get_current_user(
    authorization: Optional[str] = Header(default=None),
    access_token: Optional[str] = Cookie(default=None, alias=ACCESS_COOKIE),
    db: Database = Depends(get_db),
) -> dict:
    token = _extract_access_token(authorization, access_token)
    if not token:
        raise ApiError(401, "Unauthorized request")
    return _user_from_token(db, token)


def get_optional_user(
    authorization: Optional[str] = Header(default=None),
    access_token: Optional[str] = Cookie(default=None, alias=ACCESS_COOKIE),
    db: Database = Depends(get_db),
) -> Optional[dict]:
    """Like get_current_user, but anonymous callers get None instead of a 401.

    A stale or malformed token also reads as anonymous.
    """
    token = _extract_access_token(authorization, access_token)
    if not token:
        return None
    try:
        return _user_from_token(db, token)
    except ApiError:
        return None

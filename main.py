import os
import re
from datetime import datetime
from typing import List, Optional

from bson import ObjectId
from fastapi import APIRouter, Body, Cookie, Depends, FastAPI, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import EmailStr, TypeAdapter, ValidationError
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import pipelines
from auth import (
    PRIVATE_USER_FIELDS,
    REFRESH_COOKIE,
    clear_auth_cookies,
    get_current_user,
    get_optional_user,
    hash_password,
    issue_tokens,
    revoke_refresh_token,
    rotate_refresh_token,
    set_auth_cookies,
    verify_password,
)
from config import get_settings
from database import create_document, db as default_db, ensure_indexes, exists, get_db, object_id, ping
from logger import logger
from pagination import DEFAULT_LIMIT, paginate
from responses import ApiError, api_response, register_exception_handlers
from schemas import (
    ChangePasswordRequest,
    Comment,
    ContentRequest,
    Like,
    LoginRequest,
    Playlist,
    PlaylistRequest,
    RefreshRequest,
    Subscription,
    Tweet,
    UpdateAccountRequest,
    User,
    Video,
)
from storage import MediaStorage, get_storage

settings = get_settings()

app = FastAPI(title="VidTube API", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.CORS_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Uploaded media is served back from the local store
os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
app.mount("/static", StaticFiles(directory=settings.UPLOAD_DIR), name="static")

email_adapter = TypeAdapter(EmailStr)


@app.on_event("startup")
def startup_event():
    if not ping(default_db):
        logger.error(f"Could not connect to MongoDB at {settings.MONGODB_URI}, shutting down")
        raise SystemExit(1)
    ensure_indexes(default_db)
    logger.info(f"Connected to MongoDB database {settings.DATABASE_NAME}")


# -------------------- Helpers --------------------

def require_text(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise ApiError(400, message)
    return value.strip()


def get_or_404(db: Database, collection_name: str, doc_id: str, label: str) -> dict:
    doc = db[collection_name].find_one({"_id": object_id(doc_id, f"{label} id")})
    if not doc:
        raise ApiError(404, f"{label.capitalize()} not found")
    return doc


def get_owned(db: Database, collection_name: str, doc_id: str, label: str, user: dict) -> dict:
    doc = get_or_404(db, collection_name, doc_id, label)
    if doc.get("owner") != user["_id"]:
        raise ApiError(403, f"You are not allowed to modify this {label}")
    return doc


def attach_owners(db: Database, docs: List[dict], field: str = "owner") -> List[dict]:
    """Replace each owner id with the owner's public profile (null if the user is gone)."""
    ids = list({doc[field] for doc in docs if doc.get(field)})
    owners = {u["_id"]: u for u in db["user"].find({"_id": {"$in": ids}}, pipelines.PUBLIC_PROFILE)}
    for doc in docs:
        doc[field] = owners.get(doc.get(field))
    return docs


def toggle(db: Database, collection_name: str, key: dict):
    """Delete the relation if present, otherwise create it. Returns (is_on, record)."""
    removed = db[collection_name].find_one_and_delete(key)
    if removed:
        return False, removed
    try:
        return True, create_document(db, collection_name, key)
    except DuplicateKeyError:
        # A concurrent toggle created it first; it may already be gone again
        record = db[collection_name].find_one(key)
        return record is not None, record


def public_user(db: Database, user_id: ObjectId) -> Optional[dict]:
    return db["user"].find_one({"_id": user_id}, PRIVATE_USER_FIELDS)


def touch(update: dict) -> dict:
    return {**update, "updatedAt": datetime.utcnow()}


def discard_media(storage: MediaStorage, *media: Optional[dict]) -> None:
    """Remove uploads whose document was never written."""
    for item in media:
        if item:
            storage.delete(item["publicId"])


# -------------------- Basic Routes --------------------

@app.get("/")
def read_root():
    return {"message": "VidTube backend is running"}


healthcheck_router = APIRouter(prefix="/api/v1/healthcheck", tags=["healthcheck"])


@healthcheck_router.get("")
def healthcheck(db: Database = Depends(get_db)):
    return api_response({"status": "OK", "database": ping(db)}, "Service is healthy")


# -------------------- Users & Auth --------------------

users_router = APIRouter(prefix="/api/v1/users", tags=["users"])


@users_router.post("/register")
async def register(
    fullname: Optional[str] = Form(None),
    username: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    password: Optional[str] = Form(None),
    avatar: Optional[UploadFile] = File(None),
    coverImage: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
):
    if any(value is None or not value.strip() for value in (fullname, username, email, password)):
        raise ApiError(400, "All fields are required")
    username = username.strip().lower()
    email = email.strip().lower()
    if db["user"].find_one({"$or": [{"username": username}, {"email": email}]}):
        raise ApiError(409, "User with same email or username already exists")
    if avatar is None or not avatar.filename:
        raise ApiError(400, "Avatar is required")

    avatar_media = await storage.upload(avatar, "images")
    cover_media = await storage.upload(coverImage, "images")
    try:
        user = User(
            username=username,
            email=email,
            fullname=fullname.strip(),
            password=hash_password(password),
            avatar=avatar_media,
            coverImage=cover_media,
        )
    except ValidationError:
        discard_media(storage, avatar_media, cover_media)
        raise

    try:
        created = create_document(db, "user", user)
    except DuplicateKeyError:
        discard_media(storage, avatar_media, cover_media)
        raise ApiError(409, "User with same email or username already exists")
    logger.info(f"Registered user {username} ({created['_id']})")
    return api_response(public_user(db, created["_id"]), "User registered successfully", 201)


@users_router.post("/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    conditions = []
    if payload.username and payload.username.strip():
        conditions.append({"username": payload.username.strip().lower()})
    if payload.email and payload.email.strip():
        conditions.append({"email": payload.email.strip().lower()})
    if not conditions:
        raise ApiError(400, "Username or email is required")

    user = db["user"].find_one({"$or": conditions})
    if not user or not verify_password(payload.password, user.get("password", "")):
        raise ApiError(401, "Invalid user credentials")

    tokens = issue_tokens(db, user)
    logger.info(f"User {user['_id']} logged in")
    response = api_response(
        {"user": public_user(db, user["_id"]), **tokens},
        "User logged in successfully",
    )
    set_auth_cookies(response, tokens)
    return response


@users_router.post("/logout")
def logout(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    revoke_refresh_token(db, user["_id"])
    logger.info(f"User {user['_id']} logged out")
    response = api_response({}, "User logged out")
    clear_auth_cookies(response)
    return response


@users_router.post("/refreshtoken")
def refresh_access_token(
    payload: Optional[RefreshRequest] = Body(None),
    refresh_cookie: Optional[str] = Cookie(default=None, alias=REFRESH_COOKIE),
    db: Database = Depends(get_db),
):
    incoming = refresh_cookie or (payload.refreshToken if payload else None)
    tokens = rotate_refresh_token(db, incoming)
    response = api_response(tokens, "Access token refreshed")
    set_auth_cookies(response, tokens)
    return response


@users_router.post("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    stored = db["user"].find_one({"_id": user["_id"]}, {"password": 1})
    if not verify_password(payload.oldPassword, stored.get("password", "")):
        raise ApiError(401, "Invalid old password")
    new_password = require_text(payload.newPassword, "New password is required")
    # Targeted $set: only the password field is written
    db["user"].update_one({"_id": user["_id"]}, {"$set": touch({"password": hash_password(new_password)})})
    return api_response({}, "Password changed successfully")


@users_router.get("/current-user")
def current_user(user: dict = Depends(get_current_user)):
    return api_response(user, "Current user fetched successfully")


@users_router.patch("/update-account")
def update_account(
    payload: UpdateAccountRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    update = {}
    if payload.fullname is not None and payload.fullname.strip():
        update["fullname"] = payload.fullname.strip()
    if payload.email is not None and payload.email.strip():
        email = email_adapter.validate_python(payload.email.strip().lower())
        if db["user"].find_one({"email": email, "_id": {"$ne": user["_id"]}}):
            raise ApiError(409, "Email is already in use")
        update["email"] = email
    if not update:
        raise ApiError(400, "At least one field is required to update account")

    updated = db["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": touch(update)},
        projection=PRIVATE_USER_FIELDS,
        return_document=ReturnDocument.AFTER,
    )
    return api_response(updated, "Account details updated successfully")


async def _replace_user_image(db: Database, storage: MediaStorage, user: dict,
                              field: str, file: Optional[UploadFile]) -> dict:
    if file is None or not file.filename:
        raise ApiError(400, f"{field} file is missing")
    media = await storage.upload(file, "images")
    old = db["user"].find_one({"_id": user["_id"]}, {field: 1}).get(field)
    updated = db["user"].find_one_and_update(
        {"_id": user["_id"]},
        {"$set": touch({field: media})},
        projection=PRIVATE_USER_FIELDS,
        return_document=ReturnDocument.AFTER,
    )
    if old:
        storage.delete(old.get("publicId"))
    return updated


@users_router.patch("/avatar")
async def update_avatar(
    avatar: Optional[UploadFile] = File(None),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
):
    updated = await _replace_user_image(db, storage, user, "avatar", avatar)
    return api_response(updated, "Avatar updated successfully")


@users_router.patch("/cover-image")
async def update_cover_image(
    coverImage: Optional[UploadFile] = File(None),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
):
    updated = await _replace_user_image(db, storage, user, "coverImage", coverImage)
    return api_response(updated, "Cover image updated successfully")


@users_router.get("/c/{username}")
def channel_profile(
    username: str,
    viewer: Optional[dict] = Depends(get_optional_user),
    db: Database = Depends(get_db),
):
    username = require_text(username, "Username is missing")
    viewer_id = viewer["_id"] if viewer else None
    channel = list(db["user"].aggregate(pipelines.channel_profile_pipeline(username, viewer_id)))
    if not channel:
        raise ApiError(404, "Channel does not exist")
    return api_response(channel[0], "User channel fetched successfully")


@users_router.get("/history")
def watch_history(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    result = list(db["user"].aggregate(pipelines.watch_history_pipeline(user["_id"])))
    history = pipelines.order_watch_history(result[0] if result else None)
    attach_owners(db, history)
    return api_response(history, "Watch history fetched successfully")


# -------------------- Videos --------------------

videos_router = APIRouter(prefix="/api/v1/videos", tags=["videos"])


@videos_router.get("")
def list_videos(
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    lastId: Optional[str] = None,
    query: Optional[str] = None,
    userId: Optional[str] = None,
    sortType: str = Query("asc", pattern="^(asc|desc)$"),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    conditions = [{"$or": [{"isPublished": True}, {"owner": user["_id"]}]}]
    if userId:
        conditions.append({"owner": object_id(userId, "user id")})
    if query and query.strip():
        pattern = {"$regex": re.escape(query.strip()), "$options": "i"}
        conditions.append({"$or": [{"title": pattern}, {"description": pattern}]})

    videos, cursor = paginate(
        db["video"], {"$and": conditions}, limit, lastId, descending=sortType == "desc"
    )
    attach_owners(db, videos)
    return api_response({"videos": videos, "nextCursor": cursor}, "Videos fetched successfully")


@videos_router.post("")
async def publish_video(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    duration: float = Form(0),
    videoFile: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
):
    title = require_text(title, "Title is required")
    description = require_text(description, "Description is required")
    if videoFile is None or not videoFile.filename:
        raise ApiError(400, "Video file is required")
    if thumbnail is None or not thumbnail.filename:
        raise ApiError(400, "Thumbnail is required")

    video_media = await storage.upload(videoFile, "videos")
    thumbnail_media = await storage.upload(thumbnail, "images")
    try:
        video = Video(
            videoFile=video_media,
            thumbnail=thumbnail_media,
            title=title,
            description=description,
            duration=duration,
            owner=user["_id"],
        )
    except ValidationError:
        discard_media(storage, video_media, thumbnail_media)
        raise
    created = create_document(db, "video", video)
    logger.info(f"User {user['_id']} published video {created['_id']}")
    return api_response(created, "Video uploaded successfully", 201)


@videos_router.get("/{videoId}")
def get_video(videoId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    video = get_or_404(db, "video", videoId, "video")
    if not video.get("isPublished") and video.get("owner") != user["_id"]:
        raise ApiError(404, "Video not found")

    video = db["video"].find_one_and_update(
        {"_id": video["_id"]}, {"$inc": {"views": 1}}, return_document=ReturnDocument.AFTER
    )
    # Most recent view goes last; a re-watch moves the video to the end
    db["user"].update_one({"_id": user["_id"]}, {"$pull": {"watchHistory": video["_id"]}})
    db["user"].update_one({"_id": user["_id"]}, {"$push": {"watchHistory": video["_id"]}})

    like_key = {"kind": "video", "target": video["_id"]}
    video["likesCount"] = db["like"].count_documents(like_key)
    video["isLiked"] = exists(db, "like", {**like_key, "likedBy": user["_id"]})
    attach_owners(db, [video])
    return api_response(video, "Video fetched successfully")


@videos_router.patch("/{videoId}")
async def update_video(
    videoId: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
):
    video = get_owned(db, "video", videoId, "video", user)
    update = {}
    if title is not None and title.strip():
        update["title"] = title.strip()
    if description is not None and description.strip():
        update["description"] = description.strip()
    has_thumbnail = thumbnail is not None and bool(thumbnail.filename)
    if not update and not has_thumbnail:
        raise ApiError(400, "No fields provided to update")

    if has_thumbnail:
        update["thumbnail"] = await storage.upload(thumbnail, "images")
    updated = db["video"].find_one_and_update(
        {"_id": video["_id"]}, {"$set": touch(update)}, return_document=ReturnDocument.AFTER
    )
    if has_thumbnail:
        storage.delete(video.get("thumbnail", {}).get("publicId"))
    return api_response(updated, "Video updated successfully")


@videos_router.delete("/{videoId}")
def delete_video(
    videoId: str,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
):
    video = get_owned(db, "video", videoId, "video", user)
    db["video"].delete_one({"_id": video["_id"]})

    comment_ids = [c["_id"] for c in db["comment"].find({"video": video["_id"]}, {"_id": 1})]
    db["like"].delete_many({"kind": "comment", "target": {"$in": comment_ids}})
    db["like"].delete_many({"kind": "video", "target": video["_id"]})
    db["comment"].delete_many({"video": video["_id"]})
    db["playlist"].update_many({"videos": video["_id"]}, {"$pull": {"videos": video["_id"]}})
    db["user"].update_many({"watchHistory": video["_id"]}, {"$pull": {"watchHistory": video["_id"]}})

    # The record is already gone; a media failure here is only logged
    for media in (video.get("videoFile"), video.get("thumbnail")):
        if media:
            storage.delete(media.get("publicId"))
    logger.info(f"User {user['_id']} deleted video {video['_id']}")
    return api_response(video, "Video deleted successfully")


@videos_router.patch("/toggle/publish/{videoId}")
def toggle_publish_status(videoId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    video = get_owned(db, "video", videoId, "video", user)
    updated = db["video"].find_one_and_update(
        {"_id": video["_id"]},
        {"$set": touch({"isPublished": not video.get("isPublished", True)})},
        return_document=ReturnDocument.AFTER,
    )
    return api_response(updated, "Publish status toggled successfully")


# -------------------- Comments --------------------

comments_router = APIRouter(prefix="/api/v1/comments", tags=["comments"])


@comments_router.get("/{videoId}")
def list_comments(
    videoId: str,
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    lastId: Optional[str] = None,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    video = get_or_404(db, "video", videoId, "video")
    comments, cursor = paginate(
        db["comment"], {"video": video["_id"]}, limit, lastId,
        projection={"content": 1, "video": 1, "owner": 1, "createdAt": 1},
    )
    attach_owners(db, comments)
    return api_response({"comments": comments, "nextCursor": cursor}, "Comments fetched successfully")


@comments_router.post("/{videoId}")
def add_comment(
    videoId: str,
    payload: ContentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    content = require_text(payload.content, "Comment content is required")
    video = get_or_404(db, "video", videoId, "video")
    comment = create_document(db, "comment", Comment(content=content, video=video["_id"], owner=user["_id"]))
    return api_response(comment, "Comment added successfully", 201)


@comments_router.patch("/c/{commentId}")
def update_comment(
    commentId: str,
    payload: ContentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    content = require_text(payload.content, "Comment content is required")
    comment = get_owned(db, "comment", commentId, "comment", user)
    updated = db["comment"].find_one_and_update(
        {"_id": comment["_id"]}, {"$set": touch({"content": content})}, return_document=ReturnDocument.AFTER
    )
    return api_response(updated, "Comment updated successfully")


@comments_router.delete("/c/{commentId}")
def delete_comment(commentId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    comment = get_owned(db, "comment", commentId, "comment", user)
    db["comment"].delete_one({"_id": comment["_id"]})
    db["like"].delete_many({"kind": "comment", "target": comment["_id"]})
    return api_response(comment, "Comment deleted successfully")


# -------------------- Likes --------------------

likes_router = APIRouter(prefix="/api/v1/likes", tags=["likes"])

LIKE_TARGETS = {"v": "video", "c": "comment", "t": "tweet"}


@likes_router.post("/toggle/{kind}/{targetId}")
def toggle_like(kind: str, targetId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    if kind not in LIKE_TARGETS:
        raise ApiError(404, "Unknown like target")
    collection_name = LIKE_TARGETS[kind]
    target = get_or_404(db, collection_name, targetId, collection_name)
    key = Like(kind=collection_name, target=target["_id"], likedBy=user["_id"]).model_dump()
    liked, record = toggle(db, "like", key)
    message = f"{collection_name.capitalize()} {'liked' if liked else 'unliked'} successfully"
    return api_response({"liked": liked, "like": record if liked else None}, message)


@likes_router.get("/videos")
def liked_videos(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    videos = list(db["like"].aggregate(pipelines.liked_videos_pipeline(user["_id"])))
    return api_response(videos, "Liked videos fetched successfully")


# -------------------- Subscriptions --------------------

subscriptions_router = APIRouter(prefix="/api/v1/subscriptions", tags=["subscriptions"])


@subscriptions_router.post("/c/{channelId}")
def toggle_subscription(channelId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    channel = get_or_404(db, "user", channelId, "channel")
    if channel["_id"] == user["_id"]:
        raise ApiError(400, "Cannot subscribe to yourself")
    key = Subscription(subscriber=user["_id"], channel=channel["_id"]).model_dump()
    subscribed, record = toggle(db, "subscription", key)
    message = "Subscribed successfully" if subscribed else "Unsubscribed successfully"
    return api_response({"subscribed": subscribed, "subscription": record if subscribed else None}, message)


@subscriptions_router.get("/c/{channelId}")
def channel_subscribers(channelId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    channel = get_or_404(db, "user", channelId, "channel")
    subscribers = list(db["subscription"].aggregate(pipelines.channel_subscribers_pipeline(channel["_id"])))
    return api_response(subscribers, "Subscribers fetched successfully")


@subscriptions_router.get("/u/{subscriberId}")
def subscribed_channels(subscriberId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    subscriber = get_or_404(db, "user", subscriberId, "user")
    channels = list(db["subscription"].aggregate(pipelines.subscribed_channels_pipeline(subscriber["_id"])))
    return api_response(channels, "Subscribed channels fetched successfully")


# -------------------- Playlists --------------------

playlists_router = APIRouter(prefix="/api/v1/playlist", tags=["playlists"])


@playlists_router.post("")
def create_playlist(payload: PlaylistRequest, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    name = require_text(payload.name, "Playlist name is required")
    if db["playlist"].find_one({"owner": user["_id"], "name": name}):
        raise ApiError(409, "Playlist with same name already exists")
    playlist = Playlist(name=name, description=(payload.description or "").strip(), owner=user["_id"])
    return api_response(create_document(db, "playlist", playlist), "Playlist created successfully", 201)


@playlists_router.get("/user/{userId}")
def user_playlists(userId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    owner = get_or_404(db, "user", userId, "user")
    playlists = list(db["playlist"].aggregate(pipelines.user_playlists_pipeline(owner["_id"])))
    return api_response(playlists, "Playlists fetched successfully")


@playlists_router.get("/{playlistId}")
def get_playlist(playlistId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    playlist_id = object_id(playlistId, "playlist id")
    result = list(db["playlist"].aggregate(pipelines.playlist_detail_pipeline(playlist_id)))
    if not result:
        raise ApiError(404, "Playlist not found")
    attach_owners(db, result[0]["videos"])
    return api_response(result[0], "Playlist fetched successfully")


@playlists_router.patch("/add/{videoId}/{playlistId}")
def add_video_to_playlist(
    videoId: str, playlistId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)
):
    playlist = get_owned(db, "playlist", playlistId, "playlist", user)
    video = get_or_404(db, "video", videoId, "video")
    updated = db["playlist"].find_one_and_update(
        {"_id": playlist["_id"]},
        {"$addToSet": {"videos": video["_id"]}, "$set": touch({})},
        return_document=ReturnDocument.AFTER,
    )
    return api_response(updated, "Video added to playlist successfully")


@playlists_router.patch("/remove/{videoId}/{playlistId}")
def remove_video_from_playlist(
    videoId: str, playlistId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)
):
    playlist = get_owned(db, "playlist", playlistId, "playlist", user)
    video_id = object_id(videoId, "video id")
    updated = db["playlist"].find_one_and_update(
        {"_id": playlist["_id"]},
        {"$pull": {"videos": video_id}, "$set": touch({})},
        return_document=ReturnDocument.AFTER,
    )
    return api_response(updated, "Video removed from playlist successfully")


@playlists_router.patch("/{playlistId}")
def update_playlist(
    playlistId: str,
    payload: PlaylistRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    playlist = get_owned(db, "playlist", playlistId, "playlist", user)
    update = {}
    if payload.name is not None and payload.name.strip():
        update["name"] = payload.name.strip()
    if payload.description is not None and payload.description.strip():
        update["description"] = payload.description.strip()
    if not update:
        raise ApiError(400, "At least one field is required to update playlist")
    if "name" in update and db["playlist"].find_one(
        {"owner": user["_id"], "name": update["name"], "_id": {"$ne": playlist["_id"]}}
    ):
        raise ApiError(409, "Playlist with same name already exists")

    updated = db["playlist"].find_one_and_update(
        {"_id": playlist["_id"]}, {"$set": touch(update)}, return_document=ReturnDocument.AFTER
    )
    return api_response(updated, "Playlist updated successfully")


@playlists_router.delete("/{playlistId}")
def delete_playlist(playlistId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    playlist = get_owned(db, "playlist", playlistId, "playlist", user)
    db["playlist"].delete_one({"_id": playlist["_id"]})
    return api_response(playlist, "Playlist deleted successfully")


# -------------------- Tweets --------------------

tweets_router = APIRouter(prefix="/api/v1/tweets", tags=["tweets"])


@tweets_router.post("")
def create_tweet(payload: ContentRequest, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    content = require_text(payload.content, "Tweet content is required")
    tweet = create_document(db, "tweet", Tweet(content=content, owner=user["_id"]))
    return api_response(tweet, "Tweet posted successfully", 201)


@tweets_router.get("/user/{userId}")
def user_tweets(userId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    owner = get_or_404(db, "user", userId, "user")
    tweets = list(db["tweet"].aggregate(pipelines.user_tweets_pipeline(owner["_id"])))
    return api_response(tweets, "Tweets fetched successfully")


@tweets_router.patch("/{tweetId}")
def update_tweet(
    tweetId: str,
    payload: ContentRequest,
    user: dict = Depends(get_current_user),
    db: Database = Depends(get_db),
):
    content = require_text(payload.content, "Tweet content is required")
    tweet = get_owned(db, "tweet", tweetId, "tweet", user)
    updated = db["tweet"].find_one_and_update(
        {"_id": tweet["_id"]}, {"$set": touch({"content": content})}, return_document=ReturnDocument.AFTER
    )
    return api_response(updated, "Tweet updated successfully")


@tweets_router.delete("/{tweetId}")
def delete_tweet(tweetId: str, user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    tweet = get_owned(db, "tweet", tweetId, "tweet", user)
    db["tweet"].delete_one({"_id": tweet["_id"]})
    db["like"].delete_many({"kind": "tweet", "target": tweet["_id"]})
    return api_response(tweet, "Tweet deleted successfully")


# -------------------- Dashboard --------------------

dashboard_router = APIRouter(prefix="/api/v1/dashboard", tags=["dashboard"])


@dashboard_router.get("/stats")
def channel_stats(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    result = list(db["user"].aggregate(pipelines.channel_stats_pipeline(user["_id"])))
    stats = result[0] if result else dict(pipelines.EMPTY_CHANNEL_STATS)
    return api_response(stats, "Channel stats fetched successfully")


@dashboard_router.get("/videos")
def channel_videos(user: dict = Depends(get_current_user), db: Database = Depends(get_db)):
    videos = list(db["video"].find({"owner": user["_id"]}).sort("_id", -1))
    return api_response(videos, "Channel videos fetched successfully")


for router in (
    healthcheck_router,
    users_router,
    videos_router,
    comments_router,
    likes_router,
    subscriptions_router,
    playlists_router,
    tweets_router,
    dashboard_router,
):
    app.include_router(router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)

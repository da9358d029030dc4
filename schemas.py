"""
Database Schemas for VidTube

Each Pydantic model maps to a MongoDB collection. The collection name is the lowercase of the class name.

Collections:
- User -> user
- Video -> video
- Comment -> comment
- Like -> like
- Subscription -> subscription
- Playlist -> playlist
- Tweet -> tweet

Request bodies for the JSON endpoints live at the bottom of this module.
"""

from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class DocumentModel(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class Media(BaseModel):
    url: str
    publicId: str = Field(..., description="Storage id used to delete the file later")


class User(DocumentModel):
    username: str = Field(..., min_length=1, max_length=30)
    email: EmailStr
    fullname: str = Field(..., min_length=1)
    password: str = Field(..., description="Bcrypt hash")
    avatar: Media
    coverImage: Optional[Media] = None
    watchHistory: List[ObjectId] = Field(default_factory=list)

    @field_validator("username", "email", mode="before")
    @classmethod
    def normalize(cls, value):
        return value.strip().lower() if isinstance(value, str) else value


class Video(DocumentModel):
    videoFile: Media
    thumbnail: Media
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    duration: float = Field(0, ge=0, description="Seconds")
    views: int = 0
    isPublished: bool = True
    owner: ObjectId


class Comment(DocumentModel):
    content: str = Field(..., min_length=1)
    video: ObjectId
    owner: ObjectId


LikeKind = Literal["video", "comment", "tweet"]


class Like(DocumentModel):
    """A like points at exactly one target; `kind` says which collection it lives in."""
    kind: LikeKind
    target: ObjectId
    likedBy: ObjectId


class Subscription(DocumentModel):
    subscriber: ObjectId = Field(..., description="The user who subscribes")
    channel: ObjectId = Field(..., description="The user (channel) being subscribed to")


class Playlist(DocumentModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    owner: ObjectId
    videos: List[ObjectId] = Field(default_factory=list)


class Tweet(DocumentModel):
    content: str = Field(..., min_length=1)
    owner: ObjectId


# -------------------- Request bodies --------------------

class LoginRequest(BaseModel):
    email: Optional[str] = None
    username: Optional[str] = None
    password: str


class RefreshRequest(BaseModel):
    refreshToken: Optional[str] = None


class ChangePasswordRequest(BaseModel):
    oldPassword: str
    newPassword: str


class UpdateAccountRequest(BaseModel):
    fullname: Optional[str] = None
    email: Optional[str] = None


class ContentRequest(BaseModel):
    content: Optional[str] = None


class PlaylistRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None

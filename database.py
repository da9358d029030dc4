"""
MongoDB access for the VidTube backend.

Each entity lives in a collection named after the lowercase entity:
user, video, comment, like, subscription, playlist, tweet.
"""

from datetime import datetime
from typing import Any, Dict, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import get_settings
from logger import logger
from responses import ApiError

settings = get_settings()

# MongoClient connects lazily, so importing this module never blocks.
client = MongoClient(settings.MONGODB_URI, serverSelectionTimeoutMS=5000, tz_aware=False)
db = client[settings.DATABASE_NAME]


def get_db() -> Database:
    return db


def object_id(id_str: str, label: str = "id") -> ObjectId:
    if not ObjectId.is_valid(id_str):
        raise ApiError(400, f"Invalid {label} format")
    return ObjectId(id_str)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> Dict[str, Any]:
    """Insert a document stamped with createdAt/updatedAt and return it with its _id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = datetime.utcnow()
    doc["createdAt"] = now
    doc["updatedAt"] = now
    doc["_id"] = database[collection_name].insert_one(doc).inserted_id
    return doc


def exists(database: Database, collection_name: str, filter_dict: dict) -> bool:
    return database[collection_name].find_one(filter_dict, {"_id": 1}) is not None


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("username", unique=True)
    database["user"].create_index("email", unique=True)
    database["like"].create_index(
        [("kind", ASCENDING), ("target", ASCENDING), ("likedBy", ASCENDING)], unique=True
    )
    database["subscription"].create_index(
        [("subscriber", ASCENDING), ("channel", ASCENDING)], unique=True
    )
    database["comment"].create_index([("video", ASCENDING), ("_id", ASCENDING)])
    database["playlist"].create_index([("owner", ASCENDING), ("name", ASCENDING)], unique=True)


def ping(database: Database) -> bool:
    try:
        database.client.admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning(f"MongoDB ping failed: {e}")
        return False

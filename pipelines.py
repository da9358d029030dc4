"""
Aggregation pipelines that assemble denormalized views from the normalized
collections.

Builders only return stage lists; callers run them with
`db[<collection>].aggregate(...)`. Every join is a plain equality `$lookup`.
Joins that are one-to-one by meaning (the owner of a video, the video a like
points at) go through `lookup_one`, which collapses the `$lookup` array to a
single document or null. User joins are then narrowed to the public profile
so no password hash or refresh token ever leaves the database.
"""

from typing import List, Optional

from bson import ObjectId

PUBLIC_PROFILE = {"username": 1, "fullname": 1, "avatar": 1}


def flatten_one(field: str) -> dict:
    """Replace an array field with its first element, or null when it is empty."""
    return {"$addFields": {field: {"$ifNull": [{"$first": f"${field}"}, None]}}}


def public_fields(field: str, fields: Optional[dict] = None) -> dict:
    """Narrow an embedded user document to `_id` plus `fields`, keeping null as null."""
    shape = {"_id": f"${field}._id"}
    for name in fields or PUBLIC_PROFILE:
        shape[name] = f"${field}.{name}"
    return {"$addFields": {field: {"$cond": [{"$eq": [f"${field}", None]}, None, shape]}}}


def lookup(from_: str, local_field: str, foreign_field: str, as_: str) -> dict:
    return {"$lookup": {"from": from_, "localField": local_field, "foreignField": foreign_field, "as": as_}}


def lookup_one(from_: str, local_field: str, as_: str, foreign_field: str = "_id") -> List[dict]:
    return [lookup(from_, local_field, foreign_field, as_), flatten_one(as_)]


def owner_lookup(local_field: str = "owner", as_: str = "owner", projection: Optional[dict] = None) -> List[dict]:
    return [*lookup_one("user", local_field, as_), public_fields(as_, projection)]


def count_kind(field: str, kind: str) -> dict:
    """Number of like records in `field` whose kind is `kind`."""
    return {
        "$size": {
            "$filter": {"input": f"${field}", "as": "like", "cond": {"$eq": ["$$like.kind", kind]}}
        }
    }


# -------------------- User views --------------------

def channel_profile_pipeline(username: str, viewer_id: Optional[ObjectId]) -> List[dict]:
    if viewer_id is None:
        is_subscribed = {"$literal": False}
    else:
        is_subscribed = {"$in": [viewer_id, "$subscribers.subscriber"]}
    return [
        {"$match": {"username": username.strip().lower()}},
        lookup("subscription", "_id", "channel", "subscribers"),
        lookup("subscription", "_id", "subscriber", "subscribedTo"),
        {
            "$addFields": {
                "subscribersCount": {"$size": "$subscribers"},
                "channelsSubscribedToCount": {"$size": "$subscribedTo"},
                "isSubscribed": is_subscribed,
            }
        },
        {
            "$project": {
                "fullname": 1,
                "username": 1,
                "email": 1,
                "avatar": 1,
                "coverImage": 1,
                "createdAt": 1,
                "subscribersCount": 1,
                "channelsSubscribedToCount": 1,
                "isSubscribed": 1,
            }
        },
    ]


def watch_history_pipeline(user_id: ObjectId) -> List[dict]:
    # $lookup over an array field matches every id independently; the caller
    # restores the order stored in `watchHistory`.
    return [
        {"$match": {"_id": user_id}},
        lookup("video", "watchHistory", "_id", "history"),
        {"$project": {"watchHistory": 1, "history": 1}},
    ]


def order_watch_history(doc: Optional[dict]) -> List[dict]:
    """Most recently watched first; ids whose video is gone are skipped."""
    if not doc:
        return []
    by_id = {video["_id"]: video for video in doc.get("history", [])}
    ordered = []
    for video_id in reversed(doc.get("watchHistory", [])):
        if video_id in by_id:
            ordered.append(by_id[video_id])
    return ordered


# -------------------- Dashboard --------------------

def channel_stats_pipeline(user_id: ObjectId) -> List[dict]:
    return [
        {"$match": {"_id": user_id}},
        lookup("subscription", "_id", "channel", "subscribers"),
        lookup("video", "_id", "owner", "videos"),
        {"$addFields": {"videoIds": "$videos._id"}},
        lookup("like", "videoIds", "target", "likes"),
        {
            "$project": {
                "_id": 0,
                "totalViews": {"$sum": "$videos.views"},
                "totalLikes": count_kind("likes", "video"),
                "subscribersCount": {"$size": "$subscribers"},
                "videosCount": {"$size": "$videos"},
            }
        },
    ]


EMPTY_CHANNEL_STATS = {"totalViews": 0, "totalLikes": 0, "subscribersCount": 0, "videosCount": 0}


# -------------------- Likes --------------------

def liked_videos_pipeline(user_id: ObjectId) -> List[dict]:
    return [
        {"$match": {"likedBy": user_id, "kind": "video"}},
        {"$sort": {"_id": -1}},
        *lookup_one("video", "target", "video"),
        # A like whose video was deleted joins to null; drop it instead of failing.
        {"$match": {"video": {"$ne": None}}},
        *owner_lookup(local_field="video.owner", as_="videoOwner"),
        {"$addFields": {"video.owner": "$videoOwner"}},
        {"$project": {"video": 1, "likedAt": "$createdAt"}},
    ]


# -------------------- Tweets --------------------

def user_tweets_pipeline(user_id: ObjectId) -> List[dict]:
    return [
        {"$match": {"owner": user_id}},
        {"$sort": {"_id": -1}},
        *owner_lookup(),
        lookup("like", "_id", "target", "likes"),
        {"$addFields": {"likesCount": count_kind("likes", "tweet")}},
        {"$project": {"likes": 0}},
    ]


# -------------------- Subscriptions --------------------

def channel_subscribers_pipeline(channel_id: ObjectId) -> List[dict]:
    return [
        {"$match": {"channel": channel_id}},
        *owner_lookup(local_field="subscriber", as_="subscriber"),
        {"$match": {"subscriber": {"$ne": None}}},
        {"$project": {"subscriber": 1, "channel": 1, "createdAt": 1}},
    ]


def subscribed_channels_pipeline(subscriber_id: ObjectId) -> List[dict]:
    return [
        {"$match": {"subscriber": subscriber_id}},
        *owner_lookup(
            local_field="channel", as_="channel",
            projection={**PUBLIC_PROFILE, "coverImage": 1},
        ),
        {"$match": {"channel": {"$ne": None}}},
        {"$project": {"channel": 1, "subscriber": 1, "createdAt": 1}},
    ]


# -------------------- Playlists --------------------

def user_playlists_pipeline(user_id: ObjectId) -> List[dict]:
    return [
        {"$match": {"owner": user_id}},
        {"$sort": {"_id": -1}},
        *owner_lookup(),
        {"$addFields": {"totalVideos": {"$size": "$videos"}}},
    ]


def playlist_detail_pipeline(playlist_id: ObjectId) -> List[dict]:
    # Video owners are attached by the caller with one batched query.
    return [
        {"$match": {"_id": playlist_id}},
        lookup("video", "videos", "_id", "videos"),
        {
            "$addFields": {
                "videos": {
                    "$filter": {
                        "input": "$videos",
                        "as": "video",
                        "cond": {"$eq": ["$$video.isPublished", True]},
                    }
                }
            }
        },
        *owner_lookup(),
        {"$addFields": {"totalVideos": {"$size": "$videos"}, "totalViews": {"$sum": "$videos.views"}}},
    ]

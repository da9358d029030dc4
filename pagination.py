"""
Id-based cursor pagination.

Pages are ordered by `_id`, which grows with insertion time. A page holds
the records strictly after the caller's `lastId`, so records inserted
behind the cursor never reappear and records inserted ahead of it show up
on a later page.
"""

from typing import List, Optional, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING
from pymongo.collection import Collection

DEFAULT_LIMIT = 10
MAX_LIMIT = 100


def parse_cursor(last_id: Optional[str]) -> Optional[ObjectId]:
    # A malformed cursor means "start from the beginning", not an error.
    if last_id and ObjectId.is_valid(last_id):
        return ObjectId(last_id)
    return None


def cursor_filter(filter_dict: dict, last_id: Optional[ObjectId], descending: bool = False) -> dict:
    if last_id is None:
        return dict(filter_dict)
    return {**filter_dict, "_id": {"$lt" if descending else "$gt": last_id}}


def next_cursor(items: List[dict]) -> Optional[ObjectId]:
    return items[-1]["_id"] if items else None


def paginate(
    collection: Collection,
    filter_dict: dict,
    limit: int = DEFAULT_LIMIT,
    last_id: Optional[str] = None,
    projection: Optional[dict] = None,
    descending: bool = False,
) -> Tuple[List[dict], Optional[ObjectId]]:
    """Return up to `limit` records after `last_id` and the cursor for the next page."""
    limit = max(1, min(limit, MAX_LIMIT))
    query = cursor_filter(filter_dict, parse_cursor(last_id), descending)
    items = list(
        collection.find(query, projection)
        .sort("_id", DESCENDING if descending else ASCENDING)
        .limit(limit)
    )
    return items, next_cursor(items)

"""
MongoDB access for Sport Lebanon.

Collections are named after the lowercase schema class (see schemas.py).
Routes receive the database through the ``get_db`` dependency so it can be
swapped in tests.
"""

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database

from config import DATABASE_NAME, DATABASE_URL

logger = logging.getLogger(__name__)

MAX_PAGE = 10_000
MAX_PAGE_SIZE = 100

db: Optional[Database] = None

if DATABASE_URL and DATABASE_NAME:
    try:
        _client = MongoClient(DATABASE_URL)
        db = _client[DATABASE_NAME]
        logger.info(f"Connected to MongoDB database '{DATABASE_NAME}'")
    except Exception as e:
        logger.error(f"Failed to create MongoDB client: {e}")
        raise
else:
    logger.warning("DATABASE_URL / DATABASE_NAME not set, database unavailable")


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=503, detail="Database not available")
    return db


def utcnow() -> datetime:
    # naive UTC, the same shape pymongo hands back without tz_aware
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_object_id(value: Any) -> Optional[ObjectId]:
    """Parse an id string, returning None when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document, stamping created_at/updated_at. Returns the new id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Make a Mongo document JSON friendly: _id -> id, ObjectIds -> str."""
    if doc is None:
        return None
    out = {}
    for key, value in doc.items():
        if key == "_id":
            out["id"] = str(value)
        elif key == "password_hash":
            continue
        elif isinstance(value, ObjectId):
            out[key] = str(value)
        elif isinstance(value, dict):
            out[key] = serialize(value)
        else:
            out[key] = value
    return out


def search_filter(text: str, keys: List[str]) -> Dict[str, Any]:
    """Case-insensitive substring match of literal text on any of keys."""
    pattern = {"$regex": re.escape(text), "$options": "i"}
    return {"$or": [{key: pattern} for key in keys]}


def paginate(
    database: Database,
    collection_name: str,
    query: Dict[str, Any],
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    """Newest-first page of a collection plus pagination metadata."""
    page = min(max(1, page), MAX_PAGE)
    limit = min(max(1, limit), MAX_PAGE_SIZE)
    skip = (page - 1) * limit
    coll = database[collection_name]
    items = list(coll.find(query).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit))
    total = coll.count_documents(query)
    return {
        "items": [serialize(it) for it in items],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit,
        },
    }

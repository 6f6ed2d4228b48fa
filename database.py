"""
MongoDB connection for Natours

DATABASE_URL and DATABASE_NAME are read from the environment. When no URL is
set `db` stays None and every model operation raises until one is configured.
"""

import logging
import os
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "natours")

db: Optional[Database] = None

if DATABASE_URL:
    _client = MongoClient(DATABASE_URL, serverSelectionTimeoutMS=5000)
    db = _client[DATABASE_NAME]
else:
    logger.warning("DATABASE_URL is not set, database access is disabled")


def get_db() -> Database:
    if db is None:
        raise RuntimeError("Database not available. Set DATABASE_URL (and DATABASE_NAME).")
    return db


def create_document(collection_name: str, document: Dict[str, Any]) -> ObjectId:
    """Insert a ready-to-store document and return its id."""
    result = get_db()[collection_name].insert_one(document)
    logger.info("Inserted document %s into %s", result.inserted_id, collection_name)
    return result.inserted_id


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    projection: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[Any]] = None,
) -> List[Dict[str, Any]]:
    cursor = get_db()[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)

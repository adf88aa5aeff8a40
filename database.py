"""
MongoDB access helpers.

`db` is None when no DATABASE_URL is configured; handlers then answer with
"Database not configured" instead of failing at import time.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

import config

client: Optional[MongoClient] = MongoClient(config.DATABASE_URL) if config.DATABASE_URL else None
db: Optional[Database] = client[config.DATABASE_NAME] if client is not None else None


def create_document(database: Database, collection_name: str, data) -> str:
    """Insert a pydantic model (or dict) and return the new id as a string."""
    if isinstance(data, BaseModel):
        doc = data.model_dump(by_alias=True, exclude_none=True)
    else:
        doc = dict(data)
    doc.setdefault("createdAt", datetime.now(timezone.utc))
    result = database[collection_name].insert_one(doc)
    return str(result.inserted_id)


def ensure_indexes(database: Database) -> None:
    database["users"].create_index([("login", ASCENDING)], unique=True)
    database["users"].create_index([("questPosts._id", ASCENDING)])
    database["media"].create_index([("userId", ASCENDING), ("questId", ASCENDING)])
    database["currentquest"].create_index([("timestamp", ASCENDING)])


def ping(database: Database) -> None:
    database.client.admin.command("ping")

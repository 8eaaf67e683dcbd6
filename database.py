"""
MongoDB access for the boutique API.

`db` is the process-wide database handle, built once from DATABASE_URL and
DATABASE_NAME. It stays None when either is missing; the app refuses to start
in that case (see the lifespan hook in main.py).
"""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import ASCENDING, TEXT, MongoClient, ReturnDocument

load_dotenv()

logger = logging.getLogger(__name__)

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _require_db():
    if db is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document with createdAt/updatedAt stamps and return its id as a string."""
    database = _require_db()
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict["createdAt"] = now
    data_dict["updatedAt"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def update_document(collection_name: str, doc_id: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply a partial update and return the stored document after the write, or None."""
    database = _require_db()
    changes = {**changes, "updatedAt": utcnow()}
    return database[collection_name].find_one_and_update(
        {"_id": doc_id},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
    database = _require_db()
    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ping(database) -> None:
    database.command("ping")


def ensure_indexes(database) -> None:
    database["adminuser"].create_index([("email", ASCENDING)], unique=True)
    database["category"].create_index([("name", ASCENDING)], unique=True)
    database["category"].create_index([("slug", ASCENDING)], unique=True)
    database["product"].create_index(
        [("name", TEXT), ("description", TEXT), ("tags", TEXT)],
        name="product_text",
    )
    database["product"].create_index([("category", ASCENDING)])
    database["product"].create_index([("isFeatured", ASCENDING)])
    database["product"].create_index([("isNewArrival", ASCENDING)])
    logger.info("Indexes ensured on %s", database.name)

"""
MongoDB access

A single module-level client/database pair configured from DATABASE_URL and
DATABASE_NAME. When either is missing `db` stays None and the API reports the
database as unavailable instead of refusing to start.
"""
import logging
from datetime import datetime, timezone
from typing import Union

from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, TEXT, MongoClient
from pymongo.errors import PyMongoError

from config import DATABASE_NAME, DATABASE_URL

logger = logging.getLogger(__name__)

_client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(
        DATABASE_URL,
        serverSelectionTimeoutMS=5000,
        socketTimeoutMS=45000,
        maxPoolSize=10,
    )
    db = _client[DATABASE_NAME]


def get_db():
    """FastAPI dependency returning the active database."""
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with timestamps and return its id as a string."""
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


INDEXES = [
    ("product", [("name", TEXT), ("description", TEXT), ("brand", TEXT)], {"name": "product_text"}),
    ("product", "sku", {"unique": True}),
    ("product", "slug", {"unique": True, "sparse": True}),
    ("product", [("category", ASCENDING), ("subcategory", ASCENDING)], {}),
    ("user", "email", {"unique": True}),
    ("coupon", "code", {"unique": True}),
    ("order", [("user_id", ASCENDING), ("created_at", DESCENDING)], {}),
]


def ensure_indexes():
    """Create every index in INDEXES; one failing index does not stop the rest."""
    if db is None:
        return
    for collection_name, keys, options in INDEXES:
        try:
            db[collection_name].create_index(keys, **options)
        except PyMongoError as exc:
            logger.warning("Unable to create index %s on %s: %s", keys, collection_name, exc)


def ping() -> bool:
    if db is None:
        return False
    try:
        db.command("ping")
        return True
    except PyMongoError as exc:
        logger.warning("Database ping failed: %s", exc)
        return False


def close():
    if _client is not None:
        _client.close()

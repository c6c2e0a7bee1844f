import math
import re
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException


def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except Exception:
        raise HTTPException(status_code=400, detail="Invalid id")


def serialize(doc):
    if not doc:
        return None
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        if isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # pymongo hands back naive datetimes that are already UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]", "-", (text or "").lower())
    slug = re.sub(r"-+", "-", slug).strip("-")
    return slug


def envelope(data=None, message: Optional[str] = None) -> dict:
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def paginate(collection, query: dict, page: int, limit: int, sort=None, projection=None):
    """Run a paged find and return (documents, pagination block)."""
    page = max(page, 1)
    limit = max(limit, 1)
    cursor = collection.find(query, projection)
    if sort:
        cursor = cursor.sort(sort)
    docs = list(cursor.skip((page - 1) * limit).limit(limit))

    total = collection.count_documents(query)
    pages = math.ceil(total / limit)
    return docs, {
        "page": page,
        "pages": pages,
        "total": total,
        "has_next": page < pages,
        "has_prev": page > 1,
    }

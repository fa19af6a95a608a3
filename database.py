"""
Database access

A single MongoClient is created from DATABASE_URL / DATABASE_NAME. Modules
go through `collection()` instead of holding their own reference to `db`, so
the connection can be swapped (tests point it at an in-memory client).
"""
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient

load_dotenv()

_client = None
db = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url)
    db = _client[database_name]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def collection(name: str):
    if db is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")
    return db[name]


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> Dict[str, Any]:
    """Insert a document stamped with createdAt/updatedAt and return it with its _id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump(by_alias=True)
    else:
        data_dict = data.copy()
    now = utcnow()
    data_dict["createdAt"] = now
    data_dict["updatedAt"] = now
    result = collection(collection_name).insert_one(data_dict)
    data_dict["_id"] = result.inserted_id
    return data_dict


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None,
                  sort: Optional[list] = None, skip: int = 0) -> List[Dict[str, Any]]:
    cursor = collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def ensure_indexes() -> None:
    """Unique constraints the handlers rely on to turn races into DuplicateKeyError."""
    collection("user").create_index([("uid", ASCENDING)], unique=True)
    collection("category").create_index([("name", ASCENDING)], unique=True)
    collection("category").create_index([("slug", ASCENDING)], unique=True)
    collection("product").create_index([("slug", ASCENDING)], unique=True)
    collection("faq").create_index([("question", ASCENDING)], unique=True)
    collection("savedarticle").create_index([("user", ASCENDING), ("article", ASCENDING)], unique=True)
    collection("post").create_index([("category", ASCENDING)])
    collection("comment").create_index([("post", ASCENDING), ("parentComment", ASCENDING)])

"""
MongoDB access for the marketplace.

A Database is an explicit handle: main.py builds one at startup, opens
it (indexes), hands it to request handlers through app.state, and
closes it at shutdown. Collections are plain pymongo collections named
after the documents they hold ("user", "product", "order").
"""

import math
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

logger = logging.getLogger(__name__)

USERS = "user"
PRODUCTS = "product"
ORDERS = "order"

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize_doc(doc: Optional[Dict[str, Any]]):
    """Make a stored document JSON friendly: _id -> id, ObjectId -> str, dates -> ISO."""
    if doc is None:
        return None
    out = {}
    for k, v in doc.items():
        key = "id" if k == "_id" else k
        out[key] = _serialize_value(v)
    return out


def _serialize_value(v):
    if isinstance(v, ObjectId):
        return str(v)
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    if isinstance(v, dict):
        return serialize_doc(v)
    if isinstance(v, list):
        return [_serialize_value(i) for i in v]
    return v


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total: int
    limit: int


class Database:
    def __init__(self, url: Optional[str] = None, name: Optional[str] = None, client=None):
        if client is None and not url:
            raise ValueError("DATABASE_URL is required when no client is given")
        self._url = url
        self._owns_client = client is None
        self.client = client
        self.name = name or "gebeya"
        self.db = None

    def open(self):
        if self.client is None:
            self.client = MongoClient(self._url)
        self.db = self.client[self.name]
        self.ensure_indexes()
        logger.info("Connected to database %s", self.name)
        return self

    def close(self):
        if self.client is not None and self._owns_client:
            self.client.close()
        self.db = None
        logger.info("Database connection closed")

    def ensure_indexes(self):
        self.db[USERS].create_index([("email", ASCENDING)], unique=True)
        self.db[USERS].create_index([("role", ASCENDING)])
        self.db[PRODUCTS].create_index([("wholesaler", ASCENDING)])
        self.db[PRODUCTS].create_index([("is_active", ASCENDING), ("category", ASCENDING)])
        self.db[ORDERS].create_index([("customer", ASCENDING), ("created_at", DESCENDING)])
        self.db[ORDERS].create_index([("wholesaler", ASCENDING), ("created_at", DESCENDING)])
        self.db[ORDERS].create_index([("status", ASCENDING)])

    def __getitem__(self, collection_name: str):
        if self.db is None:
            raise RuntimeError("Database is not open")
        return self.db[collection_name]

    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()

    def create_document(self, collection_name: str, data: Union[BaseModel, dict]) -> str:
        if isinstance(data, BaseModel):
            data_dict = data.model_dump()
        else:
            data_dict = data.copy()
        now = utcnow()
        data_dict.setdefault("created_at", now)
        data_dict["updated_at"] = now
        result = self[collection_name].insert_one(data_dict)
        return str(result.inserted_id)

    def get_document(self, collection_name: str, doc_id: Any, projection: Optional[dict] = None):
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        return self[collection_name].find_one({"_id": oid}, projection)

    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None,
                      limit: Optional[int] = None, sort: Optional[Sequence[Tuple[str, int]]] = None):
        cursor = self[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(list(sort))
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def update_document(self, collection_name: str, doc_id: Any, changes: dict):
        oid = to_object_id(doc_id)
        if oid is None:
            return None
        self[collection_name].update_one({"_id": oid}, {"$set": {**changes, "updated_at": utcnow()}})
        return self[collection_name].find_one({"_id": oid})

    def count_documents(self, collection_name: str, filter_dict: Optional[dict] = None) -> int:
        return self[collection_name].count_documents(filter_dict or {})

    def paginate(self, collection_name: str, filter_dict: Optional[dict] = None, page: int = 1,
                 limit: int = 10, sort: Sequence[Tuple[str, int]] = NEWEST_FIRST):
        filter_dict = filter_dict or {}
        skip = (page - 1) * limit
        docs = list(
            self[collection_name].find(filter_dict).sort(list(sort)).skip(skip).limit(limit)
        )
        total = self.count_documents(collection_name, filter_dict)
        pagination = Pagination(
            current_page=page,
            total_pages=math.ceil(total / limit) if limit else 0,
            total=total,
            limit=limit,
        )
        return docs, pagination

"""
Document store access.

A thin layer over a pymongo database that gives the rest of the portal
string document ids, full-replace point writes, equality-filtered queries
and live query subscriptions. Subscribers receive the complete result set
on subscribe and again after every write to the collection they watch.
"""

import threading
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from app_logger import get_logger
from errors import DocumentConflict, StoreUnavailable
from settings import settings

logger = get_logger(__name__)

Snapshot = List[Dict[str, Any]]


def now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(ObjectId())


def to_dict(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return doc
    doc["id"] = str(doc.pop("_id"))
    return doc


def _strip_id(data: dict) -> dict:
    body = dict(data)
    body.pop("id", None)
    body.pop("_id", None)
    return body


class Subscription:
    """A live query. Call unsubscribe() (or leave the with-block) to release it."""

    def __init__(self, store: "DocumentStore", collection: str, callback: Callable[[Snapshot], None],
                 where: Optional[dict] = None, order_by: Optional[str] = None, descending: bool = False):
        self.store = store
        self.collection = collection
        self.callback = callback
        self.where = where or {}
        self.order_by = order_by
        self.descending = descending
        self.active = True

    def refresh(self) -> None:
        if not self.active:
            return
        snapshot = self.store.get_documents(self.collection, self.where, order_by=self.order_by,
                                            descending=self.descending)
        self.callback(snapshot)

    def unsubscribe(self) -> None:
        if self.active:
            self.active = False
            self.store._detach(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.unsubscribe()


class DocumentStore:
    def __init__(self, database):
        self.db = database
        self._subscriptions: Dict[str, List[Subscription]] = defaultdict(list)
        self._lock = threading.Lock()
        self._indexes = set()

    # Reads

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        try:
            return to_dict(self.db[collection].find_one({"_id": doc_id}))
        except PyMongoError as e:
            raise StoreUnavailable("read", str(e))

    def get_documents(self, collection: str, where: Optional[dict] = None, order_by: Optional[str] = None,
                      descending: bool = False, limit: Optional[int] = None) -> Snapshot:
        query = dict(where or {})
        if order_by:
            # An ordered query only returns documents that carry the field
            query.setdefault(order_by, {"$exists": True})
        try:
            cursor = self.db[collection].find(query)
            if order_by:
                cursor = cursor.sort(order_by, DESCENDING if descending else ASCENDING)
            if limit:
                cursor = cursor.limit(limit)
            return [to_dict(d) for d in cursor]
        except PyMongoError as e:
            raise StoreUnavailable("query", str(e))

    def count_documents(self, collection: str, where: Optional[dict] = None) -> int:
        try:
            return self.db[collection].count_documents(where or {})
        except PyMongoError as e:
            raise StoreUnavailable("count", str(e))

    # Writes

    def create_document(self, collection: str, data: dict) -> dict:
        doc_id = new_id()
        return self.set_document(collection, doc_id, data)

    def set_document(self, collection: str, doc_id: str, data: dict) -> dict:
        body = _strip_id(data)
        try:
            self.db[collection].replace_one({"_id": doc_id}, body, upsert=True)
        except DuplicateKeyError:
            raise DocumentConflict(collection, doc_id)
        except PyMongoError as e:
            logger.error(f"Write to {collection}/{doc_id} failed: {e}")
            raise StoreUnavailable("write", str(e))
        logger.debug(f"Wrote {collection}/{doc_id}")
        self._notify(collection)
        return {**body, "id": doc_id}

    def update_document(self, collection: str, doc_id: str, fields: dict) -> bool:
        try:
            res = self.db[collection].update_one({"_id": doc_id}, {"$set": _strip_id(fields)})
        except PyMongoError as e:
            logger.error(f"Update of {collection}/{doc_id} failed: {e}")
            raise StoreUnavailable("update", str(e))
        if res.matched_count:
            self._notify(collection)
        return bool(res.matched_count)

    def delete_document(self, collection: str, doc_id: str) -> bool:
        try:
            res = self.db[collection].delete_one({"_id": doc_id})
        except PyMongoError as e:
            logger.error(f"Delete of {collection}/{doc_id} failed: {e}")
            raise StoreUnavailable("delete", str(e))
        if res.deleted_count:
            self._notify(collection)
        return bool(res.deleted_count)

    def ensure_unique(self, collection: str, field: str) -> None:
        if (collection, field) in self._indexes:
            return
        try:
            self.db[collection].create_index(field, unique=True)
        except PyMongoError as e:
            raise StoreUnavailable("index", str(e))
        self._indexes.add((collection, field))

    # Live queries

    def subscribe(self, collection: str, callback: Callable[[Snapshot], None], where: Optional[dict] = None,
                  order_by: Optional[str] = None, descending: bool = False) -> Subscription:
        sub = Subscription(self, collection, callback, where, order_by, descending)
        with self._lock:
            self._subscriptions[collection].append(sub)
        sub.refresh()
        return sub

    def subscription_count(self, collection: Optional[str] = None) -> int:
        with self._lock:
            if collection:
                return len(self._subscriptions.get(collection, []))
            return sum(len(subs) for subs in self._subscriptions.values())

    def _detach(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.collection, [])
            if sub in subs:
                subs.remove(sub)

    def _notify(self, collection: str) -> None:
        with self._lock:
            subs = list(self._subscriptions.get(collection, []))
        for sub in subs:
            try:
                sub.refresh()
            except StoreUnavailable:
                logger.warning(f"Subscription refresh on {collection} failed")


# Process-wide store

_client: Optional[MongoClient] = None
_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    global _client, _store
    if _store is None:
        _client = MongoClient(settings.DATABASE_URL)
        _store = DocumentStore(_client[settings.DATABASE_NAME])
        logger.info(f"Connected document store {settings.DATABASE_NAME}")
    return _store

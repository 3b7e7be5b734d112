"""
Document store

Every service talks to a DocumentStore: keyed CRUD over named collections,
equality/range predicates, ordering, counting and an atomic increment.
No transactions are offered or used.

Two implementations:
- MongoStore: MongoDB through pymongo (used when DATABASE_URL is set)
- MemoryStore: process-local dictionaries (local runs and tests)

Documents go in and come out as plain dicts. The document key is exposed
as "id" and never stored inside the document body.
"""
import copy
import logging
import operator
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient

import config
from errors import NotFoundError

logger = logging.getLogger(__name__)

Predicate = Tuple[str, str, Any]
OrderBy = Sequence[Tuple[str, int]]

_OPS = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}

_MONGO_OPS = {
    "==": "$eq",
    "!=": "$ne",
    "<": "$lt",
    "<=": "$lte",
    ">": "$gt",
    ">=": "$gte",
}


def now_utc():
    return datetime.now(timezone.utc)


def _strip_id(doc: Dict[str, Any]) -> Dict[str, Any]:
    body = dict(doc)
    body.pop("id", None)
    body.pop("_id", None)
    return body


class DocumentStore:
    """Interface shared by every store backend."""

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def query(self, collection: str, predicates: Sequence[Predicate] = (),
              order_by: Optional[OrderBy] = None, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def add(self, collection: str, doc: Dict[str, Any]) -> str:
        raise NotImplementedError

    def set(self, collection: str, doc_id: str, doc: Dict[str, Any]) -> None:
        """Replace (or create) the document stored under doc_id."""
        raise NotImplementedError

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        """Merge changes into an existing document; NotFoundError if absent."""
        raise NotImplementedError

    def delete(self, collection: str, doc_id: str) -> None:
        raise NotImplementedError

    def count(self, collection: str, predicates: Sequence[Predicate] = ()) -> int:
        raise NotImplementedError

    def increment(self, collection: str, doc_id: str, field: str, delta: int = 1) -> None:
        """Atomically add delta to a numeric field."""
        raise NotImplementedError


# ---------------------- MongoDB ----------------------

def _oid(doc_id: str):
    return ObjectId(doc_id) if ObjectId.is_valid(doc_id) else doc_id


def _mongo_filter(predicates: Sequence[Predicate]) -> Dict[str, Any]:
    filt: Dict[str, Any] = {}
    for field, op, value in predicates:
        if op not in _MONGO_OPS:
            raise ValueError(f"Unsupported operator: {op}")
        filt.setdefault(field, {})[_MONGO_OPS[op]] = value
    return filt


def _from_mongo(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


class MongoStore(DocumentStore):
    def __init__(self, database):
        self.db = database

    def get(self, collection, doc_id):
        return _from_mongo(self.db[collection].find_one({"_id": _oid(doc_id)}))

    def query(self, collection, predicates=(), order_by=None, limit=None):
        cur = self.db[collection].find(_mongo_filter(predicates))
        if order_by:
            cur = cur.sort([(field, ASCENDING if direction >= 0 else DESCENDING) for field, direction in order_by])
        if limit:
            cur = cur.limit(limit)
        return [_from_mongo(d) for d in cur]

    def add(self, collection, doc):
        res = self.db[collection].insert_one(_strip_id(doc))
        return str(res.inserted_id)

    def set(self, collection, doc_id, doc):
        self.db[collection].replace_one({"_id": _oid(doc_id)}, _strip_id(doc), upsert=True)

    def update(self, collection, doc_id, changes):
        res = self.db[collection].update_one({"_id": _oid(doc_id)}, {"$set": _strip_id(changes)})
        if res.matched_count == 0:
            raise NotFoundError(f"{collection}/{doc_id} not found")

    def delete(self, collection, doc_id):
        self.db[collection].delete_one({"_id": _oid(doc_id)})

    def count(self, collection, predicates=()):
        return self.db[collection].count_documents(_mongo_filter(predicates))

    def increment(self, collection, doc_id, field, delta=1):
        res = self.db[collection].update_one({"_id": _oid(doc_id)}, {"$inc": {field: delta}})
        if res.matched_count == 0:
            raise NotFoundError(f"{collection}/{doc_id} not found")


# ---------------------- In-memory ----------------------

def _matches(doc: Dict[str, Any], predicates: Sequence[Predicate]) -> bool:
    for field, op, value in predicates:
        if op not in _OPS:
            raise ValueError(f"Unsupported operator: {op}")
        current = doc.get(field)
        if current is None and op not in ("==", "!="):
            return False
        try:
            if not _OPS[op](current, value):
                return False
        except TypeError:
            return False
    return True


def _sort_docs(docs: List[Dict[str, Any]], order_by: OrderBy) -> List[Dict[str, Any]]:
    # Stable sorts applied from the last key to the first; missing values sort last
    for field, direction in reversed(list(order_by)):
        if direction >= 0:
            docs.sort(key=lambda d: (d.get(field) is None, d.get(field) if d.get(field) is not None else 0))
        else:
            docs.sort(key=lambda d: (d.get(field) is not None, d.get(field) if d.get(field) is not None else 0),
                      reverse=True)
    return docs


class MemoryStore(DocumentStore):
    def __init__(self):
        self.collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def _coll(self, collection):
        return self.collections.setdefault(collection, {})

    def _out(self, doc_id, body):
        doc = copy.deepcopy(body)
        doc["id"] = doc_id
        return doc

    def get(self, collection, doc_id):
        body = self._coll(collection).get(doc_id)
        return self._out(doc_id, body) if body is not None else None

    def query(self, collection, predicates=(), order_by=None, limit=None):
        docs = [self._out(k, v) for k, v in self._coll(collection).items() if _matches(v, predicates)]
        if order_by:
            docs = _sort_docs(docs, order_by)
        if limit:
            docs = docs[:limit]
        return docs

    def add(self, collection, doc):
        doc_id = str(ObjectId())
        self._coll(collection)[doc_id] = copy.deepcopy(_strip_id(doc))
        return doc_id

    def set(self, collection, doc_id, doc):
        self._coll(collection)[doc_id] = copy.deepcopy(_strip_id(doc))

    def update(self, collection, doc_id, changes):
        body = self._coll(collection).get(doc_id)
        if body is None:
            raise NotFoundError(f"{collection}/{doc_id} not found")
        body.update(copy.deepcopy(_strip_id(changes)))

    def delete(self, collection, doc_id):
        self._coll(collection).pop(doc_id, None)

    def count(self, collection, predicates=()):
        return sum(1 for v in self._coll(collection).values() if _matches(v, predicates))

    def increment(self, collection, doc_id, field, delta=1):
        body = self._coll(collection).get(doc_id)
        if body is None:
            raise NotFoundError(f"{collection}/{doc_id} not found")
        body[field] = (body.get(field) or 0) + delta


# ---------------------- Default store ----------------------

client = MongoClient(config.DATABASE_URL, tz_aware=True) if config.DATABASE_URL else None
db = client[config.DATABASE_NAME] if client is not None else None

_store: Optional[DocumentStore] = None


def get_store() -> DocumentStore:
    global _store
    if _store is None:
        if db is not None:
            _store = MongoStore(db)
        else:
            logger.warning("DATABASE_URL not set, using in-memory document store")
            _store = MemoryStore()
    return _store

"""
Collection models for Natours

A Model binds a schema from schemas.py to a MongoDB collection. It declares
the collection's indexes and virtual relations, and runs registered
interceptors at four fixed points:

- pre_validate(data) -> data        before schema validation on create/save
- pre_save(doc) -> None             after validation, before the write
- pre_read(query) -> query          before every operation in ReadOp
- pre_aggregate(pipeline) -> list   before aggregate()

Reads go through the model, so read interceptors cannot be skipped by
callers using the standard entry points.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Type

from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, GEOSPHERE
from pymongo.collection import Collection
from pymongo.database import Database

import database
from hooks import exclude_secret, hide_secret_stage, slugify_name
from schemas import Document, Event, Tour

logger = logging.getLogger(__name__)


class Hook(str, Enum):
    PRE_VALIDATE = "pre_validate"
    PRE_SAVE = "pre_save"
    PRE_READ = "pre_read"
    PRE_AGGREGATE = "pre_aggregate"


class ReadOp(str, Enum):
    FIND = "find"
    FIND_ONE = "find_one"
    COUNT_DOCUMENTS = "count_documents"
    DISTINCT = "distinct"
    FIND_ONE_AND_UPDATE = "find_one_and_update"
    FIND_ONE_AND_REPLACE = "find_one_and_replace"
    FIND_ONE_AND_DELETE = "find_one_and_delete"


READ_OPS = frozenset(ReadOp)

IndexSpec = Tuple[List[Tuple[str, Any]], Dict[str, Any]]


def to_object_id(id_str: Any) -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    if not ObjectId.is_valid(id_str):
        raise ValueError(f"Invalid id: {id_str!r}")
    return ObjectId(id_str)


@dataclass(frozen=True)
class VirtualRelation:
    """Non-stored one-to-many relation: target[foreign_field] == parent[local_field]."""

    target: str
    foreign_field: str
    local_field: str = "_id"

    def resolve(self, db: Database, parent_id: Any) -> Iterator[Dict[str, Any]]:
        # generator: nothing is queried until the caller iterates
        yield from db[self.target].find({self.foreign_field: parent_id})


class Model:
    def __init__(
        self,
        name: str,
        schema: Type[Document],
        collection: str,
        indexes: Iterable[IndexSpec] = (),
        virtuals: Optional[Dict[str, VirtualRelation]] = None,
        hidden: Iterable[str] = (),
    ):
        self.name = name
        self.schema = schema
        self.collection_name = collection
        self.indexes = list(indexes)
        self.virtuals = dict(virtuals or {})
        self.hidden = tuple(hidden)
        self._hooks: Dict[Hook, List[Tuple[Callable, frozenset]]] = {hook: [] for hook in Hook}
        self._indexed_db: Optional[Database] = None

    def __repr__(self):
        return f"<Model {self.name} ({self.collection_name})>"

    @property
    def db(self) -> Database:
        return database.get_db()

    @property
    def collection(self) -> Collection:
        return self._indexed()[self.collection_name]

    def _indexed(self) -> Database:
        # indexes are created once per database handle, on first use
        db = self.db
        if self._indexed_db is not db:
            self.ensure_indexes()
        return db

    def pre(self, hook: Hook, fn: Callable, ops: Optional[Iterable[ReadOp]] = None) -> Callable:
        """Register `fn` at `hook`. `ops` narrows a pre_read hook to some read operations."""
        hook = Hook(hook)
        if ops is not None and hook is not Hook.PRE_READ:
            raise ValueError("ops only applies to pre_read hooks")
        self._hooks[hook].append((fn, frozenset(ReadOp(op) for op in ops) if ops is not None else READ_OPS))
        return fn

    def ensure_indexes(self) -> List[str]:
        db = self.db
        collection = db[self.collection_name]
        names = [collection.create_index(keys, **options) for keys, options in self.indexes]
        self._indexed_db = db
        if names:
            logger.info("Ensured indexes on %s: %s", self.collection_name, ", ".join(names))
        return names

    # ----------------- Write path -----------------

    def validate(self, data: Dict[str, Any]) -> Document:
        for fn, _ in self._hooks[Hook.PRE_VALIDATE]:
            data = fn(data)
        return self.schema.model_validate(data)

    def create(self, data: Dict[str, Any]) -> Document:
        """Validate `data` and insert it. Returns the stored document with its id set."""
        return self._persist(self.validate(data))

    def save(self, instance: Document) -> Document:
        """Full save of `instance`: re-validates its current state, then inserts or replaces.

        Returns the persisted copy; `instance` itself is left as it was.
        """
        return self._persist(self.validate(instance.model_dump(by_alias=True)))

    def _persist(self, doc: Document) -> Document:
        for fn, _ in self._hooks[Hook.PRE_SAVE]:
            fn(doc)
        collection = self.collection
        if doc.id is None:
            doc.id = database.create_document(self.collection_name, doc.to_document())
        else:
            collection.replace_one({"_id": doc.id}, doc.to_document(), upsert=True)
            logger.info("Saved %s %s", self.name, doc.id)
        return doc

    # ----------------- Read path -----------------

    def _query(self, op: ReadOp, query: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        query = dict(query or {})
        for fn, ops in self._hooks[Hook.PRE_READ]:
            if op in ops:
                query = fn(query)
        logger.debug("%s.%s %s", self.name, op.value, query)
        return query

    def _projection(self, projection: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not self.hidden:
            return projection
        hidden = {field: 0 for field in self.hidden}
        if projection is None:
            return hidden
        if isinstance(projection, dict) and not any(v for k, v in projection.items() if k != "_id"):
            # exclusion projection: hidden fields stay out
            return {**hidden, **projection}
        return projection

    def find(
        self,
        query: Optional[Dict[str, Any]] = None,
        projection: Optional[Dict[str, Any]] = None,
        populate: Iterable[str] = (),
        limit: Optional[int] = None,
        sort: Optional[List[Any]] = None,
    ) -> List[Dict[str, Any]]:
        self._indexed()
        docs = database.get_documents(
            self.collection_name,
            self._query(ReadOp.FIND, query),
            self._projection(projection),
            limit=limit,
            sort=sort,
        )
        return [self.populate(doc, *populate) for doc in docs]

    def find_one(
        self,
        query: Optional[Dict[str, Any]] = None,
        projection: Optional[Dict[str, Any]] = None,
        populate: Iterable[str] = (),
    ) -> Optional[Dict[str, Any]]:
        doc = self.collection.find_one(self._query(ReadOp.FIND_ONE, query), self._projection(projection))
        if doc is None:
            return None
        return self.populate(doc, *populate)

    def find_by_id(self, doc_id: Any, **kwargs) -> Optional[Dict[str, Any]]:
        return self.find_one({"_id": to_object_id(doc_id)}, **kwargs)

    def count_documents(self, query: Optional[Dict[str, Any]] = None) -> int:
        return self.collection.count_documents(self._query(ReadOp.COUNT_DOCUMENTS, query))

    def distinct(self, key: str, query: Optional[Dict[str, Any]] = None) -> List[Any]:
        return self.collection.distinct(key, self._query(ReadOp.DISTINCT, query))

    def find_one_and_update(self, query: Dict[str, Any], update: Dict[str, Any], **kwargs):
        kwargs.setdefault("projection", self._projection(None))
        return self.collection.find_one_and_update(self._query(ReadOp.FIND_ONE_AND_UPDATE, query), update, **kwargs)

    def find_one_and_replace(self, query: Dict[str, Any], replacement: Dict[str, Any], **kwargs):
        kwargs.setdefault("projection", self._projection(None))
        return self.collection.find_one_and_replace(
            self._query(ReadOp.FIND_ONE_AND_REPLACE, query), replacement, **kwargs
        )

    def find_one_and_delete(self, query: Dict[str, Any], **kwargs):
        kwargs.setdefault("projection", self._projection(None))
        return self.collection.find_one_and_delete(self._query(ReadOp.FIND_ONE_AND_DELETE, query), **kwargs)

    def aggregate(self, pipeline: Iterable[Dict[str, Any]], **kwargs) -> List[Dict[str, Any]]:
        stages = list(pipeline)
        for fn, _ in self._hooks[Hook.PRE_AGGREGATE]:
            stages = fn(stages)
        return list(self.collection.aggregate(stages, **kwargs))

    # ----------------- Virtual relations -----------------

    def _virtual(self, path: str) -> VirtualRelation:
        try:
            return self.virtuals[path]
        except KeyError:
            raise KeyError(f"{self.name} has no virtual relation {path!r}") from None

    def relation(self, path: str, parent_id: Any) -> Iterator[Dict[str, Any]]:
        return self._virtual(path).resolve(self.db, parent_id)

    def populate(self, doc: Dict[str, Any], *paths: str) -> Dict[str, Any]:
        """Attach the lazy relations named in `paths` to `doc`."""
        for path in paths:
            virtual = self._virtual(path)
            doc[path] = virtual.resolve(self.db, doc.get(virtual.local_field))
        return doc


tours = Model(
    "Tour",
    Tour,
    "tours",
    indexes=[
        ([("name", ASCENDING)], {"unique": True}),
        ([("price", ASCENDING), ("ratingsAverage", DESCENDING)], {}),
        ([("slug", ASCENDING)], {}),
        ([("location", GEOSPHERE)], {}),
    ],
    virtuals={"reviews": VirtualRelation("reviews", "tour")},
    hidden=("createdAt",),
)
tours.pre(Hook.PRE_SAVE, slugify_name)
tours.pre(Hook.PRE_READ, exclude_secret, ops=READ_OPS)
tours.pre(Hook.PRE_AGGREGATE, hide_secret_stage)

events = Model(
    "Event",
    Event,
    "events",
    indexes=[
        ([("location", GEOSPHERE)], {}),
        ([("startDate", ASCENDING)], {}),
    ],
    virtuals={"reviews": VirtualRelation("participants", "event")},
    hidden=("createdAt",),
)

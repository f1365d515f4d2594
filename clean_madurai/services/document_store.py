from __future__ import annotations

import copy
import datetime as dt
import logging
import queue
import threading
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Protocol, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from clean_madurai.database import session_scope
from clean_madurai.errors import CollaboratorError
from clean_madurai.models import StoredDocument

logger = logging.getLogger(__name__)

Record = tuple[str, dict[str, Any]]
Predicate = Callable[[str, dict[str, Any]], bool]

QUERY_OPS: dict[str, Callable[[Any, Any], bool]] = {
    "==": lambda left, right: left == right,
    "!=": lambda left, right: left != right,
    "in": lambda left, right: left in right,
}


@dataclass(frozen=True)
class Change:
    kind: str  # added/modified/removed
    doc_id: str
    data: dict[str, Any]


@dataclass(frozen=True)
class ChangeSet:
    collection: str
    changes: list[Change] = field(default_factory=list)


class DocumentStore(Protocol):
    supports_subscribe: bool

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...

    def query(self, collection: str, field_name: str, op: str, value: Any) -> list[Record]: ...

    def all(self, collection: str) -> list[Record]: ...

    def create(self, collection: str, fields: dict[str, Any], doc_id: str | None = None) -> str: ...

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...

    def subscribe(self, collections: str | Sequence[str], predicate: Predicate | None = None) -> Iterator[ChangeSet]: ...


def _match(op: str) -> Callable[[Any, Any], bool]:
    try:
        return QUERY_OPS[op]
    except KeyError:
        raise ValueError(f"Unsupported query operator {op!r}; expected one of {sorted(QUERY_OPS)}") from None


def _jsonable(value: Any) -> Any:
    if isinstance(value, dt.datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "value") and isinstance(getattr(value, "value"), (str, int)):
        return value.value  # enums
    return value


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryDocumentStore:
    """Process-local store with push subscriptions. Used by tests and single-process demos."""

    supports_subscribe = True

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._listeners: list[tuple[frozenset[str], Predicate | None, queue.Queue]] = []

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            doc = self._data.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    def all(self, collection: str) -> list[Record]:
        with self._lock:
            return [(k, copy.deepcopy(v)) for k, v in self._data.get(collection, {}).items()]

    def query(self, collection: str, field_name: str, op: str, value: Any) -> list[Record]:
        cmp = _match(op)
        return [(k, v) for k, v in self.all(collection) if cmp(v.get(field_name), value)]

    def create(self, collection: str, fields: dict[str, Any], doc_id: str | None = None) -> str:
        doc_id = doc_id or _new_id()
        with self._lock:
            docs = self._data.setdefault(collection, {})
            if doc_id in docs:
                raise CollaboratorError("already-exists", f"{collection}/{doc_id} already exists")
            docs[doc_id] = copy.deepcopy(fields)
            self._publish(collection, Change("added", doc_id, copy.deepcopy(fields)))
        return doc_id

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        with self._lock:
            doc = self._data.get(collection, {}).get(doc_id)
            if doc is None:
                raise CollaboratorError("not-found", f"{collection}/{doc_id} does not exist")
            doc.update(copy.deepcopy(fields))
            self._publish(collection, Change("modified", doc_id, copy.deepcopy(doc)))

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            doc = self._data.get(collection, {}).pop(doc_id, None)
            if doc is not None:
                self._publish(collection, Change("removed", doc_id, doc))

    def subscribe(self, collections: str | Sequence[str], predicate: Predicate | None = None) -> Iterator[ChangeSet]:
        """
        Lazy stream of change-sets. The first item is the current snapshot of every
        subscribed collection; later items carry one mutation each. Blocks between changes.
        """
        names = frozenset([collections] if isinstance(collections, str) else collections)
        inbox: queue.Queue = queue.Queue()
        with self._lock:
            listener = (names, predicate, inbox)
            self._listeners.append(listener)
            snapshots = [
                ChangeSet(
                    name,
                    [Change("added", k, v) for k, v in self.all(name) if predicate is None or predicate(k, v)],
                )
                for name in sorted(names)
            ]
        return self._stream(listener, snapshots)

    def _stream(self, listener, snapshots: list[ChangeSet]) -> Iterator[ChangeSet]:
        try:
            yield from snapshots
            while True:
                yield listener[2].get()
        finally:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

    def _publish(self, collection: str, change: Change) -> None:
        for names, predicate, inbox in self._listeners:
            if collection not in names:
                continue
            if predicate is not None and not predicate(change.doc_id, change.data):
                continue
            inbox.put(ChangeSet(collection, [change]))


class SqlDocumentStore:
    """
    Document store on top of the SQLAlchemy `documents` table.
    Every call runs in its own short session; database failures surface as CollaboratorError.
    """

    supports_subscribe = False

    def __init__(self, session_factory: sessionmaker) -> None:
        self._factory = session_factory

    def _wrap(self, ex: SQLAlchemyError) -> CollaboratorError:
        if isinstance(ex, IntegrityError):
            return CollaboratorError("already-exists", str(ex))
        if isinstance(ex, OperationalError):
            logger.warning("Document store unavailable: %s", ex)
            return CollaboratorError("unavailable", str(ex))
        logger.exception("Document store failure")
        return CollaboratorError("aborted", str(ex))

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        try:
            with session_scope(self._factory) as db:
                row = db.execute(
                    select(StoredDocument).where(StoredDocument.collection == collection, StoredDocument.doc_id == doc_id)
                ).scalar_one_or_none()
                return dict(row.payload) if row else None
        except SQLAlchemyError as ex:
            raise self._wrap(ex) from ex

    def all(self, collection: str) -> list[Record]:
        try:
            with session_scope(self._factory) as db:
                rows = db.execute(
                    select(StoredDocument).where(StoredDocument.collection == collection).order_by(StoredDocument.seq)
                ).scalars()
                return [(r.doc_id, dict(r.payload)) for r in rows]
        except SQLAlchemyError as ex:
            raise self._wrap(ex) from ex

    def query(self, collection: str, field_name: str, op: str, value: Any) -> list[Record]:
        # JSON payloads are filtered in Python so every operator behaves like the in-memory store.
        cmp = _match(op)
        value = _jsonable(value)
        return [(k, v) for k, v in self.all(collection) if cmp(v.get(field_name), value)]

    def create(self, collection: str, fields: dict[str, Any], doc_id: str | None = None) -> str:
        doc_id = doc_id or _new_id()
        try:
            with session_scope(self._factory) as db:
                db.add(StoredDocument(collection=collection, doc_id=doc_id, payload=_jsonable(fields)))
        except SQLAlchemyError as ex:
            raise self._wrap(ex) from ex
        return doc_id

    def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> None:
        try:
            with session_scope(self._factory) as db:
                row = db.execute(
                    select(StoredDocument).where(StoredDocument.collection == collection, StoredDocument.doc_id == doc_id)
                ).scalar_one_or_none()
                if row is None:
                    raise CollaboratorError("not-found", f"{collection}/{doc_id} does not exist")
                # Reassign so the JSON column is flagged dirty.
                row.payload = {**row.payload, **_jsonable(fields)}
        except SQLAlchemyError as ex:
            raise self._wrap(ex) from ex

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            with session_scope(self._factory) as db:
                row = db.execute(
                    select(StoredDocument).where(StoredDocument.collection == collection, StoredDocument.doc_id == doc_id)
                ).scalar_one_or_none()
                if row is not None:
                    db.delete(row)
        except SQLAlchemyError as ex:
            raise self._wrap(ex) from ex

    def subscribe(self, collections: str | Sequence[str], predicate: Predicate | None = None) -> Iterator[ChangeSet]:
        raise NotImplementedError("SqlDocumentStore has no push subscriptions; poll instead")

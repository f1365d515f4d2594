import datetime as dt

import pytest
from sqlalchemy.orm import sessionmaker

from clean_madurai.database import make_engine
from clean_madurai.domain import Complaint
from clean_madurai.errors import CollaboratorError
from clean_madurai.models import Base
from clean_madurai.services.document_store import SqlDocumentStore


@pytest.fixture
def sql_store():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield SqlDocumentStore(sessionmaker(bind=engine, autoflush=False, future=True))
    engine.dispose()


def test_create_get_update(sql_store):
    created_at = dt.datetime(2026, 10, 19, 9, 0, tzinfo=dt.timezone.utc)
    doc_id = sql_store.create("complaints", {"ward": "Ward 5", "status": "Pending", "createdAt": created_at})
    sql_store.update("complaints", doc_id, {"status": "In Progress"})

    data = sql_store.get("complaints", doc_id)
    assert data["status"] == "In Progress"
    assert data["ward"] == "Ward 5"
    assert Complaint.from_record(doc_id, data).created_at == created_at


def test_query_keeps_insertion_order(sql_store):
    for doc_id, ward in (("z", "Ward 5"), ("a", "Ward 6"), ("m", "Ward 5")):
        sql_store.create("complaints", {"ward": ward}, doc_id=doc_id)
    assert [k for k, _ in sql_store.query("complaints", "ward", "==", "Ward 5")] == ["z", "m"]
    assert [k for k, _ in sql_store.query("complaints", "ward", "in", ["Ward 6"])] == ["a"]
    assert [k for k, _ in sql_store.query("complaints", "ward", "!=", "Ward 5")] == ["a"]


def test_duplicate_id_and_missing_update(sql_store):
    sql_store.create("users", {"email": "a@b.co"}, doc_id="u1")
    with pytest.raises(CollaboratorError) as ex:
        sql_store.create("users", {"email": "a@b.co"}, doc_id="u1")
    assert ex.value.code == "already-exists"
    with pytest.raises(CollaboratorError) as ex:
        sql_store.update("users", "u2", {"name": "x"})
    assert ex.value.code == "not-found"


def test_delete_and_no_subscriptions(sql_store):
    sql_store.create("sessions", {"uid": "u1"}, doc_id="s1")
    sql_store.delete("sessions", "s1")
    sql_store.delete("sessions", "s1")
    assert sql_store.get("sessions", "s1") is None
    assert sql_store.supports_subscribe is False
    with pytest.raises(NotImplementedError):
        sql_store.subscribe("complaints")

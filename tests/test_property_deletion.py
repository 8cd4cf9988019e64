# tests/test_property_deletion.py
from __future__ import annotations

from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from disclosure.config import settings
from disclosure.domain.audit import audit_trail
from disclosure.models import AuditEvent, Document, Form2Version, Invite, Property, ServePack

from conftest import AGENT_A, AGENT_B, OTHER_ORG_ADMIN, SELLER, create_property, me, upload


def _populate(client) -> int:
    pid = create_property(client, AGENT_A)["id"]
    upload(client, AGENT_A, pid, "title_search", name="t.pdf")
    upload(client, AGENT_A, pid, "smoke_alarm", name="s.pdf")
    client.post(f"/api/properties/{pid}/form2/build", headers=AGENT_A)
    client.post(f"/api/properties/{pid}/serve/build", headers=AGENT_A)
    client.post(f"/api/properties/{pid}/invite", json={"email": "seller@acme.test"}, headers=AGENT_A)
    return pid


def _count(db, model) -> int:
    return db.scalar(select(func.count()).select_from(model))


def _assert_metadata_gone(db, pid: int) -> None:
    assert db.get(Property, pid) is None
    for model in (Document, Form2Version, ServePack, Invite):
        assert _count(db, model) == 0


def test_delete_removes_blobs_and_metadata(client, store, db):
    pid = _populate(client)
    assert len(store.objects) == 4

    r = client.delete(f"/api/properties/{pid}", headers=AGENT_A)
    assert r.status_code == 200, r.text
    body = r.json()
    assert (body["blob_keys"], body["blob_failures"], body["warnings"]) == (4, 0, [])
    assert store.objects == {}
    _assert_metadata_gone(db, pid)

    assert client.get(f"/api/properties/{pid}", headers=AGENT_A).status_code == 404
    org_id = me(client, AGENT_A)["org_id"]
    actions = [e.action for e in audit_trail(db, org_id=org_id, entity_type="property", entity_id=pid)]
    assert actions[0] == "property.create"
    assert actions[-1] == "property.delete"


def test_blob_failures_do_not_block_metadata_delete(client, store, db, monkeypatch):
    monkeypatch.setattr(settings, "delete_batch_size", 2)
    pid = _populate(client)
    store.fail_batches = 1

    r = client.delete(f"/api/properties/{pid}", headers=AGENT_A)
    assert r.status_code == 200
    body = r.json()
    assert body["blob_failures"] == 2
    assert len(body["warnings"]) == 1
    assert [len(b) for b in store.batches] == [2, 2]
    assert len(store.objects) == 2
    _assert_metadata_gone(db, pid)


def test_refused_keys_are_reported(client, store, db):
    pid = _populate(client)
    store.refuse = {k for k in store.objects if k.endswith(".zip")}

    body = client.delete(f"/api/properties/{pid}", headers=AGENT_A).json()
    assert body["blob_failures"] == 1
    _assert_metadata_gone(db, pid)


def test_only_permitted_callers_delete(client, store):
    pid = _populate(client)
    for h in (SELLER, AGENT_B, OTHER_ORG_ADMIN):
        assert client.delete(f"/api/properties/{pid}", headers=h).status_code == 403
    assert store.batches == []
    assert client.delete("/api/properties/999", headers=AGENT_A).status_code == 404


def test_failed_metadata_transaction_keeps_every_row(client, store, db):
    pid = _populate(client)
    docs_before = _count(db, Document)

    def fail_delete_commit(session, flush_context, instances):
        if any(isinstance(o, AuditEvent) and o.action == "property.delete" for o in session.new):
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    event.listen(Session, "before_flush", fail_delete_commit)
    try:
        r = client.delete(f"/api/properties/{pid}", headers=AGENT_A)
    finally:
        event.remove(Session, "before_flush", fail_delete_commit)

    assert r.status_code == 503
    assert r.json()["error"]["kind"] == "dependency_unavailable"

    # blobs are purged first and best-effort; rows survive the rollback
    assert store.objects == {}
    assert db.get(Property, pid) is not None
    assert _count(db, Document) == docs_before
    assert _count(db, Form2Version) == 1
    assert _count(db, ServePack) == 1
    assert _count(db, Invite) == 1
    assert client.get(f"/api/properties/{pid}", headers=AGENT_A).status_code == 200

# tests/test_form2_versions.py
from __future__ import annotations

import json
from datetime import datetime, timedelta

from sqlalchemy import event, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from disclosure.db import SessionLocal
from disclosure.models import ArtifactLock, Form2Version
from disclosure.services import artifact_service
from disclosure.services.locks_service import acquire_lock, steal_expired_lock

from conftest import AGENT_A, SELLER, create_property, upload


def _build(client, pid, h=AGENT_A):
    return client.post(f"/api/properties/{pid}/form2/build", headers=h)


def test_versions_increase_and_latest_wins(client, renderer, store):
    p = create_property(client, AGENT_A)
    v1 = _build(client, p["id"])
    v2 = _build(client, p["id"])
    assert v1.status_code == 201, v1.text
    assert (v1.json()["version"], v2.json()["version"]) == (1, 2)

    latest = client.get(f"/api/properties/{p['id']}/form2/latest", headers=AGENT_A).json()
    assert latest["id"] == v2.json()["id"]

    assert len(renderer.calls) == 2
    assert len([k for k in store.objects if "/form2/" in k]) == 2


def test_checklist_is_snapshotted_per_version(client, db):
    p = create_property(client, AGENT_A)
    upload(client, AGENT_A, p["id"], "title_search")
    v1 = _build(client, p["id"]).json()
    upload(client, AGENT_A, p["id"], "smoke_alarm")
    v2 = _build(client, p["id"]).json()

    def status(v):
        return {i["id"]: i["complete"] for i in v["checklist"]}

    assert status(v1)["smoke_alarm"] is False
    assert status(v2)["smoke_alarm"] is True

    row = db.get(Form2Version, v1["id"])
    assert {i["id"]: i["complete"] for i in json.loads(row.checklist_json)}["smoke_alarm"] is False


def test_render_html_carries_property_and_checklist(client, renderer):
    p = create_property(client, AGENT_A, title="<b>Bay View</b>")
    _build(client, p["id"])
    html = renderer.calls[0]
    assert "&lt;b&gt;Bay View&lt;/b&gt;" in html
    assert "Title Search" in html


def test_render_timeout_leaves_no_version(client, renderer, store, db):
    renderer.timeout = True
    p = create_property(client, AGENT_A)
    r = _build(client, p["id"])
    assert r.status_code == 504
    assert r.json()["error"]["kind"] == "render_timeout"
    assert db.scalar(select(func.count()).select_from(Form2Version)) == 0
    assert not [k for k in store.objects if "/form2/" in k]

    # the lock was released; a later build succeeds
    renderer.timeout = False
    assert _build(client, p["id"]).json()["version"] == 1


def test_concurrent_build_is_conflict(client, db):
    p = create_property(client, AGENT_A)
    assert acquire_lock(db, property_id=p["id"], lock_key="form2", owner="other-builder", ttl_seconds=60)
    r = _build(client, p["id"])
    assert r.status_code == 409
    assert r.json()["error"]["kind"] == "conflict"


def test_seller_reads_but_cannot_build(client):
    p = create_property(client, AGENT_A)
    v = _build(client, p["id"]).json()
    token = client.post(f"/api/properties/{p['id']}/invite", json={"email": "seller@acme.test"}, headers=AGENT_A).json()["token"]
    client.post(f"/api/invites/{token}/accept", headers=SELLER)

    assert _build(client, p["id"], h=SELLER).status_code == 403

    r = client.get(f"/api/form2/{v['id']}/download", headers=SELLER)
    assert r.status_code == 200
    assert r.headers["content-type"] == "application/pdf"
    assert r.content.startswith(b"%PDF")


def test_latest_without_versions_is_not_found(client):
    p = create_property(client, AGENT_A)
    assert client.get(f"/api/properties/{p['id']}/form2/latest", headers=AGENT_A).status_code == 404


def test_blob_write_failure_records_no_version(client, store, db):
    p = create_property(client, AGENT_A)
    store.fail_puts = True

    r = _build(client, p["id"])
    assert r.status_code == 503
    assert r.json()["error"]["kind"] == "dependency_unavailable"
    assert db.scalar(select(func.count()).select_from(Form2Version)) == 0
    assert store.objects == {}

    store.fail_puts = False
    assert _build(client, p["id"]).json()["version"] == 1


def test_version_clash_discards_orphan_blob(client, store, db, monkeypatch):
    p = create_property(client, AGENT_A)
    _build(client, p["id"])
    kept = db.scalar(select(Form2Version.pdf_key))

    # both builders computed the same next version
    monkeypatch.setattr(artifact_service, "next_version", lambda db, model, *, property_id: 1)
    r = _build(client, p["id"])
    assert r.status_code == 409
    assert r.json()["error"]["kind"] == "conflict"

    assert [k for k in store.objects if "/form2/" in k] == [kept]
    assert len(store.batches) == 1 and store.batches[0] != [kept]
    assert db.scalar(select(func.count()).select_from(Form2Version)) == 1

    monkeypatch.undo()
    assert _build(client, p["id"]).json()["version"] == 2


def test_metadata_write_failure_discards_orphan_blob(client, store, db):
    p = create_property(client, AGENT_A)

    def refuse_form2_rows(session, flush_context, instances):
        if any(isinstance(o, Form2Version) for o in session.new):
            raise OperationalError("INSERT INTO form2_versions", {}, Exception("database is locked"))

    event.listen(Session, "before_flush", refuse_form2_rows)
    try:
        r = _build(client, p["id"])
    finally:
        event.remove(Session, "before_flush", refuse_form2_rows)

    assert r.status_code == 503
    assert r.json()["error"]["kind"] == "dependency_unavailable"
    assert [k for k in store.objects if "/form2/" in k] == []
    assert len(store.batches) == 1
    assert db.scalar(select(func.count()).select_from(Form2Version)) == 0


def test_expired_lock_is_stolen_by_one_builder_only(client):
    p = create_property(client, AGENT_A)
    s0, s1, s2 = SessionLocal(), SessionLocal(), SessionLocal()
    try:
        assert acquire_lock(s0, property_id=p["id"], lock_key="form2", owner="crashed", ttl_seconds=-5)
        lookup = select(ArtifactLock).where(ArtifactLock.property_id == p["id"], ArtifactLock.lock_key == "form2")
        seen1, seen2 = s1.scalar(lookup), s2.scalar(lookup)
        expires = datetime.utcnow() + timedelta(seconds=60)

        assert steal_expired_lock(s1, seen1, owner="builder-1", expires=expires)
        assert not steal_expired_lock(s2, seen2, owner="builder-2", expires=expires)
        assert seen2.owner == "builder-1"
    finally:
        for s in (s0, s1, s2):
            s.close()

    # builder-1 now holds a live lock
    assert _build(client, p["id"]).status_code == 409


def test_unreadable_checklist_snapshot_reads_as_empty(client, db):
    p = create_property(client, AGENT_A)
    v = _build(client, p["id"]).json()
    row = db.get(Form2Version, v["id"])
    row.checklist_json = "{not json"
    db.commit()

    latest = client.get(f"/api/properties/{p['id']}/form2/latest", headers=AGENT_A)
    assert latest.status_code == 200
    assert latest.json()["checklist"] == []

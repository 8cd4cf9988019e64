# disclosure/services/artifact_service.py
"""
Versioned derived artifacts: the Form 2 disclosure PDF and the serve pack zip.

Both follow render -> store blob -> next version -> insert row. The blob is
only written after rendering succeeded, and the metadata insert is the last
step. Builds for one property are serialized by an advisory lock; the
(property_id, version) unique constraint catches anything that slips past.
"""
from __future__ import annotations

import json
import logging
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..clients.archiver import Archiver
from ..clients.object_store import ObjectStore, StoredObject
from ..clients.renderer import Renderer
from ..config import settings
from ..domain.access import Action, Caller
from ..domain.audit import audit_write
from ..domain.checklist import ChecklistItem, build_checklist, required_kinds
from ..domain.form2 import form2_html
from ..errors import Conflict, DependencyUnavailable, NotFound, PreconditionFailed
from ..models import Document, Form2Version, Property, ServePack
from .locks_service import property_build_lock
from .ownership import authorize_property

log = logging.getLogger("disclosure.artifacts")

FORM2_LOCK = "form2"
SERVE_LOCK = "serve"

_UNSAFE_NAME = re.compile(r"[^\w.\-]+", re.ASCII)


def safe_filename(name: str) -> str:
    return _UNSAFE_NAME.sub("_", name or "") or "file"


def _epoch_ms() -> int:
    return int(time.time() * 1000)


def present_kinds(db: Session, *, property_id: int) -> set[str]:
    return set(db.scalars(select(Document.kind).where(Document.property_id == property_id).distinct()).all())


def property_checklist(db: Session, prop: Property) -> list[ChecklistItem]:
    return build_checklist(prop.property_type, present_kinds(db, property_id=prop.id))


def next_version(db: Session, model, *, property_id: int) -> int:
    current = db.scalar(select(func.max(model.version)).where(model.property_id == property_id))
    return int(current or 0) + 1


def _discard_blob(store: ObjectStore, key: str) -> None:
    try:
        failed = store.delete_batch([key])
    except DependencyUnavailable as e:
        log.warning("could not remove orphan blob %s: %s", key, e)
        return
    if failed:
        log.warning("could not remove orphan blob %s", key)


def _insert_artifact_row(db: Session, row, *, store: ObjectStore, blob_key: str) -> None:
    db.add(row)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        _discard_blob(store, blob_key)
        raise Conflict("artifact version already exists; retry the build") from e
    except SQLAlchemyError as e:
        db.rollback()
        _discard_blob(store, blob_key)
        log.exception("artifact metadata write failed")
        raise DependencyUnavailable("metadata store write failed") from e


# -------------------------
# Form 2 (disclosure document)
# -------------------------
def build_form2_version(
    db: Session,
    caller: Caller,
    *,
    property_id: int,
    store: ObjectStore,
    renderer: Renderer,
    now: Optional[datetime] = None,
) -> Form2Version:
    prop = authorize_property(db, caller, property_id=property_id, action=Action.generate)
    owner = f"user:{caller.user_id}:{uuid.uuid4().hex[:8]}"

    with property_build_lock(
        db,
        property_id=prop.id,
        lock_key=FORM2_LOCK,
        owner=owner,
        ttl_seconds=settings.artifact_lock_ttl_seconds,
    ):
        checklist = property_checklist(db, prop)
        html = form2_html(prop, checklist, generated_at=now or datetime.utcnow())
        pdf = renderer.render_pdf(html, timeout_seconds=settings.render_timeout_seconds)

        key = f"{prop.id}/form2/{_epoch_ms()}_{uuid.uuid4().hex[:8]}.pdf"
        store.put(key, pdf, "application/pdf")

        version = next_version(db, Form2Version, property_id=prop.id)
        row = Form2Version(
            property_id=prop.id,
            version=version,
            checklist_json=json.dumps([i.to_dict() for i in checklist]),
            pdf_key=key,
            content_type="application/pdf",
            created_at=datetime.utcnow(),
        )
        audit_write(
            db,
            org_id=caller.org_id,
            actor_user_id=caller.user_id,
            action="form2.build",
            entity_type="property",
            entity_id=prop.id,
            after={"version": version, "pdf_key": key},
        )
        _insert_artifact_row(db, row, store=store, blob_key=key)

    log.info("form2 built", extra={"org_id": caller.org_id, "property_id": prop.id, "version": row.version})
    return row


def latest_form2(db: Session, *, property_id: int) -> Optional[Form2Version]:
    return db.scalar(
        select(Form2Version)
        .where(Form2Version.property_id == property_id)
        .order_by(desc(Form2Version.version))
        .limit(1)
    )


def get_latest_form2(db: Session, caller: Caller, *, property_id: int) -> Form2Version:
    authorize_property(db, caller, property_id=property_id, action=Action.read)
    row = latest_form2(db, property_id=property_id)
    if row is None:
        raise NotFound("no disclosure document versions")
    return row


def open_form2_download(db: Session, caller: Caller, *, version_id: int, store: ObjectStore) -> tuple[Form2Version, StoredObject]:
    row = db.get(Form2Version, version_id)
    if row is None:
        raise NotFound("disclosure document not found")
    authorize_property(db, caller, property_id=row.property_id, action=Action.read)
    obj = store.get(row.pdf_key)
    obj.content_type = row.content_type or obj.content_type
    return row, obj


# -------------------------
# Serve pack
# -------------------------
@dataclass(frozen=True)
class ServePackPlan:
    included_kinds: list[str]
    documents: list[Document]
    form2: Form2Version

    def manifest(self) -> dict[str, Any]:
        return {
            "included_kinds": self.included_kinds,
            "documents": [{"id": d.id, "kind": d.kind, "filename": d.filename} for d in self.documents],
            "form2_version": self.form2.version,
        }

    def entry_names(self) -> list[str]:
        names = [f"documents/{d.kind}__{safe_filename(d.filename)}" for d in self.documents]
        names.append(f"Form2_v{self.form2.version}.pdf")
        return names


def plan_serve_pack(db: Session, prop: Property) -> ServePackPlan:
    form2 = latest_form2(db, property_id=prop.id)
    if form2 is None:
        raise PreconditionFailed("no_disclosure_yet: generate a disclosure document first")

    kinds = required_kinds(property_checklist(db, prop))
    chosen: list[Document] = []
    for kind in kinds:
        # most recent upload of each required kind; ties broken by id
        doc = db.scalar(
            select(Document)
            .where(Document.property_id == prop.id, Document.kind == kind)
            .order_by(desc(Document.created_at), desc(Document.id))
            .limit(1)
        )
        if doc is not None:
            chosen.append(doc)

    return ServePackPlan(included_kinds=kinds, documents=chosen, form2=form2)


def build_serve_pack(
    db: Session,
    caller: Caller,
    *,
    property_id: int,
    store: ObjectStore,
    archiver: Archiver,
) -> ServePack:
    prop = authorize_property(db, caller, property_id=property_id, action=Action.generate)
    owner = f"user:{caller.user_id}:{uuid.uuid4().hex[:8]}"

    with property_build_lock(
        db,
        property_id=prop.id,
        lock_key=SERVE_LOCK,
        owner=owner,
        ttl_seconds=settings.artifact_lock_ttl_seconds,
    ):
        plan = plan_serve_pack(db, prop)

        keys = [d.storage_key for d in plan.documents] + [plan.form2.pdf_key]
        sources = [store.get(k) for k in keys]
        try:
            archive = archiver.build((src.body, name) for src, name in zip(sources, plan.entry_names()))
        except (OSError, ValueError) as e:
            log.error("serve pack archive failed: %s", e)
            raise DependencyUnavailable("archive build failed") from e

        key = f"{prop.id}/serve/{_epoch_ms()}_{uuid.uuid4().hex[:8]}.zip"
        store.put(key, archive, "application/zip")

        version = next_version(db, ServePack, property_id=prop.id)
        row = ServePack(
            property_id=prop.id,
            version=version,
            manifest_json=json.dumps(plan.manifest()),
            zip_key=key,
            content_type="application/zip",
            created_at=datetime.utcnow(),
        )
        audit_write(
            db,
            org_id=caller.org_id,
            actor_user_id=caller.user_id,
            action="serve_pack.build",
            entity_type="property",
            entity_id=prop.id,
            after={"version": version, "zip_key": key, "form2_version": plan.form2.version},
        )
        _insert_artifact_row(db, row, store=store, blob_key=key)

    log.info("serve pack built", extra={"org_id": caller.org_id, "property_id": prop.id, "version": row.version})
    return row


def get_latest_serve_pack(db: Session, caller: Caller, *, property_id: int) -> ServePack:
    authorize_property(db, caller, property_id=property_id, action=Action.read)
    row = db.scalar(
        select(ServePack)
        .where(ServePack.property_id == property_id)
        .order_by(desc(ServePack.version))
        .limit(1)
    )
    if row is None:
        raise NotFound("no serve pack")
    return row


def open_serve_pack_download(db: Session, caller: Caller, *, pack_id: int, store: ObjectStore) -> tuple[ServePack, StoredObject]:
    row = db.get(ServePack, pack_id)
    if row is None:
        raise NotFound("serve pack not found")
    authorize_property(db, caller, property_id=row.property_id, action=Action.read)
    obj = store.get(row.zip_key)
    obj.content_type = row.content_type or obj.content_type
    return row, obj

# disclosure/services/document_service.py
from __future__ import annotations

import hashlib
import logging
import time
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..clients.object_store import ObjectStore, StoredObject
from ..config import settings
from ..domain.access import Action, Caller
from ..domain.audit import audit_write
from ..errors import DependencyUnavailable, NotFound, ValidationError
from ..models import Document
from .artifact_service import safe_filename
from .ownership import authorize_property

log = logging.getLogger("disclosure.documents")

DEFAULT_KIND = "supporting"


def normalize_kind(kind: Optional[str]) -> str:
    k = (kind or "").strip().lower()
    return k or DEFAULT_KIND


def upload_document(
    db: Session,
    caller: Caller,
    *,
    property_id: int,
    kind: Optional[str],
    filename: str,
    content_type: Optional[str],
    data: bytes,
    store: ObjectStore,
) -> Document:
    prop = authorize_property(db, caller, property_id=property_id, action=Action.upload)

    ctype = (content_type or "").split(";")[0].strip().lower()
    if ctype not in settings.allowed_upload_types():
        raise ValidationError(f"unsupported content type: {ctype or 'unknown'}")
    if not data:
        raise ValidationError("empty file")
    if len(data) > int(settings.upload_max_bytes):
        raise ValidationError(f"file too large (limit {settings.upload_max_bytes} bytes)")

    name = (filename or "").strip() or "upload"
    key = f"{prop.id}/{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}_{safe_filename(name)}"
    store.put(key, data, ctype)

    doc = Document(
        property_id=prop.id,
        kind=normalize_kind(kind),
        filename=name,
        content_type=ctype,
        sha256=hashlib.sha256(data).hexdigest(),
        size_bytes=len(data),
        storage_key=key,
        created_at=datetime.utcnow(),
    )
    db.add(doc)
    audit_write(
        db,
        org_id=caller.org_id,
        actor_user_id=caller.user_id,
        action="document.upload",
        entity_type="property",
        entity_id=prop.id,
        after={"kind": doc.kind, "filename": name, "sha256": doc.sha256},
    )
    db.commit()
    log.info("document uploaded", extra={"org_id": caller.org_id, "property_id": prop.id})
    return doc


def list_documents(db: Session, caller: Caller, *, property_id: int) -> list[Document]:
    authorize_property(db, caller, property_id=property_id, action=Action.read)
    return list(
        db.scalars(
            select(Document)
            .where(Document.property_id == property_id)
            .order_by(desc(Document.created_at), desc(Document.id))
        ).all()
    )


def _must_get_document(db: Session, document_id: int) -> Document:
    doc = db.get(Document, document_id)
    if doc is None:
        raise NotFound("document not found")
    return doc


def open_document_download(db: Session, caller: Caller, *, document_id: int, store: ObjectStore) -> tuple[Document, StoredObject]:
    doc = _must_get_document(db, document_id)
    authorize_property(db, caller, property_id=doc.property_id, action=Action.read)
    obj = store.get(doc.storage_key)
    obj.content_type = doc.content_type or obj.content_type
    return doc, obj


def delete_document(db: Session, caller: Caller, *, document_id: int, store: ObjectStore) -> list[str]:
    """Returns warnings from the best-effort blob delete."""
    doc = _must_get_document(db, document_id)
    authorize_property(db, caller, property_id=doc.property_id, action=Action.update)

    warnings: list[str] = []
    try:
        failed = store.delete_batch([doc.storage_key])
        if failed:
            warnings.append("stored file could not be removed")
    except DependencyUnavailable as e:
        log.warning("document blob delete failed: %s", e, extra={"property_id": doc.property_id})
        warnings.append("stored file could not be removed")

    audit_write(
        db,
        org_id=caller.org_id,
        actor_user_id=caller.user_id,
        action="document.delete",
        entity_type="property",
        entity_id=doc.property_id,
        before={"document_id": doc.id, "kind": doc.kind, "filename": doc.filename},
    )
    db.delete(doc)
    db.commit()
    return warnings

# disclosure/services/deletion_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..clients.object_store import ObjectStore
from ..config import settings
from ..domain.access import Action, Caller
from ..domain.audit import audit_write
from ..errors import DependencyUnavailable
from ..models import ArtifactLock, Document, Form2Version, Invite, Property, ServePack
from .ownership import authorize_property

log = logging.getLogger("disclosure.deletion")


@dataclass
class DeletionReport:
    property_id: int
    blob_keys: int = 0
    blob_failures: int = 0
    warnings: list[str] = field(default_factory=list)


def property_blob_keys(db: Session, *, property_id: int) -> list[str]:
    keys: list[str] = []
    keys += db.scalars(select(Document.storage_key).where(Document.property_id == property_id)).all()
    keys += db.scalars(select(Form2Version.pdf_key).where(Form2Version.property_id == property_id)).all()
    keys += db.scalars(select(ServePack.zip_key).where(ServePack.property_id == property_id)).all()
    return [k for k in keys if k]


def _chunks(items: list[str], size: int):
    for i in range(0, len(items), size):
        yield items[i : i + size]


def purge_blobs(store: ObjectStore, keys: list[str], *, batch_size: int, report: DeletionReport) -> None:
    """Best effort: a failing batch is logged and skipped, never raised."""
    for chunk in _chunks(keys, batch_size):
        try:
            failed = store.delete_batch(chunk)
        except DependencyUnavailable as e:
            log.warning("blob batch delete failed (%d keys): %s", len(chunk), e, extra={"property_id": report.property_id})
            report.blob_failures += len(chunk)
            report.warnings.append(f"storage delete failed for {len(chunk)} objects")
            continue
        if failed:
            log.warning("blob delete refused for %d keys", len(failed), extra={"property_id": report.property_id})
            report.blob_failures += len(failed)
            report.warnings.append(f"storage refused to delete {len(failed)} objects")


def delete_property(db: Session, caller: Caller, *, property_id: int, store: ObjectStore) -> DeletionReport:
    prop = authorize_property(db, caller, property_id=property_id, action=Action.delete)
    report = DeletionReport(property_id=prop.id)

    keys = property_blob_keys(db, property_id=prop.id)
    report.blob_keys = len(keys)
    purge_blobs(store, keys, batch_size=settings.delete_batch_size, report=report)

    before = {"title": prop.title, "address": prop.address, "blob_keys": len(keys)}

    # One transaction: either every row goes or none does.
    try:
        db.execute(delete(Document).where(Document.property_id == prop.id))
        db.execute(delete(Form2Version).where(Form2Version.property_id == prop.id))
        db.execute(delete(ServePack).where(ServePack.property_id == prop.id))
        db.execute(delete(Invite).where(Invite.property_id == prop.id))
        db.execute(delete(ArtifactLock).where(ArtifactLock.property_id == prop.id))
        db.execute(delete(Property).where(Property.id == prop.id))
        audit_write(
            db,
            org_id=caller.org_id,
            actor_user_id=caller.user_id,
            action="property.delete",
            entity_type="property",
            entity_id=prop.id,
            before=before,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        log.exception("property metadata delete failed", extra={"property_id": report.property_id})
        raise DependencyUnavailable("property deletion failed; storage may already be partially cleaned") from e

    log.info(
        "property deleted",
        extra={"org_id": caller.org_id, "user_id": caller.user_id, "property_id": report.property_id},
    )
    return report

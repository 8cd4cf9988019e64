# disclosure/services/locks_service.py
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Iterator

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import Conflict
from ..models import ArtifactLock


def _now() -> datetime:
    return datetime.utcnow()


def acquire_lock(db: Session, *, property_id: int, lock_key: str, owner: str | None, ttl_seconds: int) -> bool:
    """
    Advisory lock in DB. Commits so other sessions see it immediately.
    - returns True if lock acquired/renewed
    - returns False if held by someone else (and not expired)
    """
    expires = _now() + timedelta(seconds=int(ttl_seconds))

    row = db.scalar(select(ArtifactLock).where(ArtifactLock.property_id == int(property_id), ArtifactLock.lock_key == lock_key))
    if row is None:
        db.add(ArtifactLock(property_id=int(property_id), lock_key=lock_key, owner=owner, expires_at=expires, created_at=_now()))
        try:
            db.commit()
        except IntegrityError:
            # another builder inserted the row first
            db.rollback()
            return False
        return True

    # expired => steal
    if row.expires_at and row.expires_at <= _now():
        return steal_expired_lock(db, row, owner=owner, expires=expires)

    # held by same owner => renew
    if (row.owner or "") == (owner or ""):
        row.expires_at = expires
        db.add(row)
        db.commit()
        return True

    return False


def steal_expired_lock(db: Session, row: ArtifactLock, *, owner: str | None, expires: datetime) -> bool:
    """Compare-and-set on the owner we observed; False if another builder got there first."""
    owner_seen = ArtifactLock.owner.is_(None) if row.owner is None else ArtifactLock.owner == row.owner
    res = db.execute(
        update(ArtifactLock)
        .where(ArtifactLock.id == row.id, ArtifactLock.expires_at <= _now(), owner_seen)
        .values(owner=owner, expires_at=expires)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.expire(row)
    return res.rowcount == 1


def release_lock(db: Session, *, property_id: int, lock_key: str, owner: str | None) -> bool:
    row = db.scalar(select(ArtifactLock).where(ArtifactLock.property_id == int(property_id), ArtifactLock.lock_key == lock_key))
    if row is None:
        return True
    if owner and (row.owner or "") != owner:
        # don't release someone else's lock
        return False
    row.expires_at = _now() - timedelta(seconds=1)
    db.add(row)
    db.commit()
    return True


@contextmanager
def property_build_lock(db: Session, *, property_id: int, lock_key: str, owner: str, ttl_seconds: int) -> Iterator[None]:
    if not acquire_lock(db, property_id=property_id, lock_key=lock_key, owner=owner, ttl_seconds=ttl_seconds):
        raise Conflict(f"a {lock_key} build is already running for this property")
    try:
        yield
    finally:
        db.rollback()
        release_lock(db, property_id=property_id, lock_key=lock_key, owner=owner)

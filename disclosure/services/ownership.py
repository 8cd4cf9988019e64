# disclosure/services/ownership.py
from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..domain.access import Action, Caller, Decision, evaluate
from ..errors import Forbidden, NotFound
from ..models import AppUser, Property

log = logging.getLogger("disclosure.access")


def must_get_property(db: Session, *, property_id: int) -> Property:
    row = db.scalar(select(Property).where(Property.id == property_id))
    if not row:
        raise NotFound("property not found")
    return row


def authorize_property(db: Session, caller: Caller, *, property_id: int, action: Action) -> Property:
    """Existence is checked before any ownership rule runs."""
    prop = must_get_property(db, property_id=property_id)
    if evaluate(caller, prop, action) is Decision.deny:
        log.info(
            "access denied action=%s",
            action.value,
            extra={"org_id": caller.org_id, "user_id": caller.user_id, "property_id": prop.id},
        )
        raise Forbidden()
    return prop


def get_org_user_by_email(db: Session, *, org_id: int, email: str) -> AppUser | None:
    email = (email or "").strip().lower()
    if not email:
        return None
    return db.scalar(
        select(AppUser).where(AppUser.org_id == org_id, AppUser.email == email).order_by(AppUser.id).limit(1)
    )

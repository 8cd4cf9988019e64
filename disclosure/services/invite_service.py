# disclosure/services/invite_service.py
"""
Invite lifecycle: pending -> accepted | expired.

Expiry is derived from ``expires_at`` at read time and never stored. Both
terminal states are final.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..clients.mailer import Mailer, MailDeliveryError
from ..config import settings
from ..domain.access import Action, Caller, Role, can_issue_invite
from ..domain.audit import audit_write
from ..errors import (
    AlreadyAccepted,
    EmailMismatch,
    Expired,
    Forbidden,
    NotFound,
    ValidationError,
    WrongOrg,
)
from ..models import Invite, Property
from .ownership import authorize_property

log = logging.getLogger("disclosure.invites")


class InviteState(str, Enum):
    pending = "pending"
    accepted = "accepted"
    expired = "expired"


def _now() -> datetime:
    return datetime.utcnow()


def new_token() -> str:
    return secrets.token_hex(24)


def invite_link(token: str) -> str:
    return f"{settings.app_origin.rstrip('/')}/invite/{token}"


def invite_state(inv: Invite, *, now: Optional[datetime] = None) -> InviteState:
    # accepted wins over expired: an accepted invite stays accepted forever
    if inv.accepted_at is not None:
        return InviteState.accepted
    if inv.expires_at <= (now or _now()):
        return InviteState.expired
    return InviteState.pending


def _ensure_pending(inv: Invite, now: datetime) -> None:
    state = invite_state(inv, now=now)
    if state is InviteState.accepted:
        raise AlreadyAccepted()
    if state is InviteState.expired:
        raise Expired()


def normalize_invite_email(raw: Any) -> str:
    if not isinstance(raw, str):
        raise ValidationError("email_must_be_string")
    email = raw.strip().lower()
    if not email:
        raise ValidationError("email_required")
    if "@" not in email:
        raise ValidationError("email_invalid")
    return email


def normalize_invite_role(raw: Any) -> Role:
    if raw is None or raw == "":
        return Role.seller
    if not isinstance(raw, str):
        raise ValidationError("role_must_be_string")
    try:
        return Role(raw.strip())
    except ValueError:
        raise ValidationError(f"unknown role: {raw}")


@dataclass
class IssuedInvite:
    invite: Invite
    link: str
    email_sent: bool
    warnings: list[str] = field(default_factory=list)


def issue_invite(
    db: Session,
    caller: Caller,
    *,
    property_id: int,
    email: Any,
    role: Any = None,
    mailer: Mailer,
    now: Optional[datetime] = None,
) -> IssuedInvite:
    prop = authorize_property(db, caller, property_id=property_id, action=Action.invite)
    if not can_issue_invite(caller, prop):
        raise Forbidden()

    target_email = normalize_invite_email(email)
    target_role = normalize_invite_role(role)
    now = now or _now()

    # Authoritative phase
    inv = Invite(
        token=new_token(),
        org_id=prop.org_id,
        property_id=prop.id,
        created_by_user_id=caller.user_id,
        email=target_email,
        role=target_role.value,
        created_at=now,
        expires_at=now + timedelta(days=int(settings.invite_ttl_days)),
    )
    db.add(inv)
    audit_write(
        db,
        org_id=caller.org_id,
        actor_user_id=caller.user_id,
        action="invite.issue",
        entity_type="property",
        entity_id=prop.id,
        after={"email": target_email, "role": target_role.value},
    )
    db.commit()

    # Best-effort phase: the invite stays valid even if delivery fails
    link = invite_link(inv.token)
    out = IssuedInvite(invite=inv, link=link, email_sent=False)
    try:
        mailer.send_invite(target_email, link)
        out.email_sent = True
    except MailDeliveryError as e:
        log.warning("invite email failed: %s", e, extra={"org_id": caller.org_id, "property_id": prop.id, "invite_id": inv.id})
        out.warnings.append("invite email could not be delivered; share the link manually")

    log.info("invite issued", extra={"org_id": caller.org_id, "property_id": prop.id, "invite_id": inv.id})
    return out


def _must_get_invite(db: Session, token: str) -> Invite:
    inv = db.scalar(select(Invite).where(Invite.token == (token or "").strip()))
    if inv is None:
        raise NotFound("invalid_token")
    return inv


def inspect_invite(db: Session, *, token: str, now: Optional[datetime] = None) -> Invite:
    """Public lookup; callers expose only non-sensitive fields."""
    inv = _must_get_invite(db, token)
    _ensure_pending(inv, now or _now())
    return inv


def accept_invite(db: Session, caller: Caller, *, token: str, now: Optional[datetime] = None) -> Invite:
    now = now or _now()
    inv = _must_get_invite(db, token)
    _ensure_pending(inv, now)

    if int(inv.org_id) != int(caller.org_id):
        raise WrongOrg()
    if (caller.email or "").strip().lower() != inv.email:
        raise EmailMismatch()

    # Conditional stamp: a concurrent acceptance leaves zero rows to update.
    res = db.execute(
        update(Invite)
        .where(Invite.id == inv.id, Invite.accepted_at.is_(None))
        .values(accepted_at=now, accepted_by_user_id=caller.user_id)
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise AlreadyAccepted()

    if inv.role == Role.seller.value:
        prop = db.get(Property, inv.property_id)
        if prop is None:
            db.rollback()
            raise NotFound("property not found")
        before = {"seller_id": prop.seller_id}
        prop.seller_id = caller.user_id
        db.add(prop)
        audit_write(
            db,
            org_id=caller.org_id,
            actor_user_id=caller.user_id,
            action="invite.accept",
            entity_type="property",
            entity_id=prop.id,
            before=before,
            after={"seller_id": caller.user_id},
        )
    else:
        # Non-seller roles: acceptance is recorded, no further state change yet.
        audit_write(
            db,
            org_id=caller.org_id,
            actor_user_id=caller.user_id,
            action="invite.accept",
            entity_type="invite",
            entity_id=inv.id,
            after={"role": inv.role},
        )

    db.commit()
    db.refresh(inv)
    log.info("invite accepted", extra={"org_id": caller.org_id, "property_id": inv.property_id, "invite_id": inv.id})
    return inv

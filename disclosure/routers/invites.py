# disclosure/routers/invites.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_caller
from ..clients.mailer import Mailer, get_mailer
from ..config import settings
from ..db import get_db
from ..domain.access import Caller
from ..schemas import InviteAcceptOut, InviteCreate, InviteIssuedOut, InvitePublicOut
from ..services import invite_service

log = logging.getLogger("disclosure.invites")

router = APIRouter(tags=["invites"])


@router.post("/properties/{property_id}/invite", response_model=InviteIssuedOut, status_code=201)
def create_invite(
    property_id: int,
    payload: InviteCreate,
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
    mailer: Mailer = Depends(get_mailer),
):
    issued = invite_service.issue_invite(
        db,
        c,
        property_id=property_id,
        email=payload.email,
        role=payload.role,
        mailer=mailer,
    )
    inv = issued.invite
    if settings.app_env != "prod":
        log.info("invite link %s", issued.link)
    return InviteIssuedOut(
        id=inv.id,
        token=inv.token,
        email=inv.email,
        role=inv.role,
        property_id=inv.property_id,
        org_id=inv.org_id,
        expires_at=inv.expires_at,
        link=issued.link,
        email_sent=issued.email_sent,
        warnings=issued.warnings,
    )


@router.get("/invites/{token}", response_model=InvitePublicOut)
def inspect_invite(token: str, db: Session = Depends(get_db)):
    """Public: no authentication; returns no PII beyond the invited email."""
    return invite_service.inspect_invite(db, token=token)


@router.post("/invites/{token}/accept", response_model=InviteAcceptOut)
def accept_invite(token: str, db: Session = Depends(get_db), c: Caller = Depends(get_caller)):
    inv = invite_service.accept_invite(db, c, token=token)
    return InviteAcceptOut(property_id=inv.property_id, role=inv.role, accepted_at=inv.accepted_at)

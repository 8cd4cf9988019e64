# disclosure/services/property_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..domain.access import Action, Caller, can_assign_agent, can_create_property, property_scope
from ..domain.audit import audit_write
from ..domain.checklist import ChecklistItem, Progress, checklist_progress, normalize_property_type
from ..errors import Forbidden, ValidationError
from ..models import Property
from .artifact_service import property_checklist
from .ownership import authorize_property, get_org_user_by_email

log = logging.getLogger("disclosure.properties")


@dataclass(frozen=True)
class PropertyDetail:
    property: Property
    checklist: list[ChecklistItem]
    progress: Progress


def create_property(
    db: Session,
    caller: Caller,
    *,
    title: Optional[str],
    address: Optional[str],
    property_type: Optional[str] = None,
    seller_email: Optional[str] = None,
    agent_email: Optional[str] = None,
) -> Property:
    """
    Agents and Admins create. The creator is the assigned agent unless an
    Admin names another agent of the same org.
    """
    if not can_create_property(caller):
        raise Forbidden()

    title = (title or "").strip()
    address = (address or "").strip()
    if not title or not address:
        raise ValidationError("title_address_required")
    ptype = normalize_property_type(property_type) or "house"

    seller_id: Optional[int] = None
    if seller_email and seller_email.strip():
        seller = get_org_user_by_email(db, org_id=caller.org_id, email=seller_email)
        if seller is None:
            raise ValidationError("seller not found in your org")
        seller_id = int(seller.id)

    agent_id = caller.user_id
    if agent_email and agent_email.strip():
        if not can_assign_agent(caller):
            raise Forbidden("only admin can assign agent_email")
        agent = get_org_user_by_email(db, org_id=caller.org_id, email=agent_email)
        if agent is None:
            raise ValidationError("agent not found in your org")
        agent_id = int(agent.id)

    row = Property(
        org_id=caller.org_id,
        title=title,
        address=address,
        property_type=ptype,
        seller_id=seller_id,
        agent_id=agent_id,
        created_at=datetime.utcnow(),
    )
    db.add(row)
    db.flush()
    audit_write(
        db,
        org_id=caller.org_id,
        actor_user_id=caller.user_id,
        action="property.create",
        entity_type="property",
        entity_id=row.id,
        after={"title": title, "address": address, "type": ptype, "agent_id": agent_id, "seller_id": seller_id},
    )
    db.commit()
    log.info("property created", extra={"org_id": caller.org_id, "user_id": caller.user_id, "property_id": row.id})
    return row


def list_properties(db: Session, caller: Caller) -> list[Property]:
    return list(
        db.scalars(
            select(Property)
            .where(*property_scope(caller))
            .order_by(desc(Property.created_at), desc(Property.id))
        ).all()
    )


def get_property_detail(db: Session, caller: Caller, *, property_id: int) -> PropertyDetail:
    prop = authorize_property(db, caller, property_id=property_id, action=Action.read)
    checklist = property_checklist(db, prop)
    return PropertyDetail(property=prop, checklist=checklist, progress=checklist_progress(checklist))


def assign_agent(db: Session, caller: Caller, *, property_id: int, agent_email: Optional[str]) -> Property:
    if not can_assign_agent(caller):
        raise Forbidden()
    prop = authorize_property(db, caller, property_id=property_id, action=Action.update)

    if not isinstance(agent_email, str) or not agent_email.strip():
        raise ValidationError("agent_email_required")
    agent = get_org_user_by_email(db, org_id=caller.org_id, email=agent_email)
    if agent is None:
        raise ValidationError("agent not found in your org")

    before = {"agent_id": prop.agent_id}
    prop.agent_id = int(agent.id)
    db.add(prop)
    audit_write(
        db,
        org_id=caller.org_id,
        actor_user_id=caller.user_id,
        action="property.assign_agent",
        entity_type="property",
        entity_id=prop.id,
        before=before,
        after={"agent_id": prop.agent_id},
    )
    db.commit()
    return prop


@dataclass(frozen=True)
class DashboardRow:
    property: Property
    progress: Progress


@dataclass(frozen=True)
class DashboardSummary:
    overall: Progress
    properties: list[DashboardRow]


def dashboard_summary(db: Session, caller: Caller) -> DashboardSummary:
    rows: list[DashboardRow] = []
    completed = total = 0
    for prop in list_properties(db, caller):
        progress = checklist_progress(property_checklist(db, prop))
        completed += progress.completed
        total += progress.total
        rows.append(DashboardRow(property=prop, progress=progress))
    return DashboardSummary(overall=Progress(completed=completed, total=total), properties=rows)

# disclosure/domain/audit.py
"""
Audit trail for property-scoped changes.

Rows are staged on the caller's session and land with the caller's commit,
so a change and its audit record are never split.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..models import AuditEvent

# action vocabulary; entity_type is "property" unless noted
AUDIT_ACTIONS = frozenset(
    {
        "property.create",
        "property.assign_agent",
        "property.delete",
        "document.upload",
        "document.delete",
        "form2.build",
        "serve_pack.build",
        "invite.issue",
        "invite.accept",  # entity_type "invite" for non-seller roles
    }
)


def _snapshot(v: Optional[dict[str, Any]]) -> Optional[str]:
    return None if v is None else json.dumps(v, sort_keys=True, default=str)


def audit_write(
    db: Session,
    *,
    org_id: int,
    actor_user_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: str | int,
    before: Optional[dict[str, Any]] = None,
    after: Optional[dict[str, Any]] = None,
) -> AuditEvent:
    if action not in AUDIT_ACTIONS:
        raise ValueError(f"unknown audit action: {action}")
    row = AuditEvent(
        org_id=org_id,
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        before_json=_snapshot(before),
        after_json=_snapshot(after),
        created_at=datetime.utcnow(),
    )
    db.add(row)
    return row


def audit_trail(db: Session, *, org_id: int, entity_type: str, entity_id: str | int) -> list[AuditEvent]:
    """Oldest first. Survives deletion of the entity itself."""
    return list(
        db.scalars(
            select(AuditEvent)
            .where(
                AuditEvent.org_id == org_id,
                AuditEvent.entity_type == entity_type,
                AuditEvent.entity_id == str(entity_id),
            )
            .order_by(AuditEvent.created_at, AuditEvent.id)
        ).all()
    )

# disclosure/routers/properties.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..auth import get_caller
from ..clients.object_store import ObjectStore, get_object_store
from ..db import get_db
from ..domain.access import Caller
from ..schemas import (
    AssignAgentIn,
    ChecklistItemOut,
    DeletionOut,
    ProgressOut,
    PropertyCreate,
    PropertyDetailOut,
    PropertyOut,
)
from ..services import property_service
from ..services.deletion_service import delete_property

router = APIRouter(prefix="/properties", tags=["properties"])


@router.get("", response_model=list[PropertyOut])
def list_properties(db: Session = Depends(get_db), c: Caller = Depends(get_caller)):
    """Admin: whole org. Agent: assigned only. Seller: owned only."""
    return property_service.list_properties(db, c)


@router.post("", response_model=PropertyOut, status_code=201)
def create_property(payload: PropertyCreate, db: Session = Depends(get_db), c: Caller = Depends(get_caller)):
    return property_service.create_property(
        db,
        c,
        title=payload.title,
        address=payload.address,
        property_type=payload.type,
        seller_email=payload.seller_email,
        agent_email=payload.agent_email,
    )


@router.get("/{property_id}", response_model=PropertyDetailOut)
def get_property(property_id: int, db: Session = Depends(get_db), c: Caller = Depends(get_caller)):
    detail = property_service.get_property_detail(db, c, property_id=property_id)
    base = PropertyOut.model_validate(detail.property, from_attributes=True).model_dump()
    return PropertyDetailOut(
        **base,
        checklist=[ChecklistItemOut.model_validate(i, from_attributes=True) for i in detail.checklist],
        progress=ProgressOut.model_validate(detail.progress, from_attributes=True),
    )


@router.post("/{property_id}/assign-agent", response_model=PropertyOut)
def assign_agent(
    property_id: int,
    payload: AssignAgentIn,
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
):
    return property_service.assign_agent(db, c, property_id=property_id, agent_email=payload.agent_email)


@router.delete("/{property_id}", response_model=DeletionOut)
def remove_property(
    property_id: int,
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
    store: ObjectStore = Depends(get_object_store),
):
    report = delete_property(db, c, property_id=property_id, store=store)
    return DeletionOut(
        property_id=report.property_id,
        blob_keys=report.blob_keys,
        blob_failures=report.blob_failures,
        warnings=report.warnings,
    )

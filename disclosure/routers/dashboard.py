# disclosure/routers/dashboard.py
from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from ..auth import get_caller
from ..db import get_db
from ..domain.access import Caller
from ..schemas import DashboardPropertyOut, DashboardSummaryOut, ProgressOut
from ..services.property_service import dashboard_summary

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardSummaryOut)
def summary(response: Response, db: Session = Depends(get_db), c: Caller = Depends(get_caller)):
    """Progress is derived on every call; nothing here is cached."""
    response.headers["Cache-Control"] = "no-store"
    s = dashboard_summary(db, c)
    return DashboardSummaryOut(
        overall=ProgressOut(completed=s.overall.completed, total=s.overall.total),
        properties=[
            DashboardPropertyOut(
                id=r.property.id,
                title=r.property.title,
                address=r.property.address,
                type=r.property.property_type,
                progress=ProgressOut(completed=r.progress.completed, total=r.progress.total),
            )
            for r in s.properties
        ],
    )

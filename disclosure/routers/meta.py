# disclosure/routers/meta.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from ..auth import get_caller
from ..config import settings
from ..domain.access import Caller
from ..schemas import MeOut

router = APIRouter(tags=["meta"])


@router.get("/health", response_model=dict)
def health():
    return {"ok": True, "version": settings.app_version}


@router.get("/me", response_model=MeOut)
def me(c: Caller = Depends(get_caller)):
    return MeOut(user_id=c.user_id, org_id=c.org_id, email=c.email, roles=sorted(r.value for r in c.roles))

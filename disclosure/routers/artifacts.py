# disclosure/routers/artifacts.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..auth import get_caller
from ..clients.archiver import Archiver, get_archiver
from ..clients.object_store import ObjectStore, get_object_store
from ..clients.renderer import Renderer, get_renderer
from ..db import get_db
from ..domain.access import Caller
from ..schemas import Form2VersionOut, ServePackOut
from ..services import artifact_service

router = APIRouter(tags=["artifacts"])


# -------------------- Form 2 --------------------

@router.post("/properties/{property_id}/form2/build", response_model=Form2VersionOut, status_code=201)
def build_form2(
    property_id: int,
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
    store: ObjectStore = Depends(get_object_store),
    renderer: Renderer = Depends(get_renderer),
):
    return artifact_service.build_form2_version(db, c, property_id=property_id, store=store, renderer=renderer)


@router.get("/properties/{property_id}/form2/latest", response_model=Form2VersionOut)
def latest_form2(property_id: int, db: Session = Depends(get_db), c: Caller = Depends(get_caller)):
    return artifact_service.get_latest_form2(db, c, property_id=property_id)


@router.get("/form2/{version_id}/download")
def download_form2(
    version_id: int,
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
    store: ObjectStore = Depends(get_object_store),
):
    row, obj = artifact_service.open_form2_download(db, c, version_id=version_id, store=store)
    return StreamingResponse(
        obj.iter_chunks(),
        media_type=obj.content_type,
        headers={"Content-Disposition": f'inline; filename="Form2_v{row.version}.pdf"'},
    )


# -------------------- Serve pack --------------------

@router.post("/properties/{property_id}/serve/build", response_model=ServePackOut, status_code=201)
def build_serve_pack(
    property_id: int,
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
    store: ObjectStore = Depends(get_object_store),
    archiver: Archiver = Depends(get_archiver),
):
    return artifact_service.build_serve_pack(db, c, property_id=property_id, store=store, archiver=archiver)


@router.get("/properties/{property_id}/serve/latest", response_model=ServePackOut)
def latest_serve_pack(property_id: int, db: Session = Depends(get_db), c: Caller = Depends(get_caller)):
    return artifact_service.get_latest_serve_pack(db, c, property_id=property_id)


@router.get("/serve/{pack_id}/download")
def download_serve_pack(
    pack_id: int,
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
    store: ObjectStore = Depends(get_object_store),
):
    row, obj = artifact_service.open_serve_pack_download(db, c, pack_id=pack_id, store=store)
    return StreamingResponse(
        obj.iter_chunks(),
        media_type=obj.content_type,
        headers={"Content-Disposition": f'inline; filename="ServePack_v{row.version}.zip"'},
    )

# disclosure/routers/documents.py
from __future__ import annotations

import os
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from ..auth import get_caller
from ..clients.object_store import ObjectStore, get_object_store
from ..config import settings
from ..db import get_db
from ..domain.access import Caller
from ..errors import ValidationError
from ..schemas import DocumentDeleteOut, DocumentOut
from ..services import document_service
from ..services.artifact_service import safe_filename

router = APIRouter(tags=["documents"])


def content_disposition(filename: str) -> str:
    """ASCII fallback for old clients plus the RFC 5987 UTF-8 form."""
    name = os.path.basename(filename or "") or "file"
    return f"attachment; filename=\"{safe_filename(name)}\"; filename*=UTF-8''{quote(name, safe='')}"


@router.post("/properties/{property_id}/upload", response_model=DocumentOut, status_code=201)
def upload(
    property_id: int,
    file: UploadFile = File(...),
    kind: str = Form(default="supporting"),
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
    store: ObjectStore = Depends(get_object_store),
):
    # read one byte past the limit so oversized files are rejected without buffering them whole
    data = file.file.read(int(settings.upload_max_bytes) + 1)
    if len(data) > int(settings.upload_max_bytes):
        raise ValidationError(f"file too large (limit {settings.upload_max_bytes} bytes)")
    return document_service.upload_document(
        db,
        c,
        property_id=property_id,
        kind=kind,
        filename=file.filename or "upload",
        content_type=file.content_type,
        data=data,
        store=store,
    )


@router.get("/properties/{property_id}/documents", response_model=list[DocumentOut])
def list_documents(property_id: int, db: Session = Depends(get_db), c: Caller = Depends(get_caller)):
    return document_service.list_documents(db, c, property_id=property_id)


@router.get("/documents/{document_id}/download")
def download_document(
    document_id: int,
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
    store: ObjectStore = Depends(get_object_store),
):
    doc, obj = document_service.open_document_download(db, c, document_id=document_id, store=store)
    return StreamingResponse(
        obj.iter_chunks(),
        media_type=obj.content_type,
        headers={"Content-Disposition": content_disposition(doc.filename)},
    )


@router.delete("/documents/{document_id}", response_model=DocumentDeleteOut)
def delete_document(
    document_id: int,
    db: Session = Depends(get_db),
    c: Caller = Depends(get_caller),
    store: ObjectStore = Depends(get_object_store),
):
    warnings = document_service.delete_document(db, c, document_id=document_id, store=store)
    return DocumentDeleteOut(warnings=warnings)

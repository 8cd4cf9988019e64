# disclosure/schemas.py
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Optional, List, Any

from pydantic import BaseModel, Field, ConfigDict, model_validator

log = logging.getLogger("disclosure.schemas")


# -------------------- Identity --------------------

class MeOut(BaseModel):
    user_id: int
    org_id: int
    email: str
    roles: list[str]


# -------------------- Checklist --------------------

class ChecklistItemOut(BaseModel):
    id: str
    label: str
    required: bool
    complete: bool
    model_config = ConfigDict(from_attributes=True)


class ProgressOut(BaseModel):
    completed: int
    total: int
    model_config = ConfigDict(from_attributes=True)


# -------------------- Properties --------------------

class PropertyCreate(BaseModel):
    title: Optional[str] = None
    address: Optional[str] = None
    type: Optional[str] = None
    seller_email: Optional[str] = None
    agent_email: Optional[str] = None


class AssignAgentIn(BaseModel):
    agent_email: Optional[str] = None


class PropertyOut(BaseModel):
    id: int
    org_id: int
    title: str
    address: str
    type: str = Field(validation_alias="property_type")
    seller_id: Optional[int] = None
    agent_id: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class PropertyDetailOut(PropertyOut):
    checklist: List[ChecklistItemOut] = Field(default_factory=list)
    progress: ProgressOut


class DeletionOut(BaseModel):
    ok: bool = True
    property_id: int
    blob_keys: int
    blob_failures: int
    warnings: list[str] = Field(default_factory=list)


# -------------------- Documents --------------------

class DocumentOut(BaseModel):
    id: int
    property_id: int
    kind: str
    filename: str
    content_type: str
    sha256: str
    size_bytes: int
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)


class DocumentDeleteOut(BaseModel):
    ok: bool = True
    warnings: list[str] = Field(default_factory=list)


# -------------------- Artifacts --------------------

class Form2VersionOut(BaseModel):
    id: int
    property_id: int
    version: int
    checklist: List[ChecklistItemOut] = Field(default_factory=list)
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _parse_checklist(cls, data: Any) -> Any:
        raw = getattr(data, "checklist_json", None)
        if raw is None:
            return data
        try:
            parsed = json.loads(raw or "[]")
        except json.JSONDecodeError as e:
            log.warning("unreadable checklist snapshot on form2 version %s: %s", data.id, e)
            parsed = []
        if not isinstance(parsed, list):
            parsed = []
        return {
            "id": data.id,
            "property_id": data.property_id,
            "version": data.version,
            "checklist": parsed,
            "created_at": data.created_at,
        }


class ServePackOut(BaseModel):
    id: int
    property_id: int
    version: int
    manifest: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="before")
    @classmethod
    def _parse_manifest(cls, data: Any) -> Any:
        raw = getattr(data, "manifest_json", None)
        if raw is None:
            return data
        try:
            parsed = json.loads(raw or "{}")
        except json.JSONDecodeError as e:
            log.warning("unreadable manifest on serve pack %s: %s", data.id, e)
            parsed = {}
        if not isinstance(parsed, dict):
            parsed = {}
        return {
            "id": data.id,
            "property_id": data.property_id,
            "version": data.version,
            "manifest": parsed,
            "created_at": data.created_at,
        }


# -------------------- Invites --------------------

class InviteCreate(BaseModel):
    # Any: non-string emails are rejected by the service with a stable kind
    email: Any = None
    role: Any = None


class InviteIssuedOut(BaseModel):
    id: int
    token: str
    email: str
    role: str
    property_id: int
    org_id: int
    expires_at: datetime
    link: str
    email_sent: bool
    warnings: list[str] = Field(default_factory=list)


class InvitePublicOut(BaseModel):
    email: str
    role: str
    property_id: int
    org_id: int
    expires_at: datetime
    model_config = ConfigDict(from_attributes=True)


class InviteAcceptOut(BaseModel):
    ok: bool = True
    property_id: int
    role: str
    accepted_at: datetime


# -------------------- Dashboard --------------------

class DashboardPropertyOut(BaseModel):
    id: int
    title: str
    address: str
    type: str
    progress: ProgressOut


class DashboardSummaryOut(BaseModel):
    overall: ProgressOut
    properties: list[DashboardPropertyOut]

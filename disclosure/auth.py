# disclosure/auth.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

import jwt
from fastapi import Depends, Header, Request
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import settings
from .db import get_db
from .domain.access import Caller, parse_roles
from .errors import Conflict, MissingOrgContext, Unauthenticated
from .models import AppUser, Organization

log = logging.getLogger("disclosure.auth")


@dataclass(frozen=True)
class IdentityClaim:
    """What the identity provider vouches for. Trusted as-is once verified."""

    subject: str
    email: str = ""
    name: str | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)
    org_slug: str | None = None


# -------------------------
# Claim extraction
# -------------------------
def _split_roles(raw: Any) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return tuple(x.strip() for x in raw.split(",") if x.strip())
    if isinstance(raw, (list, tuple)):
        return tuple(str(x).strip() for x in raw if str(x).strip())
    return ()


def decode_identity_token(token: str) -> IdentityClaim:
    options = {"require": ["sub"]}
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
            options=options | ({} if settings.jwt_audience else {"verify_aud": False}),
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("token expired")
    except jwt.PyJWTError:
        raise Unauthenticated("invalid token")

    sub = str(claims.get("sub") or "").strip()
    if not sub:
        raise Unauthenticated("token missing sub")

    return IdentityClaim(
        subject=sub,
        email=str(claims.get("email") or "").strip(),
        name=claims.get("name"),
        roles=_split_roles(claims.get("roles")),
        org_slug=(str(claims.get("org") or "").strip() or None),
    )


def encode_identity_token(claim: IdentityClaim, *, expires_at: Optional[datetime] = None) -> str:
    """Used by the login bridge and by tests to mint session tokens."""
    payload: dict[str, Any] = {
        "sub": claim.subject,
        "email": claim.email,
        "name": claim.name,
        "roles": list(claim.roles),
    }
    if claim.org_slug:
        payload["org"] = claim.org_slug
    if settings.jwt_audience:
        payload["aud"] = settings.jwt_audience
    if expires_at is not None:
        payload["exp"] = int(expires_at.timestamp())
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def _claim_from_dev_headers(request: Request) -> Optional[IdentityClaim]:
    sub = (request.headers.get(settings.dev_header_subject) or "").strip()
    email = (request.headers.get(settings.dev_header_email) or "").strip()
    if not sub and not email:
        return None
    return IdentityClaim(
        subject=sub or f"dev|{email.lower()}",
        email=email,
        name=(request.headers.get(settings.dev_header_name) or "").strip() or None,
        roles=_split_roles(request.headers.get(settings.dev_header_roles)),
        org_slug=(request.headers.get(settings.dev_header_org_slug) or "").strip() or None,
    )


def get_optional_claim(
    request: Request,
    authorization: Optional[str] = Header(default=None, alias="Authorization"),
) -> Optional[IdentityClaim]:
    """
    Supported sources (priority order):
      1) Authorization: Bearer <identity token>
      2) dev header spoofing (ONLY if settings.auth_mode == "dev")
    """
    if authorization and str(authorization).lower().startswith("bearer "):
        token = str(authorization).split(" ", 1)[1].strip()
        return decode_identity_token(token)

    if settings.auth_mode == "dev":
        return _claim_from_dev_headers(request)

    return None


def get_claim(claim: Optional[IdentityClaim] = Depends(get_optional_claim)) -> IdentityClaim:
    if claim is None:
        raise Unauthenticated()
    return claim


# -------------------------
# Local user upsert
# -------------------------
def _resolve_org(db: Session, org_slug: Optional[str]) -> Optional[Organization]:
    if not org_slug:
        return None
    org = db.scalar(select(Organization).where(Organization.slug == org_slug))
    if org is None and settings.auth_mode == "dev" and settings.dev_auto_provision:
        org = Organization(slug=org_slug, name=org_slug, created_at=datetime.utcnow())
        db.add(org)
        db.flush()
    return org


def ensure_db_user(db: Session, claim: IdentityClaim) -> AppUser:
    """
    Idempotent upsert keyed by external subject.

    email / name / roles follow the identity provider on every call; the org
    is set once at creation and never changes afterwards.
    """
    roles_json = json.dumps(sorted({r.value for r in parse_roles(claim.roles)}))
    email = (claim.email or "").strip().lower() or None
    now = datetime.utcnow()

    user = db.scalar(select(AppUser).where(AppUser.external_subject == claim.subject))
    if user is None:
        org = _resolve_org(db, claim.org_slug)
        if org is None:
            raise MissingOrgContext()
        user = AppUser(
            external_subject=claim.subject,
            org_id=int(org.id),
            email=email,
            display_name=claim.name,
            roles_json=roles_json,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        try:
            db.commit()
        except IntegrityError:
            # a concurrent first request for the same subject won the insert
            db.rollback()
            user = db.scalar(select(AppUser).where(AppUser.external_subject == claim.subject))
            if user is None:
                raise Conflict("user provisioning collided with another record; retry")
            log.info("user provisioned concurrently", extra={"org_id": user.org_id, "user_id": user.id})
        else:
            log.info("provisioned user", extra={"org_id": user.org_id, "user_id": user.id})
            return user

    if (user.email, user.display_name, user.roles_json) != (email, claim.name, roles_json):
        user.email = email
        user.display_name = claim.name
        user.roles_json = roles_json
        user.updated_at = now
        db.add(user)
        db.commit()
    return user


def caller_from_user(user: AppUser, claim: IdentityClaim) -> Caller:
    return Caller(
        user_id=int(user.id),
        org_id=int(user.org_id),
        email=(claim.email or "").strip().lower(),
        roles=parse_roles(claim.roles),
    )


def get_caller(db: Session = Depends(get_db), claim: IdentityClaim = Depends(get_claim)) -> Caller:
    user = ensure_db_user(db, claim)
    return caller_from_user(user, claim)

# disclosure/domain/access.py
"""
Single authorization evaluator for property-scoped actions.

Precedence (first match wins):
  1) target in another org      -> deny
  2) Admin                      -> allow
  3) Agent (not Admin)          -> allow iff assigned agent
  4) Seller only                -> allow reads iff owning seller
  5) anything else              -> deny

Listing uses ``property_scope`` so the same rules run as a SQL filter.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy import false

from ..models import Property


class Role(str, Enum):
    admin = "Admin"
    agent = "Agent"
    seller = "Seller"


class Action(str, Enum):
    read = "read"
    update = "update"
    delete = "delete"
    generate = "generate"
    upload = "upload"
    invite = "invite"

    @property
    def mutating(self) -> bool:
        return self is not Action.read


class Decision(str, Enum):
    allow = "allow"
    deny = "deny"


def parse_roles(raw: Iterable[str] | None) -> frozenset[Role]:
    """Keep known role labels, drop anything else the identity provider sent."""
    out: set[Role] = set()
    for r in raw or []:
        try:
            out.add(Role(str(r).strip()))
        except ValueError:
            continue
    return frozenset(out)


@dataclass(frozen=True)
class Caller:
    user_id: int
    org_id: int
    email: str
    roles: frozenset[Role]

    @property
    def is_admin(self) -> bool:
        return Role.admin in self.roles

    @property
    def is_agent(self) -> bool:
        return Role.agent in self.roles

    @property
    def is_seller_only(self) -> bool:
        return Role.seller in self.roles and not (self.is_admin or self.is_agent)


def evaluate(caller: Caller, prop: Property, action: Action) -> Decision:
    if int(prop.org_id) != int(caller.org_id):
        return Decision.deny

    if caller.is_admin:
        return Decision.allow

    if caller.is_agent:
        return Decision.allow if prop.agent_id == caller.user_id else Decision.deny

    if caller.is_seller_only:
        if action.mutating:
            return Decision.deny
        return Decision.allow if prop.seller_id == caller.user_id else Decision.deny

    return Decision.deny


def is_allowed(caller: Caller, prop: Property, action: Action) -> bool:
    return evaluate(caller, prop, action) is Decision.allow


def property_scope(caller: Caller) -> list:
    """WHERE clauses equivalent to ``evaluate(..., Action.read)`` for listings."""
    clauses: list = [Property.org_id == caller.org_id]
    if caller.is_admin:
        return clauses
    if caller.is_agent:
        clauses.append(Property.agent_id == caller.user_id)
    elif caller.is_seller_only:
        clauses.append(Property.seller_id == caller.user_id)
    else:
        clauses.append(false())
    return clauses


def can_create_property(caller: Caller) -> bool:
    return caller.is_admin or caller.is_agent


def can_assign_agent(caller: Caller) -> bool:
    return caller.is_admin


def can_issue_invite(caller: Caller, prop: Optional[Property]) -> bool:
    if prop is None or not (caller.is_admin or caller.is_agent):
        return False
    return is_allowed(caller, prop, Action.invite)

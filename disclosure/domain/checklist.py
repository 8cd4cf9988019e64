# disclosure/domain/checklist.py
from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable


@dataclass(frozen=True)
class ChecklistRule:
    id: str
    label: str
    required: bool = True


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    label: str
    required: bool
    complete: bool

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Progress:
    completed: int
    total: int


DEFAULT_RULE_SET = "default"

# Order here is the order the checklist is shown in, never upload order.
CHECKLIST_RULES: dict[str, tuple[ChecklistRule, ...]] = {
    "house": (
        ChecklistRule("title_search", "Title Search"),
        ChecklistRule("smoke_alarm", "Smoke Alarm Compliance"),
        ChecklistRule("pool_safety", "Pool Safety Certificate", required=False),
    ),
    "unit": (
        ChecklistRule("title_search", "Title Search"),
        ChecklistRule("body_corporate", "Body Corporate Disclosure"),
        ChecklistRule("smoke_alarm", "Smoke Alarm Compliance"),
    ),
    DEFAULT_RULE_SET: (
        ChecklistRule("title_search", "Title Search"),
        ChecklistRule("compliance_certificate", "Compliance Certificate"),
        ChecklistRule("smoke_alarm", "Smoke Alarm Compliance"),
    ),
}


def normalize_property_type(property_type: str | None) -> str:
    return (property_type or "").strip().lower()


def rules_for_type(property_type: str | None) -> tuple[ChecklistRule, ...]:
    return CHECKLIST_RULES.get(normalize_property_type(property_type)) or CHECKLIST_RULES[DEFAULT_RULE_SET]


def build_checklist(property_type: str | None, present_kinds: Iterable[str]) -> list[ChecklistItem]:
    """
    A rule is complete iff at least one document of that kind exists.
    Kinds not named by any rule are ignored.
    """
    kinds = {k for k in present_kinds if k}
    return [ChecklistItem(r.id, r.label, r.required, r.id in kinds) for r in rules_for_type(property_type)]


def checklist_progress(items: Iterable[ChecklistItem]) -> Progress:
    items = list(items)
    return Progress(completed=sum(1 for i in items if i.complete), total=len(items))


def required_kinds(items: Iterable[ChecklistItem]) -> list[str]:
    return [i.id for i in items if i.required]

# disclosure/domain/form2.py
from __future__ import annotations

from datetime import datetime
from typing import Iterable

from jinja2 import Environment, PackageLoader, select_autoescape

from ..models import Property
from .checklist import ChecklistItem, checklist_progress

_env = Environment(
    loader=PackageLoader("disclosure", "templates"),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)


def form2_html(prop: Property, checklist: Iterable[ChecklistItem], *, generated_at: datetime) -> str:
    """Self-contained markup for the disclosure statement; no external assets."""
    items = list(checklist)
    return _env.get_template("form2.html").render(
        property=prop,
        checklist=items,
        progress=checklist_progress(items),
        generated_at=generated_at.strftime("%Y-%m-%d %H:%M UTC"),
    )

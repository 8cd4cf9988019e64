# tests/test_checklist.py
from __future__ import annotations

from disclosure.domain.checklist import build_checklist, checklist_progress, required_kinds

from conftest import AGENT_A, create_property, upload


def _ids(items):
    return [i.id for i in items]


def test_known_types_have_fixed_order():
    assert _ids(build_checklist("house", [])) == ["title_search", "smoke_alarm", "pool_safety"]
    assert _ids(build_checklist("unit", [])) == ["title_search", "body_corporate", "smoke_alarm"]


def test_unknown_type_uses_default_rules():
    assert _ids(build_checklist("warehouse", [])) == ["title_search", "compliance_certificate", "smoke_alarm"]
    assert _ids(build_checklist(None, [])) == _ids(build_checklist("anything", []))


def test_type_is_case_insensitive():
    assert _ids(build_checklist(" Unit ", [])) == _ids(build_checklist("unit", []))


def test_order_independent_of_upload_order():
    a = build_checklist("unit", ["smoke_alarm", "title_search"])
    b = build_checklist("unit", ["title_search", "smoke_alarm"])
    assert a == b


def test_unrelated_kinds_are_ignored():
    items = build_checklist("house", ["supporting", "floor_plan"])
    assert not any(i.complete for i in items)
    assert checklist_progress(items).total == 3


def test_progress_is_monotone_in_present_kinds():
    kinds: list[str] = []
    last = 0
    for k in ["title_search", "supporting", "smoke_alarm", "pool_safety"]:
        kinds.append(k)
        done = checklist_progress(build_checklist("house", kinds)).completed
        assert done >= last
        last = done
    assert last == 3


def test_required_kinds_excludes_optional():
    assert required_kinds(build_checklist("house", [])) == ["title_search", "smoke_alarm"]


def test_unit_checklist_over_http(client):
    p = create_property(client, AGENT_A, type="unit")
    assert upload(client, AGENT_A, p["id"], "title_search").status_code == 201
    assert upload(client, AGENT_A, p["id"], "smoke_alarm").status_code == 201

    detail = client.get(f"/api/properties/{p['id']}", headers=AGENT_A).json()
    status = {i["id"]: i["complete"] for i in detail["checklist"]}
    assert status == {"title_search": True, "body_corporate": False, "smoke_alarm": True}
    assert detail["progress"] == {"completed": 2, "total": 3}
    assert detail["type"] == "unit"

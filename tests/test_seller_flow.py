# tests/test_seller_flow.py
from __future__ import annotations

from conftest import AGENT_A, SELLER, create_property, me, upload


def test_agent_creates_property_and_seller_joins(client):
    agent = me(client, AGENT_A)
    p = create_property(client, AGENT_A, title="123 Main St", address="123 Main St", type="house")
    assert p["agent_id"] == agent["user_id"]
    assert p["seller_id"] is None

    token = client.post(f"/api/properties/{p['id']}/invite", json={"email": "seller@acme.test"}, headers=AGENT_A).json()["token"]
    assert client.post(f"/api/invites/{token}/accept", headers=SELLER).status_code == 200

    seller = me(client, SELLER)
    detail = client.get(f"/api/properties/{p['id']}", headers=SELLER).json()
    assert detail["seller_id"] == seller["user_id"]

    again = client.post(f"/api/invites/{token}/accept", headers=SELLER)
    assert again.json()["error"]["kind"] == "already_accepted"


def test_unit_serve_pack_waits_for_disclosure(client):
    pid = create_property(client, AGENT_A, type="unit")["id"]
    upload(client, AGENT_A, pid, "title_search")
    upload(client, AGENT_A, pid, "smoke_alarm")

    checklist = client.get(f"/api/properties/{pid}", headers=AGENT_A).json()["checklist"]
    assert [(i["id"], i["complete"]) for i in checklist] == [
        ("title_search", True),
        ("body_corporate", False),
        ("smoke_alarm", True),
    ]

    assert client.post(f"/api/properties/{pid}/serve/build", headers=AGENT_A).status_code == 412
    assert client.post(f"/api/properties/{pid}/form2/build", headers=AGENT_A).status_code == 201
    assert client.post(f"/api/properties/{pid}/serve/build", headers=AGENT_A).status_code == 201

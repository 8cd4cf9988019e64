# tests/conftest.py
from __future__ import annotations

import os
import tempfile
from typing import Optional, Sequence

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="disclosure-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ.setdefault("AUTH_MODE", "dev")
os.environ.setdefault("APP_ENV", "local")

from fastapi.testclient import TestClient  # noqa: E402

from disclosure.clients.archiver import ZipArchiver, get_archiver  # noqa: E402
from disclosure.clients.mailer import DeliveryResult, MailDeliveryError, get_mailer  # noqa: E402
from disclosure.clients.object_store import StoredObject, get_object_store  # noqa: E402
from disclosure.clients.renderer import get_renderer  # noqa: E402
from disclosure.db import Base, SessionLocal, engine  # noqa: E402
from disclosure.errors import DependencyUnavailable, NotFound, RenderTimeout  # noqa: E402
from disclosure.main import create_app  # noqa: E402

import disclosure.models  # noqa: E402,F401


class MemoryStore:
    """Object store double. ``fail_batches`` makes the next N delete_batch calls raise; ``fail_puts`` fails every put."""

    def __init__(self) -> None:
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.batches: list[list[str]] = []
        self.fail_batches = 0
        self.refuse: set[str] = set()
        self.fail_puts = False

    def put(self, key: str, data: bytes, content_type: str) -> None:
        if self.fail_puts:
            raise DependencyUnavailable("object storage write failed")
        self.objects[key] = (bytes(data), content_type)

    def get(self, key: str) -> StoredObject:
        if key not in self.objects:
            raise NotFound("stored object not found")
        data, ctype = self.objects[key]
        return StoredObject(body=data, content_type=ctype)

    def delete_batch(self, keys: Sequence[str]) -> list[str]:
        keys = list(keys)
        self.batches.append(keys)
        if self.fail_batches > 0:
            self.fail_batches -= 1
            raise DependencyUnavailable("simulated storage outage")
        refused = [k for k in keys if k in self.refuse]
        for k in keys:
            if k not in self.refuse:
                self.objects.pop(k, None)
        return refused


class FakeRenderer:
    def __init__(self, *, timeout: bool = False) -> None:
        self.timeout = timeout
        self.calls: list[str] = []

    def render_pdf(self, html: str, *, timeout_seconds: float) -> bytes:
        self.calls.append(html)
        if self.timeout:
            raise RenderTimeout()
        return b"%PDF-1.4\n% test render " + str(len(self.calls)).encode() + b"\n%%EOF\n"


class FakeMailer:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str]] = []

    def send_invite(self, recipient: str, link: str) -> DeliveryResult:
        if self.fail:
            raise MailDeliveryError("smtp unreachable")
        self.sent.append((recipient, link))
        return DeliveryResult(message_id=f"<{len(self.sent)}@test>")


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def archiver() -> ZipArchiver:
    return ZipArchiver()


@pytest.fixture
def client(store, renderer, mailer, archiver):
    app = create_app()
    app.dependency_overrides[get_object_store] = lambda: store
    app.dependency_overrides[get_renderer] = lambda: renderer
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_archiver] = lambda: archiver
    with TestClient(app) as c:
        yield c


def headers(sub: str, email: str, roles: str, org: Optional[str] = "acme") -> dict[str, str]:
    h = {
        "X-User-Sub": sub,
        "X-User-Email": email,
        "X-User-Roles": roles,
    }
    if org:
        h["X-Org-Slug"] = org
    return h


ADMIN = headers("idp|admin", "admin@acme.test", "Admin")
AGENT_A = headers("idp|agent-a", "agent.a@acme.test", "Agent")
AGENT_B = headers("idp|agent-b", "agent.b@acme.test", "Agent")
SELLER = headers("idp|seller", "seller@acme.test", "Seller")
OTHER_ORG_ADMIN = headers("idp|other-admin", "admin@other.test", "Admin", org="other")


def me(client: TestClient, h: dict[str, str]) -> dict:
    r = client.get("/api/me", headers=h)
    assert r.status_code == 200, r.text
    return r.json()


def create_property(client: TestClient, h: dict[str, str], **body) -> dict:
    payload = {"title": "Listing", "address": "1 Test Rd"}
    payload.update(body)
    r = client.post("/api/properties", json=payload, headers=h)
    assert r.status_code == 201, r.text
    return r.json()


def upload(client: TestClient, h: dict[str, str], property_id: int, kind: str, *, name: str = "doc.pdf", data: bytes = b"%PDF-1.4 doc", ctype: str = "application/pdf"):
    return client.post(
        f"/api/properties/{property_id}/upload",
        files={"file": (name, data, ctype)},
        data={"kind": kind},
        headers=h,
    )

from __future__ import annotations

import os
import tempfile
from decimal import Decimal

import pytest

# Point the app at a throwaway SQLite file before anything imports config/db.
_TMP_DIR = tempfile.mkdtemp(prefix="deposit_escrow_tests_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'escrow.db')}"
os.environ["APP_ENV"] = "test"
os.environ["AUTH_MODE"] = "dev"
os.environ["NOTIFY_MODE"] = "log"
os.environ.pop("TENANT_DIRECTORY_URL", None)

from fastapi.testclient import TestClient  # noqa: E402

from deposit_escrow.clients.tenant_directory import StaticTenantDirectory, get_tenant_directory  # noqa: E402
from deposit_escrow.db import Base, SessionLocal, engine  # noqa: E402
from deposit_escrow.errors import ServiceUnavailable  # noqa: E402
from deposit_escrow import models  # noqa: E402,F401
from deposit_escrow.services.notifications import get_notifier  # noqa: E402

TENANT_ID = 1001
PROPERTY_ID = 501
OWNER_ID = 1
MONTHLY_RENT = Decimal("10000.00")


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[int, str, dict]] = []
        self.fail = fail

    def notify(self, user_id, event, payload=None):
        if self.fail:
            raise RuntimeError("push gateway down")
        self.sent.append((int(user_id), event, dict(payload or {})))

    def events(self) -> list[str]:
        return [e for _, e, _ in self.sent]


class DownDirectory:
    def get_monthly_rent(self, tenant_id):
        raise ServiceUnavailable("directory_unavailable", "Tenant directory is unavailable; retry later")


@pytest.fixture(autouse=True)
def _schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.rollback()
        db.close()


@pytest.fixture
def directory():
    return StaticTenantDirectory({TENANT_ID: MONTHLY_RENT})


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def client(directory, notifier):
    from deposit_escrow.main import app

    app.dependency_overrides[get_tenant_directory] = lambda: directory
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


def owner_headers(user_id: int = OWNER_ID) -> dict[str, str]:
    return {"X-User-Id": str(user_id), "X-User-Role": "owner"}


def tenant_headers(user_id: int = TENANT_ID) -> dict[str, str]:
    return {"X-User-Id": str(user_id), "X-User-Role": "tenant"}


def make_deposit(db, directory, amount="15000", tenant_id: int = TENANT_ID, property_id: int = PROPERTY_ID, notifier=None):
    from deposit_escrow.services import deposit_ledger

    return deposit_ledger.create(
        db,
        tenant_id=tenant_id,
        property_id=property_id,
        deposit_amount=Decimal(str(amount)),
        actor_user_id=OWNER_ID,
        directory=directory,
        notifier=notifier or RecordingNotifier(),
    )


def make_inspection(db, tenant_id: int = TENANT_ID, property_id: int = PROPERTY_ID, checklist=None):
    from deposit_escrow.services import inspection_recorder

    return inspection_recorder.start(
        db,
        tenant_id=tenant_id,
        property_id=property_id,
        inspector_id=OWNER_ID,
        checklist=checklist if checklist is not None else {"walls": "fair", "flooring": "good"},
        actor_user_id=OWNER_ID,
    )


def add_costs(db, inspection_id: int, *costs):
    from deposit_escrow.services import deduction_ledger

    return [
        deduction_ledger.add(
            db,
            inspection_id=inspection_id,
            item_description=f"item {i}",
            cost=Decimal(str(c)),
            category="Damage",
            actor_user_id=OWNER_ID,
        )
        for i, c in enumerate(costs, start=1)
    ]

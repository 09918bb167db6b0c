from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker

import printflow.persistence.db as db
from printflow.core.config import get_settings
from printflow.core.security import KeyringSupervisorAuthorizer
from printflow.core.session import SessionContext
from printflow.domain.models import Order
from printflow.domain.orders.store import OrderStore
from printflow.domain.pipeline import Role
from printflow.domain.registry import ReferenceRegistry
from printflow.governance import TransitionGuard
from printflow.persistence.models import Base, StoreSnapshotModel
from printflow.runtime import build_runtime, get_runtime
from printflow.workflow.board import BoardService
from printflow.workflow.capacity_gate import CapacityGate
from printflow.workflow.pricing_config import PricingConfigStore
from printflow.workflow.quoting import QuoteService
from tests.factories import SUPERVISOR_KEY


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    return tmp_path_factory.mktemp("db") / "test.sqlite"


@pytest.fixture(scope="session", autouse=True)
def configure_test_engine(test_db_path: Path):
    engine = create_engine(
        f"sqlite+pysqlite:///{test_db_path}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    TestSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

    db.engine = engine
    db.SessionLocal = TestSessionLocal

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def clean_snapshots(configure_test_engine):
    with db.session_scope() as s:
        s.execute(delete(StoreSnapshotModel))
    yield


@pytest.fixture()
def runtime(clean_snapshots):
    return build_runtime()


@pytest.fixture()
def client(runtime):
    from printflow.main import app

    app.dependency_overrides[get_runtime] = lambda: runtime
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers():
    settings = get_settings()
    client_keys = {customer: key for key, customer in settings.client_api_keys.items()}
    return {
        "admin": {"X-API-Key": settings.admin_api_key},
        "superadmin": {"Authorization": f"Bearer {settings.superadmin_api_key}"},
        "operations": {"X-API-Key": settings.operations_api_key},
        "c1": {"X-API-Key": client_keys["c1"]},
        "c2": {"X-API-Key": client_keys["c2"]},
    }


@pytest.fixture()
def sessions():
    return {
        "admin": SessionContext(role=Role.ADMIN, user_id="admin1"),
        "superadmin": SessionContext(role=Role.SUPERADMIN, user_id="superadmin1"),
        "operations": SessionContext(role=Role.OPERATIONS, user_id="ops1"),
        "c1": SessionContext(role=Role.CLIENT, user_id="c1", customer_id="c1"),
        "c2": SessionContext(role=Role.CLIENT, user_id="c2", customer_id="c2"),
    }


@pytest.fixture()
def workflow():
    """Board and quoting services over an in-memory store, no persistence."""

    def build(orders: list[Order], max_capacity: int = 5_000_000):
        store = OrderStore(orders)
        guard = TransitionGuard()
        gate = CapacityGate(KeyringSupervisorAuthorizer([SUPERVISOR_KEY]), max_capacity=max_capacity)
        quoting = QuoteService(
            ReferenceRegistry(),
            PricingConfigStore(),
            store,
            gate,
            today=lambda: date(2024, 3, 1),
        )
        return store, BoardService(store, guard, gate), quoting

    return build

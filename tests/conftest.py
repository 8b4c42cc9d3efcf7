"""
Pytest configuration and fixtures for the DPP quality ledger tests.
"""

import json
import os
import tempfile
from datetime import datetime, timedelta, timezone
from typing import Dict, Generator, List, Tuple

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_FILE", os.path.join(tempfile.gettempdir(), "dpp-ledger-tests.log"))

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core.dependencies import get_dpp_service, get_notification_sink
from app.db import schema  # noqa: F401
from app.db.core import get_session
from app.main import app
from app.models.dpp import DPPCreate
from app.services.dpp import DPPService
from app.services.identity import CallerIdentity, IdentityService

from factories import mfi_spec


# ============================================================================
# Deterministic collaborators
# ============================================================================


class FixedClock:
    """Clock pinned to a known instant. Tests move it explicitly."""

    def __init__(self, moment: datetime = datetime(2026, 5, 6, 10, 0, 0, tzinfo=timezone.utc)):
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def advance(self, **kwargs) -> None:
        self.moment = self.moment + timedelta(**kwargs)


class SequentialIdFactory:
    """Event ids in creation order: evt-create-0001, evt-qc-0002, ..."""

    def __init__(self):
        self.counter = 0

    def new_id(self, prefix: str) -> str:
        self.counter += 1
        return f"evt-{prefix}-{self.counter:04d}"


class RecordingSink:
    """Collects emitted notifications as (topic, decoded payload)."""

    def __init__(self):
        self.messages: List[Tuple[str, dict]] = []

    def emit(self, topic: str, payload: bytes) -> None:
        self.messages.append((topic, json.loads(payload)))


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def id_factory() -> SequentialIdFactory:
    return SequentialIdFactory()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def service(session, sink, clock, id_factory) -> DPPService:
    return DPPService(session, notifier=sink, clock=clock, id_factory=id_factory)


@pytest.fixture
def org1() -> CallerIdentity:
    return CallerIdentity(organization="Org1MSP")


@pytest.fixture
def org2() -> CallerIdentity:
    return CallerIdentity(organization="Org2MSP")


@pytest.fixture
def org3() -> CallerIdentity:
    return CallerIdentity(organization="Org3MSP")


@pytest.fixture
def org4() -> CallerIdentity:
    return CallerIdentity(organization="Org4MSP")


# ============================================================================
# Payload Fixtures
# ============================================================================


@pytest.fixture
def new_dpp():
    """Factory for creation payloads. Pass `serial` to vary the product identifier."""
    def _factory(dpp_id: str, specifications=None, serial: str = None) -> DPPCreate:
        serial = serial or "1001"
        return DPPCreate(
            id=dpp_id,
            product_identifier=f"urn:epc:id:sgtin:4012345.011111.{serial}",
            product_type_id="PP-GRANULATE",
            manufacturer_site_id="4012345000002",
            batch=f"B-{dpp_id}",
            production_date="2026-05-01",
            specifications=specifications if specifications is not None else [mfi_spec()],
        )
    return _factory


# ============================================================================
# API Fixtures
# ============================================================================


@pytest.fixture
def client(engine, sink, clock, id_factory) -> Generator[TestClient, None, None]:
    def override_session():
        with Session(engine) as session:
            yield session

    def override_service(session: Session = Depends(get_session)) -> DPPService:
        return DPPService(session, notifier=sink, clock=clock, id_factory=id_factory)

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_notification_sink] = lambda: sink
    app.dependency_overrides[get_dpp_service] = override_service

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers():
    """Bearer headers for a given organization."""
    identity = IdentityService()

    def _headers(organization: str) -> Dict[str, str]:
        token = identity.create_access_token(organization)
        return {"Authorization": f"Bearer {token}"}
    return _headers

from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.auth import AuthUser, get_current_user as auth_get_current_user
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.leads.api import get_current_user as leads_get_current_user
from app.main import app
from app.middleware.rate_limit import reset_rate_limiter
from app.platform.security.context import ActorUser


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def configure_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("METRICS_ENABLED", "true")
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    get_settings.cache_clear()
    reset_rate_limiter()
    yield
    get_settings.cache_clear()
    reset_rate_limiter()


@pytest.fixture()
def auth_permissions() -> list[str]:
    return ["system.metrics.read"]


@pytest.fixture()
def client(db_session: Session, auth_permissions: list[str]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_leads_user() -> ActorUser:
        return ActorUser(user_id="agent-1", role="agent", correlation_id="metrics-corr-1")

    def override_auth_user() -> AuthUser:
        return AuthUser(sub="metrics-admin", role="admin", permissions=auth_permissions)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[leads_get_current_user] = override_leads_user
    app.dependency_overrides[auth_get_current_user] = override_auth_user

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def test_metrics_endpoint_exposes_http_and_cascade_metrics(client: TestClient) -> None:
    health = client.get("/health")
    assert health.status_code == 200

    created = client.post(
        "/api/leads",
        json={"customer_name": "Metrics Lead", "phone_number": "555-0100", "sales_price": 250},
    )
    assert created.status_code == 201

    fetched = client.get(f"/api/leads/{created.json()['lead']['id']}")
    assert fetched.status_code == 200

    denied = client.delete(f"/api/leads/{created.json()['lead']['id']}")
    assert denied.status_code == 403

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    body = metrics.text

    assert "http_requests_total" in body
    assert "http_request_duration_seconds" in body
    assert "lead_cascade_steps_total" in body
    assert "lead_writes_total" in body
    assert "permission_denials_total" in body

    assert 'path="/health"' in body
    assert 'path="/api/leads/{id}"' in body
    assert 'step="payment_record"' in body
    assert 'operation="create"' in body
    assert 'resource="leads"' in body


@pytest.mark.parametrize("auth_permissions", [[]])
def test_metrics_requires_permission(client: TestClient) -> None:
    response = client.get("/metrics")

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


def test_metrics_can_be_disabled(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("METRICS_ENABLED", "false")
    get_settings.cache_clear()

    response = client.get("/metrics")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"

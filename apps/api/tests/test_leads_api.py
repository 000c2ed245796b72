from __future__ import annotations

import uuid
from collections.abc import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import activity, events
from app.core.config import get_settings
from app.core.database import Base, get_db
from app.leads.api import get_current_user
from app.leads.models import PaymentRecord
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
def clear_stubs(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    activity.activity_entries.clear()
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()
    yield
    activity.activity_entries.clear()
    events.published_events.clear()
    reset_rate_limiter()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[tuple[TestClient, Callable[[str], None]], None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    actors = {
        "agent1": ActorUser(user_id="agent-1", role="agent", email="agent1@example.com", correlation_id="corr-lead"),
        "agent2": ActorUser(user_id="agent-2", role="agent", email="agent2@example.com", correlation_id="corr-lead"),
        "manager": ActorUser(user_id="mgr-1", role="manager", assigned_agents=["agent-1"], correlation_id="corr-lead"),
        "admin": ActorUser(user_id="admin-1", role="admin", correlation_id="corr-lead"),
    }
    state = {"current": "agent1"}

    def override_get_current_user() -> ActorUser:
        return actors[state["current"]]

    def set_actor(name: str) -> None:
        state["current"] = name

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    with TestClient(app) as test_client:
        yield test_client, set_actor
    app.dependency_overrides.clear()


def _lead_payload(**overrides: object) -> dict[str, object]:
    return {
        "customer_name": "Jamie Smith",
        "phone_number": "555-0100",
        "customer_email": "jamie@example.com",
        "state": "CA",
        **overrides,
    }


def _create_lead(test_client: TestClient, **overrides: object) -> dict:
    response = test_client.post("/api/leads", json=_lead_payload(**overrides))
    assert response.status_code == 201, response.text
    return response.json()["lead"]


def test_create_get_and_list_lead(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client

    response = test_client.post("/api/leads", json=_lead_payload(sales_price=1500))
    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Lead created successfully"
    assert body["warnings"] == []
    lead = body["lead"]
    assert lead["status"] == "New"
    assert lead["assigned_agent"] == "agent-1"
    assert lead["created_by"] == "agent-1"

    fetched = test_client.get(f"/api/leads/{lead['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["lead_number"] == lead["lead_number"]

    listed = test_client.get("/api/leads", params={"search": "jamie", "status": "New", "time_in_hours": "abc"})
    assert listed.status_code == 200
    page = listed.json()
    assert (page["total"], page["page"], page["limit"], page["pages"]) == (1, 1, 10, 1)
    assert page["records"][0]["id"] == lead["id"]


def test_agent_cannot_assign_another_agent(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, set_actor = client

    lead = _create_lead(test_client, assigned_agent="agent-2")
    assert lead["assigned_agent"] == "agent-1"

    set_actor("manager")
    managed = _create_lead(test_client, assigned_agent="agent-1")
    assert managed["assigned_agent"] == "agent-1"


def test_patch_lead_returns_message_and_history(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client
    lead = _create_lead(test_client)

    response = test_client.patch(f"/api/leads/{lead['id']}", json={"status": "Follow up", "sales_price": 900})

    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "Lead updated successfully"
    assert body["lead"]["status"] == "Follow up"
    assert body["lead"]["history"][-1]["notes"] == "Status changed from New to Follow up"

    followups = test_client.get("/api/followups")
    assert followups.status_code == 200
    assert [record["lead_id"] for record in followups.json()["records"]] == [lead["lead_id"]]

    payments = test_client.get("/api/payment-records")
    assert payments.status_code == 200
    assert payments.json()["records"][0]["mode_of_payment"] == "Not specified"


def test_patch_rejects_server_managed_fields(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client
    lead = _create_lead(test_client)

    response = test_client.patch(
        f"/api/leads/{lead['id']}",
        json={"order_no": "ORD123"},
        headers={"X-Correlation-Id": "corr-422"},
    )

    assert response.status_code == 422
    body = response.json()
    assert body["code"] == "validation_error"
    assert body["correlation_id"] == "corr-422"
    assert any(error["loc"][-1] == "order_no" for error in body["details"])


def test_patch_cannot_blank_required_fields(
    client: tuple[TestClient, Callable[[str], None]], db_session: Session
) -> None:
    test_client, _ = client
    lead = _create_lead(test_client)

    response = test_client.patch(
        f"/api/leads/{lead['id']}",
        json={"status": "   ", "sales_price": 900, "phone_number": ""},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"
    assert db_session.scalar(select(func.count()).select_from(PaymentRecord)) == 0
    unchanged = test_client.get(f"/api/leads/{lead['id']}").json()
    assert (unchanged["status"], unchanged["phone_number"], unchanged["sales_price"]) == ("New", "555-0100", None)


def test_create_requires_customer_name(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client

    response = test_client.post("/api/leads", json={"phone_number": "555-0100"})

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_lead_outside_scope_is_not_found(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, set_actor = client
    lead = _create_lead(test_client)

    set_actor("agent2")
    assert test_client.get(f"/api/leads/{lead['id']}").status_code == 404
    patched = test_client.patch(f"/api/leads/{lead['id']}", json={"status": "Connected"})
    assert patched.status_code == 404
    assert patched.json()["code"] == "not_found"

    set_actor("manager")
    assert test_client.get(f"/api/leads/{lead['id']}").status_code == 200


def test_unknown_lead_returns_envelope(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client

    response = test_client.get(f"/api/leads/{uuid.uuid4()}", headers={"X-Correlation-Id": "corr-404"})

    assert response.status_code == 404
    assert response.json() == {
        "code": "not_found",
        "message": "Lead not found",
        "details": None,
        "correlation_id": "corr-404",
    }


def test_delete_is_admin_only(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, set_actor = client
    lead = _create_lead(test_client)

    forbidden = test_client.delete(f"/api/leads/{lead['id']}")
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "forbidden"
    assert forbidden.json()["details"] == {"resource": "leads", "action": "delete"}

    set_actor("manager")
    assert test_client.delete(f"/api/leads/{lead['id']}").status_code == 403

    set_actor("admin")
    deleted = test_client.delete(f"/api/leads/{lead['id']}")
    assert deleted.status_code == 200
    assert deleted.json() == {"message": "Lead deleted successfully"}
    assert test_client.get(f"/api/leads/{lead['id']}").status_code == 404

    delete_entries = [entry for entry in activity.activity_entries if entry["action"] == "delete"]
    assert delete_entries
    assert delete_entries[-1]["description"] == "Deleted lead: Jamie Smith"
    assert delete_entries[-1]["user_role"] == "admin"


def test_activity_history_is_admin_only(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, set_actor = client
    first = _create_lead(test_client)
    _create_lead(test_client, customer_name="Alex Jones")

    denied = test_client.get("/api/activity")
    assert denied.status_code == 403
    assert denied.json()["code"] == "forbidden"

    set_actor("admin")
    everything = test_client.get("/api/activity", params={"module": "leads"})
    assert everything.status_code == 200
    assert everything.json()["total"] == 2
    assert everything.json()["records"][0]["description"] == "Created lead: Alex Jones"

    one = test_client.get("/api/activity", params={"target_id": first["id"]})
    assert [entry["description"] for entry in one.json()["records"]] == ["Created lead: Jamie Smith"]


def test_add_note(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client
    lead = _create_lead(test_client)

    response = test_client.post(f"/api/leads/{lead['id']}/notes", json={"content": "Customer wants a callback"})

    assert response.status_code == 201
    notes = response.json()["notes"]
    assert len(notes) == 1
    assert notes[0]["content"] == "Customer wants a callback"
    assert notes[0]["created_by"] == "agent-1"

    blank = test_client.post(f"/api/leads/{lead['id']}/notes", json={"content": "   "})
    assert blank.status_code == 422


def test_analytics_endpoint(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client
    lead = _create_lead(test_client, sales_price=1200, cost_price=700, mode_of_payment="Card")
    test_client.patch(f"/api/leads/{lead['id']}", json={"status": "Sale Payment Done"})

    response = test_client.get("/api/analytics")

    assert response.status_code == 200
    body = response.json()
    assert body["summary"]["total_leads"] == 1
    assert body["summary"]["total_revenue"] == 1200
    assert body["summary"]["total_margin"] == 500
    assert body["summary"]["conversion_rate"] == 100
    assert body["payment_methods"] == [{"method": "Card", "count": 1, "total_amount": 1200}]

    sales = test_client.get("/api/sales")
    assert sales.status_code == 200
    assert sales.json()["total"] == 1


def test_targets_are_managed_by_managers(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, set_actor = client
    payload = {
        "title": "January",
        "target_amount": 5000,
        "start_date": "2026-01-01T00:00:00Z",
        "end_date": "2026-01-31T23:59:59Z",
        "assigned_users": ["agent-1", "agent-1"],
    }

    denied = test_client.post("/api/targets", json=payload)
    assert denied.status_code == 403
    assert test_client.get("/api/targets").status_code == 403

    set_actor("manager")
    created = test_client.post("/api/targets", json=payload)
    assert created.status_code == 201
    target = created.json()
    assert target["assigned_users"] == ["agent-1"]
    assert target["remaining_amount"] == 5000
    assert target["achieved_amount"] == 0

    listed = test_client.get("/api/targets")
    assert listed.status_code == 200
    assert [record["target_id"] for record in listed.json()["records"]] == [target["target_id"]]

    backwards = test_client.post("/api/targets", json={**payload, "end_date": "2025-12-01T00:00:00Z"})
    assert backwards.status_code == 422
    assert backwards.json()["code"] == "validation_error"


def test_vendor_orders_list_is_scoped_to_creator(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, set_actor = client
    _create_lead(test_client, products=[{"product_name": "Engine A", "vendor_info": {"vendor_name": "Yard One"}}])

    orders = test_client.get("/api/vendor-orders")
    assert orders.status_code == 200
    assert orders.json()["total"] == 1

    set_actor("agent2")
    assert test_client.get("/api/vendor-orders").json()["total"] == 0


def test_missing_token_is_unauthenticated(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client
    app.dependency_overrides.pop(get_current_user)

    response = test_client.get("/api/leads")

    assert response.status_code == 401
    body = response.json()
    assert body["code"] == "unauthenticated"
    assert body["correlation_id"]


def test_bearer_token_identifies_the_caller(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client
    app.dependency_overrides.pop(get_current_user)
    settings = get_settings()
    token = jwt.encode(
        {"sub": "agent-7", "role": "agent", "email": "agent7@example.com"},
        settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
    )

    response = test_client.post(
        "/api/leads",
        json=_lead_payload(),
        headers={"Authorization": f"Bearer {token}", "User-Agent": "pytest-agent"},
    )

    assert response.status_code == 201
    assert response.json()["lead"]["assigned_agent"] == "agent-7"
    created_entry = activity.activity_entries[-1]
    assert created_entry["user_name"] == "agent7@example.com"
    assert created_entry["user_agent"] == "pytest-agent"

    me = test_client.get("/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json() == {"sub": "agent-7", "role": "agent", "email": "agent7@example.com", "assigned_agents": []}

    invalid = test_client.get("/api/leads", headers={"Authorization": "Bearer not-a-token"})
    assert invalid.status_code == 401


def test_health(client: tuple[TestClient, Callable[[str], None]]) -> None:
    test_client, _ = client

    response = test_client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"

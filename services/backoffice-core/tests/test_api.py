"""
Tests for the HTTP surface
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backoffice.core.database import Base, get_db
from backoffice.main import app
from backoffice.models.staff import Staff, StaffRole, Dealership
from backoffice.services.messaging_client import SendResult, get_whatsapp_client


class FakeGateway:
    def __init__(self):
        self.sent = []

    async def send(self, to, text):
        self.sent.append((to, text))
        return SendResult(success=True, message="Message sent successfully!")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(gateway):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_whatsapp_client] = lambda: gateway

    db = TestingSession()
    supervisor = Staff(name="Sam", role=StaffRole.SUPERVISOR)
    db.add(supervisor)
    db.flush()
    alice = Staff(name="Alice", role=StaffRole.BROKER, supervisor_id=supervisor.id)
    bob = Staff(name="Bob", role=StaffRole.BROKER, supervisor_id=supervisor.id)
    dealership = Dealership(name="Norte Motors")
    db.add_all([alice, bob, dealership])
    db.commit()
    ids = {
        "supervisor": supervisor.id,
        "alice": alice.id,
        "bob": bob.id,
        "dealership": dealership.id,
    }
    db.close()

    yield TestClient(app), ids
    app.dependency_overrides.clear()


def headers(actor_id, name, role):
    return {"X-Actor-Id": actor_id, "X-Actor-Name": name, "X-Actor-Role": role}


def create_lead(test_client, ids):
    response = test_client.post(
        "/v1/leads",
        json={
            "name": "Laura Pérez",
            "phone": "+15550001111",
            "owner_id": ids["alice"],
            "dealership_id": ids["dealership"],
            "stage": "Citado",
        },
        headers=headers(ids["alice"], "Alice", "Broker")
    )
    assert response.status_code == 201
    return response.json()["lead"]


def test_health_check(client):
    test_client, _ = client
    response = test_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_owner_change_over_http(client):
    test_client, ids = client
    lead = create_lead(test_client, ids)
    assert lead["owner_name"] == "Alice"

    response = test_client.post(
        f"/v1/leads/{lead['id']}/appointments",
        json={"start_time": "2099-01-01T10:00:00", "end_time": "2099-01-01T11:00:00"},
        headers=headers(ids["alice"], "Alice", "Broker")
    )
    assert response.status_code == 201
    version = response.json()["lead"]["version"]
    assert version == 2

    response = test_client.patch(
        f"/v1/leads/{lead['id']}",
        json={"owner_id": ids["bob"], "expected_version": version},
        headers=headers(ids["alice"], "Alice", "Broker")
    )
    body = response.json()
    assert response.status_code == 200
    assert body["lead"]["owner_id"] == ids["bob"]
    assert body["changed"] == ["owner_id", "owner_name"]
    assert body["appointments_updated"] == 1
    assert body["notifications_sent"] == 1

    feed = test_client.get("/v1/notifications", headers=headers(ids["bob"], "Bob", "Broker")).json()
    assert len(feed) == 1

    notes = test_client.get(f"/v1/leads/{lead['id']}/notes", headers=headers(ids["bob"], "Bob", "Broker")).json()
    assert notes[0]["type"] == "Owner Change"


def test_error_mapping(client):
    test_client, ids = client
    lead = create_lead(test_client, ids)
    broker = headers(ids["alice"], "Alice", "Broker")

    response = test_client.patch(f"/v1/leads/{lead['id']}", json={"stage": "Perdido"}, headers=broker)
    assert response.status_code == 403

    response = test_client.patch(f"/v1/leads/{lead['id']}", json={}, headers=broker)
    assert response.status_code == 400

    response = test_client.patch(
        f"/v1/leads/{lead['id']}", json={"stage": "Calificado", "expected_version": 7}, headers=broker
    )
    assert response.status_code == 409
    assert response.json()["error"] == "ConcurrentModification"

    # Role denial wins over a stale version in the same request
    response = test_client.patch(
        f"/v1/leads/{lead['id']}", json={"stage": "Ganado", "expected_version": 7}, headers=broker
    )
    assert response.status_code == 403

    response = test_client.get("/v1/leads/missing", headers=broker)
    assert response.status_code == 404

    response = test_client.get("/v1/leads", headers=headers(ids["alice"], "Alice", "Owner"))
    assert response.status_code == 400


def test_lead_list_respects_visibility(client):
    test_client, ids = client
    create_lead(test_client, ids)

    assert len(test_client.get("/v1/leads", headers=headers(ids["alice"], "Alice", "Broker")).json()) == 1
    assert len(test_client.get("/v1/leads", headers=headers(ids["bob"], "Bob", "Broker")).json()) == 0
    assert len(test_client.get("/v1/leads", headers=headers(ids["supervisor"], "Sam", "Supervisor")).json()) == 1


def test_recruiting_flow(client, gateway):
    test_client, ids = client
    recruiter = headers(ids["supervisor"], "Sam", "Supervisor")

    response = test_client.post(
        "/v1/recruiting/applications",
        json={"full_name": "María López", "whatsapp_number": "+5215512345678"}
    )
    assert response.status_code == 201
    candidate_id = response.json()["id"]

    response = test_client.post(
        f"/v1/recruiting/candidates/{candidate_id}/transition",
        json={"target_status": "Interviews"},
        headers=recruiter
    )
    assert response.status_code == 200
    assert response.json()["message_sent"] is True
    assert len(gateway.sent) == 1

    response = test_client.post(
        f"/v1/recruiting/candidates/{candidate_id}/transition",
        json={"target_status": "Interviews"},
        headers=recruiter
    )
    assert response.status_code == 409
    assert len(gateway.sent) == 1

    allowed = test_client.get(f"/v1/recruiting/candidates/{candidate_id}/transitions", headers=recruiter).json()
    assert allowed["allowed"] == ["Approved", "Inactive", "Onboarding", "Rejected"]


def test_bonus_visibility(client):
    test_client, ids = client

    response = test_client.get(f"/v1/staff/{ids['alice']}/bonus", headers=headers(ids["alice"], "Alice", "Broker"))
    assert response.status_code == 200
    assert response.json()["amount"] == 0
    assert response.json()["next_goal"] == 5

    response = test_client.get(f"/v1/staff/{ids['bob']}/bonus", headers=headers(ids["alice"], "Alice", "Broker"))
    assert response.status_code == 403

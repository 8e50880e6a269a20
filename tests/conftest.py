import os
import tempfile
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

# Point the application at an isolated SQLite file before it is imported
_DB_DIR = tempfile.mkdtemp(prefix="clinicdesk-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'clinicdesk.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["APP_ENV"] = "test"
os.environ.pop("SENTRY_DSN", None)

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel

import clinicdesk.models  # noqa: F401
from clinicdesk.db.base import create_sync_engine
from clinicdesk.main import app

API = "/api/v1"


@dataclass
class Actor:
    """A signed-in user acting inside one clinic."""

    token: str
    user_id: str
    clinic_id: Optional[str] = None
    email: str = ""

    @property
    def headers(self) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.token}"}
        if self.clinic_id:
            headers["X-Clinic-Id"] = self.clinic_id
        return headers


@pytest.fixture(scope="session")
def sync_engine():
    engine = create_sync_engine()
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def fresh_schema(sync_engine):
    """Every test starts from empty tables."""
    SQLModel.metadata.drop_all(sync_engine)
    SQLModel.metadata.create_all(sync_engine)
    yield


@pytest.fixture()
def client():
    with TestClient(app) as test_client:
        yield test_client


def signup(client: TestClient, email: str, full_name: str = "Test User", password: str = "secret123") -> Actor:
    resp = client.post(f"{API}/auth/signup", json={"email": email, "password": password, "full_name": full_name})
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    return Actor(token=data["access_token"], user_id=data["user"]["id"], email=email)


def login(client: TestClient, email: str, password: str = "secret123") -> Actor:
    resp = client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    return Actor(token=data["access_token"], user_id=data["user"]["id"], email=email)


def create_clinic(client: TestClient, actor: Actor, name: str = "Clinica Central") -> str:
    resp = client.post(f"{API}/clinics", json={"name": name}, headers={"Authorization": f"Bearer {actor.token}"})
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["id"]


def bootstrap_admin(client: TestClient, email: str = "admin@example.com", clinic_name: str = "Clinica Central") -> Actor:
    """Sign up, found a clinic and claim its first clinic_admin role."""
    actor = signup(client, email, "Clinic Admin")
    actor.clinic_id = create_clinic(client, actor, clinic_name)
    resp = client.post(f"{API}/clinics/{actor.clinic_id}/assign-self-admin", headers=actor.headers)
    assert resp.status_code == 200, resp.text
    return actor


def add_member(
    client: TestClient,
    admin: Actor,
    email: str,
    role: str,
    professional_id: Optional[str] = None,
) -> Actor:
    """Provision a user in the admin's clinic and sign them in."""
    body = {"email": email, "password": "secret123", "full_name": email.split("@")[0], "role": role}
    if professional_id:
        body["professional_id"] = professional_id
    resp = client.post(f"{API}/create-clinic-user", json=body, headers=admin.headers)
    assert resp.status_code == 201, resp.text
    member = login(client, email)
    member.clinic_id = admin.clinic_id
    return member


def create_professional(client: TestClient, admin: Actor, name: str = "Dr. Ana Souza", specialty: str = "Cardiologia") -> dict:
    resp = client.post(f"{API}/professionals", json={"name": name, "specialty": specialty}, headers=admin.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def create_patient(client: TestClient, actor: Actor, name: str = "Maria Silva", cpf: Optional[str] = None) -> dict:
    cpf = cpf or str(uuid.uuid4().int)[:11]
    resp = client.post(f"{API}/patients-api", json={"name": name, "cpf": cpf}, headers=actor.headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


@pytest.fixture()
def admin(client) -> Actor:
    return bootstrap_admin(client)

"""Professional management."""

import uuid

from conftest import API, add_member, bootstrap_admin, create_patient, create_professional


def test_create_with_default_color(client, admin):
    doctor = create_professional(client, admin)
    assert doctor["color"] == "#3B82F6"
    assert doctor["clinic_id"] == admin.clinic_id

    resp = client.get(f"{API}/professionals/{doctor['id']}", headers=admin.headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["specialty"] == "Cardiologia"


def test_list_ordered_by_name(client, admin):
    create_professional(client, admin, "Dr. Zeca")
    create_professional(client, admin, "Dr. Bruno")
    create_professional(client, admin, "Dr. Mauro")

    names = [p["name"] for p in client.get(f"{API}/professionals", headers=admin.headers).json()["data"]]
    assert names == ["Dr. Bruno", "Dr. Mauro", "Dr. Zeca"]


def test_invalid_payloads(client, admin):
    resp = client.post(
        f"{API}/professionals",
        json={"name": "Dr. Ana", "specialty": "Clinica", "color": "blue"},
        headers=admin.headers,
    )
    assert resp.status_code == 400
    resp = client.post(f"{API}/professionals", json={"name": "Dr. Ana"}, headers=admin.headers)
    assert resp.status_code == 400


def test_update(client, admin):
    doctor = create_professional(client, admin)
    resp = client.put(
        f"{API}/professionals/{doctor['id']}",
        json={"color": "#10B981"},
        headers=admin.headers,
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["color"] == "#10B981"
    assert data["name"] == doctor["name"]

    resp = client.put(f"{API}/professionals/{doctor['id']}", json={"name": None}, headers=admin.headers)
    assert resp.status_code == 400


def test_foreign_professional_not_found(client, admin):
    other = bootstrap_admin(client, "other@example.com", "Outra")
    foreign = create_professional(client, other, "Dr. Carlos")

    assert client.get(f"{API}/professionals/{foreign['id']}", headers=admin.headers).status_code == 404
    assert client.delete(f"{API}/professionals/{foreign['id']}", headers=admin.headers).status_code == 404
    assert client.get(f"{API}/professionals/{uuid.uuid4()}", headers=admin.headers).status_code == 404


def test_delete(client, admin):
    doctor = create_professional(client, admin)
    assert client.delete(f"{API}/professionals/{doctor['id']}", headers=admin.headers).status_code == 200
    assert client.get(f"{API}/professionals", headers=admin.headers).json()["data"] == []


def test_delete_blocked_while_referenced(client, admin):
    doctor = create_professional(client, admin)
    patient = create_patient(client, admin)
    resp = client.post(
        f"{API}/appointments-api",
        json={
            "title": "Consulta",
            "patient_id": patient["id"],
            "professional_id": doctor["id"],
            "start_time": "2025-01-01T09:00:00Z",
            "end_time": "2025-01-01T09:30:00Z",
        },
        headers=admin.headers,
    )
    assert resp.status_code == 201

    resp = client.delete(f"{API}/professionals/{doctor['id']}", headers=admin.headers)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Professional is referenced by appointments or user roles and cannot be deleted"}


def test_delete_blocked_while_linked_to_user(client, admin):
    doctor = create_professional(client, admin)
    add_member(client, admin, "doc@example.com", "professional", professional_id=doctor["id"])

    resp = client.delete(f"{API}/professionals/{doctor['id']}", headers=admin.headers)
    assert resp.status_code == 400

"""Clinic bootstrap, membership resolution and first-admin claim tests."""

import asyncio
import uuid

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

import clinicdesk.services.clinic_service as clinic_module
from clinicdesk.core.exceptions import ClinicBootstrapError, Forbidden
from clinicdesk.db.base import AsyncSessionLocal, async_engine
from clinicdesk.models import Clinic, UserClinic, UserRole
from clinicdesk.services.access_service import access_service
from clinicdesk.services.clinic_service import clinic_service
from clinicdesk.services.identity_service import identity_service

from conftest import API, add_member, bootstrap_admin, create_clinic, create_professional, signup


def test_create_clinic_marks_creator_as_master(client):
    founder = signup(client, "founder@example.com")
    clinic_id = create_clinic(client, founder, "Clinica Sol")

    resp = client.get(f"{API}/clinics/membership", headers={"Authorization": f"Bearer {founder.token}"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [c["id"] for c in data["clinics"]] == [clinic_id]
    assert data["current_clinic"]["name"] == "Clinica Sol"
    assert data["master_clinic_ids"] == [clinic_id]
    assert data["roles"] == []


def test_master_without_role_cannot_manage_patients_until_claiming_admin(client):
    founder = signup(client, "founder@example.com")
    founder.clinic_id = create_clinic(client, founder)

    resp = client.get(f"{API}/patients-api", headers=founder.headers)
    assert resp.status_code == 403
    assert resp.json() == {"error": "No role assigned in this clinic"}

    resp = client.post(f"{API}/clinics/{founder.clinic_id}/assign-self-admin", headers=founder.headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "clinic_admin"

    resp = client.get(f"{API}/patients-api", headers=founder.headers)
    assert resp.status_code == 200


def test_assign_self_as_admin_is_idempotent_for_the_admin(client, admin):
    resp = client.post(f"{API}/clinics/{admin.clinic_id}/assign-self-admin", headers=admin.headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["user_id"] == admin.user_id


def test_second_member_cannot_claim_admin(client, admin):
    resp = client.post(
        f"{API}/create-clinic-user",
        json={"email": "recep@example.com", "password": "secret123", "full_name": "Recep", "role": "receptionist"},
        headers=admin.headers,
    )
    assert resp.status_code == 201
    recep_token = client.post(
        f"{API}/auth/login", json={"email": "recep@example.com", "password": "secret123"}
    ).json()["data"]["access_token"]

    resp = client.post(
        f"{API}/clinics/{admin.clinic_id}/assign-self-admin",
        headers={"Authorization": f"Bearer {recep_token}"},
    )
    assert resp.status_code == 403
    assert resp.json() == {"error": "admin already exists"}


def _own_role_id(client, actor):
    roles = client.get(f"{API}/user-roles", headers=actor.headers).json()["data"]
    return next(r["id"] for r in roles if r["user_id"] == actor.user_id)


def test_clinic_left_without_roles_can_be_claimed_again(client, admin):
    resp = client.delete(f"{API}/user-roles/{_own_role_id(client, admin)}", headers=admin.headers)
    assert resp.status_code == 200
    assert client.get(f"{API}/patients-api", headers=admin.headers).status_code == 403

    resp = client.post(f"{API}/clinics/{admin.clinic_id}/assign-self-admin", headers=admin.headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["role"] == "clinic_admin"
    assert client.get(f"{API}/patients-api", headers=admin.headers).status_code == 200


def test_claim_stays_closed_while_other_roles_remain(client, admin):
    add_member(client, admin, "recep@example.com", "receptionist")
    resp = client.delete(f"{API}/user-roles/{_own_role_id(client, admin)}", headers=admin.headers)
    assert resp.status_code == 200

    resp = client.post(f"{API}/clinics/{admin.clinic_id}/assign-self-admin", headers=admin.headers)
    assert resp.status_code == 403
    assert resp.json() == {"error": "admin already exists"}


def test_non_member_cannot_claim_admin(client, admin):
    outsider = signup(client, "outsider@example.com")
    resp = client.post(
        f"{API}/clinics/{admin.clinic_id}/assign-self-admin",
        headers={"Authorization": f"Bearer {outsider.token}"},
    )
    assert resp.status_code == 403
    assert resp.json() == {"error": "Not a member of this clinic"}


def test_claiming_unknown_clinic_is_not_found(client):
    actor = signup(client, "someone@example.com")
    resp = client.post(
        f"{API}/clinics/{uuid.uuid4()}/assign-self-admin",
        headers={"Authorization": f"Bearer {actor.token}"},
    )
    assert resp.status_code == 404


def test_user_without_clinic_is_forbidden_on_clinic_endpoints(client):
    actor = signup(client, "lonely@example.com")
    resp = client.get(f"{API}/patients-api", headers={"Authorization": f"Bearer {actor.token}"})
    assert resp.status_code == 403
    assert resp.json() == {"error": "User not associated with any clinic"}


def test_clinic_header_selects_between_memberships(client):
    actor = bootstrap_admin(client, "multi@example.com", "Primeira")
    first_clinic = actor.clinic_id
    second_clinic = create_clinic(client, actor, "Segunda")
    client.post(f"{API}/clinics/{second_clinic}/assign-self-admin", headers={
        "Authorization": f"Bearer {actor.token}", "X-Clinic-Id": second_clinic,
    })

    client.post(f"{API}/patients-api", json={"name": "Paciente Um", "cpf": "11111111111"}, headers=actor.headers)
    actor.clinic_id = second_clinic
    client.post(f"{API}/patients-api", json={"name": "Paciente Dois", "cpf": "22222222222"}, headers=actor.headers)

    in_second = client.get(f"{API}/patients-api", headers=actor.headers).json()["data"]
    assert [p["name"] for p in in_second] == ["Paciente Dois"]

    actor.clinic_id = first_clinic
    in_first = client.get(f"{API}/patients-api", headers=actor.headers).json()["data"]
    assert [p["name"] for p in in_first] == ["Paciente Um"]

    # Without a header the oldest clinic is current
    actor.clinic_id = None
    default = client.get(f"{API}/patients-api", headers=actor.headers).json()["data"]
    assert [p["name"] for p in default] == ["Paciente Um"]


def test_clinic_header_for_foreign_clinic_is_forbidden(client, admin):
    other = bootstrap_admin(client, "other-admin@example.com", "Outra")
    other.clinic_id = admin.clinic_id

    resp = client.get(f"{API}/patients-api", headers=other.headers)
    assert resp.status_code == 403
    assert resp.json() == {"error": "Not a member of this clinic"}


def test_failed_membership_insert_removes_the_clinic(client, monkeypatch):
    founder = signup(client, "founder@example.com")

    def membership_for_missing_user(**kwargs):
        kwargs["user_id"] = uuid.uuid4()
        return UserClinic(**kwargs)

    monkeypatch.setattr(clinic_module, "UserClinic", membership_for_missing_user)

    resp = client.post(f"{API}/clinics", json={"name": "Quebrada"}, headers={"Authorization": f"Bearer {founder.token}"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Failed to create clinic membership"}

    monkeypatch.undo()
    resp = client.get(f"{API}/clinics/membership", headers={"Authorization": f"Bearer {founder.token}"})
    assert resp.json()["data"]["clinics"] == []


class FailingDeleteSession(AsyncSession):
    """Session whose DELETE statements fail as if the store went away."""

    async def execute(self, statement, *args, **kwargs):
        if getattr(statement, "is_delete", False):
            raise OperationalError(str(statement), {}, Exception("store unavailable"))
        return await super().execute(statement, *args, **kwargs)


@pytest.mark.asyncio
async def test_failed_compensation_reports_orphan_clinic(monkeypatch):
    async with AsyncSessionLocal() as db:
        user = await identity_service.register(db, "orphan@example.com", "secret123", "Orphan")

    def membership_for_missing_user(**kwargs):
        kwargs["user_id"] = uuid.uuid4()
        return UserClinic(**kwargs)

    monkeypatch.setattr(clinic_module, "UserClinic", membership_for_missing_user)

    async with FailingDeleteSession(async_engine, expire_on_commit=False) as db:
        with pytest.raises(ClinicBootstrapError) as exc_info:
            await clinic_service.create_clinic(db, user.id, "Orfa")

    orphan_id = exc_info.value.orphan_clinic_id
    assert orphan_id is not None
    async with AsyncSessionLocal() as db:
        assert await db.get(Clinic, orphan_id) is not None


@pytest.mark.asyncio
async def test_concurrent_first_admin_claims_have_exactly_one_winner():
    async with AsyncSessionLocal() as db:
        founder = await identity_service.register(db, "first@example.com", "secret123", "First")
        rival = await identity_service.register(db, "rival@example.com", "secret123", "Rival")
        clinic = await clinic_service.create_clinic(db, founder.id, "Disputada")
        db.add(UserClinic(user_id=rival.id, clinic_id=clinic.id, role="member", role_type="member"))
        await db.commit()

    async def claim(user_id):
        async with AsyncSessionLocal() as db:
            try:
                await access_service.assign_self_as_admin(db, user_id, clinic.id)
            except Forbidden as exc:
                return exc.message
            return "granted"

    results = await asyncio.gather(claim(founder.id), claim(rival.id))
    assert sorted(results) == ["admin already exists", "granted"]

    async with AsyncSessionLocal() as db:
        admins = (await db.execute(
            select(func.count()).select_from(UserRole).where(UserRole.clinic_id == clinic.id)
        )).scalar_one()
    assert admins == 1


@pytest.mark.asyncio
async def test_membership_resolution_prefers_requested_clinic():
    async with AsyncSessionLocal() as db:
        user = await identity_service.register(db, "pref@example.com", "secret123", "Pref")
        first = await clinic_service.create_clinic(db, user.id, "Um")
        second = await clinic_service.create_clinic(db, user.id, "Dois")

        membership = await clinic_service.resolve_membership(db, user.id)
        assert membership.current_clinic.id == first.id

        membership = await clinic_service.resolve_membership(db, user.id, second.id)
        assert membership.current_clinic.id == second.id
        assert set(membership.master_clinic_ids) == {first.id, second.id}


def test_membership_reports_standing_in_current_clinic(client):
    founder = signup(client, "founder@example.com")
    founder.clinic_id = create_clinic(client, founder)

    data = client.get(f"{API}/clinics/membership", headers=founder.headers).json()["data"]
    assert data["current_role"] is None
    assert data["is_admin"] is False
    assert data["can_view_settings"] is True

    client.post(f"{API}/clinics/{founder.clinic_id}/assign-self-admin", headers=founder.headers)
    data = client.get(f"{API}/clinics/membership", headers=founder.headers).json()["data"]
    assert data["current_role"] == "clinic_admin"
    assert data["is_admin"] is True
    assert data["professional_id"] is None

    doctor = create_professional(client, founder)
    member = add_member(client, founder, "doc@example.com", "professional", professional_id=doctor["id"])
    data = client.get(f"{API}/clinics/membership", headers=member.headers).json()["data"]
    assert data["current_role"] == "professional"
    assert data["is_admin"] is False
    assert data["professional_id"] == doctor["id"]
    assert data["can_view_settings"] is False


def test_membership_without_clinic_has_no_standing(client):
    actor = signup(client, "lonely@example.com")
    data = client.get(f"{API}/clinics/membership", headers={"Authorization": f"Bearer {actor.token}"}).json()["data"]
    assert data["current_clinic"] is None
    assert data["current_role"] is None
    assert data["can_view_settings"] is False

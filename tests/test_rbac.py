"""RBAC gate rules and role enforcement on the HTTP surface."""

import pytest

from clinicdesk.core.rbac import ROLE_PERMISSIONS, Action, evaluate, parse_role
from clinicdesk.models import Role

from conftest import API, add_member, create_professional


@pytest.mark.parametrize("role", list(Role))
def test_every_role_has_a_permission_set(role):
    assert role in ROLE_PERMISSIONS


def test_clinic_admin_may_do_everything():
    for action in Action:
        assert evaluate(action, Role.CLINIC_ADMIN, is_member=True).allowed


@pytest.mark.parametrize("role", [Role.PROFESSIONAL, Role.RECEPTIONIST])
def test_staff_roles_cannot_manage_clinic(role):
    for action in (
        Action.PROFESSIONALS_WRITE,
        Action.USER_ROLES_MANAGE,
        Action.API_TOKENS_MANAGE,
        Action.CLINIC_SETTINGS_VIEW,
    ):
        decision = evaluate(action, role, is_member=True)
        assert not decision.allowed
        assert role.value in decision.reason

    for action in (Action.PATIENTS_WRITE, Action.APPOINTMENTS_WRITE, Action.PROFESSIONALS_READ):
        assert evaluate(action, role, is_member=True).allowed


def test_non_members_are_always_denied():
    decision = evaluate(Action.PATIENTS_READ, Role.CLINIC_ADMIN, is_member=False)
    assert not decision.allowed
    assert decision.reason == "Not a member of this clinic"


def test_master_flag_grants_bootstrap_and_settings_only():
    assert evaluate(Action.CLINIC_BOOTSTRAP_ADMIN, None, is_member=True, is_master=True).allowed
    assert evaluate(Action.CLINIC_SETTINGS_VIEW, None, is_member=True, is_master=True).allowed
    assert not evaluate(Action.API_TOKENS_MANAGE, None, is_member=True, is_master=True).allowed
    assert not evaluate(Action.CLINIC_SETTINGS_VIEW, None, is_member=True).allowed


def test_unknown_stored_role_grants_nothing():
    assert parse_role("superadmin") is None
    assert parse_role("receptionist") is Role.RECEPTIONIST


def test_receptionist_cannot_issue_api_tokens(client, admin):
    receptionist = add_member(client, admin, "recep@example.com", "receptionist")

    resp = client.post(
        f"{API}/api-tokens-management",
        json={"name": "n8n", "expiresInDays": 30},
        headers=receptionist.headers,
    )
    assert resp.status_code == 403
    assert "error" in resp.json()


def test_receptionist_cannot_manage_professionals_or_roles(client, admin):
    receptionist = add_member(client, admin, "recep@example.com", "receptionist")

    resp = client.post(f"{API}/professionals", json={"name": "Dr. X", "specialty": "Geral"}, headers=receptionist.headers)
    assert resp.status_code == 403

    resp = client.get(f"{API}/user-roles", headers=receptionist.headers)
    assert resp.status_code == 403

    resp = client.post(
        f"{API}/create-clinic-user",
        json={"email": "new@example.com", "password": "secret123", "full_name": "New", "role": "receptionist"},
        headers=receptionist.headers,
    )
    assert resp.status_code == 403


def test_receptionist_can_read_professionals_and_write_patients(client, admin):
    create_professional(client, admin)
    receptionist = add_member(client, admin, "recep@example.com", "receptionist")

    resp = client.get(f"{API}/professionals", headers=receptionist.headers)
    assert resp.status_code == 200
    assert len(resp.json()["data"]) == 1

    resp = client.post(f"{API}/patients-api", json={"name": "Carlos", "cpf": "98765432100"}, headers=receptionist.headers)
    assert resp.status_code == 201

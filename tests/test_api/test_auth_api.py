"""
Security pipeline through the HTTP surface: route rules, tokens, permission
gate and the resolved scope.
"""
from __future__ import annotations

from datetime import timedelta

from crm.security.tokens import create_access_token


def test_health_is_public(client):
    response = client.get("/health")

    assert response.status_code == 200


def test_missing_token_is_401_with_error_body(client):
    response = client.get("/leads")

    assert response.status_code == 401
    assert response.json() == {"code": 401, "message": "Please authenticate"}


def test_malformed_authorization_header(client):
    response = client.get("/leads", headers={"Authorization": "Token abc"})

    assert response.status_code == 401


def test_expired_token(client, seeded):
    token = create_access_token(seeded.users["sam"], expires_delta=timedelta(minutes=-1))

    response = client.get("/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["message"] == "Token expired"


def test_token_for_unknown_user(client, auth_header):
    response = client.get("/me", headers=auth_header(9999))

    assert response.status_code == 401


def test_inactive_user_is_rejected(client, api_sessionmaker, seeded, auth_header):
    from crm.models.security import User

    with api_sessionmaker() as db:
        db.get(User, seeded.users["ugo"]).status = "Inactive"
        db.commit()

    response = client.get("/me", headers=auth_header(seeded.users["ugo"]))

    assert response.status_code == 401


def test_permission_gate(client, seeded, auth_header):
    response = client.get("/roles", headers=auth_header(seeded.users["sam"]))

    assert response.status_code == 403
    assert response.json() == {"code": 403, "message": "You do not have permission to perform this action"}


def test_decorator_permissions_are_enforced(client, api_sessionmaker, seeded, auth_header):
    from crm.models.security import Role

    # Strip lead/deal viewing from the plain User role.
    with api_sessionmaker() as db:
        role = db.get(Role, seeded.roles["User"])
        role.permissions = {**role.permissions, "canViewLeads": False, "canViewDeals": False}
        db.commit()

    response = client.get("/analytics/dashboard", headers=auth_header(seeded.users["sam"]))

    assert response.status_code == 403


def test_me_reports_scope(client, seeded, auth_header):
    response = client.get("/me", headers=auth_header(seeded.users["tara"]))

    assert response.status_code == 200
    body = response.json()
    assert body["primary_role"] == "SalesManager"
    assert body["role_names"] == ["SalesManager"]
    assert body["scope"] == {
        "scope": "team",
        "user_id": seeded.users["tara"],
        "department_ids": [seeded.departments["Support"]],
    }
    assert "canViewTeams" in body["permissions"]


def test_scope_per_seeded_user(client, seeded, auth_header):
    expected = {
        "owner": "global",
        "admin": "admin",
        "mona": "department",
        "tara": "team",
        "sam": "own",
    }
    for name, scope in expected.items():
        body = client.get("/me", headers=auth_header(seeded.users[name])).json()
        assert body["scope"]["scope"] == scope, name


def test_me_reports_department_manager_flag(client, seeded, auth_header):
    mona = client.get("/me", headers=auth_header(seeded.users["mona"])).json()
    tara = client.get("/me", headers=auth_header(seeded.users["tara"])).json()

    assert mona["is_department_manager"] is True
    assert mona["scope"]["scope"] == "department"
    assert tara["is_department_manager"] is False

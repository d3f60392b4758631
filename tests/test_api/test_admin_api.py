"""
Role and user management endpoints.
"""
from __future__ import annotations

from crm.services.roles import LAST_ROLE_MESSAGE


def test_role_list_hides_roles_above_the_caller(client, seeded, auth_header):
    response = client.get("/roles", headers=auth_header(seeded.users["tara"]))

    assert response.status_code == 200
    names = {role["name"] for role in response.json()}
    assert names == {"TeamManager", "SalesManager", "User"}


def test_role_list_includes_member_counts(client, seeded, auth_header):
    roles = client.get("/roles", headers=auth_header(seeded.users["owner"])).json()

    by_name = {role["name"]: role for role in roles}
    assert by_name["User"]["member_count"] == 2
    assert by_name["SuperAdmin"]["permissions_count"] == by_name["SuperAdmin"]["total_permissions"]


def test_custom_role_cannot_exceed_system_roles(client, seeded, auth_header):
    response = client.post(
        "/roles",
        json={"name": "Escalations", "permissions": {"canDeleteSystem": True}},
        headers=auth_header(seeded.users["admin"]),
    )

    assert response.status_code == 400
    assert response.json() == {"code": 400, "message": "Cannot exceed system role permissions: canDeleteSystem"}


def test_custom_role_lifecycle(client, seeded, auth_header):
    headers = auth_header(seeded.users["admin"])

    created = client.post("/roles", json={"name": "Closer", "permissions": {"canViewDeals": True}}, headers=headers)
    assert created.status_code == 201
    role = created.json()
    assert role["is_system_role"] is False
    assert role["department_id"] == seeded.departments["Sales"]

    updated = client.patch(f"/roles/{role['id']}", json={"description": "Closes deals"}, headers=headers)
    assert updated.json()["description"] == "Closes deals"

    deleted = client.delete(f"/roles/{role['id']}", headers=headers)
    assert deleted.status_code == 204


def test_system_roles_are_read_only(client, seeded, auth_header):
    headers = auth_header(seeded.users["owner"])

    assert client.patch(f"/roles/{seeded.roles['User']}", json={"name": "Member"}, headers=headers).status_code == 403
    assert client.delete(f"/roles/{seeded.roles['User']}", headers=headers).status_code == 403


def test_admin_cannot_see_super_admin_role(client, seeded, auth_header):
    response = client.get(f"/roles/{seeded.roles['SuperAdmin']}", headers=auth_header(seeded.users["admin"]))

    assert response.status_code == 403


def test_last_role_cannot_be_removed(client, seeded, auth_header):
    response = client.delete(
        f"/users/{seeded.users['sam']}/roles/{seeded.roles['User']}",
        headers=auth_header(seeded.users["admin"]),
    )

    assert response.status_code == 400
    assert response.json()["message"] == LAST_ROLE_MESSAGE


def test_add_then_remove_role(client, seeded, auth_header):
    headers = auth_header(seeded.users["admin"])
    sam = seeded.users["sam"]

    added = client.post(f"/users/{sam}/roles", json={"role_id": seeded.roles["SalesManager"]}, headers=headers)
    assert [r["name"] for r in added.json()["roles"]] == ["User", "SalesManager"]

    removed = client.delete(f"/users/{sam}/roles/{seeded.roles['User']}", headers=headers)
    assert removed.status_code == 200
    assert [r["name"] for r in removed.json()["roles"]] == ["SalesManager"]


def test_replacing_role_membership_keeps_everyone_with_a_role(client, seeded, auth_header):
    response = client.put(
        f"/roles/{seeded.roles['User']}/users",
        json={"user_ids": [seeded.users["sam"]]},
        headers=auth_header(seeded.users["owner"]),
    )

    assert response.status_code == 400
    assert response.json()["message"].startswith(LAST_ROLE_MESSAGE)


def test_user_list_requires_permission(client, seeded, auth_header):
    assert client.get("/users", headers=auth_header(seeded.users["sam"])).status_code == 403


def test_department_scoped_user_list(client, seeded, auth_header):
    body = client.get("/users", headers=auth_header(seeded.users["mona"])).json()

    emails = {u["email"] for u in body["results"]}
    assert emails == {"owner@example.com", "admin@example.com", "mona@example.com", "sam@example.com"}


def test_soft_delete_user(client, seeded, auth_header):
    headers = auth_header(seeded.users["owner"])

    response = client.delete(f"/users/{seeded.users['ugo']}", headers=headers)

    assert response.status_code == 200
    assert response.json()["status"] == "Deleted"
    assert client.get("/me", headers=auth_header(seeded.users["ugo"])).status_code == 401

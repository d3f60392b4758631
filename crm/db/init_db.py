from __future__ import annotations

from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from crm.db.base import Base
from crm.db.session import SessionLocal, engine
from crm.models.crm import Deal, Lead, Status, Task
from crm.models.security import Department, Role, User
from crm.security.permissions import ORGANIZATION_PERMISSIONS, Permission, catalog_defaults, to_storage

P = Permission

_RECORD_WORK = {
    P.CAN_VIEW_LEADS,
    P.CAN_MANAGE_LEADS,
    P.CAN_VIEW_DEALS,
    P.CAN_MANAGE_DEALS,
    P.CAN_VIEW_TASKS,
    P.CAN_MANAGE_TASKS,
    P.CAN_VIEW_STATUS,
}

# System roles and the flags each grants on top of the catalog defaults.
SYSTEM_ROLE_GRANTS: dict[str, set[Permission] | None] = {
    "SuperAdmin": None,  # everything
    "Admin": set(Permission) - ORGANIZATION_PERMISSIONS,
    "TeamManager": _RECORD_WORK
    | {
        P.CAN_MANAGE_STATUS,
        P.CAN_VIEW_TEAMS,
        P.CAN_MANAGE_TEAMS,
        P.CAN_VIEW_USERS,
        P.CAN_VIEW_ROLES,
        P.CAN_VIEW_DEPARTMENTS,
    },
    "SalesManager": _RECORD_WORK | {P.CAN_VIEW_TEAMS, P.CAN_VIEW_USERS, P.CAN_VIEW_ROLES},
    "User": set(_RECORD_WORK),
}


def system_role_permissions(name: str) -> dict[str, bool]:
    grants = SYSTEM_ROLE_GRANTS[name]
    perms = catalog_defaults()
    for perm in perms:
        if grants is None or perm in grants:
            perms[perm] = True
    return to_storage(perms)


def init_db() -> None:
    """
    Create tables + seed demo data.

    Small and deterministic so the scope behavior can be tried without any
    additional setup. Seeding runs once, on an empty database.
    """

    Base.metadata.create_all(bind=engine)

    with SessionLocal() as db:
        if _has_seed_data(db):
            return
        seed(db)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(Role.id).limit(1)).first() is not None


def seed_system_roles(db: Session) -> dict[str, Role]:
    roles = {
        name: Role(
            name=name,
            description=f"{name} system role",
            is_system_role=True,
            permissions=system_role_permissions(name),
        )
        for name in SYSTEM_ROLE_GRANTS
    }
    db.add_all(roles.values())
    db.flush()
    return roles


def seed(db: Session) -> None:
    roles = seed_system_roles(db)

    sales = Department(name="Sales", description="Sales department")
    support = Department(name="Support", description="Customer support")
    db.add_all([sales, support])
    db.flush()

    owner = User(name="Olivia Owner", email="owner@example.com", department_id=sales.id, is_owner=True)
    owner.roles.append(roles["SuperAdmin"])
    admin = User(name="Adam Admin", email="admin@example.com", department_id=sales.id)
    admin.roles.append(roles["Admin"])
    manager = User(name="Mona Manager", email="mona@example.com", department_id=sales.id)
    manager.roles.append(roles["TeamManager"])
    seller = User(name="Sam Seller", email="sam@example.com", department_id=sales.id)
    seller.roles.append(roles["User"])
    tara = User(name="Tara Support", email="tara@example.com", department_id=support.id)
    tara.roles.append(roles["SalesManager"])
    agent = User(name="Ugo Agent", email="ugo@example.com", department_id=support.id)
    agent.roles.append(roles["User"])
    db.add_all([owner, admin, manager, seller, tara, agent])
    db.flush()

    sales.managers.append(manager)

    new_status = Status(name="New", associated_to="lead", color="#3B82F6", created_by_id=owner.id)
    converted = Status(name="Converted", associated_to="lead", color="#10B981", created_by_id=owner.id)
    won = Status(name="Closed Won", associated_to="deal", color="#22C55E", created_by_id=owner.id)
    for status in (new_status, converted, won):
        status.departments = [sales, support]
    db.add_all([new_status, converted, won])
    db.flush()

    acme = Lead(first_name="Ada", last_name="Lovelace", company="Acme", status_id=new_status.id, created_by_id=seller.id)
    acme.departments = [sales]
    globex = Lead(first_name="Hank", last_name="Scorpio", company="Globex", created_by_id=agent.id, assigned_to_id=agent.id)
    globex.departments = [support]
    db.add_all([acme, globex])
    db.flush()

    deal = Deal(name="Acme rollout", amount=12000, lead_id=acme.id, status_id=won.id, created_by_id=seller.id)
    deal.departments = [sales]
    task = Task(name="Call Ada", lead_id=acme.id, due_date=date.today() + timedelta(days=1), created_by_id=seller.id)
    task.departments = [sales]
    db.add_all([deal, task])

    db.commit()

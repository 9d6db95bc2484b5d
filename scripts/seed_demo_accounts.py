"""Seed demo accounts for every workflow role and print bearer tokens for them.

Run:
  PYTHONPATH=backend python scripts/seed_demo_accounts.py
"""

from __future__ import annotations

import os
from typing import Iterable

from sqlalchemy import select

from app.core.security import create_access_token
from app.db.bootstrap import ensure_runtime_schema_compatibility
from app.db.session import SessionLocal
from app.models.user import User, UserRole


def _env_email(key: str, default: str) -> str:
    value = os.getenv(key, "").strip()
    return value or default


DEMO_ACCOUNTS = {
    "coordinator": {
        "name": "Demo Coordinator",
        "email": _env_email("DEMO_COORDINATOR_EMAIL", "coordinator.demo@sitasi.ac.id"),
        "roles": [UserRole.coordinator, UserRole.lecturer],
    },
    "staff": {
        "name": "Demo Staff",
        "email": _env_email("DEMO_STAFF_EMAIL", "staff.demo@sitasi.ac.id"),
        "roles": [UserRole.staff],
    },
    "lecturer_1": {
        "name": "Demo Lecturer One",
        "email": _env_email("DEMO_LECTURER1_EMAIL", "lecturer1.demo@sitasi.ac.id"),
        "roles": [UserRole.lecturer],
    },
    "lecturer_2": {
        "name": "Demo Lecturer Two",
        "email": _env_email("DEMO_LECTURER2_EMAIL", "lecturer2.demo@sitasi.ac.id"),
        "roles": [UserRole.lecturer],
    },
    "lecturer_3": {
        "name": "Demo Lecturer Three",
        "email": _env_email("DEMO_LECTURER3_EMAIL", "lecturer3.demo@sitasi.ac.id"),
        "roles": [UserRole.lecturer],
    },
    "lecturer_4": {
        "name": "Demo Lecturer Four",
        "email": _env_email("DEMO_LECTURER4_EMAIL", "lecturer4.demo@sitasi.ac.id"),
        "roles": [UserRole.lecturer],
    },
    "student": {
        "name": "Demo Student",
        "email": _env_email("DEMO_STUDENT_EMAIL", "student.demo@sitasi.ac.id"),
        "roles": [UserRole.student],
    },
}


def _upsert_user(*, name: str, email: str, roles: list[UserRole]) -> User:
    with SessionLocal() as session:
        existing = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if existing is None:
            existing = User(name=name, email=email, roles=[role.value for role in roles], is_active=True)
            session.add(existing)
        else:
            existing.name = name
            existing.roles = [role.value for role in roles]
            existing.is_active = True
        session.commit()
        session.refresh(existing)
        return existing


def _print_accounts(items: Iterable[tuple[str, User]]) -> None:
    print("\nDemo accounts ready:")
    for label, user in items:
        print(f"  - {label}: {user.email} | roles={', '.join(user.roles)} | id={user.id}")
        print(f"      token: {create_access_token(user.id)}")
    print("\nSuggested flow:")
    print("  - student submits a proposal with lecturer_1 and lecturer_2 as supervisors")
    print("  - coordinator schedules the seminar with lecturer_3 and lecturer_4 as examiners")


def main() -> None:
    ensure_runtime_schema_compatibility()
    created_users: dict[str, User] = {}
    for key, item in DEMO_ACCOUNTS.items():
        created_users[key] = _upsert_user(name=item["name"], email=item["email"], roles=item["roles"])
    _print_accounts(created_users.items())


if __name__ == "__main__":
    main()

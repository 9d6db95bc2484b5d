import os

# The application engine is created at import time; keep it away from any real database.
os.environ["DATABASE_URL"] = "sqlite+pysqlite://"

from datetime import datetime, timezone  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.api.deps import get_db  # noqa: E402
from app.core.config import get_settings  # noqa: E402
from app.core.security import create_access_token  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.db.session import enable_sqlite_transactions  # noqa: E402
from app.main import app  # noqa: E402
from app.models.user import User, UserRole  # noqa: E402
from app.services.consultation_workflow import ConsultationWorkflow  # noqa: E402
from app.services.proposal_workflow import ProposalWorkflow  # noqa: E402
from app.services.roles import Identity  # noqa: E402
from app.services.sempro_workflow import SemproWorkflow  # noqa: E402


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_transactions(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db):
    counter = {"value": 0}

    def _make(name: str, *roles: UserRole, is_active: bool = True) -> Identity:
        counter["value"] += 1
        user = User(
            name=name,
            email=f"user{counter['value']}@sitasi.ac.id",
            roles=[role.value for role in roles],
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        return Identity.from_user(user)

    return _make


@pytest.fixture()
def cast(make_user):
    """Everyone a seminar needs: a student, four lecturers, and the administrators."""
    return SimpleNamespace(
        student=make_user("Student", UserRole.student),
        other_student=make_user("Other Student", UserRole.student),
        supervisor1=make_user("Supervisor One", UserRole.lecturer),
        supervisor2=make_user("Supervisor Two", UserRole.lecturer),
        examiner1=make_user("Examiner One", UserRole.lecturer),
        examiner2=make_user("Examiner Two", UserRole.lecturer),
        spare_lecturer=make_user("Spare Lecturer", UserRole.lecturer),
        staff=make_user("Staff", UserRole.staff),
        coordinator=make_user("Coordinator", UserRole.coordinator, UserRole.lecturer),
    )


@pytest.fixture()
def workflows(db):
    settings = get_settings()
    return SimpleNamespace(
        proposal=ProposalWorkflow(db, settings=settings),
        consultation=ConsultationWorkflow(db, settings=settings),
        sempro=SemproWorkflow(db, settings=settings),
    )


def sample_documents(suffix: str = "v1") -> dict[str, dict]:
    uploaded_at = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc).isoformat()
    return {
        kind: {
            "id": f"{kind}-{suffix}",
            "url": f"https://files.sitasi.test/{kind}-{suffix}.pdf",
            "name": f"{kind}-{suffix}.pdf",
            "type": "application/pdf",
            "uploaded_at": uploaded_at,
        }
        for kind in ("form", "plagiarism", "draft")
    }


@pytest.fixture()
def approved_proposal(workflows, cast):
    proposal = workflows.proposal.submit(
        cast.student,
        title="Adaptive Scheduling for Campus Shuttles",
        research_field="Operations Research",
        supervisor1_id=cast.supervisor1.id,
        supervisor2_id=cast.supervisor2.id,
    ).unwrap()
    workflows.proposal.approve(proposal.id, cast.supervisor1).unwrap()
    return workflows.proposal.approve(proposal.id, cast.supervisor2).unwrap()


def auth_headers(identity: Identity) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(identity.id)}"}


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()

"""Identity and capability resolution for workflow operations.

Account roles (``UserRole``) come from the identity provider. Workflow
permissions are expressed as a closed set of capabilities which are resolved
once per operation from the acting identity and the subject's relationships:

* ``student``    - account role student
* ``admin``      - account role staff or coordinator
* ``supervisor`` - assigned as supervisor 1 or 2 on the thesis proposal
* ``examiner``   - assigned as examiner 1 or 2 on the seminar schedule
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import logging

from app.core.exceptions import PermissionDeniedError
from app.models.proposal import ThesisProposal
from app.models.sempro import ReviewerRole, SemproSchedule
from app.models.user import User, UserRole

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({UserRole.staff, UserRole.coordinator})


class Capability(str, Enum):
    student = "student"
    supervisor = "supervisor"
    examiner = "examiner"
    admin = "admin"


@dataclass(frozen=True)
class Identity:
    id: str
    roles: frozenset[UserRole] = frozenset()

    @classmethod
    def from_user(cls, user: User) -> Identity:
        roles: set[UserRole] = set()
        for raw in user.roles or []:
            try:
                roles.add(UserRole(raw))
            except ValueError:
                logger.debug("Ignoring unknown account role %r for user %s", raw, user.id)
        return cls(id=user.id, roles=frozenset(roles))

    def has_role(self, role: UserRole) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return bool(self.roles & ADMIN_ROLES)


def supervisor_role(proposal: ThesisProposal, user_id: str) -> ReviewerRole | None:
    if proposal.supervisor1_id == user_id:
        return ReviewerRole.supervisor1
    if proposal.supervisor2_id == user_id:
        return ReviewerRole.supervisor2
    return None


def examiner_role(schedule: SemproSchedule | None, user_id: str) -> ReviewerRole | None:
    if schedule is None:
        return None
    if schedule.examiner1_id == user_id:
        return ReviewerRole.examiner1
    if schedule.examiner2_id == user_id:
        return ReviewerRole.examiner2
    return None


def reviewer_role(
    proposal: ThesisProposal,
    schedule: SemproSchedule | None,
    user_id: str,
) -> ReviewerRole | None:
    return supervisor_role(proposal, user_id) or examiner_role(schedule, user_id)


def resolve_capabilities(
    identity: Identity,
    *,
    proposal: ThesisProposal | None = None,
    schedule: SemproSchedule | None = None,
) -> frozenset[Capability]:
    capabilities: set[Capability] = set()
    if identity.has_role(UserRole.student):
        capabilities.add(Capability.student)
    if identity.is_admin:
        capabilities.add(Capability.admin)
    if proposal is not None and supervisor_role(proposal, identity.id) is not None:
        capabilities.add(Capability.supervisor)
    if examiner_role(schedule, identity.id) is not None:
        capabilities.add(Capability.examiner)
    return frozenset(capabilities)


def require_capability(
    identity: Identity,
    *required: Capability,
    proposal: ThesisProposal | None = None,
    schedule: SemproSchedule | None = None,
    message: str | None = None,
) -> frozenset[Capability]:
    """Fail with PermissionDeniedError unless the identity holds one of ``required``."""
    capabilities = resolve_capabilities(identity, proposal=proposal, schedule=schedule)
    if capabilities.isdisjoint(required):
        names = ", ".join(item.value for item in required)
        raise PermissionDeniedError(
            message or f"This action requires one of: {names}",
            details={"required": [item.value for item in required]},
        )
    return capabilities

from app.models.consultation import Consultation, ConsultationStatus  # noqa: F401
from app.models.history import HistorySubject, WorkflowHistory  # noqa: F401
from app.models.notification import DeliveryStatus, Notification, NotificationType  # noqa: F401
from app.models.proposal import ProposalStatus, ThesisProposal  # noqa: F401
from app.models.sempro import (  # noqa: F401
    DocumentKind,
    ReviewerRole,
    SeminarPeriod,
    SemproEvaluation,
    SemproRegistration,
    SemproRevisionNote,
    SemproSchedule,
    SemproStatus,
)
from app.models.user import User, UserRole  # noqa: F401

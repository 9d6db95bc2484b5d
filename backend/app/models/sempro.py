import uuid
from datetime import date, datetime, time
from enum import Enum

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    Integer,
    JSON,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class SemproStatus(str, Enum):
    registered = "registered"
    verified = "verified"
    scheduled = "scheduled"
    completed = "completed"
    revision_required = "revision_required"
    approved = "approved"
    rejected = "rejected"

    @classmethod
    def _missing_(cls, value):
        # Older records and clients report "evaluated" for documents that passed verification.
        if isinstance(value, str) and value.strip().lower() == "evaluated":
            return cls.verified
        return None


class DocumentKind(str, Enum):
    form = "form"
    plagiarism = "plagiarism"
    draft = "draft"


DOCUMENT_COLUMNS: dict[DocumentKind, str] = {
    DocumentKind.form: "form_document",
    DocumentKind.plagiarism: "plagiarism_document",
    DocumentKind.draft: "draft_document",
}


class ReviewerRole(str, Enum):
    supervisor1 = "supervisor1"
    supervisor2 = "supervisor2"
    examiner1 = "examiner1"
    examiner2 = "examiner2"
    admin = "admin"


reviewer_role_type = SAEnum(ReviewerRole, name="reviewer_role")


EVALUATOR_ROLES: tuple[ReviewerRole, ...] = (
    ReviewerRole.supervisor1,
    ReviewerRole.supervisor2,
    ReviewerRole.examiner1,
    ReviewerRole.examiner2,
)


class SeminarPeriod(Base):
    __tablename__ = "seminar_periods"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    starts_on: Mapped[date] = mapped_column(Date, nullable=False)
    ends_on: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class SemproRegistration(Base):
    __tablename__ = "sempro_registrations"
    __table_args__ = (
        UniqueConstraint("student_id", "idempotency_key", name="uq_sempro_registration_idempotency"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    proposal_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    period_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    status: Mapped[SemproStatus] = mapped_column(
        SAEnum(SemproStatus, name="sempro_status"),
        nullable=False,
        default=SemproStatus.registered,
        index=True,
    )
    form_document: Mapped[dict] = mapped_column(JSON, nullable=False)
    plagiarism_document: Mapped[dict] = mapped_column(JSON, nullable=False)
    draft_document: Mapped[dict] = mapped_column(JSON, nullable=False)
    revision_documents: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    approve_supervisor1: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approve_supervisor2: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    idempotency_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class SemproSchedule(Base):
    __tablename__ = "sempro_schedules"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sempro_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)
    examiner1_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    examiner2_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    seminar_date: Mapped[date] = mapped_column(Date, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    room: Mapped[str] = mapped_column(String(100), nullable=False)
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    review_round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class SemproEvaluation(Base):
    __tablename__ = "sempro_evaluations"
    __table_args__ = (
        UniqueConstraint("sempro_id", "evaluator_id", "review_round", name="uq_sempro_evaluation_evaluator_round"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sempro_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    evaluator_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    evaluator_role: Mapped[ReviewerRole] = mapped_column(reviewer_role_type, nullable=False)
    review_round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    presentation_media: Mapped[float] = mapped_column(Float, nullable=False)
    communication: Mapped[float] = mapped_column(Float, nullable=False)
    subject_mastery: Mapped[float] = mapped_column(Float, nullable=False)
    report_content: Mapped[float] = mapped_column(Float, nullable=False)
    writing_structure: Mapped[float] = mapped_column(Float, nullable=False)
    total_score: Mapped[float] = mapped_column(Float, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())


class SemproRevisionNote(Base):
    __tablename__ = "sempro_revision_notes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    sempro_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    reviewer_role: Mapped[ReviewerRole] = mapped_column(reviewer_role_type, nullable=False)
    author_id: Mapped[str] = mapped_column(String(36), nullable=False)
    note: Mapped[str] = mapped_column(Text, nullable=False)
    is_major: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    documents: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    review_round: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    # Ordering key within a registration; entries are append-only.
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

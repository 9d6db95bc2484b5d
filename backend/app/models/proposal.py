import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base


class ProposalStatus(str, Enum):
    submitted = "submitted"
    approved = "approved"
    revision = "revision"
    rejected = "rejected"
    completed = "completed"


class ThesisProposal(Base):
    __tablename__ = "thesis_proposals"
    __table_args__ = (
        UniqueConstraint("student_id", "idempotency_key", name="uq_thesis_proposal_idempotency"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    research_field: Mapped[str] = mapped_column(String(200), nullable=False)
    student_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    supervisor1_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    supervisor2_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    status: Mapped[ProposalStatus] = mapped_column(
        SAEnum(ProposalStatus, name="proposal_status"),
        nullable=False,
        default=ProposalStatus.submitted,
        index=True,
    )
    approve_supervisor1: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    approve_supervisor2: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(100), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def supervisor_ids(self) -> tuple[str, str]:
        return self.supervisor1_id, self.supervisor2_id

from datetime import date, datetime

from pydantic import BaseModel, Field

from app.models.consultation import ConsultationStatus


class ConsultationCreate(BaseModel):
    proposal_id: str = Field(max_length=36)
    supervisor_id: str = Field(max_length=36)
    session_date: date
    description: str = Field(max_length=4000)
    outcome: str = Field(max_length=4000)


class ConsultationUpdate(BaseModel):
    supervisor_id: str | None = Field(default=None, max_length=36)
    session_date: date | None = None
    description: str | None = Field(default=None, max_length=4000)
    outcome: str | None = Field(default=None, max_length=4000)


class ConsultationDecision(BaseModel):
    approved: bool
    note: str | None = Field(default=None, max_length=2000)


class ConsultationOut(BaseModel):
    id: str
    student_id: str
    supervisor_id: str
    proposal_id: str
    session_date: date
    description: str
    outcome: str
    status: ConsultationStatus
    decision_note: str | None = None
    version: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

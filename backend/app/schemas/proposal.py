from datetime import datetime

from pydantic import BaseModel, Field

from app.models.proposal import ProposalStatus


class ProposalCreate(BaseModel):
    title: str = Field(max_length=300)
    research_field: str = Field(max_length=200)
    supervisor1_id: str = Field(max_length=36)
    supervisor2_id: str = Field(max_length=36)
    idempotency_key: str | None = Field(default=None, max_length=100)


class ProposalUpdate(BaseModel):
    title: str | None = Field(default=None, max_length=300)
    research_field: str | None = Field(default=None, max_length=200)
    supervisor1_id: str | None = Field(default=None, max_length=36)
    supervisor2_id: str | None = Field(default=None, max_length=36)


class ProposalReject(BaseModel):
    reason: str = Field(max_length=2000)


class ProposalRevisionRequest(BaseModel):
    notes: str = Field(max_length=2000)


class ProposalOut(BaseModel):
    id: str
    title: str
    research_field: str
    student_id: str
    supervisor1_id: str
    supervisor2_id: str
    status: ProposalStatus
    approve_supervisor1: bool
    approve_supervisor2: bool
    version: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

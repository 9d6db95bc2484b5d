from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, Field, model_validator

from app.models.sempro import DocumentKind, ReviewerRole, SemproStatus


class DocumentMetadata(BaseModel):
    id: str | None = Field(default=None, max_length=100)
    url: str = Field(max_length=1000)
    name: str = Field(max_length=300)
    type: str | None = Field(default=None, max_length=100)
    uploaded_at: datetime | None = None

    model_config = {"extra": "allow"}


class DocumentSet(BaseModel):
    form: DocumentMetadata | None = None
    plagiarism: DocumentMetadata | None = None
    draft: DocumentMetadata | None = None

    def as_mapping(self) -> dict[DocumentKind, dict[str, Any]]:
        documents: dict[DocumentKind, dict[str, Any]] = {}
        for kind in DocumentKind:
            metadata = getattr(self, kind.value)
            if metadata is not None:
                documents[kind] = metadata.model_dump(mode="json", exclude_none=True)
        return documents


class SemproRegister(BaseModel):
    proposal_id: str = Field(max_length=36)
    documents: DocumentSet
    idempotency_key: str | None = Field(default=None, max_length=100)


class SemproVerify(BaseModel):
    note: str | None = Field(default=None, max_length=2000)


class SemproReject(BaseModel):
    reason: str = Field(max_length=2000)


class DocumentRevisionRequest(BaseModel):
    note: str = Field(max_length=2000)
    documents: list[DocumentKind] | None = None


class DocumentResubmission(BaseModel):
    documents: DocumentSet
    note: str | None = Field(default=None, max_length=2000)


class ScheduleCreate(BaseModel):
    examiner1_id: str = Field(max_length=36)
    examiner2_id: str = Field(max_length=36)
    seminar_date: date
    start_time: time
    end_time: time
    room: str = Field(max_length=100)
    published: bool = False


class ScheduleUpdate(BaseModel):
    examiner1_id: str | None = Field(default=None, max_length=36)
    examiner2_id: str | None = Field(default=None, max_length=36)
    seminar_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    room: str | None = Field(default=None, max_length=100)


class SchedulePublish(BaseModel):
    published: bool = True


class EvaluationCreate(BaseModel):
    presentation_media: float
    communication: float
    subject_mastery: float
    report_content: float
    writing_structure: float
    notes: str | None = Field(default=None, max_length=4000)

    def scores(self) -> dict[str, float]:
        return self.model_dump(exclude={"notes"})


class PostEvaluationRevisionRequest(BaseModel):
    note: str = Field(max_length=4000)
    is_major: bool = False
    documents: list[DocumentKind] | None = None


class PeriodCreate(BaseModel):
    name: str = Field(max_length=200)
    starts_on: date
    ends_on: date
    is_active: bool = False


class PeriodUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    starts_on: date | None = None
    ends_on: date | None = None
    is_active: bool | None = None

    @model_validator(mode="after")
    def require_change(self) -> "PeriodUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class SemproOut(BaseModel):
    id: str
    proposal_id: str
    student_id: str
    period_id: str | None = None
    status: SemproStatus
    form_document: dict[str, Any]
    plagiarism_document: dict[str, Any]
    draft_document: dict[str, Any]
    revision_documents: list[DocumentKind]
    approve_supervisor1: bool
    approve_supervisor2: bool
    review_round: int
    version: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class ScheduleOut(BaseModel):
    id: str
    sempro_id: str
    examiner1_id: str
    examiner2_id: str
    seminar_date: date
    start_time: time
    end_time: time
    room: str
    published: bool
    review_round: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class EvaluationOut(BaseModel):
    id: str
    sempro_id: str
    evaluator_id: str
    evaluator_role: ReviewerRole
    review_round: int
    presentation_media: float
    communication: float
    subject_mastery: float
    report_content: float
    writing_structure: float
    total_score: float
    notes: str | None = None
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class RevisionNoteOut(BaseModel):
    id: str
    sempro_id: str
    reviewer_role: ReviewerRole
    author_id: str
    note: str
    is_major: bool
    documents: list[DocumentKind]
    review_round: int
    sequence: int
    created_at: datetime

    model_config = {"from_attributes": True}


class PeriodOut(BaseModel):
    id: str
    name: str
    starts_on: date
    ends_on: date
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_current_identity, get_sempro_workflow
from app.models.sempro import SemproStatus
from app.schemas.history import HistoryEntryOut
from app.schemas.sempro import (
    DocumentResubmission,
    DocumentRevisionRequest,
    EvaluationCreate,
    EvaluationOut,
    PeriodCreate,
    PeriodOut,
    PeriodUpdate,
    PostEvaluationRevisionRequest,
    RevisionNoteOut,
    ScheduleCreate,
    ScheduleOut,
    SchedulePublish,
    ScheduleUpdate,
    SemproOut,
    SemproRegister,
    SemproReject,
    SemproVerify,
)
from app.services.roles import Identity
from app.services.sempro_workflow import SemproWorkflow

router = APIRouter()


@router.get("/sempro/periods/active", response_model=PeriodOut | None)
def get_active_period(
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> PeriodOut | None:
    return workflow.active_period().unwrap()


@router.post("/sempro/periods", response_model=PeriodOut, status_code=status.HTTP_201_CREATED)
def create_period(
    payload: PeriodCreate,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> PeriodOut:
    return workflow.create_period(identity, **payload.model_dump()).unwrap()


@router.patch("/sempro/periods/{period_id}", response_model=PeriodOut)
def update_period(
    period_id: str,
    payload: PeriodUpdate,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> PeriodOut:
    return workflow.update_period(period_id, identity, **payload.model_dump(exclude_unset=True)).unwrap()


@router.get("/sempro", response_model=list[SemproOut])
def list_registrations(
    status_filter: SemproStatus | None = Query(default=None, alias="status"),
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> list[SemproOut]:
    return workflow.list_for(identity, status=status_filter).unwrap()


@router.post("/sempro", response_model=SemproOut, status_code=status.HTTP_201_CREATED)
def register_sempro(
    payload: SemproRegister,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> SemproOut:
    return workflow.register(
        identity,
        proposal_id=payload.proposal_id,
        documents=payload.documents.as_mapping(),
        idempotency_key=payload.idempotency_key,
    ).unwrap()


@router.get("/sempro/{sempro_id}", response_model=SemproOut)
def get_registration(
    sempro_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> SemproOut:
    return workflow.get(sempro_id, identity).unwrap()


@router.post("/sempro/{sempro_id}/verify", response_model=SemproOut)
def verify_registration(
    sempro_id: str,
    payload: SemproVerify,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> SemproOut:
    return workflow.verify(sempro_id, identity, payload.note).unwrap()


@router.post("/sempro/{sempro_id}/reject", response_model=SemproOut)
def reject_registration(
    sempro_id: str,
    payload: SemproReject,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> SemproOut:
    return workflow.reject(sempro_id, identity, payload.reason).unwrap()


@router.post("/sempro/{sempro_id}/document-revision", response_model=SemproOut)
def request_document_revision(
    sempro_id: str,
    payload: DocumentRevisionRequest,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> SemproOut:
    return workflow.request_document_revision(sempro_id, identity, payload.note, payload.documents).unwrap()


@router.post("/sempro/{sempro_id}/resubmit", response_model=SemproOut)
def resubmit_documents(
    sempro_id: str,
    payload: DocumentResubmission,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> SemproOut:
    return workflow.resubmit_documents(
        sempro_id,
        identity,
        payload.documents.as_mapping(),
        payload.note,
    ).unwrap()


@router.get("/sempro/{sempro_id}/schedule", response_model=ScheduleOut)
def get_schedule(
    sempro_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> ScheduleOut:
    return workflow.get_schedule(sempro_id, identity).unwrap()


@router.post("/sempro/{sempro_id}/schedule", response_model=ScheduleOut, status_code=status.HTTP_201_CREATED)
def create_schedule(
    sempro_id: str,
    payload: ScheduleCreate,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> ScheduleOut:
    return workflow.schedule(sempro_id, identity, **payload.model_dump()).unwrap()


@router.patch("/sempro/{sempro_id}/schedule", response_model=ScheduleOut)
def update_schedule(
    sempro_id: str,
    payload: ScheduleUpdate,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> ScheduleOut:
    return workflow.update_schedule(sempro_id, identity, **payload.model_dump(exclude_unset=True)).unwrap()


@router.post("/sempro/{sempro_id}/schedule/publish", response_model=ScheduleOut)
def publish_schedule(
    sempro_id: str,
    payload: SchedulePublish,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> ScheduleOut:
    return workflow.publish_schedule(sempro_id, identity, payload.published).unwrap()


@router.get("/sempro/{sempro_id}/evaluations", response_model=list[EvaluationOut])
def list_evaluations(
    sempro_id: str,
    review_round: int | None = Query(default=None, ge=1),
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> list[EvaluationOut]:
    return workflow.evaluations(sempro_id, identity, review_round=review_round).unwrap()


@router.post("/sempro/{sempro_id}/evaluations", response_model=EvaluationOut)
def submit_evaluation(
    sempro_id: str,
    payload: EvaluationCreate,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> EvaluationOut:
    return workflow.submit_evaluation(sempro_id, identity, payload.scores(), payload.notes).unwrap()


@router.get("/sempro/{sempro_id}/revision-notes", response_model=list[RevisionNoteOut])
def list_revision_notes(
    sempro_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> list[RevisionNoteOut]:
    return workflow.revision_notes(sempro_id, identity).unwrap()


@router.get("/sempro/{sempro_id}/revision-notes/latest", response_model=dict[str, RevisionNoteOut])
def latest_revision_notes(
    sempro_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> dict[str, RevisionNoteOut]:
    latest = workflow.latest_revision_notes(sempro_id, identity).unwrap()
    return {role.value: note for role, note in latest.items()}


@router.post("/sempro/{sempro_id}/revision", response_model=SemproOut)
def request_post_evaluation_revision(
    sempro_id: str,
    payload: PostEvaluationRevisionRequest,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> SemproOut:
    return workflow.request_post_evaluation_revision(
        sempro_id,
        identity,
        payload.note,
        is_major=payload.is_major,
        documents=payload.documents,
    ).unwrap()


@router.post("/sempro/{sempro_id}/approve", response_model=SemproOut)
def approve_final(
    sempro_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> SemproOut:
    return workflow.approve_final(sempro_id, identity).unwrap()


@router.get("/sempro/{sempro_id}/history", response_model=list[HistoryEntryOut])
def sempro_history(
    sempro_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: SemproWorkflow = Depends(get_sempro_workflow),
) -> list[HistoryEntryOut]:
    return workflow.history(sempro_id, identity).unwrap()

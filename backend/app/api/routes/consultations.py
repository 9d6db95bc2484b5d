from fastapi import APIRouter, Depends, Query, status

from app.api.deps import get_consultation_workflow, get_current_identity
from app.schemas.consultation import ConsultationCreate, ConsultationDecision, ConsultationOut, ConsultationUpdate
from app.schemas.history import HistoryEntryOut
from app.services.consultation_workflow import ConsultationWorkflow
from app.services.roles import Identity

router = APIRouter()


@router.get("/consultations", response_model=list[ConsultationOut])
def list_consultations(
    proposal_id: str | None = Query(default=None),
    identity: Identity = Depends(get_current_identity),
    workflow: ConsultationWorkflow = Depends(get_consultation_workflow),
) -> list[ConsultationOut]:
    return workflow.list_for(identity, proposal_id=proposal_id).unwrap()


@router.post("/consultations", response_model=ConsultationOut, status_code=status.HTTP_201_CREATED)
def log_consultation(
    payload: ConsultationCreate,
    identity: Identity = Depends(get_current_identity),
    workflow: ConsultationWorkflow = Depends(get_consultation_workflow),
) -> ConsultationOut:
    return workflow.log(identity, **payload.model_dump()).unwrap()


@router.get("/consultations/{consultation_id}", response_model=ConsultationOut)
def get_consultation(
    consultation_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: ConsultationWorkflow = Depends(get_consultation_workflow),
) -> ConsultationOut:
    return workflow.get(consultation_id, identity).unwrap()


@router.patch("/consultations/{consultation_id}", response_model=ConsultationOut)
def edit_consultation(
    consultation_id: str,
    payload: ConsultationUpdate,
    identity: Identity = Depends(get_current_identity),
    workflow: ConsultationWorkflow = Depends(get_consultation_workflow),
) -> ConsultationOut:
    return workflow.edit(consultation_id, identity, **payload.model_dump(exclude_unset=True)).unwrap()


@router.post("/consultations/{consultation_id}/decision", response_model=ConsultationOut)
def decide_consultation(
    consultation_id: str,
    payload: ConsultationDecision,
    identity: Identity = Depends(get_current_identity),
    workflow: ConsultationWorkflow = Depends(get_consultation_workflow),
) -> ConsultationOut:
    return workflow.decide(consultation_id, identity, payload.approved, payload.note).unwrap()


@router.get("/consultations/{consultation_id}/history", response_model=list[HistoryEntryOut])
def consultation_history(
    consultation_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: ConsultationWorkflow = Depends(get_consultation_workflow),
) -> list[HistoryEntryOut]:
    return workflow.history(consultation_id, identity).unwrap()

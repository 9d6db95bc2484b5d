from fastapi import APIRouter, Depends, status

from app.api.deps import get_current_identity, get_proposal_workflow
from app.schemas.history import HistoryEntryOut
from app.schemas.proposal import ProposalCreate, ProposalOut, ProposalReject, ProposalRevisionRequest, ProposalUpdate
from app.services.proposal_workflow import ProposalWorkflow
from app.services.roles import Identity

router = APIRouter()


@router.get("/proposals", response_model=list[ProposalOut])
def list_proposals(
    identity: Identity = Depends(get_current_identity),
    workflow: ProposalWorkflow = Depends(get_proposal_workflow),
) -> list[ProposalOut]:
    return workflow.list_for(identity).unwrap()


@router.post("/proposals", response_model=ProposalOut, status_code=status.HTTP_201_CREATED)
def submit_proposal(
    payload: ProposalCreate,
    identity: Identity = Depends(get_current_identity),
    workflow: ProposalWorkflow = Depends(get_proposal_workflow),
) -> ProposalOut:
    return workflow.submit(identity, **payload.model_dump()).unwrap()


@router.get("/proposals/{proposal_id}", response_model=ProposalOut)
def get_proposal(
    proposal_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: ProposalWorkflow = Depends(get_proposal_workflow),
) -> ProposalOut:
    return workflow.get(proposal_id, identity).unwrap()


@router.patch("/proposals/{proposal_id}", response_model=ProposalOut)
def update_proposal(
    proposal_id: str,
    payload: ProposalUpdate,
    identity: Identity = Depends(get_current_identity),
    workflow: ProposalWorkflow = Depends(get_proposal_workflow),
) -> ProposalOut:
    return workflow.update(proposal_id, identity, **payload.model_dump(exclude_unset=True)).unwrap()


@router.post("/proposals/{proposal_id}/approve", response_model=ProposalOut)
def approve_proposal(
    proposal_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: ProposalWorkflow = Depends(get_proposal_workflow),
) -> ProposalOut:
    return workflow.approve(proposal_id, identity).unwrap()


@router.post("/proposals/{proposal_id}/reject", response_model=ProposalOut)
def reject_proposal(
    proposal_id: str,
    payload: ProposalReject,
    identity: Identity = Depends(get_current_identity),
    workflow: ProposalWorkflow = Depends(get_proposal_workflow),
) -> ProposalOut:
    return workflow.reject(proposal_id, identity, payload.reason).unwrap()


@router.post("/proposals/{proposal_id}/revision", response_model=ProposalOut)
def request_proposal_revision(
    proposal_id: str,
    payload: ProposalRevisionRequest,
    identity: Identity = Depends(get_current_identity),
    workflow: ProposalWorkflow = Depends(get_proposal_workflow),
) -> ProposalOut:
    return workflow.request_revision(proposal_id, identity, payload.notes).unwrap()


@router.get("/proposals/{proposal_id}/history", response_model=list[HistoryEntryOut])
def proposal_history(
    proposal_id: str,
    identity: Identity = Depends(get_current_identity),
    workflow: ProposalWorkflow = Depends(get_proposal_workflow),
) -> list[HistoryEntryOut]:
    return workflow.history(proposal_id, identity).unwrap()

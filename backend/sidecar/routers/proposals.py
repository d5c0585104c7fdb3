"""Proposal review routes."""

from fastapi import APIRouter, Depends, HTTPException, Path, Query
from sqlalchemy.orm import Session

from sidecar.db.dependencies import get_db
from sidecar.schemas.common import ApiResponse
from sidecar.schemas.proposals import (
    ProposalApprovalResult,
    ProposalRead,
    ProposalRejectionResult,
    ProposalReviewRequest,
    ProposalStats,
)
from sidecar.services.notifications import NotificationDispatcher, get_default_dispatcher
from sidecar.services.proposals import (
    ProposalNotFoundError,
    ProposalStateConflictError,
    approve_proposal,
    get_proposal,
    get_proposal_stats,
    list_pending_proposals,
    reject_proposal,
)


project_router = APIRouter(prefix="/projects/{project_id}/proposals")
router = APIRouter(prefix="/proposals")


@project_router.get("/pending", response_model=ApiResponse[list[ProposalRead]])
def get_pending_proposals(
    project_id: int = Path(..., ge=1),
    role_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[list[ProposalRead]]:
    """List pending proposals, optionally for one approver role."""

    return ApiResponse(
        data=[ProposalRead.model_validate(row) for row in list_pending_proposals(db, project_id, role_id)]
    )


@project_router.get("/stats", response_model=ApiResponse[ProposalStats])
def get_stats(
    project_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[ProposalStats]:
    """Return proposal counts by status."""

    return ApiResponse(data=get_proposal_stats(db, project_id))


@router.get("/{proposal_id}", response_model=ApiResponse[ProposalRead])
def get_one_proposal(
    proposal_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
) -> ApiResponse[ProposalRead]:
    """Return one proposal."""

    proposal = get_proposal(db, proposal_id)
    if proposal is None:
        raise HTTPException(status_code=404, detail="Proposal not found")
    return ApiResponse(data=ProposalRead.model_validate(proposal))


@router.post("/{proposal_id}/approve", response_model=ApiResponse[ProposalApprovalResult])
def post_approve(
    payload: ProposalReviewRequest,
    proposal_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_default_dispatcher),
) -> ApiResponse[ProposalApprovalResult]:
    """Approve a pending proposal and create its graph node."""

    try:
        result = approve_proposal(db, proposal_id, payload.reviewer_id, payload.notes, dispatcher=dispatcher)
    except ProposalNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ProposalStateConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ApiResponse(data=result)


@router.post("/{proposal_id}/reject", response_model=ApiResponse[ProposalRejectionResult])
def post_reject(
    payload: ProposalReviewRequest,
    proposal_id: int = Path(..., ge=1),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_default_dispatcher),
) -> ApiResponse[ProposalRejectionResult]:
    """Reject a pending proposal."""

    try:
        result = reject_proposal(db, proposal_id, payload.reviewer_id, payload.notes, dispatcher=dispatcher)
    except ProposalNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ProposalStateConflictError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return ApiResponse(data=result)

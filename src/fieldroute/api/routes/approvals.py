"""Approval endpoints for restricted-slot proposals."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, status

from ...schemas.optimization import PendingOptimizationModel
from ...services.optimization.approval import ApprovalService
from ..dependencies import get_approval_service, get_caller_id

router = APIRouter(prefix="/optimizations", tags=["optimizations"])


@router.get("/pending", response_model=List[PendingOptimizationModel], status_code=status.HTTP_200_OK)
def list_pending(
    contractor_id: str = Query(..., alias="contractorId"),
    user_id: str = Depends(get_caller_id),
    service: ApprovalService = Depends(get_approval_service),
) -> List[PendingOptimizationModel]:
    return [PendingOptimizationModel.model_validate(entry) for entry in service.list_pending(user_id, contractor_id)]


@router.post("/{run_id}/accept", status_code=status.HTTP_200_OK)
def accept(
    run_id: str,
    user_id: str = Depends(get_caller_id),
    service: ApprovalService = Depends(get_approval_service),
) -> dict:
    return service.accept(user_id, run_id)


@router.post("/{run_id}/decline", status_code=status.HTTP_200_OK)
def decline(
    run_id: str,
    user_id: str = Depends(get_caller_id),
    service: ApprovalService = Depends(get_approval_service),
) -> dict:
    return service.decline(user_id, run_id)


@router.post("/{run_id}/request-customer-approval", status_code=status.HTTP_200_OK)
def request_customer_approval(
    run_id: str,
    user_id: str = Depends(get_caller_id),
    service: ApprovalService = Depends(get_approval_service),
) -> dict:
    """Ask each affected customer to approve the slot move."""
    return service.request_customer_approval(user_id, run_id)

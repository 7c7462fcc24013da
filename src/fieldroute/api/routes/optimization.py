"""Route optimization endpoints."""

from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import APIRouter, Depends, Header, status

from ...auth import IdentityResolver, bearer_token
from ...schemas.optimization import (
    BatchResponse,
    OptimizationEnvelope,
    OptimizationRequest,
    OptimizationResponse,
)
from ...services.optimization.service import RouteOptimizationService
from ..dependencies import get_identity_resolver, get_optimization_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["optimization"])


@router.post(
    "/route-optimization",
    response_model=Union[OptimizationEnvelope, BatchResponse],
    status_code=status.HTTP_200_OK,
)
def run_route_optimization(
    payload: OptimizationRequest,
    authorization: Optional[str] = Header(default=None),
    identity: IdentityResolver = Depends(get_identity_resolver),
    service: RouteOptimizationService = Depends(get_optimization_service),
) -> Union[OptimizationEnvelope, BatchResponse]:
    """Optimize one contractor's schedule, or preview every eligible contractor when no id is given."""
    if payload.contractor_id:
        user_id = identity.user_id_for_token(bearer_token(authorization))
        result = service.run_for_caller(user_id, payload.contractor_id, preview=payload.preview)
        return OptimizationEnvelope(result=OptimizationResponse.model_validate(result))

    results = service.run_batch()
    logger.info(f"Batch optimization finished for {len(results)} contractors")
    return BatchResponse.model_validate({"success": True, "results": results})

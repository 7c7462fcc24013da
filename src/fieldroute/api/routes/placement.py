"""Schedule placement endpoint."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header, status

from ...auth import IdentityResolver, bearer_token
from ...config import settings
from ...data.jobs_repository import JobRepository
from ...errors import OwnershipError
from ...schemas.placement import PlacementRequest, PlacementResponse
from ...services.placement.service import PlacementResult, occupied_slots, place_job, place_on_day
from ...services.scheduling.timeutils import time_to_minutes
from ..dependencies import get_identity_resolver, get_job_repository

router = APIRouter(prefix="/schedule", tags=["schedule"])


def _to_response(result: PlacementResult) -> PlacementResponse:
    return PlacementResponse(
        shifted=result.shifted,
        time=result.time,
        requested_time=result.requested_time,
        message=result.message,
    )


@router.post("/placement", response_model=PlacementResponse, status_code=status.HTTP_200_OK)
def place(
    payload: PlacementRequest,
    authorization: Optional[str] = Header(default=None),
    identity: IdentityResolver = Depends(get_identity_resolver),
    repository: JobRepository = Depends(get_job_repository),
) -> PlacementResponse:
    if payload.existing is None:
        if not payload.contractor_id:
            raise ValueError("Either existing bookings or contractor_id is required.")
        user_id = identity.user_id_for_token(bearer_token(authorization))
        contractor = repository.get_contractor(payload.contractor_id)
        if contractor is None or contractor.user_id != user_id:
            raise OwnershipError("Forbidden")
        result = place_on_day(
            repository,
            payload.contractor_id,
            payload.day,
            payload.desired_time,
            payload.duration_minutes,
            job_id=payload.job_id,
        )
        return _to_response(result)

    occupied = occupied_slots(
        payload.existing,
        exclude_id=payload.job_id,
        default_duration=settings.default_job_duration_minutes,
    )
    result = place_job(
        payload.desired_time,
        payload.duration_minutes,
        occupied,
        day_end=time_to_minutes(payload.day_end or settings.placement_fallback_day_end),
        increment=settings.placement_increment_minutes,
    )
    return _to_response(result)

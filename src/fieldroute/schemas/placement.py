"""Schedule placement schemas."""

from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field


class ExistingBooking(BaseModel):
    id: str
    scheduled_time: Optional[str] = None
    duration_minutes: Optional[int] = Field(default=None, ge=1)


class PlacementRequest(BaseModel):
    desired_time: str = Field(..., description="Requested start time, HH:MM.")
    duration_minutes: int = Field(..., ge=1)
    day: date
    existing: Optional[List[ExistingBooking]] = Field(
        default=None,
        description="Bookings already on the day. When omitted they are loaded for contractor_id.",
    )
    day_end: Optional[str] = Field(default=None, description="Latest finishing time, HH:MM.")
    contractor_id: Optional[str] = None
    job_id: Optional[str] = Field(default=None, description="Job being moved; ignored as a conflict.")


class PlacementResponse(BaseModel):
    shifted: bool
    time: str
    requested_time: str
    message: str

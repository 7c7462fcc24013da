"""Route optimization request/response schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OptimizationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    contractor_id: Optional[str] = Field(
        default=None,
        alias="contractorId",
        description="Run for one contractor. When omitted, every eligible contractor is previewed.",
    )
    preview: bool = Field(default=False, description="Evaluate without writing anything.")


class TierDetailModel(BaseModel):
    level: int
    timeSaved: int
    status: str
    date: str
    unresolvedEdges: int = 0


class OptimizationResponse(BaseModel):
    level: int
    timeSaved: int
    status: str
    details: List[TierDetailModel]
    proposedChanges: Optional[List[dict]] = None


class OptimizationEnvelope(BaseModel):
    success: bool = True
    result: OptimizationResponse


class BatchEntryModel(BaseModel):
    contractorId: str
    result: Optional[dict] = None
    error: Optional[str] = None


class BatchResponse(BaseModel):
    success: bool = True
    results: List[BatchEntryModel]


class SuggestionModel(BaseModel):
    jobId: str
    currentDate: str
    currentSlot: str
    suggestedDate: str
    suggestedSlot: str
    requiresApproval: bool


class PendingOptimizationModel(BaseModel):
    id: str
    date: str
    level: int
    timeSaved: int
    createdAt: str
    suggestions: List[SuggestionModel]

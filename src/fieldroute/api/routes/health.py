"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...services.routing.distance_oracle import DistanceOracle
from ..dependencies import get_distance_oracle

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/distance", status_code=status.HTTP_200_OK)
def health_distance(oracle: DistanceOracle = Depends(get_distance_oracle)) -> dict:
    """Check the distance provider."""
    try:
        return {"service": "distance", "healthy": oracle.check_health()}
    except Exception as e:
        return {"service": "distance", "healthy": False, "error": str(e)}

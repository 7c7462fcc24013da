"""Exception taxonomy for optimization runs and schedule placement."""

from __future__ import annotations


class OptimizationError(Exception):
    """Base class for errors raised by the scheduling engine."""

    status_code: int = 500


class AuthError(OptimizationError):
    """Caller identity is missing or invalid."""

    status_code = 401


class OwnershipError(OptimizationError):
    """Caller does not own the requested contractor."""

    status_code = 403


class EligibilityError(OptimizationError):
    """Contractor is inactive or not on an allow-listed subscription tier."""

    status_code = 400


class UpstreamError(OptimizationError):
    """The distance provider failed or returned a non-success status."""

    status_code = 502


class PersistenceError(OptimizationError):
    """A write to the job store or audit store failed."""

    status_code = 500


class PlacementError(OptimizationError):
    """No free slot exists for a job before the working day ends."""

    status_code = 400


class ApprovalError(OptimizationError):
    """A pending proposal cannot be decided (missing, foreign or already decided)."""

    status_code = 400

"""Request-scoped collaborators; tests override these through ``app.dependency_overrides``."""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header

from ..auth import IdentityResolver, SupabaseIdentityResolver, bearer_token
from ..config import settings
from ..data.jobs_repository import JobRepository, SupabaseJobRepository
from ..persistence.audit import AuditStore, SupabaseAuditStore
from ..persistence.notifications import NotificationSink, SupabaseNotificationSink
from ..services.optimization.approval import ApprovalService
from ..services.optimization.context import RunOptions
from ..services.optimization.service import RouteOptimizationService
from ..services.routing.distance_oracle import DistanceOracle, build_distance_oracle


def get_job_repository() -> JobRepository:
    return SupabaseJobRepository()


def get_audit_store() -> AuditStore:
    return SupabaseAuditStore()


def get_notification_sink() -> NotificationSink:
    return SupabaseNotificationSink()


def get_distance_oracle() -> DistanceOracle:
    return build_distance_oracle()


def get_identity_resolver() -> IdentityResolver:
    return SupabaseIdentityResolver()


def get_run_options() -> RunOptions:
    return RunOptions.from_settings(settings)


def get_caller_id(
    authorization: Optional[str] = Header(default=None),
    identity: IdentityResolver = Depends(get_identity_resolver),
) -> str:
    return identity.user_id_for_token(bearer_token(authorization))


def get_optimization_service(
    jobs: JobRepository = Depends(get_job_repository),
    audit: AuditStore = Depends(get_audit_store),
    notifier: NotificationSink = Depends(get_notification_sink),
    oracle: DistanceOracle = Depends(get_distance_oracle),
    options: RunOptions = Depends(get_run_options),
) -> RouteOptimizationService:
    return RouteOptimizationService(jobs, audit, notifier, oracle, options)


def get_approval_service(
    jobs: JobRepository = Depends(get_job_repository),
    audit: AuditStore = Depends(get_audit_store),
    notifier: NotificationSink = Depends(get_notification_sink),
    options: RunOptions = Depends(get_run_options),
) -> ApprovalService:
    return ApprovalService(jobs, audit, notifier, options)

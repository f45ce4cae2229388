"""API v1 router aggregating all endpoints."""

from fastapi import APIRouter

from followup.api.v1 import (
    alerts,
    dispatches,
    health,
    public,
    questionnaires,
)

api_router = APIRouter()

# Health check
api_router.include_router(
    health.router,
    prefix="/health",
    tags=["health"],
)

# Questionnaire templates
api_router.include_router(
    questionnaires.router,
    prefix="/questionnaires",
    tags=["questionnaires"],
)

# Dispatch scheduling and lifecycle
api_router.include_router(
    dispatches.router,
    prefix="/dispatches",
    tags=["dispatches"],
)

# Patient links (no auth)
api_router.include_router(
    public.router,
    prefix="/public",
    tags=["public"],
)

# Critical alerts and resolution
api_router.include_router(
    alerts.router,
    prefix="/alerts",
    tags=["alerts"],
)

"""
Registry read surface — GET /api/v1/users/{user}

Creation endpoints are not exposed; namespaces are registered lazily by the
pipeline on first write.
"""

from __future__ import annotations

from fastapi import APIRouter

from markerflow.api.dependencies import AppServices
from markerflow.core.namespace import require_safe_segment
from markerflow.schemas.pipeline import UserResponse

router = APIRouter(prefix="/users", tags=["Registry"])


@router.get("/{user}", response_model=UserResponse, summary="Does the user exist, and which projects do they have")
async def get_user(user: str, services: AppServices) -> UserResponse:
    user = require_safe_segment(user.strip(), "username")
    exists = await services.registry.user_exists(user)
    projects = await services.registry.list_projects(user) if exists else []
    return UserResponse(exists=exists, projects=projects)

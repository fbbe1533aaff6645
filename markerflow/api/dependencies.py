"""
FastAPI dependencies.

Services live on app.state (built once in create_app). Route handlers reach
them only through these functions, so tests can override them with
app.dependency_overrides.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Path, Request

from markerflow.core.namespace import Namespace
from markerflow.services.container import Services


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_namespace(
    user:    Annotated[str, Path(description="Owning user")],
    project: Annotated[str, Path(description="Project within the user")],
) -> Namespace:
    """Validated (user, project) from the URL — raises ValidationError on traversal."""
    return Namespace.of(user, project)


AppServices    = Annotated[Services, Depends(get_services)]
ProjectScope   = Annotated[Namespace, Depends(get_namespace)]

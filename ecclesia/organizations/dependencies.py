"""FastAPI dependencies for the organization directory."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .authorization import AuthorizationService
from .service import OrganizationService


async def get_organization_service(request: Request) -> OrganizationService:
    """Get organization service from app state."""
    service = getattr(request.app.state, "organization_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Organization service not available",
        )
    return service


async def get_authorization_service(request: Request) -> AuthorizationService:
    """Get authorization service from app state."""
    service = getattr(request.app.state, "authorization_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Authorization service not available",
        )
    return service


OrganizationServiceDep = Annotated[
    OrganizationService, Depends(get_organization_service)
]
AuthorizationServiceDep = Annotated[
    AuthorizationService, Depends(get_authorization_service)
]

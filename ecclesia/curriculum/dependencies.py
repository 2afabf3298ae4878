"""FastAPI dependencies for the curriculum."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import CurriculumService


async def get_curriculum_service(request: Request) -> CurriculumService:
    """Get curriculum service from app state."""
    service = getattr(request.app.state, "curriculum_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Curriculum service not available",
        )
    return service


CurriculumServiceDep = Annotated[CurriculumService, Depends(get_curriculum_service)]

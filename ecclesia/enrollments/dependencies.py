"""FastAPI dependencies for Foundation School enrollments."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .progression import ProgressionService
from .reports import ReportService
from .service import EnrollmentService


def _service_from_state(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{label} service not available",
        )
    return service


async def get_enrollment_service(request: Request) -> EnrollmentService:
    """Get enrollment service from app state."""
    return _service_from_state(request, "enrollment_service", "Enrollment")


async def get_progression_service(request: Request) -> ProgressionService:
    """Get progression service from app state."""
    return _service_from_state(request, "progression_service", "Progression")


async def get_report_service(request: Request) -> ReportService:
    """Get report service from app state."""
    return _service_from_state(request, "report_service", "Report")


EnrollmentServiceDep = Annotated[EnrollmentService, Depends(get_enrollment_service)]
ProgressionServiceDep = Annotated[ProgressionService, Depends(get_progression_service)]
ReportServiceDep = Annotated[ReportService, Depends(get_report_service)]

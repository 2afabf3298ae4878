"""FastAPI dependencies for Foundation School batches."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from .service import BatchService


async def get_batch_service(request: Request) -> BatchService:
    """Get batch service from app state."""
    service = getattr(request.app.state, "batch_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Batch service not available",
        )
    return service


BatchServiceDep = Annotated[BatchService, Depends(get_batch_service)]

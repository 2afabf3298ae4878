"""Foundation School batch endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, status

from ecclesia.auth.dependencies import CurrentUser
from ecclesia.core.errors import DomainError, handle_domain_error

from .dependencies import BatchServiceDep
from .models import BatchStatus
from .schemas import (
    AddTeacherRequest,
    BatchListResponse,
    BatchResponse,
    CreateBatchRequest,
    UpdateBatchStatusRequest,
)


router = APIRouter(prefix="/v1/foundation", tags=["foundation-batches"])


@router.get("/batches", response_model=BatchListResponse, summary="List batches")
async def list_batches(
    service: BatchServiceDep,
    organization_id: UUID | None = Query(default=None),
    batch_status: BatchStatus | None = Query(default=None, alias="status"),
) -> BatchListResponse:
    """List batches, newest first. Defaults to open batches."""
    batches = await service.list_batches(
        organization_id=organization_id, status=batch_status
    )
    return BatchListResponse(
        batches=[BatchResponse.from_entity(b) for b in batches],
        total=len(batches),
    )


@router.get("/batches/{batch_id}", response_model=BatchResponse, summary="Get batch")
async def get_batch(batch_id: UUID, service: BatchServiceDep) -> BatchResponse:
    try:
        return BatchResponse.from_entity(await service.get_batch(batch_id))
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.post(
    "/admin/batches",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create batch",
)
async def create_batch(
    data: CreateBatchRequest,
    service: BatchServiceDep,
    user: CurrentUser,
) -> BatchResponse:
    """Create a batch; the caller becomes its principal."""
    try:
        batch = await service.create_batch(
            issuer_id=user.id,
            organization_id=data.organization_id,
            batch_number=data.batch_number,
            name=data.name,
            start_date=data.start_date,
            end_date=data.end_date,
            graduation_date=data.graduation_date,
        )
        return BatchResponse.from_entity(batch)
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.patch(
    "/admin/batches/{batch_id}/status",
    response_model=BatchResponse,
    summary="Update batch status",
)
async def update_batch_status(
    batch_id: UUID,
    data: UpdateBatchStatusRequest,
    service: BatchServiceDep,
    user: CurrentUser,
) -> BatchResponse:
    try:
        batch = await service.update_batch_status(batch_id, user.id, data.status)
        return BatchResponse.from_entity(batch)
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.post(
    "/admin/batches/{batch_id}/teachers",
    response_model=BatchResponse,
    summary="Add batch teacher",
)
async def add_teacher(
    batch_id: UUID,
    data: AddTeacherRequest,
    service: BatchServiceDep,
    user: CurrentUser,
) -> BatchResponse:
    try:
        batch = await service.add_teacher(batch_id, user.id, data.teacher_id)
        return BatchResponse.from_entity(batch)
    except DomainError as e:
        raise handle_domain_error(e) from e

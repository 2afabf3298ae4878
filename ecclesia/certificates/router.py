"""Foundation School certificate endpoints."""

from uuid import UUID

from fastapi import APIRouter, Response

from ecclesia.auth.dependencies import CurrentUser
from ecclesia.core.errors import DomainError, handle_domain_error

from .dependencies import CertificateServiceDep
from .schemas import (
    CertificateResponse,
    IssueCertificateRequest,
    IssueCertificateResponse,
)


router = APIRouter(prefix="/v1/foundation", tags=["foundation-certificates"])


@router.post(
    "/admin/issue-certificate/{enrollment_id}",
    response_model=IssueCertificateResponse,
    summary="Issue certificate",
)
async def issue_certificate(
    enrollment_id: UUID,
    service: CertificateServiceDep,
    user: CurrentUser,
    data: IssueCertificateRequest | None = None,
) -> IssueCertificateResponse:
    """Issue the certificate for a completed enrollment.

    Repeat calls return the same certificate number.
    """
    try:
        enrollment, newly_issued = await service.issue(
            enrollment_id,
            issuer_id=user.id,
            issue_date=data.issue_date if data else None,
        )
    except DomainError as e:
        raise handle_domain_error(e) from e

    return IssueCertificateResponse(
        enrollment_id=enrollment.enrollment_id,
        certificate_number=enrollment.certificate_number,
        certificate_issued_at=enrollment.certificate_issued_at,
        status=enrollment.status,
        newly_issued=newly_issued,
    )


@router.get(
    "/certificate",
    response_model=CertificateResponse,
    summary="Get my certificate",
)
async def get_certificate(
    service: CertificateServiceDep,
    user: CurrentUser,
) -> CertificateResponse:
    try:
        return CertificateResponse.from_view(await service.get_certificate(user.id))
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.get(
    "/certificates/{enrollment_id}/file",
    summary="Download certificate",
    response_class=Response,
)
async def download_certificate(
    enrollment_id: UUID,
    service: CertificateServiceDep,
    user: CurrentUser,
) -> Response:
    try:
        rendered = await service.render(enrollment_id, viewer_id=user.id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return Response(
        content=rendered.content,
        media_type=rendered.media_type,
        headers={"Content-Disposition": f'attachment; filename="{rendered.filename}"'},
    )

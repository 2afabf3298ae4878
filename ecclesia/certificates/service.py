"""Foundation School certificate issuance.

Business logic for:
- Issuing a certificate for a completed enrollment (staff only)
- The student's certificate summary with final grade band
- Rendering the certificate document on download

Issuance is one conditional update: the number, issuer, dates and the
``graduated`` status are written together ``IF certificate_number = null``,
so the number is assigned exactly once and repeat calls are no-ops.
"""

import asyncio
import secrets
import string
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID

import structlog

from ecclesia.core.errors import BadRequestError, NotFoundError, UnavailableError
from ecclesia.enrollments.grading import grade_band, ranking_score
from ecclesia.enrollments.models import (
    CERTIFIABLE_STATUSES,
    Enrollment,
    EnrollmentStatus,
)
from ecclesia.utils.dates import ensure_utc_aware

from .renderer import CertificateData, CertificateRenderingError


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from ecclesia.enrollments.service import EnrollmentService
    from ecclesia.organizations.service import OrganizationService

    from .renderer import CertificateRenderer

logger = structlog.get_logger(__name__)

_BASE36 = string.digits + string.ascii_uppercase


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def generate_certificate_number(prefix: str) -> str:
    """``PREFIX-<base36 millis>-<4 random chars>``, e.g. ``FS-MF3K2L9A-7QX2``."""
    stamp = to_base36(time.time_ns() // 1_000_000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(4))
    return f"{prefix}-{stamp}-{suffix}"


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class EnrollmentNotCompletedError(BadRequestError):
    def __init__(self, status: str):
        super().__init__(
            f"Enrollment is {status}; only completed enrollments get a certificate",
            "enrollment_not_completed",
        )


class CertificateNotFoundError(NotFoundError):
    def __init__(self, message: str = "No completed enrollment"):
        super().__init__(message, "certificate_not_found")


class CertificateNotIssuedError(BadRequestError):
    def __init__(self):
        super().__init__("Certificate has not been issued", "certificate_not_issued")


class RenderingUnavailableError(UnavailableError):
    def __init__(self):
        super().__init__(
            "Certificate rendering is temporarily unavailable", "rendering_unavailable"
        )


@dataclass
class CertificateView:
    enrollment: Enrollment
    final_score: int
    grade_band: str
    organization_name: str | None = None

    @property
    def issued(self) -> bool:
        return self.enrollment.certificate_number is not None


@dataclass
class RenderedCertificate:
    content: bytes
    media_type: str
    filename: str


# ==============================================================================
# Certificate Service
# ==============================================================================


class CertificateService:
    """Service for certificate issuance and download."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        enrollments: "EnrollmentService",
        directory: "OrganizationService",
        renderer: "CertificateRenderer",
        prefix: str = "FS",
        location_name: str | None = None,
    ):
        self.session = session
        self.keyspace = keyspace
        self.enrollments = enrollments
        self.directory = directory
        self.renderer = renderer
        self.prefix = prefix
        self.location_name = location_name
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._issue = self.session.prepare(f"""
            UPDATE {self.keyspace}.fs_enrollments
            SET certificate_number = ?, certificate_issued_by = ?,
                certificate_issued_at = ?, graduated_at = ?, status = ?,
                updated_at = ?
            WHERE enrollment_id = ?
            IF certificate_number = null AND status IN ('completed', 'graduated')
        """)

    async def issue(
        self,
        enrollment_id: UUID,
        issuer_id: UUID,
        issue_date: datetime | None = None,
    ) -> tuple[Enrollment, bool]:
        """Issue the certificate and graduate the enrollment.

        Returns:
            Tuple of (enrollment, newly_issued)

        Raises:
            EnrollmentNotFoundError: Unknown enrollment
            EnrollmentNotCompletedError: Enrollment is not completed
            NotAuthorizedError: Issuer is not staff for the enrollment
        """
        enrollment = await self.enrollments.get_enrollment(enrollment_id)
        if enrollment.status not in CERTIFIABLE_STATUSES:
            raise EnrollmentNotCompletedError(enrollment.status)
        await self.enrollments.require_enrollment_staff(issuer_id, enrollment)

        if enrollment.certificate_number is not None:
            return enrollment, False

        now = datetime.now(UTC)
        issued_at = ensure_utc_aware(issue_date) or now
        number = generate_certificate_number(self.prefix)

        result = await self.session.aexecute(
            self._issue,
            [
                number,
                issuer_id,
                issued_at,
                now,
                EnrollmentStatus.GRADUATED.value,
                now,
                enrollment_id,
            ],
        )
        if not result.was_applied:
            current = await self.enrollments.get_enrollment(enrollment_id)
            if current.certificate_number is None:
                raise EnrollmentNotCompletedError(current.status)
            return current, False

        enrollment.certificate_number = number
        enrollment.certificate_issued_by = issuer_id
        enrollment.certificate_issued_at = issued_at
        enrollment.graduated_at = now
        enrollment.status = EnrollmentStatus.GRADUATED.value
        enrollment.updated_at = now

        logger.info(
            "certificate_issued",
            enrollment_id=str(enrollment_id),
            student_id=str(enrollment.student_id),
            issuer_id=str(issuer_id),
            certificate_number=number,
        )
        return enrollment, True

    async def _view(self, enrollment: Enrollment) -> CertificateView:
        attempts = await self.enrollments.list_attempts(enrollment.enrollment_id)
        final_score = ranking_score(attempts)

        organization_name = None
        if enrollment.organization_id is not None:
            organization = await self.directory.find_organization(
                enrollment.organization_id
            )
            organization_name = organization.name if organization else None

        return CertificateView(
            enrollment=enrollment,
            final_score=final_score,
            grade_band=grade_band(final_score),
            organization_name=organization_name,
        )

    async def get_certificate(self, student_id: UUID) -> CertificateView:
        """Certificate summary for the student's latest completed enrollment.

        Raises:
            CertificateNotFoundError: No completed or graduated enrollment
        """
        for enrollment in await self.enrollments.list_student_enrollments(student_id):
            if enrollment.status in CERTIFIABLE_STATUSES:
                return await self._view(enrollment)
        raise CertificateNotFoundError

    async def render(self, enrollment_id: UUID, viewer_id: UUID) -> RenderedCertificate:
        """Render an issued certificate for its student or for staff.

        Raises:
            EnrollmentNotFoundError: Unknown enrollment
            NotAuthorizedError: Viewer is neither the student nor staff
            CertificateNotIssuedError: No certificate number yet
            RenderingUnavailableError: The renderer failed
        """
        enrollment = await self.enrollments.get_enrollment(enrollment_id)
        if viewer_id != enrollment.student_id:
            await self.enrollments.require_enrollment_staff(viewer_id, enrollment)
        if enrollment.certificate_number is None:
            raise CertificateNotIssuedError

        view = await self._view(enrollment)
        data = CertificateData(
            student_name=enrollment.student_name or "Student",
            issue_date=enrollment.certificate_issued_at or enrollment.updated_at,
            certificate_number=enrollment.certificate_number,
            organization_name=view.organization_name,
            location_name=self.location_name,
            grade_band=view.grade_band,
        )

        try:
            content = await asyncio.to_thread(self.renderer.render, data)
        except CertificateRenderingError as e:
            logger.error(
                "certificate_rendering_failed",
                enrollment_id=str(enrollment_id),
                error=str(e),
            )
            raise RenderingUnavailableError from e

        logger.info(
            "certificate_rendered",
            enrollment_id=str(enrollment_id),
            viewer_id=str(viewer_id),
            size=len(content),
        )
        return RenderedCertificate(
            content=content,
            media_type=self.renderer.media_type,
            filename=f"{enrollment.certificate_number}.pdf",
        )

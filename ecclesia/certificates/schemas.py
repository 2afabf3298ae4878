"""Pydantic schemas for Foundation School certificates."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from ecclesia.enrollments.models import EnrollmentStatus

from .service import CertificateView


class IssueCertificateRequest(BaseModel):
    issue_date: datetime | None = None


class CertificateResponse(BaseModel):
    enrollment_id: UUID
    student_id: UUID
    student_name: str | None = None
    status: EnrollmentStatus
    issued: bool
    certificate_number: str | None = None
    certificate_issued_at: datetime | None = None
    graduated_at: datetime | None = None
    completed_at: datetime | None = None
    organization_name: str | None = None
    final_score: int | None = None
    grade_band: str | None = None

    @classmethod
    def from_view(cls, view: CertificateView) -> "CertificateResponse":
        enrollment = view.enrollment
        return cls(
            enrollment_id=enrollment.enrollment_id,
            student_id=enrollment.student_id,
            student_name=enrollment.student_name,
            status=enrollment.status,
            issued=view.issued,
            certificate_number=enrollment.certificate_number,
            certificate_issued_at=enrollment.certificate_issued_at,
            graduated_at=enrollment.graduated_at,
            completed_at=enrollment.completed_at,
            organization_name=view.organization_name,
            final_score=view.final_score,
            grade_band=view.grade_band,
        )


class IssueCertificateResponse(BaseModel):
    enrollment_id: UUID
    certificate_number: str
    certificate_issued_at: datetime | None = None
    status: EnrollmentStatus
    newly_issued: bool

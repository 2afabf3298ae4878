"""Pydantic schemas for Foundation School assignments."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from .models import Submission, SubmissionStatus


class SubmitAssignmentRequest(BaseModel):
    module_number: int = Field(..., ge=1)
    assignment_id: str = Field(default="main", min_length=1, max_length=64)
    content: str = Field(..., min_length=1, max_length=20000)
    attachments: list[str] = Field(default_factory=list, max_length=10)


class GradeAssignmentRequest(BaseModel):
    grade: int = Field(..., ge=0, le=100)
    feedback: str | None = Field(default=None, max_length=5000)
    resubmission_allowed: bool = False


class SubmissionResponse(BaseModel):
    submission_id: UUID
    enrollment_id: UUID
    module_number: int
    assignment_id: str
    student_id: UUID
    content: str
    attachments: list[str] = Field(default_factory=list)
    status: SubmissionStatus
    grade: int | None = None
    feedback: str | None = None
    graded_by: UUID | None = None
    graded_at: datetime | None = None
    resubmission_allowed: bool = False
    submitted_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, entity: Submission) -> "SubmissionResponse":
        return cls(**entity.to_dict())


class SubmitAssignmentResponse(BaseModel):
    submission: SubmissionResponse
    created: bool


class AssignmentSummary(BaseModel):
    """Assignment state as shown in a student's progress."""

    module_number: int
    assignment_id: str
    submission_id: UUID
    status: SubmissionStatus
    grade: int | None = None
    feedback: str | None = None
    submitted_at: datetime

    @classmethod
    def from_entity(cls, entity: Submission) -> "AssignmentSummary":
        return cls(
            module_number=entity.module_number,
            assignment_id=entity.assignment_id,
            submission_id=entity.submission_id,
            status=entity.status,
            grade=entity.grade,
            feedback=entity.feedback,
            submitted_at=entity.submitted_at,
        )


class SubmissionListResponse(BaseModel):
    submissions: list[SubmissionResponse]
    total: int

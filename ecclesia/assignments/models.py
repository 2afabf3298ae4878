"""Database models for Foundation School assignment submissions.

Cassandra table definitions for:
- Submissions: one row per (enrollment, module, assignment), the only
  place assignment state lives
- Submissions by id: immutable key lookup used by grading
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from ecclesia.utils.dates import ensure_utc_aware


class SubmissionStatus(str, Enum):
    """Assignment submission status."""

    SUBMITTED = "submitted"
    GRADED = "graded"
    RESUBMIT = "resubmit"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

FS_ASSIGNMENT_SUBMISSIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.fs_assignment_submissions (
    enrollment_id UUID,
    module_number INT,
    assignment_id TEXT,
    submission_id UUID,
    student_id UUID,
    content TEXT,
    attachments LIST<TEXT>,
    status TEXT,
    grade INT,
    feedback TEXT,
    graded_by UUID,
    graded_at TIMESTAMP,
    resubmission_allowed BOOLEAN,
    submitted_at TIMESTAMP,
    updated_at TIMESTAMP,
    PRIMARY KEY (enrollment_id, module_number, assignment_id)
) WITH CLUSTERING ORDER BY (module_number ASC, assignment_id ASC)
"""

FS_SUBMISSIONS_BY_ID_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.fs_submissions_by_id (
    submission_id UUID PRIMARY KEY,
    enrollment_id UUID,
    module_number INT,
    assignment_id TEXT
)
"""

ASSIGNMENTS_TABLES_CQL = [
    FS_ASSIGNMENT_SUBMISSIONS_TABLE_CQL,
    FS_SUBMISSIONS_BY_ID_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Submission:
    """A student's submission for one module assignment."""

    def __init__(
        self,
        submission_id: UUID,
        enrollment_id: UUID,
        module_number: int,
        assignment_id: str,
        student_id: UUID,
        content: str = "",
        attachments: list[str] | None = None,
        status: str = SubmissionStatus.SUBMITTED.value,
        grade: int | None = None,
        feedback: str | None = None,
        graded_by: UUID | None = None,
        graded_at: datetime | None = None,
        resubmission_allowed: bool = False,
        submitted_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.submission_id = submission_id
        self.enrollment_id = enrollment_id
        self.module_number = module_number
        self.assignment_id = assignment_id
        self.student_id = student_id
        self.content = content
        self.attachments = list(attachments or [])
        self.status = status
        self.grade = grade
        self.feedback = feedback
        self.graded_by = graded_by
        self.graded_at = ensure_utc_aware(graded_at)
        self.resubmission_allowed = resubmission_allowed
        self.submitted_at = ensure_utc_aware(submitted_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at) or self.submitted_at

    @property
    def key(self) -> list[Any]:
        return [self.enrollment_id, self.module_number, self.assignment_id]

    @property
    def is_graded(self) -> bool:
        return self.status == SubmissionStatus.GRADED.value

    @classmethod
    def from_row(cls, row: Any) -> "Submission":
        """Create Submission instance from Cassandra row."""
        return cls(
            submission_id=row.submission_id,
            enrollment_id=row.enrollment_id,
            module_number=row.module_number,
            assignment_id=row.assignment_id,
            student_id=row.student_id,
            content=row.content or "",
            attachments=row.attachments,
            status=row.status or SubmissionStatus.SUBMITTED.value,
            grade=row.grade,
            feedback=row.feedback,
            graded_by=row.graded_by,
            graded_at=row.graded_at,
            resubmission_allowed=bool(row.resubmission_allowed),
            submitted_at=row.submitted_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "submission_id": self.submission_id,
            "enrollment_id": self.enrollment_id,
            "module_number": self.module_number,
            "assignment_id": self.assignment_id,
            "student_id": self.student_id,
            "content": self.content,
            "attachments": self.attachments,
            "status": self.status,
            "grade": self.grade,
            "feedback": self.feedback,
            "graded_by": self.graded_by,
            "graded_at": self.graded_at,
            "resubmission_allowed": self.resubmission_allowed,
            "submitted_at": self.submitted_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return (
            f"<Submission module={self.module_number} "
            f"{self.assignment_id!r} {self.status}>"
        )

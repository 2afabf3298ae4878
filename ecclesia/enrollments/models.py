"""Database models for Foundation School enrollments.

Cassandra table definitions for:
- Enrollments: one row per enrollment; lessons and modules are sets so
  completion events are set-add updates that never lose a concurrent write
- Enrollments by student: immutable lookup, newest first
- Active enrollment claims: one row per student, written with IF NOT EXISTS
- Quiz attempts: append-only history, one row per attempt

Assignment state is not stored here; it is derived from submissions.
"""

from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from ecclesia.utils.dates import ensure_utc_aware


class EnrollmentStatus(str, Enum):
    """Foundation School enrollment status."""

    ENROLLED = "enrolled"
    IN_PROGRESS = "in_progress"
    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"
    WITHDRAWN = "withdrawn"
    GRADUATED = "graduated"


# Statuses that hold the student's single active claim
ACTIVE_STATUSES = frozenset(
    {
        EnrollmentStatus.ENROLLED.value,
        EnrollmentStatus.IN_PROGRESS.value,
        EnrollmentStatus.ACTIVE.value,
    }
)

# Statuses a progress lookup may return
VISIBLE_STATUSES = ACTIVE_STATUSES | {
    EnrollmentStatus.COMPLETED.value,
    EnrollmentStatus.GRADUATED.value,
}

# Statuses eligible for certificate issuance
CERTIFIABLE_STATUSES = frozenset(
    {EnrollmentStatus.COMPLETED.value, EnrollmentStatus.GRADUATED.value}
)


def lesson_key(module_number: int, lesson_number: int) -> str:
    """Completed-lesson key, e.g. ``"3-2"``."""
    return f"{module_number}-{lesson_number}"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

FS_ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.fs_enrollments (
    enrollment_id UUID PRIMARY KEY,
    student_id UUID,
    student_name TEXT,
    organization_id UUID,
    batch_id UUID,
    status TEXT,
    enrolled_at TIMESTAMP,
    completed_at TIMESTAMP,
    updated_at TIMESTAMP,
    current_module INT,
    completed_modules SET<INT>,
    completed_lessons SET<TEXT>,
    total_modules INT,
    certificate_number TEXT,
    certificate_issued_by UUID,
    certificate_issued_at TIMESTAMP,
    graduated_at TIMESTAMP
)
"""

FS_ENROLLMENTS_ORGANIZATION_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS fs_enrollments_organization_idx
ON {keyspace}.fs_enrollments (organization_id)
"""

FS_ENROLLMENTS_BATCH_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS fs_enrollments_batch_idx
ON {keyspace}.fs_enrollments (batch_id)
"""

# Only keys are stored, so the lookup never goes stale
FS_ENROLLMENTS_BY_STUDENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.fs_enrollments_by_student (
    student_id UUID,
    enrolled_at TIMESTAMP,
    enrollment_id UUID,
    PRIMARY KEY (student_id, enrolled_at, enrollment_id)
) WITH CLUSTERING ORDER BY (enrolled_at DESC, enrollment_id ASC)
"""

FS_ACTIVE_ENROLLMENTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.fs_active_enrollments (
    student_id UUID PRIMARY KEY,
    enrollment_id UUID,
    claimed_at TIMESTAMP
)
"""

FS_QUIZ_ATTEMPTS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.fs_quiz_attempts (
    enrollment_id UUID,
    attempt_id TIMEUUID,
    module_number INT,
    score INT,
    passed BOOLEAN,
    correct_count INT,
    question_count INT,
    attempted_at TIMESTAMP,
    PRIMARY KEY (enrollment_id, attempt_id)
) WITH CLUSTERING ORDER BY (attempt_id ASC)
"""

ENROLLMENTS_TABLES_CQL = [
    FS_ENROLLMENTS_TABLE_CQL,
    FS_ENROLLMENTS_ORGANIZATION_INDEX_CQL,
    FS_ENROLLMENTS_BATCH_INDEX_CQL,
    FS_ENROLLMENTS_BY_STUDENT_TABLE_CQL,
    FS_ACTIVE_ENROLLMENTS_TABLE_CQL,
    FS_QUIZ_ATTEMPTS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Enrollment:
    """A student's run through Foundation School.

    Attributes:
        enrollment_id: Enrollment UUID
        student_id: Student (caller) UUID
        student_name: Display name captured at enrollment
        organization_id: Organization the enrollment belongs to (optional)
        batch_id: Batch the enrollment belongs to (optional)
        status: EnrollmentStatus value
        current_module: Next module to take
        completed_modules: Module numbers with a passing quiz
        completed_lessons: "module-lesson" keys
        total_modules: Active module count at enrollment time
        certificate_number: Assigned once, on first issuance
    """

    def __init__(
        self,
        enrollment_id: UUID,
        student_id: UUID,
        status: str = EnrollmentStatus.ACTIVE.value,
        student_name: str | None = None,
        organization_id: UUID | None = None,
        batch_id: UUID | None = None,
        enrolled_at: datetime | None = None,
        completed_at: datetime | None = None,
        updated_at: datetime | None = None,
        current_module: int = 1,
        completed_modules: set[int] | None = None,
        completed_lessons: set[str] | None = None,
        total_modules: int = 0,
        certificate_number: str | None = None,
        certificate_issued_by: UUID | None = None,
        certificate_issued_at: datetime | None = None,
        graduated_at: datetime | None = None,
    ):
        self.enrollment_id = enrollment_id
        self.student_id = student_id
        self.status = status
        self.student_name = student_name
        self.organization_id = organization_id
        self.batch_id = batch_id
        self.enrolled_at = ensure_utc_aware(enrolled_at) or datetime.now(UTC)
        self.completed_at = ensure_utc_aware(completed_at)
        self.updated_at = ensure_utc_aware(updated_at) or self.enrolled_at
        self.current_module = current_module
        self.completed_modules = set(completed_modules or ())
        self.completed_lessons = set(completed_lessons or ())
        self.total_modules = total_modules
        self.certificate_number = certificate_number
        self.certificate_issued_by = certificate_issued_by
        self.certificate_issued_at = ensure_utc_aware(certificate_issued_at)
        self.graduated_at = ensure_utc_aware(graduated_at)

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_certifiable(self) -> bool:
        return self.status in CERTIFIABLE_STATUSES

    @property
    def counted_modules(self) -> set[int]:
        """Completed modules within 1..total_modules."""
        return {m for m in self.completed_modules if 1 <= m <= self.total_modules}

    @property
    def all_modules_completed(self) -> bool:
        return self.total_modules > 0 and len(self.counted_modules) >= self.total_modules

    @property
    def progress_percent(self) -> Decimal:
        if self.total_modules <= 0:
            return Decimal(0)
        percent = Decimal(100 * len(self.counted_modules)) / Decimal(self.total_modules)
        return percent.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @classmethod
    def from_row(cls, row: Any) -> "Enrollment":
        """Create Enrollment instance from Cassandra row."""
        return cls(
            enrollment_id=row.enrollment_id,
            student_id=row.student_id,
            status=row.status or EnrollmentStatus.ENROLLED.value,
            student_name=row.student_name,
            organization_id=row.organization_id,
            batch_id=row.batch_id,
            enrolled_at=row.enrolled_at,
            completed_at=row.completed_at,
            updated_at=row.updated_at,
            current_module=row.current_module or 1,
            completed_modules=row.completed_modules,
            completed_lessons=row.completed_lessons,
            total_modules=row.total_modules or 0,
            certificate_number=row.certificate_number,
            certificate_issued_by=row.certificate_issued_by,
            certificate_issued_at=row.certificate_issued_at,
            graduated_at=row.graduated_at,
        )

    def __repr__(self) -> str:
        return (
            f"<Enrollment student={self.student_id} {self.status} "
            f"{len(self.counted_modules)}/{self.total_modules}>"
        )


class QuizAttempt:
    """One graded quiz submission (append-only)."""

    def __init__(
        self,
        enrollment_id: UUID,
        attempt_id: UUID,
        module_number: int,
        score: int,
        passed: bool,
        correct_count: int = 0,
        question_count: int = 0,
        attempted_at: datetime | None = None,
    ):
        self.enrollment_id = enrollment_id
        self.attempt_id = attempt_id
        self.module_number = module_number
        self.score = score
        self.passed = passed
        self.correct_count = correct_count
        self.question_count = question_count
        self.attempted_at = ensure_utc_aware(attempted_at) or datetime.now(UTC)

    @classmethod
    def from_row(cls, row: Any) -> "QuizAttempt":
        """Create QuizAttempt instance from Cassandra row."""
        return cls(
            enrollment_id=row.enrollment_id,
            attempt_id=row.attempt_id,
            module_number=row.module_number,
            score=row.score or 0,
            passed=bool(row.passed),
            correct_count=row.correct_count or 0,
            question_count=row.question_count or 0,
            attempted_at=row.attempted_at,
        )

    def __repr__(self) -> str:
        return f"<QuizAttempt module={self.module_number} score={self.score}>"

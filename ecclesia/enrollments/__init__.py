"""Foundation School enrollments, progression and reports."""

from .models import (
    ACTIVE_STATUSES,
    ENROLLMENTS_TABLES_CQL,
    Enrollment,
    EnrollmentStatus,
    QuizAttempt,
)


__all__ = [
    "ACTIVE_STATUSES",
    "ENROLLMENTS_TABLES_CQL",
    "Enrollment",
    "EnrollmentStatus",
    "QuizAttempt",
]

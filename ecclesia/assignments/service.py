"""Foundation School assignment workflow.

Business logic for:
- Submitting (and resubmitting) module assignments
- Staff grading with optional resubmission allowance
- Listing submissions for an enrollment

A submission row is created with IF NOT EXISTS, so concurrent first
submissions for the same assignment collapse into one row. Later writes are
conditional on the status that was read, and grading is a single-row update
by primary key.
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from ecclesia.core.errors import BadRequestError, ConflictError, NotFoundError

from .models import Submission, SubmissionStatus


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from ecclesia.curriculum.service import CurriculumService
    from ecclesia.enrollments.service import EnrollmentService

logger = structlog.get_logger(__name__)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class SubmissionNotFoundError(NotFoundError):
    def __init__(self, message: str = "Submission not found"):
        super().__init__(message, "submission_not_found")


class AlreadyGradedError(BadRequestError):
    def __init__(self):
        super().__init__(
            "Assignment already graded and resubmission is not allowed",
            "assignment_already_graded",
        )


class SubmissionChangedError(ConflictError):
    def __init__(self):
        super().__init__(
            "Submission changed while saving, retry", "submission_changed"
        )


# ==============================================================================
# Assignment Service
# ==============================================================================


class AssignmentService:
    """Service for assignment submissions and grading."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        enrollments: "EnrollmentService",
        curriculum: "CurriculumService",
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.enrollments = enrollments
        self.curriculum = curriculum
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_submission = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_assignment_submissions
            WHERE enrollment_id = ? AND module_number = ? AND assignment_id = ?
        """)

        self._get_enrollment_submissions = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_assignment_submissions
            WHERE enrollment_id = ?
        """)

        self._get_submission_key = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_submissions_by_id
            WHERE submission_id = ?
        """)

        self._insert_submission = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.fs_assignment_submissions
            (enrollment_id, module_number, assignment_id, submission_id,
             student_id, content, attachments, status, resubmission_allowed,
             submitted_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            IF NOT EXISTS
        """)

        self._insert_submission_key = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.fs_submissions_by_id
            (submission_id, enrollment_id, module_number, assignment_id)
            VALUES (?, ?, ?, ?)
        """)

        self._resubmit = self.session.prepare(f"""
            UPDATE {self.keyspace}.fs_assignment_submissions
            SET content = ?, attachments = ?, status = ?, submitted_at = ?,
                updated_at = ?
            WHERE enrollment_id = ? AND module_number = ? AND assignment_id = ?
            IF status = ?
        """)

        self._grade = self.session.prepare(f"""
            UPDATE {self.keyspace}.fs_assignment_submissions
            SET status = ?, grade = ?, feedback = ?, graded_by = ?,
                graded_at = ?, resubmission_allowed = ?, updated_at = ?
            WHERE enrollment_id = ? AND module_number = ? AND assignment_id = ?
            IF EXISTS
        """)

    # ==========================================================================
    # Lookup
    # ==========================================================================

    async def _find_submission(
        self, enrollment_id: UUID, module_number: int, assignment_id: str
    ) -> Submission | None:
        result = await self.session.aexecute(
            self._get_submission, [enrollment_id, module_number, assignment_id]
        )
        row = result.one()
        return Submission.from_row(row) if row else None

    async def get_submission(self, submission_id: UUID) -> Submission:
        result = await self.session.aexecute(self._get_submission_key, [submission_id])
        key = result.one()
        if not key:
            raise SubmissionNotFoundError
        submission = await self._find_submission(
            key.enrollment_id, key.module_number, key.assignment_id
        )
        if submission is None:
            raise SubmissionNotFoundError
        return submission

    async def list_for_enrollment(self, enrollment_id: UUID) -> list[Submission]:
        """Submissions ordered by module and assignment."""
        rows = await self.session.aexecute(
            self._get_enrollment_submissions, [enrollment_id]
        )
        return [Submission.from_row(row) for row in rows]

    async def list_submissions(
        self, staff_id: UUID, enrollment_id: UUID
    ) -> list[Submission]:
        """Staff view of an enrollment's submissions.

        Raises:
            EnrollmentNotFoundError: Unknown enrollment
            NotAuthorizedError: Caller is not staff for the enrollment
        """
        enrollment = await self.enrollments.get_enrollment(enrollment_id)
        await self.enrollments.require_enrollment_staff(staff_id, enrollment)
        return await self.list_for_enrollment(enrollment_id)

    # ==========================================================================
    # Submit
    # ==========================================================================

    async def submit(
        self,
        student_id: UUID,
        module_number: int,
        assignment_id: str,
        content: str,
        attachments: list[str] | None = None,
    ) -> tuple[Submission, bool]:
        """Submit an assignment for the caller's active enrollment.

        Returns:
            Tuple of (submission, created)

        Raises:
            NotEnrolledError: No active enrollment
            CurriculumModuleNotFoundError: Unknown or inactive module
            AlreadyGradedError: Graded without resubmission allowed
            SubmissionChangedError: Concurrent change to the same submission
        """
        enrollment = await self.enrollments.require_active_enrollment(student_id)
        await self.curriculum.get_active_module(module_number)

        now = datetime.now(UTC)
        attachments = list(attachments or [])

        existing = await self._find_submission(
            enrollment.enrollment_id, module_number, assignment_id
        )
        if existing is None:
            submission = Submission(
                submission_id=uuid4(),
                enrollment_id=enrollment.enrollment_id,
                module_number=module_number,
                assignment_id=assignment_id,
                student_id=student_id,
                content=content,
                attachments=attachments,
                status=SubmissionStatus.SUBMITTED.value,
                submitted_at=now,
                updated_at=now,
            )
            result = await self.session.aexecute(
                self._insert_submission,
                [
                    *submission.key,
                    submission.submission_id,
                    submission.student_id,
                    submission.content,
                    submission.attachments,
                    submission.status,
                    False,
                    submission.submitted_at,
                    submission.updated_at,
                ],
            )
            if result.was_applied:
                await self.session.aexecute(
                    self._insert_submission_key,
                    [submission.submission_id, *submission.key],
                )
                logger.info(
                    "assignment_submitted",
                    submission_id=str(submission.submission_id),
                    enrollment_id=str(enrollment.enrollment_id),
                    module_number=module_number,
                    assignment_id=assignment_id,
                )
                return submission, True

            existing = await self._find_submission(
                enrollment.enrollment_id, module_number, assignment_id
            )
            if existing is None:
                raise SubmissionChangedError

        return await self._resubmit_existing(existing, content, attachments, now), False

    async def _resubmit_existing(
        self,
        submission: Submission,
        content: str,
        attachments: list[str],
        now: datetime,
    ) -> Submission:
        if submission.is_graded and not submission.resubmission_allowed:
            raise AlreadyGradedError

        previous_status = submission.status
        new_status = (
            SubmissionStatus.RESUBMIT.value if submission.is_graded else previous_status
        )

        result = await self.session.aexecute(
            self._resubmit,
            [
                content,
                attachments,
                new_status,
                now,
                now,
                *submission.key,
                previous_status,
            ],
        )
        if not result.was_applied:
            raise SubmissionChangedError

        submission.content = content
        submission.attachments = attachments
        submission.status = new_status
        submission.submitted_at = now
        submission.updated_at = now

        logger.info(
            "assignment_resubmitted",
            submission_id=str(submission.submission_id),
            previous_status=previous_status,
            status=new_status,
        )
        return submission

    # ==========================================================================
    # Grade
    # ==========================================================================

    async def grade(
        self,
        submission_id: UUID,
        grader_id: UUID,
        grade: int,
        feedback: str | None = None,
        resubmission_allowed: bool = False,
    ) -> Submission:
        """Grade a submission.

        Raises:
            SubmissionNotFoundError: Unknown submission
            NotAuthorizedError: Grader is not staff for the enrollment
        """
        submission = await self.get_submission(submission_id)
        enrollment = await self.enrollments.get_enrollment(submission.enrollment_id)
        await self.enrollments.require_enrollment_staff(grader_id, enrollment)

        now = datetime.now(UTC)
        result = await self.session.aexecute(
            self._grade,
            [
                SubmissionStatus.GRADED.value,
                grade,
                feedback,
                grader_id,
                now,
                resubmission_allowed,
                now,
                *submission.key,
            ],
        )
        if not result.was_applied:
            raise SubmissionNotFoundError

        submission.status = SubmissionStatus.GRADED.value
        submission.grade = grade
        submission.feedback = feedback
        submission.graded_by = grader_id
        submission.graded_at = now
        submission.resubmission_allowed = resubmission_allowed
        submission.updated_at = now

        logger.info(
            "assignment_graded",
            submission_id=str(submission_id),
            grader_id=str(grader_id),
            grade=grade,
            resubmission_allowed=resubmission_allowed,
        )
        return submission

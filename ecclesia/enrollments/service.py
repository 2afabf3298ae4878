"""Foundation School enrollment lifecycle.

Business logic for:
- Enrollment (idempotent, one active enrollment per student)
- Progress lookup, withdrawal and staff drops
- Staff listing of an organization's enrollments

The single-active rule is enforced by the ``fs_active_enrollments`` claim
row: it is written with IF NOT EXISTS before the enrollment row and deleted
(IF enrollment_id matches) when the enrollment leaves an active status.
"""

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from ecclesia.core.errors import BadRequestError, ConflictError, NotFoundError

from .models import (
    ACTIVE_STATUSES,
    VISIBLE_STATUSES,
    Enrollment,
    EnrollmentStatus,
    QuizAttempt,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from ecclesia.batches.models import FoundationBatch
    from ecclesia.batches.service import BatchService
    from ecclesia.curriculum.service import CurriculumService
    from ecclesia.organizations.authorization import AuthorizationService

logger = structlog.get_logger(__name__)

# A claim whose enrollment row never appeared is released after this long
STALE_CLAIM_AFTER = timedelta(minutes=5)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class EnrollmentNotFoundError(NotFoundError):
    def __init__(self, message: str = "Enrollment not found"):
        super().__init__(message, "enrollment_not_found")


class NotEnrolledError(NotFoundError):
    def __init__(self, message: str = "No active enrollment"):
        super().__init__(message, "not_enrolled")


class EmptyCurriculumError(BadRequestError):
    def __init__(self):
        super().__init__("No active modules are available", "empty_curriculum")


class EnrollmentConflictError(ConflictError):
    def __init__(self):
        super().__init__(
            "Another enrollment is being created for this student, retry",
            "enrollment_in_flight",
        )


class EnrollmentNotActiveError(BadRequestError):
    def __init__(self, status: str):
        super().__init__(f"Enrollment is {status}", "enrollment_not_active")


class BatchOrganizationMismatchError(BadRequestError):
    def __init__(self):
        super().__init__(
            "Batch does not belong to the given organization",
            "batch_organization_mismatch",
        )


# ==============================================================================
# Enrollment Service
# ==============================================================================


class EnrollmentService:
    """Service for the enrollment lifecycle."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        curriculum: "CurriculumService",
        batches: "BatchService",
        authorization: "AuthorizationService",
    ):
        """Initialize with Cassandra session and collaborating services."""
        self.session = session
        self.keyspace = keyspace
        self.curriculum = curriculum
        self.batches = batches
        self.authorization = authorization
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_enrollment = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_enrollments WHERE enrollment_id = ?
        """)

        self._get_enrollments_by_org = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_enrollments WHERE organization_id = ?
        """)

        self._get_enrollments_by_batch = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_enrollments WHERE batch_id = ?
        """)

        self._get_all_enrollments = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_enrollments
        """)

        self._get_student_enrollment_ids = self.session.prepare(f"""
            SELECT enrollment_id FROM {self.keyspace}.fs_enrollments_by_student
            WHERE student_id = ?
        """)

        self._get_active_claim = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_active_enrollments WHERE student_id = ?
        """)

        self._claim_active = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.fs_active_enrollments
            (student_id, enrollment_id, claimed_at)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)

        self._release_active = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.fs_active_enrollments
            WHERE student_id = ?
            IF enrollment_id = ?
        """)

        self._insert_enrollment = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.fs_enrollments
            (enrollment_id, student_id, student_name, organization_id, batch_id,
             status, enrolled_at, updated_at, current_module, completed_modules,
             completed_lessons, total_modules)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._insert_by_student = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.fs_enrollments_by_student
            (student_id, enrolled_at, enrollment_id)
            VALUES (?, ?, ?)
        """)

        # Leaving an active status only ever happens through this guard
        self._finish_enrollment = self.session.prepare(f"""
            UPDATE {self.keyspace}.fs_enrollments
            SET status = ?, completed_at = ?, updated_at = ?
            WHERE enrollment_id = ?
            IF status IN ('enrolled', 'in_progress', 'active')
        """)

        self._get_attempts = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_quiz_attempts WHERE enrollment_id = ?
        """)

    # ==========================================================================
    # Lookup
    # ==========================================================================

    async def find_enrollment(self, enrollment_id: UUID) -> Enrollment | None:
        result = await self.session.aexecute(self._get_enrollment, [enrollment_id])
        row = result.one()
        return Enrollment.from_row(row) if row else None

    async def get_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self.find_enrollment(enrollment_id)
        if enrollment is None:
            raise EnrollmentNotFoundError
        return enrollment

    async def get_active_enrollment(self, student_id: UUID) -> Enrollment | None:
        """The student's active enrollment, following the claim row.

        A claim pointing at a finished enrollment, or at a row that never
        appeared within ``STALE_CLAIM_AFTER``, is released.
        """
        result = await self.session.aexecute(self._get_active_claim, [student_id])
        claim = result.one()
        if not claim:
            return None

        enrollment = await self.find_enrollment(claim.enrollment_id)
        if enrollment is not None and enrollment.is_active:
            return enrollment

        if enrollment is None:
            claimed_at = claim.claimed_at
            if claimed_at is not None and claimed_at.tzinfo is None:
                claimed_at = claimed_at.replace(tzinfo=UTC)
            if claimed_at and datetime.now(UTC) - claimed_at < STALE_CLAIM_AFTER:
                return None

        await self._release_claim(student_id, claim.enrollment_id)
        logger.warning(
            "enrollment_claim_released",
            student_id=str(student_id),
            enrollment_id=str(claim.enrollment_id),
            reason="missing" if enrollment is None else enrollment.status,
        )
        return None

    async def require_active_enrollment(self, student_id: UUID) -> Enrollment:
        enrollment = await self.get_active_enrollment(student_id)
        if enrollment is None:
            raise NotEnrolledError
        return enrollment

    async def list_student_enrollments(self, student_id: UUID) -> list[Enrollment]:
        """All enrollments of a student, newest first."""
        rows = await self.session.aexecute(
            self._get_student_enrollment_ids, [student_id]
        )
        enrollments = []
        for row in rows:
            enrollment = await self.find_enrollment(row.enrollment_id)
            if enrollment is not None:
                enrollments.append(enrollment)
        return enrollments

    async def get_progress(self, student_id: UUID) -> Enrollment:
        """Latest enrollment that is active, completed or graduated.

        Raises:
            NotEnrolledError: No such enrollment
        """
        for enrollment in await self.list_student_enrollments(student_id):
            if enrollment.status in VISIBLE_STATUSES:
                return enrollment
        raise NotEnrolledError("No enrollment found")

    async def list_attempts(self, enrollment_id: UUID) -> list[QuizAttempt]:
        """Quiz attempts in submission order."""
        rows = await self.session.aexecute(self._get_attempts, [enrollment_id])
        return [QuizAttempt.from_row(row) for row in rows]

    # ==========================================================================
    # Enrollment
    # ==========================================================================

    async def enroll(
        self,
        student_id: UUID,
        student_name: str | None = None,
        organization_id: UUID | None = None,
        batch_id: UUID | None = None,
    ) -> tuple[Enrollment, bool]:
        """Enroll a student, or return their existing active enrollment.

        Without a batch the latest open batch (of the organization when one
        is given) is attached, if any.

        Returns:
            Tuple of (enrollment, already_enrolled)

        Raises:
            BatchNotFoundError: Explicit batch does not exist
            OrganizationNotFoundError: Explicit organization does not exist
            BatchOrganizationMismatchError: Explicit batch belongs to another
                organization
            EmptyCurriculumError: No active modules
            EnrollmentConflictError: A concurrent enroll has not finished
        """
        existing = await self.get_active_enrollment(student_id)
        if existing is not None:
            return existing, True

        batch = await self._resolve_batch(organization_id, batch_id)
        if batch is not None:
            if organization_id is None:
                organization_id = batch.organization_id
            elif batch.organization_id != organization_id:
                raise BatchOrganizationMismatchError

        total_modules = await self.curriculum.count_active_modules()
        if total_modules == 0:
            raise EmptyCurriculumError

        now = datetime.now(UTC)
        enrollment = Enrollment(
            enrollment_id=uuid4(),
            student_id=student_id,
            student_name=student_name,
            organization_id=organization_id,
            batch_id=batch.batch_id if batch else None,
            status=EnrollmentStatus.ACTIVE.value,
            enrolled_at=now,
            updated_at=now,
            current_module=1,
            total_modules=total_modules,
        )

        claim = await self.session.aexecute(
            self._claim_active, [student_id, enrollment.enrollment_id, now]
        )
        if not claim.was_applied:
            winner = await self.get_active_enrollment(student_id)
            if winner is not None:
                return winner, True
            raise EnrollmentConflictError

        try:
            await self.session.aexecute(
                self._insert_enrollment,
                [
                    enrollment.enrollment_id,
                    enrollment.student_id,
                    enrollment.student_name,
                    enrollment.organization_id,
                    enrollment.batch_id,
                    enrollment.status,
                    enrollment.enrolled_at,
                    enrollment.updated_at,
                    enrollment.current_module,
                    set(),
                    set(),
                    enrollment.total_modules,
                ],
            )
            await self.session.aexecute(
                self._insert_by_student,
                [student_id, enrollment.enrolled_at, enrollment.enrollment_id],
            )
        except Exception:
            await self._release_claim(student_id, enrollment.enrollment_id)
            logger.warning(
                "enrollment_claim_released",
                student_id=str(student_id),
                enrollment_id=str(enrollment.enrollment_id),
                reason="insert_failed",
            )
            raise

        logger.info(
            "student_enrolled",
            enrollment_id=str(enrollment.enrollment_id),
            student_id=str(student_id),
            organization_id=str(organization_id) if organization_id else None,
            batch_id=str(enrollment.batch_id) if enrollment.batch_id else None,
            total_modules=total_modules,
        )
        return enrollment, False

    async def _resolve_batch(
        self, organization_id: UUID | None, batch_id: UUID | None
    ) -> "FoundationBatch | None":
        if batch_id is not None:
            return await self.batches.get_batch(batch_id)
        if organization_id is not None:
            await self.authorization.directory.get_organization(organization_id)
        return await self.batches.find_latest_open_batch(organization_id)

    # ==========================================================================
    # Leaving the active set
    # ==========================================================================

    async def finish_enrollment(
        self,
        enrollment: Enrollment,
        status: EnrollmentStatus,
    ) -> bool:
        """Move an active enrollment to a terminal status and drop its claim.

        Returns:
            True if this call made the transition
        """
        now = datetime.now(UTC)
        completed_at = now if status == EnrollmentStatus.COMPLETED else None
        result = await self.session.aexecute(
            self._finish_enrollment,
            [status.value, completed_at, now, enrollment.enrollment_id],
        )
        if not result.was_applied:
            return False

        enrollment.status = status.value
        enrollment.updated_at = now
        if completed_at is not None:
            enrollment.completed_at = completed_at
        await self._release_claim(enrollment.student_id, enrollment.enrollment_id)

        logger.info(
            "enrollment_finished",
            enrollment_id=str(enrollment.enrollment_id),
            student_id=str(enrollment.student_id),
            status=status.value,
        )
        return True

    async def _release_claim(self, student_id: UUID, enrollment_id: UUID) -> None:
        await self.session.aexecute(self._release_active, [student_id, enrollment_id])

    async def withdraw(self, student_id: UUID) -> Enrollment:
        """Student leaves their active enrollment.

        Raises:
            NotEnrolledError: No active enrollment
        """
        enrollment = await self.require_active_enrollment(student_id)
        if not await self.finish_enrollment(enrollment, EnrollmentStatus.WITHDRAWN):
            raise NotEnrolledError
        return enrollment

    async def drop(self, enrollment_id: UUID, staff_id: UUID) -> Enrollment:
        """Staff removes a student from an active enrollment.

        Raises:
            EnrollmentNotFoundError: Unknown enrollment
            NotAuthorizedError: Caller is not staff for the enrollment
            EnrollmentNotActiveError: Enrollment already finished
        """
        enrollment = await self.get_enrollment(enrollment_id)
        await self.require_enrollment_staff(staff_id, enrollment)
        if enrollment.status not in ACTIVE_STATUSES:
            raise EnrollmentNotActiveError(enrollment.status)
        if not await self.finish_enrollment(enrollment, EnrollmentStatus.DROPPED):
            current = await self.get_enrollment(enrollment_id)
            raise EnrollmentNotActiveError(current.status)
        return enrollment

    # ==========================================================================
    # Staff views
    # ==========================================================================

    async def require_enrollment_staff(
        self, staff_id: UUID, enrollment: Enrollment
    ) -> None:
        """Batch staff of the enrollment's batch, or its organization's manager."""
        batch = (
            await self.batches.find_batch(enrollment.batch_id)
            if enrollment.batch_id
            else None
        )
        await self.authorization.require_staff(
            staff_id, enrollment.organization_id, batch
        )

    async def list_enrollments(
        self,
        staff_id: UUID,
        organization_id: UUID,
        batch_id: UUID | None = None,
        status: EnrollmentStatus | None = None,
        page: int = 1,
        page_size: int = 50,
    ) -> tuple[list[Enrollment], int]:
        """Enrollments of an organization (optionally one batch), newest first.

        Returns:
            Tuple of (page of enrollments, total matching)
        """
        batch = None
        if batch_id is not None:
            batch = await self.batches.get_batch(batch_id)
        await self.authorization.require_staff(staff_id, organization_id, batch)

        if batch_id is not None:
            rows = await self.session.aexecute(self._get_enrollments_by_batch, [batch_id])
        else:
            rows = await self.session.aexecute(
                self._get_enrollments_by_org, [organization_id]
            )

        enrollments = [Enrollment.from_row(row) for row in rows]
        enrollments = [e for e in enrollments if e.organization_id == organization_id]
        if status is not None:
            enrollments = [e for e in enrollments if e.status == EnrollmentStatus(status).value]
        enrollments.sort(key=lambda e: e.enrolled_at, reverse=True)

        start = (page - 1) * page_size
        return enrollments[start : start + page_size], len(enrollments)

    async def scan_enrollments(
        self, organization_id: UUID | None = None
    ) -> list[Enrollment]:
        """Every enrollment, or those of one organization."""
        if organization_id is not None:
            rows = await self.session.aexecute(
                self._get_enrollments_by_org, [organization_id]
            )
        else:
            rows = await self.session.aexecute(self._get_all_enrollments)
        return [Enrollment.from_row(row) for row in rows]

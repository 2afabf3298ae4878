"""Lesson and quiz progression.

Completion events are set-add updates on the enrollment row, so two
concurrent completions for the same student both land. After a passing
quiz the row is re-read and, when every module is done, the enrollment is
completed through the status guard in ``EnrollmentService``.
"""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

import structlog
from cassandra.util import uuid_from_time

from ecclesia.core.errors import BadRequestError, NotFoundError

from .grading import QuizGrade, grade_quiz
from .models import Enrollment, EnrollmentStatus, QuizAttempt, lesson_key


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from ecclesia.curriculum.service import CurriculumService

    from .service import EnrollmentService

logger = structlog.get_logger(__name__)


class LessonNotFoundError(NotFoundError):
    def __init__(self, module_number: int, lesson_number: int):
        super().__init__(
            f"Lesson {lesson_number} not found in module {module_number}",
            "lesson_not_found",
        )


class QuizNotAvailableError(BadRequestError):
    def __init__(self, module_number: int):
        super().__init__(f"Module {module_number} has no quiz", "quiz_missing")


@dataclass
class QuizOutcome:
    """Result of a quiz submission."""

    enrollment: Enrollment
    attempt: QuizAttempt
    grade: QuizGrade
    module_completed: bool
    course_completed: bool


class ProgressionService:
    """Service for lesson completion and quiz submission."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        enrollments: "EnrollmentService",
        curriculum: "CurriculumService",
    ):
        self.session = session
        self.keyspace = keyspace
        self.enrollments = enrollments
        self.curriculum = curriculum
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._add_lesson = self.session.prepare(f"""
            UPDATE {self.keyspace}.fs_enrollments
            SET completed_lessons = completed_lessons + ?, updated_at = ?
            WHERE enrollment_id = ?
        """)

        self._add_module = self.session.prepare(f"""
            UPDATE {self.keyspace}.fs_enrollments
            SET completed_modules = completed_modules + ?, current_module = ?,
                updated_at = ?
            WHERE enrollment_id = ?
        """)

        self._insert_attempt = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.fs_quiz_attempts
            (enrollment_id, attempt_id, module_number, score, passed,
             correct_count, question_count, attempted_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """)

    async def complete_lesson(
        self, student_id: UUID, module_number: int, lesson_number: int
    ) -> Enrollment:
        """Mark a lesson complete. Repeating it is a no-op.

        Raises:
            NotEnrolledError: No active enrollment
            CurriculumModuleNotFoundError: Unknown or inactive module
            LessonNotFoundError: Module has no such lesson
        """
        enrollment = await self.enrollments.require_active_enrollment(student_id)
        module = await self.curriculum.get_active_module(module_number)
        if not module.has_lesson(lesson_number):
            raise LessonNotFoundError(module_number, lesson_number)

        key = lesson_key(module_number, lesson_number)
        now = datetime.now(UTC)
        await self.session.aexecute(
            self._add_lesson, [{key}, now, enrollment.enrollment_id]
        )
        enrollment.completed_lessons.add(key)
        enrollment.updated_at = now

        logger.info(
            "lesson_completed",
            enrollment_id=str(enrollment.enrollment_id),
            module_number=module_number,
            lesson_number=lesson_number,
        )
        return enrollment

    async def submit_quiz(
        self, student_id: UUID, module_number: int, answers: list[Any]
    ) -> QuizOutcome:
        """Grade a quiz attempt and advance the enrollment on a pass.

        Every attempt is recorded. A first pass adds the module to the
        completed set and moves ``current_module`` past it; passing the last
        outstanding module completes the enrollment.

        Raises:
            NotEnrolledError: No active enrollment
            CurriculumModuleNotFoundError: Unknown or inactive module
            QuizNotAvailableError: Module has no questions
        """
        enrollment = await self.enrollments.require_active_enrollment(student_id)
        module = await self.curriculum.get_active_module(module_number)
        if not module.has_quiz:
            raise QuizNotAvailableError(module_number)

        grade = grade_quiz(module.quiz, answers, module.passing_score)

        now = datetime.now(UTC)
        attempt = QuizAttempt(
            enrollment_id=enrollment.enrollment_id,
            attempt_id=uuid_from_time(now),
            module_number=module_number,
            score=grade.score,
            passed=grade.passed,
            correct_count=grade.correct_count,
            question_count=grade.question_count,
            attempted_at=now,
        )
        await self.session.aexecute(
            self._insert_attempt,
            [
                attempt.enrollment_id,
                attempt.attempt_id,
                attempt.module_number,
                attempt.score,
                attempt.passed,
                attempt.correct_count,
                attempt.question_count,
                attempt.attempted_at,
            ],
        )

        logger.info(
            "quiz_submitted",
            enrollment_id=str(enrollment.enrollment_id),
            module_number=module_number,
            score=grade.score,
            passed=grade.passed,
        )

        module_completed = False
        course_completed = False
        in_range = 1 <= module_number <= enrollment.total_modules
        if grade.passed and in_range and module_number not in enrollment.completed_modules:
            await self.session.aexecute(
                self._add_module,
                [{module_number}, module_number + 1, now, enrollment.enrollment_id],
            )
            module_completed = True

            fresh = await self.enrollments.get_enrollment(enrollment.enrollment_id)
            fresh.completed_modules.add(module_number)
            enrollment = fresh
            if enrollment.all_modules_completed:
                course_completed = await self.enrollments.finish_enrollment(
                    enrollment, EnrollmentStatus.COMPLETED
                )
        elif grade.passed and not in_range:
            logger.warning(
                "quiz_module_outside_enrollment",
                enrollment_id=str(enrollment.enrollment_id),
                module_number=module_number,
                total_modules=enrollment.total_modules,
            )

        return QuizOutcome(
            enrollment=enrollment,
            attempt=attempt,
            grade=grade,
            module_completed=module_completed,
            course_completed=course_completed,
        )

"""Tests for lesson completion and quiz submission."""

from uuid import uuid4

import pytest

from ecclesia.curriculum.service import CurriculumModuleNotFoundError
from ecclesia.enrollments.progression import LessonNotFoundError, QuizNotAvailableError
from ecclesia.enrollments.service import NotEnrolledError


CLAIM_SELECT = "SELECT * FROM test_keyspace.fs_active_enrollments WHERE student_id"
CLAIM_RELEASE = "DELETE FROM test_keyspace.fs_active_enrollments"
GET_ENROLLMENT = "FROM test_keyspace.fs_enrollments WHERE enrollment_id"
GET_MODULE = "FROM test_keyspace.fs_modules WHERE module_number"
ADD_LESSON = "SET completed_lessons = completed_lessons + ?"
ADD_MODULE = "SET completed_modules = completed_modules + ?"
INSERT_ATTEMPT = "INSERT INTO test_keyspace.fs_quiz_attempts"
FINISH = "IF status IN ('enrolled', 'in_progress', 'active')"


@pytest.fixture
def student():
    return uuid4()


@pytest.fixture
def enrolled(cql, result, rows, student):
    """Route an active enrollment for ``student``; returns a row builder hook."""

    def _enrolled(*reads, **overrides):
        row = rows.enrollment(student_id=student, **overrides)
        cql.on(CLAIM_SELECT, result([rows.claim(student, row.enrollment_id)]))
        later = [rows.enrollment(**{**vars(row), **r}) for r in reads]
        cql.on(GET_ENROLLMENT, *[result([r]) for r in [row, *later]])
        return row

    return _enrolled


class TestCompleteLesson:
    """Tests for complete_lesson."""

    @pytest.mark.asyncio
    async def test_adds_lesson_key(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        # Arrange
        row = enrolled()
        cql.on(GET_MODULE, result([rows.module(2, lessons=3)]))

        # Act
        enrollment = await services.progression.complete_lesson(student, 2, 3)

        # Assert
        assert "2-3" in enrollment.completed_lessons
        params = cql.executed(ADD_LESSON)
        assert params[0][0] == {"2-3"}
        assert params[0][2] == row.enrollment_id

    @pytest.mark.asyncio
    async def test_unknown_lesson(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        enrolled()
        cql.on(GET_MODULE, result([rows.module(1, lessons=2)]))

        with pytest.raises(LessonNotFoundError):
            await services.progression.complete_lesson(student, 1, 5)

        assert cql.executed(ADD_LESSON) == []

    @pytest.mark.asyncio
    async def test_inactive_module(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        enrolled()
        cql.on(GET_MODULE, result([rows.module(1, is_active=False)]))

        with pytest.raises(CurriculumModuleNotFoundError):
            await services.progression.complete_lesson(student, 1, 1)

    @pytest.mark.asyncio
    async def test_requires_active_enrollment(self, services, student) -> None:
        with pytest.raises(NotEnrolledError):
            await services.progression.complete_lesson(student, 1, 1)


class TestSubmitQuiz:
    """Tests for submit_quiz."""

    @pytest.mark.asyncio
    async def test_failing_attempt_is_recorded(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        # Arrange
        row = enrolled()
        cql.on(GET_MODULE, result([rows.module(1, questions=4)]))

        # Act
        outcome = await services.progression.submit_quiz(student, 1, [1, 0, 0, 0])

        # Assert
        assert outcome.grade.score == 25
        assert outcome.grade.passed is False
        assert outcome.module_completed is False
        attempt = cql.executed(INSERT_ATTEMPT)[0]
        assert attempt[0] == row.enrollment_id
        assert attempt[2:5] == [1, 25, False]
        assert cql.executed(ADD_MODULE) == []

    @pytest.mark.asyncio
    async def test_first_pass_completes_module(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        # Arrange
        row = enrolled({"completed_modules": {1}, "current_module": 2})
        cql.on(GET_MODULE, result([rows.module(1, questions=4)]))

        # Act
        outcome = await services.progression.submit_quiz(student, 1, [1, 1, 1, 0])

        # Assert
        assert outcome.grade.score == 75
        assert outcome.module_completed is True
        assert outcome.course_completed is False
        assert outcome.enrollment.completed_modules == {1}
        assert cql.executed(ADD_MODULE)[0][:2] == [{1}, 2]
        assert cql.executed(ADD_MODULE)[0][3] == row.enrollment_id
        assert cql.executed(FINISH) == []

    @pytest.mark.asyncio
    async def test_repeat_pass_does_not_add_module(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        enrolled(completed_modules={1}, current_module=2)
        cql.on(GET_MODULE, result([rows.module(1)]))

        outcome = await services.progression.submit_quiz(student, 1, [1, 1, 1, 1])

        assert outcome.grade.passed is True
        assert outcome.module_completed is False
        assert len(cql.executed(INSERT_ATTEMPT)) == 1
        assert cql.executed(ADD_MODULE) == []

    @pytest.mark.asyncio
    async def test_last_module_completes_course(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        # Arrange
        row = enrolled(
            {"completed_modules": {1, 2, 3}},
            completed_modules={1, 2},
            total_modules=3,
        )
        cql.on(GET_MODULE, result([rows.module(3)]))

        # Act
        outcome = await services.progression.submit_quiz(student, 3, [1, 1, 1, 1])

        # Assert
        assert outcome.module_completed is True
        assert outcome.course_completed is True
        assert outcome.enrollment.status == "completed"
        assert outcome.enrollment.completed_at is not None
        assert cql.executed(FINISH)[0][0] == "completed"
        assert cql.executed(CLAIM_RELEASE) == [[student, row.enrollment_id]]

    @pytest.mark.asyncio
    async def test_concurrent_completion_is_not_repeated(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        enrolled({"completed_modules": {1, 2}}, completed_modules={1}, total_modules=2)
        cql.on(GET_MODULE, result([rows.module(2)]))
        cql.on(FINISH, result(was_applied=False))

        outcome = await services.progression.submit_quiz(student, 2, [1, 1, 1, 1])

        assert outcome.module_completed is True
        assert outcome.course_completed is False
        assert cql.executed(CLAIM_RELEASE) == []

    @pytest.mark.asyncio
    async def test_pass_outside_enrollment_range(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        enrolled(total_modules=3)
        cql.on(GET_MODULE, result([rows.module(4)]))

        outcome = await services.progression.submit_quiz(student, 4, [1, 1, 1, 1])

        assert outcome.grade.passed is True
        assert outcome.module_completed is False
        assert cql.executed(ADD_MODULE) == []

    @pytest.mark.asyncio
    async def test_module_without_quiz(
        self, services, cql, result, rows, enrolled, student
    ) -> None:
        enrolled()
        cql.on(GET_MODULE, result([rows.module(1, questions=0)]))

        with pytest.raises(QuizNotAvailableError):
            await services.progression.submit_quiz(student, 1, [])

        assert cql.executed(INSERT_ATTEMPT) == []

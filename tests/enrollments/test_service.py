"""Tests for the enrollment lifecycle."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from ecclesia.core.errors import NotAuthorizedError
from ecclesia.enrollments.models import Enrollment, EnrollmentStatus
from ecclesia.enrollments.service import (
    BatchOrganizationMismatchError,
    EmptyCurriculumError,
    EnrollmentConflictError,
    EnrollmentNotActiveError,
    NotEnrolledError,
)


CLAIM_SELECT = "SELECT * FROM test_keyspace.fs_active_enrollments WHERE student_id"
CLAIM_INSERT = "INSERT INTO test_keyspace.fs_active_enrollments"
CLAIM_RELEASE = "DELETE FROM test_keyspace.fs_active_enrollments"
GET_ENROLLMENT = "FROM test_keyspace.fs_enrollments WHERE enrollment_id"
INSERT_ENROLLMENT = "INSERT INTO test_keyspace.fs_enrollments ("
BY_STUDENT = "FROM test_keyspace.fs_enrollments_by_student"
BY_ORG = "FROM test_keyspace.fs_enrollments WHERE organization_id"
FINISH = "IF status IN ('enrolled', 'in_progress', 'active')"
ALL_MODULES = "SELECT * FROM test_keyspace.fs_modules"
GET_BATCH = "FROM test_keyspace.fs_batches WHERE batch_id"
GET_ORG = "FROM test_keyspace.organizations WHERE organization_id"


class TestEnroll:
    """Tests for EnrollmentService.enroll."""

    @pytest.mark.asyncio
    async def test_new_enrollment(self, services, cql, result, rows) -> None:
        # Arrange
        student = uuid4()
        cql.on(ALL_MODULES, result([rows.module(1), rows.module(2)]))

        # Act
        enrollment, already = await services.enrollments.enroll(student, "Ada")

        # Assert
        assert already is False
        assert enrollment.student_id == student
        assert enrollment.status == EnrollmentStatus.ACTIVE.value
        assert enrollment.total_modules == 2
        assert enrollment.current_module == 1
        assert enrollment.batch_id is None

        claim = cql.executed(CLAIM_INSERT)
        assert claim[0][:2] == [student, enrollment.enrollment_id]
        assert len(cql.executed(INSERT_ENROLLMENT)) == 1
        assert cql.executed("INSERT INTO test_keyspace.fs_enrollments_by_student") == [
            [student, enrollment.enrolled_at, enrollment.enrollment_id]
        ]

    @pytest.mark.asyncio
    async def test_repeat_enroll_returns_existing(
        self, services, cql, result, rows
    ) -> None:
        # Arrange
        student = uuid4()
        row = rows.enrollment(student_id=student)
        cql.on(CLAIM_SELECT, result([rows.claim(student, row.enrollment_id)]))
        cql.on(GET_ENROLLMENT, result([row]))

        # Act
        enrollment, already = await services.enrollments.enroll(student, "Ada")

        # Assert
        assert already is True
        assert enrollment.enrollment_id == row.enrollment_id
        assert cql.executed(CLAIM_INSERT) == []
        assert cql.executed(INSERT_ENROLLMENT) == []

    @pytest.mark.asyncio
    async def test_inactive_modules_are_not_counted(
        self, services, cql, result, rows
    ) -> None:
        cql.on(
            ALL_MODULES,
            result([rows.module(1), rows.module(2, is_active=False), rows.module(3)]),
        )

        enrollment, _ = await services.enrollments.enroll(uuid4())

        assert enrollment.total_modules == 2

    @pytest.mark.asyncio
    async def test_empty_curriculum(self, services, cql) -> None:
        with pytest.raises(EmptyCurriculumError):
            await services.enrollments.enroll(uuid4(), "Ada")

        assert cql.executed(CLAIM_INSERT) == []

    @pytest.mark.asyncio
    async def test_lost_claim_returns_winner(
        self, services, cql, result, rows
    ) -> None:
        # Arrange
        student = uuid4()
        winner = rows.enrollment(student_id=student)
        cql.on(ALL_MODULES, result([rows.module(1)]))
        cql.on(
            CLAIM_SELECT,
            result(),
            result([rows.claim(student, winner.enrollment_id)]),
        )
        cql.on(GET_ENROLLMENT, result([winner]))
        cql.on(CLAIM_INSERT, result(was_applied=False))

        # Act
        enrollment, already = await services.enrollments.enroll(student)

        # Assert
        assert already is True
        assert enrollment.enrollment_id == winner.enrollment_id
        assert cql.executed(INSERT_ENROLLMENT) == []

    @pytest.mark.asyncio
    async def test_lost_claim_to_unfinished_enroll_conflicts(
        self, services, cql, result, rows
    ) -> None:
        student = uuid4()
        cql.on(ALL_MODULES, result([rows.module(1)]))
        cql.on(CLAIM_SELECT, result(), result([rows.claim(student, uuid4())]))
        cql.on(CLAIM_INSERT, result(was_applied=False))

        with pytest.raises(EnrollmentConflictError):
            await services.enrollments.enroll(student)

        assert cql.executed(CLAIM_RELEASE) == []

    @pytest.mark.asyncio
    async def test_explicit_batch_sets_organization(
        self, services, cql, result, rows
    ) -> None:
        batch = rows.batch()
        cql.on(GET_BATCH, result([batch]))
        cql.on(ALL_MODULES, result([rows.module(1)]))

        enrollment, _ = await services.enrollments.enroll(
            uuid4(), batch_id=batch.batch_id
        )

        assert enrollment.batch_id == batch.batch_id
        assert enrollment.organization_id == batch.organization_id

    @pytest.mark.asyncio
    async def test_batch_of_another_organization_rejected(
        self, services, cql, result, rows
    ) -> None:
        # Arrange
        batch = rows.batch()
        cql.on(GET_BATCH, result([batch]))
        cql.on(ALL_MODULES, result([rows.module(1)]))

        # Act
        with pytest.raises(BatchOrganizationMismatchError) as exc_info:
            await services.enrollments.enroll(
                uuid4(), organization_id=uuid4(), batch_id=batch.batch_id
            )

        # Assert
        assert exc_info.value.code == "batch_organization_mismatch"
        assert cql.executed(CLAIM_INSERT) == []

    @pytest.mark.asyncio
    async def test_batch_of_same_organization_accepted(
        self, services, cql, result, rows
    ) -> None:
        batch = rows.batch()
        cql.on(GET_BATCH, result([batch]))
        cql.on(ALL_MODULES, result([rows.module(1)]))

        enrollment, _ = await services.enrollments.enroll(
            uuid4(), organization_id=batch.organization_id, batch_id=batch.batch_id
        )

        assert enrollment.organization_id == batch.organization_id
        assert enrollment.batch_id == batch.batch_id

    @pytest.mark.asyncio
    async def test_failed_insert_releases_claim(
        self, services, cql, result, rows
    ) -> None:
        # Arrange
        student = uuid4()
        cql.on(ALL_MODULES, result([rows.module(1)]))
        cql.on(INSERT_ENROLLMENT, RuntimeError("write timeout"))

        # Act
        with pytest.raises(RuntimeError):
            await services.enrollments.enroll(student)

        # Assert
        claimed = cql.executed(CLAIM_INSERT)
        assert len(claimed) == 1
        assert cql.executed(CLAIM_RELEASE) == [[student, claimed[0][1]]]

    @pytest.mark.asyncio
    async def test_failed_student_index_releases_claim(
        self, services, cql, result, rows
    ) -> None:
        student = uuid4()
        cql.on(ALL_MODULES, result([rows.module(1)]))
        cql.on(
            "INSERT INTO test_keyspace.fs_enrollments_by_student",
            RuntimeError("write timeout"),
        )

        with pytest.raises(RuntimeError):
            await services.enrollments.enroll(student)

        claimed = cql.executed(CLAIM_INSERT)
        assert cql.executed(CLAIM_RELEASE) == [[student, claimed[0][1]]]


class TestActiveEnrollment:
    """Tests for claim following and release."""

    @pytest.mark.asyncio
    async def test_no_claim(self, services) -> None:
        assert await services.enrollments.get_active_enrollment(uuid4()) is None

    @pytest.mark.asyncio
    async def test_stale_claim_is_released(self, services, cql, result, rows) -> None:
        student = uuid4()
        orphan = uuid4()
        cql.on(
            CLAIM_SELECT,
            result([rows.claim(student, orphan, age=timedelta(minutes=10))]),
        )

        assert await services.enrollments.get_active_enrollment(student) is None
        assert cql.executed(CLAIM_RELEASE) == [[student, orphan]]

    @pytest.mark.asyncio
    async def test_claim_of_finished_enrollment_is_released(
        self, services, cql, result, rows
    ) -> None:
        student = uuid4()
        row = rows.enrollment(student_id=student, status="withdrawn")
        cql.on(CLAIM_SELECT, result([rows.claim(student, row.enrollment_id)]))
        cql.on(GET_ENROLLMENT, result([row]))

        assert await services.enrollments.get_active_enrollment(student) is None
        assert cql.executed(CLAIM_RELEASE) == [[student, row.enrollment_id]]


class TestWithdrawAndDrop:
    """Tests for leaving the active set."""

    @pytest.mark.asyncio
    async def test_withdraw_releases_claim(self, services, cql, result, rows) -> None:
        # Arrange
        student = uuid4()
        row = rows.enrollment(student_id=student)
        cql.on(CLAIM_SELECT, result([rows.claim(student, row.enrollment_id)]))
        cql.on(GET_ENROLLMENT, result([row]))

        # Act
        enrollment = await services.enrollments.withdraw(student)

        # Assert
        assert enrollment.status == EnrollmentStatus.WITHDRAWN.value
        finish = cql.executed(FINISH)
        assert finish[0][0] == "withdrawn"
        assert finish[0][1] is None
        assert finish[0][3] == row.enrollment_id
        assert cql.executed(CLAIM_RELEASE) == [[student, row.enrollment_id]]

    @pytest.mark.asyncio
    async def test_withdraw_without_enrollment(self, services) -> None:
        with pytest.raises(NotEnrolledError):
            await services.enrollments.withdraw(uuid4())

    @pytest.mark.asyncio
    async def test_withdraw_race_lost(self, services, cql, result, rows) -> None:
        student = uuid4()
        row = rows.enrollment(student_id=student)
        cql.on(CLAIM_SELECT, result([rows.claim(student, row.enrollment_id)]))
        cql.on(GET_ENROLLMENT, result([row]))
        cql.on(FINISH, result(was_applied=False))

        with pytest.raises(NotEnrolledError):
            await services.enrollments.withdraw(student)

        assert cql.executed(CLAIM_RELEASE) == []

    @pytest.mark.asyncio
    async def test_drop_by_batch_principal(self, services, cql, result, rows) -> None:
        principal = uuid4()
        batch = rows.batch(principal_id=principal)
        row = rows.enrollment(
            batch_id=batch.batch_id, organization_id=batch.organization_id
        )
        cql.on(GET_ENROLLMENT, result([row]))
        cql.on(GET_BATCH, result([batch]))

        enrollment = await services.enrollments.drop(row.enrollment_id, principal)

        assert enrollment.status == EnrollmentStatus.DROPPED.value
        assert cql.executed(CLAIM_RELEASE) == [[row.student_id, row.enrollment_id]]

    @pytest.mark.asyncio
    async def test_drop_requires_staff(self, services, cql, result, rows) -> None:
        row = rows.enrollment(organization_id=uuid4())
        cql.on(GET_ENROLLMENT, result([row]))

        with pytest.raises(NotAuthorizedError):
            await services.enrollments.drop(row.enrollment_id, uuid4())

        assert cql.executed(FINISH) == []

    @pytest.mark.asyncio
    async def test_drop_finished_enrollment(self, services, cql, result, rows) -> None:
        principal = uuid4()
        batch = rows.batch(principal_id=principal)
        row = rows.enrollment(batch_id=batch.batch_id, status="completed")
        cql.on(GET_ENROLLMENT, result([row]))
        cql.on(GET_BATCH, result([batch]))

        with pytest.raises(EnrollmentNotActiveError):
            await services.enrollments.drop(row.enrollment_id, principal)


class TestProgressLookup:
    @pytest.mark.asyncio
    async def test_latest_visible_enrollment(self, services, cql, result, rows) -> None:
        student = uuid4()
        withdrawn = rows.enrollment(student_id=student, status="withdrawn")
        completed = rows.enrollment(student_id=student, status="completed")
        cql.on(
            BY_STUDENT,
            result(
                [
                    SimpleNamespace(enrollment_id=withdrawn.enrollment_id),
                    SimpleNamespace(enrollment_id=completed.enrollment_id),
                ]
            ),
        )
        cql.on(GET_ENROLLMENT, result([withdrawn]), result([completed]))

        enrollment = await services.enrollments.get_progress(student)

        assert enrollment.enrollment_id == completed.enrollment_id

    @pytest.mark.asyncio
    async def test_no_visible_enrollment(self, services) -> None:
        with pytest.raises(NotEnrolledError):
            await services.enrollments.get_progress(uuid4())


class TestListEnrollments:
    @pytest.mark.asyncio
    async def test_filters_and_pages(self, services, cql, result, rows) -> None:
        # Arrange
        manager = uuid4()
        org = rows.organization(leader_id=manager)
        now = datetime.now(UTC)
        older = rows.enrollment(
            organization_id=org.organization_id, enrolled_at=now - timedelta(days=2)
        )
        newer = rows.enrollment(
            organization_id=org.organization_id, enrolled_at=now - timedelta(days=1)
        )
        dropped = rows.enrollment(organization_id=org.organization_id, status="dropped")
        cql.on(GET_ORG, result([org]))
        cql.on(BY_ORG, result([older, dropped, newer]))

        # Act
        page, total = await services.enrollments.list_enrollments(
            staff_id=manager,
            organization_id=org.organization_id,
            status=EnrollmentStatus.ACTIVE,
            page=1,
            page_size=1,
        )

        # Assert
        assert total == 2
        assert [e.enrollment_id for e in page] == [newer.enrollment_id]

    @pytest.mark.asyncio
    async def test_member_cannot_list(self, services, cql, result, rows) -> None:
        org = rows.organization()
        cql.on(GET_ORG, result([org]))

        with pytest.raises(NotAuthorizedError):
            await services.enrollments.list_enrollments(uuid4(), org.organization_id)


class TestEnrollmentProgress:
    """Progress is computed over modules within 1..total_modules."""

    def test_out_of_range_modules_do_not_count(self) -> None:
        enrollment = Enrollment(
            enrollment_id=uuid4(),
            student_id=uuid4(),
            status="active",
            total_modules=3,
            completed_modules={0, 1, 2, 7},
        )

        assert enrollment.counted_modules == {1, 2}
        assert enrollment.progress_percent == Decimal("66.67")
        assert enrollment.all_modules_completed is False

    def test_no_modules(self) -> None:
        enrollment = Enrollment(
            enrollment_id=uuid4(), student_id=uuid4(), status="active", total_modules=0
        )

        assert enrollment.progress_percent == Decimal(0)
        assert enrollment.all_modules_completed is False

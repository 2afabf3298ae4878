"""Tests for Foundation School batches."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from ecclesia.batches.models import BatchStatus
from ecclesia.batches.service import BatchNotFoundError, DuplicateBatchNumberError
from ecclesia.core.errors import NotAuthorizedError


GET_ORG = "FROM test_keyspace.organizations WHERE organization_id"
GET_BATCH = "FROM test_keyspace.fs_batches WHERE batch_id"
BY_ORG = "FROM test_keyspace.fs_batches WHERE organization_id"
CLAIM_NUMBER = "INSERT INTO test_keyspace.fs_batch_numbers"
RELEASE_NUMBER = "DELETE FROM test_keyspace.fs_batch_numbers"
INSERT_BATCH = "INSERT INTO test_keyspace.fs_batches ("
UPDATE_STATUS = "SET status = ?, updated_at = ?"


class TestCreateBatch:
    """Tests for BatchService.create_batch."""

    @pytest.mark.asyncio
    async def test_manager_creates_open_batch(
        self, services, cql, result, rows
    ) -> None:
        # Arrange
        manager = uuid4()
        org = rows.organization(leader_id=manager)
        cql.on(GET_ORG, result([org]))

        # Act
        batch = await services.batches.create_batch(
            manager, org.organization_id, 7, "Batch 7", datetime.now(UTC)
        )

        # Assert
        assert batch.status == BatchStatus.REGISTRATION_OPEN.value
        assert batch.principal_id == manager
        assert batch.batch_number == 7
        assert cql.executed(CLAIM_NUMBER) == [
            [org.organization_id, 7, batch.batch_id]
        ]
        assert len(cql.executed(INSERT_BATCH)) == 1

    @pytest.mark.asyncio
    async def test_duplicate_number(self, services, cql, result, rows) -> None:
        manager = uuid4()
        org = rows.organization(leader_id=manager)
        cql.on(GET_ORG, result([org]))
        cql.on(CLAIM_NUMBER, result(was_applied=False))

        with pytest.raises(DuplicateBatchNumberError):
            await services.batches.create_batch(
                manager, org.organization_id, 1, "Batch 1", datetime.now(UTC)
            )

        assert cql.executed(INSERT_BATCH) == []

    @pytest.mark.asyncio
    async def test_failed_insert_releases_number(
        self, services, cql, result, rows
    ) -> None:
        # Arrange
        manager = uuid4()
        org = rows.organization(leader_id=manager)
        cql.on(GET_ORG, result([org]))
        cql.on(INSERT_BATCH, RuntimeError("write timeout"))

        # Act
        with pytest.raises(RuntimeError):
            await services.batches.create_batch(
                manager, org.organization_id, 3, "Batch 3", datetime.now(UTC)
            )

        # Assert
        claimed = cql.executed(CLAIM_NUMBER)
        assert cql.executed(RELEASE_NUMBER) == [
            [org.organization_id, 3, claimed[0][2]]
        ]

    @pytest.mark.asyncio
    async def test_member_cannot_create(self, services, cql, result, rows) -> None:
        org = rows.organization()
        member = uuid4()
        cql.on(GET_ORG, result([org]))
        cql.on(
            "FROM test_keyspace.organization_members WHERE organization_id = ? AND",
            result([rows.membership(user_id=member, role="worker")]),
        )

        with pytest.raises(NotAuthorizedError):
            await services.batches.create_batch(
                member, org.organization_id, 1, "Batch 1", datetime.now(UTC)
            )

        assert cql.executed(CLAIM_NUMBER) == []


class TestBatchStatus:
    @pytest.mark.asyncio
    async def test_principal_updates_status(self, services, cql, result, rows) -> None:
        batch = rows.batch()
        cql.on(GET_BATCH, result([batch]))

        updated = await services.batches.update_batch_status(
            batch.batch_id, batch.principal_id, BatchStatus.IN_PROGRESS
        )

        assert updated.status == "in_progress"
        assert cql.executed(UPDATE_STATUS)[0][0] == "in_progress"

    @pytest.mark.asyncio
    async def test_any_status_change_is_allowed(
        self, services, cql, result, rows
    ) -> None:
        batch = rows.batch(status="archived")
        cql.on(GET_BATCH, result([batch]))

        updated = await services.batches.update_batch_status(
            batch.batch_id, batch.principal_id, BatchStatus.DRAFT
        )

        assert updated.status == "draft"

    @pytest.mark.asyncio
    async def test_teacher_cannot_update_status(
        self, services, cql, result, rows
    ) -> None:
        teacher = uuid4()
        batch = rows.batch(teacher_ids={teacher})
        cql.on(GET_BATCH, result([batch]))

        with pytest.raises(NotAuthorizedError):
            await services.batches.update_batch_status(
                batch.batch_id, teacher, BatchStatus.COMPLETED
            )

        assert cql.executed(UPDATE_STATUS) == []

    @pytest.mark.asyncio
    async def test_unknown_batch(self, services) -> None:
        with pytest.raises(BatchNotFoundError):
            await services.batches.update_batch_status(
                uuid4(), uuid4(), BatchStatus.COMPLETED
            )


class TestLatestOpenBatch:
    @pytest.mark.asyncio
    async def test_newest_open_batch_wins(self, services, cql, result, rows) -> None:
        org_id = uuid4()
        now = datetime.now(UTC)
        old = rows.batch(organization_id=org_id, start_date=now - timedelta(days=60))
        new = rows.batch(
            organization_id=org_id,
            start_date=now - timedelta(days=1),
            status="in_progress",
        )
        closed = rows.batch(organization_id=org_id, start_date=now, status="completed")
        cql.on(BY_ORG, result([old, closed, new]))

        batch = await services.batches.find_latest_open_batch(org_id)

        assert batch.batch_id == new.batch_id

    @pytest.mark.asyncio
    async def test_no_open_batch(self, services) -> None:
        assert await services.batches.find_latest_open_batch(uuid4()) is None


class TestTeachers:
    @pytest.mark.asyncio
    async def test_principal_adds_teacher(self, services, cql, result, rows) -> None:
        batch = rows.batch()
        teacher = uuid4()
        cql.on(GET_BATCH, result([batch]))

        updated = await services.batches.add_teacher(
            batch.batch_id, batch.principal_id, teacher
        )

        assert teacher in updated.teacher_ids
        assert cql.executed("SET teacher_ids = teacher_ids + ?")[0][0] == {teacher}

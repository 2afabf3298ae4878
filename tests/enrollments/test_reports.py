"""Tests for Foundation School statistics and leaderboard."""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest


BY_ORG = "FROM test_keyspace.fs_enrollments WHERE organization_id"
GET_ATTEMPTS = "FROM test_keyspace.fs_quiz_attempts WHERE enrollment_id"
ALL_MODULES = "SELECT * FROM test_keyspace.fs_modules"


class TestStats:
    @pytest.mark.asyncio
    async def test_counts_and_average(self, services, cql, result, rows) -> None:
        # Arrange
        org_id = uuid4()
        enrollments = [
            rows.enrollment(organization_id=org_id),
            rows.enrollment(organization_id=org_id, status="completed"),
            rows.enrollment(
                organization_id=org_id,
                status="graduated",
                graduated_at=datetime.now(UTC),
            ),
            rows.enrollment(organization_id=org_id, status="dropped"),
        ]
        cql.on(BY_ORG, result(enrollments))
        cql.on(
            GET_ATTEMPTS,
            result([rows.attempt(1, 50)]),
            result([rows.attempt(1, 80), rows.attempt(2, 90)]),
            result([rows.attempt(1, 100)]),
            result([]),
        )
        cql.on(ALL_MODULES, result([rows.module(1), rows.module(2), rows.module(3)]))

        # Act
        stats = await services.reports.get_stats(org_id)

        # Assert
        assert stats.total_enrollments == 4
        assert stats.active_enrollments == 1
        assert stats.completed_enrollments == 2
        assert stats.graduated_enrollments == 1
        assert stats.average_quiz_score == 80
        assert stats.total_modules == 3

    @pytest.mark.asyncio
    async def test_empty(self, services) -> None:
        stats = await services.reports.get_stats(uuid4())

        assert stats.total_enrollments == 0
        assert stats.average_quiz_score == 0


class TestLeaderboard:
    @pytest.mark.asyncio
    async def test_ranking_and_ties(self, services, cql, result, rows) -> None:
        # Arrange
        org_id = uuid4()
        now = datetime.now(UTC)
        first = rows.enrollment(
            organization_id=org_id,
            student_name="Ada",
            completed_modules={1},
            enrolled_at=now - timedelta(days=3),
        )
        second = rows.enrollment(
            organization_id=org_id,
            student_name="Grace",
            completed_modules={1, 2},
            enrolled_at=now - timedelta(days=1),
        )
        idle = rows.enrollment(organization_id=org_id, student_name="Idle")
        cql.on(BY_ORG, result([first, second, idle]))
        cql.on(
            GET_ATTEMPTS,
            result([rows.attempt(1, 80), rows.attempt(2, 90)]),
            result([rows.attempt(1, 60), rows.attempt(1, 85)]),
            result([]),
        )

        # Act
        entries = await services.reports.get_leaderboard(org_id, limit=10)

        # Assert
        assert [e.enrollment.student_name for e in entries] == ["Grace", "Ada"]
        assert [e.rank for e in entries] == [1, 2]
        assert [e.score for e in entries] == [85, 85]
        assert entries[0].quizzes_taken == 2

    @pytest.mark.asyncio
    async def test_limit(self, services, cql, result, rows) -> None:
        org_id = uuid4()
        cql.on(BY_ORG, result([rows.enrollment(organization_id=org_id) for _ in range(3)]))
        cql.on(GET_ATTEMPTS, result([rows.attempt(1, 70)]))

        entries = await services.reports.get_leaderboard(org_id, limit=2)

        assert len(entries) == 2

    @pytest.mark.asyncio
    async def test_attempts_read_once_per_enrollment(
        self, services, cql, result, rows
    ) -> None:
        org_id = uuid4()
        enrollments = [rows.enrollment(organization_id=org_id) for _ in range(3)]
        cql.on(BY_ORG, result(enrollments))
        cql.on(GET_ATTEMPTS, result([rows.attempt(1, 70)]))

        await services.reports.get_leaderboard(org_id)

        assert cql.executed(GET_ATTEMPTS) == [[e.enrollment_id] for e in enrollments]

"""Tests for certificate issuance and download."""

import re
from datetime import UTC, datetime
from types import SimpleNamespace
from uuid import uuid4

import pytest

from ecclesia.certificates.renderer import CertificateRenderingError
from ecclesia.certificates.service import (
    CertificateNotFoundError,
    CertificateNotIssuedError,
    EnrollmentNotCompletedError,
    RenderingUnavailableError,
    generate_certificate_number,
    to_base36,
)
from ecclesia.core.errors import NotAuthorizedError


GET_ENROLLMENT = "FROM test_keyspace.fs_enrollments WHERE enrollment_id"
GET_BATCH = "FROM test_keyspace.fs_batches WHERE batch_id"
GET_ORG = "FROM test_keyspace.organizations WHERE organization_id"
GET_ATTEMPTS = "FROM test_keyspace.fs_quiz_attempts WHERE enrollment_id"
BY_STUDENT = "FROM test_keyspace.fs_enrollments_by_student"
ISSUE = "IF certificate_number = null"


@pytest.fixture
def principal():
    return uuid4()


@pytest.fixture
def staffed(cql, result, rows, principal):
    """Route a completed enrollment in a batch led by ``principal``."""

    def _staffed(*reads, **overrides):
        batch = rows.batch(principal_id=principal)
        values = {
            "batch_id": batch.batch_id,
            "organization_id": batch.organization_id,
            "status": "completed",
            "completed_modules": {1, 2, 3},
            **overrides,
        }
        row = rows.enrollment(**values)
        later = [rows.enrollment(**{**vars(row), **r}) for r in reads]
        cql.on(GET_ENROLLMENT, *[result([r]) for r in [row, *later]])
        cql.on(GET_BATCH, result([batch]))
        return row

    return _staffed


class TestCertificateNumber:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(0, "0"), (35, "Z"), (36, "10"), (1295, "ZZ")],
    )
    def test_to_base36(self, value: int, expected: str) -> None:
        assert to_base36(value) == expected

    def test_format(self) -> None:
        number = generate_certificate_number("FS")

        assert re.fullmatch(r"FS-[0-9A-Z]+-[0-9A-Z]{4}", number)

    def test_numbers_differ(self) -> None:
        numbers = {generate_certificate_number("FS") for _ in range(50)}

        assert len(numbers) == 50


class TestIssue:
    """Tests for CertificateService.issue."""

    @pytest.mark.asyncio
    async def test_issue_graduates_enrollment(
        self, services, cql, staffed, principal
    ) -> None:
        # Arrange
        row = staffed()
        issue_date = datetime(2026, 3, 1, tzinfo=UTC)

        # Act
        enrollment, issued = await services.certificates.issue(
            row.enrollment_id, principal, issue_date
        )

        # Assert
        assert issued is True
        assert enrollment.status == "graduated"
        assert enrollment.certificate_number.startswith("FS-")
        assert enrollment.certificate_issued_at == issue_date
        assert enrollment.certificate_issued_by == principal
        assert enrollment.graduated_at is not None
        params = cql.executed(ISSUE)[0]
        assert params[0] == enrollment.certificate_number
        assert params[4] == "graduated"
        assert params[-1] == row.enrollment_id

    @pytest.mark.asyncio
    async def test_repeat_issue_keeps_number(
        self, services, cql, staffed, principal
    ) -> None:
        row = staffed(status="graduated", certificate_number="FS-ABC-1234")

        enrollment, issued = await services.certificates.issue(
            row.enrollment_id, principal
        )

        assert issued is False
        assert enrollment.certificate_number == "FS-ABC-1234"
        assert cql.executed(ISSUE) == []

    @pytest.mark.asyncio
    async def test_concurrent_issue_returns_winner(
        self, services, cql, result, staffed, principal
    ) -> None:
        # Arrange
        row = staffed({"status": "graduated", "certificate_number": "FS-WIN-0001"})
        cql.on(ISSUE, result(was_applied=False))

        # Act
        enrollment, issued = await services.certificates.issue(
            row.enrollment_id, principal
        )

        # Assert
        assert issued is False
        assert enrollment.certificate_number == "FS-WIN-0001"

    @pytest.mark.asyncio
    async def test_enrollment_left_completed_meanwhile(
        self, services, cql, result, staffed, principal
    ) -> None:
        row = staffed({"status": "dropped"})
        cql.on(ISSUE, result(was_applied=False))

        with pytest.raises(EnrollmentNotCompletedError):
            await services.certificates.issue(row.enrollment_id, principal)

    @pytest.mark.asyncio
    async def test_active_enrollment_rejected(
        self, services, cql, staffed, principal
    ) -> None:
        row = staffed(status="active")

        with pytest.raises(EnrollmentNotCompletedError):
            await services.certificates.issue(row.enrollment_id, principal)

        assert cql.executed(ISSUE) == []

    @pytest.mark.asyncio
    async def test_non_staff_rejected(self, services, cql, staffed) -> None:
        row = staffed()

        with pytest.raises(NotAuthorizedError):
            await services.certificates.issue(row.enrollment_id, uuid4())

        assert cql.executed(ISSUE) == []


class TestGetCertificate:
    @pytest.mark.asyncio
    async def test_summary_with_grade_band(
        self, services, cql, result, rows, staffed
    ) -> None:
        # Arrange
        row = staffed()
        org = rows.organization(
            organization_id=row.organization_id, name="Grace Church"
        )
        cql.on(BY_STUDENT, result([SimpleNamespace(enrollment_id=row.enrollment_id)]))
        cql.on(GET_ORG, result([org]))
        cql.on(
            GET_ATTEMPTS,
            result(
                [
                    rows.attempt(1, 60),
                    rows.attempt(1, 95),
                    rows.attempt(2, 90),
                    rows.attempt(3, 88),
                ]
            ),
        )

        # Act
        view = await services.certificates.get_certificate(row.student_id)

        # Assert
        assert view.final_score == 91
        assert view.grade_band == "Distinction"
        assert view.organization_name == "Grace Church"
        assert view.issued is False

    @pytest.mark.asyncio
    async def test_no_completed_enrollment(self, services) -> None:
        with pytest.raises(CertificateNotFoundError):
            await services.certificates.get_certificate(uuid4())


class TestRender:
    """Tests for CertificateService.render."""

    @pytest.mark.asyncio
    async def test_student_downloads_own_certificate(
        self, services, staffed
    ) -> None:
        # Arrange
        row = staffed(
            status="graduated",
            certificate_number="FS-ABC-1234",
            student_name="Ada",
        )

        # Act
        rendered = await services.certificates.render(row.enrollment_id, row.student_id)

        # Assert
        assert rendered.content.startswith(b"%PDF")
        assert rendered.media_type == "application/pdf"
        assert rendered.filename == "FS-ABC-1234.pdf"
        data = services.renderer.render.call_args.args[0]
        assert data.student_name == "Ada"
        assert data.certificate_number == "FS-ABC-1234"

    @pytest.mark.asyncio
    async def test_other_student_rejected(self, services, staffed) -> None:
        row = staffed(status="graduated", certificate_number="FS-ABC-1234")

        with pytest.raises(NotAuthorizedError):
            await services.certificates.render(row.enrollment_id, uuid4())

        services.renderer.render.assert_not_called()

    @pytest.mark.asyncio
    async def test_not_issued(self, services, staffed) -> None:
        row = staffed()

        with pytest.raises(CertificateNotIssuedError):
            await services.certificates.render(row.enrollment_id, row.student_id)

    @pytest.mark.asyncio
    async def test_renderer_failure_is_unavailable(
        self, services, staffed, principal
    ) -> None:
        row = staffed(status="graduated", certificate_number="FS-ABC-1234")
        services.renderer.render.side_effect = CertificateRenderingError("font missing")

        with pytest.raises(RenderingUnavailableError):
            await services.certificates.render(row.enrollment_id, principal)

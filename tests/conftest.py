"""Shared fixtures: mocked Cassandra session, row factories and an API client."""

import json
import os
from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, Mock
from uuid import UUID, uuid4

import pytest
from cassandra.cluster import Session


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_REQUESTS", "false")

KEYSPACE = "test_keyspace"


# ==============================================================================
# Fake Cassandra results
# ==============================================================================


class FakeResult:
    """Minimal ResultSet: iterable rows, ``one()`` and ``was_applied``."""

    def __init__(self, rows: list[Any] | None = None, was_applied: bool = True):
        self._rows = list(rows or [])
        self.was_applied = was_applied

    def one(self) -> Any:
        return self._rows[0] if self._rows else None

    def __iter__(self):
        return iter(self._rows)


def _normalize(query: str) -> str:
    return " ".join(query.split())


class CqlRouter:
    """Answers ``aexecute`` calls by matching a fragment of the prepared query.

    Responses for a fragment are consumed in order and the last one repeats.
    An exception given as a response is raised instead of returned.
    Unmatched statements get an empty, applied result.
    """

    def __init__(self):
        self.routes: list[tuple[str, list[FakeResult | Exception]]] = []
        self.calls: list[tuple[str, Any]] = []

    def on(self, fragment: str, *responses: FakeResult | Exception) -> None:
        self.routes.append((_normalize(fragment), list(responses)))

    def __call__(self, statement: Any, params: Any = None) -> FakeResult:
        query = _normalize(getattr(statement, "query_string", str(statement)))
        self.calls.append((query, params))
        for fragment, responses in self.routes:
            if fragment in query:
                response = responses.pop(0) if len(responses) > 1 else responses[0]
                if isinstance(response, Exception):
                    raise response
                return response
        return FakeResult()

    def executed(self, fragment: str) -> list[Any]:
        """Parameters of every call whose query contains ``fragment``."""
        fragment = _normalize(fragment)
        return [params for query, params in self.calls if fragment in query]


@pytest.fixture
def result() -> type[FakeResult]:
    """The fake result class, for routing canned responses."""
    return FakeResult


@pytest.fixture
def cql() -> CqlRouter:
    return CqlRouter()


@pytest.fixture
def mock_session(cql: CqlRouter) -> Session:
    """Mock Cassandra session whose statements remember their query."""
    session = Mock(spec=Session)
    session.prepare = Mock(side_effect=lambda query: Mock(query_string=query))
    session.aexecute = AsyncMock(side_effect=cql)
    return session


# ==============================================================================
# Row factories
# ==============================================================================


class Rows:
    """Builders for Cassandra rows with sensible defaults."""

    @staticmethod
    def organization(**overrides: Any) -> SimpleNamespace:
        now = datetime.now(UTC)
        leader = overrides.pop("leader_id", uuid4())
        values = {
            "organization_id": uuid4(),
            "name": "Grace Church",
            "slug": "grace-church",
            "type": "church",
            "description": None,
            "parent_id": None,
            "zone_id": None,
            "church_id": None,
            "leader_id": leader,
            "created_by": leader,
            "admins": {leader},
            "assistant_leaders": set(),
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    @staticmethod
    def membership(**overrides: Any) -> SimpleNamespace:
        values = {
            "organization_id": uuid4(),
            "user_id": uuid4(),
            "role": "member",
            "status": "active",
            "joined_at": datetime.now(UTC),
            "added_by": None,
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    @staticmethod
    def batch(**overrides: Any) -> SimpleNamespace:
        now = datetime.now(UTC)
        values = {
            "batch_id": uuid4(),
            "organization_id": uuid4(),
            "batch_number": 1,
            "name": "Batch 1",
            "status": "registration_open",
            "start_date": now,
            "end_date": None,
            "graduation_date": None,
            "principal_id": uuid4(),
            "teacher_ids": set(),
            "created_by": None,
            "created_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    @staticmethod
    def module(
        module_number: int = 1,
        questions: int = 4,
        lessons: int = 2,
        **overrides: Any,
    ) -> SimpleNamespace:
        values = {
            "module_number": module_number,
            "title": f"Module {module_number}",
            "description": None,
            "lessons": json.dumps(
                [
                    {"lesson_number": n, "title": f"Lesson {n}"}
                    for n in range(1, lessons + 1)
                ]
            ),
            "quiz": json.dumps(
                [
                    {
                        "question": f"Question {n}",
                        "options": ["a", "b", "c"],
                        "correct_answer": 1,
                        "explanation": f"Because {n}",
                    }
                    for n in range(1, questions + 1)
                ]
            ),
            "passing_score": 70,
            "assignment": None,
            "is_active": True,
            "updated_at": datetime.now(UTC),
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    @staticmethod
    def enrollment(**overrides: Any) -> SimpleNamespace:
        now = datetime.now(UTC)
        values = {
            "enrollment_id": uuid4(),
            "student_id": uuid4(),
            "student_name": "Ada",
            "organization_id": None,
            "batch_id": None,
            "status": "active",
            "enrolled_at": now,
            "completed_at": None,
            "updated_at": now,
            "current_module": 1,
            "completed_modules": None,
            "completed_lessons": None,
            "total_modules": 3,
            "certificate_number": None,
            "certificate_issued_by": None,
            "certificate_issued_at": None,
            "graduated_at": None,
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    @staticmethod
    def claim(student_id: UUID, enrollment_id: UUID, age: timedelta = timedelta(0)):
        return SimpleNamespace(
            student_id=student_id,
            enrollment_id=enrollment_id,
            claimed_at=datetime.now(UTC) - age,
        )

    @staticmethod
    def attempt(module_number: int, score: int, **overrides: Any) -> SimpleNamespace:
        values = {
            "enrollment_id": uuid4(),
            "attempt_id": uuid4(),
            "module_number": module_number,
            "score": score,
            "passed": score >= 70,
            "correct_count": 0,
            "question_count": 0,
            "attempted_at": datetime.now(UTC),
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    @staticmethod
    def submission(**overrides: Any) -> SimpleNamespace:
        now = datetime.now(UTC)
        values = {
            "submission_id": uuid4(),
            "enrollment_id": uuid4(),
            "module_number": 1,
            "assignment_id": "main",
            "student_id": uuid4(),
            "content": "My reflection",
            "attachments": None,
            "status": "submitted",
            "grade": None,
            "feedback": None,
            "graded_by": None,
            "graded_at": None,
            "resubmission_allowed": False,
            "submitted_at": now,
            "updated_at": now,
        }
        values.update(overrides)
        return SimpleNamespace(**values)


@pytest.fixture
def rows() -> type[Rows]:
    return Rows


# ==============================================================================
# Services wired on the mocked session
# ==============================================================================


@pytest.fixture
def services(mock_session: Session) -> SimpleNamespace:
    """Every domain service built the way the application wires them."""
    from ecclesia.assignments.service import AssignmentService
    from ecclesia.batches.service import BatchService
    from ecclesia.certificates.service import CertificateService
    from ecclesia.curriculum.service import CurriculumService
    from ecclesia.enrollments.progression import ProgressionService
    from ecclesia.enrollments.reports import ReportService
    from ecclesia.enrollments.service import EnrollmentService
    from ecclesia.organizations.authorization import AuthorizationService
    from ecclesia.organizations.service import OrganizationService

    directory = OrganizationService(session=mock_session, keyspace=KEYSPACE)
    authorization = AuthorizationService(directory)
    curriculum = CurriculumService(session=mock_session, keyspace=KEYSPACE)
    batches = BatchService(
        session=mock_session, keyspace=KEYSPACE, authorization=authorization
    )
    enrollments = EnrollmentService(
        session=mock_session,
        keyspace=KEYSPACE,
        curriculum=curriculum,
        batches=batches,
        authorization=authorization,
    )
    renderer = Mock()
    renderer.media_type = "application/pdf"
    renderer.render = Mock(return_value=b"%PDF-1.4 test")

    return SimpleNamespace(
        directory=directory,
        authorization=authorization,
        curriculum=curriculum,
        batches=batches,
        enrollments=enrollments,
        progression=ProgressionService(
            session=mock_session,
            keyspace=KEYSPACE,
            enrollments=enrollments,
            curriculum=curriculum,
        ),
        assignments=AssignmentService(
            session=mock_session,
            keyspace=KEYSPACE,
            enrollments=enrollments,
            curriculum=curriculum,
        ),
        renderer=renderer,
        certificates=CertificateService(
            session=mock_session,
            keyspace=KEYSPACE,
            enrollments=enrollments,
            directory=directory,
            renderer=renderer,
            prefix="FS",
        ),
        reports=ReportService(enrollments=enrollments, curriculum=curriculum),
    )


# ==============================================================================
# HTTP
# ==============================================================================


@pytest.fixture
def app():
    """Application without the lifespan (no database connection)."""
    from ecclesia.main import create_app

    return create_app()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)


@pytest.fixture
def auth_headers():
    """Build a bearer header for a caller id."""
    from ecclesia.auth.security import create_access_token

    def _headers(user_id: UUID, **claims: Any) -> dict[str, str]:
        token = create_access_token({"sub": str(user_id), **claims})
        return {"Authorization": f"Bearer {token}"}

    return _headers

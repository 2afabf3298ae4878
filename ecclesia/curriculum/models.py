"""Database models for the Foundation School curriculum.

Cassandra table definitions for:
- Modules: one row per module number; lessons, quiz and assignment stored
  as JSON documents since they are always read together with the module
"""

import json
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

from ecclesia.utils.dates import ensure_utc_aware


DEFAULT_PASSING_SCORE = 70


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

FS_MODULES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.fs_modules (
    module_number INT PRIMARY KEY,
    title TEXT,
    description TEXT,
    lessons TEXT,
    quiz TEXT,
    passing_score INT,
    assignment TEXT,
    is_active BOOLEAN,
    updated_at TIMESTAMP
)
"""

CURRICULUM_TABLES_CQL = [
    FS_MODULES_TABLE_CQL,
]


# ==============================================================================
# Embedded Documents
# ==============================================================================


class Lesson(BaseModel):
    lesson_number: int = Field(..., ge=1)
    title: str
    content: str = ""
    duration_minutes: int | None = Field(default=None, ge=0)


class QuizQuestion(BaseModel):
    question: str
    options: list[str] = Field(..., min_length=2)
    correct_answer: int = Field(..., ge=0, description="Index into options")
    explanation: str | None = None


class AssignmentDescriptor(BaseModel):
    assignment_id: str = Field(default="main", min_length=1, max_length=64)
    title: str
    description: str = ""
    type: str = Field(default="reflection", description="reflection, essay, practical")
    due_in_days: int | None = Field(default=None, ge=0)


# ==============================================================================
# Entity Classes
# ==============================================================================


class FoundationModule:
    """Curriculum module.

    Attributes:
        module_number: Unique module number (1-based ordering)
        title: Module title
        description: Short description
        lessons: Ordered lessons
        quiz: Quiz questions (may be empty)
        passing_score: Minimum percentage to pass the quiz
        assignment: Optional assignment descriptor
        is_active: Only active modules count toward total_modules
    """

    def __init__(
        self,
        module_number: int,
        title: str,
        description: str | None = None,
        lessons: list[Lesson] | None = None,
        quiz: list[QuizQuestion] | None = None,
        passing_score: int | None = None,
        assignment: AssignmentDescriptor | None = None,
        is_active: bool = True,
        updated_at: datetime | None = None,
    ):
        self.module_number = module_number
        self.title = title
        self.description = description
        self.lessons = sorted(lessons or [], key=lambda lesson: lesson.lesson_number)
        self.quiz = quiz or []
        self.passing_score = (
            passing_score if passing_score is not None else DEFAULT_PASSING_SCORE
        )
        self.assignment = assignment
        self.is_active = is_active
        self.updated_at = ensure_utc_aware(updated_at) or datetime.now(UTC)

    @property
    def has_quiz(self) -> bool:
        return bool(self.quiz)

    def has_lesson(self, lesson_number: int) -> bool:
        return any(lesson.lesson_number == lesson_number for lesson in self.lessons)

    @classmethod
    def from_row(cls, row: Any) -> "FoundationModule":
        """Create FoundationModule instance from Cassandra row."""
        assignment = json.loads(row.assignment) if row.assignment else None
        return cls(
            module_number=row.module_number,
            title=row.title,
            description=row.description,
            lessons=[Lesson(**item) for item in json.loads(row.lessons or "[]")],
            quiz=[QuizQuestion(**item) for item in json.loads(row.quiz or "[]")],
            passing_score=row.passing_score,
            assignment=AssignmentDescriptor(**assignment) if assignment else None,
            is_active=row.is_active if row.is_active is not None else True,
            updated_at=row.updated_at,
        )

    def to_row_values(self) -> list[Any]:
        """Column values in ``fs_modules`` insert order."""
        return [
            self.module_number,
            self.title,
            self.description,
            json.dumps([lesson.model_dump() for lesson in self.lessons]),
            json.dumps([question.model_dump() for question in self.quiz]),
            self.passing_score,
            json.dumps(self.assignment.model_dump()) if self.assignment else None,
            self.is_active,
            self.updated_at,
        ]

    def __repr__(self) -> str:
        return f"<FoundationModule {self.module_number} {self.title!r}>"

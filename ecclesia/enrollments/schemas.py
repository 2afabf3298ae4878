"""Pydantic schemas for Foundation School enrollments and progression."""

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, StrictInt

from ecclesia.assignments.schemas import AssignmentSummary

from .grading import QuizGrade
from .models import Enrollment, EnrollmentStatus, QuizAttempt
from .reports import FoundationStats, LeaderboardEntry


# ==============================================================================
# Requests
# ==============================================================================


class EnrollRequest(BaseModel):
    organization_id: UUID | None = None
    batch_id: UUID | None = None


class CompleteLessonRequest(BaseModel):
    module_number: int = Field(..., ge=1)
    lesson_number: int = Field(..., ge=1)


class SubmitQuizRequest(BaseModel):
    """Selected option index per question; null for unanswered."""

    module_number: int = Field(..., ge=1)
    answers: list[StrictInt | None] = Field(
        default_factory=list, max_length=200
    )


# ==============================================================================
# Responses
# ==============================================================================


class EnrollmentResponse(BaseModel):
    enrollment_id: UUID
    student_id: UUID
    student_name: str | None = None
    organization_id: UUID | None = None
    batch_id: UUID | None = None
    status: EnrollmentStatus
    enrolled_at: datetime
    completed_at: datetime | None = None
    updated_at: datetime
    current_module: int
    completed_modules: list[int]
    completed_lessons: list[str]
    total_modules: int
    progress_percent: Decimal
    certificate_number: str | None = None
    certificate_issued_at: datetime | None = None
    graduated_at: datetime | None = None

    @classmethod
    def from_entity(cls, entity: Enrollment) -> "EnrollmentResponse":
        return cls(
            enrollment_id=entity.enrollment_id,
            student_id=entity.student_id,
            student_name=entity.student_name,
            organization_id=entity.organization_id,
            batch_id=entity.batch_id,
            status=entity.status,
            enrolled_at=entity.enrolled_at,
            completed_at=entity.completed_at,
            updated_at=entity.updated_at,
            current_module=entity.current_module,
            completed_modules=sorted(entity.completed_modules),
            completed_lessons=sorted(entity.completed_lessons),
            total_modules=entity.total_modules,
            progress_percent=entity.progress_percent,
            certificate_number=entity.certificate_number,
            certificate_issued_at=entity.certificate_issued_at,
            graduated_at=entity.graduated_at,
        )


class EnrollResponse(BaseModel):
    enrollment: EnrollmentResponse
    already_enrolled: bool


class ActiveEnrollmentResponse(BaseModel):
    enrollment: EnrollmentResponse | None = None


class QuizAttemptResponse(BaseModel):
    attempt_id: UUID
    module_number: int
    score: int
    passed: bool
    correct_count: int
    question_count: int
    attempted_at: datetime

    @classmethod
    def from_entity(cls, entity: QuizAttempt) -> "QuizAttemptResponse":
        return cls(
            attempt_id=entity.attempt_id,
            module_number=entity.module_number,
            score=entity.score,
            passed=entity.passed,
            correct_count=entity.correct_count,
            question_count=entity.question_count,
            attempted_at=entity.attempted_at,
        )


class ProgressResponse(BaseModel):
    enrollment: EnrollmentResponse
    quiz_attempts: list[QuizAttemptResponse]
    average_quiz_score: int = Field(..., description="Mean over every attempt")
    best_quiz_average: int = Field(..., description="Mean of best attempt per module")
    best_scores: dict[int, int]
    assignments: list[AssignmentSummary]


class QuestionResultResponse(BaseModel):
    index: int
    question: str
    selected: Any = None
    correct_answer: int
    is_correct: bool
    explanation: str | None = None


class QuizResultResponse(BaseModel):
    module_number: int
    score: int
    passed: bool
    passing_score: int
    correct_count: int
    question_count: int
    results: list[QuestionResultResponse]
    module_completed: bool
    course_completed: bool
    enrollment: EnrollmentResponse

    @classmethod
    def build(
        cls,
        module_number: int,
        grade: QuizGrade,
        enrollment: Enrollment,
        module_completed: bool,
        course_completed: bool,
    ) -> "QuizResultResponse":
        return cls(
            module_number=module_number,
            score=grade.score,
            passed=grade.passed,
            passing_score=grade.passing_score,
            correct_count=grade.correct_count,
            question_count=grade.question_count,
            results=[
                QuestionResultResponse(
                    index=r.index,
                    question=r.question,
                    selected=r.selected,
                    correct_answer=r.correct_answer,
                    is_correct=r.is_correct,
                    explanation=r.explanation,
                )
                for r in grade.results
            ],
            module_completed=module_completed,
            course_completed=course_completed,
            enrollment=EnrollmentResponse.from_entity(enrollment),
        )


class EnrollmentListResponse(BaseModel):
    enrollments: list[EnrollmentResponse]
    total: int
    page: int
    page_size: int


class StatsResponse(BaseModel):
    total_enrollments: int
    active_enrollments: int
    completed_enrollments: int
    graduated_enrollments: int
    average_quiz_score: int
    total_modules: int

    @classmethod
    def from_stats(cls, stats: FoundationStats) -> "StatsResponse":
        return cls(**asdict(stats))


class LeaderboardEntryResponse(BaseModel):
    rank: int
    student_id: UUID
    student_name: str | None = None
    score: int
    completed_modules: int
    quizzes_taken: int

    @classmethod
    def from_entry(cls, entry: LeaderboardEntry) -> "LeaderboardEntryResponse":
        return cls(
            rank=entry.rank,
            student_id=entry.enrollment.student_id,
            student_name=entry.enrollment.student_name,
            score=entry.score,
            completed_modules=len(entry.enrollment.counted_modules),
            quizzes_taken=entry.quizzes_taken,
        )


class LeaderboardResponse(BaseModel):
    entries: list[LeaderboardEntryResponse]

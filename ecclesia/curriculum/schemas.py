"""Pydantic schemas for the curriculum read side.

Quiz questions are exposed without their correct answer and explanation.
"""

from pydantic import BaseModel

from .models import AssignmentDescriptor, FoundationModule, Lesson


class PublicQuizQuestion(BaseModel):
    question: str
    options: list[str]


class ModuleSummaryResponse(BaseModel):
    module_number: int
    title: str
    description: str | None = None
    lesson_count: int
    question_count: int
    passing_score: int
    has_assignment: bool

    @classmethod
    def from_entity(cls, entity: FoundationModule) -> "ModuleSummaryResponse":
        return cls(
            module_number=entity.module_number,
            title=entity.title,
            description=entity.description,
            lesson_count=len(entity.lessons),
            question_count=len(entity.quiz),
            passing_score=entity.passing_score,
            has_assignment=entity.assignment is not None,
        )


class ModuleDetailResponse(BaseModel):
    module_number: int
    title: str
    description: str | None = None
    lessons: list[Lesson]
    quiz: list[PublicQuizQuestion]
    passing_score: int
    assignment: AssignmentDescriptor | None = None

    @classmethod
    def from_entity(cls, entity: FoundationModule) -> "ModuleDetailResponse":
        return cls(
            module_number=entity.module_number,
            title=entity.title,
            description=entity.description,
            lessons=entity.lessons,
            quiz=[
                PublicQuizQuestion(question=q.question, options=q.options)
                for q in entity.quiz
            ],
            passing_score=entity.passing_score,
            assignment=entity.assignment,
        )


class ModuleListResponse(BaseModel):
    modules: list[ModuleSummaryResponse]
    total_modules: int

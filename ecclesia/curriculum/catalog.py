"""JSON module catalog loading for the seed script.

The catalog is a JSON array of modules::

    [{"module_number": 1, "title": "...", "lessons": [...], "quiz": [...]}]

Modules without ``passing_score`` get the configured default.
"""

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

from .models import AssignmentDescriptor, FoundationModule, Lesson, QuizQuestion


class CatalogError(ValueError):
    """The catalog file is malformed."""


class ModuleSeed(BaseModel):
    module_number: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    description: str | None = None
    lessons: list[Lesson] = Field(default_factory=list)
    quiz: list[QuizQuestion] = Field(default_factory=list)
    passing_score: int | None = Field(default=None, ge=0, le=100)
    assignment: AssignmentDescriptor | None = None
    is_active: bool = True

    @model_validator(mode="after")
    def check_answers_in_range(self) -> "ModuleSeed":
        for index, question in enumerate(self.quiz):
            if question.correct_answer >= len(question.options):
                msg = (
                    f"Module {self.module_number} question {index}: "
                    "correct_answer is not an option index"
                )
                raise ValueError(msg)
        return self

    def to_module(self, default_passing_score: int) -> FoundationModule:
        return FoundationModule(
            module_number=self.module_number,
            title=self.title,
            description=self.description,
            lessons=self.lessons,
            quiz=self.quiz,
            passing_score=(
                self.passing_score
                if self.passing_score is not None
                else default_passing_score
            ),
            assignment=self.assignment,
            is_active=self.is_active,
            updated_at=datetime.now(UTC),
        )


def parse_catalog(data: Any, default_passing_score: int) -> list[FoundationModule]:
    """Validate decoded catalog data and build modules ordered by number.

    Raises:
        CatalogError: Not a list, invalid module, or duplicate module number
    """
    if not isinstance(data, list):
        msg = "Catalog must be a JSON array of modules"
        raise CatalogError(msg)

    try:
        seeds = [ModuleSeed.model_validate(item) for item in data]
    except ValueError as e:
        raise CatalogError(str(e)) from e

    numbers = [seed.module_number for seed in seeds]
    duplicates = sorted({n for n in numbers if numbers.count(n) > 1})
    if duplicates:
        msg = f"Duplicate module numbers: {duplicates}"
        raise CatalogError(msg)

    return sorted(
        (seed.to_module(default_passing_score) for seed in seeds),
        key=lambda m: m.module_number,
    )


def load_catalog(path: Path, default_passing_score: int) -> list[FoundationModule]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        msg = f"{path}: invalid JSON ({e})"
        raise CatalogError(msg) from e
    return parse_catalog(data, default_passing_score)

"""Quiz grading and score aggregation.

Pure functions over curriculum and attempt data:
- ``grade_quiz``: strict index comparison, half-up rounded percentage
- ``best_scores_by_module`` / ``ranking_score``: leaderboard aggregation
- ``grade_band``: certificate grade label
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ecclesia.curriculum.models import QuizQuestion

from .models import QuizAttempt


DISTINCTION_THRESHOLD = 90
MERIT_THRESHOLD = 75


@dataclass(frozen=True)
class QuestionResult:
    index: int
    question: str
    selected: Any
    correct_answer: int
    is_correct: bool
    explanation: str | None = None


@dataclass(frozen=True)
class QuizGrade:
    score: int
    passed: bool
    passing_score: int
    correct_count: int
    question_count: int
    results: tuple[QuestionResult, ...]


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def is_correct_answer(selected: Any, correct_answer: int) -> bool:
    """Strict index equality: only an int (not bool) equal to the answer."""
    return (
        isinstance(selected, int)
        and not isinstance(selected, bool)
        and selected == correct_answer
    )


def grade_quiz(
    questions: Sequence[QuizQuestion],
    answers: Sequence[Any],
    passing_score: int,
) -> QuizGrade:
    """Grade answers against a module quiz.

    Missing answers count as wrong. ``score`` is
    ``round(100 * correct / questions)`` with halves rounded up.

    Raises:
        ValueError: If the quiz has no questions
    """
    if not questions:
        msg = "Cannot grade a quiz without questions"
        raise ValueError(msg)

    results = []
    for index, question in enumerate(questions):
        selected = answers[index] if index < len(answers) else None
        results.append(
            QuestionResult(
                index=index,
                question=question.question,
                selected=selected,
                correct_answer=question.correct_answer,
                is_correct=is_correct_answer(selected, question.correct_answer),
                explanation=question.explanation,
            )
        )

    correct_count = sum(1 for r in results if r.is_correct)
    score = round_half_up(Decimal(100 * correct_count) / Decimal(len(questions)))

    return QuizGrade(
        score=score,
        passed=score >= passing_score,
        passing_score=passing_score,
        correct_count=correct_count,
        question_count=len(questions),
        results=tuple(results),
    )


# ==============================================================================
# Aggregation
# ==============================================================================


def average_score(attempts: Iterable[QuizAttempt]) -> int:
    """Mean of every attempt, rounded half up (0 without attempts)."""
    scores = [a.score for a in attempts]
    if not scores:
        return 0
    return round_half_up(Decimal(sum(scores)) / Decimal(len(scores)))


def best_scores_by_module(attempts: Iterable[QuizAttempt]) -> dict[int, int]:
    best: dict[int, int] = {}
    for attempt in attempts:
        current = best.get(attempt.module_number)
        if current is None or attempt.score > current:
            best[attempt.module_number] = attempt.score
    return best


def ranking_score(attempts: Iterable[QuizAttempt]) -> int:
    """Best attempt per module, averaged across attempted modules."""
    best = best_scores_by_module(attempts)
    if not best:
        return 0
    return round_half_up(Decimal(sum(best.values())) / Decimal(len(best)))


def grade_band(score: int) -> str:
    if score >= DISTINCTION_THRESHOLD:
        return "Distinction"
    if score >= MERIT_THRESHOLD:
        return "Merit"
    return "Pass"

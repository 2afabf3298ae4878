"""Foundation School statistics and leaderboard.

Both reports scan the enrollments in scope and read every enrollment's
attempts; the per-enrollment reads run concurrently.
"""

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING
from uuid import UUID

from .grading import average_score, ranking_score
from .models import CERTIFIABLE_STATUSES, Enrollment, QuizAttempt


if TYPE_CHECKING:
    from ecclesia.curriculum.service import CurriculumService

    from .service import EnrollmentService


@dataclass
class FoundationStats:
    total_enrollments: int
    active_enrollments: int
    completed_enrollments: int
    graduated_enrollments: int
    average_quiz_score: int
    total_modules: int


@dataclass
class LeaderboardEntry:
    rank: int
    enrollment: Enrollment
    score: int
    quizzes_taken: int


class ReportService:
    """Aggregates over enrollments and quiz attempts."""

    def __init__(
        self,
        enrollments: "EnrollmentService",
        curriculum: "CurriculumService",
    ):
        self.enrollments = enrollments
        self.curriculum = curriculum

    async def _attempts_for(
        self, enrollments: list[Enrollment]
    ) -> list[list[QuizAttempt]]:
        """Attempts of each enrollment, in the same order."""
        return await asyncio.gather(
            *(self.enrollments.list_attempts(e.enrollment_id) for e in enrollments)
        )

    async def get_stats(self, organization_id: UUID | None = None) -> FoundationStats:
        """Counts by status plus the mean score over every quiz attempt."""
        enrollments = await self.enrollments.scan_enrollments(organization_id)
        attempts = [
            attempt
            for per_enrollment in await self._attempts_for(enrollments)
            for attempt in per_enrollment
        ]

        return FoundationStats(
            total_enrollments=len(enrollments),
            active_enrollments=sum(1 for e in enrollments if e.is_active),
            completed_enrollments=sum(
                1 for e in enrollments if e.status in CERTIFIABLE_STATUSES
            ),
            graduated_enrollments=sum(1 for e in enrollments if e.graduated_at),
            average_quiz_score=average_score(attempts),
            total_modules=await self.curriculum.count_active_modules(),
        )

    async def get_leaderboard(
        self, organization_id: UUID | None = None, limit: int = 10
    ) -> list[LeaderboardEntry]:
        """Students ranked by their best-attempt average.

        Ties break on completed modules, then on enrollment date. Students
        without attempts are left out.
        """
        enrollments = await self.enrollments.scan_enrollments(organization_id)
        scored = []
        for enrollment, attempts in zip(
            enrollments, await self._attempts_for(enrollments), strict=True
        ):
            if not attempts:
                continue
            scored.append((enrollment, ranking_score(attempts), len(attempts)))

        scored.sort(
            key=lambda item: (
                -item[1],
                -len(item[0].counted_modules),
                item[0].enrolled_at,
            )
        )
        return [
            LeaderboardEntry(rank=i, enrollment=e, score=score, quizzes_taken=taken)
            for i, (e, score, taken) in enumerate(scored[:limit], start=1)
        ]

"""Foundation School enrollment, progression and report endpoints."""

from uuid import UUID

from fastapi import APIRouter, Query, Response, status

from ecclesia.assignments.dependencies import AssignmentServiceDep
from ecclesia.assignments.schemas import AssignmentSummary
from ecclesia.auth.dependencies import CurrentUser
from ecclesia.config.settings import get_settings
from ecclesia.core.errors import DomainError, handle_domain_error

from .dependencies import EnrollmentServiceDep, ProgressionServiceDep, ReportServiceDep
from .grading import average_score, best_scores_by_module, ranking_score
from .models import EnrollmentStatus
from .schemas import (
    ActiveEnrollmentResponse,
    CompleteLessonRequest,
    EnrollmentListResponse,
    EnrollmentResponse,
    EnrollRequest,
    EnrollResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    ProgressResponse,
    QuizAttemptResponse,
    QuizResultResponse,
    StatsResponse,
    SubmitQuizRequest,
)


router = APIRouter(prefix="/v1/foundation", tags=["foundation-enrollments"])


# ==============================================================================
# Student
# ==============================================================================


@router.post("/enroll", response_model=EnrollResponse, summary="Enroll")
async def enroll(
    data: EnrollRequest,
    response: Response,
    service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollResponse:
    """Enroll the caller in Foundation School.

    Returns 201 for a new enrollment and 200 with ``already_enrolled`` when
    the caller already has an active one.
    """
    try:
        enrollment, already_enrolled = await service.enroll(
            student_id=user.id,
            student_name=user.display_name,
            organization_id=data.organization_id,
            batch_id=data.batch_id,
        )
    except DomainError as e:
        raise handle_domain_error(e) from e

    if not already_enrolled:
        response.status_code = status.HTTP_201_CREATED
    return EnrollResponse(
        enrollment=EnrollmentResponse.from_entity(enrollment),
        already_enrolled=already_enrolled,
    )


@router.get(
    "/enrollment",
    response_model=ActiveEnrollmentResponse,
    summary="Get active enrollment",
)
async def get_enrollment(
    service: EnrollmentServiceDep,
    user: CurrentUser,
) -> ActiveEnrollmentResponse:
    enrollment = await service.get_active_enrollment(user.id)
    return ActiveEnrollmentResponse(
        enrollment=EnrollmentResponse.from_entity(enrollment) if enrollment else None
    )


@router.get("/progress", response_model=ProgressResponse, summary="Get progress")
async def get_progress(
    service: EnrollmentServiceDep,
    assignments: AssignmentServiceDep,
    user: CurrentUser,
) -> ProgressResponse:
    """Latest enrollment with quiz history and assignment states."""
    try:
        enrollment = await service.get_progress(user.id)
    except DomainError as e:
        raise handle_domain_error(e) from e

    attempts = await service.list_attempts(enrollment.enrollment_id)
    submissions = await assignments.list_for_enrollment(enrollment.enrollment_id)

    return ProgressResponse(
        enrollment=EnrollmentResponse.from_entity(enrollment),
        quiz_attempts=[QuizAttemptResponse.from_entity(a) for a in attempts],
        average_quiz_score=average_score(attempts),
        best_quiz_average=ranking_score(attempts),
        best_scores=best_scores_by_module(attempts),
        assignments=[AssignmentSummary.from_entity(s) for s in submissions],
    )


@router.post("/withdraw", response_model=EnrollmentResponse, summary="Withdraw")
async def withdraw(
    service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    try:
        return EnrollmentResponse.from_entity(await service.withdraw(user.id))
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.post(
    "/complete-lesson",
    response_model=EnrollmentResponse,
    summary="Complete lesson",
)
async def complete_lesson(
    data: CompleteLessonRequest,
    service: ProgressionServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    try:
        enrollment = await service.complete_lesson(
            user.id, data.module_number, data.lesson_number
        )
        return EnrollmentResponse.from_entity(enrollment)
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.post("/submit-quiz", response_model=QuizResultResponse, summary="Submit quiz")
async def submit_quiz(
    data: SubmitQuizRequest,
    service: ProgressionServiceDep,
    user: CurrentUser,
) -> QuizResultResponse:
    """Grade a quiz attempt. The result includes correct answers."""
    try:
        outcome = await service.submit_quiz(user.id, data.module_number, data.answers)
    except DomainError as e:
        raise handle_domain_error(e) from e

    return QuizResultResponse.build(
        module_number=data.module_number,
        grade=outcome.grade,
        enrollment=outcome.enrollment,
        module_completed=outcome.module_completed,
        course_completed=outcome.course_completed,
    )


# ==============================================================================
# Staff
# ==============================================================================


@router.get(
    "/admin/enrollments",
    response_model=EnrollmentListResponse,
    summary="List enrollments",
)
async def list_enrollments(
    service: EnrollmentServiceDep,
    user: CurrentUser,
    organization_id: UUID = Query(...),
    batch_id: UUID | None = Query(default=None),
    enrollment_status: EnrollmentStatus | None = Query(default=None, alias="status"),
    page: int = Query(default=1, ge=1),
    page_size: int | None = Query(default=None, ge=1, le=200),
) -> EnrollmentListResponse:
    size = page_size or get_settings().foundation_admin_page_size
    try:
        enrollments, total = await service.list_enrollments(
            staff_id=user.id,
            organization_id=organization_id,
            batch_id=batch_id,
            status=enrollment_status,
            page=page,
            page_size=size,
        )
    except DomainError as e:
        raise handle_domain_error(e) from e

    return EnrollmentListResponse(
        enrollments=[EnrollmentResponse.from_entity(e) for e in enrollments],
        total=total,
        page=page,
        page_size=size,
    )


@router.post(
    "/admin/enrollments/{enrollment_id}/drop",
    response_model=EnrollmentResponse,
    summary="Drop enrollment",
)
async def drop_enrollment(
    enrollment_id: UUID,
    service: EnrollmentServiceDep,
    user: CurrentUser,
) -> EnrollmentResponse:
    try:
        return EnrollmentResponse.from_entity(await service.drop(enrollment_id, user.id))
    except DomainError as e:
        raise handle_domain_error(e) from e


# ==============================================================================
# Reports
# ==============================================================================


@router.get("/stats", response_model=StatsResponse, summary="Foundation School stats")
async def get_stats(
    service: ReportServiceDep,
    user: CurrentUser,
    organization_id: UUID | None = Query(default=None),
) -> StatsResponse:
    return StatsResponse.from_stats(await service.get_stats(organization_id))


@router.get("/leaderboard", response_model=LeaderboardResponse, summary="Leaderboard")
async def get_leaderboard(
    service: ReportServiceDep,
    user: CurrentUser,
    organization_id: UUID | None = Query(default=None),
    limit: int | None = Query(default=None, ge=1, le=500),
) -> LeaderboardResponse:
    """Students ranked by the average of their best attempt per module."""
    entries = await service.get_leaderboard(
        organization_id=organization_id,
        limit=limit or get_settings().foundation_leaderboard_limit,
    )
    return LeaderboardResponse(
        entries=[LeaderboardEntryResponse.from_entry(e) for e in entries]
    )

"""Foundation School assignment endpoints."""

from uuid import UUID

from fastapi import APIRouter, Response, status

from ecclesia.auth.dependencies import CurrentUser
from ecclesia.core.errors import DomainError, handle_domain_error

from .dependencies import AssignmentServiceDep
from .schemas import (
    GradeAssignmentRequest,
    SubmissionListResponse,
    SubmissionResponse,
    SubmitAssignmentRequest,
    SubmitAssignmentResponse,
)


router = APIRouter(prefix="/v1/foundation", tags=["foundation-assignments"])


@router.post(
    "/submit-assignment",
    response_model=SubmitAssignmentResponse,
    summary="Submit assignment",
)
async def submit_assignment(
    data: SubmitAssignmentRequest,
    response: Response,
    service: AssignmentServiceDep,
    user: CurrentUser,
) -> SubmitAssignmentResponse:
    """Submit or resubmit a module assignment.

    Returns 201 for a new submission and 200 when an existing one is updated.
    """
    try:
        submission, created = await service.submit(
            student_id=user.id,
            module_number=data.module_number,
            assignment_id=data.assignment_id,
            content=data.content,
            attachments=data.attachments,
        )
    except DomainError as e:
        raise handle_domain_error(e) from e

    if created:
        response.status_code = status.HTTP_201_CREATED
    return SubmitAssignmentResponse(
        submission=SubmissionResponse.from_entity(submission),
        created=created,
    )


@router.put(
    "/admin/grade-assignment/{submission_id}",
    response_model=SubmissionResponse,
    summary="Grade assignment",
)
async def grade_assignment(
    submission_id: UUID,
    data: GradeAssignmentRequest,
    service: AssignmentServiceDep,
    user: CurrentUser,
) -> SubmissionResponse:
    try:
        submission = await service.grade(
            submission_id=submission_id,
            grader_id=user.id,
            grade=data.grade,
            feedback=data.feedback,
            resubmission_allowed=data.resubmission_allowed,
        )
        return SubmissionResponse.from_entity(submission)
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.get(
    "/admin/enrollments/{enrollment_id}/submissions",
    response_model=SubmissionListResponse,
    summary="List enrollment submissions",
)
async def list_submissions(
    enrollment_id: UUID,
    service: AssignmentServiceDep,
    user: CurrentUser,
) -> SubmissionListResponse:
    try:
        submissions = await service.list_submissions(user.id, enrollment_id)
    except DomainError as e:
        raise handle_domain_error(e) from e
    return SubmissionListResponse(
        submissions=[SubmissionResponse.from_entity(s) for s in submissions],
        total=len(submissions),
    )

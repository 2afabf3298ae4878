"""Organization directory API endpoints.

Provides routes for:
- Organization creation, lookup, update and soft deletion
- Children listing
- Membership management and role lookup
"""

from uuid import UUID

from fastapi import APIRouter, Query, status

from ecclesia.auth.dependencies import CurrentUser
from ecclesia.core.errors import DomainError, handle_domain_error

from .dependencies import OrganizationServiceDep
from .roles import MemberRole, MemberStatus, OrganizationType, can_manage
from .schemas import (
    AddMemberRequest,
    CreateOrganizationRequest,
    MemberListResponse,
    MemberResponse,
    OrganizationListResponse,
    OrganizationResponse,
    PublicMemberResponse,
    RoleResponse,
    UpdateMemberRequest,
    UpdateOrganizationRequest,
    UserIdRequest,
)


router = APIRouter(prefix="/v1/organizations", tags=["organizations"])


# ==============================================================================
# Organization Endpoints
# ==============================================================================


@router.post(
    "",
    response_model=OrganizationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create organization",
)
async def create_organization(
    data: CreateOrganizationRequest,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> OrganizationResponse:
    """Create an organization; the caller becomes its leader."""
    try:
        organization = await service.create_organization(
            creator_id=user.id,
            name=data.name,
            org_type=data.type,
            parent_id=data.parent_id,
            description=data.description,
        )
        return OrganizationResponse.from_entity(
            organization, member_count=1, my_role="owner"
        )
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.get(
    "/my",
    response_model=OrganizationListResponse,
    summary="List my organizations",
)
async def list_my_organizations(
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> OrganizationListResponse:
    memberships = await service.list_user_organizations(user.id)
    organizations = [
        OrganizationResponse.from_entity(org, my_role=role)
        for org, role in memberships
    ]
    return OrganizationListResponse(
        organizations=organizations, total=len(organizations)
    )


@router.get(
    "/by-slug/{org_type}/{slug}",
    response_model=OrganizationResponse,
    summary="Get organization by slug",
)
async def get_organization_by_slug(
    org_type: OrganizationType,
    slug: str,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> OrganizationResponse:
    try:
        organization = await service.get_by_slug(slug, org_type)
        return OrganizationResponse.from_entity(
            organization,
            member_count=await service.member_count(organization.organization_id),
            my_role=await service.role_of(user.id, organization),
        )
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.get(
    "/{organization_id}",
    response_model=OrganizationResponse,
    summary="Get organization",
)
async def get_organization(
    organization_id: UUID,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> OrganizationResponse:
    try:
        organization = await service.get_organization(organization_id)
        return OrganizationResponse.from_entity(
            organization,
            member_count=await service.member_count(organization_id),
            my_role=await service.role_of(user.id, organization),
        )
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.put(
    "/{organization_id}",
    response_model=OrganizationResponse,
    summary="Update organization",
)
async def update_organization(
    organization_id: UUID,
    data: UpdateOrganizationRequest,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> OrganizationResponse:
    """Update name/description. Requires owner, admin or assistant."""
    try:
        organization = await service.update_organization(
            organization_id,
            actor_id=user.id,
            name=data.name,
            description=data.description,
        )
        return OrganizationResponse.from_entity(organization)
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.delete(
    "/{organization_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Deactivate organization",
)
async def deactivate_organization(
    organization_id: UUID,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> None:
    """Soft-delete an organization. Owner only."""
    try:
        await service.deactivate_organization(organization_id, actor_id=user.id)
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.get(
    "/{organization_id}/children",
    response_model=OrganizationListResponse,
    summary="List child organizations",
)
async def list_children(
    organization_id: UUID,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> OrganizationListResponse:
    try:
        children = await service.list_children(organization_id)
    except DomainError as e:
        raise handle_domain_error(e) from e
    return OrganizationListResponse(
        organizations=[OrganizationResponse.from_entity(c) for c in children],
        total=len(children),
    )


@router.get(
    "/{organization_id}/role",
    response_model=RoleResponse,
    summary="Get my role",
)
async def get_my_role(
    organization_id: UUID,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> RoleResponse:
    role = await service.role_of(user.id, organization_id)
    return RoleResponse(
        organization_id=organization_id,
        user_id=user.id,
        role=role,
        can_manage=can_manage(role),
    )


@router.post(
    "/{organization_id}/admins",
    response_model=OrganizationResponse,
    summary="Add organization admin",
)
async def add_admin(
    organization_id: UUID,
    data: UserIdRequest,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> OrganizationResponse:
    try:
        organization = await service.add_admin(organization_id, user.id, data.user_id)
        return OrganizationResponse.from_entity(organization)
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.post(
    "/{organization_id}/assistant-leaders",
    response_model=OrganizationResponse,
    summary="Add assistant leader",
)
async def add_assistant_leader(
    organization_id: UUID,
    data: UserIdRequest,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> OrganizationResponse:
    try:
        organization = await service.add_assistant_leader(
            organization_id, user.id, data.user_id
        )
        return OrganizationResponse.from_entity(organization)
    except DomainError as e:
        raise handle_domain_error(e) from e


# ==============================================================================
# Member Endpoints
# ==============================================================================


@router.get(
    "/{organization_id}/members",
    response_model=MemberListResponse,
    summary="List members",
)
async def list_members(
    organization_id: UUID,
    service: OrganizationServiceDep,
    user: CurrentUser,
    role: MemberRole | None = Query(default=None),
    member_status: MemberStatus | None = Query(default=None, alias="status"),
) -> MemberListResponse:
    """List members. Non-managers only see user id and role."""
    try:
        members = await service.list_members(
            organization_id, role=role, status=member_status
        )
    except DomainError as e:
        raise handle_domain_error(e) from e

    if can_manage(await service.role_of(user.id, organization_id)):
        items = [MemberResponse.from_entity(m) for m in members]
    else:
        items = [PublicMemberResponse.from_entity(m) for m in members]
    return MemberListResponse(members=items, total=len(items))


@router.post(
    "/{organization_id}/members",
    response_model=MemberResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add member",
)
async def add_member(
    organization_id: UUID,
    data: AddMemberRequest,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> MemberResponse:
    try:
        membership = await service.add_member(
            organization_id, user.id, data.user_id, data.role
        )
        return MemberResponse.from_entity(membership)
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.put(
    "/{organization_id}/members/{member_id}",
    response_model=MemberResponse,
    summary="Update member",
)
async def update_member(
    organization_id: UUID,
    member_id: UUID,
    data: UpdateMemberRequest,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> MemberResponse:
    try:
        membership = await service.update_member(
            organization_id, user.id, member_id, role=data.role, status=data.status
        )
        return MemberResponse.from_entity(membership)
    except DomainError as e:
        raise handle_domain_error(e) from e


@router.delete(
    "/{organization_id}/members/{member_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove member",
)
async def remove_member(
    organization_id: UUID,
    member_id: UUID,
    service: OrganizationServiceDep,
    user: CurrentUser,
) -> None:
    """Remove a member. Owner or admin only; the leader cannot be removed."""
    try:
        await service.remove_member(organization_id, user.id, member_id)
    except DomainError as e:
        raise handle_domain_error(e) from e

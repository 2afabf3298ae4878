"""Pydantic schemas for the organization directory."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .models import Membership, Organization
from .roles import MemberRole, MemberStatus, OrganizationType


# ==============================================================================
# Organization Schemas
# ==============================================================================


class CreateOrganizationRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=120)
    type: OrganizationType
    parent_id: UUID | None = Field(
        default=None, description="Parent organization (must rank above type)"
    )
    description: str | None = Field(default=None, max_length=2000)


class UpdateOrganizationRequest(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=120)
    description: str | None = Field(default=None, max_length=2000)


class OrganizationResponse(BaseModel):
    """Organization response."""

    model_config = ConfigDict(from_attributes=True)

    organization_id: UUID
    name: str
    slug: str
    type: OrganizationType
    description: str | None = None
    parent_id: UUID | None = None
    zone_id: UUID | None = None
    church_id: UUID | None = None
    leader_id: UUID | None = None
    created_by: UUID | None = None
    admins: list[UUID] = Field(default_factory=list)
    assistant_leaders: list[UUID] = Field(default_factory=list)
    is_active: bool = True
    member_count: int | None = None
    my_role: str | None = Field(default=None, description="Caller's resolved role")
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(
        cls,
        entity: Organization,
        member_count: int | None = None,
        my_role: str | None = None,
    ) -> "OrganizationResponse":
        """Create response from entity."""
        return cls(
            **entity.to_dict(),
            member_count=member_count,
            my_role=my_role,
        )


class OrganizationListResponse(BaseModel):
    organizations: list[OrganizationResponse]
    total: int


class RoleResponse(BaseModel):
    organization_id: UUID
    user_id: UUID
    role: str | None
    can_manage: bool


# ==============================================================================
# Membership Schemas
# ==============================================================================


class AddMemberRequest(BaseModel):
    user_id: UUID
    role: MemberRole = MemberRole.MEMBER


class UpdateMemberRequest(BaseModel):
    role: MemberRole | None = None
    status: MemberStatus | None = None


class UserIdRequest(BaseModel):
    user_id: UUID


class MemberResponse(BaseModel):
    """Full member view for managers."""

    user_id: UUID
    role: str
    status: str
    joined_at: datetime
    added_by: UUID | None = None

    @classmethod
    def from_entity(cls, entity: Membership) -> "MemberResponse":
        return cls(
            user_id=entity.user_id,
            role=entity.role,
            status=entity.status,
            joined_at=entity.joined_at,
            added_by=entity.added_by,
        )


class PublicMemberResponse(BaseModel):
    """Reduced member view for non-managers."""

    user_id: UUID
    role: str

    @classmethod
    def from_entity(cls, entity: Membership) -> "PublicMemberResponse":
        return cls(user_id=entity.user_id, role=entity.role)


class MemberListResponse(BaseModel):
    members: list[MemberResponse] | list[PublicMemberResponse]
    total: int

"""Database models for the organization directory.

Cassandra table definitions for:
- Organizations: one row per organization with its role-bearing sets
- Slug claims: (type, slug) -> organization, claimed with IF NOT EXISTS
- Children lookup: organizations by parent
- Memberships: members by organization, organizations by member
"""

import re
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from ecclesia.utils.dates import ensure_utc_aware

from .roles import MemberStatus, RoleAssignment, normalize_assignments


SLUG_MAX_LENGTH = 50


def slugify(name: str) -> str:
    """Lowercase, collapse non-alphanumerics to '-', trim, cap at 50 chars."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:SLUG_MAX_LENGTH].rstrip("-") or "organization"


def slug_candidate(base: str, attempt: int) -> str:
    """``base`` for the first attempt, then ``base-1``, ``base-2``..."""
    return base if attempt == 0 else f"{base}-{attempt}"


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

ORGANIZATIONS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.organizations (
    organization_id UUID PRIMARY KEY,
    name TEXT,
    slug TEXT,
    type TEXT,
    description TEXT,
    parent_id UUID,
    zone_id UUID,
    church_id UUID,
    leader_id UUID,
    created_by UUID,
    admins SET<UUID>,
    assistant_leaders SET<UUID>,
    is_active BOOLEAN,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

# Unique (type, slug); written with IF NOT EXISTS
ORGANIZATIONS_BY_SLUG_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.organizations_by_slug (
    type TEXT,
    slug TEXT,
    organization_id UUID,
    PRIMARY KEY ((type, slug))
)
"""

ORGANIZATIONS_BY_PARENT_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.organizations_by_parent (
    parent_id UUID,
    organization_id UUID,
    PRIMARY KEY (parent_id, organization_id)
)
"""

ORGANIZATION_MEMBERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.organization_members (
    organization_id UUID,
    user_id UUID,
    role TEXT,
    status TEXT,
    joined_at TIMESTAMP,
    added_by UUID,
    PRIMARY KEY (organization_id, user_id)
)
"""

ORGANIZATIONS_BY_MEMBER_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.organizations_by_member (
    user_id UUID,
    organization_id UUID,
    role TEXT,
    joined_at TIMESTAMP,
    PRIMARY KEY (user_id, organization_id)
)
"""

ORGANIZATIONS_TABLES_CQL = [
    ORGANIZATIONS_TABLE_CQL,
    ORGANIZATIONS_BY_SLUG_TABLE_CQL,
    ORGANIZATIONS_BY_PARENT_TABLE_CQL,
    ORGANIZATION_MEMBERS_TABLE_CQL,
    ORGANIZATIONS_BY_MEMBER_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class Organization:
    """Organization entity (zone, church, fellowship, cell or bible study).

    Attributes:
        organization_id: Organization UUID
        name: Display name
        slug: URL slug, unique per type
        type: OrganizationType value
        parent_id: Parent organization (None for roots)
        zone_id: Nearest zone ancestor (quick reference)
        church_id: Nearest church ancestor (quick reference)
        leader_id: Leader, resolves to owner
        created_by: Creator, resolves to owner
        admins: Admin user IDs
        assistant_leaders: Assistant leader user IDs
        is_active: False once soft-deleted
    """

    def __init__(
        self,
        organization_id: UUID,
        name: str,
        slug: str,
        type: str,
        leader_id: UUID | None = None,
        created_by: UUID | None = None,
        description: str | None = None,
        parent_id: UUID | None = None,
        zone_id: UUID | None = None,
        church_id: UUID | None = None,
        admins: set[UUID] | None = None,
        assistant_leaders: set[UUID] | None = None,
        is_active: bool = True,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.organization_id = organization_id
        self.name = name
        self.slug = slug
        self.type = type
        self.leader_id = leader_id
        self.created_by = created_by
        self.description = description
        self.parent_id = parent_id
        self.zone_id = zone_id
        self.church_id = church_id
        self.admins = set(admins or ())
        self.assistant_leaders = set(assistant_leaders or ())
        self.is_active = is_active
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at) or self.created_at

    def role_assignments(
        self, memberships: list["Membership"] | None = None
    ) -> list[RoleAssignment]:
        """Normalize this organization's role sources plus stored memberships.

        A membership keeps its role whatever its status.
        """
        return normalize_assignments(
            leader_id=self.leader_id,
            created_by=self.created_by,
            admins=self.admins,
            assistant_leaders=self.assistant_leaders,
            memberships=[
                (m.user_id, m.role) for m in memberships or ()
            ],
        )

    @classmethod
    def from_row(cls, row: Any) -> "Organization":
        """Create Organization instance from Cassandra row."""
        return cls(
            organization_id=row.organization_id,
            name=row.name,
            slug=row.slug,
            type=row.type,
            leader_id=row.leader_id,
            created_by=row.created_by,
            description=row.description,
            parent_id=row.parent_id,
            zone_id=row.zone_id,
            church_id=row.church_id,
            admins=row.admins,
            assistant_leaders=row.assistant_leaders,
            is_active=row.is_active if row.is_active is not None else True,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "organization_id": self.organization_id,
            "name": self.name,
            "slug": self.slug,
            "type": self.type,
            "description": self.description,
            "parent_id": self.parent_id,
            "zone_id": self.zone_id,
            "church_id": self.church_id,
            "leader_id": self.leader_id,
            "created_by": self.created_by,
            "admins": sorted(self.admins, key=str),
            "assistant_leaders": sorted(self.assistant_leaders, key=str),
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<Organization {self.type}:{self.slug} ({self.organization_id})>"


class Membership:
    """Membership of a user in an organization."""

    def __init__(
        self,
        organization_id: UUID,
        user_id: UUID,
        role: str,
        status: str = MemberStatus.ACTIVE.value,
        joined_at: datetime | None = None,
        added_by: UUID | None = None,
    ):
        self.organization_id = organization_id
        self.user_id = user_id
        self.role = role
        self.status = status
        self.joined_at = ensure_utc_aware(joined_at) or datetime.now(UTC)
        self.added_by = added_by

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE.value

    @classmethod
    def from_row(cls, row: Any) -> "Membership":
        """Create Membership instance from Cassandra row."""
        return cls(
            organization_id=row.organization_id,
            user_id=row.user_id,
            role=row.role,
            status=row.status or MemberStatus.ACTIVE.value,
            joined_at=row.joined_at,
            added_by=row.added_by,
        )

    def __repr__(self) -> str:
        return f"<Membership user={self.user_id} org={self.organization_id} {self.role}>"

"""Organization directory service layer.

Business logic for:
- Organization lookup (by id, by slug, children, per member)
- Creation with hierarchy validation and collision-free slugs
- Membership management gated by the caller's resolved role
- Role resolution for a (user, organization) pair
"""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from ecclesia.core.errors import (
    BadRequestError,
    ConflictError,
    NotAuthorizedError,
    NotFoundError,
)

from .models import Membership, Organization, slug_candidate, slugify
from .roles import (
    MemberRole,
    MemberStatus,
    OrganizationType,
    can_be_child_of,
    can_manage,
    can_remove_members,
    first_member_role,
    is_owner,
    resolve_role,
)


if TYPE_CHECKING:
    from cassandra.cluster import Session

logger = structlog.get_logger(__name__)

MAX_SLUG_ATTEMPTS = 100


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class OrganizationNotFoundError(NotFoundError):
    def __init__(self, message: str = "Organization not found"):
        super().__init__(message, "organization_not_found")


class MemberNotFoundError(NotFoundError):
    def __init__(self, message: str = "Member not found"):
        super().__init__(message, "member_not_found")


class InvalidHierarchyError(BadRequestError):
    """Child type does not rank below its parent's type."""

    def __init__(self, child_type: str, parent_type: str):
        super().__init__(
            f"A {child_type} cannot be created under a {parent_type}",
            "invalid_hierarchy",
        )


class LeaderRemovalError(BadRequestError):
    def __init__(self, message: str = "The organization leader cannot be removed"):
        super().__init__(message, "leader_removal")


class SlugExhaustedError(ConflictError):
    def __init__(self, message: str = "Could not allocate a unique slug"):
        super().__init__(message, "slug_exhausted")


# ==============================================================================
# Organization Service
# ==============================================================================


class OrganizationService:
    """Service for the organization hierarchy and its memberships."""

    def __init__(self, session: "Session", keyspace: str):
        """Initialize with Cassandra session."""
        self.session = session
        self.keyspace = keyspace
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        # Organizations
        self._get_org = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.organizations WHERE organization_id = ?
        """)

        self._insert_org = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.organizations
            (organization_id, name, slug, type, description, parent_id, zone_id,
             church_id, leader_id, created_by, admins, assistant_leaders,
             is_active, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._update_org_details = self.session.prepare(f"""
            UPDATE {self.keyspace}.organizations
            SET name = ?, description = ?, updated_at = ?
            WHERE organization_id = ?
        """)

        self._deactivate_org = self.session.prepare(f"""
            UPDATE {self.keyspace}.organizations
            SET is_active = false, updated_at = ?
            WHERE organization_id = ?
        """)

        self._add_admin = self.session.prepare(f"""
            UPDATE {self.keyspace}.organizations
            SET admins = admins + ?, updated_at = ?
            WHERE organization_id = ?
        """)

        self._add_assistant_leader = self.session.prepare(f"""
            UPDATE {self.keyspace}.organizations
            SET assistant_leaders = assistant_leaders + ?, updated_at = ?
            WHERE organization_id = ?
        """)

        # Slugs
        self._claim_slug = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.organizations_by_slug
            (type, slug, organization_id)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)

        self._release_slug = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.organizations_by_slug
            WHERE type = ? AND slug = ?
            IF organization_id = ?
        """)

        self._get_slug =self.session.prepare(f"""
            SELECT organization_id FROM {self.keyspace}.organizations_by_slug
            WHERE type = ? AND slug = ?
        """)

        # Hierarchy
        self._insert_child = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.organizations_by_parent
            (parent_id, organization_id)
            VALUES (?, ?)
        """)

        self._get_children = self.session.prepare(f"""
            SELECT organization_id FROM {self.keyspace}.organizations_by_parent
            WHERE parent_id = ?
        """)

        # Memberships (dual-write: by organization and by member)
        self._upsert_member = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.organization_members
            (organization_id, user_id, role, status, joined_at, added_by)
            VALUES (?, ?, ?, ?, ?, ?)
        """)

        self._upsert_member_by_user = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.organizations_by_member
            (user_id, organization_id, role, joined_at)
            VALUES (?, ?, ?, ?)
        """)

        self._get_member = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.organization_members
            WHERE organization_id = ? AND user_id = ?
        """)

        self._get_members = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.organization_members
            WHERE organization_id = ?
        """)

        self._count_members = self.session.prepare(f"""
            SELECT COUNT(*) FROM {self.keyspace}.organization_members
            WHERE organization_id = ?
        """)

        self._delete_member = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.organization_members
            WHERE organization_id = ? AND user_id = ?
        """)

        self._delete_member_by_user = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.organizations_by_member
            WHERE user_id = ? AND organization_id = ?
        """)

        self._get_user_orgs = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.organizations_by_member
            WHERE user_id = ?
        """)

    # ==========================================================================
    # Lookup
    # ==========================================================================

    async def find_organization(self, organization_id: UUID) -> Organization | None:
        """Get an active organization, or None."""
        result = await self.session.aexecute(self._get_org, [organization_id])
        row = result.one()
        if not row:
            return None
        organization = Organization.from_row(row)
        return organization if organization.is_active else None

    async def get_organization(self, organization_id: UUID) -> Organization:
        """Get an active organization.

        Raises:
            OrganizationNotFoundError: If missing or deactivated
        """
        organization = await self.find_organization(organization_id)
        if organization is None:
            raise OrganizationNotFoundError
        return organization

    async def get_by_slug(self, slug: str, org_type: OrganizationType) -> Organization:
        """Get an organization by its (type, slug) pair."""
        result = await self.session.aexecute(
            self._get_slug, [OrganizationType(org_type).value, slug]
        )
        row = result.one()
        if not row:
            raise OrganizationNotFoundError
        return await self.get_organization(row.organization_id)

    async def list_children(self, organization_id: UUID) -> list[Organization]:
        """List the active direct children of an organization."""
        await self.get_organization(organization_id)
        rows = await self.session.aexecute(self._get_children, [organization_id])
        children = []
        for row in rows:
            child = await self.find_organization(row.organization_id)
            if child is not None:
                children.append(child)
        return sorted(children, key=lambda o: o.name.lower())

    async def member_count(self, organization_id: UUID) -> int:
        """Count membership rows with a count query."""
        result = await self.session.aexecute(self._count_members, [organization_id])
        row = result.one()
        return int(row.count) if row else 0

    async def get_membership(
        self, organization_id: UUID, user_id: UUID
    ) -> Membership | None:
        result = await self.session.aexecute(
            self._get_member, [organization_id, user_id]
        )
        row = result.one()
        return Membership.from_row(row) if row else None

    async def list_members(
        self,
        organization_id: UUID,
        role: MemberRole | None = None,
        status: MemberStatus | None = None,
    ) -> list[Membership]:
        """List members, optionally filtered by role and status."""
        await self.get_organization(organization_id)
        rows = await self.session.aexecute(self._get_members, [organization_id])
        members = [Membership.from_row(row) for row in rows]
        if role is not None:
            members = [m for m in members if m.role == MemberRole(role).value]
        if status is not None:
            members = [m for m in members if m.status == MemberStatus(status).value]
        return sorted(members, key=lambda m: m.joined_at)

    async def list_user_organizations(
        self, user_id: UUID
    ) -> list[tuple[Organization, str | None]]:
        """List active organizations the user belongs to, with the user's role."""
        rows = await self.session.aexecute(self._get_user_orgs, [user_id])
        results = []
        for row in rows:
            organization = await self.find_organization(row.organization_id)
            if organization is None:
                continue
            role = await self.role_of(user_id, organization)
            results.append((organization, role))
        return results

    # ==========================================================================
    # Role Resolution
    # ==========================================================================

    async def role_of(
        self, user_id: UUID, organization: Organization | UUID
    ) -> str | None:
        """Resolve the user's role in an organization.

        Returns None for unknown organizations as well as for users without
        any role, so callers fail closed.
        """
        if not isinstance(organization, Organization):
            organization = await self.find_organization(organization)
            if organization is None:
                return None

        membership = await self.get_membership(organization.organization_id, user_id)
        assignments = organization.role_assignments(
            [membership] if membership else None
        )
        return resolve_role(user_id, assignments)

    async def _require_role(
        self,
        organization: Organization,
        user_id: UUID,
        allowed: Callable[[str | None], bool],
        check: str,
    ) -> str:
        role = await self.role_of(user_id, organization)
        if not allowed(role):
            logger.warning(
                "organization_action_denied",
                organization_id=str(organization.organization_id),
                user_id=str(user_id),
                role=role,
                check=check,
            )
            raise NotAuthorizedError(check)
        return role

    # ==========================================================================
    # Creation and Updates
    # ==========================================================================

    async def create_organization(
        self,
        creator_id: UUID,
        name: str,
        org_type: OrganizationType,
        parent_id: UUID | None = None,
        description: str | None = None,
    ) -> Organization:
        """Create an organization.

        The creator becomes leader, creator and admin, and the first member
        (pastor for zones and churches, leader otherwise).

        Raises:
            OrganizationNotFoundError: Parent does not exist
            InvalidHierarchyError: Type does not rank below the parent's
            NotAuthorizedError: Creator cannot manage the parent
        """
        org_type = OrganizationType(org_type)
        zone_id = None
        church_id = None

        if parent_id is not None:
            parent = await self.get_organization(parent_id)
            if not can_be_child_of(org_type, parent.type):
                raise InvalidHierarchyError(org_type.value, parent.type)
            await self._require_role(
                parent, creator_id, can_manage, "parent_organization_manager"
            )
            zone_id = (
                parent.organization_id
                if parent.type == OrganizationType.ZONE.value
                else parent.zone_id
            )
            church_id = (
                parent.organization_id
                if parent.type == OrganizationType.CHURCH.value
                else parent.church_id
            )

        organization_id = uuid4()
        slug = await self._claim_unique_slug(org_type, slugify(name), organization_id)
        now = datetime.now(UTC)

        organization = Organization(
            organization_id=organization_id,
            name=name,
            slug=slug,
            type=org_type.value,
            leader_id=creator_id,
            created_by=creator_id,
            description=description,
            parent_id=parent_id,
            zone_id=zone_id,
            church_id=church_id,
            admins={creator_id},
            is_active=True,
            created_at=now,
            updated_at=now,
        )

        try:
            await self.session.aexecute(
                self._insert_org,
                [
                    organization.organization_id,
                    organization.name,
                    organization.slug,
                    organization.type,
                    organization.description,
                    organization.parent_id,
                    organization.zone_id,
                    organization.church_id,
                    organization.leader_id,
                    organization.created_by,
                    organization.admins,
                    organization.assistant_leaders,
                    organization.is_active,
                    organization.created_at,
                    organization.updated_at,
                ],
            )
        except Exception:
            # The slug must not stay claimed by a row that was never written
            await self.session.aexecute(
                self._release_slug, [org_type.value, slug, organization_id]
            )
            logger.warning(
                "organization_slug_released",
                organization_id=str(organization_id),
                type=org_type.value,
                slug=slug,
            )
            raise

        if parent_id is not None:
            await self.session.aexecute(
                self._insert_child, [parent_id, organization_id]
            )

        await self._save_membership(
            Membership(
                organization_id=organization_id,
                user_id=creator_id,
                role=first_member_role(org_type).value,
                joined_at=now,
                added_by=creator_id,
            )
        )

        logger.info(
            "organization_created",
            organization_id=str(organization_id),
            type=org_type.value,
            slug=slug,
            parent_id=str(parent_id) if parent_id else None,
            creator_id=str(creator_id),
        )

        return organization

    async def _claim_unique_slug(
        self, org_type: OrganizationType, base: str, organization_id: UUID
    ) -> str:
        """Claim ``base``, ``base-1``, ``base-2``... until an insert applies."""
        for attempt in range(MAX_SLUG_ATTEMPTS):
            candidate = slug_candidate(base, attempt)
            result = await self.session.aexecute(
                self._claim_slug, [org_type.value, candidate, organization_id]
            )
            if result.was_applied:
                return candidate
        raise SlugExhaustedError

    async def update_organization(
        self,
        organization_id: UUID,
        actor_id: UUID,
        name: str | None = None,
        description: str | None = None,
    ) -> Organization:
        """Update name/description. Requires a management role.

        The slug is left untouched so existing links keep working.
        """
        organization = await self.get_organization(organization_id)
        await self._require_role(
            organization, actor_id, can_manage, "organization_manager"
        )

        if name is not None:
            organization.name = name
        if description is not None:
            organization.description = description
        organization.updated_at = datetime.now(UTC)

        await self.session.aexecute(
            self._update_org_details,
            [
                organization.name,
                organization.description,
                organization.updated_at,
                organization_id,
            ],
        )
        logger.info(
            "organization_updated",
            organization_id=str(organization_id),
            actor_id=str(actor_id),
        )
        return organization

    async def deactivate_organization(
        self, organization_id: UUID, actor_id: UUID
    ) -> None:
        """Soft-delete an organization. Owner only."""
        organization = await self.get_organization(organization_id)
        await self._require_role(organization, actor_id, is_owner, "organization_owner")
        await self.session.aexecute(
            self._deactivate_org, [datetime.now(UTC), organization_id]
        )
        logger.info(
            "organization_deactivated",
            organization_id=str(organization_id),
            actor_id=str(actor_id),
        )

    async def add_admin(
        self, organization_id: UUID, actor_id: UUID, user_id: UUID
    ) -> Organization:
        organization = await self.get_organization(organization_id)
        await self._require_role(
            organization, actor_id, can_manage, "organization_manager"
        )
        await self.session.aexecute(
            self._add_admin, [{user_id}, datetime.now(UTC), organization_id]
        )
        organization.admins.add(user_id)
        logger.info(
            "organization_admin_added",
            organization_id=str(organization_id),
            user_id=str(user_id),
            actor_id=str(actor_id),
        )
        return organization

    async def add_assistant_leader(
        self, organization_id: UUID, actor_id: UUID, user_id: UUID
    ) -> Organization:
        organization = await self.get_organization(organization_id)
        await self._require_role(
            organization, actor_id, can_manage, "organization_manager"
        )
        await self.session.aexecute(
            self._add_assistant_leader,
            [{user_id}, datetime.now(UTC), organization_id],
        )
        organization.assistant_leaders.add(user_id)
        logger.info(
            "organization_assistant_leader_added",
            organization_id=str(organization_id),
            user_id=str(user_id),
            actor_id=str(actor_id),
        )
        return organization

    # ==========================================================================
    # Memberships
    # ==========================================================================

    async def _save_membership(self, membership: Membership) -> None:
        """Write a membership to both membership tables."""
        await self.session.aexecute(
            self._upsert_member,
            [
                membership.organization_id,
                membership.user_id,
                membership.role,
                membership.status,
                membership.joined_at,
                membership.added_by,
            ],
        )
        await self.session.aexecute(
            self._upsert_member_by_user,
            [
                membership.user_id,
                membership.organization_id,
                membership.role,
                membership.joined_at,
            ],
        )

    async def add_member(
        self,
        organization_id: UUID,
        actor_id: UUID,
        user_id: UUID,
        role: MemberRole = MemberRole.MEMBER,
    ) -> Membership:
        """Add a member, or return the existing membership unchanged."""
        organization = await self.get_organization(organization_id)
        await self._require_role(
            organization, actor_id, can_manage, "organization_manager"
        )

        existing = await self.get_membership(organization_id, user_id)
        if existing is not None and existing.is_active:
            return existing

        membership = Membership(
            organization_id=organization_id,
            user_id=user_id,
            role=MemberRole(role).value,
            added_by=actor_id,
        )
        await self._save_membership(membership)
        logger.info(
            "organization_member_added",
            organization_id=str(organization_id),
            user_id=str(user_id),
            role=membership.role,
            actor_id=str(actor_id),
        )
        return membership

    async def update_member(
        self,
        organization_id: UUID,
        actor_id: UUID,
        user_id: UUID,
        role: MemberRole | None = None,
        status: MemberStatus | None = None,
    ) -> Membership:
        """Change a member's role and/or status. Requires a management role."""
        organization = await self.get_organization(organization_id)
        await self._require_role(
            organization, actor_id, can_manage, "organization_manager"
        )

        membership = await self.get_membership(organization_id, user_id)
        if membership is None:
            raise MemberNotFoundError

        if role is not None:
            membership.role = MemberRole(role).value
        if status is not None:
            membership.status = MemberStatus(status).value

        await self._save_membership(membership)
        logger.info(
            "organization_member_updated",
            organization_id=str(organization_id),
            user_id=str(user_id),
            role=membership.role,
            status=membership.status,
        )
        return membership

    async def remove_member(
        self, organization_id: UUID, actor_id: UUID, user_id: UUID
    ) -> None:
        """Remove a member. Owner/admin only; the leader cannot be removed."""
        organization = await self.get_organization(organization_id)
        await self._require_role(
            organization, actor_id, can_remove_members, "organization_owner_or_admin"
        )

        if organization.leader_id == user_id:
            raise LeaderRemovalError

        membership = await self.get_membership(organization_id, user_id)
        if membership is None:
            raise MemberNotFoundError

        await self.session.aexecute(self._delete_member, [organization_id, user_id])
        await self.session.aexecute(
            self._delete_member_by_user, [user_id, organization_id]
        )
        logger.info(
            "organization_member_removed",
            organization_id=str(organization_id),
            user_id=str(user_id),
            actor_id=str(actor_id),
        )

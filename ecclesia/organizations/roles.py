"""Organization types and role resolution.

Pure functions only, no I/O:
- ``OrganizationType`` ordering and the parent/child rank rule
- Normalization of an organization's role sources into ``RoleAssignment``s
- ``resolve_role`` / ``can_manage`` used by every mutating operation
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from uuid import UUID


class OrganizationType(str, Enum):
    """Organization levels, declared from the top of the hierarchy down."""

    ZONE = "zone"
    CHURCH = "church"
    FELLOWSHIP = "fellowship"
    CELL = "cell"
    BIBLESTUDY = "biblestudy"

    @property
    def rank(self) -> int:
        return TYPE_RANK[self]


TYPE_RANK: dict[OrganizationType, int] = {
    org_type: index for index, org_type in enumerate(OrganizationType)
}


def compare_types(a: OrganizationType | str, b: OrganizationType | str) -> int:
    """Compare two organization types by rank.

    Returns:
        Negative if ``a`` sits above ``b``, zero if equal, positive if below.
    """
    return OrganizationType(a).rank - OrganizationType(b).rank


def can_be_child_of(
    child: OrganizationType | str, parent: OrganizationType | str
) -> bool:
    """A child's rank must be strictly greater than its parent's."""
    return compare_types(child, parent) > 0


class MemberRole(str, Enum):
    """Role stored on a membership record."""

    MEMBER = "member"
    WORKER = "worker"
    LEADER = "leader"
    PASTOR = "pastor"
    ADMIN = "admin"


class MemberStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TRANSFERRED = "transferred"


class OrganizationRole(str, Enum):
    """Roles derived from an organization's own fields."""

    OWNER = "owner"
    ADMIN = "admin"
    ASSISTANT = "assistant"


MANAGER_ROLES = frozenset(
    {
        OrganizationRole.OWNER.value,
        OrganizationRole.ADMIN.value,
        OrganizationRole.ASSISTANT.value,
    }
)


class RoleSource(str, Enum):
    """Where a role assignment comes from, in precedence order."""

    LEADER = "leader"
    CREATOR = "created_by"
    ADMINS = "admins"
    ASSISTANT_LEADERS = "assistant_leaders"
    MEMBERSHIP = "membership"


# First matching source wins
SOURCE_PRECEDENCE: tuple[RoleSource, ...] = tuple(RoleSource)

SOURCE_ROLE: dict[RoleSource, OrganizationRole] = {
    RoleSource.LEADER: OrganizationRole.OWNER,
    RoleSource.CREATOR: OrganizationRole.OWNER,
    RoleSource.ADMINS: OrganizationRole.ADMIN,
    RoleSource.ASSISTANT_LEADERS: OrganizationRole.ASSISTANT,
}


@dataclass(frozen=True)
class RoleAssignment:
    """One (user, source) pair; ``member_role`` is set for memberships only."""

    user_id: UUID
    source: RoleSource
    member_role: str | None = None

    @property
    def role(self) -> str | None:
        if self.source is RoleSource.MEMBERSHIP:
            return self.member_role
        return SOURCE_ROLE[self.source].value


def normalize_assignments(
    leader_id: UUID | None,
    created_by: UUID | None,
    admins: Iterable[UUID] | None = None,
    assistant_leaders: Iterable[UUID] | None = None,
    memberships: Iterable[tuple[UUID, str]] | None = None,
) -> list[RoleAssignment]:
    """Flatten an organization's role-bearing fields into assignments.

    Args:
        leader_id: Organization leader.
        created_by: Organization creator.
        admins: Admin user IDs.
        assistant_leaders: Assistant leader user IDs.
        memberships: ``(user_id, member_role)`` pairs of active members.
    """
    assignments: list[RoleAssignment] = []
    if leader_id is not None:
        assignments.append(RoleAssignment(leader_id, RoleSource.LEADER))
    if created_by is not None:
        assignments.append(RoleAssignment(created_by, RoleSource.CREATOR))
    assignments.extend(RoleAssignment(u, RoleSource.ADMINS) for u in admins or ())
    assignments.extend(
        RoleAssignment(u, RoleSource.ASSISTANT_LEADERS)
        for u in assistant_leaders or ()
    )
    assignments.extend(
        RoleAssignment(u, RoleSource.MEMBERSHIP, member_role=role)
        for u, role in memberships or ()
    )
    return assignments


def resolve_role(user_id: UUID, assignments: Iterable[RoleAssignment]) -> str | None:
    """Resolve a user's effective role from normalized assignments.

    Order: leader -> owner, creator -> owner, admins -> admin,
    assistant leaders -> assistant, then the stored membership role.

    Returns:
        The role name, or None if the user holds no role.
    """
    by_source: dict[RoleSource, RoleAssignment] = {}
    for assignment in assignments:
        if assignment.user_id == user_id:
            by_source.setdefault(assignment.source, assignment)

    for source in SOURCE_PRECEDENCE:
        if source in by_source:
            return by_source[source].role
    return None


def can_manage(role: str | None) -> bool:
    """Owners, admins and assistants may manage an organization."""
    return role in MANAGER_ROLES


def can_remove_members(role: str | None) -> bool:
    return role in (OrganizationRole.OWNER.value, OrganizationRole.ADMIN.value)


def is_owner(role: str | None) -> bool:
    return role == OrganizationRole.OWNER.value


def first_member_role(org_type: OrganizationType | str) -> MemberRole:
    """Creator's membership role: pastor for zones and churches, else leader."""
    if OrganizationType(org_type) in (OrganizationType.ZONE, OrganizationType.CHURCH):
        return MemberRole.PASTOR
    return MemberRole.LEADER

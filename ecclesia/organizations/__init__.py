"""Organization directory and role-based authorization.

Provides:
- Zone > church > fellowship > cell > bible study hierarchy
- Memberships and role resolution (owner, admin, assistant, member roles)
- Authorization checks used by the Foundation School packages
"""

from .models import ORGANIZATIONS_TABLES_CQL, Membership, Organization
from .roles import (
    MemberRole,
    MemberStatus,
    OrganizationRole,
    OrganizationType,
    can_manage,
    resolve_role,
)


__all__ = [
    "ORGANIZATIONS_TABLES_CQL",
    "MemberRole",
    "MemberStatus",
    "Membership",
    "Organization",
    "OrganizationRole",
    "OrganizationType",
    "can_manage",
    "resolve_role",
]

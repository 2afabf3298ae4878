"""Authorization checks shared by batches, grading and certificate issuance.

Every check reads only; it runs before any mutation and fails closed with
``NotAuthorizedError`` naming the check that refused the caller.
"""

from typing import Protocol
from uuid import UUID

import structlog

from ecclesia.core.errors import NotAuthorizedError

from .roles import can_manage
from .service import OrganizationService


logger = structlog.get_logger(__name__)


class StaffedBatch(Protocol):
    """Anything carrying a principal and a teacher roster."""

    principal_id: UUID | None
    teacher_ids: set[UUID]


def is_batch_staff(user_id: UUID, batch: StaffedBatch | None) -> bool:
    """True when the user is the batch's principal or one of its teachers."""
    if batch is None:
        return False
    return batch.principal_id == user_id or user_id in (batch.teacher_ids or set())


class AuthorizationService:
    """Role checks over the organization directory."""

    def __init__(self, directory: OrganizationService):
        self.directory = directory

    async def role_of(self, user_id: UUID, organization_id: UUID | None) -> str | None:
        if organization_id is None:
            return None
        return await self.directory.role_of(user_id, organization_id)

    async def can_manage(self, user_id: UUID, organization_id: UUID | None) -> bool:
        return can_manage(await self.role_of(user_id, organization_id))

    async def require_manager(
        self, user_id: UUID, organization_id: UUID | None
    ) -> str:
        """Require owner/admin/assistant on the organization.

        Returns:
            The caller's resolved role
        """
        role = await self.role_of(user_id, organization_id)
        if not can_manage(role):
            self._deny(user_id, organization_id, "organization_manager")
        return role

    async def is_staff(
        self,
        user_id: UUID,
        organization_id: UUID | None,
        batch: StaffedBatch | None = None,
    ) -> bool:
        """Batch principal/teacher, or manager of the organization."""
        if is_batch_staff(user_id, batch):
            return True
        return await self.can_manage(user_id, organization_id)

    async def require_staff(
        self,
        user_id: UUID,
        organization_id: UUID | None,
        batch: StaffedBatch | None = None,
    ) -> None:
        """Require batch staff or organization manager.

        Raises:
            NotAuthorizedError: check ``batch_staff_or_organization_manager``
        """
        if not await self.is_staff(user_id, organization_id, batch):
            self._deny(user_id, organization_id, "batch_staff_or_organization_manager")

    def _deny(self, user_id: UUID, organization_id: UUID | None, check: str) -> None:
        logger.warning(
            "authorization_denied",
            user_id=str(user_id),
            organization_id=str(organization_id) if organization_id else None,
            check=check,
        )
        raise NotAuthorizedError(check)

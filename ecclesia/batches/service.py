"""Foundation School batch service.

Business logic for:
- Batch creation with a per-organization unique batch number
- Status updates and teacher roster changes (manager or principal)
- Listing and selection of the latest open batch for new enrollments
"""

from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

import structlog

from ecclesia.core.errors import BadRequestError, NotAuthorizedError, NotFoundError

from .models import OPEN_BATCH_STATUSES, BatchStatus, FoundationBatch


if TYPE_CHECKING:
    from cassandra.cluster import Session

    from ecclesia.organizations.authorization import AuthorizationService

logger = structlog.get_logger(__name__)

_EPOCH = datetime.min.replace(tzinfo=UTC)


# ==============================================================================
# Custom Exceptions
# ==============================================================================


class BatchNotFoundError(NotFoundError):
    def __init__(self, message: str = "Batch not found"):
        super().__init__(message, "batch_not_found")


class DuplicateBatchNumberError(BadRequestError):
    def __init__(self, batch_number: int):
        super().__init__(
            f"Batch number {batch_number} already exists for this organization",
            "duplicate_batch_number",
        )


# ==============================================================================
# Batch Service
# ==============================================================================


class BatchService:
    """Service for Foundation School cohorts."""

    def __init__(
        self,
        session: "Session",
        keyspace: str,
        authorization: "AuthorizationService",
    ):
        """Initialize with Cassandra session and the authorization checks."""
        self.session = session
        self.keyspace = keyspace
        self.authorization = authorization
        self._prepare_statements()

    def _prepare_statements(self) -> None:
        """Prepare CQL statements for efficient execution."""
        self._get_batch = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_batches WHERE batch_id = ?
        """)

        self._get_batches_by_org = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_batches WHERE organization_id = ?
        """)

        self._get_batches_by_status = self.session.prepare(f"""
            SELECT * FROM {self.keyspace}.fs_batches WHERE status = ?
        """)

        self._claim_batch_number = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.fs_batch_numbers
            (organization_id, batch_number, batch_id)
            VALUES (?, ?, ?)
            IF NOT EXISTS
        """)

        self._release_batch_number = self.session.prepare(f"""
            DELETE FROM {self.keyspace}.fs_batch_numbers
            WHERE organization_id = ? AND batch_number = ?
            IF batch_id = ?
        """)

        self._insert_batch = self.session.prepare(f"""
            INSERT INTO {self.keyspace}.fs_batches
            (batch_id, organization_id, batch_number, name, status, start_date,
             end_date, graduation_date, principal_id, teacher_ids, created_by,
             created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """)

        self._update_status = self.session.prepare(f"""
            UPDATE {self.keyspace}.fs_batches
            SET status = ?, updated_at = ?
            WHERE batch_id = ?
        """)

        self._add_teacher = self.session.prepare(f"""
            UPDATE {self.keyspace}.fs_batches
            SET teacher_ids = teacher_ids + ?, updated_at = ?
            WHERE batch_id = ?
        """)

    # ==========================================================================
    # Lookup
    # ==========================================================================

    async def find_batch(self, batch_id: UUID) -> FoundationBatch | None:
        result = await self.session.aexecute(self._get_batch, [batch_id])
        row = result.one()
        return FoundationBatch.from_row(row) if row else None

    async def get_batch(self, batch_id: UUID) -> FoundationBatch:
        batch = await self.find_batch(batch_id)
        if batch is None:
            raise BatchNotFoundError
        return batch

    async def list_batches(
        self,
        organization_id: UUID | None = None,
        status: BatchStatus | None = None,
    ) -> list[FoundationBatch]:
        """List batches, newest start date first.

        With no status filter only open batches are returned.
        """
        statuses = (
            [BatchStatus(status).value]
            if status is not None
            else [s.value for s in OPEN_BATCH_STATUSES]
        )

        if organization_id is not None:
            rows = await self.session.aexecute(
                self._get_batches_by_org, [organization_id]
            )
            batches = [FoundationBatch.from_row(row) for row in rows]
            batches = [b for b in batches if b.status in statuses]
        else:
            batches = []
            for value in statuses:
                rows = await self.session.aexecute(
                    self._get_batches_by_status, [value]
                )
                batches.extend(FoundationBatch.from_row(row) for row in rows)

        return sorted(batches, key=lambda b: b.start_date or _EPOCH, reverse=True)

    async def find_latest_open_batch(
        self, organization_id: UUID | None = None
    ) -> FoundationBatch | None:
        """Most recently started batch that is open or in progress."""
        batches = await self.list_batches(organization_id=organization_id)
        return batches[0] if batches else None

    # ==========================================================================
    # Mutations
    # ==========================================================================

    async def create_batch(
        self,
        issuer_id: UUID,
        organization_id: UUID,
        batch_number: int,
        name: str,
        start_date: datetime,
        end_date: datetime | None = None,
        graduation_date: datetime | None = None,
    ) -> FoundationBatch:
        """Create a batch in ``registration_open`` with the issuer as principal.

        Raises:
            OrganizationNotFoundError: Organization does not exist
            NotAuthorizedError: Issuer cannot manage the organization
            DuplicateBatchNumberError: Number already used in the organization
        """
        await self.authorization.directory.get_organization(organization_id)
        await self.authorization.require_manager(issuer_id, organization_id)

        batch_id = uuid4()
        result = await self.session.aexecute(
            self._claim_batch_number, [organization_id, batch_number, batch_id]
        )
        if not result.was_applied:
            raise DuplicateBatchNumberError(batch_number)

        now = datetime.now(UTC)
        batch = FoundationBatch(
            batch_id=batch_id,
            organization_id=organization_id,
            batch_number=batch_number,
            name=name,
            status=BatchStatus.REGISTRATION_OPEN.value,
            start_date=start_date,
            end_date=end_date,
            graduation_date=graduation_date,
            principal_id=issuer_id,
            created_by=issuer_id,
            created_at=now,
            updated_at=now,
        )

        try:
            await self.session.aexecute(
                self._insert_batch,
                [
                    batch.batch_id,
                    batch.organization_id,
                    batch.batch_number,
                    batch.name,
                    batch.status,
                    batch.start_date,
                    batch.end_date,
                    batch.graduation_date,
                    batch.principal_id,
                    batch.teacher_ids,
                    batch.created_by,
                    batch.created_at,
                    batch.updated_at,
                ],
            )
        except Exception:
            await self.session.aexecute(
                self._release_batch_number, [organization_id, batch_number, batch_id]
            )
            logger.warning(
                "batch_number_released",
                batch_id=str(batch_id),
                organization_id=str(organization_id),
                batch_number=batch_number,
            )
            raise

        logger.info(
            "batch_created",
            batch_id=str(batch_id),
            organization_id=str(organization_id),
            batch_number=batch_number,
            principal_id=str(issuer_id),
        )
        return batch

    async def _require_batch_admin(self, batch: FoundationBatch, actor_id: UUID) -> None:
        """Principal of the batch, or manager of its organization."""
        if batch.principal_id == actor_id:
            return
        if await self.authorization.can_manage(actor_id, batch.organization_id):
            return
        raise NotAuthorizedError("batch_principal_or_organization_manager")

    async def update_batch_status(
        self, batch_id: UUID, actor_id: UUID, status: BatchStatus
    ) -> FoundationBatch:
        batch = await self.get_batch(batch_id)
        await self._require_batch_admin(batch, actor_id)

        previous = batch.status
        batch.status = BatchStatus(status).value
        batch.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._update_status, [batch.status, batch.updated_at, batch_id]
        )

        logger.info(
            "batch_status_updated",
            batch_id=str(batch_id),
            previous_status=previous,
            status=batch.status,
            actor_id=str(actor_id),
        )
        return batch

    async def add_teacher(
        self, batch_id: UUID, actor_id: UUID, teacher_id: UUID
    ) -> FoundationBatch:
        batch = await self.get_batch(batch_id)
        await self._require_batch_admin(batch, actor_id)

        batch.teacher_ids.add(teacher_id)
        batch.updated_at = datetime.now(UTC)
        await self.session.aexecute(
            self._add_teacher, [{teacher_id}, batch.updated_at, batch_id]
        )

        logger.info(
            "batch_teacher_added",
            batch_id=str(batch_id),
            teacher_id=str(teacher_id),
            actor_id=str(actor_id),
        )
        return batch

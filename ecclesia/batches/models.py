"""Database models for Foundation School batches (cohorts).

Cassandra table definitions for:
- Batches: one row per batch, secondary indexes on organization and status
- Batch numbers: (organization, batch_number) claims written with IF NOT EXISTS
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from ecclesia.utils.dates import ensure_utc_aware


class BatchStatus(str, Enum):
    """Batch status. Any authorized change is allowed; there is no graph."""

    DRAFT = "draft"
    REGISTRATION_OPEN = "registration_open"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    GRADUATED = "graduated"
    ARCHIVED = "archived"


# Statuses a new enrollment may attach to
OPEN_BATCH_STATUSES = (BatchStatus.REGISTRATION_OPEN, BatchStatus.IN_PROGRESS)


# ==============================================================================
# CQL Table Definitions
# ==============================================================================

FS_BATCHES_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.fs_batches (
    batch_id UUID PRIMARY KEY,
    organization_id UUID,
    batch_number INT,
    name TEXT,
    status TEXT,
    start_date TIMESTAMP,
    end_date TIMESTAMP,
    graduation_date TIMESTAMP,
    principal_id UUID,
    teacher_ids SET<UUID>,
    created_by UUID,
    created_at TIMESTAMP,
    updated_at TIMESTAMP
)
"""

FS_BATCHES_ORGANIZATION_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS fs_batches_organization_idx
ON {keyspace}.fs_batches (organization_id)
"""

FS_BATCHES_STATUS_INDEX_CQL = """
CREATE INDEX IF NOT EXISTS fs_batches_status_idx
ON {keyspace}.fs_batches (status)
"""

# Unique batch number per organization
FS_BATCH_NUMBERS_TABLE_CQL = """
CREATE TABLE IF NOT EXISTS {keyspace}.fs_batch_numbers (
    organization_id UUID,
    batch_number INT,
    batch_id UUID,
    PRIMARY KEY (organization_id, batch_number)
)
"""

BATCHES_TABLES_CQL = [
    FS_BATCHES_TABLE_CQL,
    FS_BATCHES_ORGANIZATION_INDEX_CQL,
    FS_BATCHES_STATUS_INDEX_CQL,
    FS_BATCH_NUMBERS_TABLE_CQL,
]


# ==============================================================================
# Entity Classes
# ==============================================================================


class FoundationBatch:
    """A Foundation School cohort.

    Attributes:
        batch_id: Batch UUID
        organization_id: Owning organization
        batch_number: Number unique within the organization
        status: BatchStatus value
        principal_id: Principal (the creator by default)
        teacher_ids: Teachers allowed to grade and issue certificates
    """

    def __init__(
        self,
        batch_id: UUID,
        organization_id: UUID,
        batch_number: int,
        name: str,
        status: str = BatchStatus.REGISTRATION_OPEN.value,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        graduation_date: datetime | None = None,
        principal_id: UUID | None = None,
        teacher_ids: set[UUID] | None = None,
        created_by: UUID | None = None,
        created_at: datetime | None = None,
        updated_at: datetime | None = None,
    ):
        self.batch_id = batch_id
        self.organization_id = organization_id
        self.batch_number = batch_number
        self.name = name
        self.status = status
        self.start_date = ensure_utc_aware(start_date)
        self.end_date = ensure_utc_aware(end_date)
        self.graduation_date = ensure_utc_aware(graduation_date)
        self.principal_id = principal_id
        self.teacher_ids = set(teacher_ids or ())
        self.created_by = created_by
        self.created_at = ensure_utc_aware(created_at) or datetime.now(UTC)
        self.updated_at = ensure_utc_aware(updated_at) or self.created_at

    @property
    def is_open(self) -> bool:
        return self.status in {s.value for s in OPEN_BATCH_STATUSES}

    @classmethod
    def from_row(cls, row: Any) -> "FoundationBatch":
        """Create FoundationBatch instance from Cassandra row."""
        return cls(
            batch_id=row.batch_id,
            organization_id=row.organization_id,
            batch_number=row.batch_number,
            name=row.name,
            status=row.status or BatchStatus.DRAFT.value,
            start_date=row.start_date,
            end_date=row.end_date,
            graduation_date=row.graduation_date,
            principal_id=row.principal_id,
            teacher_ids=row.teacher_ids,
            created_by=row.created_by,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "batch_id": self.batch_id,
            "organization_id": self.organization_id,
            "batch_number": self.batch_number,
            "name": self.name,
            "status": self.status,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "graduation_date": self.graduation_date,
            "principal_id": self.principal_id,
            "teacher_ids": sorted(self.teacher_ids, key=str),
            "created_by": self.created_by,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def __repr__(self) -> str:
        return f"<FoundationBatch #{self.batch_number} {self.status} ({self.batch_id})>"

"""Pydantic schemas for Foundation School batches."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from .models import BatchStatus, FoundationBatch


class CreateBatchRequest(BaseModel):
    organization_id: UUID
    batch_number: int = Field(..., ge=1)
    name: str = Field(..., min_length=2, max_length=120)
    start_date: datetime
    end_date: datetime | None = None
    graduation_date: datetime | None = None

    @model_validator(mode="after")
    def check_dates(self) -> "CreateBatchRequest":
        if self.end_date is not None and self.end_date < self.start_date:
            msg = "end_date must not be before start_date"
            raise ValueError(msg)
        return self


class UpdateBatchStatusRequest(BaseModel):
    status: BatchStatus


class AddTeacherRequest(BaseModel):
    teacher_id: UUID


class BatchResponse(BaseModel):
    batch_id: UUID
    organization_id: UUID
    batch_number: int
    name: str
    status: BatchStatus
    start_date: datetime | None = None
    end_date: datetime | None = None
    graduation_date: datetime | None = None
    principal_id: UUID | None = None
    teacher_ids: list[UUID] = Field(default_factory=list)
    created_by: UUID | None = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, entity: FoundationBatch) -> "BatchResponse":
        return cls(**entity.to_dict())


class BatchListResponse(BaseModel):
    batches: list[BatchResponse]
    total: int

"""Foundation School batches (cohorts)."""

from .models import BATCHES_TABLES_CQL, BatchStatus, FoundationBatch


__all__ = ["BATCHES_TABLES_CQL", "BatchStatus", "FoundationBatch"]

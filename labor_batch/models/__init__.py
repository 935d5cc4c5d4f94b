"""
labor_batch.models -- ORM models for submission batch persistence.

Architecture: labor_batch/models. Imports from labor_kernel.db.base only.
"""

from labor_batch.models.batch import SubmissionBatchModel

__all__ = [
    "SubmissionBatchModel",
]

"""
labor_batch.services -- Batch assembly, submission and result processing.
"""

from labor_batch.services.batch_manager import BatchManager
from labor_batch.services.transmission import TransmissionService

__all__ = [
    "BatchManager",
    "TransmissionService",
]

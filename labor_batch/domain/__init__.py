"""
labor_batch.domain -- Pure types and the batch state machine.

ZERO I/O.  All types are frozen dataclasses.
"""

from labor_batch.domain.types import (
    AddEventsResult,
    BatchFilter,
    BatchIssue,
    BatchResult,
    BatchStatus,
    BatchValidationReport,
    EventOutcome,
    ItemRejection,
    PollResult,
    SubmissionBatch,
    SubmissionEnvelope,
    SubmitReceipt,
    SubmittedDocument,
)
from labor_batch.domain.workflow import BATCH_WORKFLOW, transition_batch

__all__ = [
    "AddEventsResult",
    "BATCH_WORKFLOW",
    "BatchFilter",
    "BatchIssue",
    "BatchResult",
    "BatchStatus",
    "BatchValidationReport",
    "EventOutcome",
    "ItemRejection",
    "PollResult",
    "SubmissionBatch",
    "SubmissionEnvelope",
    "SubmitReceipt",
    "SubmittedDocument",
    "transition_batch",
]

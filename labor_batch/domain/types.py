"""
labor_batch.domain.types -- Pure frozen dataclasses for submission batches.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections, consumed by the batch manager, the transmission
service and the transport contract.

Invariants enforced:
    - All DTOs are frozen dataclasses (immutable).
    - A batch holds events of exactly one ``GroupType``.
    - Per-item failures are data (``ItemRejection``), never exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from labor_events.catalog import GroupType

# =============================================================================
# Status enums
# =============================================================================


class BatchStatus(str, Enum):
    """Submission batch lifecycle status."""

    OPEN = "OPEN"  # Accepting events
    CLOSED = "CLOSED"  # Frozen membership; ready to send (or retry)
    SENDING = "SENDING"  # Submit call in progress
    SENT = "SENT"  # Protocol number received; awaiting outcomes
    PROCESSED = "PROCESSED"  # Every member has a terminal outcome
    ERROR = "ERROR"  # Authority rejected the batch as a whole


NON_TERMINAL_BATCH_STATUSES = frozenset(
    {BatchStatus.OPEN, BatchStatus.CLOSED, BatchStatus.SENDING}
)


# =============================================================================
# Batch DTOs
# =============================================================================


@dataclass(frozen=True)
class SubmissionBatch:
    """Immutable snapshot of a submission batch."""

    id: UUID
    company_id: UUID
    batch_number: int
    group: GroupType
    status: BatchStatus
    event_count: int = 0
    protocol_number: str | None = None
    created_at: datetime | None = None
    closed_at: datetime | None = None
    sent_at: datetime | None = None
    processed_at: datetime | None = None
    result_summary: dict[str, Any] | None = None
    last_error: str | None = None
    last_error_at: datetime | None = None
    error_count: int = 0


@dataclass(frozen=True)
class BatchFilter:
    status: BatchStatus | None = None
    group: GroupType | None = None
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True)
class ItemRejection:
    """Why one event could not be added to a batch."""

    event_id: UUID
    code: str  # BATCH_NOT_OPEN, EVENT_NOT_FOUND, EVENT_NOT_VALIDATED, ...
    message: str


@dataclass(frozen=True)
class AddEventsResult:
    added: tuple[UUID, ...] = ()
    rejections: tuple[ItemRejection, ...] = ()


@dataclass(frozen=True)
class BatchIssue:
    """One pre-flight problem found on a batch member."""

    event_id: UUID
    code: str
    message: str


@dataclass(frozen=True)
class BatchValidationReport:
    batch_id: UUID
    event_count: int
    issues: tuple[BatchIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return self.event_count > 0 and not self.issues


# =============================================================================
# Transport DTOs
# =============================================================================


@dataclass(frozen=True)
class SubmittedDocument:
    document_id: str
    event_type: str
    document: str


@dataclass(frozen=True)
class SubmissionEnvelope:
    """What the transport submits: one batch of built documents."""

    batch_id: UUID
    company_id: UUID
    registration_number: str
    environment_code: str
    group: GroupType
    documents: tuple[SubmittedDocument, ...] = field(default_factory=tuple)
    certificate_ref: str | None = None


@dataclass(frozen=True)
class SubmitReceipt:
    protocol_number: str


@dataclass(frozen=True)
class EventOutcome:
    """Authority outcome for one submitted document."""

    document_id: str
    accepted: bool
    receipt_number: str | None = None
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class PollResult:
    """
    Outcomes known so far for a protocol.

    ``outcomes`` may be partial.  A ``batch_error_code`` means the
    authority refused the batch as a whole.
    """

    protocol_number: str
    outcomes: tuple[EventOutcome, ...] = ()
    batch_error_code: str | None = None
    batch_error_message: str | None = None


@dataclass(frozen=True)
class BatchResult:
    """What ``check_batch_result`` reports back to the caller."""

    batch: SubmissionBatch
    accepted: int = 0
    rejected: int = 0
    pending: int = 0
    applied: int = 0  # Outcomes that changed an event in this call

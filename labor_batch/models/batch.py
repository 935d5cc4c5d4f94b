"""
ORM model for submission batch persistence.

Contract:
    SubmissionBatchModel persists one batch: its group, lifecycle status,
    the authority's protocol number, the last transport error and the
    processing summary.  ``to_dto()`` / ``from_dto()`` round-trip methods.

Architecture: labor_batch/models. Imports from labor_kernel.db.base only.

Invariants enforced:
    - At most one OPEN/CLOSED/SENDING batch per (company, group): partial
      unique index ``uq_submission_batch_active_group``.
    - ``batch_number`` is allocated per company via SequenceService.
    - Membership lives on the event row (``reporting_events.batch_id``).
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from labor_kernel.db.base import TrackedBase

if TYPE_CHECKING:
    from labor_batch.domain.types import SubmissionBatch

_ACTIVE_STATUSES = text("status IN ('OPEN', 'CLOSED', 'SENDING')")


class SubmissionBatchModel(TrackedBase):
    """Persistent submission batch record."""

    __tablename__ = "submission_batches"

    __table_args__ = (
        Index(
            "uq_submission_batch_active_group",
            "company_id",
            "group_type",
            unique=True,
            sqlite_where=_ACTIVE_STATUSES,
            postgresql_where=_ACTIVE_STATUSES,
        ),
        Index("ix_submission_batches_company_status", "company_id", "status"),
        Index("ix_submission_batches_protocol", "protocol_number"),
    )

    company_id: Mapped[UUID] = mapped_column(nullable=False)
    batch_number: Mapped[int] = mapped_column(nullable=False)
    group_type: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    protocol_number: Mapped[str | None] = mapped_column(String(60), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    result_summary: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_error_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    error_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    def to_dto(self, event_count: int = 0) -> SubmissionBatch:
        from labor_batch.domain.types import BatchStatus, SubmissionBatch
        from labor_events.catalog import GroupType

        return SubmissionBatch(
            id=self.id,
            company_id=self.company_id,
            batch_number=self.batch_number,
            group=GroupType(self.group_type),
            status=BatchStatus(self.status),
            event_count=event_count,
            protocol_number=self.protocol_number,
            created_at=self.created_at,
            closed_at=self.closed_at,
            sent_at=self.sent_at,
            processed_at=self.processed_at,
            result_summary=dict(self.result_summary) if self.result_summary else None,
            last_error=self.last_error,
            last_error_at=self.last_error_at,
            error_count=self.error_count or 0,
        )

    @classmethod
    def from_dto(cls, dto: SubmissionBatch, created_by_id: UUID) -> SubmissionBatchModel:
        return cls(
            id=dto.id,
            company_id=dto.company_id,
            batch_number=dto.batch_number,
            group_type=dto.group.value,
            status=dto.status.value,
            protocol_number=dto.protocol_number,
            closed_at=dto.closed_at,
            sent_at=dto.sent_at,
            processed_at=dto.processed_at,
            result_summary=dto.result_summary,
            last_error=dto.last_error,
            last_error_at=dto.last_error_at,
            error_count=dto.error_count,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return f"<SubmissionBatchModel #{self.batch_number} {self.group_type} ({self.status})>"

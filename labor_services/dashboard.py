"""
Reporting dashboard (``labor_services.dashboard``).

Aggregate counts over the current revision of every event of a company:
per status, type and group, the pending/sent/accepted/rejected totals,
overdue obligations, open batches and the last submission time.

Superseded revisions (a REJECTED event regenerated as a new revision) are
left out so one obligation is counted once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from labor_batch.domain.types import NON_TERMINAL_BATCH_STATUSES
from labor_batch.models.batch import SubmissionBatchModel
from labor_events.models import PENDING_EVENT_STATUSES, EventStatus
from labor_events.orm import ReportingEventModel
from labor_kernel.domain.clock import Clock, SystemClock

# Statuses that no longer owe a submission
_NOT_OVERDUE = (
    EventStatus.SENT.value,
    EventStatus.ACCEPTED.value,
    EventStatus.CANCELLED.value,
    EventStatus.EXCLUDED.value,
)


@dataclass(frozen=True)
class Dashboard:
    company_id: UUID
    current_period: str
    total_events: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_type: dict[str, int] = field(default_factory=dict)
    by_group: dict[str, int] = field(default_factory=dict)
    pending_count: int = 0
    sent_count: int = 0
    accepted_count: int = 0
    rejected_count: int = 0
    overdue_count: int = 0
    open_batches: int = 0
    last_sent_at: datetime | None = None


class DashboardService:
    def __init__(self, session: Session, clock: Clock | None = None):
        self._session = session
        self._clock = clock or SystemClock()

    def _grouped(self, company_id: UUID, column) -> dict[str, int]:
        rows = self._session.execute(
            select(column, func.count(ReportingEventModel.id))
            .where(
                ReportingEventModel.company_id == company_id,
                ReportingEventModel.superseded_by_id.is_(None),
            )
            .group_by(column)
        ).all()
        return {key: count for key, count in rows}

    def get_dashboard(self, company_id: UUID) -> Dashboard:
        today = self._clock.today()
        by_status = self._grouped(company_id, ReportingEventModel.status)

        overdue = self._session.execute(
            select(func.count(ReportingEventModel.id)).where(
                ReportingEventModel.company_id == company_id,
                ReportingEventModel.superseded_by_id.is_(None),
                ReportingEventModel.status.not_in(_NOT_OVERDUE),
                ReportingEventModel.due_date.is_not(None),
                ReportingEventModel.due_date < today,
            )
        ).scalar_one()

        open_batches = self._session.execute(
            select(func.count(SubmissionBatchModel.id)).where(
                SubmissionBatchModel.company_id == company_id,
                SubmissionBatchModel.status.in_([s.value for s in NON_TERMINAL_BATCH_STATUSES]),
            )
        ).scalar_one()

        last_sent_at = self._session.execute(
            select(func.max(SubmissionBatchModel.sent_at)).where(
                SubmissionBatchModel.company_id == company_id,
            )
        ).scalar_one()

        return Dashboard(
            company_id=company_id,
            current_period=today.strftime("%Y-%m"),
            total_events=sum(by_status.values()),
            by_status=by_status,
            by_type=self._grouped(company_id, ReportingEventModel.event_type),
            by_group=self._grouped(company_id, ReportingEventModel.group_type),
            pending_count=sum(by_status.get(s.value, 0) for s in PENDING_EVENT_STATUSES),
            sent_count=by_status.get(EventStatus.SENT.value, 0),
            accepted_count=by_status.get(EventStatus.ACCEPTED.value, 0),
            rejected_count=by_status.get(EventStatus.REJECTED.value, 0),
            overdue_count=overdue,
            open_batches=open_batches,
            last_sent_at=last_sent_at,
        )

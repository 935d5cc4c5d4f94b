"""
Reporting event persistence helpers (``labor_events.store``).

Small query and mutation helpers shared by the generator, the event
service and the batch package.  Nothing here commits.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from labor_events.catalog import EventType
from labor_events.models import EventStatus, FieldError
from labor_events.orm import ReportingEventModel
from labor_events.workflows import transition_event
from labor_kernel.exceptions import EventNotFoundError


def load_event_model(
    session: Session,
    company_id: UUID,
    event_id: UUID,
    *,
    for_update: bool = False,
) -> ReportingEventModel:
    """Load one event of a company or raise ``EventNotFoundError``."""
    stmt = select(ReportingEventModel).where(
        ReportingEventModel.id == event_id,
        ReportingEventModel.company_id == company_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    model = session.execute(stmt).scalar_one_or_none()
    if model is None:
        raise EventNotFoundError(str(event_id))
    return model


def latest_revision(session: Session, business_key: str) -> ReportingEventModel | None:
    return session.execute(
        select(ReportingEventModel)
        .where(ReportingEventModel.business_key == business_key)
        .order_by(ReportingEventModel.revision.desc())
        .limit(1)
    ).scalar_one_or_none()


def count_open_periodic_events(
    session: Session,
    company_id: UUID,
    year: int,
    month: int,
    event_types: Sequence[EventType] = (EventType.S_1200, EventType.S_1210),
) -> int:
    """Periodic events of the month that still block period closing."""
    blocking = (
        EventStatus.DRAFT,
        EventStatus.VALIDATED,
        EventStatus.QUEUED,
        EventStatus.SENT,
        EventStatus.REJECTED,
    )
    return session.execute(
        select(func.count(ReportingEventModel.id)).where(
            ReportingEventModel.company_id == company_id,
            ReportingEventModel.event_type.in_([t.value for t in event_types]),
            ReportingEventModel.reference_year == year,
            ReportingEventModel.reference_month == month,
            ReportingEventModel.status.in_([s.value for s in blocking]),
            ReportingEventModel.superseded_by_id.is_(None),
        )
    ).scalar_one()


def apply_validation(
    model: ReportingEventModel,
    errors: Sequence[FieldError],
    now: datetime,
) -> EventStatus:
    """
    Record validator output on a DRAFT or VALIDATED event and move it
    through the workflow: DRAFT -> VALIDATED when clean, VALIDATED -> DRAFT
    when errors appear.
    """
    model.validation_errors = [e.to_dict() for e in errors] or None
    status = EventStatus(model.status)
    if status == EventStatus.DRAFT and not errors:
        status = transition_event(model, "validate")
        model.validated_at = now
    elif status == EventStatus.VALIDATED and errors:
        status = transition_event(model, "invalidate")
        model.validated_at = None
    return status

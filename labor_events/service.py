"""
EventService -- queries and single-event commands on reporting events.

Contract:
    Read access for callers (``get_event``, ``list_events``) plus the
    commands that act on one event outside a batch: re-validation against
    the current context and local cancellation.

Architecture: labor_events.  Does NOT commit; the facade owns the
    transaction.

Invariants enforced:
    - Re-validation only touches DRAFT and VALIDATED events.  Queued and
      later events carry a built document and are never re-validated here.
    - Cancellation follows ``EVENT_WORKFLOW`` (DRAFT, VALIDATED, REJECTED).
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from labor_events.catalog import lookup
from labor_events.context import ContextLoader
from labor_events.models import EventFilter, EventPage, EventStatus, ReportingEvent
from labor_events.orm import ReportingEventModel
from labor_events.registry import HandlerRegistry, default_handler_registry
from labor_events.source import HRDataSource
from labor_events.store import apply_validation, load_event_model
from labor_events.workflows import transition_event
from labor_kernel.domain.clock import Clock, SystemClock
from labor_kernel.exceptions import InvalidEventTransitionError
from labor_kernel.logging_config import LogContext, get_logger

logger = get_logger("events.service")

_REVALIDATABLE = (EventStatus.DRAFT.value, EventStatus.VALIDATED.value)


def _filter_conditions(company_id: UUID, filters: EventFilter) -> list:
    conditions = [ReportingEventModel.company_id == company_id]
    if filters.status is not None:
        conditions.append(ReportingEventModel.status == EventStatus(filters.status).value)
    if filters.event_type is not None:
        conditions.append(ReportingEventModel.event_type == lookup(filters.event_type).event_type.value)
    if filters.group is not None:
        conditions.append(ReportingEventModel.group_type == filters.group.value)
    if filters.year is not None:
        conditions.append(ReportingEventModel.reference_year == filters.year)
    if filters.month is not None:
        conditions.append(ReportingEventModel.reference_month == filters.month)
    if filters.employee_id is not None:
        conditions.append(ReportingEventModel.employee_id == filters.employee_id)
    if filters.batch_id is not None:
        conditions.append(ReportingEventModel.batch_id == filters.batch_id)
    return conditions


class EventService:
    """Event queries, re-validation and cancellation."""

    def __init__(
        self,
        session: Session,
        source: HRDataSource,
        registry: HandlerRegistry | None = None,
        clock: Clock | None = None,
        context_loader: ContextLoader | None = None,
    ):
        self._session = session
        self._registry = registry or default_handler_registry()
        self._clock = clock or SystemClock()
        self._contexts = context_loader or ContextLoader(session, source, self._clock)

    def get_event(self, company_id: UUID, event_id: UUID) -> ReportingEvent:
        return load_event_model(self._session, company_id, event_id).to_dto()

    def list_events(self, company_id: UUID, filters: EventFilter | None = None) -> EventPage:
        """One page of events, newest reference period first."""
        filters = filters or EventFilter()
        if filters.limit < 1 or filters.offset < 0:
            raise ValueError("limit must be >= 1 and offset >= 0")
        conditions = _filter_conditions(company_id, filters)

        total = self._session.execute(
            select(func.count(ReportingEventModel.id)).where(*conditions)
        ).scalar_one()
        rows = self._session.execute(
            select(ReportingEventModel)
            .where(*conditions)
            .order_by(
                ReportingEventModel.reference_year.desc(),
                ReportingEventModel.reference_month.desc(),
                ReportingEventModel.event_type,
                ReportingEventModel.business_key,
                ReportingEventModel.revision.desc(),
            )
            .limit(filters.limit)
            .offset(filters.offset)
        ).scalars().all()
        return EventPage(events=tuple(row.to_dto() for row in rows), total=total)

    def validate_event(self, company_id: UUID, event_id: UUID, actor_id: UUID) -> ReportingEvent:
        """
        Re-run the validator of a DRAFT or VALIDATED event.

        Raises:
            EventNotFoundError: Unknown event.
            InvalidEventTransitionError: Event is past validation.
        """
        with LogContext.bind(company_id=company_id, event_id=event_id, actor_id=actor_id):
            model = load_event_model(self._session, company_id, event_id, for_update=True)
            if model.status not in _REVALIDATABLE:
                raise InvalidEventTransitionError(str(event_id), model.status, "validate")

            handler = self._registry.get(model.event_type)
            basis = self._contexts.basis(company_id)
            referenced = None
            if model.references_event_id is not None:
                referenced = self._session.get(ReportingEventModel, model.references_event_id)
            ctx = self._contexts.context_for(
                basis,
                handler.event_type,
                model.reference_year,
                model.reference_month,
                referenced_event=referenced,
            )
            errors = handler.validate(dict(model.payload), ctx)
            previous = model.status
            status = apply_validation(model, errors, self._clock.now())
            model.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "event_validated",
                extra={
                    "event_type": model.event_type,
                    "from_status": previous,
                    "to_status": status.value,
                    "error_count": len(errors),
                },
            )
            return model.to_dto()

    def cancel_event(self, company_id: UUID, event_id: UUID, actor_id: UUID) -> ReportingEvent:
        """
        Locally retract an event that was never accepted.

        Raises:
            EventNotFoundError: Unknown event.
            InvalidEventTransitionError: Event is QUEUED, SENT or terminal.
        """
        with LogContext.bind(company_id=company_id, event_id=event_id, actor_id=actor_id):
            model = load_event_model(self._session, company_id, event_id, for_update=True)
            previous = model.status
            transition_event(model, "cancel")
            model.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "event_cancelled",
                extra={"event_type": model.event_type, "from_status": previous},
            )
            return model.to_dto()

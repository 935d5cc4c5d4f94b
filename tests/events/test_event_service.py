"""
Tests for EventService: queries, re-validation and cancellation.
"""

from uuid import uuid4

import pytest

from labor_events.catalog import EventType, GroupType
from labor_events.generator import EventGenerator
from labor_events.models import EventFilter, EventStatus
from labor_events.orm import ReportingEventModel
from labor_events.service import EventService
from labor_kernel.exceptions import EventNotFoundError, InvalidEventTransitionError


@pytest.fixture
def events(session, hr_source, clock) -> EventService:
    return EventService(session, hr_source, clock=clock)


def _ids_of(result, event_type: EventType) -> list:
    return [o.event_id for o in result.outcomes if o.event_type == event_type]


class TestListEvents:
    def test_all_current_events(self, events, company_id, january_events):
        page = events.list_events(company_id)
        assert page.total == 7
        assert len(page.events) == 7

    @pytest.mark.parametrize(
        "filters, expected",
        [
            (EventFilter(status=EventStatus.DRAFT), 1),
            (EventFilter(status=EventStatus.VALIDATED), 6),
            (EventFilter(event_type=EventType.S_1200), 2),
            (EventFilter(group=GroupType.PERIODIC), 4),
            (EventFilter(group=GroupType.TABLES), 0),
            (EventFilter(year=2026, month=1), 4),
        ],
    )
    def test_filters(self, events, company_id, january_events, filters, expected):
        assert events.list_events(company_id, filters).total == expected

    def test_employee_filter(self, events, company_id, ana, january_events):
        page = events.list_events(company_id, EventFilter(employee_id=ana.id))
        assert page.total == 3
        assert {e.event_type for e in page.events} == {
            EventType.S_2200, EventType.S_1200, EventType.S_1210,
        }

    def test_paging(self, events, company_id, january_events):
        first = events.list_events(company_id, EventFilter(limit=3))
        last = events.list_events(company_id, EventFilter(limit=3, offset=6))
        assert (len(first.events), first.total) == (3, 7)
        assert (len(last.events), last.total) == (1, 7)

    def test_pages_do_not_overlap(self, events, company_id, january_events):
        seen = []
        for offset in range(0, 7, 2):
            seen.extend(e.id for e in events.list_events(company_id, EventFilter(limit=2, offset=offset)).events)
        assert len(seen) == len(set(seen)) == 7

    @pytest.mark.parametrize("limit, offset", [(0, 0), (10, -1)])
    def test_invalid_paging(self, events, company_id, limit, offset):
        with pytest.raises(ValueError):
            events.list_events(company_id, EventFilter(limit=limit, offset=offset))

    def test_other_company_sees_nothing(self, events, january_events):
        assert events.list_events(uuid4()).total == 0


class TestGetEvent:
    def test_returns_dto(self, events, company_id, january_events):
        event_id = _ids_of(january_events, EventType.S_1210)[0]
        event = events.get_event(company_id, event_id)
        assert event.id == event_id
        assert event.group == GroupType.PERIODIC
        assert event.period == "2026-01"

    def test_unknown(self, events, company_id):
        with pytest.raises(EventNotFoundError):
            events.get_event(company_id, uuid4())

    def test_other_company(self, events, january_events):
        event_id = january_events.outcomes[0].event_id
        with pytest.raises(EventNotFoundError):
            events.get_event(uuid4(), event_id)


class TestValidateEvent:
    def test_closing_validates_once_periodic_events_are_resolved(
        self, events, session, hr_source, clock, settings, company_id, actor_id, january_events,
    ):
        generator = EventGenerator(session, hr_source, clock=clock, settings=settings.generation)
        closing_result = generator.generate(company_id, 2026, 1, actor_id, event_types=["S-1299"])
        closing_id = closing_result.outcomes[0].event_id
        assert closing_result.outcomes[0].status == EventStatus.DRAFT

        for event_type in (EventType.S_1200, EventType.S_1210):
            for event_id in _ids_of(january_events, event_type):
                events.cancel_event(company_id, event_id, actor_id)

        closing = events.validate_event(company_id, closing_id, actor_id)
        assert closing.status == EventStatus.VALIDATED
        assert closing.validation_errors == ()

    def test_still_invalid_stays_draft(self, events, company_id, actor_id, carla, january_events):
        draft = events.list_events(company_id, EventFilter(status=EventStatus.DRAFT)).events[0]
        assert draft.employee_id == carla.id

        result = events.validate_event(company_id, draft.id, actor_id)
        assert result.status == EventStatus.DRAFT
        assert [e.code for e in result.validation_errors] == ["REQUIRED"]

    def test_sent_event_cannot_be_revalidated(self, events, session, company_id, actor_id, january_events):
        event_id = _ids_of(january_events, EventType.S_1200)[0]
        session.get(ReportingEventModel, event_id).status = EventStatus.SENT.value
        session.flush()

        with pytest.raises(InvalidEventTransitionError) as exc_info:
            events.validate_event(company_id, event_id, actor_id)
        assert exc_info.value.from_status == "SENT"


class TestCancelEvent:
    def test_cancel_draft(self, events, company_id, actor_id, january_events, captured_logs):
        draft = events.list_events(company_id, EventFilter(status=EventStatus.DRAFT)).events[0]

        cancelled = events.cancel_event(company_id, draft.id, actor_id)

        assert cancelled.status == EventStatus.CANCELLED
        assert any(r["message"] == "event_cancelled" for r in captured_logs())

    def test_cancelled_is_terminal(self, events, company_id, actor_id, january_events):
        event_id = _ids_of(january_events, EventType.S_2200)[0]
        events.cancel_event(company_id, event_id, actor_id)
        with pytest.raises(InvalidEventTransitionError):
            events.cancel_event(company_id, event_id, actor_id)

    def test_accepted_cannot_be_cancelled(self, events, session, company_id, actor_id, january_events):
        event_id = _ids_of(january_events, EventType.S_2200)[0]
        session.get(ReportingEventModel, event_id).status = EventStatus.ACCEPTED.value
        session.flush()

        with pytest.raises(InvalidEventTransitionError):
            events.cancel_event(company_id, event_id, actor_id)

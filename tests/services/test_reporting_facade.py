"""
Tests for the ReportingService facade: transaction ownership, redaction
and the end-to-end submission path.
"""

from datetime import date

import pytest

from labor_batch.domain.types import BatchStatus
from labor_events.catalog import EVENT_DEFINITIONS, EventType, GroupType
from labor_events.models import EventFilter, EventStatus, RubricInput, RubricType
from labor_kernel.exceptions import RubricOverlapError, TransportError


def _validated(service, group: GroupType) -> list:
    page = service.list_events(EventFilter(status=EventStatus.VALIDATED, group=group))
    return [e.id for e in page.events]


class TestTransactions:
    def test_generation_is_committed(self, service, session):
        service.generate_events(2026, 1)
        session.rollback()
        assert service.list_events().total == 7

    def test_failure_rolls_back(self, service, session, captured_logs):
        with pytest.raises(RubricOverlapError):
            service.create_rubric(
                RubricInput(
                    code="1000",
                    name="Duplicate salary",
                    rubric_type=RubricType.EARNING,
                    nature_code="1000",
                    start_date=date(2026, 1, 1),
                )
            )
        assert [r.code for r in service.list_rubrics()] == ["1000", "9201"]
        rolled_back = [r for r in captured_logs() if r["message"] == "operation_rolled_back"]
        assert rolled_back[0]["operation"] == "create_rubric"

    def test_transport_failure_state_is_committed(self, service, session, transport):
        service.generate_events(2026, 1)
        batch = service.create_batch(GroupType.PERIODIC)
        service.add_events_to_batch(batch.id, _validated(service, GroupType.PERIODIC))
        service.close_batch(batch.id)
        transport.fail_next_submit("connection reset")

        with pytest.raises(TransportError):
            service.send_batch(batch.id)
        session.rollback()

        stored = service.get_batch(batch.id)
        assert stored.status == BatchStatus.CLOSED
        assert stored.error_count == 1
        assert stored.last_error == "connection reset"


class TestConfiguration:
    def test_certificate_is_masked(self, service):
        assert service.get_config().certificate_ref == "***"

    def test_upsert_returns_masked_config(self, service):
        config = service.upsert_config(auto_send=True)
        assert config.auto_send
        assert config.certificate_ref == "***"

    def test_rubric_lifecycle(self, service, rubrics):
        salary = next(r for r in rubrics if r.code == "1000")
        successor = service.supersede_rubric(salary.id, date(2026, 3, 1), name="Base salary 2026")
        assert service.get_rubric(salary.id).end_date == date(2026, 2, 28)
        renamed = service.update_rubric(successor.id, description="Monthly base")
        assert renamed.description == "Monthly base"
        assert len(service.list_rubrics(rubric_type=RubricType.EARNING)) == 2


class TestCatalog:
    def test_event_definitions(self, service):
        definitions = service.get_event_definitions()
        assert definitions is EVENT_DEFINITIONS
        assert EventType.S_3000 in {d.event_type for d in definitions}


class TestSubmissionPath:
    def test_generate_send_accept_exclude(self, service, ana):
        service.generate_events(2026, 1)
        for group in (GroupType.NON_PERIODIC, GroupType.PERIODIC):
            batch = service.create_batch(group)
            added = service.add_events_to_batch(batch.id, _validated(service, group))
            assert added.rejections == ()
            service.close_batch(batch.id)
            assert service.validate_batch(batch.id).is_valid
            service.send_batch(batch.id)
            result = service.check_batch_result(batch.id)
            assert result.batch.status == BatchStatus.PROCESSED

        dashboard = service.get_dashboard()
        assert dashboard.accepted_count == 6
        assert dashboard.pending_count == 1

        admission = service.list_events(
            EventFilter(event_type=EventType.S_2200, employee_id=ana.id)
        ).events[0]
        exclusion = service.exclude_event(admission.id)
        batch = service.create_batch(GroupType.NON_PERIODIC)
        service.add_events_to_batch(batch.id, [exclusion.id])
        service.close_batch(batch.id)
        service.send_batch(batch.id)
        service.check_batch_result(batch.id)

        assert service.get_event(admission.id).status == EventStatus.EXCLUDED
        assert service.get_event(exclusion.id).status == EventStatus.ACCEPTED

    def test_cancel_and_validate_through_facade(self, service):
        service.generate_events(2026, 1)
        draft = service.list_events(EventFilter(status=EventStatus.DRAFT)).events[0]

        assert service.validate_event(draft.id).status == EventStatus.DRAFT
        assert service.cancel_event(draft.id).status == EventStatus.CANCELLED

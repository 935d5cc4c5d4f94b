"""
Tests for DispatchCycle: the scheduler-driven generate/send/poll pass.
"""

from datetime import datetime, timezone
from uuid import uuid4

from labor_batch.domain.types import BatchFilter, BatchStatus
from labor_config.schema import DispatchSettings
from labor_events.catalog import GroupType
from labor_services.dispatch import DispatchCycle
from labor_services.reporting_service import ReportingService


class TestSkips:
    def test_inactive_company_is_skipped(self, service, clock, transport):
        service.upsert_config(is_active=False, auto_send=True)

        report = DispatchCycle(service, clock=clock).run_once()

        assert report.skipped_reason == "reporting not active"
        assert transport.submitted == []

    def test_unconfigured_company_is_skipped(
        self, session, hr_source, transport, clock, settings, actor_id,
    ):
        other = ReportingService(
            session, uuid4(), actor_id, hr_source, transport, clock=clock, settings=settings,
        )
        report = DispatchCycle(other, clock=clock).run_once()
        assert report.skipped_reason == "reporting not active"

    def test_nothing_enabled_does_nothing(self, service, clock, transport):
        service.generate_events(2026, 1)

        report = DispatchCycle(service, clock=clock).run_once()

        assert report.skipped_reason is None
        assert report.generation is None
        assert report.batches_sent == ()
        assert transport.submitted == []


class TestAutoSend:
    def test_sends_one_batch_per_group_and_polls(self, service, clock, transport):
        service.generate_events(2026, 1)
        service.upsert_config(auto_send=True)

        report = DispatchCycle(service, clock=clock).run_once()

        assert len(report.batches_sent) == 2
        assert report.batches_polled == report.batches_sent
        assert report.failures == ()
        groups = [envelope.group for envelope in transport.submitted]
        assert groups == [GroupType.NON_PERIODIC, GroupType.PERIODIC]
        processed = service.list_batches(BatchFilter(status=BatchStatus.PROCESSED))
        assert len(processed) == 2
        assert service.get_dashboard().accepted_count == 6

    def test_send_failure_is_recorded_and_retried(self, service, clock, transport):
        service.generate_events(2026, 1)
        service.upsert_config(auto_send=True)
        transport.fail_next_submit("gateway timeout")

        first = DispatchCycle(service, clock=clock).run_once()

        assert [(f.operation, f.error) for f in first.failures] == [("send", "gateway timeout")]
        assert len(first.batches_sent) == 1
        failed_id = first.failures[0].batch_id
        assert service.get_batch(failed_id).status == BatchStatus.CLOSED

        second = DispatchCycle(service, clock=clock).run_once()

        assert second.batches_sent == (failed_id,)
        assert service.get_batch(failed_id).status == BatchStatus.PROCESSED

    def test_batch_limit_per_cycle(self, service, clock, transport):
        service.generate_events(2026, 1)
        service.upsert_config(auto_send=True)

        report = DispatchCycle(
            service, settings=DispatchSettings(max_batches_per_cycle=1), clock=clock,
        ).run_once()

        assert len(report.batches_sent) == 1
        assert len(transport.submitted) == 1


class TestPolling:
    def test_poll_failure_keeps_batch_sent(self, service, clock, transport):
        service.generate_events(2026, 1)
        service.upsert_config(auto_send=True)
        transport.fail_next_poll()

        report = DispatchCycle(service, clock=clock).run_once()

        assert [f.operation for f in report.failures] == ["poll"]
        assert len(report.batches_polled) == 1
        sent = service.list_batches(BatchFilter(status=BatchStatus.SENT))
        assert [b.id for b in sent] == [report.failures[0].batch_id]

    def test_pending_outcomes_are_polled_next_cycle(self, service, clock, transport):
        service.generate_events(2026, 1)
        batch = service.create_batch(GroupType.PERIODIC)
        event_ids = [
            e.id for e in service.list_events().events
            if e.group == GroupType.PERIODIC
        ]
        service.add_events_to_batch(batch.id, event_ids)
        service.close_batch(batch.id)
        service.send_batch(batch.id)

        report = DispatchCycle(service, clock=clock).run_once()

        assert report.batches_polled == (batch.id,)
        assert service.get_batch(batch.id).status == BatchStatus.PROCESSED


class TestAutoGenerate:
    def test_generates_current_period(self, service, clock, transport):
        clock.set_time(datetime(2026, 1, 31, 18, 0, 0, tzinfo=timezone.utc))
        service.upsert_config(auto_generate=True)

        report = DispatchCycle(service, clock=clock).run_once()

        assert report.generation.created == 7
        assert report.batches_sent == ()
        assert service.list_events().total == 7

    def test_missing_payroll_does_not_stop_cycle(self, service, clock, transport):
        service.upsert_config(auto_generate=True, auto_send=True)

        report = DispatchCycle(service, clock=clock).run_once()

        # February has no payroll and no admissions
        assert {e.code for e in report.generation.errors} == {"SOURCE_RECORD_NOT_FOUND"}
        assert report.batches_sent == ()

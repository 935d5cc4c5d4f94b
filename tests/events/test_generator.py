"""
Tests for EventGenerator: idempotent generation, regeneration of rejected
events, per-type error isolation and exclusion creation.
"""

from dataclasses import replace
from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import select

from labor_config.schema import GenerationSettings
from labor_events.catalog import EventType
from labor_events.config import ReportingConfigService
from labor_events.generator import EventGenerator
from labor_events.models import EventStatus, GenerationAction, LeaveRecord, TerminationRecord
from labor_events.orm import ReportingEventModel
from labor_kernel.exceptions import (
    ConfigurationNotFoundError,
    ExclusionPendingError,
    InvalidConfigurationError,
    InvalidEventTransitionError,
    UnknownEventTypeError,
)
from labor_kernel.utils.idempotency import derive_event_id, generate_business_key


@pytest.fixture
def generator(session, hr_source, clock, settings, reporting_config, rubrics) -> EventGenerator:
    return EventGenerator(session, hr_source, clock=clock, settings=settings.generation)


def _events(session, event_type: EventType | None = None) -> list[ReportingEventModel]:
    stmt = select(ReportingEventModel).order_by(
        ReportingEventModel.event_type, ReportingEventModel.subject_id, ReportingEventModel.revision,
    )
    if event_type is not None:
        stmt = stmt.where(ReportingEventModel.event_type == event_type.value)
    return list(session.execute(stmt).scalars())


def _admission_of(session, employee_id) -> ReportingEventModel:
    return session.execute(
        select(ReportingEventModel).where(
            ReportingEventModel.event_type == EventType.S_2200.value,
            ReportingEventModel.employee_id == employee_id,
            ReportingEventModel.superseded_by_id.is_(None),
        )
    ).scalar_one()


class TestGenerate:
    def test_january_obligations(self, generator, session, company_id, actor_id):
        result = generator.generate(company_id, 2026, 1, actor_id)

        assert result.errors == ()
        assert result.created == 7
        by_type = {}
        for outcome in result.outcomes:
            by_type.setdefault(outcome.event_type, []).append(outcome)
        assert len(by_type[EventType.S_2200]) == 3
        assert len(by_type[EventType.S_1200]) == 2
        assert len(by_type[EventType.S_1210]) == 2

    def test_valid_events_are_promoted(self, generator, session, company_id, actor_id, ana):
        generator.generate(company_id, 2026, 1, actor_id)

        admission = _admission_of(session, ana.id)
        assert admission.status == EventStatus.VALIDATED.value
        assert admission.validation_errors is None
        assert admission.validated_at is not None
        assert admission.due_date == date(2026, 1, 13)
        assert admission.group_type == "NON_PERIODIC"

    def test_missing_tax_id_stays_draft(self, generator, session, company_id, actor_id, carla):
        generator.generate(company_id, 2026, 1, actor_id)

        admission = _admission_of(session, carla.id)
        assert admission.status == EventStatus.DRAFT.value
        assert admission.validation_errors == [
            {"field": "tax_id", "code": "REQUIRED", "message": "Worker tax id is required"}
        ]

    def test_periodic_events_carry_period(self, generator, session, company_id, actor_id):
        generator.generate(company_id, 2026, 1, actor_id)

        for event in _events(session, EventType.S_1200):
            assert (event.reference_year, event.reference_month) == (2026, 1)
            assert event.business_key.endswith(":2026-01")
            assert event.due_date == date(2026, 2, 15)
            assert event.status == EventStatus.VALIDATED.value

    def test_event_id_is_derived_from_business_key(self, generator, session, company_id, actor_id, ana):
        generator.generate(company_id, 2026, 1, actor_id)

        admission = _admission_of(session, ana.id)
        key = generate_business_key(company_id, "S-2200", f"employee/{ana.id}")
        assert admission.business_key == key
        assert admission.id == derive_event_id(key, 1)

    def test_second_run_creates_nothing(self, generator, session, company_id, actor_id):
        generator.generate(company_id, 2026, 1, actor_id)
        second = generator.generate(company_id, 2026, 1, actor_id)

        assert second.created == 0
        assert second.updated == 0
        assert second.skipped == 7
        assert all(o.reason == "unchanged" for o in second.outcomes)
        assert len(_events(session)) == 7

    def test_fixed_source_data_refreshes_draft(
        self, generator, session, hr_source, company_id, actor_id, carla,
    ):
        generator.generate(company_id, 2026, 1, actor_id)
        hr_source.add_employee(replace(carla, tax_id="12345678909"))

        result = generator.generate(company_id, 2026, 1, actor_id, event_types=["S-2200"])

        updated = [o for o in result.outcomes if o.action == GenerationAction.UPDATED]
        assert [o.subject for o in updated] == [f"employee/{carla.id}"]
        admission = _admission_of(session, carla.id)
        assert admission.status == EventStatus.VALIDATED.value
        assert admission.revision == 1
        assert admission.payload["tax_id"] == "12345678909"

    def test_broken_source_data_demotes_validated(
        self, generator, session, hr_source, company_id, actor_id, ana,
    ):
        generator.generate(company_id, 2026, 1, actor_id)
        hr_source.add_employee(replace(ana, contract_type="UNKNOWN"))

        generator.generate(company_id, 2026, 1, actor_id, event_types=["S-2200"])

        admission = _admission_of(session, ana.id)
        assert admission.status == EventStatus.DRAFT.value
        assert admission.validated_at is None

    def test_rejected_event_regenerates_as_new_revision(
        self, generator, session, company_id, actor_id, ana,
    ):
        generator.generate(company_id, 2026, 1, actor_id)
        original = _admission_of(session, ana.id)
        original.status = EventStatus.REJECTED.value
        session.flush()

        result = generator.generate(company_id, 2026, 1, actor_id, event_types=["S-2200"])

        assert result.created == 1
        revision_2 = _admission_of(session, ana.id)
        assert revision_2.revision == 2
        assert revision_2.id == derive_event_id(original.business_key, 2)
        assert revision_2.status == EventStatus.VALIDATED.value
        assert original.superseded_by_id == revision_2.id
        assert original.status == EventStatus.REJECTED.value

    @pytest.mark.parametrize("status", [EventStatus.QUEUED, EventStatus.ACCEPTED, EventStatus.CANCELLED])
    def test_events_past_validation_are_left_alone(
        self, generator, session, company_id, actor_id, ana, status,
    ):
        generator.generate(company_id, 2026, 1, actor_id)
        _admission_of(session, ana.id).status = status.value
        session.flush()

        result = generator.generate(company_id, 2026, 1, actor_id, event_types=["S-2200"])

        skipped = next(o for o in result.outcomes if o.subject == f"employee/{ana.id}")
        assert skipped.action == GenerationAction.SKIPPED
        assert skipped.reason == f"latest revision is {status.value}"

    def test_employee_filter(self, generator, session, company_id, actor_id, ana):
        result = generator.generate(company_id, 2026, 1, actor_id, employee_ids=[ana.id])
        assert result.created == 3
        assert {e.employee_id for e in _events(session)} == {ana.id}

    def test_parallel_validation_matches_sequential(
        self, session, hr_source, clock, company_id, actor_id, reporting_config, rubrics,
    ):
        generator = EventGenerator(
            session, hr_source, clock=clock, settings=GenerationSettings(max_workers=4),
        )
        result = generator.generate(company_id, 2026, 1, actor_id)
        assert result.created == 7
        statuses = sorted(e.status for e in _events(session))
        assert statuses == ["DRAFT"] + ["VALIDATED"] * 6

    def test_termination_and_leave_require_hire_date(
        self, generator, hr_source, session, company_id, actor_id, ana,
    ):
        hr_source.add_employee(replace(ana, hire_date=None))
        hr_source.terminations.append(
            TerminationRecord(uuid4(), ana.id, date(2026, 1, 28), "RESIGNATION")
        )
        hr_source.leaves.append(LeaveRecord(uuid4(), ana.id, "MEDICAL", date(2026, 1, 20)))

        generator.generate(company_id, 2026, 1, actor_id, event_types=["S-2299", "S-2230"])

        for event_type in (EventType.S_2299, EventType.S_2230):
            [event] = _events(session, event_type)
            assert event.status == EventStatus.DRAFT.value
            assert {"field": "hire_date", "code": "REQUIRED", "message": "Hire date is required"} in (
                event.validation_errors
            )


class TestGenerationErrors:
    def test_missing_payroll_is_per_type(self, generator, session, company_id, actor_id):
        result = generator.generate(
            company_id, 2026, 2, actor_id, event_types=["S-2200", "S-1200", "S-1210"],
        )
        assert result.created == 0
        assert [(e.event_type, e.code) for e in result.errors] == [
            (EventType.S_1200, "SOURCE_RECORD_NOT_FOUND"),
            (EventType.S_1210, "SOURCE_RECORD_NOT_FOUND"),
        ]

    def test_payroll_error_does_not_block_other_types(
        self, generator, session, hr_source, company_id, actor_id,
    ):
        hr_source.payrolls.clear()
        result = generator.generate(company_id, 2026, 1, actor_id)
        assert result.created == 3
        assert len(result.errors) == 2

    def test_type_without_handler_is_reported(self, generator, company_id, actor_id):
        result = generator.generate(company_id, 2026, 1, actor_id, event_types=["S-2205"])
        assert [e.code for e in result.errors] == ["UNKNOWN_EVENT_TYPE"]

    def test_exclusion_type_is_not_collectable(self, generator, company_id, actor_id):
        result = generator.generate(company_id, 2026, 1, actor_id, event_types=["S-3000"])
        assert [e.code for e in result.errors] == ["NOT_COLLECTABLE"]

    def test_unknown_type_raises(self, generator, company_id, actor_id):
        with pytest.raises(UnknownEventTypeError):
            generator.generate(company_id, 2026, 1, actor_id, event_types=["S-9999"])

    @pytest.mark.parametrize("month", [0, 13])
    def test_invalid_month(self, generator, company_id, actor_id, month):
        with pytest.raises(ValueError):
            generator.generate(company_id, 2026, month, actor_id)

    def test_missing_configuration_is_fatal(self, session, hr_source, clock, company_id, actor_id):
        generator = EventGenerator(session, hr_source, clock=clock)
        with pytest.raises(ConfigurationNotFoundError):
            generator.generate(company_id, 2026, 1, actor_id)

    def test_inactive_configuration_is_fatal(self, generator, session, company_id, actor_id):
        ReportingConfigService(session).upsert(company_id, actor_id, is_active=False)
        with pytest.raises(InvalidConfigurationError):
            generator.generate(company_id, 2026, 1, actor_id)


class TestPeriodClosing:
    def test_closing_waits_for_periodic_events(self, generator, session, company_id, actor_id):
        generator.generate(company_id, 2026, 1, actor_id)
        generator.generate(company_id, 2026, 1, actor_id, event_types=["S-1299"])

        closing = _events(session, EventType.S_1299)[0]
        assert closing.status == EventStatus.DRAFT.value
        assert [e["code"] for e in closing.validation_errors] == ["PERIODIC_EVENTS_PENDING"]

    def test_closing_validates_when_nothing_pending(self, generator, session, company_id, actor_id):
        generator.generate(company_id, 2026, 1, actor_id, event_types=["S-1299"])

        closing = _events(session, EventType.S_1299)[0]
        assert closing.status == EventStatus.VALIDATED.value
        assert closing.subject_id == "2026-01"


class TestExclusion:
    def _accepted_admission(self, generator, session, company_id, actor_id, employee):
        generator.generate(company_id, 2026, 1, actor_id, event_types=["S-2200"])
        admission = _admission_of(session, employee.id)
        admission.status = EventStatus.ACCEPTED.value
        admission.receipt_number = "1.2.0000000000042"
        session.flush()
        return admission

    def test_exclusion_references_original(self, generator, session, company_id, actor_id, ana):
        original = self._accepted_admission(generator, session, company_id, actor_id, ana)

        exclusion = generator.create_exclusion(company_id, original.id, actor_id)

        assert exclusion.event_type == EventType.S_3000
        assert exclusion.status == EventStatus.VALIDATED
        assert exclusion.references_event_id == original.id
        assert exclusion.payload["receipt_number"] == "1.2.0000000000042"
        assert exclusion.payload["event_type"] == "S-2200"
        assert exclusion.business_key.endswith(f":S-3000:event/{original.id}:-")
        # The original only moves once the exclusion is accepted
        assert original.status == EventStatus.ACCEPTED.value

    def test_second_exclusion_is_pending(self, generator, session, company_id, actor_id, ana):
        original = self._accepted_admission(generator, session, company_id, actor_id, ana)
        first = generator.create_exclusion(company_id, original.id, actor_id)

        with pytest.raises(ExclusionPendingError) as exc_info:
            generator.create_exclusion(company_id, original.id, actor_id)
        assert exc_info.value.exclusion_event_id == str(first.id)

    def test_cancelled_exclusion_can_be_requested_again(
        self, generator, session, company_id, actor_id, ana,
    ):
        original = self._accepted_admission(generator, session, company_id, actor_id, ana)
        first = generator.create_exclusion(company_id, original.id, actor_id)
        session.get(ReportingEventModel, first.id).status = EventStatus.CANCELLED.value
        session.flush()

        second = generator.create_exclusion(company_id, original.id, actor_id)
        assert second.revision == 2

    def test_only_accepted_events_can_be_excluded(self, generator, session, company_id, actor_id, ana):
        generator.generate(company_id, 2026, 1, actor_id, event_types=["S-2200"])
        admission = _admission_of(session, ana.id)

        with pytest.raises(InvalidEventTransitionError):
            generator.create_exclusion(company_id, admission.id, actor_id)


class TestGenerationLogging:
    def test_summary_logged(self, generator, company_id, actor_id, captured_logs):
        generator.generate(company_id, 2026, 1, actor_id)

        summary = next(r for r in captured_logs() if r["message"] == "events_generated")
        assert summary["created_count"] == 7
        assert summary["error_count"] == 0
        assert summary["period"] == "2026-01"
        assert summary["company_id"] == str(company_id)

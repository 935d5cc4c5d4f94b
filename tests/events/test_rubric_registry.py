"""
Tests for the rubric registry: validity windows, non-overlap and
historical immutability.
"""

from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import select

from labor_events.models import Incidence, RubricInput, RubricType
from labor_events.orm import RubricModel
from labor_events.rubrics import RubricRegistry
from labor_kernel.exceptions import (
    ConflictError,
    ImmutabilityViolationError,
    InvalidRubricError,
    RubricImmutableError,
    RubricNotFoundError,
    RubricOverlapError,
)


def _input(code="101", start=date(2025, 1, 1), end=None, **overrides) -> RubricInput:
    values = dict(
        code=code,
        name="Overtime",
        rubric_type=RubricType.EARNING,
        nature_code="1003",
        start_date=start,
        end_date=end,
    )
    values.update(overrides)
    return RubricInput(**values)


@pytest.fixture
def registry(session) -> RubricRegistry:
    return RubricRegistry(session)


class TestCreate:
    def test_create_and_get(self, registry, company_id, actor_id):
        rubric = registry.create(company_id, _input(), actor_id)
        assert registry.get(company_id, rubric.id) == rubric
        assert rubric.is_active
        assert rubric.incidence_income_tax == Incidence.NORMAL

    def test_overlap_with_open_ended_rubric_fails(self, registry, company_id, actor_id):
        existing = registry.create(company_id, _input(), actor_id)
        with pytest.raises(RubricOverlapError) as exc_info:
            registry.create(company_id, _input(start=date(2026, 1, 1)), actor_id)
        assert exc_info.value.existing_rubric_id == str(existing.id)
        assert isinstance(exc_info.value, ConflictError)

    def test_adjacent_windows_do_not_overlap(self, registry, company_id, actor_id):
        registry.create(company_id, _input(end=date(2025, 12, 31)), actor_id)
        registry.create(company_id, _input(start=date(2026, 1, 1)), actor_id)
        assert len(registry.list(company_id)) == 2

    def test_same_code_other_company_is_independent(self, registry, company_id, actor_id):
        registry.create(company_id, _input(), actor_id)
        registry.create(uuid4(), _input(), actor_id)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"code": " "},
            {"name": ""},
            {"nature_code": ""},
            {"end": date(2024, 12, 31)},
        ],
    )
    def test_invalid_input(self, registry, company_id, actor_id, overrides):
        with pytest.raises(InvalidRubricError):
            registry.create(company_id, _input(**overrides), actor_id)

    def test_list_filters(self, registry, company_id, actor_id):
        registry.create(company_id, _input(code="101"), actor_id)
        registry.create(
            company_id, _input(code="900", rubric_type=RubricType.DEDUCTION), actor_id,
        )
        deductions = registry.list(company_id, rubric_type=RubricType.DEDUCTION)
        assert [r.code for r in deductions] == ["900"]

    def test_unknown_rubric(self, registry, company_id):
        with pytest.raises(RubricNotFoundError):
            registry.get(company_id, uuid4())


class TestUpdate:
    def test_mutable_fields(self, registry, company_id, actor_id):
        rubric = registry.create(company_id, _input(), actor_id)
        updated = registry.update(
            company_id, rubric.id, actor_id, name="Overtime 50%", end_date=date(2026, 6, 30),
        )
        assert updated.name == "Overtime 50%"
        assert updated.end_date == date(2026, 6, 30)

    def test_historical_field_refused(self, registry, company_id, actor_id):
        rubric = registry.create(company_id, _input(), actor_id)
        with pytest.raises(RubricImmutableError) as exc_info:
            registry.update(
                company_id, rubric.id, actor_id, incidence_income_tax=Incidence.EXEMPT,
            )
        assert exc_info.value.field == "incidence_income_tax"

    def test_unchanged_historical_value_is_accepted(self, registry, company_id, actor_id):
        rubric = registry.create(company_id, _input(), actor_id)
        registry.update(company_id, rubric.id, actor_id, rubric_type=RubricType.EARNING, name="x")

    def test_end_date_cannot_widen(self, registry, company_id, actor_id):
        rubric = registry.create(company_id, _input(end=date(2026, 6, 30)), actor_id)
        with pytest.raises(InvalidRubricError):
            registry.update(company_id, rubric.id, actor_id, end_date=date(2026, 12, 31))
        with pytest.raises(InvalidRubricError):
            registry.update(company_id, rubric.id, actor_id, end_date=None)

    def test_reactivation_checks_overlap(self, registry, company_id, actor_id):
        old = registry.create(company_id, _input(), actor_id)
        registry.update(company_id, old.id, actor_id, is_active=False)
        registry.create(company_id, _input(start=date(2026, 1, 1)), actor_id)
        with pytest.raises(RubricOverlapError):
            registry.update(company_id, old.id, actor_id, is_active=True)

    def test_unknown_field(self, registry, company_id, actor_id):
        rubric = registry.create(company_id, _input(), actor_id)
        with pytest.raises(InvalidRubricError):
            registry.update(company_id, rubric.id, actor_id, colour="blue")

    def test_orm_guard_blocks_direct_writes(self, registry, session, company_id, actor_id):
        rubric = registry.create(company_id, _input(), actor_id)
        model = session.execute(
            select(RubricModel).where(RubricModel.id == rubric.id)
        ).scalar_one()
        model.nature_code = "9999"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()


class TestSupersede:
    def test_supersede_closes_old_window(self, registry, company_id, actor_id):
        old = registry.create(company_id, _input(), actor_id)
        new = registry.supersede(
            company_id, old.id, date(2026, 3, 1), actor_id,
            incidence_income_tax=Incidence.EXEMPT,
        )
        assert registry.get(company_id, old.id).end_date == date(2026, 2, 28)
        assert new.start_date == date(2026, 3, 1)
        assert new.end_date is None
        assert new.code == old.code
        assert new.name == old.name
        assert new.incidence_income_tax == Incidence.EXEMPT

    def test_successor_on_day_after_closed_window_is_open_ended(
        self, registry, company_id, actor_id,
    ):
        old = registry.create(company_id, _input(code="500", end=date(2025, 6, 30)), actor_id)
        new = registry.supersede(company_id, old.id, date(2025, 7, 1), actor_id)

        assert registry.get(company_id, old.id).end_date == date(2025, 6, 30)
        assert new.start_date == date(2025, 7, 1)
        assert new.end_date is None

    def test_successor_keeps_later_end_date(self, registry, company_id, actor_id):
        old = registry.create(company_id, _input(end=date(2025, 12, 31)), actor_id)
        new = registry.supersede(company_id, old.id, date(2025, 7, 1), actor_id)

        assert registry.get(company_id, old.id).end_date == date(2025, 6, 30)
        assert new.end_date == date(2025, 12, 31)

    def test_snapshot_picks_window_by_period(self, registry, company_id, actor_id):
        old = registry.create(company_id, _input(), actor_id)
        new = registry.supersede(company_id, old.id, date(2026, 3, 1), actor_id, name="New")

        february = registry.snapshot(company_id, date(2026, 2, 1), date(2026, 2, 28))
        april = registry.snapshot(company_id, date(2026, 4, 1), date(2026, 4, 30))
        assert february.resolve("101").id == old.id
        assert april.resolve("101").id == new.id
        assert april.resolve("999") is None

    def test_successor_must_start_later(self, registry, company_id, actor_id):
        old = registry.create(company_id, _input(), actor_id)
        with pytest.raises(InvalidRubricError):
            registry.supersede(company_id, old.id, date(2025, 1, 1), actor_id)

    def test_code_cannot_change(self, registry, company_id, actor_id):
        old = registry.create(company_id, _input(), actor_id)
        with pytest.raises(RubricImmutableError):
            registry.supersede(company_id, old.id, date(2026, 3, 1), actor_id, code="102")

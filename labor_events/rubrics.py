"""
Rubric Registry (``labor_events.rubrics``).

Responsibility
--------------
Maintains the company's earning/deduction codes with their tax and
contribution incidences and validity windows.  Rubrics are historical
facts: a remuneration already reported under a rubric must keep
resolving to the same incidences, so incidence flags, type, nature,
code and start date never change in place.  The supported path for such
a change is ``supersede``: close the old window and open a new one.

Invariants enforced
-------------------
* No two ACTIVE rubrics with the same code and company have overlapping
  validity windows (an open ``end_date`` is unbounded).
* ``end_date`` may only move earlier, never before ``start_date``.
* Historical fields are immutable (service check here, ORM listener in
  ``labor_events.immutability`` as the backstop).

Non-goals
---------
* Does NOT commit; the caller owns the transaction.
"""

from __future__ import annotations

from dataclasses import fields as dataclass_fields
from datetime import date, timedelta
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from labor_events.models import Incidence, Rubric, RubricInput, RubricSnapshot, RubricType
from labor_events.orm import RubricModel
from labor_kernel.exceptions import (
    InvalidRubricError,
    RubricImmutableError,
    RubricNotFoundError,
    RubricOverlapError,
)
from labor_kernel.logging_config import get_logger

logger = get_logger("events.rubrics")

IMMUTABLE_FIELDS = (
    "code",
    "rubric_type",
    "nature_code",
    "start_date",
    "incidence_social_security",
    "incidence_income_tax",
    "incidence_severance_fund",
    "incidence_union_dues",
)

MUTABLE_FIELDS = ("name", "description", "end_date", "is_active")


def _windows_overlap(
    start_a: date, end_a: date | None, start_b: date, end_b: date | None,
) -> bool:
    return (end_b is None or start_a <= end_b) and (end_a is None or start_b <= end_a)


def _stored(value: Any) -> Any:
    return value.value if isinstance(value, (RubricType, Incidence)) else value


class RubricRegistry:
    """Service for rubric definitions of one session."""

    def __init__(self, session: Session):
        self._session = session

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def list(
        self,
        company_id: UUID,
        rubric_type: RubricType | None = None,
        is_active: bool | None = None,
    ) -> list[Rubric]:
        stmt = select(RubricModel).where(RubricModel.company_id == company_id)
        if rubric_type is not None:
            stmt = stmt.where(RubricModel.rubric_type == rubric_type.value)
        if is_active is not None:
            stmt = stmt.where(RubricModel.is_active == is_active)
        stmt = stmt.order_by(RubricModel.code, RubricModel.start_date)
        return [m.to_dto() for m in self._session.execute(stmt).scalars()]

    def get(self, company_id: UUID, rubric_id: UUID) -> Rubric:
        return self._load(company_id, rubric_id).to_dto()

    def snapshot(self, company_id: UUID, period_start: date, period_end: date) -> RubricSnapshot:
        """Rubrics active at any point of the period, keyed by code.

        When a code was superseded inside the period, the later window wins.
        """
        active = [
            r for r in self.list(company_id, is_active=True)
            if r.covers(period_start, period_end)
        ]
        return RubricSnapshot(
            period_start=period_start,
            period_end=period_end,
            rubrics={r.code: r for r in active},
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create(self, company_id: UUID, data: RubricInput, actor_id: UUID) -> Rubric:
        """
        Create a rubric.

        Raises:
            InvalidRubricError: Empty code/name/nature or end before start.
            RubricOverlapError: Active same-code rubric overlaps the window.
        """
        code = (data.code or "").strip()
        if not code or len(code) > 30:
            raise InvalidRubricError(code or "<empty>", "code must be 1..30 characters")
        if not (data.name or "").strip() or len(data.name) > 200:
            raise InvalidRubricError(code, "name must be 1..200 characters")
        if not (data.nature_code or "").strip():
            raise InvalidRubricError(code, "nature code is required")
        if data.end_date is not None and data.end_date < data.start_date:
            raise InvalidRubricError(code, "end date precedes start date")

        self._check_overlap(company_id, code, data.start_date, data.end_date)

        dto = Rubric(
            id=uuid4(),
            company_id=company_id,
            code=code,
            name=data.name.strip(),
            rubric_type=data.rubric_type,
            nature_code=data.nature_code.strip(),
            start_date=data.start_date,
            end_date=data.end_date,
            description=data.description,
            incidence_social_security=data.incidence_social_security,
            incidence_income_tax=data.incidence_income_tax,
            incidence_severance_fund=data.incidence_severance_fund,
            incidence_union_dues=data.incidence_union_dues,
        )
        self._session.add(RubricModel.from_dto(dto, created_by_id=actor_id))
        self._session.flush()

        logger.info(
            "rubric_created",
            extra={
                "rubric_id": str(dto.id),
                "rubric_code": code,
                "start_date": dto.start_date,
                "end_date": dto.end_date,
            },
        )
        return dto

    def update(self, company_id: UUID, rubric_id: UUID, actor_id: UUID, **changes: Any) -> Rubric:
        """
        Apply permitted changes: name, description, narrowing end_date, is_active.

        Raises:
            RubricNotFoundError: Unknown rubric.
            RubricImmutableError: A historical field would change.
            InvalidRubricError: Unknown field or widening/inverted end date.
            RubricOverlapError: Reactivation would overlap another active rubric.
        """
        model = self._load(company_id, rubric_id)

        for key, value in changes.items():
            if key in IMMUTABLE_FIELDS:
                if _stored(value) != getattr(model, key):
                    raise RubricImmutableError(str(rubric_id), key)
            elif key not in MUTABLE_FIELDS:
                raise InvalidRubricError(model.code, f"unknown field '{key}'")

        if "name" in changes:
            name = (changes["name"] or "").strip()
            if not name or len(name) > 200:
                raise InvalidRubricError(model.code, "name must be 1..200 characters")
            model.name = name
        if "description" in changes:
            model.description = changes["description"]
        if "end_date" in changes:
            new_end = changes["end_date"]
            if new_end is None and model.end_date is not None:
                raise InvalidRubricError(model.code, "end date can only move earlier")
            if new_end is not None:
                if new_end < model.start_date:
                    raise InvalidRubricError(model.code, "end date precedes start date")
                if model.end_date is not None and new_end > model.end_date:
                    raise InvalidRubricError(model.code, "end date can only move earlier")
            model.end_date = new_end
        if "is_active" in changes:
            activate = bool(changes["is_active"])
            if activate and not model.is_active:
                self._check_overlap(
                    company_id, model.code, model.start_date, model.end_date, exclude_id=model.id,
                )
            model.is_active = activate

        model.updated_by_id = actor_id
        self._session.flush()

        logger.info(
            "rubric_updated",
            extra={
                "rubric_id": str(rubric_id),
                "rubric_code": model.code,
                "fields": sorted(changes),
            },
        )
        return model.to_dto()

    def supersede(
        self,
        company_id: UUID,
        rubric_id: UUID,
        effective_from: date,
        actor_id: UUID,
        **changes: Any,
    ) -> Rubric:
        """
        Close ``rubric_id`` the day before ``effective_from`` and create its
        successor carrying ``changes`` (any field except ``code``).
        """
        model = self._load(company_id, rubric_id)
        if "code" in changes and changes["code"] != model.code:
            raise RubricImmutableError(str(rubric_id), "code")
        if effective_from <= model.start_date:
            raise InvalidRubricError(model.code, "successor must start after the current rubric")
        if model.end_date is not None and effective_from > model.end_date + timedelta(days=1):
            raise InvalidRubricError(model.code, "successor would leave a gap after the current window")

        current = model.to_dto()
        allowed = {f.name for f in dataclass_fields(RubricInput)} - {"code", "start_date"}
        unknown = set(changes) - allowed
        if unknown:
            raise InvalidRubricError(model.code, f"unknown field(s) {sorted(unknown)}")

        base = {name: getattr(current, name) for name in allowed}
        # an inherited end that falls before the successor's start leaves it open
        if current.end_date is not None and current.end_date >= effective_from:
            base["end_date"] = current.end_date
        else:
            base["end_date"] = None
        base.update(changes)

        model.end_date = effective_from - timedelta(days=1)
        model.updated_by_id = actor_id
        self._session.flush()

        successor = self.create(
            company_id,
            RubricInput(code=current.code, start_date=effective_from, **base),
            actor_id,
        )
        logger.info(
            "rubric_superseded",
            extra={
                "rubric_id": str(rubric_id),
                "successor_id": str(successor.id),
                "rubric_code": current.code,
                "effective_from": effective_from,
            },
        )
        return successor

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _load(self, company_id: UUID, rubric_id: UUID) -> RubricModel:
        model = self._session.execute(
            select(RubricModel).where(
                RubricModel.id == rubric_id,
                RubricModel.company_id == company_id,
            )
        ).scalar_one_or_none()
        if model is None:
            raise RubricNotFoundError(str(rubric_id))
        return model

    def _check_overlap(
        self,
        company_id: UUID,
        code: str,
        start: date,
        end: date | None,
        exclude_id: UUID | None = None,
    ) -> None:
        stmt = select(RubricModel).where(
            RubricModel.company_id == company_id,
            RubricModel.code == code,
            RubricModel.is_active.is_(True),
        )
        if exclude_id is not None:
            stmt = stmt.where(RubricModel.id != exclude_id)
        for other in self._session.execute(stmt).scalars():
            if _windows_overlap(start, end, other.start_date, other.end_date):
                raise RubricOverlapError(code, str(other.id))

"""
Event handler registry (``labor_events.registry``).

Contract:
    Maps each supported ``EventType`` to one ``EventHandler``: how to
    enumerate its obligations from the HR source (``collect``), how to
    validate a payload (``validate``) and how to render it (``build``).
    The generator and the batch manager only ever dispatch through this
    registry, so supporting a new event type means one catalog entry plus
    one ``register`` call.

Invariants enforced:
    - One handler per event type (duplicate registration raises ValueError).
    - Lookup of an unhandled type raises ``UnknownEventTypeError``.
"""

from __future__ import annotations

from calendar import monthrange
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable
from uuid import UUID

from labor_events import documents, payloads, validation
from labor_events.catalog import EventType, coerce_event_type
from labor_events.documents import DocumentBuilder
from labor_events.models import CompanyProfile, ReportingConfig, Rubric
from labor_events.source import HRDataSource
from labor_events.validation import Validator
from labor_kernel.exceptions import SourceRecordNotFoundError, UnknownEventTypeError

# =============================================================================
# Collection DTOs
# =============================================================================


@dataclass(frozen=True)
class CollectionScope:
    """What a collector may enumerate: one company, one reference month."""

    company: CompanyProfile
    config: ReportingConfig
    year: int
    month: int
    employee_ids: tuple[UUID, ...] | None = None
    rubrics: tuple[Rubric, ...] = ()

    @property
    def period_start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def period_end(self) -> date:
        return date(self.year, self.month, monthrange(self.year, self.month)[1])

    @property
    def period(self) -> str:
        return payloads.period_label(self.year, self.month)

    def includes(self, employee_id: UUID | None) -> bool:
        return self.employee_ids is None or employee_id in self.employee_ids


@dataclass(frozen=True)
class SourceItem:
    """One reporting obligation found in the HR source."""

    subject_type: str
    subject_id: str
    payload: dict[str, Any]
    employee_id: UUID | None = None
    reference_date: date | None = None
    year: int | None = None
    month: int | None = None

    @property
    def subject(self) -> str:
        return f"{self.subject_type}/{self.subject_id}"

    @property
    def period(self) -> str | None:
        if self.year is None or self.month is None:
            return None
        return payloads.period_label(self.year, self.month)


Collector = Callable[[HRDataSource, CollectionScope], list[SourceItem]]


@dataclass(frozen=True)
class EventHandler:
    event_type: EventType
    validate: Validator
    build: DocumentBuilder
    collect: Collector | None = None
    # Included when generation is requested without explicit types
    default: bool = False


# =============================================================================
# Collectors
# =============================================================================


def collect_employer(source: HRDataSource, scope: CollectionScope) -> list[SourceItem]:
    return [
        SourceItem(
            subject_type="employer",
            subject_id=str(scope.company.id),
            payload=payloads.employer_payload(scope.company, scope.config, scope.period_start),
        )
    ]


def collect_rubrics(source: HRDataSource, scope: CollectionScope) -> list[SourceItem]:
    return [
        SourceItem(
            subject_type="rubric",
            subject_id=str(rubric.id),
            payload=payloads.rubric_payload(rubric),
        )
        for rubric in scope.rubrics
        if rubric.covers(scope.period_start, scope.period_end)
    ]


def collect_admissions(source: HRDataSource, scope: CollectionScope) -> list[SourceItem]:
    return [
        SourceItem(
            subject_type="employee",
            subject_id=str(employee.id),
            payload=payloads.admission_payload(employee),
            employee_id=employee.id,
            reference_date=employee.hire_date,
        )
        for employee in source.list_admissions(
            scope.company.id, scope.period_start, scope.period_end, scope.employee_ids,
        )
        if scope.includes(employee.id)
    ]


def collect_terminations(source: HRDataSource, scope: CollectionScope) -> list[SourceItem]:
    items = []
    for termination in source.list_terminations(
        scope.company.id, scope.period_start, scope.period_end, scope.employee_ids,
    ):
        if not scope.includes(termination.employee_id):
            continue
        employee = source.get_employee(scope.company.id, termination.employee_id)
        items.append(
            SourceItem(
                subject_type="termination",
                subject_id=str(termination.id),
                payload=payloads.termination_payload(employee, termination),
                employee_id=termination.employee_id,
                reference_date=termination.termination_date,
            )
        )
    return items


def collect_leaves(source: HRDataSource, scope: CollectionScope) -> list[SourceItem]:
    items = []
    for leave in source.list_leaves(
        scope.company.id, scope.period_start, scope.period_end, scope.employee_ids,
    ):
        if not scope.includes(leave.employee_id):
            continue
        employee = source.get_employee(scope.company.id, leave.employee_id)
        items.append(
            SourceItem(
                subject_type="leave",
                subject_id=str(leave.id),
                payload=payloads.leave_payload(employee, leave),
                employee_id=leave.employee_id,
                reference_date=leave.start_date,
            )
        )
    return items


def _payroll_items(
    source: HRDataSource,
    scope: CollectionScope,
    build_payload: Callable[..., dict[str, Any]],
) -> list[SourceItem]:
    payroll = source.get_payroll(scope.company.id, scope.year, scope.month)
    if payroll is None:
        raise SourceRecordNotFoundError("Payroll", scope.period)
    items = []
    for payslip in payroll.payslips:
        if not scope.includes(payslip.employee_id):
            continue
        employee = source.get_employee(scope.company.id, payslip.employee_id)
        items.append(
            SourceItem(
                subject_type="employee",
                subject_id=str(payslip.employee_id),
                payload=build_payload(employee, payroll, payslip),
                employee_id=payslip.employee_id,
                reference_date=scope.period_end,
                year=scope.year,
                month=scope.month,
            )
        )
    return items


def collect_remunerations(source: HRDataSource, scope: CollectionScope) -> list[SourceItem]:
    return _payroll_items(source, scope, payloads.remuneration_payload)


def collect_payments(source: HRDataSource, scope: CollectionScope) -> list[SourceItem]:
    return _payroll_items(source, scope, payloads.payment_payload)


def collect_period_closing(source: HRDataSource, scope: CollectionScope) -> list[SourceItem]:
    payroll = source.get_payroll(scope.company.id, scope.year, scope.month)
    if payroll is None:
        raise SourceRecordNotFoundError("Payroll", scope.period)
    return [
        SourceItem(
            subject_type="period",
            subject_id=scope.period,
            payload=payloads.period_closing_payload(payroll),
            reference_date=scope.period_end,
            year=scope.year,
            month=scope.month,
        )
    ]


# =============================================================================
# Registry
# =============================================================================


class HandlerRegistry:
    """Registry of event handlers keyed by event type."""

    def __init__(self) -> None:
        self._handlers: dict[EventType, EventHandler] = {}

    def register(self, handler: EventHandler) -> None:
        if handler.event_type in self._handlers:
            raise ValueError(
                f"Handler for {handler.event_type.value} already registered"
            )
        self._handlers[handler.event_type] = handler

    def get(self, event_type: EventType | str) -> EventHandler:
        key = coerce_event_type(event_type)
        try:
            return self._handlers[key]
        except KeyError:
            raise UnknownEventTypeError(key.value, self.list_types()) from None

    def list_types(self) -> list[str]:
        return [t.value for t in self._handlers]

    def default_types(self) -> tuple[EventType, ...]:
        return tuple(t for t, h in self._handlers.items() if h.default and h.collect)

    def __contains__(self, event_type: object) -> bool:
        return event_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


def default_handler_registry() -> HandlerRegistry:
    """Registry wired with every event type the engine can produce."""
    registry = HandlerRegistry()
    for handler in (
        EventHandler(EventType.S_1000, validation.validate_employer, documents.build_employer, collect_employer),
        EventHandler(EventType.S_1010, validation.validate_rubric_table, documents.build_rubric_table, collect_rubrics),
        EventHandler(EventType.S_2200, validation.validate_admission, documents.build_admission, collect_admissions, default=True),
        EventHandler(EventType.S_2299, validation.validate_termination, documents.build_termination, collect_terminations, default=True),
        EventHandler(EventType.S_2230, validation.validate_leave, documents.build_leave, collect_leaves, default=True),
        EventHandler(EventType.S_1200, validation.validate_remuneration, documents.build_remuneration, collect_remunerations, default=True),
        EventHandler(EventType.S_1210, validation.validate_payment, documents.build_payment, collect_payments, default=True),
        EventHandler(EventType.S_1299, validation.validate_period_closing, documents.build_period_closing, collect_period_closing),
        # Exclusions are created on request, never collected
        EventHandler(EventType.S_3000, validation.validate_exclusion, documents.build_exclusion),
    ):
        registry.register(handler)
    return registry


def resolve_types(
    registry: HandlerRegistry,
    requested: Sequence[EventType | str] | None,
    configured_defaults: Sequence[str] = (),
) -> tuple[EventType, ...]:
    """Requested types, else configured defaults, else the registry defaults."""
    if requested:
        return tuple(dict.fromkeys(coerce_event_type(t) for t in requested))
    if configured_defaults:
        return tuple(dict.fromkeys(coerce_event_type(t) for t in configured_defaults))
    return registry.default_types()

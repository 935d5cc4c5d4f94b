"""
Labor Events Domain Models.

Responsibility
--------------
Frozen dataclass value objects for the reporting domain: the HR source
records the generator reads, the reporting event and rubric DTOs the
services return, company reporting configuration, field-level
validation errors and generation results.

Architecture position
---------------------
**Events layer** -- pure data definitions with ZERO I/O.  Consumed by
``validation``, ``documents``, ``generator``, the ORM mapping and the
batch package.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* Monetary amounts use ``Decimal``; payload amounts are stored as text.
* Code tables (contract types, termination reasons, leave types) are the
  only recognized source values; anything else is a validation error.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from labor_events.catalog import EventType, GroupType

# =============================================================================
# Status and classification enums
# =============================================================================


class EventStatus(str, Enum):
    """Reporting event lifecycle status."""

    DRAFT = "DRAFT"  # Generated; validation errors recorded
    VALIDATED = "VALIDATED"  # Passed validation; eligible for a batch
    QUEUED = "QUEUED"  # Member of a batch; document built
    SENT = "SENT"  # Submitted; awaiting outcome
    ACCEPTED = "ACCEPTED"  # Authority issued a receipt
    REJECTED = "REJECTED"  # Authority refused; eligible for regeneration
    CANCELLED = "CANCELLED"  # Locally retracted before acceptance
    EXCLUDED = "EXCLUDED"  # Accepted, then removed by an accepted exclusion


TERMINAL_EVENT_STATUSES = frozenset(
    {EventStatus.ACCEPTED, EventStatus.REJECTED, EventStatus.CANCELLED, EventStatus.EXCLUDED}
)

PENDING_EVENT_STATUSES = frozenset(
    {EventStatus.DRAFT, EventStatus.VALIDATED, EventStatus.QUEUED}
)


class RubricType(str, Enum):
    EARNING = "EARNING"
    DEDUCTION = "DEDUCTION"
    INFORMATIVE = "INFORMATIVE"


class Incidence(str, Enum):
    """Whether a rubric's amounts enter a contribution or tax base."""

    NORMAL = "NORMAL"
    EXEMPT = "EXEMPT"
    SUSPENDED = "SUSPENDED"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class Environment(str, Enum):
    PRODUCTION = "PRODUCTION"
    RESTRICTED = "RESTRICTED"  # Testing environment of the authority

    @property
    def code(self) -> str:
        return "1" if self is Environment.PRODUCTION else "2"


class PayrollStatus(str, Enum):
    OPEN = "OPEN"
    CALCULATED = "CALCULATED"
    CLOSED = "CLOSED"


# Source value -> authority code
CONTRACT_TYPE_CODES: dict[str, str] = {
    "CLT": "1",
    "TEMPORARY": "2",
    "APPRENTICE": "5",
    "INTERN": "9",
    "PJ": "0",
}

TERMINATION_REASON_CODES: dict[str, str] = {
    "RESIGNATION": "01",
    "DISMISSAL_NO_CAUSE": "02",
    "DISMISSAL_WITH_CAUSE": "03",
    "CONTRACT_END": "04",
    "RETIREMENT": "07",
    "DEATH": "10",
    "MUTUAL_AGREEMENT": "33",
}

LEAVE_TYPE_CODES: dict[str, str] = {
    "MEDICAL": "01",
    "MATERNITY": "06",
    "MARRIAGE": "15",
    "BEREAVEMENT": "16",
    "PATERNITY": "19",
    "MILITARY": "21",
    "JURY_DUTY": "22",
    "UNION": "23",
    "BLOOD_DONATION": "24",
    "OTHER": "99",
}

INCIDENCE_CODES: dict[str, str] = {
    "NORMAL": "11",
    "EXEMPT": "00",
    "SUSPENDED": "91",
    "NOT_APPLICABLE": "00",
}

RUBRIC_TYPE_CODES: dict[str, str] = {
    "EARNING": "1",
    "DEDUCTION": "2",
    "INFORMATIVE": "3",
}


# =============================================================================
# HR source records (read-only inputs from the HR/payroll data store)
# =============================================================================


@dataclass(frozen=True)
class CompanyProfile:
    id: UUID
    registration_number: str  # 14-digit employer registration
    legal_name: str


@dataclass(frozen=True)
class EmployeeRecord:
    id: UUID
    company_id: UUID
    code: str
    name: str
    tax_id: str | None
    civil_registry_number: str | None
    birth_date: date | None
    hire_date: date | None
    contract_type: str | None
    job_title: str | None = None
    salary: Decimal | None = None
    termination_date: date | None = None


@dataclass(frozen=True)
class TerminationRecord:
    id: UUID
    employee_id: UUID
    termination_date: date | None
    reason: str | None
    notice_date: date | None = None
    net_amount: Decimal | None = None


@dataclass(frozen=True)
class LeaveRecord:
    id: UUID
    employee_id: UUID
    leave_type: str | None
    start_date: date | None
    end_date: date | None = None


@dataclass(frozen=True)
class PayslipItem:
    rubric_code: str
    amount: Decimal
    quantity: Decimal | None = None


@dataclass(frozen=True)
class Payslip:
    id: UUID
    employee_id: UUID
    gross_amount: Decimal
    net_amount: Decimal
    items: tuple[PayslipItem, ...] = ()


@dataclass(frozen=True)
class PayrollRecord:
    id: UUID
    company_id: UUID
    year: int
    month: int
    status: PayrollStatus
    payment_date: date | None = None
    payslips: tuple[Payslip, ...] = ()


# =============================================================================
# Company reporting configuration
# =============================================================================


@dataclass(frozen=True)
class ReportingConfig:
    company_id: UUID
    environment: Environment
    employer_type: int
    software_id: str | None = None
    software_name: str | None = None
    certificate_ref: str | None = None
    certificate_expiry: date | None = None
    auto_generate: bool = False
    auto_send: bool = False
    is_active: bool = True

    def redacted(self) -> ReportingConfig:
        """Copy safe to return to callers: the certificate reference is masked."""
        if self.certificate_ref is None:
            return self
        return replace(self, certificate_ref="***")


# =============================================================================
# Rubrics
# =============================================================================


@dataclass(frozen=True)
class Rubric:
    id: UUID
    company_id: UUID
    code: str
    name: str
    rubric_type: RubricType
    nature_code: str
    start_date: date
    end_date: date | None = None
    description: str | None = None
    incidence_social_security: Incidence = Incidence.NORMAL
    incidence_income_tax: Incidence = Incidence.NORMAL
    incidence_severance_fund: Incidence = Incidence.NORMAL
    incidence_union_dues: Incidence = Incidence.NORMAL
    is_active: bool = True

    def covers(self, period_start: date, period_end: date) -> bool:
        """True when active and the validity window intersects the period."""
        if not self.is_active or self.start_date > period_end:
            return False
        return self.end_date is None or self.end_date >= period_start


@dataclass(frozen=True)
class RubricInput:
    """Fields accepted when creating a rubric."""

    code: str
    name: str
    rubric_type: RubricType
    nature_code: str
    start_date: date
    end_date: date | None = None
    description: str | None = None
    incidence_social_security: Incidence = Incidence.NORMAL
    incidence_income_tax: Incidence = Incidence.NORMAL
    incidence_severance_fund: Incidence = Incidence.NORMAL
    incidence_union_dues: Incidence = Incidence.NORMAL


@dataclass(frozen=True)
class RubricSnapshot:
    """Rubrics active during one period, keyed by code."""

    period_start: date
    period_end: date
    rubrics: dict[str, Rubric] = field(default_factory=dict)

    def resolve(self, code: str) -> Rubric | None:
        return self.rubrics.get(code)


# =============================================================================
# Validation
# =============================================================================


@dataclass(frozen=True)
class FieldError:
    """A field-level validation problem; returned as data, never raised."""

    field: str
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"field": self.field, "code": self.code, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> FieldError:
        return cls(field=data["field"], code=data["code"], message=data["message"])


# =============================================================================
# Reporting events
# =============================================================================


@dataclass(frozen=True)
class ReportingEvent:
    """A persisted reporting obligation and its submission state."""

    id: UUID
    company_id: UUID
    event_type: EventType
    group: GroupType
    status: EventStatus
    business_key: str
    revision: int
    subject_type: str
    subject_id: str
    payload: dict[str, Any]
    payload_hash: str
    employee_id: UUID | None = None
    reference_year: int | None = None
    reference_month: int | None = None
    reference_date: date | None = None
    due_date: date | None = None
    validation_errors: tuple[FieldError, ...] = ()
    batch_id: UUID | None = None
    batch_position: int | None = None
    sequence_number: int | None = None
    document_id: str | None = None
    document: str | None = None
    document_hash: str | None = None
    receipt_number: str | None = None
    submission_error: dict[str, str] | None = None
    references_event_id: UUID | None = None
    excluded_by_event_id: UUID | None = None
    superseded_by_id: UUID | None = None
    generated_at: datetime | None = None
    validated_at: datetime | None = None
    queued_at: datetime | None = None
    sent_at: datetime | None = None
    processed_at: datetime | None = None

    @property
    def period(self) -> str | None:
        if self.reference_year is None or self.reference_month is None:
            return None
        return f"{self.reference_year:04d}-{self.reference_month:02d}"

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_EVENT_STATUSES


@dataclass(frozen=True)
class EventFilter:
    status: EventStatus | None = None
    event_type: EventType | None = None
    group: GroupType | None = None
    year: int | None = None
    month: int | None = None
    employee_id: UUID | None = None
    batch_id: UUID | None = None
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True)
class EventPage:
    events: tuple[ReportingEvent, ...]
    total: int


# =============================================================================
# Generation results
# =============================================================================


class GenerationAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class GenerationOutcome:
    event_type: EventType
    subject: str
    action: GenerationAction
    event_id: UUID
    status: EventStatus
    reason: str | None = None


@dataclass(frozen=True)
class GenerationIssue:
    """A per-type or per-item failure that did not abort generation."""

    event_type: EventType
    code: str
    message: str
    subject: str | None = None


@dataclass(frozen=True)
class GenerationResult:
    outcomes: tuple[GenerationOutcome, ...] = ()
    errors: tuple[GenerationIssue, ...] = ()

    def _count(self, action: GenerationAction) -> int:
        return sum(1 for o in self.outcomes if o.action == action)

    @property
    def created(self) -> int:
        return self._count(GenerationAction.CREATED)

    @property
    def updated(self) -> int:
        return self._count(GenerationAction.UPDATED)

    @property
    def skipped(self) -> int:
        return self._count(GenerationAction.SKIPPED)

"""
Event validators (``labor_events.validation``).

Responsibility
--------------
Pure per-category rule sets over normalized event payloads.  Each
validator returns an ordered list of ``FieldError``; an empty list means
the event may be promoted to VALIDATED.  Validators never raise for bad
data and never touch the session: everything they need beyond the
payload arrives in a ``ValidationContext`` loaded by the caller.

Invariants enforced
-------------------
* Same payload and context always produce the same errors in the same order.
* Missing values are reported, not assumed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable

from labor_events.catalog import EventType, GroupType, event_group
from labor_events.models import (
    CONTRACT_TYPE_CODES,
    LEAVE_TYPE_CODES,
    TERMINATION_REASON_CODES,
    CompanyProfile,
    EventStatus,
    FieldError,
    PayrollStatus,
    ReportingConfig,
    ReportingEvent,
    RubricSnapshot,
)

_NON_DIGITS = re.compile(r"\D")

Validator = Callable[[dict[str, Any], "ValidationContext"], list[FieldError]]


@dataclass(frozen=True)
class ValidationContext:
    """Everything a validator may consult besides the payload."""

    company: CompanyProfile
    config: ReportingConfig
    as_of: date
    rubrics: RubricSnapshot | None = None
    referenced_event: ReportingEvent | None = None
    pending_periodic_events: int = 0


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def digits_only(value: str | None) -> str:
    return _NON_DIGITS.sub("", value or "")


def is_valid_tax_id(value: str | None) -> bool:
    """11 digits with both check digits correct; repeated-digit ids are invalid."""
    digits = digits_only(value)
    if len(digits) != 11 or len(set(digits)) == 1:
        return False
    numbers = [int(d) for d in digits]
    for position in (9, 10):
        total = sum(n * (position + 1 - i) for i, n in enumerate(numbers[:position]))
        check = (total * 10) % 11 % 10
        if numbers[position] != check:
            return False
    return True


def _date(payload: dict[str, Any], key: str) -> date | None:
    value = payload.get(key)
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def _required(payload: dict[str, Any], key: str, label: str) -> FieldError | None:
    value = payload.get(key)
    if value is None or (isinstance(value, str) and not value.strip()):
        return FieldError(key, "REQUIRED", f"{label} is required")
    return None


def _required_date(
    payload: dict[str, Any], key: str, label: str, errors: list[FieldError],
) -> date | None:
    if payload.get(key) in (None, ""):
        errors.append(FieldError(key, "REQUIRED", f"{label} is required"))
        return None
    parsed = _date(payload, key)
    if parsed is None:
        errors.append(FieldError(key, "INVALID_DATE", f"{label} is not a valid date"))
    return parsed


def _check_tax_id(payload: dict[str, Any], errors: list[FieldError]) -> None:
    if not payload.get("tax_id"):
        errors.append(FieldError("tax_id", "REQUIRED", "Worker tax id is required"))
    elif not is_valid_tax_id(payload["tax_id"]):
        errors.append(FieldError("tax_id", "INVALID_TAX_ID", "Worker tax id is invalid"))


def _check_payroll_closed(payload: dict[str, Any], errors: list[FieldError]) -> None:
    if payload.get("payroll_status") != PayrollStatus.CLOSED.value:
        errors.append(
            FieldError(
                "payroll_status",
                "PAYROLL_NOT_CLOSED",
                f"Payroll for {payload.get('period')} is not closed",
            )
        )


# ---------------------------------------------------------------------------
# Category validators
# ---------------------------------------------------------------------------


def validate_employer(payload: dict[str, Any], ctx: ValidationContext) -> list[FieldError]:
    errors: list[FieldError] = []
    if len(digits_only(payload.get("registration_number"))) != 14:
        errors.append(
            FieldError(
                "registration_number",
                "INVALID_REGISTRATION",
                "Employer registration must have 14 digits",
            )
        )
    if err := _required(payload, "legal_name", "Legal name"):
        errors.append(err)
    employer_type = payload.get("employer_type")
    if not isinstance(employer_type, int) or not 1 <= employer_type <= 9:
        errors.append(
            FieldError("employer_type", "INVALID_EMPLOYER_TYPE", "Employer type must be 1..9")
        )
    if err := _required(payload, "software_id", "Software id"):
        errors.append(err)
    return errors


def validate_rubric_table(payload: dict[str, Any], ctx: ValidationContext) -> list[FieldError]:
    errors: list[FieldError] = []
    for key, label in (("code", "Rubric code"), ("name", "Rubric name"), ("nature_code", "Nature code")):
        if err := _required(payload, key, label):
            errors.append(err)
    start = _required_date(payload, "start_date", "Start date", errors)
    end = _date(payload, "end_date")
    if start and end and end < start:
        errors.append(
            FieldError("end_date", "END_BEFORE_START", "End date precedes start date")
        )
    return errors


def validate_admission(payload: dict[str, Any], ctx: ValidationContext) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_tax_id(payload, errors)
    if err := _required(payload, "civil_registry_number", "Civil registry number"):
        errors.append(err)
    if err := _required(payload, "name", "Worker name"):
        errors.append(err)
    _required_date(payload, "birth_date", "Birth date", errors)
    hire_date = _required_date(payload, "hire_date", "Hire date", errors)
    if hire_date and hire_date > ctx.as_of:
        errors.append(
            FieldError("hire_date", "FUTURE_DATE", "Hire date cannot be in the future")
        )
    if payload.get("contract_type") not in CONTRACT_TYPE_CODES:
        errors.append(
            FieldError(
                "contract_type",
                "UNKNOWN_CONTRACT_TYPE",
                f"Contract type {payload.get('contract_type')!r} is not recognized",
            )
        )
    return errors


def validate_termination(payload: dict[str, Any], ctx: ValidationContext) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_tax_id(payload, errors)
    termination_date = _required_date(payload, "termination_date", "Termination date", errors)
    hire_date = _required_date(payload, "hire_date", "Hire date", errors)
    if termination_date and hire_date and termination_date <= hire_date:
        errors.append(
            FieldError(
                "termination_date",
                "TERMINATION_BEFORE_HIRE",
                "Termination date must be after the hire date",
            )
        )
    if payload.get("reason") not in TERMINATION_REASON_CODES:
        errors.append(
            FieldError(
                "reason",
                "UNKNOWN_TERMINATION_REASON",
                f"Termination reason {payload.get('reason')!r} is not recognized",
            )
        )
    return errors


def validate_leave(payload: dict[str, Any], ctx: ValidationContext) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_tax_id(payload, errors)
    if payload.get("leave_type") not in LEAVE_TYPE_CODES:
        errors.append(
            FieldError(
                "leave_type",
                "UNKNOWN_LEAVE_TYPE",
                f"Leave type {payload.get('leave_type')!r} is not recognized",
            )
        )
    start = _required_date(payload, "start_date", "Leave start date", errors)
    hire_date = _required_date(payload, "hire_date", "Hire date", errors)
    if start and hire_date and start < hire_date:
        errors.append(
            FieldError("start_date", "LEAVE_BEFORE_HIRE", "Leave cannot start before the hire date")
        )
    end = _date(payload, "end_date")
    if start and end and end < start:
        errors.append(
            FieldError("end_date", "END_BEFORE_START", "Leave end precedes its start")
        )
    return errors


def validate_remuneration(payload: dict[str, Any], ctx: ValidationContext) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_tax_id(payload, errors)
    _check_payroll_closed(payload, errors)
    items = payload.get("items") or []
    if not items:
        errors.append(FieldError("items", "NO_ITEMS", "Remuneration has no items"))
    for index, item in enumerate(items):
        code = item.get("rubric_code")
        rubric = ctx.rubrics.resolve(code) if ctx.rubrics is not None else None
        if rubric is None:
            errors.append(
                FieldError(
                    f"items[{index}].rubric_code",
                    "UNKNOWN_RUBRIC",
                    f"Rubric {code!r} is not active for {payload.get('period')}",
                )
            )
    return errors


def validate_payment(payload: dict[str, Any], ctx: ValidationContext) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_tax_id(payload, errors)
    _check_payroll_closed(payload, errors)
    _required_date(payload, "payment_date", "Payment date", errors)
    net = payload.get("net_amount")
    if net is None:
        errors.append(FieldError("net_amount", "REQUIRED", "Net amount is required"))
    elif str(net).startswith("-"):
        errors.append(FieldError("net_amount", "NEGATIVE_AMOUNT", "Net amount cannot be negative"))
    return errors


def validate_period_closing(payload: dict[str, Any], ctx: ValidationContext) -> list[FieldError]:
    errors: list[FieldError] = []
    _check_payroll_closed(payload, errors)
    if ctx.pending_periodic_events:
        errors.append(
            FieldError(
                "period",
                "PERIODIC_EVENTS_PENDING",
                f"{ctx.pending_periodic_events} periodic event(s) for "
                f"{payload.get('period')} are not yet processed",
            )
        )
    return errors


def validate_exclusion(payload: dict[str, Any], ctx: ValidationContext) -> list[FieldError]:
    errors: list[FieldError] = []
    original = ctx.referenced_event
    if original is None:
        errors.append(
            FieldError("event_id", "REFERENCED_EVENT_NOT_FOUND", "Referenced event does not exist")
        )
        return errors
    if original.event_type == EventType.S_3000:
        errors.append(
            FieldError("event_type", "CANNOT_EXCLUDE_EXCLUSION", "An exclusion cannot be excluded")
        )
    elif event_group(original.event_type) == GroupType.TABLES:
        errors.append(
            FieldError(
                "event_type",
                "TABLE_EVENT_NOT_EXCLUDABLE",
                "Table events are removed through their own table event",
            )
        )
    if original.status != EventStatus.ACCEPTED:
        errors.append(
            FieldError(
                "event_id",
                "REFERENCED_EVENT_NOT_ACCEPTED",
                f"Referenced event is {original.status.value}, not ACCEPTED",
            )
        )
    if not original.receipt_number:
        errors.append(
            FieldError("receipt_number", "REQUIRED", "Referenced event has no receipt number")
        )
    return errors

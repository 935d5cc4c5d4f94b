"""
Payload normalization (``labor_events.payloads``).

Pure functions turning HR source records into the JSON-safe payload
stored on a reporting event.  The payload is the single input of both the
validator and the document builder, so it carries every source value
those need.  Missing source values stay ``None`` and surface as
validation errors later.  Dates are ISO strings, amounts are fixed-point
strings.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from labor_events.models import (
    CompanyProfile,
    EmployeeRecord,
    LeaveRecord,
    Payslip,
    PayrollRecord,
    ReportingConfig,
    ReportingEvent,
    Rubric,
    TerminationRecord,
)


def _iso(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _amount(value: Decimal | None) -> str | None:
    return format(value, "f") if value is not None else None


def _month(value: date | None) -> str | None:
    return value.strftime("%Y-%m") if value is not None else None


def period_label(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def _employee_fields(employee: EmployeeRecord | None) -> dict[str, Any]:
    if employee is None:
        return {
            "employee_id": None,
            "employee_code": None,
            "tax_id": None,
            "hire_date": None,
        }
    return {
        "employee_id": str(employee.id),
        "employee_code": employee.code,
        "tax_id": employee.tax_id,
        "hire_date": _iso(employee.hire_date),
    }


def employer_payload(company: CompanyProfile, config: ReportingConfig, valid_from: date) -> dict[str, Any]:
    return {
        "registration_number": company.registration_number,
        "legal_name": company.legal_name,
        "employer_type": config.employer_type,
        "software_id": config.software_id,
        "software_name": config.software_name,
        "valid_from": _month(valid_from),
    }


def rubric_payload(rubric: Rubric) -> dict[str, Any]:
    return {
        "rubric_id": str(rubric.id),
        "code": rubric.code,
        "name": rubric.name,
        "description": rubric.description,
        "rubric_type": rubric.rubric_type.value,
        "nature_code": rubric.nature_code,
        "incidence_social_security": rubric.incidence_social_security.value,
        "incidence_income_tax": rubric.incidence_income_tax.value,
        "incidence_severance_fund": rubric.incidence_severance_fund.value,
        "incidence_union_dues": rubric.incidence_union_dues.value,
        "start_date": _iso(rubric.start_date),
        "end_date": _iso(rubric.end_date),
        "valid_from": _month(rubric.start_date),
        "valid_to": _month(rubric.end_date),
    }


def admission_payload(employee: EmployeeRecord) -> dict[str, Any]:
    payload = _employee_fields(employee)
    payload.update(
        {
            "name": employee.name,
            "civil_registry_number": employee.civil_registry_number,
            "birth_date": _iso(employee.birth_date),
            "contract_type": employee.contract_type,
            "job_title": employee.job_title,
            "salary": _amount(employee.salary),
        }
    )
    return payload


def termination_payload(
    employee: EmployeeRecord | None, termination: TerminationRecord,
) -> dict[str, Any]:
    payload = _employee_fields(employee)
    payload.update(
        {
            "termination_id": str(termination.id),
            "termination_date": _iso(termination.termination_date),
            "reason": termination.reason,
            "notice_date": _iso(termination.notice_date),
            "net_amount": _amount(termination.net_amount),
        }
    )
    return payload


def leave_payload(employee: EmployeeRecord | None, leave: LeaveRecord) -> dict[str, Any]:
    payload = _employee_fields(employee)
    payload.update(
        {
            "leave_id": str(leave.id),
            "leave_type": leave.leave_type,
            "start_date": _iso(leave.start_date),
            "end_date": _iso(leave.end_date),
        }
    )
    return payload


def remuneration_payload(
    employee: EmployeeRecord | None, payroll: PayrollRecord, payslip: Payslip,
) -> dict[str, Any]:
    payload = _employee_fields(employee)
    payload.update(
        {
            "period": period_label(payroll.year, payroll.month),
            "payroll_status": payroll.status.value,
            "payslip_id": str(payslip.id),
            "gross_amount": _amount(payslip.gross_amount),
            "items": [
                {
                    "rubric_code": item.rubric_code,
                    "amount": _amount(item.amount),
                    "quantity": _amount(item.quantity),
                }
                for item in payslip.items
            ],
        }
    )
    return payload


def payment_payload(
    employee: EmployeeRecord | None, payroll: PayrollRecord, payslip: Payslip,
) -> dict[str, Any]:
    payload = _employee_fields(employee)
    payload.update(
        {
            "period": period_label(payroll.year, payroll.month),
            "payroll_status": payroll.status.value,
            "payslip_id": str(payslip.id),
            "payment_date": _iso(payroll.payment_date),
            "net_amount": _amount(payslip.net_amount),
        }
    )
    return payload


def period_closing_payload(payroll: PayrollRecord) -> dict[str, Any]:
    return {
        "period": period_label(payroll.year, payroll.month),
        "payroll_status": payroll.status.value,
        "has_remuneration": bool(payroll.payslips),
        "has_payments": bool(payroll.payslips) and payroll.payment_date is not None,
    }


def exclusion_payload(original: ReportingEvent) -> dict[str, Any]:
    return {
        "event_id": str(original.id),
        "event_type": original.event_type.value,
        "receipt_number": original.receipt_number,
        "tax_id": original.payload.get("tax_id"),
        "period": original.period,
    }

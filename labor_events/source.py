"""
HR data source contract (``labor_events.source``).

The HR/payroll store is external to the reporting engine.  Generators
read it only through ``HRDataSource``; tests supply an in-memory
implementation.

Contract:
    - Every method is a read.  Implementations never mutate HR data.
    - Date ranges are inclusive on both ends.
    - ``employee_ids=None`` means every employee of the company.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Protocol, runtime_checkable
from uuid import UUID

from labor_events.models import (
    CompanyProfile,
    EmployeeRecord,
    LeaveRecord,
    PayrollRecord,
    TerminationRecord,
)


@runtime_checkable
class HRDataSource(Protocol):
    """Read-only view over the HR/payroll data store."""

    def get_company(self, company_id: UUID) -> CompanyProfile | None:
        ...

    def get_employee(self, company_id: UUID, employee_id: UUID) -> EmployeeRecord | None:
        ...

    def list_admissions(
        self,
        company_id: UUID,
        start: date,
        end: date,
        employee_ids: Sequence[UUID] | None = None,
    ) -> Sequence[EmployeeRecord]:
        """Employees whose hire date falls within the range."""
        ...

    def list_terminations(
        self,
        company_id: UUID,
        start: date,
        end: date,
        employee_ids: Sequence[UUID] | None = None,
    ) -> Sequence[TerminationRecord]:
        ...

    def list_leaves(
        self,
        company_id: UUID,
        start: date,
        end: date,
        employee_ids: Sequence[UUID] | None = None,
    ) -> Sequence[LeaveRecord]:
        """Leaves whose start date falls within the range."""
        ...

    def get_payroll(self, company_id: UUID, year: int, month: int) -> PayrollRecord | None:
        ...

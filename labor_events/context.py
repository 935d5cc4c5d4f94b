"""
Validation context loading (``labor_events.context``).

Validators are pure; this module does the I/O they need up front: the
company profile from the HR source, the active reporting configuration,
the rubric snapshot of the reference month, the referenced event of an
exclusion and the open periodic event count for period closing.
"""

from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from sqlalchemy.orm import Session

from labor_events.catalog import EventType
from labor_events.config import ReportingConfigService
from labor_events.models import CompanyProfile, ReportingConfig, RubricSnapshot
from labor_events.orm import ReportingEventModel
from labor_events.rubrics import RubricRegistry
from labor_events.source import HRDataSource
from labor_events.store import count_open_periodic_events
from labor_events.validation import ValidationContext
from labor_kernel.domain.clock import Clock
from labor_kernel.exceptions import ConfigurationNotFoundError


@dataclass(frozen=True)
class CompanyBasis:
    """Company-level facts every context of one operation shares."""

    company: CompanyProfile
    config: ReportingConfig
    as_of: date
    # Rubric snapshots loaded during this operation, keyed by (year, month)
    snapshots: dict[tuple[int, int], RubricSnapshot] = field(
        default_factory=dict, compare=False, repr=False,
    )


class ContextLoader:
    def __init__(
        self,
        session: Session,
        source: HRDataSource,
        clock: Clock,
        configs: ReportingConfigService | None = None,
        rubrics: RubricRegistry | None = None,
    ):
        self._session = session
        self._source = source
        self._clock = clock
        self._configs = configs or ReportingConfigService(session)
        self._rubrics = rubrics or RubricRegistry(session)

    def basis(self, company_id: UUID) -> CompanyBasis:
        """
        Raises:
            ConfigurationNotFoundError: No company profile or no configuration.
            InvalidConfigurationError: Configuration inactive.
        """
        config = self._configs.require_active(company_id)
        company = self._source.get_company(company_id)
        if company is None:
            raise ConfigurationNotFoundError(str(company_id), what="company profile")
        return CompanyBasis(company=company, config=config, as_of=self._clock.today())

    def rubric_snapshot(self, basis: CompanyBasis, year: int, month: int) -> RubricSnapshot:
        key = (year, month)
        if key not in basis.snapshots:
            basis.snapshots[key] = self._rubrics.snapshot(
                basis.company.id,
                date(year, month, 1),
                date(year, month, monthrange(year, month)[1]),
            )
        return basis.snapshots[key]

    def context_for(
        self,
        basis: CompanyBasis,
        event_type: EventType,
        year: int | None = None,
        month: int | None = None,
        referenced_event: ReportingEventModel | None = None,
    ) -> ValidationContext:
        company_id = basis.company.id
        rubrics = None
        pending = 0
        if year is not None and month is not None:
            if event_type == EventType.S_1200:
                rubrics = self.rubric_snapshot(basis, year, month)
            elif event_type == EventType.S_1299:
                pending = count_open_periodic_events(self._session, company_id, year, month)
        return ValidationContext(
            company=basis.company,
            config=basis.config,
            as_of=basis.as_of,
            rubrics=rubrics,
            referenced_event=referenced_event.to_dto() if referenced_event is not None else None,
            pending_periodic_events=pending,
        )

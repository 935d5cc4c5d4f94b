"""
ReportingService -- caller-facing facade of the reporting engine.

Responsibility:
    One object per (session, company, actor) exposing every operation a
    UI or API layer needs: configuration and rubric CRUD, event queries
    and commands, batch assembly and transmission, the dashboard and the
    static event catalog.  Wires the underlying services together and
    owns the transaction boundary.

Architecture position:
    Services -- outermost layer.  Imports labor_events, labor_batch and
    labor_kernel; nothing imports this package except entrypoints.

Invariants:
    - Each mutating method owns its transaction: commit on success,
      rollback on failure.
    - A ``TransportError`` is the exception: the reverted batch state
      (back to CLOSED with the error recorded) is committed, then the
      error propagates so the caller can retry.
    - Reads never commit.
    - The certificate reference never leaves the facade unmasked.

Failure modes:
    - Typed ``ReportingError`` subclasses propagate to the caller.
      Field validation problems and per-item batch rejections are data.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from labor_batch.domain.types import (
    AddEventsResult,
    BatchFilter,
    BatchResult,
    BatchValidationReport,
    SubmissionBatch,
)
from labor_batch.services.batch_manager import BatchManager
from labor_batch.services.transmission import TransmissionService
from labor_batch.transport import SubmissionTransport
from labor_config import get_settings
from labor_config.schema import ReportingSettings
from labor_events.catalog import EVENT_DEFINITIONS, EventDefinition, EventType, GroupType
from labor_events.config import ReportingConfigService
from labor_events.context import ContextLoader
from labor_events.generator import EventGenerator
from labor_events.models import (
    EventFilter,
    EventPage,
    GenerationResult,
    ReportingConfig,
    ReportingEvent,
    Rubric,
    RubricInput,
    RubricType,
)
from labor_events.registry import HandlerRegistry, default_handler_registry
from labor_events.rubrics import RubricRegistry
from labor_events.service import EventService
from labor_events.source import HRDataSource
from labor_kernel.domain.clock import Clock, SystemClock
from labor_kernel.exceptions import TransportError
from labor_kernel.logging_config import LogContext, get_logger
from labor_services.dashboard import Dashboard, DashboardService

logger = get_logger("services.reporting")


class ReportingService:
    """Facade over configuration, rubrics, events and batches of one company."""

    def __init__(
        self,
        session: Session,
        company_id: UUID,
        actor_id: UUID,
        source: HRDataSource,
        transport: SubmissionTransport,
        clock: Clock | None = None,
        settings: ReportingSettings | None = None,
        registry: HandlerRegistry | None = None,
    ):
        self._session = session
        self._company_id = company_id
        self._actor_id = actor_id
        self._clock = clock or SystemClock()
        self._settings = settings or get_settings()
        registry = registry or default_handler_registry()

        self._configs = ReportingConfigService(session)
        self._rubrics = RubricRegistry(session)
        contexts = ContextLoader(
            session, source, self._clock, configs=self._configs, rubrics=self._rubrics,
        )
        self._generator = EventGenerator(
            session,
            source,
            registry=registry,
            clock=self._clock,
            settings=self._settings.generation,
            context_loader=contexts,
        )
        self._events = EventService(
            session, source, registry=registry, clock=self._clock, context_loader=contexts,
        )
        self._batches = BatchManager(
            session,
            source,
            self._settings.documents,
            registry=registry,
            clock=self._clock,
            context_loader=contexts,
        )
        self._transmission = TransmissionService(
            session, source, transport, clock=self._clock, configs=self._configs,
        )
        self._dashboard = DashboardService(session, clock=self._clock)

    @property
    def company_id(self) -> UUID:
        return self._company_id

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[None]:
        with LogContext.bind(company_id=self._company_id, actor_id=self._actor_id):
            try:
                yield
            except TransportError:
                # Keep the reverted batch state and error annotation
                self._session.commit()
                raise
            except Exception:
                self._session.rollback()
                logger.warning("operation_rolled_back", extra={"operation": operation})
                raise
            else:
                self._session.commit()

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_config(self) -> ReportingConfig | None:
        config = self._configs.get(self._company_id)
        return config.redacted() if config is not None else None

    def upsert_config(self, **changes: Any) -> ReportingConfig:
        with self._transaction("upsert_config"):
            config = self._configs.upsert(self._company_id, self._actor_id, **changes)
        return config.redacted()

    # =========================================================================
    # Rubrics
    # =========================================================================

    def list_rubrics(
        self,
        rubric_type: RubricType | None = None,
        is_active: bool | None = None,
    ) -> list[Rubric]:
        return self._rubrics.list(self._company_id, rubric_type=rubric_type, is_active=is_active)

    def get_rubric(self, rubric_id: UUID) -> Rubric:
        return self._rubrics.get(self._company_id, rubric_id)

    def create_rubric(self, data: RubricInput) -> Rubric:
        with self._transaction("create_rubric"):
            return self._rubrics.create(self._company_id, data, self._actor_id)

    def update_rubric(self, rubric_id: UUID, **changes: Any) -> Rubric:
        with self._transaction("update_rubric"):
            return self._rubrics.update(self._company_id, rubric_id, self._actor_id, **changes)

    def supersede_rubric(self, rubric_id: UUID, effective_from: date, **changes: Any) -> Rubric:
        with self._transaction("supersede_rubric"):
            return self._rubrics.supersede(
                self._company_id, rubric_id, effective_from, self._actor_id, **changes,
            )

    # =========================================================================
    # Events
    # =========================================================================

    def list_events(self, filters: EventFilter | None = None) -> EventPage:
        return self._events.list_events(self._company_id, filters)

    def get_event(self, event_id: UUID) -> ReportingEvent:
        return self._events.get_event(self._company_id, event_id)

    def generate_events(
        self,
        year: int,
        month: int,
        event_types: Sequence[EventType | str] | None = None,
        employee_ids: Sequence[UUID] | None = None,
    ) -> GenerationResult:
        with self._transaction("generate_events"):
            return self._generator.generate(
                self._company_id,
                year,
                month,
                self._actor_id,
                event_types=event_types,
                employee_ids=employee_ids,
            )

    def validate_event(self, event_id: UUID) -> ReportingEvent:
        with self._transaction("validate_event"):
            return self._events.validate_event(self._company_id, event_id, self._actor_id)

    def exclude_event(self, event_id: UUID) -> ReportingEvent:
        """Create the exclusion event for an ACCEPTED event."""
        with self._transaction("exclude_event"):
            return self._generator.create_exclusion(self._company_id, event_id, self._actor_id)

    def cancel_event(self, event_id: UUID) -> ReportingEvent:
        with self._transaction("cancel_event"):
            return self._events.cancel_event(self._company_id, event_id, self._actor_id)

    # =========================================================================
    # Batches
    # =========================================================================

    def list_batches(self, filters: BatchFilter | None = None) -> list[SubmissionBatch]:
        return self._batches.list_batches(self._company_id, filters)

    def get_batch(self, batch_id: UUID) -> SubmissionBatch:
        return self._batches.get_batch(self._company_id, batch_id)

    def create_batch(self, group: GroupType | str) -> SubmissionBatch:
        with self._transaction("create_batch"):
            return self._batches.create_batch(self._company_id, group, self._actor_id)

    def add_events_to_batch(self, batch_id: UUID, event_ids: Sequence[UUID]) -> AddEventsResult:
        with self._transaction("add_events_to_batch"):
            return self._batches.add_events_to_batch(
                self._company_id, batch_id, event_ids, self._actor_id,
            )

    def close_batch(self, batch_id: UUID) -> SubmissionBatch:
        with self._transaction("close_batch"):
            return self._batches.close_batch(self._company_id, batch_id, self._actor_id)

    def send_batch(self, batch_id: UUID) -> BatchResult:
        with self._transaction("send_batch"):
            return self._transmission.send_batch(self._company_id, batch_id, self._actor_id)

    def check_batch_result(self, batch_id: UUID) -> BatchResult:
        with self._transaction("check_batch_result"):
            return self._transmission.check_batch_result(
                self._company_id, batch_id, self._actor_id,
            )

    def validate_batch(self, batch_id: UUID) -> BatchValidationReport:
        return self._batches.validate_batch(self._company_id, batch_id)

    # =========================================================================
    # Dashboard and catalog
    # =========================================================================

    def get_dashboard(self) -> Dashboard:
        return self._dashboard.get_dashboard(self._company_id)

    def get_event_definitions(self) -> tuple[EventDefinition, ...]:
        return EVENT_DEFINITIONS

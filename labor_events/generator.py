"""
EventGenerator -- idempotent derivation of reporting events from HR data.

Contract:
    ``generate()`` enumerates the reporting obligations of one company and
    reference month, validates them and persists one event per obligation.
    ``create_exclusion()`` derives the S-3000 event that retracts an
    accepted event.

Architecture: labor_events.  Reads the HR source only through
    ``HRDataSource``; dispatches per event type only through the
    ``HandlerRegistry``.

Invariants enforced:
    - Idempotency: each obligation has a business key (company, type,
      subject, period) and the event id is derived from key and revision.
      Re-running generation over unchanged data creates nothing.
    - Only a REJECTED latest revision is regenerated as a new revision;
      DRAFT/VALIDATED revisions are refreshed in place; anything else is
      left untouched.
    - Per-type isolation: a missing source record for one type is reported
      in ``GenerationResult.errors`` and the other types still run.
    - All timestamps come from the injected Clock.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from uuid import UUID

from sqlalchemy.orm import Session

from labor_config.schema import GenerationSettings
from labor_events import payloads
from labor_events.catalog import EventType, deadline, lookup
from labor_events.context import CompanyBasis, ContextLoader
from labor_events.models import (
    EventStatus,
    FieldError,
    GenerationAction,
    GenerationIssue,
    GenerationOutcome,
    GenerationResult,
    ReportingEvent,
)
from labor_events.orm import ReportingEventModel
from labor_events.registry import (
    CollectionScope,
    EventHandler,
    HandlerRegistry,
    SourceItem,
    default_handler_registry,
    resolve_types,
)
from labor_events.rubrics import RubricRegistry
from labor_events.source import HRDataSource
from labor_events.store import apply_validation, latest_revision, load_event_model
from labor_events.validation import ValidationContext
from labor_kernel.domain.clock import Clock, SystemClock
from labor_kernel.exceptions import (
    ExclusionPendingError,
    InvalidEventTransitionError,
    SourceRecordNotFoundError,
    UnknownEventTypeError,
)
from labor_kernel.logging_config import LogContext, get_logger
from labor_kernel.utils.hashing import hash_payload
from labor_kernel.utils.idempotency import derive_event_id, generate_business_key

logger = get_logger("events.generator")

_REFRESHABLE = (EventStatus.DRAFT.value, EventStatus.VALIDATED.value)
_REGENERABLE = (EventStatus.REJECTED.value,)


class EventGenerator:
    """Derives reporting events from HR source data."""

    def __init__(
        self,
        session: Session,
        source: HRDataSource,
        registry: HandlerRegistry | None = None,
        clock: Clock | None = None,
        settings: GenerationSettings | None = None,
        context_loader: ContextLoader | None = None,
    ):
        self._session = session
        self._source = source
        self._registry = registry or default_handler_registry()
        self._clock = clock or SystemClock()
        self._settings = settings or GenerationSettings()
        self._rubrics = RubricRegistry(session)
        self._contexts = context_loader or ContextLoader(
            session, source, self._clock, rubrics=self._rubrics,
        )

    # -------------------------------------------------------------------------
    # Generate
    # -------------------------------------------------------------------------

    def generate(
        self,
        company_id: UUID,
        year: int,
        month: int,
        actor_id: UUID,
        event_types: Sequence[EventType | str] | None = None,
        employee_ids: Sequence[UUID] | None = None,
    ) -> GenerationResult:
        """
        Generate the events of one reference month.

        Raises:
            ConfigurationNotFoundError / InvalidConfigurationError:
                Missing or inactive company configuration (fatal).
            ValueError: Month outside 1..12.
            UnknownEventTypeError: A requested type is not in the catalog.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"Month must be 1..12, got {month}")

        with LogContext.bind(company_id=company_id, actor_id=actor_id):
            basis = self._contexts.basis(company_id)
            types = resolve_types(
                self._registry, event_types, self._settings.default_event_types,
            )
            scope = CollectionScope(
                company=basis.company,
                config=basis.config,
                year=year,
                month=month,
                employee_ids=tuple(employee_ids) if employee_ids else None,
                rubrics=tuple(self._rubrics.list(company_id, is_active=True)),
            )

            outcomes: list[GenerationOutcome] = []
            errors: list[GenerationIssue] = []
            for event_type in types:
                type_outcomes, issue = self._generate_type(basis, scope, event_type, actor_id)
                outcomes.extend(type_outcomes)
                if issue is not None:
                    errors.append(issue)

            result = GenerationResult(outcomes=tuple(outcomes), errors=tuple(errors))
            logger.info(
                "events_generated",
                extra={
                    "period": scope.period,
                    "event_types": [t.value for t in types],
                    "created_count": result.created,
                    "updated_count": result.updated,
                    "skipped_count": result.skipped,
                    "error_count": len(result.errors),
                },
            )
            return result

    def _generate_type(
        self,
        basis: CompanyBasis,
        scope: CollectionScope,
        event_type: EventType,
        actor_id: UUID,
    ) -> tuple[list[GenerationOutcome], GenerationIssue | None]:
        if event_type not in self._registry:
            return [], GenerationIssue(
                event_type, UnknownEventTypeError.code,
                f"No handler registered for {event_type.value}",
            )
        handler = self._registry.get(event_type)
        if handler.collect is None:
            return [], GenerationIssue(
                event_type, "NOT_COLLECTABLE",
                f"{event_type.value} events are created on request, not generated",
            )

        try:
            items = handler.collect(self._source, scope)
        except SourceRecordNotFoundError as exc:
            logger.warning(
                "event_type_source_missing",
                extra={"event_type": event_type.value, "reason": str(exc)},
            )
            return [], GenerationIssue(event_type, exc.code, str(exc))

        ctx = self._contexts.context_for(basis, event_type, scope.year, scope.month)
        validations = self._validate_all(handler, items, ctx)
        outcomes = [
            self._persist(scope.company.id, handler, item, errors, actor_id)
            for item, errors in zip(items, validations)
        ]
        return outcomes, None

    def _validate_all(
        self,
        handler: EventHandler,
        items: Sequence[SourceItem],
        ctx: ValidationContext,
    ) -> list[list[FieldError]]:
        """Run the pure validator for every item, fanning out when configured."""
        workers = self._settings.max_workers
        if workers <= 1 or len(items) <= 1:
            return [handler.validate(item.payload, ctx) for item in items]
        with ThreadPoolExecutor(max_workers=min(workers, len(items))) as pool:
            return list(pool.map(lambda item: handler.validate(item.payload, ctx), items))

    # -------------------------------------------------------------------------
    # Persist
    # -------------------------------------------------------------------------

    def _persist(
        self,
        company_id: UUID,
        handler: EventHandler,
        item: SourceItem,
        errors: list[FieldError],
        actor_id: UUID,
    ) -> GenerationOutcome:
        event_type = handler.event_type
        key = generate_business_key(company_id, event_type.value, item.subject, item.period)
        payload_hash = hash_payload(item.payload)
        now = self._clock.now()
        latest = latest_revision(self._session, key)

        if latest is None or latest.status in _REGENERABLE:
            revision = 1 if latest is None else latest.revision + 1
            model = self._insert(
                company_id, event_type, key, revision, item, payload_hash, errors, now, actor_id,
            )
            if latest is not None:
                latest.superseded_by_id = model.id
                latest.updated_by_id = actor_id
            self._session.flush()
            return GenerationOutcome(
                event_type, item.subject, GenerationAction.CREATED, model.id,
                EventStatus(model.status),
            )

        if latest.status in _REFRESHABLE:
            new_errors = [e.to_dict() for e in errors] or None
            if latest.payload_hash == payload_hash and latest.validation_errors == new_errors:
                return GenerationOutcome(
                    event_type, item.subject, GenerationAction.SKIPPED, latest.id,
                    EventStatus(latest.status), reason="unchanged",
                )
            latest.payload = item.payload
            latest.payload_hash = payload_hash
            latest.reference_date = item.reference_date
            latest.due_date = self._due_date(event_type, item)
            latest.generated_at = now
            latest.updated_by_id = actor_id
            status = apply_validation(latest, errors, now)
            self._session.flush()
            logger.info(
                "event_refreshed",
                extra={
                    "event_id": str(latest.id),
                    "event_type": event_type.value,
                    "status": status.value,
                    "error_count": len(errors),
                },
            )
            return GenerationOutcome(
                event_type, item.subject, GenerationAction.UPDATED, latest.id, status,
            )

        return GenerationOutcome(
            event_type, item.subject, GenerationAction.SKIPPED, latest.id,
            EventStatus(latest.status), reason=f"latest revision is {latest.status}",
        )

    def _due_date(self, event_type: EventType, item: SourceItem):
        if item.reference_date is None:
            return None
        return deadline(event_type, item.reference_date)

    def _insert(
        self,
        company_id: UUID,
        event_type: EventType,
        business_key: str,
        revision: int,
        item: SourceItem,
        payload_hash: str,
        errors: list[FieldError],
        now: datetime,
        actor_id: UUID,
        references_event_id: UUID | None = None,
    ) -> ReportingEventModel:
        dto = ReportingEvent(
            id=derive_event_id(business_key, revision),
            company_id=company_id,
            event_type=event_type,
            group=lookup(event_type).group,
            status=EventStatus.DRAFT,
            business_key=business_key,
            revision=revision,
            subject_type=item.subject_type,
            subject_id=item.subject_id,
            payload=item.payload,
            payload_hash=payload_hash,
            employee_id=item.employee_id,
            reference_year=item.year,
            reference_month=item.month,
            reference_date=item.reference_date,
            due_date=self._due_date(event_type, item),
            references_event_id=references_event_id,
            generated_at=now,
        )
        model = ReportingEventModel.from_dto(dto, created_by_id=actor_id)
        self._session.add(model)
        apply_validation(model, errors, now)
        self._session.flush()

        logger.info(
            "event_created",
            extra={
                "event_id": str(model.id),
                "event_type": event_type.value,
                "business_key": business_key,
                "revision": revision,
                "status": model.status,
                "error_count": len(errors),
            },
        )
        return model

    # -------------------------------------------------------------------------
    # Exclusion
    # -------------------------------------------------------------------------

    def create_exclusion(self, company_id: UUID, event_id: UUID, actor_id: UUID) -> ReportingEvent:
        """
        Create the S-3000 event retracting an ACCEPTED event.

        The original only becomes EXCLUDED once the exclusion is accepted.

        Raises:
            EventNotFoundError: Unknown event.
            InvalidEventTransitionError: Original is not ACCEPTED.
            ExclusionPendingError: A live exclusion already exists.
        """
        with LogContext.bind(company_id=company_id, actor_id=actor_id, event_id=event_id):
            original = load_event_model(self._session, company_id, event_id, for_update=True)
            if original.status != EventStatus.ACCEPTED.value:
                raise InvalidEventTransitionError(str(event_id), original.status, "exclude")

            basis = self._contexts.basis(company_id)
            original_dto = original.to_dto()
            item = SourceItem(
                subject_type="event",
                subject_id=str(original.id),
                payload=payloads.exclusion_payload(original_dto),
                employee_id=original.employee_id,
                year=original.reference_year,
                month=original.reference_month,
            )
            # Exclusions are keyed by the original alone, never by period
            key = generate_business_key(company_id, EventType.S_3000.value, item.subject)
            latest = latest_revision(self._session, key)
            if latest is not None and latest.status not in (
                EventStatus.REJECTED.value, EventStatus.CANCELLED.value,
            ):
                raise ExclusionPendingError(str(event_id), str(latest.id))

            handler = self._registry.get(EventType.S_3000)
            ctx = self._contexts.context_for(basis, EventType.S_3000, referenced_event=original)
            errors = handler.validate(item.payload, ctx)
            model = self._insert(
                company_id,
                EventType.S_3000,
                key,
                1 if latest is None else latest.revision + 1,
                item,
                hash_payload(item.payload),
                errors,
                self._clock.now(),
                actor_id,
                references_event_id=original.id,
            )
            if latest is not None:
                latest.superseded_by_id = model.id
            self._session.flush()

            logger.info(
                "exclusion_requested",
                extra={
                    "exclusion_event_id": str(model.id),
                    "original_event_type": original.event_type,
                    "status": model.status,
                },
            )
            return model.to_dto()

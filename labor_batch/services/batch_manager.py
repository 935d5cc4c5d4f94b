"""
BatchManager -- submission batch assembly.

Contract:
    Creates batches, adds validated events to them (building each event's
    document on first enqueue), closes them and runs the read-only
    pre-flight check.  Sending and result processing live in
    ``labor_batch.services.transmission``.

Architecture: labor_batch/services.  Imports from labor_batch.domain,
    labor_batch.models, labor_events and kernel services.

Invariants enforced:
    - One OPEN/CLOSED/SENDING batch per (company, group): checked here and
      backed by a partial unique index.
    - A batch only holds events of its own group.
    - An event belongs to at most one batch (single FK on the event).
    - Only VALIDATED events are enqueued.  Adding events fails per item,
      never for the whole call.
    - Batch mutations lock the batch row (SELECT ... FOR UPDATE).
    - Document fields are fixed at first enqueue.

Non-goals:
    - Does NOT call ``session.commit()`` -- caller controls boundaries.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from labor_batch.domain.types import (
    AddEventsResult,
    BatchFilter,
    BatchIssue,
    BatchStatus,
    BatchValidationReport,
    ItemRejection,
    NON_TERMINAL_BATCH_STATUSES,
    SubmissionBatch,
)
from labor_batch.domain.workflow import transition_batch
from labor_batch.models.batch import SubmissionBatchModel
from labor_config.schema import DocumentSettings
from labor_events.catalog import GroupType
from labor_events.context import CompanyBasis, ContextLoader
from labor_events.documents import DocumentEnvelope, make_document_id, render_document
from labor_events.models import EventStatus
from labor_events.orm import ReportingEventModel
from labor_events.registry import HandlerRegistry, default_handler_registry
from labor_events.source import HRDataSource
from labor_events.workflows import transition_event
from labor_kernel.domain.clock import Clock, SystemClock
from labor_kernel.exceptions import (
    BatchAlreadyOpenError,
    BatchNotFoundError,
    DocumentBuildError,
    EmptyBatchError,
)
from labor_kernel.logging_config import LogContext, get_logger
from labor_kernel.services.sequence_service import SequenceService
from labor_kernel.utils.hashing import hash_payload, hash_text

logger = get_logger("batch.manager")


def load_batch_model(
    session: Session,
    company_id: UUID,
    batch_id: UUID,
    *,
    for_update: bool = False,
) -> SubmissionBatchModel:
    stmt = select(SubmissionBatchModel).where(
        SubmissionBatchModel.id == batch_id,
        SubmissionBatchModel.company_id == company_id,
    )
    if for_update:
        stmt = stmt.with_for_update()
    model = session.execute(stmt).scalar_one_or_none()
    if model is None:
        raise BatchNotFoundError(str(batch_id))
    return model


def batch_members(session: Session, batch_id: UUID) -> list[ReportingEventModel]:
    """Events of a batch in submission order."""
    return list(
        session.execute(
            select(ReportingEventModel)
            .where(ReportingEventModel.batch_id == batch_id)
            .order_by(ReportingEventModel.batch_position)
        ).scalars()
    )


def count_members(session: Session, batch_ids: Sequence[UUID]) -> dict[UUID, int]:
    if not batch_ids:
        return {}
    rows = session.execute(
        select(ReportingEventModel.batch_id, func.count(ReportingEventModel.id))
        .where(ReportingEventModel.batch_id.in_(list(batch_ids)))
        .group_by(ReportingEventModel.batch_id)
    ).all()
    return {batch_id: count for batch_id, count in rows}


class BatchManager:
    """Submission batch assembly and pre-flight checks."""

    def __init__(
        self,
        session: Session,
        source: HRDataSource,
        document_settings: DocumentSettings,
        registry: HandlerRegistry | None = None,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
        context_loader: ContextLoader | None = None,
    ):
        self._session = session
        self._documents = document_settings
        self._registry = registry or default_handler_registry()
        self._clock = clock or SystemClock()
        self._sequence = sequence_service or SequenceService(session)
        self._contexts = context_loader or ContextLoader(session, source, self._clock)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_batch(self, company_id: UUID, batch_id: UUID) -> SubmissionBatch:
        model = load_batch_model(self._session, company_id, batch_id)
        return model.to_dto(count_members(self._session, [model.id]).get(model.id, 0))

    def list_batches(
        self, company_id: UUID, filters: BatchFilter | None = None,
    ) -> list[SubmissionBatch]:
        filters = filters or BatchFilter()
        stmt = select(SubmissionBatchModel).where(SubmissionBatchModel.company_id == company_id)
        if filters.status is not None:
            stmt = stmt.where(SubmissionBatchModel.status == BatchStatus(filters.status).value)
        if filters.group is not None:
            stmt = stmt.where(SubmissionBatchModel.group_type == GroupType(filters.group).value)
        models = self._session.execute(
            stmt.order_by(SubmissionBatchModel.batch_number.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        ).scalars().all()
        counts = count_members(self._session, [m.id for m in models])
        return [m.to_dto(counts.get(m.id, 0)) for m in models]

    def find_active_batch(
        self, company_id: UUID, group: GroupType | str,
    ) -> SubmissionBatchModel | None:
        """The OPEN/CLOSED/SENDING batch of a group, if any."""
        return self._session.execute(
            select(SubmissionBatchModel).where(
                SubmissionBatchModel.company_id == company_id,
                SubmissionBatchModel.group_type == GroupType(group).value,
                SubmissionBatchModel.status.in_(
                    [s.value for s in NON_TERMINAL_BATCH_STATUSES]
                ),
            )
        ).scalar_one_or_none()

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    def create_batch(
        self, company_id: UUID, group: GroupType | str, actor_id: UUID,
    ) -> SubmissionBatch:
        """
        Open a new batch for one group.

        Raises:
            BatchAlreadyOpenError: The group already has a non-terminal batch.
        """
        group = GroupType(group)
        with LogContext.bind(company_id=company_id, actor_id=actor_id):
            existing = self.find_active_batch(company_id, group)
            if existing is not None:
                raise BatchAlreadyOpenError(str(company_id), group.value, str(existing.id))

            number = self._sequence.next_value(
                SequenceService.scoped(SequenceService.BATCH_NUMBER, company_id)
            )
            model = SubmissionBatchModel(
                company_id=company_id,
                batch_number=number,
                group_type=group.value,
                status=BatchStatus.OPEN.value,
                error_count=0,
                created_by_id=actor_id,
            )
            # The partial unique index catches a concurrent creator
            savepoint = self._session.begin_nested()
            try:
                self._session.add(model)
                self._session.flush()
                savepoint.commit()
            except IntegrityError:
                savepoint.rollback()
                winner = self.find_active_batch(company_id, group)
                raise BatchAlreadyOpenError(
                    str(company_id), group.value, str(winner.id) if winner else "unknown",
                ) from None

            logger.info(
                "batch_created",
                extra={
                    "batch_id": str(model.id),
                    "batch_number": number,
                    "group": group.value,
                },
            )
            return model.to_dto()

    # -------------------------------------------------------------------------
    # Add events
    # -------------------------------------------------------------------------

    def add_events_to_batch(
        self,
        company_id: UUID,
        batch_id: UUID,
        event_ids: Sequence[UUID],
        actor_id: UUID,
    ) -> AddEventsResult:
        """
        Enqueue VALIDATED events into an OPEN batch.

        Every event either joins the batch (QUEUED, document built) or
        gets an ``ItemRejection``; one bad event never blocks the others.

        Raises:
            BatchNotFoundError: Unknown batch.
        """
        with LogContext.bind(company_id=company_id, batch_id=batch_id, actor_id=actor_id):
            batch = load_batch_model(self._session, company_id, batch_id, for_update=True)
            if batch.status != BatchStatus.OPEN.value:
                rejections = tuple(
                    ItemRejection(eid, "BATCH_NOT_OPEN", f"Batch is {batch.status}")
                    for eid in event_ids
                )
                logger.warning(
                    "batch_add_rejected",
                    extra={"status": batch.status, "rejected": len(rejections)},
                )
                return AddEventsResult(rejections=rejections)

            position = self._session.execute(
                select(func.coalesce(func.max(ReportingEventModel.batch_position), 0))
                .where(ReportingEventModel.batch_id == batch.id)
            ).scalar_one()
            basis: CompanyBasis | None = None

            added: list[UUID] = []
            rejections: list[ItemRejection] = []
            for event_id in event_ids:
                model = self._session.execute(
                    select(ReportingEventModel)
                    .where(
                        ReportingEventModel.id == event_id,
                        ReportingEventModel.company_id == company_id,
                    )
                    .with_for_update()
                ).scalar_one_or_none()
                rejection = self._check_member(model, event_id, batch)
                if rejection is not None:
                    rejections.append(rejection)
                    continue

                if model.document is None:
                    if basis is None:
                        basis = self._contexts.basis(company_id)
                    try:
                        self._build_document(model, basis)
                    except DocumentBuildError as exc:
                        logger.error(
                            "document_build_failed",
                            extra={"event_id": str(event_id), "reason": exc.reason},
                        )
                        rejections.append(ItemRejection(event_id, exc.code, str(exc)))
                        continue

                position += 1
                transition_event(model, "enqueue")
                model.batch_id = batch.id
                model.batch_position = position
                model.queued_at = self._clock.now()
                model.updated_by_id = actor_id
                added.append(event_id)

            self._session.flush()
            logger.info(
                "events_added_to_batch",
                extra={
                    "added": len(added),
                    "rejected": len(rejections),
                    "rejection_codes": sorted({r.code for r in rejections}),
                },
            )
            return AddEventsResult(added=tuple(added), rejections=tuple(rejections))

    def _check_member(
        self,
        model: ReportingEventModel | None,
        event_id: UUID,
        batch: SubmissionBatchModel,
    ) -> ItemRejection | None:
        if model is None:
            return ItemRejection(event_id, "EVENT_NOT_FOUND", "Event does not exist")
        if model.batch_id is not None:
            return ItemRejection(
                event_id, "ALREADY_IN_BATCH", f"Event already belongs to batch {model.batch_id}",
            )
        if model.status != EventStatus.VALIDATED.value:
            return ItemRejection(
                event_id, "EVENT_NOT_VALIDATED", f"Event is {model.status}, not VALIDATED",
            )
        if model.group_type != batch.group_type:
            return ItemRejection(
                event_id,
                "GROUP_MISMATCH",
                f"{model.event_type} belongs to {model.group_type}, batch is {batch.group_type}",
            )
        return None

    def _build_document(self, model: ReportingEventModel, basis: CompanyBasis) -> None:
        """Stamp sequence number, document id, document and hash on first enqueue."""
        handler = self._registry.get(model.event_type)
        sequence_number = self._sequence.next_value(
            SequenceService.scoped(SequenceService.DOCUMENT, model.company_id)
        )
        envelope = DocumentEnvelope(
            document_id=make_document_id(
                basis.company.registration_number, self._clock.now(), sequence_number,
            ),
            sequence_number=sequence_number,
            environment_code=basis.config.environment.code,
            process_version=self._documents.process_version,
            layout_version=self._documents.layout_version,
            namespace_base=self._documents.namespace_base,
            registration_number=basis.company.registration_number,
        )
        document = render_document(
            handler.build,
            dict(model.payload),
            envelope,
            event_id=str(model.id),
            event_type=model.event_type,
        )
        model.sequence_number = sequence_number
        model.document_id = envelope.document_id
        model.document = document
        model.document_hash = hash_text(document)

    # -------------------------------------------------------------------------
    # Close
    # -------------------------------------------------------------------------

    def close_batch(self, company_id: UUID, batch_id: UUID, actor_id: UUID) -> SubmissionBatch:
        """
        OPEN -> CLOSED.

        Raises:
            BatchNotFoundError: Unknown batch.
            EmptyBatchError: Batch has no events.
            InvalidBatchTransitionError: Batch is not OPEN.
        """
        with LogContext.bind(company_id=company_id, batch_id=batch_id, actor_id=actor_id):
            batch = load_batch_model(self._session, company_id, batch_id, for_update=True)
            count = count_members(self._session, [batch.id]).get(batch.id, 0)
            if batch.status == BatchStatus.OPEN.value and count == 0:
                raise EmptyBatchError(str(batch_id))
            transition_batch(batch, "close")
            batch.closed_at = self._clock.now()
            batch.updated_by_id = actor_id
            self._session.flush()

            logger.info("batch_closed", extra={"event_count": count})
            return batch.to_dto(count)

    # -------------------------------------------------------------------------
    # Pre-flight
    # -------------------------------------------------------------------------

    def validate_batch(self, company_id: UUID, batch_id: UUID) -> BatchValidationReport:
        """
        Read-only consistency check of every member before sending.

        Nothing is written: issues are reported, statuses stay as they are.
        """
        batch = load_batch_model(self._session, company_id, batch_id)
        members = batch_members(self._session, batch.id)
        basis = self._contexts.basis(company_id) if members else None

        issues: list[BatchIssue] = []
        for model in members:
            issues.extend(self._member_issues(model, batch, basis))

        report = BatchValidationReport(
            batch_id=batch.id, event_count=len(members), issues=tuple(issues),
        )
        logger.info(
            "batch_validated",
            extra={
                "batch_id": str(batch.id),
                "event_count": report.event_count,
                "issue_count": len(report.issues),
                "is_valid": report.is_valid,
            },
        )
        return report

    def _member_issues(
        self,
        model: ReportingEventModel,
        batch: SubmissionBatchModel,
        basis: CompanyBasis,
    ) -> list[BatchIssue]:
        issues: list[BatchIssue] = []
        if model.status != EventStatus.QUEUED.value:
            issues.append(
                BatchIssue(model.id, "EVENT_NOT_QUEUED", f"Event is {model.status}, not QUEUED")
            )
        if model.group_type != batch.group_type:
            issues.append(
                BatchIssue(model.id, "GROUP_MISMATCH", f"Event group is {model.group_type}")
            )
        if model.document is None:
            issues.append(BatchIssue(model.id, "DOCUMENT_MISSING", "No document built"))
        elif hash_text(model.document) != model.document_hash:
            issues.append(
                BatchIssue(model.id, "DOCUMENT_HASH_MISMATCH", "Document does not match its hash")
            )
        if hash_payload(model.payload) != model.payload_hash:
            issues.append(
                BatchIssue(model.id, "PAYLOAD_CHANGED", "Payload changed after generation")
            )

        handler = self._registry.get(model.event_type)
        referenced = None
        if model.references_event_id is not None:
            referenced = self._session.get(ReportingEventModel, model.references_event_id)
        ctx = self._contexts.context_for(
            basis,
            handler.event_type,
            model.reference_year,
            model.reference_month,
            referenced_event=referenced,
        )
        for error in handler.validate(dict(model.payload), ctx):
            issues.append(
                BatchIssue(model.id, "VALIDATION_FAILED", f"{error.field}: {error.message}")
            )
        return issues

"""
TransmissionService -- batch submission and result processing.

Contract:
    ``send_batch()`` submits a CLOSED batch through the injected
    ``SubmissionTransport``.  ``check_batch_result()`` polls the authority
    and fans the per-document outcomes out to the member events.

Architecture: labor_batch/services.  Depends on the transport only through
    the ``SubmissionTransport`` protocol.

Invariants enforced:
    - Submission is all-or-nothing: either the batch becomes SENT and every
      member SENT, or the batch returns to CLOSED with every member still
      QUEUED.
    - A failed poll never regresses the batch; it stays SENT.
    - Outcomes are matched by document id and applied once; outcomes for
      events already terminal are ignored, so polling is idempotent.
    - An accepted exclusion moves its referenced event to EXCLUDED.
    - The batch becomes PROCESSED only when every member is terminal.

Non-goals:
    - Does NOT call ``session.commit()`` -- the facade commits, including
      the reverted state after a ``TransportError``.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from labor_batch.domain.types import (
    BatchResult,
    BatchStatus,
    EventOutcome,
    PollResult,
    SubmissionEnvelope,
    SubmittedDocument,
)
from labor_batch.domain.workflow import transition_batch
from labor_batch.models.batch import SubmissionBatchModel
from labor_batch.services.batch_manager import batch_members, load_batch_model
from labor_batch.transport import SubmissionTransport
from labor_events.catalog import EventType, GroupType
from labor_events.config import ReportingConfigService
from labor_events.models import EventStatus
from labor_events.orm import ReportingEventModel
from labor_events.source import HRDataSource
from labor_events.store import load_event_model
from labor_events.workflows import transition_event
from labor_kernel.domain.clock import Clock, SystemClock
from labor_kernel.exceptions import (
    ConfigurationNotFoundError,
    EmptyBatchError,
    InvalidBatchTransitionError,
    TransportError,
)
from labor_kernel.logging_config import LogContext, get_logger

logger = get_logger("batch.transmission")

_FINISHED = (BatchStatus.PROCESSED.value, BatchStatus.ERROR.value)
_ACCEPTED_STATUSES = (EventStatus.ACCEPTED.value, EventStatus.EXCLUDED.value)


def _summary(batch: SubmissionBatchModel, members: list[ReportingEventModel]) -> dict:
    accepted = sum(1 for m in members if m.status in _ACCEPTED_STATUSES)
    pending = sum(1 for m in members if m.status == EventStatus.SENT.value)
    return {
        "protocol_number": batch.protocol_number,
        "total": len(members),
        "accepted": accepted,
        "rejected": len(members) - accepted - pending,
        "pending": pending,
    }


class TransmissionService:
    """Sends batches and processes authority outcomes."""

    def __init__(
        self,
        session: Session,
        source: HRDataSource,
        transport: SubmissionTransport,
        clock: Clock | None = None,
        configs: ReportingConfigService | None = None,
    ):
        self._session = session
        self._source = source
        self._transport = transport
        self._clock = clock or SystemClock()
        self._configs = configs or ReportingConfigService(session)

    # -------------------------------------------------------------------------
    # Send
    # -------------------------------------------------------------------------

    def send_batch(self, company_id: UUID, batch_id: UUID, actor_id: UUID) -> BatchResult:
        """
        CLOSED -> SENDING -> SENT.

        Raises:
            ConfigurationError: Company configuration missing or inactive.
            InvalidBatchTransitionError: Batch is not CLOSED.
            EmptyBatchError: Batch has no events.
            TransportError: Submit failed; the batch is back in CLOSED with
                the error recorded.  The caller commits that state.
        """
        with LogContext.bind(company_id=company_id, batch_id=batch_id, actor_id=actor_id):
            config = self._configs.require_active(company_id)
            company = self._source.get_company(company_id)
            if company is None:
                raise ConfigurationNotFoundError(str(company_id), what="company profile")

            batch = load_batch_model(self._session, company_id, batch_id, for_update=True)
            members = batch_members(self._session, batch.id)
            if batch.status == BatchStatus.CLOSED.value and not members:
                raise EmptyBatchError(str(batch_id))
            transition_batch(batch, "send")
            batch.updated_by_id = actor_id
            self._session.flush()

            envelope = SubmissionEnvelope(
                batch_id=batch.id,
                company_id=company_id,
                registration_number=company.registration_number,
                environment_code=config.environment.code,
                group=GroupType(batch.group_type),
                documents=tuple(
                    SubmittedDocument(m.document_id, m.event_type, m.document) for m in members
                ),
                certificate_ref=config.certificate_ref,
            )

            try:
                receipt = self._transport.submit(envelope)
            except TransportError as exc:
                now = self._clock.now()
                transition_batch(batch, "send_failed")
                batch.last_error = str(exc)
                batch.last_error_at = now
                batch.error_count = (batch.error_count or 0) + 1
                self._session.flush()
                logger.warning(
                    "batch_send_failed",
                    extra={
                        "error_count": batch.error_count,
                        "retryable": exc.retryable,
                        "reason": str(exc),
                    },
                )
                raise

            now = self._clock.now()
            transition_batch(batch, "submitted")
            batch.protocol_number = receipt.protocol_number
            batch.sent_at = now
            for member in members:
                transition_event(member, "send")
                member.sent_at = now
                member.updated_by_id = actor_id
            self._session.flush()

            logger.info(
                "batch_sent",
                extra={
                    "protocol_number": receipt.protocol_number,
                    "event_count": len(members),
                    "group": batch.group_type,
                },
            )
            return BatchResult(batch=batch.to_dto(len(members)), pending=len(members))

    # -------------------------------------------------------------------------
    # Poll
    # -------------------------------------------------------------------------

    def check_batch_result(self, company_id: UUID, batch_id: UUID, actor_id: UUID) -> BatchResult:
        """
        Poll the authority and apply the outcomes known so far.

        PROCESSED and ERROR batches return their stored summary without
        polling.

        Raises:
            InvalidBatchTransitionError: Batch was never sent.
            TransportError: Poll failed; the batch stays SENT.
        """
        with LogContext.bind(company_id=company_id, batch_id=batch_id, actor_id=actor_id):
            batch = load_batch_model(self._session, company_id, batch_id, for_update=True)
            members = batch_members(self._session, batch.id)

            if batch.status in _FINISHED:
                summary = _summary(batch, members)
                return BatchResult(
                    batch=batch.to_dto(len(members)),
                    accepted=summary["accepted"],
                    rejected=summary["rejected"],
                    pending=summary["pending"],
                )
            if batch.status != BatchStatus.SENT.value:
                raise InvalidBatchTransitionError(str(batch_id), batch.status, "check_result")

            try:
                result = self._transport.poll(batch.protocol_number)
            except TransportError as exc:
                logger.warning(
                    "batch_poll_failed",
                    extra={"protocol_number": batch.protocol_number, "reason": str(exc)},
                )
                raise

            now = self._clock.now()
            if result.batch_error_code:
                applied = self._reject_batch(batch, members, result, now, actor_id)
            else:
                applied = self._apply_outcomes(company_id, members, result, now, actor_id)

            summary = _summary(batch, members)
            if batch.status == BatchStatus.SENT.value and summary["pending"] == 0:
                transition_batch(batch, "processed")
                batch.processed_at = now
            if batch.status in _FINISHED:
                batch.result_summary = summary
            batch.updated_by_id = actor_id
            self._session.flush()

            log_event = (
                "batch_result_processed" if batch.status in _FINISHED else "batch_result_pending"
            )
            logger.info(
                log_event,
                extra={
                    "status": batch.status,
                    "applied": applied,
                    "accepted": summary["accepted"],
                    "rejected": summary["rejected"],
                    "pending": summary["pending"],
                },
            )
            return BatchResult(
                batch=batch.to_dto(len(members)),
                accepted=summary["accepted"],
                rejected=summary["rejected"],
                pending=summary["pending"],
                applied=applied,
            )

    def _reject_batch(
        self,
        batch: SubmissionBatchModel,
        members: list[ReportingEventModel],
        result: PollResult,
        now,
        actor_id: UUID,
    ) -> int:
        """The authority refused the whole batch: every SENT member is rejected."""
        error = {
            "code": result.batch_error_code,
            "message": result.batch_error_message or "Batch rejected",
        }
        applied = 0
        for member in members:
            if member.status != EventStatus.SENT.value:
                continue
            transition_event(member, "reject")
            member.submission_error = dict(error)
            member.processed_at = now
            member.updated_by_id = actor_id
            applied += 1
        transition_batch(batch, "batch_rejected")
        batch.processed_at = now
        batch.last_error = f"{error['code']}: {error['message']}"
        batch.last_error_at = now
        logger.warning(
            "batch_rejected",
            extra={"error_code": error["code"], "rejected": applied},
        )
        return applied

    def _apply_outcomes(
        self,
        company_id: UUID,
        members: list[ReportingEventModel],
        result: PollResult,
        now,
        actor_id: UUID,
    ) -> int:
        by_document = {m.document_id: m for m in members}
        applied = 0
        for outcome in result.outcomes:
            member = by_document.get(outcome.document_id)
            if member is None:
                logger.warning(
                    "unknown_document_outcome",
                    extra={"document_id": outcome.document_id},
                )
                continue
            if member.status != EventStatus.SENT.value:
                continue
            self._apply_outcome(company_id, member, outcome, now, actor_id)
            applied += 1
        return applied

    def _apply_outcome(
        self,
        company_id: UUID,
        member: ReportingEventModel,
        outcome: EventOutcome,
        now,
        actor_id: UUID,
    ) -> None:
        member.processed_at = now
        member.updated_by_id = actor_id
        if not outcome.accepted:
            transition_event(member, "reject")
            member.submission_error = {
                "code": outcome.error_code or "REJECTED",
                "message": outcome.error_message or "",
            }
            logger.info(
                "event_rejected",
                extra={"event_id": str(member.id), "error_code": outcome.error_code},
            )
            return

        transition_event(member, "accept")
        member.receipt_number = outcome.receipt_number
        member.submission_error = None
        if member.event_type == EventType.S_3000.value and member.references_event_id:
            self._exclude_original(company_id, member, now, actor_id)

    def _exclude_original(
        self,
        company_id: UUID,
        exclusion: ReportingEventModel,
        now,
        actor_id: UUID,
    ) -> None:
        original = load_event_model(
            self._session, company_id, exclusion.references_event_id, for_update=True,
        )
        if original.status != EventStatus.ACCEPTED.value:
            logger.warning(
                "exclusion_target_not_accepted",
                extra={"event_id": str(original.id), "status": original.status},
            )
            return
        transition_event(original, "exclude")
        original.excluded_by_event_id = exclusion.id
        original.updated_by_id = actor_id
        logger.info(
            "event_excluded",
            extra={
                "event_id": str(original.id),
                "exclusion_event_id": str(exclusion.id),
            },
        )

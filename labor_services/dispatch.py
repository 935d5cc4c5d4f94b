"""
DispatchCycle -- one scheduler-driven pass of the submission pipeline.

Contract:
    ``run_once()`` is invoked by an external scheduler (cron, a task
    queue).  It holds no threads and no state between calls.  In order:

    1. When the company has ``auto_generate``, generate the current period.
    2. When it has ``auto_send``, for each group with VALIDATED events open
       (or reuse) the group's batch, add them, close it and send it.  A
       CLOSED batch left behind by a failed send is re-sent.
    3. Poll every SENT batch.

Invariants enforced:
    - A ``TransportError`` is recorded per batch in the report and never
      stops the cycle; the failed batch is left CLOSED (send) or SENT
      (poll) for the next pass.
    - At most ``max_batches_per_cycle`` batches are sent per pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from uuid import UUID

from labor_batch.domain.types import BatchFilter, BatchStatus, SubmissionBatch
from labor_config.schema import DispatchSettings
from labor_events.catalog import GroupType
from labor_events.models import EventFilter, EventStatus, GenerationResult
from labor_kernel.domain.clock import Clock, SystemClock
from labor_kernel.exceptions import TransportError
from labor_kernel.logging_config import get_logger
from labor_services.reporting_service import ReportingService

logger = get_logger("services.dispatch")

_PAGE_SIZE = 500


@dataclass(frozen=True)
class DispatchFailure:
    batch_id: UUID
    operation: str  # "send" or "poll"
    error: str


@dataclass(frozen=True)
class DispatchReport:
    company_id: UUID
    skipped_reason: str | None = None
    generation: GenerationResult | None = None
    batches_sent: tuple[UUID, ...] = ()
    batches_polled: tuple[UUID, ...] = ()
    failures: tuple[DispatchFailure, ...] = field(default_factory=tuple)


class DispatchCycle:
    def __init__(
        self,
        service: ReportingService,
        settings: DispatchSettings | None = None,
        clock: Clock | None = None,
    ):
        self._service = service
        self._settings = settings or DispatchSettings()
        self._clock = clock or SystemClock()

    def run_once(self) -> DispatchReport:
        company_id = self._service.company_id
        config = self._service.get_config()
        if config is None or not config.is_active:
            logger.info("dispatch_skipped", extra={"reason": "reporting not active"})
            return DispatchReport(company_id=company_id, skipped_reason="reporting not active")

        generation = None
        if config.auto_generate:
            today = self._clock.today()
            generation = self._service.generate_events(today.year, today.month)

        sent: list[UUID] = []
        failures: list[DispatchFailure] = []
        if config.auto_send:
            for group in GroupType:
                if len(sent) >= self._settings.max_batches_per_cycle:
                    break
                batch = self._prepare_batch(group)
                if batch is None:
                    continue
                try:
                    self._service.send_batch(batch.id)
                except TransportError as exc:
                    failures.append(DispatchFailure(batch.id, "send", str(exc)))
                    continue
                sent.append(batch.id)

        polled: list[UUID] = []
        for batch in self._batches(BatchStatus.SENT):
            try:
                self._service.check_batch_result(batch.id)
            except TransportError as exc:
                failures.append(DispatchFailure(batch.id, "poll", str(exc)))
                continue
            polled.append(batch.id)

        report = DispatchReport(
            company_id=company_id,
            generation=generation,
            batches_sent=tuple(sent),
            batches_polled=tuple(polled),
            failures=tuple(failures),
        )
        logger.info(
            "dispatch_cycle_completed",
            extra={
                "generated": generation.created if generation is not None else 0,
                "sent_batches": len(report.batches_sent),
                "polled_batches": len(report.batches_polled),
                "failure_count": len(report.failures),
            },
        )
        return report

    def _batches(self, status: BatchStatus, group: GroupType | None = None) -> list[SubmissionBatch]:
        return self._service.list_batches(BatchFilter(status=status, group=group, limit=1000))

    def _validated_event_ids(self, group: GroupType) -> list[UUID]:
        ids: list[UUID] = []
        offset = 0
        while True:
            page = self._service.list_events(
                EventFilter(
                    status=EventStatus.VALIDATED, group=group, limit=_PAGE_SIZE, offset=offset,
                )
            )
            ids.extend(e.id for e in page.events)
            offset += _PAGE_SIZE
            if offset >= page.total:
                return ids

    def _prepare_batch(self, group: GroupType) -> SubmissionBatch | None:
        """A CLOSED batch ready to send for ``group``, or None."""
        closed = self._batches(BatchStatus.CLOSED, group)
        if closed:
            return closed[0]
        if self._batches(BatchStatus.SENDING, group):
            logger.warning("dispatch_batch_in_flight", extra={"group": group.value})
            return None

        event_ids = self._validated_event_ids(group)
        opened = self._batches(BatchStatus.OPEN, group)
        if not event_ids and not (opened and opened[0].event_count):
            return None

        batch = opened[0] if opened else self._service.create_batch(group)
        if event_ids:
            result = self._service.add_events_to_batch(batch.id, event_ids)
            if result.rejections:
                logger.warning(
                    "dispatch_events_rejected",
                    extra={
                        "group": group.value,
                        "rejection_codes": sorted({r.code for r in result.rejections}),
                    },
                )
        if self._service.get_batch(batch.id).event_count == 0:
            return None
        return self._service.close_batch(batch.id)

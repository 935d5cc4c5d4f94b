"""
ORM-level immutability guards for reporting data.

Two kinds of fields must never be rewritten once persisted:

* The built document of a reporting event: ``sequence_number``,
  ``document_id``, ``document`` and ``document_hash`` are fixed when the
  event is first queued.  Re-sending a batch re-uses them verbatim.
* The historical fields of a rubric: code, type, nature, start date and
  incidence flags.  Changing them would silently change what earlier
  remuneration reports meant.

The services already refuse such changes; these listeners block any
path that bypasses them.  Call ``register_immutability_listeners()``
once during application start-up (``labor_services.bootstrap`` does).
"""

from sqlalchemy import event
from sqlalchemy.orm.attributes import get_history

from labor_kernel.exceptions import ImmutabilityViolationError
from labor_kernel.logging_config import get_logger

logger = get_logger("events.immutability")

DOCUMENT_FIELDS = ("sequence_number", "document_id", "document", "document_hash")

RUBRIC_HISTORICAL_FIELDS = (
    "code",
    "rubric_type",
    "nature_code",
    "start_date",
    "incidence_social_security",
    "incidence_income_tax",
    "incidence_severance_fund",
    "incidence_union_dues",
    "company_id",
)


def _block(entity_type: str, target, field: str, reason: str) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "UPDATE",
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_event_document_immutability(mapper, connection, target):
    """Once a document field holds a value it never changes."""
    for field in DOCUMENT_FIELDS:
        hist = get_history(target, field)
        if not hist.has_changes():
            continue
        previous = hist.deleted[0] if hist.deleted else None
        if previous is not None:
            _block(
                "ReportingEvent",
                target,
                field,
                f"field '{field}' is fixed once the document is built",
            )


def _check_rubric_immutability(mapper, connection, target):
    for field in RUBRIC_HISTORICAL_FIELDS:
        hist = get_history(target, field)
        if hist.has_changes() and hist.deleted:
            _block(
                "Rubric",
                target,
                field,
                f"field '{field}' is historical; supersede the rubric instead",
            )


def register_immutability_listeners() -> None:
    """Register the update guards (idempotent)."""
    from labor_events.orm import ReportingEventModel, RubricModel

    for target, listener in (
        (ReportingEventModel, _check_event_document_immutability),
        (RubricModel, _check_rubric_immutability),
    ):
        if not event.contains(target, "before_update", listener):
            event.listen(target, "before_update", listener)


def unregister_immutability_listeners() -> None:
    """Remove the update guards. Used by tests that need raw writes."""
    from labor_events.orm import ReportingEventModel, RubricModel

    for target, listener in (
        (ReportingEventModel, _check_event_document_immutability),
        (RubricModel, _check_rubric_immutability),
    ):
        if event.contains(target, "before_update", listener):
            event.remove(target, "before_update", listener)

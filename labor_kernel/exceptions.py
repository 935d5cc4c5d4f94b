"""
Typed Exception Hierarchy for the Labor Reporting Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Regulatory submission pipelines must react to failures precisely: a missing
company configuration is fatal, a batch that is already open is a conflict
the caller can resolve, a transport outage is retryable.  Callers catch by
type, never by message, and every exception carries:

  1. A TYPED class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. Structured DATA attributes (ids, states, reasons)

Field-level validation problems are NOT exceptions.  Validators return
``FieldError`` records as data and the event stays in DRAFT.  Per-item
batch failures are returned as ``ItemRejection`` records.  Rejections
reported by the external authority are stored on the event as
``submission_error``.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ReportingError (base)
    |
    +-- ConfigurationError
    |   +-- ConfigurationNotFoundError
    |   +-- InvalidConfigurationError
    |
    +-- CatalogError
    |   +-- UnknownEventTypeError
    |
    +-- NotFoundError
    |   +-- EventNotFoundError
    |   +-- BatchNotFoundError
    |   +-- RubricNotFoundError
    |   +-- SourceRecordNotFoundError
    |
    +-- ConflictError
    |   +-- InvalidEventTransitionError
    |   +-- InvalidBatchTransitionError
    |   +-- BatchAlreadyOpenError
    |   +-- EmptyBatchError
    |   +-- RubricOverlapError
    |   +-- ExclusionPendingError
    |
    +-- RubricError
    |   +-- InvalidRubricError
    |   +-- RubricImmutableError
    |
    +-- TransportError
    +-- DocumentBuildError
    +-- ImmutabilityViolationError
"""


class ReportingError(Exception):
    """Base exception for all reporting engine errors."""

    code: str = "REPORTING_ERROR"


# =============================================================================
# Configuration
# =============================================================================


class ConfigurationError(ReportingError):
    """Base for company configuration problems. Fatal, never retried."""

    code: str = "CONFIGURATION_ERROR"


class ConfigurationNotFoundError(ConfigurationError):
    """No reporting configuration (or company profile) exists."""

    code: str = "CONFIGURATION_NOT_FOUND"

    def __init__(self, company_id: str, what: str = "reporting configuration"):
        self.company_id = company_id
        self.what = what
        super().__init__(f"No {what} found for company {company_id}")


class InvalidConfigurationError(ConfigurationError):
    """Configuration exists but is inactive or holds invalid values."""

    code: str = "INVALID_CONFIGURATION"

    def __init__(self, company_id: str, reason: str):
        self.company_id = company_id
        self.reason = reason
        super().__init__(f"Invalid configuration for company {company_id}: {reason}")


# =============================================================================
# Catalog
# =============================================================================


class CatalogError(ReportingError):
    """Base for event catalog errors."""

    code: str = "CATALOG_ERROR"


class UnknownEventTypeError(CatalogError):
    """Event type is not in the catalog or has no registered handler."""

    code: str = "UNKNOWN_EVENT_TYPE"

    def __init__(self, event_type: str, available: list[str] | None = None):
        self.event_type = event_type
        self.available = available or []
        message = f"Unknown event type: {event_type}"
        if self.available:
            message += f". Available: {', '.join(self.available)}"
        super().__init__(message)


# =============================================================================
# Not found
# =============================================================================


class NotFoundError(ReportingError):
    """Base for lookups that found nothing."""

    code: str = "NOT_FOUND"


class EventNotFoundError(NotFoundError):
    """Reporting event does not exist for this company."""

    code: str = "EVENT_NOT_FOUND"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Reporting event not found: {event_id}")


class BatchNotFoundError(NotFoundError):
    """Submission batch does not exist for this company."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Submission batch not found: {batch_id}")


class RubricNotFoundError(NotFoundError):
    """Rubric does not exist for this company."""

    code: str = "RUBRIC_NOT_FOUND"

    def __init__(self, rubric_id: str):
        self.rubric_id = rubric_id
        super().__init__(f"Rubric not found: {rubric_id}")


class SourceRecordNotFoundError(NotFoundError):
    """The HR data source has no record needed to generate an event."""

    code: str = "SOURCE_RECORD_NOT_FOUND"

    def __init__(self, record_type: str, reference: str):
        self.record_type = record_type
        self.reference = reference
        super().__init__(f"{record_type} not found in HR data source: {reference}")


# =============================================================================
# Conflicts
# =============================================================================


class ConflictError(ReportingError):
    """Base for requests that conflict with the current stored state."""

    code: str = "CONFLICT"


class InvalidEventTransitionError(ConflictError):
    """Event status transition is not in the event workflow."""

    code: str = "INVALID_EVENT_TRANSITION"

    def __init__(self, event_id: str, from_status: str, action: str):
        self.event_id = event_id
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Cannot {action} event {event_id} in status {from_status}"
        )


class InvalidBatchTransitionError(ConflictError):
    """Batch status transition is not in the batch workflow."""

    code: str = "INVALID_BATCH_TRANSITION"

    def __init__(self, batch_id: str, from_status: str, action: str):
        self.batch_id = batch_id
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Cannot {action} batch {batch_id} in status {from_status}"
        )


class BatchAlreadyOpenError(ConflictError):
    """A non-terminal batch already exists for the company and group."""

    code: str = "BATCH_ALREADY_OPEN"

    def __init__(self, company_id: str, group_type: str, batch_id: str):
        self.company_id = company_id
        self.group_type = group_type
        self.batch_id = batch_id
        super().__init__(
            f"Batch {batch_id} is still in progress for group {group_type}"
        )


class EmptyBatchError(ConflictError):
    """Closing a batch that holds no events."""

    code: str = "EMPTY_BATCH"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__(f"Batch {batch_id} has no events and cannot be closed")


class RubricOverlapError(ConflictError):
    """An active rubric with the same code overlaps the validity window."""

    code: str = "RUBRIC_OVERLAP"

    def __init__(self, rubric_code: str, existing_rubric_id: str):
        self.rubric_code = rubric_code
        self.existing_rubric_id = existing_rubric_id
        super().__init__(
            f"Rubric {rubric_code} overlaps active rubric {existing_rubric_id}"
        )


class ExclusionPendingError(ConflictError):
    """An exclusion for the same original event is already in flight."""

    code: str = "EXCLUSION_PENDING"

    def __init__(self, event_id: str, exclusion_event_id: str):
        self.event_id = event_id
        self.exclusion_event_id = exclusion_event_id
        super().__init__(
            f"Event {event_id} already has exclusion {exclusion_event_id} in progress"
        )


# =============================================================================
# Rubrics
# =============================================================================


class RubricError(ReportingError):
    """Base for rubric definition errors."""

    code: str = "RUBRIC_ERROR"


class InvalidRubricError(RubricError):
    """Rubric input is malformed (empty fields, inverted window)."""

    code: str = "INVALID_RUBRIC"

    def __init__(self, rubric_code: str, reason: str):
        self.rubric_code = rubric_code
        self.reason = reason
        super().__init__(f"Invalid rubric {rubric_code}: {reason}")


class RubricImmutableError(RubricError):
    """Attempt to rewrite a historical rubric field."""

    code: str = "RUBRIC_IMMUTABLE"

    def __init__(self, rubric_id: str, field: str):
        self.rubric_id = rubric_id
        self.field = field
        super().__init__(
            f"Rubric {rubric_id}: field '{field}' cannot change; "
            f"supersede the rubric instead"
        )


# =============================================================================
# Transport and internal defects
# =============================================================================


class TransportError(ReportingError):
    """Network or remote failure while talking to the authority endpoint."""

    code: str = "TRANSPORT_ERROR"

    def __init__(self, message: str, retryable: bool = True):
        self.retryable = retryable
        super().__init__(message)


class DocumentBuildError(ReportingError):
    """A document builder failed on a validated payload (internal defect)."""

    code: str = "DOCUMENT_BUILD_DEFECT"

    def __init__(self, event_id: str, event_type: str, reason: str):
        self.event_id = event_id
        self.event_type = event_type
        self.reason = reason
        super().__init__(
            f"Failed to build {event_type} document for event {event_id}: {reason}"
        )


class ImmutabilityViolationError(ReportingError):
    """Attempt to modify a persisted field that must never change."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )

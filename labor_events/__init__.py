"""
labor_events -- Reporting event domain.

Responsibility:
    Everything about a single reporting obligation: the static event
    catalog and deadlines, rubrics, per-type validators and document
    builders wired through the handler registry, the event generator and
    the event state machine.

Architecture position:
    Depends on labor_kernel and labor_config only.  labor_batch and
    labor_services build on this package; nothing here imports them.
"""

from labor_events.catalog import (
    EVENT_DEFINITIONS,
    EventDefinition,
    EventType,
    GroupType,
    deadline,
    display_name,
    event_group,
    lookup,
)
from labor_events.config import ReportingConfigService
from labor_events.generator import EventGenerator
from labor_events.models import (
    EventFilter,
    EventPage,
    EventStatus,
    FieldError,
    GenerationResult,
    ReportingConfig,
    ReportingEvent,
    Rubric,
    RubricInput,
)
from labor_events.registry import EventHandler, HandlerRegistry, default_handler_registry
from labor_events.rubrics import RubricRegistry
from labor_events.service import EventService
from labor_events.source import HRDataSource

__all__ = [
    "EVENT_DEFINITIONS",
    "EventDefinition",
    "EventFilter",
    "EventGenerator",
    "EventHandler",
    "EventPage",
    "EventService",
    "EventStatus",
    "EventType",
    "FieldError",
    "GenerationResult",
    "GroupType",
    "HRDataSource",
    "HandlerRegistry",
    "ReportingConfig",
    "ReportingConfigService",
    "ReportingEvent",
    "Rubric",
    "RubricInput",
    "RubricRegistry",
    "deadline",
    "default_handler_registry",
    "display_name",
    "event_group",
    "lookup",
]

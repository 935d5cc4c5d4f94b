"""
Reporting event lifecycle (``labor_events.workflows``).

Every event status change goes through ``transition_event``, which
resolves the action against ``EVENT_WORKFLOW`` and raises
``InvalidEventTransitionError`` for anything outside the allow-list.
"""

from labor_events.models import EventStatus
from labor_kernel.domain.workflow import Guard, Transition, Workflow
from labor_kernel.exceptions import InvalidEventTransitionError
from labor_kernel.logging_config import get_logger

logger = get_logger("events.workflows")

_D = EventStatus.DRAFT.value
_V = EventStatus.VALIDATED.value
_Q = EventStatus.QUEUED.value
_S = EventStatus.SENT.value
_A = EventStatus.ACCEPTED.value
_R = EventStatus.REJECTED.value
_C = EventStatus.CANCELLED.value
_X = EventStatus.EXCLUDED.value

_VALIDATION_PASSED = Guard("validation_passed", "Validator returned no field errors")
_VALIDATION_FAILED = Guard("validation_failed", "Validator returned field errors")
_BATCH_OPEN = Guard("batch_open", "Target batch is OPEN and of the same group")
_EXCLUSION_ACCEPTED = Guard(
    "exclusion_accepted", "An exclusion referencing the event was accepted",
)

EVENT_WORKFLOW = Workflow(
    name="reporting_event",
    description="Lifecycle of a regulated labor reporting event",
    initial_state=_D,
    states=(_D, _V, _Q, _S, _A, _R, _C, _X),
    transitions=(
        Transition(_D, _V, action="validate", guard=_VALIDATION_PASSED),
        Transition(_V, _D, action="invalidate", guard=_VALIDATION_FAILED),
        Transition(_V, _Q, action="enqueue", guard=_BATCH_OPEN),
        Transition(_Q, _S, action="send"),
        Transition(_S, _A, action="accept"),
        Transition(_S, _R, action="reject"),
        Transition(_A, _X, action="exclude", guard=_EXCLUSION_ACCEPTED),
        Transition(_D, _C, action="cancel"),
        Transition(_V, _C, action="cancel"),
        Transition(_R, _C, action="cancel"),
    ),
    terminal_states=(_C, _X),
)


def transition_event(model, action: str) -> EventStatus:
    """Apply a workflow action to a ``ReportingEventModel`` and return the new status."""
    transition = EVENT_WORKFLOW.resolve(model.status, action)
    if transition is None:
        raise InvalidEventTransitionError(str(model.id), model.status, action)
    model.status = transition.to_state
    logger.debug(
        "event_transitioned",
        extra={
            "event_id": str(model.id),
            "action": action,
            "from_status": transition.from_state,
            "to_status": transition.to_state,
        },
    )
    return EventStatus(transition.to_state)

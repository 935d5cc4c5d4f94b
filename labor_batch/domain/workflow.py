"""
labor_batch.domain.workflow -- Submission batch lifecycle.

Every batch status change goes through ``transition_batch``.  A failed
submit returns the batch to CLOSED so it can be re-sent without
re-selecting events; a failed poll leaves it SENT.
"""

from labor_batch.domain.types import BatchStatus
from labor_kernel.domain.workflow import Guard, Transition, Workflow
from labor_kernel.exceptions import InvalidBatchTransitionError
from labor_kernel.logging_config import get_logger

logger = get_logger("batch.workflow")

_O = BatchStatus.OPEN.value
_C = BatchStatus.CLOSED.value
_G = BatchStatus.SENDING.value
_S = BatchStatus.SENT.value
_P = BatchStatus.PROCESSED.value
_E = BatchStatus.ERROR.value

_HAS_EVENTS = Guard("has_events", "Batch holds at least one event")

BATCH_WORKFLOW = Workflow(
    name="submission_batch",
    description="Lifecycle of a batch of reporting events sent together",
    initial_state=_O,
    states=(_O, _C, _G, _S, _P, _E),
    transitions=(
        Transition(_O, _C, action="close", guard=_HAS_EVENTS),
        Transition(_C, _G, action="send"),
        Transition(_G, _S, action="submitted"),
        Transition(_G, _C, action="send_failed"),
        Transition(_S, _P, action="processed"),
        Transition(_S, _E, action="batch_rejected"),
    ),
    terminal_states=(_P, _E),
)


def transition_batch(model, action: str) -> BatchStatus:
    """Apply a workflow action to a ``SubmissionBatchModel``."""
    transition = BATCH_WORKFLOW.resolve(model.status, action)
    if transition is None:
        raise InvalidBatchTransitionError(str(model.id), model.status, action)
    model.status = transition.to_state
    logger.debug(
        "batch_transitioned",
        extra={
            "batch_id": str(model.id),
            "action": action,
            "from_status": transition.from_state,
            "to_status": transition.to_state,
        },
    )
    return BatchStatus(transition.to_state)

"""
Canonical workflow types (``labor_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for lifecycle state machines.  Reporting events and
submission batches both declare their allowed transitions as a
``Workflow``; services resolve every status change through
``Workflow.resolve`` so no transition happens outside the allow-list.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Terminal states have no outgoing transitions.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Descriptive only: the owning service evaluates the condition.
    """

    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""

    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a persisted lifecycle."""

    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"{self.name}: initial state {self.initial_state!r} not in states"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"{self.name}: transition {t.action!r} references unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"{self.name}: terminal state {t.from_state!r} has outgoing "
                    f"transition {t.action!r}"
                )

    def resolve(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, if allowed."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def actions_from(self, from_state: str) -> tuple[str, ...]:
        """Actions available from a state, in declaration order."""
        return tuple(t.action for t in self.transitions if t.from_state == from_state)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

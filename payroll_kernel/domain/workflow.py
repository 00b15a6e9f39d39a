"""
Canonical workflow types (``payroll_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for record lifecycle state machines. Modules declare
their lifecycle as a ``Workflow`` and ask it which ``Transition`` (if any)
connects two states, so the legal moves live in one declarative table
instead of scattered ``if`` chains.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects. ZERO I/O.

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
    """A named condition that must hold before a transition fires.

    Descriptive only; the owning service evaluates it.
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
    """A state machine definition for a record lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"Workflow '{self.name}': initial_state '{self.initial_state}' "
                f"is not one of {self.states}"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Workflow '{self.name}': transition {t.from_state}->{t.to_state} "
                    "references an unknown state"
                )
            if t.from_state in self.terminal_states:
                raise ValueError(
                    f"Workflow '{self.name}': terminal state '{t.from_state}' "
                    "cannot have outgoing transitions"
                )

    def find_transition(self, from_state: str, to_state: str) -> Transition | None:
        """Return the transition from ``from_state`` to ``to_state``, if declared."""
        for t in self.transitions:
            if t.from_state == from_state and t.to_state == to_state:
                return t
        return None

    def allowed_targets(self, from_state: str) -> tuple[str, ...]:
        """States reachable from ``from_state`` in one step."""
        return tuple(t.to_state for t in self.transitions if t.from_state == from_state)

    def is_terminal(self, state: str) -> bool:
        return state in self.terminal_states

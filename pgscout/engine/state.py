"""
CollectionStateMachine - tracks one scrape pass of the orchestrator.

START → NEEDS_MULTI_DB → MULTI_DB → SINGLE_DB → DONE
                       ↘ SINGLE_DB ↗

The multi-database path may fail or be cancelled; the single-database path
still runs afterwards. DONE is reached regardless of partial failures.
"""

from enum import Enum, auto
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field
import time


class CollectState(Enum):
    """Collection pass states."""
    START = auto()
    NEEDS_MULTI_DB = auto()
    MULTI_DB = auto()
    SINGLE_DB = auto()
    DONE = auto()


# Valid state transitions
TRANSITIONS: Dict[CollectState, List[CollectState]] = {
    CollectState.START: [CollectState.NEEDS_MULTI_DB],
    CollectState.NEEDS_MULTI_DB: [CollectState.MULTI_DB, CollectState.SINGLE_DB],
    CollectState.MULTI_DB: [CollectState.SINGLE_DB, CollectState.DONE],
    CollectState.SINGLE_DB: [CollectState.DONE],
    CollectState.DONE: [],
}


@dataclass
class StateEvent:
    """Record of a state transition."""
    from_state: CollectState
    to_state: CollectState
    duration_ms: int
    metadata: Dict[str, Any] = field(default_factory=dict)


class CollectionStateMachine:
    """
    Manages state transitions for one collection pass.

    Ensures valid transitions and tracks history.
    """

    def __init__(self):
        self._state = CollectState.START
        self._history: List[StateEvent] = []
        self._state_entered_at = time.monotonic()

    @property
    def state(self) -> CollectState:
        return self._state

    @property
    def history(self) -> List[StateEvent]:
        return self._history.copy()

    def can_transition(self, to_state: CollectState) -> bool:
        return to_state in TRANSITIONS.get(self._state, [])

    def transition(self, to_state: CollectState, metadata: Optional[Dict[str, Any]] = None):
        """
        Transition to a new state.

        Raises:
            ValueError: If transition is not valid
        """
        if not self.can_transition(to_state):
            raise ValueError(
                f"Invalid transition: {self._state.name} → {to_state.name}. "
                f"Valid transitions: {[s.name for s in TRANSITIONS.get(self._state, [])]}"
            )

        now = time.monotonic()
        self._history.append(StateEvent(
            from_state=self._state,
            to_state=to_state,
            duration_ms=int((now - self._state_entered_at) * 1000),
            metadata=metadata or {},
        ))
        self._state = to_state
        self._state_entered_at = now

    def is_terminal(self) -> bool:
        return self._state == CollectState.DONE

    def format_history(self) -> str:
        """Format history as human-readable string."""
        return " → ".join(
            [self._history[0].from_state.name] + [e.to_state.name for e in self._history]
        ) if self._history else self._state.name

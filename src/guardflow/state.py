"""
Flow Activation State

State Transitions:
                    ┌──────────┐
                    │ INACTIVE │<──────────────────────┐
                    └────┬─────┘                       │
                         │ trigger                     │
                         ▼                             │
                    ┌──────────┐   reset               │
              ┌─────│ PENDING  │───────────────────────┤
              │     │ (gate i) │──┐                    │
              │     └────┬─────┘  │ evaluate           │
      evaluate│          │        │ (j >= i)           │
              │          │<───────┘                    │
              ▼          ▼ evaluate                    │
        ┌──────────┐┌──────────┐  terminal fired       │
        │ BLOCKED  ││COMPLETED │───────────────────────┤
        └────┬─────┘└──────────┘                       │
             │ reset                                   │
             └─────────────────────────────────────────┘

BLOCKED is terminal until reset. COMPLETED is transient: the controller
moves to INACTIVE as soon as the terminal action has fired.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Set, Tuple

from guardflow.gates import GateStatus


class FlowState(Enum):
    """States of a flow activation."""

    INACTIVE = "inactive"
    PENDING = "pending"
    BLOCKED = "blocked"
    COMPLETED = "completed"


class FlowEvent(Enum):
    """Events that move an activation between states."""

    TRIGGER = "trigger"
    EVALUATE = "evaluate"
    RESET = "reset"
    TERMINAL_FIRED = "terminal_fired"


_AFTER_EVALUATION = frozenset({FlowState.PENDING, FlowState.BLOCKED, FlowState.COMPLETED})

# Most recent state changes kept across lifetimes
HISTORY_LIMIT = 100

# Maps (current_state, event) -> allowed next states
FLOW_TRANSITIONS: Dict[Tuple[FlowState, FlowEvent], FrozenSet[FlowState]] = {
    # From INACTIVE
    (FlowState.INACTIVE, FlowEvent.TRIGGER): _AFTER_EVALUATION,
    (FlowState.INACTIVE, FlowEvent.RESET): frozenset({FlowState.INACTIVE}),
    # From PENDING
    (FlowState.PENDING, FlowEvent.TRIGGER): _AFTER_EVALUATION,
    (FlowState.PENDING, FlowEvent.EVALUATE): _AFTER_EVALUATION,
    (FlowState.PENDING, FlowEvent.RESET): frozenset({FlowState.INACTIVE}),
    # From BLOCKED
    (FlowState.BLOCKED, FlowEvent.RESET): frozenset({FlowState.INACTIVE}),
    # From COMPLETED
    (FlowState.COMPLETED, FlowEvent.TERMINAL_FIRED): frozenset({FlowState.INACTIVE}),
    (FlowState.COMPLETED, FlowEvent.RESET): frozenset({FlowState.INACTIVE}),
}


def can_transition(current: FlowState, event: FlowEvent, target: FlowState) -> bool:
    """Check whether the transition table allows current --event--> target."""
    return target in FLOW_TRANSITIONS.get((current, event), frozenset())


@dataclass
class StateChangeEntry:
    """Records a state change in activation history."""

    timestamp: datetime
    from_state: FlowState
    to_state: FlowState
    event: FlowEvent
    notes: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            "timestamp": self.timestamp.isoformat(),
            "from_state": self.from_state.value,
            "to_state": self.to_state.value,
            "event": self.event.value,
        }
        if self.notes:
            result["notes"] = self.notes
        return result


def new_lifetime_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class Activation:
    """
    One run of a guarded flow, from trigger to completion or abandonment.

    Attributes:
        lifetime_id: Unique id for this lifetime (keys terminal idempotence)
        state: Current flow state
        pending_index: Gate position while PENDING or BLOCKED
        gate_snapshots: Gate statuses as last observed
        entered_gates: Gates whose on_enter already fired this lifetime
        retryable: The pending gate last failed transiently
        panel_open: An interrupting panel is open for the pending gate
        block_message: Reason reported by the blocking gate
        history: Most recent state changes (up to HISTORY_LIMIT), oldest first
    """

    lifetime_id: str = ""
    state: FlowState = FlowState.INACTIVE
    pending_index: Optional[int] = None
    gate_snapshots: Tuple[GateStatus, ...] = ()
    entered_gates: Set[str] = field(default_factory=set)
    retryable: bool = False
    panel_open: bool = False
    block_message: str = ""
    history: List[StateChangeEntry] = field(default_factory=list)

    @property
    def is_open(self) -> bool:
        """True while the activation is pending or blocked."""
        return self.state in (FlowState.PENDING, FlowState.BLOCKED)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "lifetime_id": self.lifetime_id,
            "state": self.state.value,
            "pending_index": self.pending_index,
            "gate_snapshots": [s.value for s in self.gate_snapshots],
            "entered_gates": sorted(self.entered_gates),
            "retryable": self.retryable,
            "panel_open": self.panel_open,
            "block_message": self.block_message,
            "history": [h.to_dict() for h in self.history],
        }

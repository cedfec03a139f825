"""
Gates and Gate Chain Evaluation

A gate is one independently checkable precondition of a guarded flow. A
chain is the ordered list of gates a flow must pass before its terminal
action fires.

Gate Status Flow (per activation lifetime):
    UNRESOLVED -> SATISFIED
    UNRESOLVED -> BLOCKING

Statuses never move backward until the activation resets.

Usage:
    from guardflow.gates import Gate, GateChain, GateCheck, evaluate

    chain = GateChain([
        Gate("eligibility", check=check_region, is_async=True),
        Gate("account_connected", check=check_account),
    ])

    evaluation = evaluate(chain, chain.initial_snapshots())
    if isinstance(evaluation.result, PendingAt):
        ...
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, Iterator, Optional, Sequence, Set, Tuple, Union

from guardflow.cancellation import CancelToken
from guardflow.exceptions import BlockingGateFailure, ContractViolation, TransientGateFailure
from guardflow.logging_config import get_logger

logger = get_logger("gates")


class Condition(Enum):
    """External conditions a host reports through notify()."""

    ACCOUNT_CONNECTED = "account_connected"
    ELIGIBILITY_RESOLVED = "eligibility_resolved"
    PANEL_CLOSED = "panel_closed"
    CHALLENGE_RESOLVED = "challenge_resolved"
    WARNINGS_CHANGED = "warnings_changed"
    COST_ESTIMATED = "cost_estimated"


class GateStatus(Enum):
    """Status of a gate within one activation."""

    UNRESOLVED = "unresolved"
    SATISFIED = "satisfied"
    BLOCKING = "blocking"


@dataclass(frozen=True)
class GateCheck:
    """
    Outcome of running a gate's check once.

    Attributes:
        status: UNRESOLVED means the gate is waiting on something
        message: Reason shown when blocking, or diagnostic text
        retryable: True when the check failed transiently
    """

    status: GateStatus
    message: str = ""
    retryable: bool = False

    @classmethod
    def satisfied(cls) -> "GateCheck":
        return cls(GateStatus.SATISFIED)

    @classmethod
    def pending(cls, message: str = "") -> "GateCheck":
        return cls(GateStatus.UNRESOLVED, message)

    @classmethod
    def blocking(cls, message: str) -> "GateCheck":
        return cls(GateStatus.BLOCKING, message)

    @classmethod
    def transient(cls, message: str) -> "GateCheck":
        return cls(GateStatus.UNRESOLVED, message, retryable=True)


# on_enter effects receive the activation's cancel token
GateEffect = Callable[[CancelToken], None]


@dataclass(eq=False)
class Gate:
    """
    A named precondition of a guarded flow.

    Attributes:
        gate_id: Stable identifier
        check: Returns a GateCheck (or a bare GateStatus). May raise
            TransientGateFailure or BlockingGateFailure.
        is_async: Resolving the gate waits on an external event
        on_enter: Effect invoked once per activation when the flow first
            pauses here (start a lookup, open a panel)
        watches: Conditions whose change can alter this gate's check
        interrupts: Pausing here shows a panel/modal the user can dismiss
        title: Explanation title when the gate blocks
        blocked_message: Default explanation message when the gate blocks
        learn_more_url: Optional reference shown with the explanation
    """

    gate_id: str
    check: Callable[[], Union[GateCheck, GateStatus]]
    is_async: bool = False
    on_enter: Optional[GateEffect] = None
    watches: FrozenSet[Condition] = field(default_factory=frozenset)
    interrupts: bool = False
    title: str = ""
    blocked_message: str = ""
    learn_more_url: Optional[str] = None

    def run_check(self) -> GateCheck:
        """Run the check, translating gate failures into a GateCheck."""
        try:
            result = self.check()
        except TransientGateFailure as e:
            logger.warning("Gate %s check failed transiently: %s", self.gate_id, e.message)
            return GateCheck.transient(e.message)
        except BlockingGateFailure as e:
            logger.info("Gate %s blocked: %s", self.gate_id, e.message)
            return GateCheck.blocking(e.message)

        if isinstance(result, GateStatus):
            result = GateCheck(result)
        if not isinstance(result, GateCheck):
            raise ContractViolation(
                f"Gate '{self.gate_id}' check returned {type(result).__name__}",
                component=self.gate_id,
                remediation="Return a GateCheck or GateStatus from gate checks",
            )
        if result.status is GateStatus.BLOCKING and not result.message:
            result = GateCheck.blocking(self.blocked_message)
        return result


class GateChain:
    """Ordered, immutable list of gates for one flow."""

    def __init__(self, gates: Sequence[Gate]):
        ids = [g.gate_id for g in gates]
        duplicates = {i for i in ids if ids.count(i) > 1}
        if duplicates:
            raise ContractViolation(
                f"Duplicate gate ids in chain: {', '.join(sorted(duplicates))}",
                component="GateChain",
            )
        self._gates: Tuple[Gate, ...] = tuple(gates)

    def __iter__(self) -> Iterator[Gate]:
        return iter(self._gates)

    def __len__(self) -> int:
        return len(self._gates)

    def __getitem__(self, index: int) -> Gate:
        return self._gates[index]

    @property
    def gate_ids(self) -> Tuple[str, ...]:
        return tuple(g.gate_id for g in self._gates)

    def index_of(self, gate_id: str) -> int:
        """Get the position of a gate by id."""
        for i, gate in enumerate(self._gates):
            if gate.gate_id == gate_id:
                return i
        raise KeyError(gate_id)

    def initial_snapshots(self) -> Tuple[GateStatus, ...]:
        return tuple(GateStatus.UNRESOLVED for _ in self._gates)

    def conditions_from(self, index: int) -> Set[Condition]:
        """Conditions watched by the gate at index and every later gate."""
        watched: Set[Condition] = set()
        for gate in self._gates[index:]:
            watched.update(gate.watches)
        return watched


# ========== Evaluation Results ==========


@dataclass(frozen=True)
class AllSatisfied:
    """Every gate in the chain is satisfied."""


@dataclass(frozen=True)
class PendingAt:
    """Evaluation stopped at an unresolved gate."""

    gate: Gate
    index: int
    check: GateCheck


@dataclass(frozen=True)
class BlockedAt:
    """Evaluation stopped at a gate that definitively failed."""

    gate: Gate
    index: int
    check: GateCheck


EvalResult = Union[AllSatisfied, PendingAt, BlockedAt]


@dataclass(frozen=True)
class Evaluation:
    """Result of one evaluation pass plus the statuses it observed."""

    result: EvalResult
    snapshots: Tuple[GateStatus, ...]


def evaluate(chain: GateChain, snapshots: Sequence[GateStatus]) -> Evaluation:
    """Evaluate a gate chain left to right.

    Pure with respect to the flow: runs gate checks but never on_enter
    effects, and returns new snapshots instead of mutating the input.
    Gates already SATISFIED are not re-checked; a gate already BLOCKING
    stays blocking.

    Args:
        chain: Gates in declaration order
        snapshots: Statuses from the previous pass of this activation

    Returns:
        Evaluation with AllSatisfied, PendingAt or BlockedAt
    """
    if len(snapshots) != len(chain):
        raise ContractViolation(
            f"Snapshot count {len(snapshots)} does not match chain length {len(chain)}",
            component="evaluate",
        )

    statuses = list(snapshots)
    for index, gate in enumerate(chain):
        cached = statuses[index]
        if cached is GateStatus.SATISFIED:
            continue
        if cached is GateStatus.BLOCKING:
            check = GateCheck.blocking(gate.blocked_message)
            return Evaluation(BlockedAt(gate, index, check), tuple(statuses))

        check = gate.run_check()
        if check.status is GateStatus.SATISFIED:
            statuses[index] = GateStatus.SATISFIED
            continue
        if check.status is GateStatus.BLOCKING:
            statuses[index] = GateStatus.BLOCKING
            return Evaluation(BlockedAt(gate, index, check), tuple(statuses))
        return Evaluation(PendingAt(gate, index, check), tuple(statuses))

    return Evaluation(AllSatisfied(), tuple(statuses))

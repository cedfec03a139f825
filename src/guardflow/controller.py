"""
GuardFlow Controller

Drives one guarded flow: evaluates its gate chain, suspends on the first
gate that is not satisfied, resumes when the host reports a relevant
change, and fires the terminal action at most once per activation.

Usage:
    controller = FlowController(
        name="buy_fiat",
        chain=GateChain([eligibility_gate, account_gate]),
        terminal=TerminalAction(lambda _: open_modal()),
    )

    controller.activate()                       # button press
    controller.notify(Condition.ACCOUNT_CONNECTED)  # host event
    controller.is_disabled(), controller.explanation()
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from guardflow.cancellation import CancelToken
from guardflow.exceptions import (
    BlockingGateFailure,
    ChallengeFailed,
    ContractViolation,
    GuardFlowError,
    SubmissionBlocked,
    TransientGateFailure,
)
from guardflow.gates import (
    AllSatisfied,
    BlockedAt,
    Condition,
    Gate,
    GateChain,
    PendingAt,
    evaluate,
)
from guardflow.logging_config import get_logger
from guardflow.state import (
    Activation,
    FlowEvent,
    HISTORY_LIMIT,
    FlowState,
    StateChangeEntry,
    can_transition,
    new_lifetime_id,
)
from guardflow.surface import (
    Explanation,
    derive_disabled,
    derive_explanation,
    derive_retry_available,
)
from guardflow.terminal import CompletionResult, TerminalAction

logger = get_logger("controller")

CompletionListener = Callable[[CompletionResult], None]


class FlowController:
    """Finite-state controller for one guarded action flow."""

    def __init__(
        self,
        chain: GateChain,
        terminal: TerminalAction,
        name: str = "flow",
        on_completed: Optional[CompletionListener] = None
    ):
        self.name = name
        self.chain = chain
        self.terminal = terminal
        self.activation = Activation(gate_snapshots=chain.initial_snapshots())
        self.last_completion: Optional[CompletionResult] = None
        self.last_error: Optional[GuardFlowError] = None
        self._token: Optional[CancelToken] = None
        self._listeners: List[CompletionListener] = []
        self._evaluating = False
        self._rerun_requested = False

        if on_completed:
            self._listeners.append(on_completed)

    # ========== Read-only state ==========

    @property
    def state(self) -> FlowState:
        return self.activation.state

    @property
    def pending_gate(self) -> Optional[Gate]:
        """Gate the flow is paused (or blocked) at, if any."""
        if self.activation.pending_index is None:
            return None
        return self.chain[self.activation.pending_index]

    @property
    def cancel_token(self) -> Optional[CancelToken]:
        return self._token

    def is_disabled(self) -> bool:
        return derive_disabled(self.activation, self.chain)

    def explanation(self) -> Optional[Explanation]:
        return derive_explanation(self.activation, self.chain)

    def retry_available(self) -> bool:
        return derive_retry_available(self.activation)

    def add_completion_listener(self, listener: CompletionListener):
        """Register a consumer of the completion event."""
        self._listeners.append(listener)

    # ========== Triggers ==========

    def activate(self) -> FlowState:
        """Inbound trigger from a user-facing control."""
        return self.trigger()

    def trigger(self) -> FlowState:
        """Start a new activation or re-enter the open one.

        INACTIVE starts a fresh lifetime and evaluates from gate 0. PENDING
        re-evaluates from gate 0 without re-running effects of gates already
        entered, except that a transiently failed gate gets its effect
        re-issued (retry). PENDING on an async gate whose request is still
        outstanding is a no-op. BLOCKED is left alone until reset().
        """
        act = self.activation
        if act.state is FlowState.BLOCKED:
            logger.debug("%s: trigger ignored while blocked", self.name)
            return act.state

        if act.state is FlowState.INACTIVE:
            self._start_activation()
        elif act.retryable:
            gate = self.chain[act.pending_index]
            logger.info("%s: retrying gate %s", self.name, gate.gate_id)
            act.entered_gates.discard(gate.gate_id)
            act.retryable = False
        elif self.chain[act.pending_index].is_async:
            # Relevant changes are evaluated as they arrive through notify().
            gate = self.chain[act.pending_index]
            logger.debug("%s: %s still outstanding, trigger ignored", self.name, gate.gate_id)
            return act.state

        self._run(FlowEvent.TRIGGER)
        return self.activation.state

    def notify(self, condition: Condition) -> bool:
        """Inbound resume notification. See observe_external_change()."""
        return self.observe_external_change(condition)

    def observe_external_change(self, condition: Condition) -> bool:
        """React to a change in something a gate depends on.

        Re-evaluates only if the flow is pending and the condition is watched
        by the pending gate or a gate after it. PANEL_CLOSED for an
        interrupting gate that is still unresolved afterwards abandons the
        activation.

        Returns:
            True if the change was relevant and the flow re-evaluated
        """
        act = self.activation
        if act.state is not FlowState.PENDING:
            logger.debug("%s: ignoring %s while %s", self.name, condition.value, act.state.value)
            return False

        pending = self.chain[act.pending_index]
        if condition is Condition.PANEL_CLOSED and pending.interrupts:
            act.panel_open = False
            self._run(FlowEvent.EVALUATE)
            if (
                self.activation.state is FlowState.PENDING
                and self.activation.pending_index == self.chain.index_of(pending.gate_id)
            ):
                self.reset(notes=f"panel closed at {pending.gate_id}")
            return True

        if condition not in self.chain.conditions_from(act.pending_index):
            logger.debug("%s: %s not relevant at %s", self.name, condition.value, pending.gate_id)
            return False

        self._run(FlowEvent.EVALUATE)
        return True

    def reset(self, notes: Optional[str] = None):
        """Abandon the current activation and return to INACTIVE.

        Cancels the lifetime's token so late results of async gate work are
        dropped; the next trigger starts again from gate 0.
        """
        act = self.activation
        if act.state is FlowState.INACTIVE and self._token is None:
            return

        self._transition(FlowState.INACTIVE, FlowEvent.RESET, notes=notes or "reset")
        self._close_lifetime()

    # ========== Internals ==========

    def _start_activation(self):
        lifetime_id = new_lifetime_id()
        history = self.activation.history
        self.activation = Activation(
            lifetime_id=lifetime_id,
            gate_snapshots=self.chain.initial_snapshots(),
            history=history,
        )
        self._token = CancelToken(f"{self.name}:{lifetime_id}")
        logger.debug("%s: started activation %s", self.name, lifetime_id)

    def _close_lifetime(self):
        if self._token is not None:
            self._token.cancel()
            self._token = None
        act = self.activation
        act.pending_index = None
        act.gate_snapshots = self.chain.initial_snapshots()
        act.entered_gates.clear()
        act.retryable = False
        act.panel_open = False
        act.block_message = ""

    def _run(self, event: FlowEvent):
        # Notifications raised from inside an on_enter effect are folded into
        # the evaluation already in progress.
        if self._evaluating:
            self._rerun_requested = True
            return

        self._evaluating = True
        try:
            while True:
                self._rerun_requested = False
                self._evaluate_once(event)
                event = FlowEvent.EVALUATE
                if not self._rerun_requested or self.activation.state is not FlowState.PENDING:
                    break
        finally:
            self._evaluating = False

    def _evaluate_once(self, event: FlowEvent):
        act = self.activation
        if event is FlowEvent.EVALUATE and act.state is not FlowState.PENDING:
            return

        evaluation = evaluate(self.chain, act.gate_snapshots)
        act.gate_snapshots = evaluation.snapshots
        result = evaluation.result

        if isinstance(result, AllSatisfied):
            act.pending_index = None
            act.retryable = False
            act.panel_open = False
            self._transition(FlowState.COMPLETED, event, notes="all gates satisfied")
            self._complete()
        elif isinstance(result, BlockedAt):
            act.pending_index = result.index
            act.retryable = False
            act.panel_open = False
            act.block_message = result.check.message
            logger.info("%s: blocked at %s: %s", self.name, result.gate.gate_id, result.check.message)
            self._transition(FlowState.BLOCKED, event, notes=f"blocked at {result.gate.gate_id}")
            self.last_error = BlockingGateFailure(
                result.check.message or f"Gate '{result.gate.gate_id}' is blocking",
                gate_id=result.gate.gate_id,
                title=result.gate.title,
                learn_more_url=result.gate.learn_more_url,
            )
        elif isinstance(result, PendingAt):
            self._pause_at(result, event)

    def _pause_at(self, result: PendingAt, event: FlowEvent):
        act = self.activation
        gate = result.gate
        moved = act.state is not FlowState.PENDING or act.pending_index != result.index
        if moved:
            act.panel_open = False
        act.pending_index = result.index
        act.retryable = result.check.retryable
        self._transition(
            FlowState.PENDING,
            event,
            notes=f"pending at {gate.gate_id}",
            record=moved,
        )

        if result.check.retryable:
            logger.warning("%s: gate %s failed transiently: %s", self.name, gate.gate_id, result.check.message)
            self.last_error = TransientGateFailure(
                result.check.message or f"Gate '{gate.gate_id}' check failed",
                gate_id=gate.gate_id,
            )

        if gate.gate_id in act.entered_gates:
            return

        act.entered_gates.add(gate.gate_id)
        if gate.interrupts:
            act.panel_open = True
        if gate.on_enter is not None:
            logger.debug("%s: entering gate %s", self.name, gate.gate_id)
            gate.on_enter(self._token)
            # Observe whatever the effect changed before settling.
            self._rerun_requested = True

    def _complete(self):
        lifetime_id = self.activation.lifetime_id
        try:
            fired, value = self.terminal.fire(lifetime_id)
        except SubmissionBlocked as e:
            logger.warning("%s: submission refused: %s", self.name, e.message)
            self.last_error = e
            self.reset(notes="submission blocked")
            return
        except ChallengeFailed as e:
            logger.info("%s: challenge failed, returning to %s", self.name, e.return_to or "start")
            self.last_error = e
            self.reset(notes="challenge failed")
            return
        except Exception as e:
            logger.error("%s: terminal action %s failed: %s", self.name, self.terminal.name, e)
            self.reset(notes="terminal action failed")
            raise

        self._transition(FlowState.INACTIVE, FlowEvent.TERMINAL_FIRED, notes=self.terminal.name)
        self._close_lifetime()
        if not fired:
            return

        completion = CompletionResult(flow_name=self.name, lifetime_id=lifetime_id, value=value)
        self.last_completion = completion
        self.last_error = None
        for listener in list(self._listeners):
            listener(completion)

    def _transition(
        self,
        target: FlowState,
        event: FlowEvent,
        notes: Optional[str] = None,
        record: bool = True
    ):
        act = self.activation
        current = act.state
        if not can_transition(current, event, target):
            logger.error("%s: invalid transition %s --%s--> %s", self.name, current.value, event.value, target.value)
            raise ContractViolation(
                f"Invalid transition {current.value} --{event.value}--> {target.value}",
                component=self.name,
            )
        act.state = target
        if current is target and not record:
            return
        act.history.append(StateChangeEntry(
            timestamp=datetime.now(),
            from_state=current,
            to_state=target,
            event=event,
            notes=notes,
        ))
        del act.history[:-HISTORY_LIMIT]
        logger.debug("%s: %s --%s--> %s (%s)", self.name, current.value, event.value, target.value, notes)

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot for diagnostics and rendering."""
        explanation = self.explanation()
        return {
            "name": self.name,
            "gates": list(self.chain.gate_ids),
            "activation": self.activation.to_dict(),
            "disabled": self.is_disabled(),
            "retry_available": self.retry_available(),
            "explanation": explanation.to_dict() if explanation else None,
        }

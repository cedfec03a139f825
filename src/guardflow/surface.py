"""
Disable/Explain Surface

Derives what the trigger control shows from the current activation. Every
function here is pure: it reads state and returns a value, so the rendering
layer may call it on every redraw.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from guardflow.gates import GateChain
from guardflow.state import Activation, FlowState


@dataclass(frozen=True)
class Explanation:
    """
    Explanatory affordance shown next to the trigger control.

    Attributes:
        title: Short heading
        message: Body text
        learn_more_url: Optional informational link
        kind: "blocked" for a blocking gate, "warning" for an advisory
    """

    title: str
    message: str
    learn_more_url: Optional[str] = None
    kind: str = "blocked"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {"title": self.title, "message": self.message, "kind": self.kind}
        if self.learn_more_url:
            result["learn_more_url"] = self.learn_more_url
        return result


def derive_disabled(activation: Activation, chain: GateChain) -> bool:
    """Whether the trigger control should be disabled.

    Disabled when the flow is blocked, when the pending gate's async work is
    in flight or failed transiently (a retry is pending), or when an
    interrupting panel is already open for the pending gate.
    """
    if activation.state is FlowState.BLOCKED:
        return True
    if activation.state is not FlowState.PENDING or activation.pending_index is None:
        return False

    gate = chain[activation.pending_index]
    if activation.retryable:
        return True
    if gate.interrupts:
        return activation.panel_open
    return gate.is_async


def derive_retry_available(activation: Activation) -> bool:
    """Whether re-triggering would retry a transiently failed gate."""
    return activation.state is FlowState.PENDING and activation.retryable


def derive_explanation(activation: Activation, chain: GateChain) -> Optional[Explanation]:
    """Explanation for a blocked activation; None while merely pending."""
    if activation.state is not FlowState.BLOCKED or activation.pending_index is None:
        return None

    gate = chain[activation.pending_index]
    message = activation.block_message or gate.blocked_message
    return Explanation(
        title=gate.title or gate.gate_id.replace("_", " ").title(),
        message=message,
        learn_more_url=gate.learn_more_url,
    )

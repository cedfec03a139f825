"""
guardflow: guarded multi-stage action flows

Gate chains, a resumable flow controller and at-most-once terminal actions
for user-triggered actions that must pass several async checks first.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("guardflow")
except PackageNotFoundError:
    __version__ = "0.0.0"  # Fallback for development

from guardflow.controller import FlowController
from guardflow.gates import (
    AllSatisfied,
    BlockedAt,
    Condition,
    Gate,
    GateChain,
    GateCheck,
    GateStatus,
    PendingAt,
    evaluate,
)
from guardflow.state import FlowState
from guardflow.surface import Explanation
from guardflow.terminal import CompletionResult, TerminalAction

__all__ = [
    "__version__",
    "FlowController",
    "FlowState",
    "AllSatisfied",
    "BlockedAt",
    "PendingAt",
    "Condition",
    "Gate",
    "GateChain",
    "GateCheck",
    "GateStatus",
    "evaluate",
    "Explanation",
    "CompletionResult",
    "TerminalAction",
]

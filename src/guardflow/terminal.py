"""
Terminal Action

Wraps the side effect a flow performs once all of its gates are satisfied
and guarantees it runs at most once per activation lifetime.
"""

from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from guardflow.logging_config import get_logger

logger = get_logger("terminal")

RECORD_LIMIT = 64


@dataclass(frozen=True)
class CompletionResult:
    """Payload of the completion event emitted after a terminal action."""

    flow_name: str
    lifetime_id: str
    value: Any = None
    completed_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "flow_name": self.flow_name,
            "lifetime_id": self.lifetime_id,
            "value": self.value if isinstance(self.value, (str, int, float, bool)) else repr(self.value),
            "completed_at": self.completed_at.isoformat(),
        }


class TerminalActionRecord:
    """Lifetime ids for which a terminal action has already fired.

    Only the most recent `limit` lifetimes are remembered. Lifetime ids are
    never reused and a controller only fires for its open lifetime, so an
    evicted id is not asked about again.
    """

    def __init__(self, limit: int = RECORD_LIMIT):
        self.limit = limit
        self._fired: "OrderedDict[str, datetime]" = OrderedDict()

    def has_fired(self, lifetime_id: str) -> bool:
        return lifetime_id in self._fired

    def mark(self, lifetime_id: str):
        self._fired.setdefault(lifetime_id, datetime.now())
        while len(self._fired) > self.limit:
            self._fired.popitem(last=False)

    def discard(self, lifetime_id: str):
        self._fired.pop(lifetime_id, None)

    def fired_at(self, lifetime_id: str) -> Optional[datetime]:
        return self._fired.get(lifetime_id)

    def __len__(self) -> int:
        return len(self._fired)


class TerminalAction:
    """At-most-once wrapper around a flow's terminal side effect.

    The record is marked before the action runs so a re-entrant completion
    for the same lifetime is ignored; it is released again if the action
    raises, leaving the lifetime eligible for another attempt.
    """

    def __init__(
        self,
        action: Callable[[str], Any],
        name: str = "terminal",
        record: Optional[TerminalActionRecord] = None
    ):
        self.action = action
        self.name = name
        self.record = record or TerminalActionRecord()

    def fire(self, lifetime_id: str) -> Tuple[bool, Any]:
        """Run the action for a lifetime unless it already ran.

        Returns:
            Tuple of (fired, value)
        """
        if self.record.has_fired(lifetime_id):
            logger.debug("Terminal action %s already fired for %s", self.name, lifetime_id)
            return False, None

        self.record.mark(lifetime_id)
        try:
            value = self.action(lifetime_id)
        except Exception:
            self.record.discard(lifetime_id)
            raise
        logger.info("Terminal action %s fired for %s", self.name, lifetime_id)
        return True, value

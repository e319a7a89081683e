from enum import Enum
from typing import Any, Dict, List, Optional
from app.core import errors

class BreakdownStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"

VALID_TRANSITIONS = {
    BreakdownStatus.PENDING: [BreakdownStatus.ASSIGNED],
    BreakdownStatus.ASSIGNED: [BreakdownStatus.IN_PROGRESS, BreakdownStatus.RESOLVED],
    BreakdownStatus.IN_PROGRESS: [BreakdownStatus.RESOLVED],
    BreakdownStatus.RESOLVED: [],
}

class BreakdownStateMachine:
    """
    Lifecycle rules for breakdown reports.
    Builds merge-patches for status changes; it never writes to the store itself.
    """

    def __init__(self, allow_reassignment: bool = False):
        self.allow_reassignment = allow_reassignment

    def allowed_targets(self, current_state: str) -> List[BreakdownStatus]:
        try:
            current = BreakdownStatus(current_state)
        except ValueError:
            return []
        targets = list(VALID_TRANSITIONS[current])
        if self.allow_reassignment and current == BreakdownStatus.ASSIGNED:
            targets.append(BreakdownStatus.ASSIGNED)
        return targets

    def validate_transition(self, current_state: str, new_state: BreakdownStatus):
        if new_state not in self.allowed_targets(current_state):
            raise errors.InvalidTransition(current_state, new_state.value)

    def transition(self, report: Dict[str, Any], new_state: BreakdownStatus, updated_at: int, fields: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Validate the move out of the report's current status and return the patch
        that applies it. Only `timestamps.updated` is written so `created` survives.
        """
        self.validate_transition(report.get("status"), new_state)

        patch = dict(fields or {})
        patch["status"] = new_state.value
        patch["timestamps"] = {"updated": updated_at}
        return patch

"""
Report Service - lifecycle operations on breakdown reports
"""
import logging
from typing import Any, Callable, Dict, Optional

from app.core import errors
from app.core.clock import now_ms
from app.core.fsm import BreakdownStateMachine, BreakdownStatus
from app.core.identity import Identity
from app.core.store import RecordStore
from app.core.permissions import Role

logger = logging.getLogger(__name__)


class ReportService:
    """Service for breakdown report operations"""

    def __init__(
        self,
        store: RecordStore,
        clock: Callable[[], int] = now_ms,
        assignment_guard: bool = True,
        default_reporter_name: str = "Reporter",
    ):
        self.store = store
        self.clock = clock
        self.assignment_guard = assignment_guard
        self.default_reporter_name = default_reporter_name
        self.fsm = BreakdownStateMachine(allow_reassignment=not assignment_guard)

    def get(self, report_id: str) -> Dict[str, Any]:
        document = self.store.read_once(self._path(report_id))
        if document is None:
            raise errors.NotFound("Breakdown not found")
        return {"id": report_id, **document}

    def create(self, identity: Optional[Identity], message: Optional[str]) -> Dict[str, Any]:
        """File a new report as `identity`. New reports are always pending and unassigned."""
        if identity is None:
            raise errors.AuthRequired()
        self._require_message(message)

        now = self.clock()
        document = {
            "reporterUid": identity.uid,
            "reporterName": identity.display_name or self.default_reporter_name,
            "reporterEmail": identity.email,
            "message": message,
            "status": BreakdownStatus.PENDING.value,
            "assignedTechnician": None,
            "fixDetails": None,
            "timestamps": {"created": now, "updated": now},
        }
        report_id = self.store.create("breakdowns", document)
        logger.info("Breakdown %s created by %s", report_id, identity.email)
        return {"id": report_id, **document}

    def edit_message(self, report_id: str, message: Optional[str]) -> Dict[str, Any]:
        self._require_message(message)
        current = self.get(report_id)

        patch = {
            "message": message,
            "timestamps": {"updated": self._next_updated(current)},
        }
        if not self.store.patch(self._path(report_id), patch):
            raise errors.NotFound("Breakdown not found")
        logger.info("Breakdown %s message edited", report_id)
        return self.get(report_id)

    def assign_technician(self, report_id: str, technician: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Assign `technician` (an account document) to a pending report.
        The report keeps a copy of the technician's name and email; later changes
        to the account do not reach it.
        """
        if not technician:
            raise errors.ValidationError("Please select a technician!")
        if technician.get("role") != Role.TECHNICIAN.value:
            raise errors.ValidationError("Selected account is not a technician")

        current = self.get(report_id)
        patch = self.fsm.transition(
            current,
            BreakdownStatus.ASSIGNED,
            self._next_updated(current),
            {"assignedTechnician": {"name": technician.get("name"), "email": technician.get("email")}},
        )
        expect = {"status": BreakdownStatus.PENDING.value} if self.assignment_guard else None
        self._write_transition(report_id, patch, expect, BreakdownStatus.ASSIGNED)
        logger.info("Breakdown %s assigned to %s", report_id, technician.get("email"))
        return self.get(report_id)

    def start_work(self, report_id: str, technician: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Move an assigned report to in-progress. When `technician` (the caller's
        account) is given, it must match the report's technician snapshot by name.
        """
        current = self.get(report_id)
        if technician is not None:
            assigned = current.get("assignedTechnician") or {}
            if not technician.get("name") or assigned.get("name") != technician.get("name"):
                raise errors.UnauthorizedRole("Only the assigned technician can start this breakdown.")
        patch = self.fsm.transition(current, BreakdownStatus.IN_PROGRESS, self._next_updated(current))
        self._write_transition(report_id, patch, {"status": current["status"]}, BreakdownStatus.IN_PROGRESS)
        logger.info("Breakdown %s in progress", report_id)
        return self.get(report_id)

    def resolve(self, report_id: str, fix_details: Optional[str]) -> Dict[str, Any]:
        fix = (fix_details or "").strip()
        if not fix:
            raise errors.ValidationError("Please enter fix details!")

        current = self.get(report_id)
        patch = self.fsm.transition(
            current,
            BreakdownStatus.RESOLVED,
            self._next_updated(current),
            {"fixDetails": fix},
        )
        self._write_transition(report_id, patch, {"status": current["status"]}, BreakdownStatus.RESOLVED)
        logger.info("Breakdown %s resolved", report_id)
        return self.get(report_id)

    def delete(self, report_id: str):
        """Remove the report. Deleting an absent report is not an error."""
        self.store.delete(self._path(report_id))
        logger.info("Breakdown %s deleted", report_id)

    def _write_transition(self, report_id: str, patch: Dict[str, Any], expect: Optional[Dict[str, Any]], target: BreakdownStatus):
        if self.store.patch(self._path(report_id), patch, expect=expect):
            return
        latest = self.store.read_once(self._path(report_id))
        if latest is None:
            raise errors.NotFound("Breakdown not found")
        raise errors.InvalidTransition(
            latest.get("status"),
            target.value,
            reason=f"Breakdown changed to {latest.get('status')} before the update was applied.",
        )

    def _next_updated(self, current: Dict[str, Any]) -> int:
        previous = (current.get("timestamps") or {}).get("updated") or 0
        return max(self.clock(), previous + 1)

    @staticmethod
    def _require_message(message: Optional[str]):
        if not message or not message.strip():
            raise errors.ValidationError("Message cannot be empty!")

    @staticmethod
    def _path(report_id: str) -> str:
        if not report_id or "/" in report_id:
            raise errors.NotFound("Breakdown not found")
        return f"breakdowns/{report_id}"

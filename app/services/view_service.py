"""
Role-scoped projections of the breakdown collection.

Each view subscribes to the whole collection and, on every snapshot, rebuilds
its list from scratch: materialize, keep what the role may see, sort. There is
no caching or diffing, so a local write and a remote write reach the view the
same way.
"""
import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from app.core import errors
from app.core.fsm import BreakdownStatus
from app.core.permissions import Role, actions_for
from app.core.store import RecordStore

logger = logging.getLogger(__name__)

STATUS_FILTERS = ["all"] + [s.value for s in BreakdownStatus]

# Technician ordering: open work first
TECHNICIAN_STATUS_PRIORITY = {
    BreakdownStatus.ASSIGNED.value: 0,
    BreakdownStatus.IN_PROGRESS.value: 1,
}

ViewListener = Callable[["RoleView"], None]


def materialize(snapshot: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Turn a collection snapshot into a list of records carrying their ids. Absent means empty."""
    if not snapshot:
        return []
    return [{"id": key, **value} for key, value in snapshot.items() if value]


def created_at(report: Dict[str, Any]) -> int:
    return (report.get("timestamps") or {}).get("created") or 0


class RoleView:
    role: Role

    def __init__(self, store: RecordStore, listener: Optional[ViewListener] = None):
        self.store = store
        self.listener = listener
        self.items: List[Dict[str, Any]] = []
        self.scoped: List[Dict[str, Any]] = []
        self._snapshot: Optional[Dict[str, Any]] = None
        self._unsubscribes: List[Callable[[], None]] = []
        # Snapshot delivery and filter changes both rebuild `items` and must not interleave
        self._lock = threading.RLock()

    def accepts(self, report: Dict[str, Any]) -> bool:
        return True

    def selects(self, report: Dict[str, Any]) -> bool:
        return True

    def sort(self, reports: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return reports

    def project(self, snapshot: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.scoped = [r for r in materialize(snapshot) if self.accepts(r)]
        return self.sort([r for r in self.scoped if self.selects(r)])

    def open(self) -> "RoleView":
        self._unsubscribes.append(self.store.subscribe("breakdowns", self._on_breakdowns))
        logger.info("%s view subscribed", self.role.value)
        return self

    def close(self):
        while self._unsubscribes:
            self._unsubscribes.pop()()
        logger.info("%s view closed", self.role.value)

    def refresh(self):
        with self._lock:
            self.items = self.project(self._snapshot)
            self._notify()

    def summary(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in BreakdownStatus}
        for report in self.scoped:
            if report.get("status") in counts:
                counts[report["status"]] += 1
        counts["total"] = len(self.scoped)
        return counts

    @property
    def actions(self) -> List[str]:
        return sorted(action.value for action in actions_for(self.role.value))

    @property
    def status_filter(self) -> Optional[str]:
        return None

    def payload(self) -> Dict[str, Any]:
        return {
            "role": self.role.value,
            "status_filter": self.status_filter,
            "items": self.items,
            "summary": self.summary(),
            "actions": self.actions,
        }

    def _on_breakdowns(self, snapshot: Optional[Dict[str, Any]]):
        with self._lock:
            self._snapshot = snapshot
            self.refresh()

    def _notify(self):
        if self.listener is not None:
            self.listener(self)

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ReporterView(RoleView):
    """The reporter's own reports, newest first."""
    role = Role.REPORTER

    def __init__(self, store: RecordStore, reporter_uid: str, listener: Optional[ViewListener] = None):
        super().__init__(store, listener)
        self.reporter_uid = reporter_uid

    def accepts(self, report):
        return report.get("reporterUid") == self.reporter_uid

    def sort(self, reports):
        return sorted(reports, key=created_at, reverse=True)


class ManagerView(RoleView):
    """
    Every report in collection order, narrowed by a status filter the manager
    picks. Also tracks the technician accounts available for assignment.
    """
    role = Role.MANAGER

    def __init__(self, store: RecordStore, status_filter: str = "all", listener: Optional[ViewListener] = None):
        super().__init__(store, listener)
        self._status_filter = self._check_filter(status_filter)
        self.technicians: List[Dict[str, Any]] = []

    @property
    def status_filter(self) -> str:
        return self._status_filter

    def set_status_filter(self, status_filter: str):
        checked = self._check_filter(status_filter)
        with self._lock:
            self._status_filter = checked
            self.refresh()

    def selects(self, report):
        return self._status_filter == "all" or report.get("status") == self._status_filter

    def open(self):
        super().open()
        self._unsubscribes.append(self.store.subscribe("users", self._on_users))
        return self

    def payload(self):
        payload = super().payload()
        payload["technicians"] = self.technicians
        return payload

    def _on_users(self, snapshot: Optional[Dict[str, Any]]):
        with self._lock:
            self.technicians = sorted(
                (
                    {"id": uid, "name": account.get("name"), "email": account.get("email")}
                    for uid, account in (snapshot or {}).items()
                    if account and account.get("role") == Role.TECHNICIAN.value
                ),
                key=lambda t: t["name"] or "",
            )
            self._notify()

    @staticmethod
    def _check_filter(status_filter: Optional[str]) -> str:
        status_filter = status_filter or "all"
        if status_filter not in STATUS_FILTERS:
            raise errors.ValidationError(f"Unknown status filter '{status_filter}'")
        return status_filter


class TechnicianView(RoleView):
    """
    Reports whose assigned-technician snapshot carries this technician's name.
    Open work first, then newest first.
    """
    role = Role.TECHNICIAN

    def __init__(self, store: RecordStore, technician_name: Optional[str], listener: Optional[ViewListener] = None):
        super().__init__(store, listener)
        self.technician_name = technician_name

    def accepts(self, report):
        if not self.technician_name:
            return False
        technician = report.get("assignedTechnician") or {}
        return technician.get("name") == self.technician_name

    def sort(self, reports):
        return sorted(
            reports,
            key=lambda r: (TECHNICIAN_STATUS_PRIORITY.get(r.get("status"), len(TECHNICIAN_STATUS_PRIORITY)), -created_at(r)),
        )


def build_view(store: RecordStore, account: Dict[str, Any], status_filter: str = "all", listener: Optional[ViewListener] = None) -> RoleView:
    """Pick the view for the account's role. The view is not subscribed until opened."""
    role = account.get("role")
    if role == Role.REPORTER.value:
        return ReporterView(store, account["id"], listener)
    if role == Role.MANAGER.value:
        return ManagerView(store, status_filter, listener)
    if role == Role.TECHNICIAN.value:
        return TechnicianView(store, account.get("name"), listener)
    raise errors.UnauthorizedRole()

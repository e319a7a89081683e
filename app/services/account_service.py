"""
Account Service - the directory mapping identities to names and roles
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from app.core import errors
from app.core.clock import now_ms
from app.core.identity import Identity, IdentityProvider, Session
from app.core.permissions import DASHBOARD_ROUTES, Role
from app.core.security import validate_password
from app.core.store import RecordStore

logger = logging.getLogger(__name__)

PROVISIONABLE_ROLES = (Role.TECHNICIAN, Role.MANAGER)


class AccountService:
    """Service for account registration, provisioning and role resolution"""

    def __init__(self, store: RecordStore, identity: IdentityProvider):
        self.store = store
        self.identity = identity

    def register(self, name: str, email: str, password: str) -> Dict[str, Any]:
        """Self-service sign-up. Always creates a reporter."""
        return self._create_account(name, email, password, Role.REPORTER)

    def provision(self, name: str, email: str, password: str, role: Role) -> Dict[str, Any]:
        """Manager-driven creation of technician and manager accounts."""
        if role not in PROVISIONABLE_ROLES:
            raise errors.ValidationError("Role must be technician or manager")
        return self._create_account(name, email, password, role)

    def login(self, email: str, password: str, accepted_roles: Iterable[Role]) -> Tuple[Session, Dict[str, Any], str]:
        """
        Authenticate, then check the account's role against the entry point.
        Returns the session, the account and the dashboard route for its role.
        """
        session = self.identity.authenticate(email, password)
        account = self.get(session.identity.uid)
        if account is None:
            self.identity.sign_out(session.token)
            logger.warning("Login for %s has no directory entry", session.identity.email)
            raise errors.UnauthorizedRole("User not found in DB.")

        role = Role(account["role"]) if account.get("role") in {r.value for r in Role} else None
        if role is None or role not in set(accepted_roles):
            # The credential was fine; the session just may not use this entry point
            self.identity.sign_out(session.token)
            logger.warning("Login for %s rejected at this entry point (role %s)", session.identity.email, account.get("role"))
            raise errors.UnauthorizedRole()

        logger.info("%s logged in as %s", session.identity.email, role.value)
        return session, account, DASHBOARD_ROUTES[role]

    def get(self, uid: str) -> Optional[Dict[str, Any]]:
        if not uid or "/" in uid:
            return None
        document = self.store.read_once(f"users/{uid}")
        if document is None:
            return None
        return {"id": uid, **document}

    def require(self, uid: str) -> Dict[str, Any]:
        account = self.get(uid)
        if account is None:
            raise errors.NotFound("User not found")
        return account

    def list_accounts(self, role: Optional[Role] = None) -> List[Dict[str, Any]]:
        users = self.store.read_once("users") or {}
        accounts = [{"id": uid, **document} for uid, document in users.items()]
        if role is not None:
            accounts = [a for a in accounts if a.get("role") == role.value]
        return sorted(accounts, key=lambda a: (a.get("createdAt") or 0, a.get("name") or ""))

    def technicians(self) -> List[Dict[str, Any]]:
        return self.list_accounts(Role.TECHNICIAN)

    def display_name(self, identity: Identity) -> Optional[str]:
        account = self.get(identity.uid)
        if account is not None:
            return account.get("name")
        return identity.display_name

    def deprovision(self, uid: str):
        """
        Remove the account and its credential. Reports that carry this account's
        name as their assigned technician are left as they are.
        """
        if not uid or "/" in uid:
            raise errors.NotFound("User not found")
        self.store.delete(f"users/{uid}")
        self.identity.delete_credential(uid)
        logger.info("Account %s deprovisioned", uid)

    def _create_account(self, name: str, email: str, password: str, role: Role) -> Dict[str, Any]:
        name = (name or "").strip()
        if not name or not email or not password:
            raise errors.ValidationError("All fields are required!")
        validate_password(password)

        identity = self.identity.create_credential(email, password, display_name=name)
        document = {
            "name": name,
            "email": identity.email,
            "role": role.value,
            "createdAt": now_ms(),
        }
        try:
            self.store.set(f"users/{identity.uid}", document)
        except Exception:
            # Without a directory entry the credential could never log in
            logger.error("Directory write failed for %s, removing credential", identity.email)
            self.identity.delete_credential(identity.uid)
            raise
        logger.info("%s account created for %s", role.value.capitalize(), identity.email)
        return {"id": identity.uid, **document}

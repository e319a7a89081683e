from dataclasses import dataclass
from typing import Any, Dict, Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from app.core import errors
from app.core.identity import Identity, IdentityProvider
from app.core.permissions import Action, require_action
from app.core.store import RecordStore
from app.services.account_service import AccountService
from app.services.report_service import ReportService

bearer_scheme = HTTPBearer(auto_error=False)

@dataclass
class CurrentUser:
    token: str
    identity: Identity
    account: Dict[str, Any]

    @property
    def role(self) -> str:
        return self.account.get("role")

def get_store(request: Request) -> RecordStore:
    return request.app.state.store

def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity

def get_account_service(request: Request) -> AccountService:
    return AccountService(request.app.state.store, request.app.state.identity)

def get_report_service(request: Request) -> ReportService:
    settings = request.app.state.settings
    return ReportService(
        request.app.state.store,
        assignment_guard=settings.ASSIGNMENT_GUARD,
        default_reporter_name=settings.DEFAULT_REPORTER_NAME,
    )

def get_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Optional[str]:
    return credentials.credentials if credentials else None

def resolve_current_user(token: Optional[str], identity_provider: IdentityProvider, accounts: AccountService) -> CurrentUser:
    identity = identity_provider.verify(token)
    account = accounts.get(identity.uid)
    if account is None:
        raise errors.UnauthorizedRole("User not found in DB.")
    return CurrentUser(token=token, identity=identity, account=account)

def get_current_user(
    token: Optional[str] = Depends(get_token),
    identity_provider: IdentityProvider = Depends(get_identity_provider),
    accounts: AccountService = Depends(get_account_service),
) -> CurrentUser:
    return resolve_current_user(token, identity_provider, accounts)

def allowed_to(action: Action):
    """Dependency that admits only roles permitted to perform `action`."""
    def dependency(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        require_action(current.role, action)
        return current
    return dependency

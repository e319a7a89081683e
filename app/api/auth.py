from fastapi import APIRouter, Depends, status
from app.api.deps import CurrentUser, get_account_service, get_current_user, get_identity_provider
from app.core.identity import IdentityProvider
from app.core.permissions import REPORTER_ENTRY, STAFF_ENTRY
from app.schemas.account import AccountResponse, LoginRequest, LoginResponse, RegisterRequest
from app.services.account_service import AccountService

router = APIRouter(prefix="/auth", tags=["Auth"])

@router.post("/register", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, accounts: AccountService = Depends(get_account_service)):
    """
    Self-service registration. Every account created here is a reporter.
    """
    return accounts.register(request.name, request.email, request.password)


@router.post("/login/reporter", response_model=LoginResponse)
def login_reporter(request: LoginRequest, accounts: AccountService = Depends(get_account_service)):
    """
    Reporter entry point. Manager and technician credentials are refused here.
    """
    session, account, route = accounts.login(request.email, request.password, REPORTER_ENTRY)
    return LoginResponse(token=session.token, account=account, route=route)


@router.post("/login/staff", response_model=LoginResponse)
def login_staff(request: LoginRequest, accounts: AccountService = Depends(get_account_service)):
    """
    Manager and technician entry point. The returned route points at the
    dashboard matching the account's role.
    """
    session, account, route = accounts.login(request.email, request.password, STAFF_ENTRY)
    return LoginResponse(token=session.token, account=account, route=route)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(current: CurrentUser = Depends(get_current_user), identity_provider: IdentityProvider = Depends(get_identity_provider)):
    identity_provider.sign_out(current.token)


@router.get("/me", response_model=AccountResponse)
def me(current: CurrentUser = Depends(get_current_user)):
    return current.account

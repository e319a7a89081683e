from typing import List, Optional
from fastapi import APIRouter, Depends, status
from app.api.deps import CurrentUser, allowed_to, get_account_service
from app.core.permissions import Action, Role
from app.schemas.account import AccountResponse, ProvisionRequest
from app.services.account_service import AccountService

router = APIRouter(prefix="/users", tags=["Users"])

@router.get("", response_model=List[AccountResponse])
def list_users(
    role: Optional[Role] = None,
    current: CurrentUser = Depends(allowed_to(Action.PROVISION)),
    accounts: AccountService = Depends(get_account_service),
):
    return accounts.list_accounts(role)


@router.get("/technicians", response_model=List[AccountResponse])
def list_technicians(
    current: CurrentUser = Depends(allowed_to(Action.ASSIGN)),
    accounts: AccountService = Depends(get_account_service),
):
    return accounts.technicians()


@router.post("", response_model=AccountResponse, status_code=status.HTTP_201_CREATED)
def provision_user(
    request: ProvisionRequest,
    current: CurrentUser = Depends(allowed_to(Action.PROVISION)),
    accounts: AccountService = Depends(get_account_service),
):
    """
    Create a technician or manager account on behalf of the logged-in manager.
    """
    return accounts.provision(request.name, request.email, request.password, request.role)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def deprovision_user(
    user_id: str,
    current: CurrentUser = Depends(allowed_to(Action.DEPROVISION)),
    accounts: AccountService = Depends(get_account_service),
):
    """
    Delete an account. Reports already assigned to it keep the technician's name.
    """
    accounts.deprovision(user_id)

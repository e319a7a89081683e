from fastapi import APIRouter, Depends, status
from app.api.deps import CurrentUser, allowed_to, get_account_service, get_report_service
from app.core.permissions import Action
from app.schemas.breakdown import AssignmentRequest, BreakdownResponse, ResolutionRequest
from app.services.account_service import AccountService
from app.services.report_service import ReportService

router = APIRouter(prefix="/breakdowns", tags=["Lifecycle"])

@router.post("/{breakdown_id}/assign", response_model=BreakdownResponse, status_code=status.HTTP_200_OK)
def assign_technician(
    breakdown_id: str,
    request: AssignmentRequest,
    current: CurrentUser = Depends(allowed_to(Action.ASSIGN)),
    reports: ReportService = Depends(get_report_service),
    accounts: AccountService = Depends(get_account_service),
):
    """
    Assign a technician to a pending report. The report stores a snapshot of
    the technician's name and email.
    """
    technician = accounts.require(request.technician_id) if request.technician_id else None
    return reports.assign_technician(breakdown_id, technician)


@router.post("/{breakdown_id}/start", response_model=BreakdownResponse, status_code=status.HTTP_200_OK)
def start_work(
    breakdown_id: str,
    current: CurrentUser = Depends(allowed_to(Action.START)),
    reports: ReportService = Depends(get_report_service),
):
    """
    Mark an assigned report as in progress. Only the technician it is assigned to may start it.
    """
    return reports.start_work(breakdown_id, current.account)


@router.post("/{breakdown_id}/resolve", response_model=BreakdownResponse, status_code=status.HTTP_200_OK)
def resolve_breakdown(
    breakdown_id: str,
    request: ResolutionRequest,
    current: CurrentUser = Depends(allowed_to(Action.RESOLVE)),
    reports: ReportService = Depends(get_report_service),
):
    """
    Capture the technician's fix and close the report.
    """
    return reports.resolve(breakdown_id, request.fix_details)

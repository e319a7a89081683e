from fastapi import APIRouter, Depends, status
from app.api.deps import CurrentUser, allowed_to, get_current_user, get_report_service
from app.core.permissions import Action
from app.schemas.breakdown import BreakdownCreate, BreakdownResponse, BreakdownUpdate
from app.services.report_service import ReportService

router = APIRouter(prefix="/breakdowns", tags=["Breakdowns"])

@router.post("", response_model=BreakdownResponse, status_code=status.HTTP_201_CREATED)
def create_breakdown(
    breakdown_in: BreakdownCreate,
    current: CurrentUser = Depends(allowed_to(Action.CREATE)),
    reports: ReportService = Depends(get_report_service),
):
    """
    File a new breakdown report as the logged-in reporter.
    The report starts pending, unassigned, with created == updated.
    """
    return reports.create(current.identity, breakdown_in.message)


@router.get("/{breakdown_id}", response_model=BreakdownResponse)
def get_breakdown(
    breakdown_id: str,
    current: CurrentUser = Depends(get_current_user),
    reports: ReportService = Depends(get_report_service),
):
    return reports.get(breakdown_id)


@router.patch("/{breakdown_id}", response_model=BreakdownResponse)
def edit_breakdown(
    breakdown_id: str,
    update_data: BreakdownUpdate,
    current: CurrentUser = Depends(allowed_to(Action.EDIT)),
    reports: ReportService = Depends(get_report_service),
):
    """
    Replace the report's message. Status changes go through the lifecycle endpoints.
    """
    return reports.edit_message(breakdown_id, update_data.message)


@router.delete("/{breakdown_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_breakdown(
    breakdown_id: str,
    current: CurrentUser = Depends(allowed_to(Action.DELETE)),
    reports: ReportService = Depends(get_report_service),
):
    """
    Remove the report permanently. Succeeds whether or not the report exists.
    """
    reports.delete(breakdown_id)

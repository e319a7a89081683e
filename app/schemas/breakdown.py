from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from app.core.fsm import BreakdownStatus

class TechnicianSnapshot(BaseModel):
    name: Optional[str] = Field(None, description="Technician name at the time of assignment.")
    email: Optional[str] = Field(None, description="Technician email at the time of assignment.")

class Timestamps(BaseModel):
    created: int = Field(..., description="Creation time, epoch millis. Never changes.")
    updated: int = Field(..., description="Time of the last mutation, epoch millis.")

class BreakdownResponse(BaseModel):
    id: str
    reporterUid: str
    reporterName: str
    reporterEmail: str
    message: str
    status: BreakdownStatus
    assignedTechnician: Optional[TechnicianSnapshot] = None
    fixDetails: Optional[str] = None
    timestamps: Timestamps

class BreakdownCreate(BaseModel):
    message: str = Field(..., description="Free-text description of the breakdown.")

class BreakdownUpdate(BaseModel):
    message: str = Field(..., description="Replacement message text.")

class AssignmentRequest(BaseModel):
    technician_id: Optional[str] = Field(None, description="Account id of the technician to assign.")

class ResolutionRequest(BaseModel):
    fix_details: str = Field(..., description="What the technician did to fix the breakdown.")

class TechnicianOption(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None

class ViewResponse(BaseModel):
    role: str
    status_filter: Optional[str] = None
    items: List[BreakdownResponse] = []
    summary: Dict[str, int] = {}
    actions: List[str] = []
    technicians: List[TechnicianOption] = []

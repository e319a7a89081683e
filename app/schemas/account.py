from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from app.core.permissions import Role

class RegisterRequest(BaseModel):
    name: str = Field(..., description="Display name of the reporter.")
    email: EmailStr
    password: str

class ProvisionRequest(BaseModel):
    name: str = Field(..., description="Display name of the new staff member.")
    email: EmailStr
    password: str
    role: Role = Field(Role.TECHNICIAN, description="Either technician or manager.")

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class AccountResponse(BaseModel):
    id: str
    name: str
    email: str
    role: Role
    createdAt: Optional[int] = None

class LoginResponse(BaseModel):
    token: str
    account: AccountResponse
    route: str = Field(..., description="Dashboard the client should navigate to.")

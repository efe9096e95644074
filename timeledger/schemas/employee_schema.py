from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class EmployeeIn(BaseModel):
    name: str = Field(min_length=1)
    email: Optional[EmailStr] = None
    department: Optional[str] = None
    position: Optional[str] = None


class EmployeeUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[EmailStr] = None
    department: Optional[str] = None
    position: Optional[str] = None


class EmployeeOut(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    created_at: Optional[datetime] = None


class EmployeeListOut(BaseModel):
    items: list[EmployeeOut]
    total: int
    page: int
    limit: int

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class Branch(BaseModel):
    """Lightweight projection of a hospital branch."""

    id: int
    name: str
    region: Optional[str] = None
    address: Optional[str] = None
    is_active: bool = True


class Doctor(BaseModel):
    id: int
    name: str
    department_id: int
    branch_id: Optional[int] = None
    specialization: Optional[str] = None
    image_url: Optional[str] = None
    is_active: bool = True


class Department(BaseModel):
    id: int
    name: str
    icon: Optional[str] = None
    is_active: bool = True
    doctors: Optional[List[Doctor]] = None


class InitialBookingData(BaseModel):
    branches: List[Branch] = Field(default_factory=list)
    departments: List[Department] = Field(default_factory=list)
    doctors: List[Doctor] = Field(default_factory=list)


class FilterStateResponse(BaseModel):
    branch_id: Optional[int] = None
    department_id: Optional[int] = None
    doctor_id: Optional[int] = None
    branches: List[Branch]
    departments: List[Department]
    doctors: List[Doctor]

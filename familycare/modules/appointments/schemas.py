from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class AppointmentStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    MISSED = "missed"


class AppointmentCreate(BaseModel):
    parent_id: str
    doctor_name: str = Field(min_length=2)
    specialty: Optional[str] = None
    clinic_name: Optional[str] = None
    location: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: int = Field(default=60, gt=0)
    notes: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED


class AppointmentUpdate(BaseModel):
    doctor_name: Optional[str] = Field(default=None, min_length=2)
    specialty: Optional[str] = None
    clinic_name: Optional[str] = None
    location: Optional[str] = None
    scheduled_at: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(default=None, gt=0)
    notes: Optional[str] = None
    outcome: Optional[str] = None


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus
    outcome: Optional[str] = None


class AppointmentResponse(BaseModel):
    id: str
    parent_id: str
    doctor_name: str
    specialty: Optional[str] = None
    clinic_name: Optional[str] = None
    location: Optional[str] = None
    scheduled_at: datetime
    duration_minutes: Optional[int] = 60
    status: AppointmentStatus
    notes: Optional[str] = None
    outcome: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

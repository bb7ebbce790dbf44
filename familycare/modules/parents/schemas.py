from pydantic import BaseModel, Field
from typing import Optional, List, Literal
from datetime import date, datetime

from familycare.modules.appointments.schemas import AppointmentResponse
from familycare.modules.documents.schemas import DocumentResponse
from familycare.modules.family.schemas import MemberRole, PermissionFlags
from familycare.modules.medications.schemas import MedicationResponse


Gender = Literal["male", "female", "other"]
BloodType = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]


class ParentCreate(BaseModel):
    name: str = Field(min_length=2)
    birth_date: date
    gender: Optional[Gender] = None
    blood_type: Optional[BloodType] = None
    avatar_url: Optional[str] = None
    allergies: Optional[List[str]] = None
    chronic_conditions: Optional[List[str]] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    doctor_name: Optional[str] = None
    doctor_phone: Optional[str] = None
    health_insurance: Optional[str] = None
    insurance_number: Optional[str] = None


class ParentUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    blood_type: Optional[BloodType] = None
    avatar_url: Optional[str] = None
    allergies: Optional[List[str]] = None
    chronic_conditions: Optional[List[str]] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    doctor_name: Optional[str] = None
    doctor_phone: Optional[str] = None
    health_insurance: Optional[str] = None
    insurance_number: Optional[str] = None


class ParentResponse(BaseModel):
    id: str
    name: str
    birth_date: date
    gender: Optional[str] = None
    blood_type: Optional[str] = None
    avatar_url: Optional[str] = None
    allergies: Optional[List[str]] = None
    chronic_conditions: Optional[List[str]] = None
    emergency_contact_name: Optional[str] = None
    emergency_contact_phone: Optional[str] = None
    doctor_name: Optional[str] = None
    doctor_phone: Optional[str] = None
    health_insurance: Optional[str] = None
    insurance_number: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ParentWithAccessResponse(ParentResponse):
    """A care recipient as seen by one member: their role and effective flags."""
    role: MemberRole
    permissions: PermissionFlags


class DashboardMedications(BaseModel):
    active_count: int = 0
    today: List[MedicationResponse] = []


class DashboardAppointments(BaseModel):
    upcoming_count: int = 0
    next: List[AppointmentResponse] = []


class DashboardAdherence(BaseModel):
    percentage: int = 0
    total_logs: int = 0
    taken_count: int = 0


class ParentDashboard(BaseModel):
    """Summary of one care recipient: today's doses, next visits, 7-day adherence, latest documents."""
    parent_id: str
    medications: DashboardMedications
    appointments: DashboardAppointments
    adherence: DashboardAdherence
    recent_documents: List[DocumentResponse] = []


TimelineEventType = Literal["dose", "appointment", "document", "member_joined"]


class TimelineEvent(BaseModel):
    type: TimelineEventType
    occurred_at: datetime
    title: str
    reference_id: str
    user_id: Optional[str] = None

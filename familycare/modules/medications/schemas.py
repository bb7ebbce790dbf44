from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import date, datetime
from enum import Enum
import re

TIME_OF_DAY = re.compile(r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$")


class MedicationFrequency(str, Enum):
    DAILY = "daily"
    TWICE_DAILY = "twice_daily"
    THRICE_DAILY = "thrice_daily"
    WEEKLY = "weekly"
    AS_NEEDED = "as_needed"


class DoseStatus(str, Enum):
    TAKEN = "taken"
    SKIPPED = "skipped"
    MISSED = "missed"


def _check_times(times: Optional[List[str]]) -> Optional[List[str]]:
    if times is None:
        return times
    for value in times:
        if not TIME_OF_DAY.match(value):
            raise ValueError(f"Invalid time '{value}', expected HH:MM")
    return times


class MedicationCreate(BaseModel):
    parent_id: str
    name: str = Field(min_length=2)
    dosage: str = Field(min_length=1)
    unit: Optional[str] = None
    frequency: MedicationFrequency
    times: Optional[List[str]] = None
    instructions: Optional[str] = None
    start_date: date = Field(default_factory=date.today)
    end_date: Optional[date] = None
    is_active: bool = True

    @field_validator("times")
    @classmethod
    def validate_times(cls, v):
        return _check_times(v)


class MedicationUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    dosage: Optional[str] = Field(default=None, min_length=1)
    unit: Optional[str] = None
    frequency: Optional[MedicationFrequency] = None
    times: Optional[List[str]] = None
    instructions: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: Optional[bool] = None

    @field_validator("times")
    @classmethod
    def validate_times(cls, v):
        return _check_times(v)


class MedicationResponse(BaseModel):
    id: str
    parent_id: str
    name: str
    dosage: str
    unit: Optional[str] = None
    frequency: MedicationFrequency
    times: Optional[List[str]] = None
    instructions: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DoseConfirmation(BaseModel):
    taken_at: Optional[datetime] = None
    status: DoseStatus = DoseStatus.TAKEN
    notes: Optional[str] = None


class MedicationLogResponse(BaseModel):
    id: str
    medication_id: str
    parent_id: Optional[str] = None
    confirmed_by: Optional[str] = None
    taken_at: datetime
    status: DoseStatus
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

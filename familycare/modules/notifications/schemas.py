from pydantic import BaseModel
from typing import Optional, Dict, Any, List
from datetime import datetime
from enum import Enum


class NotificationType(str, Enum):
    MEDICATION = "medication"
    APPOINTMENT = "appointment"
    DOCUMENT = "document"
    FAMILY = "family"
    SYSTEM = "system"


class NotificationResponse(BaseModel):
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    data: Optional[Dict[str, Any]] = None
    is_read: bool = False
    read_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PushAction(BaseModel):
    action: str
    title: str


class PushPayload(BaseModel):
    title: str
    body: str
    icon: Optional[str] = None
    badge: Optional[str] = None
    data: Dict[str, Any] = {}
    actions: List[PushAction] = []


class PushReport(BaseModel):
    """Outcome of one fan-out over a user's subscriptions."""
    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    deactivated: List[str] = []


class PushSubscriptionKeys(BaseModel):
    p256dh: str
    auth: str


class PushSubscriptionCreate(BaseModel):
    endpoint: str
    keys: PushSubscriptionKeys


class PushSubscriptionResponse(BaseModel):
    id: str
    user_id: str
    endpoint: str
    keys: PushSubscriptionKeys
    user_agent: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PushSubscriptionSummary(BaseModel):
    """A subscription as listed back to its owner; keys are never returned."""
    id: str
    endpoint: str
    user_agent: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


class NotificationSettingsUpdate(BaseModel):
    medication_reminders: Optional[bool] = None
    appointment_reminders: Optional[bool] = None
    document_uploads: Optional[bool] = None
    family_updates: Optional[bool] = None


class NotificationSettingsResponse(BaseModel):
    user_id: str
    medication_reminders: bool = True
    appointment_reminders: bool = True
    document_uploads: bool = True
    family_updates: bool = True
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Preference column that gates each notification type; system notifications are never muted
PREFERENCE_COLUMNS = {
    NotificationType.MEDICATION: "medication_reminders",
    NotificationType.APPOINTMENT: "appointment_reminders",
    NotificationType.DOCUMENT: "document_uploads",
    NotificationType.FAMILY: "family_updates",
}

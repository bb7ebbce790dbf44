from supabase import Client
from familycare.modules.appointments.schemas import (
    AppointmentCreate, AppointmentResponse, AppointmentStatus, AppointmentStatusUpdate, AppointmentUpdate
)
from familycare.modules.notifications.schemas import NotificationType
from familycare.modules.notifications.service import NotificationService
from familycare.core.permissions import PermissionResolver
from familycare.core.exceptions import NotFound
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class AppointmentService:
    def __init__(self, supabase: Client, notifications: Optional[NotificationService] = None):
        self.supabase = supabase
        self.access = PermissionResolver(supabase)
        self.notifications = notifications or NotificationService(supabase)

    def _get_row(self, appointment_id: str) -> dict:
        result = self.supabase.table("appointments")\
            .select("*")\
            .eq("id", appointment_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise NotFound("Appointment not found")
        return result.data[0]

    def _parent_name(self, parent_id: str) -> str:
        result = self.supabase.table("parents")\
            .select("name")\
            .eq("id", parent_id)\
            .limit(1)\
            .execute()
        return result.data[0]["name"] if result.data else "your family member"

    def _notify_others(self, actor_id: str, parent_id: str, title: str, message: str, data: dict):
        # The change already happened; a notification failure is only logged
        try:
            others = self.access.list_active_member_ids(parent_id, exclude_user_id=actor_id)
            if others:
                self.notifications.notify_users(others, NotificationType.APPOINTMENT.value, title, message, data)
        except Exception as e:
            logger.error(f"Error notifying family of parent {parent_id}: {e}")

    def create_appointment(self, user_id: str, appointment_data: AppointmentCreate) -> AppointmentResponse:
        self.access.check_permission(user_id, appointment_data.parent_id, "edit")
        try:
            result = self.supabase.table("appointments").insert({
                **appointment_data.model_dump(mode="json", exclude_none=True),
                "created_by": user_id,
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create appointment")

            appointment = AppointmentResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        self._notify_others(
            user_id,
            appointment.parent_id,
            "New appointment scheduled",
            f"Appointment with {appointment.doctor_name} scheduled for {appointment.scheduled_at.strftime('%d/%m/%Y')}",
            {"appointment_id": appointment.id, "parent_id": appointment.parent_id},
        )
        return appointment

    def get_appointment(self, user_id: str, appointment_id: str) -> AppointmentResponse:
        row = self._get_row(appointment_id)
        self.access.check_permission(user_id, row["parent_id"], "view")
        return AppointmentResponse(**row)

    def list_appointments(
        self,
        user_id: str,
        parent_id: str,
        status: Optional[AppointmentStatus] = None,
        upcoming_only: bool = False,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> List[AppointmentResponse]:
        self.access.check_permission(user_id, parent_id, "view")
        try:
            query = self.supabase.table("appointments").select("*").eq("parent_id", parent_id)
            if status:
                query = query.eq("status", AppointmentStatus(status).value)
            if upcoming_only:
                query = query.gte("scheduled_at", datetime.now(timezone.utc).isoformat())\
                    .eq("status", AppointmentStatus.SCHEDULED.value)
            if from_date:
                query = query.gte("scheduled_at", from_date.isoformat())
            if to_date:
                query = query.lte("scheduled_at", to_date.isoformat())
            result = query.order("scheduled_at").execute()
            return [AppointmentResponse(**a) for a in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_calendar(self, user_id: str, parent_id: str, year: int, month: int) -> List[AppointmentResponse]:
        """Appointments of one calendar month (UTC)"""
        start = datetime(year, month, 1, tzinfo=timezone.utc)
        next_month = (date(year, month, 28) + timedelta(days=4)).replace(day=1)
        end = datetime(next_month.year, next_month.month, 1, tzinfo=timezone.utc) - timedelta(microseconds=1)
        return self.list_appointments(user_id, parent_id, from_date=start, to_date=end)

    def update_appointment(self, user_id: str, appointment_id: str, appointment_data: AppointmentUpdate) -> AppointmentResponse:
        row = self._get_row(appointment_id)
        self.access.check_permission(user_id, row["parent_id"], "edit")
        try:
            update_data = appointment_data.model_dump(mode="json", exclude_unset=True)
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

            result = self.supabase.table("appointments")\
                .update(update_data)\
                .eq("id", appointment_id)\
                .execute()

            if not result.data:
                raise NotFound("Appointment not found")

            return AppointmentResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_status(self, user_id: str, appointment_id: str, status_data: AppointmentStatusUpdate) -> AppointmentResponse:
        """Set the appointment status; completing or cancelling tells the rest of the family"""
        row = self._get_row(appointment_id)
        self.access.check_permission(user_id, row["parent_id"], "edit")
        try:
            update_data = {
                "status": status_data.status.value,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }
            if status_data.outcome is not None:
                update_data["outcome"] = status_data.outcome

            result = self.supabase.table("appointments")\
                .update(update_data)\
                .eq("id", appointment_id)\
                .execute()

            if not result.data:
                raise NotFound("Appointment not found")

            appointment = AppointmentResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        if appointment.status in (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED):
            status_text = appointment.status.value
            self._notify_others(
                user_id,
                appointment.parent_id,
                f"Appointment {status_text}",
                f"The appointment for {self._parent_name(appointment.parent_id)} was {status_text}",
                {"appointment_id": appointment.id, "parent_id": appointment.parent_id, "status": status_text},
            )
        return appointment

    def delete_appointment(self, user_id: str, appointment_id: str) -> bool:
        row = self._get_row(appointment_id)
        self.access.check_permission(user_id, row["parent_id"], "delete")
        try:
            self.supabase.table("appointments").delete().eq("id", appointment_id).execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

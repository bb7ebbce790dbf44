from supabase import Client
from familycare.modules.medications.schemas import (
    DoseConfirmation, MedicationCreate, MedicationLogResponse, MedicationResponse, MedicationUpdate
)
from familycare.modules.notifications.schemas import NotificationType
from familycare.modules.notifications.service import NotificationService
from familycare.core.permissions import PermissionResolver
from familycare.core.exceptions import NotFound
from datetime import date, datetime, timezone
from typing import List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class MedicationService:
    def __init__(self, supabase: Client, notifications: Optional[NotificationService] = None):
        self.supabase = supabase
        self.access = PermissionResolver(supabase)
        self.notifications = notifications or NotificationService(supabase)

    def _get_row(self, medication_id: str) -> dict:
        result = self.supabase.table("medications")\
            .select("*")\
            .eq("id", medication_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise NotFound("Medication not found")
        return result.data[0]

    def _parent_name(self, parent_id: str) -> str:
        result = self.supabase.table("parents")\
            .select("name")\
            .eq("id", parent_id)\
            .limit(1)\
            .execute()
        return result.data[0]["name"] if result.data else "your family member"

    def create_medication(self, user_id: str, medication_data: MedicationCreate) -> MedicationResponse:
        self.access.check_permission(user_id, medication_data.parent_id, "edit")
        try:
            result = self.supabase.table("medications").insert({
                **medication_data.model_dump(mode="json", exclude_none=True),
                "created_by": user_id,
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create medication")

            medication = MedicationResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        try:
            others = self.access.list_active_member_ids(medication.parent_id, exclude_user_id=user_id)
            if others:
                self.notifications.notify_users(
                    others,
                    NotificationType.MEDICATION.value,
                    "New medication added",
                    f"{medication.name} was added for {self._parent_name(medication.parent_id)}",
                    {"medication_id": medication.id, "parent_id": medication.parent_id},
                )
        except Exception as e:
            logger.error(f"Error notifying family about medication {medication.id}: {e}")

        return medication

    def get_medication(self, user_id: str, medication_id: str) -> MedicationResponse:
        row = self._get_row(medication_id)
        self.access.check_permission(user_id, row["parent_id"], "view")
        return MedicationResponse(**row)

    def list_medications(self, user_id: str, parent_id: str, active_only: bool = False) -> List[MedicationResponse]:
        self.access.check_permission(user_id, parent_id, "view")
        try:
            query = self.supabase.table("medications").select("*").eq("parent_id", parent_id)
            if active_only:
                query = query.eq("is_active", True)
            result = query.order("created_at", desc=True).execute()
            return [MedicationResponse(**m) for m in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_medication(self, user_id: str, medication_id: str, medication_data: MedicationUpdate) -> MedicationResponse:
        row = self._get_row(medication_id)
        self.access.check_permission(user_id, row["parent_id"], "edit")
        try:
            update_data = medication_data.model_dump(mode="json", exclude_unset=True)
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

            result = self.supabase.table("medications")\
                .update(update_data)\
                .eq("id", medication_id)\
                .execute()

            if not result.data:
                raise NotFound("Medication not found")

            return MedicationResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_medication(self, user_id: str, medication_id: str) -> bool:
        row = self._get_row(medication_id)
        self.access.check_permission(user_id, row["parent_id"], "delete")
        try:
            self.supabase.table("medications").delete().eq("id", medication_id).execute()
            return True
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def confirm_dose(self, user_id: str, medication_id: str, confirmation: DoseConfirmation) -> MedicationLogResponse:
        """Log a dose as taken, skipped or missed. Any member who can view may confirm."""
        row = self._get_row(medication_id)
        self.access.check_permission(user_id, row["parent_id"], "view")
        taken_at = confirmation.taken_at or datetime.now(timezone.utc)
        try:
            result = self.supabase.table("medication_logs").insert({
                "medication_id": medication_id,
                "parent_id": row["parent_id"],
                "taken_at": taken_at.isoformat(),
                "status": confirmation.status.value,
                "notes": confirmation.notes,
                "confirmed_by": user_id,
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to confirm dose")

            logger.info(f"Dose of medication {medication_id} confirmed as {confirmation.status.value} by {user_id}")
            return MedicationLogResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_logs(
        self,
        user_id: str,
        medication_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[MedicationLogResponse]:
        row = self._get_row(medication_id)
        self.access.check_permission(user_id, row["parent_id"], "view")
        try:
            query = self.supabase.table("medication_logs").select("*").eq("medication_id", medication_id)
            if start_date:
                query = query.gte("taken_at", start_date.isoformat())
            if end_date:
                query = query.lte("taken_at", end_date.isoformat())
            result = query.order("taken_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [MedicationLogResponse(**log) for log in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

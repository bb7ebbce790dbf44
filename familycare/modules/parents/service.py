from supabase import Client
from familycare.modules.parents.schemas import (
    DashboardAdherence, DashboardAppointments, DashboardMedications, ParentCreate, ParentDashboard,
    ParentResponse, ParentUpdate, ParentWithAccessResponse, TimelineEvent
)
from familycare.modules.family.schemas import EffectiveAccess, Membership, PermissionFlags
from familycare.modules.family.service import FamilyService
from familycare.core.permissions import PermissionResolver
from familycare.core.exceptions import NotFound
from familycare.modules.appointments.schemas import AppointmentResponse
from familycare.modules.documents.schemas import DocumentResponse
from familycare.modules.medications.schemas import MedicationResponse
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


class ParentService:
    """Care recipients ("parents") and the creator's first admin membership."""

    def __init__(self, supabase: Client, family_service: FamilyService = None):
        self.supabase = supabase
        self.access = PermissionResolver(supabase)
        self.family = family_service or FamilyService(supabase)

    def _with_access(self, parent: dict, access: EffectiveAccess) -> ParentWithAccessResponse:
        return ParentWithAccessResponse(
            **parent,
            role=access.role,
            permissions=PermissionFlags(
                can_view=access.can_view,
                can_edit=access.can_edit,
                can_delete=access.can_delete,
            ),
        )

    def create_parent(self, user_id: str, parent_data: ParentCreate) -> ParentResponse:
        """Create a care recipient; its creator becomes the first active admin"""
        try:
            result = self.supabase.table("parents").insert({
                **parent_data.model_dump(mode="json", exclude_none=True),
                "created_by": user_id,
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create parent")

            parent = result.data[0]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        try:
            self.family.add_creator_as_admin(parent["id"], user_id)
        except Exception as e:
            logger.error(f"Failed to add creator {user_id} as admin of parent {parent['id']}, rolling back: {e}")
            try:
                self.supabase.table("parents").delete().eq("id", parent["id"]).execute()
            except Exception as rollback_error:
                logger.error(f"Rollback of parent {parent['id']} failed: {rollback_error}")
            if isinstance(e, HTTPException):
                raise
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"Parent {parent['id']} created by {user_id}")
        return ParentResponse(**parent)

    def get_parent(self, user_id: str, parent_id: str) -> ParentWithAccessResponse:
        access = self.access.check_permission(user_id, parent_id, "view")
        try:
            result = self.supabase.table("parents")\
                .select("*")\
                .eq("id", parent_id)\
                .limit(1)\
                .execute()
            if not result.data:
                raise NotFound("Parent not found")
            return self._with_access(result.data[0], access)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_parents(self, user_id: str) -> List[ParentWithAccessResponse]:
        """Every care recipient the user is an active member of, with that member's access"""
        try:
            members_result = self.supabase.table("family_members")\
                .select("*")\
                .eq("user_id", user_id)\
                .eq("status", "active")\
                .execute()
            if not members_result.data:
                return []
            access_by_parent = {
                row["parent_id"]: EffectiveAccess.from_membership(Membership(**row))
                for row in members_result.data
            }
            result = self.supabase.table("parents")\
                .select("*")\
                .in_("id", list(access_by_parent.keys()))\
                .order("created_at", desc=True)\
                .execute()
            return [self._with_access(p, access_by_parent[p["id"]]) for p in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_parent(self, user_id: str, parent_id: str, parent_data: ParentUpdate) -> ParentResponse:
        self.access.check_permission(user_id, parent_id, "edit")
        try:
            update_data = parent_data.model_dump(mode="json", exclude_unset=True)
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

            result = self.supabase.table("parents")\
                .update(update_data)\
                .eq("id", parent_id)\
                .execute()

            if not result.data:
                raise NotFound("Parent not found")

            return ParentResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_parent(self, user_id: str, parent_id: str) -> bool:
        """Delete a care recipient (admins only). Dependent rows cascade in the database."""
        self.access.require_admin(user_id, parent_id)
        try:
            result = self.supabase.table("parents")\
                .delete()\
                .eq("id", parent_id)\
                .execute()
            if not result.data:
                raise NotFound("Parent not found")
            logger.info(f"Parent {parent_id} deleted by {user_id}")
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_dashboard(self, user_id: str, parent_id: str, now: Optional[datetime] = None) -> ParentDashboard:
        """Today's medications, the next five appointments, 7-day adherence and the latest documents"""
        self.access.check_permission(user_id, parent_id, "view")
        now = now or datetime.now(timezone.utc)
        today = now.date().isoformat()
        try:
            meds = self.supabase.table("medications")\
                .select("*")\
                .eq("parent_id", parent_id)\
                .eq("is_active", True)\
                .lte("start_date", today)\
                .order("name")\
                .execute()
            today_meds = [m for m in (meds.data or []) if not m.get("end_date") or m["end_date"] >= today]

            appointments = self.supabase.table("appointments")\
                .select("*")\
                .eq("parent_id", parent_id)\
                .eq("status", "scheduled")\
                .gte("scheduled_at", now.isoformat())\
                .order("scheduled_at")\
                .limit(5)\
                .execute()
            upcoming = appointments.data or []

            logs = self.supabase.table("medication_logs")\
                .select("status")\
                .eq("parent_id", parent_id)\
                .gte("taken_at", (now - timedelta(days=7)).isoformat())\
                .execute()
            statuses = [log["status"] for log in (logs.data or [])]
            taken = statuses.count("taken")

            documents = self.supabase.table("documents")\
                .select("*")\
                .eq("parent_id", parent_id)\
                .order("created_at", desc=True)\
                .limit(5)\
                .execute()
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        return ParentDashboard(
            parent_id=parent_id,
            medications=DashboardMedications(
                active_count=len(today_meds),
                today=[MedicationResponse(**m) for m in today_meds],
            ),
            appointments=DashboardAppointments(
                upcoming_count=len(upcoming),
                next=[AppointmentResponse(**a) for a in upcoming],
            ),
            adherence=DashboardAdherence(
                percentage=round(taken / len(statuses) * 100) if statuses else 0,
                total_logs=len(statuses),
                taken_count=taken,
            ),
            recent_documents=[DocumentResponse(**d) for d in (documents.data or [])],
        )

    def get_timeline(self, user_id: str, parent_id: str, limit: int = 20, offset: int = 0) -> List[TimelineEvent]:
        """Recent activity around a care recipient, newest first.

        Built from dose confirmations, appointments, documents and accepted
        memberships. Each source is read up to ``offset + limit`` rows, which is
        enough to page through the merged stream.
        """
        self.access.check_permission(user_id, parent_id, "view")
        window = offset + limit
        events = []
        try:
            meds = self.supabase.table("medications")\
                .select("id, name")\
                .eq("parent_id", parent_id)\
                .execute()
            med_names = {m["id"]: m["name"] for m in (meds.data or [])}

            logs = self.supabase.table("medication_logs")\
                .select("id, medication_id, status, taken_at, confirmed_by")\
                .eq("parent_id", parent_id)\
                .order("taken_at", desc=True)\
                .limit(window)\
                .execute()
            for log in logs.data or []:
                events.append(TimelineEvent(
                    type="dose",
                    occurred_at=log["taken_at"],
                    title=f"{med_names.get(log['medication_id'], 'Medication')} {log['status']}",
                    reference_id=log["id"],
                    user_id=log.get("confirmed_by"),
                ))

            appointments = self.supabase.table("appointments")\
                .select("id, doctor_name, created_at, created_by")\
                .eq("parent_id", parent_id)\
                .order("created_at", desc=True)\
                .limit(window)\
                .execute()
            for apt in appointments.data or []:
                events.append(TimelineEvent(
                    type="appointment",
                    occurred_at=apt["created_at"],
                    title=f"Appointment with {apt['doctor_name']} scheduled",
                    reference_id=apt["id"],
                    user_id=apt.get("created_by"),
                ))

            documents = self.supabase.table("documents")\
                .select("id, title, created_at, uploaded_by")\
                .eq("parent_id", parent_id)\
                .order("created_at", desc=True)\
                .limit(window)\
                .execute()
            for doc in documents.data or []:
                events.append(TimelineEvent(
                    type="document",
                    occurred_at=doc["created_at"],
                    title=f"{doc['title']} added",
                    reference_id=doc["id"],
                    user_id=doc.get("uploaded_by"),
                ))

            members = self.supabase.table("family_members")\
                .select("id, user_id, accepted_at")\
                .eq("parent_id", parent_id)\
                .eq("status", "active")\
                .order("accepted_at", desc=True)\
                .limit(window)\
                .execute()
            for member in members.data or []:
                if not member.get("accepted_at"):
                    continue
                events.append(TimelineEvent(
                    type="member_joined",
                    occurred_at=member["accepted_at"],
                    title="A family member joined",
                    reference_id=member["id"],
                    user_id=member["user_id"],
                ))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        events.sort(key=lambda event: _as_utc(event.occurred_at), reverse=True)
        return events[offset:window]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

"""
Periodic scan jobs: medication and appointment reminders, expiry and status
sweeps, the weekly adherence report and the notification retention sweep.

Every job is a plain synchronous method taking an optional ``now``; the
scheduler runs them in a worker thread. Jobs read current state, compute who
has to be told what, and hand off to the NotificationService.
"""
from supabase import Client
from postgrest.exceptions import APIError
from familycare.config import settings as default_settings, Settings
from familycare.core.permissions import PermissionResolver
from familycare.modules.family.schemas import MemberRole, MemberStatus
from familycare.modules.notifications.schemas import NotificationType
from familycare.modules.notifications.service import NotificationService
from datetime import datetime, time, timedelta, timezone
from typing import Dict, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def local_now(now: Optional[datetime] = None) -> datetime:
    """Aware datetime in the server's local zone. Naive input is taken as local time."""
    if now is None:
        return datetime.now().astimezone()
    if now.tzinfo is None:
        return now.astimezone()
    return now


def parse_schedule_time(value: str) -> Optional[Tuple[int, int]]:
    """Parse "08:00" or "08:00:00" into (8, 0); None for anything unparseable."""
    try:
        parts = value.strip().split(":")
        return int(parts[0]), int(parts[1])
    except (AttributeError, IndexError, ValueError):
        return None


class ReminderJobs:
    def __init__(
        self,
        supabase: Client,
        notifications: Optional[NotificationService] = None,
        settings: Optional[Settings] = None,
    ):
        self.supabase = supabase
        self.settings = settings or default_settings
        self.notifications = notifications or NotificationService(supabase, settings=self.settings)
        self.access = PermissionResolver(supabase)

    def _parent_names(self, parent_ids) -> Dict[str, str]:
        ids = list(dict.fromkeys(parent_ids))
        if not ids:
            return {}
        result = self.supabase.table("parents")\
            .select("id, name")\
            .in_("id", ids)\
            .execute()
        return {p["id"]: p["name"] for p in (result.data or [])}

    def _claim_reminder(self, key: str) -> bool:
        """Record that a reminder slot is being sent. False if it was already claimed."""
        if not self.settings.reminder_dedup_enabled:
            return True
        try:
            self.supabase.table("reminder_deliveries").insert({"reminder_key": key}).execute()
            return True
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                logger.debug(f"Reminder {key} already sent, skipping")
                return False
            # Sending twice beats never sending
            logger.warning(f"Could not record reminder {key}, sending anyway: {e}")
            return True

    def send_medication_reminders(self, now: Optional[datetime] = None) -> int:
        """Notify every active member about doses due ``lead`` minutes from now.

        Times are compared as minutes since local midnight without wrapping, so a
        00:02 dose is never announced by the 23:57 run.
        """
        now = local_now(now)
        lead = self.settings.medication_reminder_lead_minutes
        result = self.supabase.table("medications")\
            .select("*")\
            .eq("is_active", True)\
            .execute()
        medications = result.data or []
        if not medications:
            logger.debug("No active medications to check")
            return 0

        current_minute = now.hour * 60 + now.minute
        due = []
        for med in medications:
            for scheduled in med.get("times") or []:
                parsed = parse_schedule_time(scheduled)
                if parsed is None:
                    logger.warning(f"Medication {med['id']} has invalid time '{scheduled}'")
                    continue
                hour, minute = parsed
                if (hour * 60 + minute) - current_minute == lead:
                    due.append((med, f"{hour:02d}:{minute:02d}"))

        if not due:
            return 0

        names = self._parent_names(med["parent_id"] for med, _ in due)
        sent = 0
        for med, slot in due:
            try:
                if not self._claim_reminder(f"medication:{med['id']}:{slot}:{now.date().isoformat()}"):
                    continue
                members = self.access.list_active_member_ids(med["parent_id"])
                parent_name = names.get(med["parent_id"], "Your family member")
                sent += self.notifications.notify_users(
                    members,
                    NotificationType.MEDICATION.value,
                    "Medication time",
                    f"{parent_name} needs to take {med['name']} ({med['dosage']}) in {lead} minutes",
                    {
                        "medication_id": med["id"],
                        "parent_id": med["parent_id"],
                        "scheduled_time": slot,
                    },
                )
            except Exception as e:
                logger.error(f"Error sending reminder for medication {med['id']}: {e}")

        logger.info(f"Medication reminders: {len(due)} dose(s) due, {sent} notification(s) sent")
        return sent

    def send_appointment_reminders(self, now: Optional[datetime] = None) -> int:
        """Remind every active member about appointments on the next local calendar day."""
        now = local_now(now)
        tomorrow = now.date() + timedelta(days=1)
        start = datetime.combine(tomorrow, time.min, tzinfo=now.tzinfo)
        end = start + timedelta(days=1)

        result = self.supabase.table("appointments")\
            .select("*")\
            .eq("status", "scheduled")\
            .gte("scheduled_at", start.isoformat())\
            .lt("scheduled_at", end.isoformat())\
            .execute()
        appointments = result.data or []
        if not appointments:
            logger.debug(f"No appointments scheduled for {tomorrow.isoformat()}")
            return 0

        names = self._parent_names(apt["parent_id"] for apt in appointments)
        sent = 0
        for apt in appointments:
            try:
                if not self._claim_reminder(f"appointment:{apt['id']}:{tomorrow.isoformat()}"):
                    continue
                when = datetime.fromisoformat(apt["scheduled_at"]).astimezone(now.tzinfo)
                members = self.access.list_active_member_ids(apt["parent_id"])
                parent_name = names.get(apt["parent_id"], "Your family member")
                sent += self.notifications.notify_users(
                    members,
                    NotificationType.APPOINTMENT.value,
                    "Appointment reminder",
                    f"{parent_name} has an appointment tomorrow ({when.strftime('%d/%m at %H:%M')}) - {apt['doctor_name']}",
                    {"appointment_id": apt["id"], "parent_id": apt["parent_id"]},
                )
            except Exception as e:
                logger.error(f"Error sending reminder for appointment {apt['id']}: {e}")

        logger.info(f"Appointment reminders: {len(appointments)} appointment(s), {sent} notification(s) sent")
        return sent

    def deactivate_expired_medications(self, now: Optional[datetime] = None) -> int:
        today = local_now(now).date()
        result = self.supabase.table("medications")\
            .update({"is_active": False, "updated_at": datetime.now(timezone.utc).isoformat()})\
            .lt("end_date", today.isoformat())\
            .eq("is_active", True)\
            .execute()
        updated = len(result.data or [])
        logger.info(f"Expired medications deactivated: {updated}")
        return updated

    def mark_missed_appointments(self, now: Optional[datetime] = None) -> int:
        """Past appointments still 'scheduled' become 'missed'. Completed or cancelled rows are left alone."""
        now = local_now(now)
        result = self.supabase.table("appointments")\
            .update({"status": "missed", "updated_at": datetime.now(timezone.utc).isoformat()})\
            .lt("scheduled_at", now.astimezone(timezone.utc).isoformat())\
            .eq("status", "scheduled")\
            .execute()
        updated = len(result.data or [])
        logger.info(f"Appointments marked as missed: {updated}")
        return updated

    def send_weekly_reports(self, now: Optional[datetime] = None) -> int:
        """One medication adherence summary for the trailing 7 days per active admin."""
        now = local_now(now)
        week_ago = now - timedelta(days=7)
        result = self.supabase.table("family_members")\
            .select("user_id, parent_id")\
            .eq("role", MemberRole.ADMIN.value)\
            .eq("status", MemberStatus.ACTIVE.value)\
            .execute()
        admins = result.data or []
        if not admins:
            return 0

        names = self._parent_names(a["parent_id"] for a in admins)
        stats: Dict[str, Tuple[int, int]] = {}
        sent = 0
        for admin in admins:
            parent_id = admin["parent_id"]
            try:
                if parent_id not in stats:
                    logs = self.supabase.table("medication_logs")\
                        .select("medication_id, status")\
                        .eq("parent_id", parent_id)\
                        .gte("created_at", week_ago.astimezone(timezone.utc).isoformat())\
                        .execute()
                    rows = logs.data or []
                    stats[parent_id] = (sum(1 for log in rows if log["status"] == "taken"), len(rows))
                taken, total = stats[parent_id]
                adherence = round(taken / total * 100) if total > 0 else 0

                sent += self.notifications.notify_users(
                    [admin["user_id"]],
                    NotificationType.MEDICATION.value,
                    "Weekly report",
                    f"Medication adherence for {names.get(parent_id, 'your family member')}: "
                    f"{adherence}% ({taken}/{total} doses confirmed)",
                    {
                        "parent_id": parent_id,
                        "period": "week",
                        "adherence": adherence,
                        "total": total,
                        "taken": taken,
                    },
                )
            except Exception as e:
                logger.error(f"Error sending weekly report to {admin['user_id']} for parent {parent_id}: {e}")

        logger.info(f"Weekly reports sent: {sent}")
        return sent

    def clean_old_notifications(self, now: Optional[datetime] = None) -> int:
        """Daily cleanup: expired notifications, then reminder slots nobody will ask about again."""
        now = local_now(now)
        deleted = self.notifications.clean_old_notifications(
            now=now,
            retention_days=self.settings.notification_retention_days,
        )
        try:
            self.clean_old_reminder_deliveries(now)
        except Exception as e:
            logger.error(f"Error pruning reminder deliveries: {e}")
        return deleted

    def clean_old_reminder_deliveries(self, now: Optional[datetime] = None) -> int:
        """Delete claimed reminder slots older than the retention window.

        Slot keys carry the day they belong to, so keys older than a couple of
        days can never be claimed again.
        """
        cutoff = local_now(now) - timedelta(days=self.settings.reminder_delivery_retention_days)
        result = self.supabase.table("reminder_deliveries")\
            .delete()\
            .lt("created_at", cutoff.astimezone(timezone.utc).isoformat())\
            .execute()
        deleted = len(result.data or [])
        logger.info(f"Old reminder deliveries pruned: {deleted}")
        return deleted

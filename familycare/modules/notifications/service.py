from supabase import Client
from familycare.modules.notifications.schemas import (
    NotificationSettingsResponse, NotificationSettingsUpdate, NotificationType, NotificationResponse,
    PREFERENCE_COLUMNS, PushAction, PushPayload, PushReport, PushSubscriptionCreate,
    PushSubscriptionResponse, PushSubscriptionSummary
)
from familycare.modules.notifications.push import WebPushSender
from familycare.core.exceptions import DeliveryFailure, NotFound
from familycare.config import settings as default_settings, Settings
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class NotificationService:
    """Durable in-app notifications with best-effort Web Push delivery."""

    def __init__(
        self,
        supabase: Client,
        push_sender: Optional[WebPushSender] = None,
        settings: Optional[Settings] = None,
    ):
        self.supabase = supabase
        self.settings = settings or default_settings
        self.push_sender = push_sender or WebPushSender.from_settings(self.settings)

    def create_notification(
        self,
        user_id: str,
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> NotificationResponse:
        """Persist a notification, then push it. Push failures never undo or fail the insert."""
        notification_type = NotificationType(type)
        try:
            result = self.supabase.table("notifications").insert({
                "user_id": user_id,
                "type": notification_type.value,
                "title": title,
                "message": message,
                "data": data,
                "is_read": False,
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create notification")

            notification = NotificationResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            logger.error(f"Error creating notification for user {user_id}: {e}")
            raise HTTPException(status_code=500, detail=str(e))

        self.send_push_notification(user_id, PushPayload(
            title=title,
            body=message,
            icon=self.settings.push_icon,
            badge=self.settings.push_badge,
            data={"type": notification_type.value, **(data or {})},
            actions=[
                PushAction(action="view", title="View"),
                PushAction(action="dismiss", title="Dismiss"),
            ],
        ))
        return notification

    def send_push_notification(self, user_id: str, payload: PushPayload) -> PushReport:
        """Deliver to every active subscription of the user; each endpoint is isolated."""
        report = PushReport()
        if not self.push_sender.enabled:
            return report
        try:
            result = self.supabase.table("push_subscriptions")\
                .select("*")\
                .eq("user_id", user_id)\
                .eq("is_active", True)\
                .execute()
        except Exception as e:
            logger.error(f"Error loading push subscriptions for user {user_id}: {e}")
            return report

        subscriptions = result.data or []
        if not subscriptions:
            logger.debug(f"No active push subscriptions for user {user_id}")
            return report

        body = payload.model_dump()
        report.attempted = len(subscriptions)
        workers = max(1, min(self.settings.push_max_workers, len(subscriptions)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self.push_sender.send, sub["endpoint"], sub["keys"], body): sub
                for sub in subscriptions
            }
            for future in as_completed(futures):
                sub = futures[future]
                try:
                    future.result()
                    report.delivered += 1
                except DeliveryFailure as e:
                    report.failed += 1
                    logger.warning(f"Push to subscription {sub['id']} of user {user_id} failed: {e}")
                    if e.permanent and self._deactivate_subscription(sub["id"]):
                        report.deactivated.append(sub["id"])
                except Exception as e:
                    report.failed += 1
                    logger.error(f"Unexpected push error for subscription {sub['id']}: {e}")

        logger.info(f"Push sent to {report.delivered}/{report.attempted} subscription(s) of user {user_id}")
        return report

    def _deactivate_subscription(self, subscription_id: str) -> bool:
        try:
            self.supabase.table("push_subscriptions")\
                .update({"is_active": False, "updated_at": _utcnow_iso()})\
                .eq("id", subscription_id)\
                .execute()
            logger.info(f"Deactivated gone push subscription {subscription_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to deactivate push subscription {subscription_id}: {e}")
            return False

    def notify_users(
        self,
        user_ids: Iterable[str],
        type: str,
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Create the same notification for many users. One user's failure never blocks the others.

        Users who switched off this notification category are skipped.
        """
        recipients = list(dict.fromkeys(uid for uid in user_ids if uid))
        if not recipients:
            return 0
        muted = self._muted_users(recipients, NotificationType(type))
        if muted:
            logger.debug(f"Skipping {len(muted)} user(s) with {type} notifications switched off")
            recipients = [uid for uid in recipients if uid not in muted]
            if not recipients:
                return 0
        sent = 0
        workers = max(1, min(self.settings.notify_max_workers, len(recipients)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {
                pool.submit(self.create_notification, uid, type, title, message, data): uid
                for uid in recipients
            }
            for future in as_completed(futures):
                try:
                    future.result()
                    sent += 1
                except Exception as e:
                    logger.error(f"Failed to notify user {futures[future]}: {e}")
        return sent

    def _muted_users(self, user_ids: List[str], notification_type: NotificationType) -> set:
        column = PREFERENCE_COLUMNS.get(notification_type)
        if column is None:
            return set()
        try:
            result = self.supabase.table("notification_settings")\
                .select(f"user_id, {column}")\
                .in_("user_id", user_ids)\
                .execute()
        except Exception as e:
            logger.warning(f"Could not load notification settings, notifying everyone: {e}")
            return set()
        return {row["user_id"] for row in (result.data or []) if row.get(column) is False}

    def get_settings(self, user_id: str) -> NotificationSettingsResponse:
        """A user's notification switches, created with everything on the first time they are read"""
        try:
            result = self.supabase.table("notification_settings")\
                .select("*")\
                .eq("user_id", user_id)\
                .limit(1)\
                .execute()
            if result.data:
                return NotificationSettingsResponse(**result.data[0])

            created = self.supabase.table("notification_settings").insert({
                "user_id": user_id,
                "medication_reminders": True,
                "appointment_reminders": True,
                "document_uploads": True,
                "family_updates": True,
            }).execute()
            if not created.data:
                raise HTTPException(status_code=500, detail="Failed to create notification settings")
            return NotificationSettingsResponse(**created.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_settings(self, user_id: str, update: NotificationSettingsUpdate) -> NotificationSettingsResponse:
        changes = update.model_dump(exclude_none=True)
        current = self.get_settings(user_id)
        if not changes:
            return current
        try:
            result = self.supabase.table("notification_settings")\
                .update({**changes, "updated_at": _utcnow_iso()})\
                .eq("user_id", user_id)\
                .execute()
            if not result.data:
                raise NotFound("Notification settings not found")
            logger.info(f"Notification settings of user {user_id} updated: {changes}")
            return NotificationSettingsResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def notify_family_member_added(self, parent_id: str, new_member_id: str, added_by_name: str) -> int:
        """Tell an invited user who added them to which family."""
        try:
            result = self.supabase.table("parents")\
                .select("name")\
                .eq("id", parent_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.error(f"Error notifying family member: {e}")
            return 0
        if not result.data:
            return 0
        return self.notify_users(
            [new_member_id],
            NotificationType.FAMILY.value,
            "Added to a family",
            f"{added_by_name} added you to help care for {result.data[0]['name']}",
            {"parent_id": parent_id},
        )

    def list_notifications(
        self,
        user_id: str,
        unread_only: bool = False,
        type: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> List[NotificationResponse]:
        try:
            query = self.supabase.table("notifications").select("*").eq("user_id", user_id)
            if unread_only:
                query = query.eq("is_read", False)
            if type:
                query = query.eq("type", NotificationType(type).value)
            result = query.order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            return [NotificationResponse(**n) for n in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def unread_count(self, user_id: str) -> int:
        try:
            result = self.supabase.table("notifications")\
                .select("id", count="exact")\
                .eq("user_id", user_id)\
                .eq("is_read", False)\
                .execute()
            return result.count or 0
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def mark_as_read(self, user_id: str, notification_id: str) -> NotificationResponse:
        try:
            result = self.supabase.table("notifications")\
                .update({"is_read": True, "read_at": _utcnow_iso()})\
                .eq("id", notification_id)\
                .eq("user_id", user_id)\
                .execute()
            if not result.data:
                raise NotFound("Notification not found")
            return NotificationResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def mark_all_as_read(self, user_id: str) -> int:
        try:
            result = self.supabase.table("notifications")\
                .update({"is_read": True, "read_at": _utcnow_iso()})\
                .eq("user_id", user_id)\
                .eq("is_read", False)\
                .execute()
            return len(result.data or [])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_notification(self, user_id: str, notification_id: str) -> bool:
        try:
            result = self.supabase.table("notifications")\
                .delete()\
                .eq("id", notification_id)\
                .eq("user_id", user_id)\
                .execute()
            if not result.data:
                raise NotFound("Notification not found")
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_all(self, user_id: str) -> int:
        try:
            result = self.supabase.table("notifications")\
                .delete()\
                .eq("user_id", user_id)\
                .execute()
            return len(result.data or [])
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def clean_old_notifications(self, now: Optional[datetime] = None, retention_days: Optional[int] = None) -> int:
        """Delete notifications created before the retention window."""
        now = now or datetime.now(timezone.utc)
        days = retention_days if retention_days is not None else self.settings.notification_retention_days
        cutoff = now - timedelta(days=days)
        result = self.supabase.table("notifications")\
            .delete()\
            .lt("created_at", cutoff.isoformat())\
            .execute()
        deleted = len(result.data or [])
        logger.info(f"Old notifications cleaned: {deleted} deleted (older than {cutoff.isoformat()})")
        return deleted


class PushSubscriptionService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def subscribe(
        self,
        user_id: str,
        subscription: PushSubscriptionCreate,
        user_agent: Optional[str] = None,
    ) -> PushSubscriptionResponse:
        """Register an endpoint, or refresh and re-activate it if already known"""
        try:
            existing = self.supabase.table("push_subscriptions")\
                .select("id")\
                .eq("user_id", user_id)\
                .eq("endpoint", subscription.endpoint)\
                .limit(1)\
                .execute()

            keys = subscription.keys.model_dump()
            if existing.data:
                result = self.supabase.table("push_subscriptions")\
                    .update({"keys": keys, "is_active": True, "updated_at": _utcnow_iso()})\
                    .eq("id", existing.data[0]["id"])\
                    .execute()
            else:
                result = self.supabase.table("push_subscriptions").insert({
                    "user_id": user_id,
                    "endpoint": subscription.endpoint,
                    "keys": keys,
                    "user_agent": user_agent,
                    "is_active": True,
                }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to save push subscription")

            return PushSubscriptionResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def unsubscribe(self, user_id: str, endpoint: str) -> bool:
        try:
            result = self.supabase.table("push_subscriptions")\
                .delete()\
                .eq("user_id", user_id)\
                .eq("endpoint", endpoint)\
                .execute()
            if not result.data:
                raise NotFound("Subscription not found")
            return True
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_subscriptions(self, user_id: str) -> List[PushSubscriptionSummary]:
        """Every subscription of the user, newest first, active or not"""
        try:
            result = self.supabase.table("push_subscriptions")\
                .select("id, endpoint, user_agent, is_active, created_at")\
                .eq("user_id", user_id)\
                .order("created_at", desc=True)\
                .execute()
            return [PushSubscriptionSummary(**s) for s in (result.data or [])]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

from supabase import Client
from postgrest.exceptions import APIError
from familycare.modules.family.schemas import (
    FamilyInvite, FamilyMemberResponse, FamilyRemovalResponse, Membership,
    MemberPermissionsUpdate, MemberRole, MemberStatus, PermissionFlags
)
from familycare.modules.notifications.schemas import NotificationType
from familycare.modules.notifications.service import NotificationService
from familycare.core.permissions import PermissionResolver
from familycare.core.exceptions import (
    AlreadyMember, CannotModifySelf, LastAdminProtected, MemberInactive,
    NotAuthorized, NotFound, UserNotFound
)
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class FamilyService:
    """Lifecycle of family memberships: invite, accept/decline, re-permission, remove, admin transfer."""

    def __init__(self, supabase: Client, notifications: Optional[NotificationService] = None):
        self.supabase = supabase
        self.access = PermissionResolver(supabase)
        self.notifications = notifications or NotificationService(supabase)

    def _get_member(self, member_id: str) -> Membership:
        result = self.supabase.table("family_members")\
            .select("*")\
            .eq("id", member_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise NotFound("Member not found")
        return Membership(**result.data[0])

    def _display_name(self, user_id: str, fallback: str = "A family member") -> str:
        try:
            result = self.supabase.table("profiles")\
                .select("full_name, email")\
                .eq("id", user_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.warning(f"Could not load profile {user_id}: {e}")
            return fallback
        if not result.data:
            return fallback
        return result.data[0].get("full_name") or result.data[0].get("email") or fallback

    def _parent_name(self, parent_id: str, fallback: str = "your family member") -> str:
        try:
            result = self.supabase.table("parents")\
                .select("name")\
                .eq("id", parent_id)\
                .limit(1)\
                .execute()
        except Exception as e:
            logger.warning(f"Could not load parent {parent_id}: {e}")
            return fallback
        return result.data[0]["name"] if result.data else fallback

    def add_creator_as_admin(self, parent_id: str, user_id: str) -> FamilyMemberResponse:
        """First membership of a newly created care recipient: active admin, no invitation step."""
        now = _utcnow_iso()
        result = self.supabase.table("family_members").insert({
            "parent_id": parent_id,
            "user_id": user_id,
            "role": MemberRole.ADMIN.value,
            "permissions": PermissionFlags.for_role(MemberRole.ADMIN).model_dump(),
            "status": MemberStatus.ACTIVE.value,
            "invited_by": user_id,
            "invited_at": now,
            "accepted_at": now,
        }).execute()
        if not result.data:
            raise HTTPException(status_code=500, detail="Failed to add creator to family")
        return FamilyMemberResponse(**result.data[0])

    def invite(self, actor_id: str, invite: FamilyInvite) -> FamilyMemberResponse:
        """Create a pending membership for a registered user (admins only)"""
        self.access.require_admin(actor_id, invite.parent_id)
        try:
            user_result = self.supabase.table("profiles")\
                .select("id, full_name")\
                .eq("email", invite.email)\
                .limit(1)\
                .execute()
            if not user_result.data:
                raise UserNotFound()
            invited_user_id = user_result.data[0]["id"]

            existing = self.access.get_membership(invited_user_id, invite.parent_id)
            if existing is not None and existing.status == MemberStatus.ACTIVE:
                raise AlreadyMember()
            if existing is not None and existing.status == MemberStatus.PENDING:
                raise AlreadyMember("Invitation already sent and pending")

            record = {
                "role": invite.role.value,
                "permissions": invite.resolved_permissions().model_dump(),
                "status": MemberStatus.PENDING.value,
                "invited_by": actor_id,
                "invited_at": _utcnow_iso(),
                "accepted_at": None,
            }
            if existing is not None:
                # Soft-removed membership is re-opened as a fresh invitation
                result = self.supabase.table("family_members")\
                    .update(record)\
                    .eq("id", existing.id)\
                    .execute()
            else:
                result = self.supabase.table("family_members").insert({
                    "parent_id": invite.parent_id,
                    "user_id": invited_user_id,
                    **record,
                }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create invitation")

            member = FamilyMemberResponse(**result.data[0])
        except HTTPException:
            raise
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise AlreadyMember()
            raise HTTPException(status_code=500, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"User {actor_id} invited {invited_user_id} to parent {invite.parent_id} as {invite.role.value}")
        self.notifications.notify_family_member_added(
            invite.parent_id, invited_user_id, self._display_name(actor_id)
        )
        return member

    def _get_pending_invite(self, actor_id: str, member_id: str) -> Membership:
        # Foreign and already-processed invitations look the same to the caller
        result = self.supabase.table("family_members")\
            .select("*")\
            .eq("id", member_id)\
            .eq("user_id", actor_id)\
            .eq("status", MemberStatus.PENDING.value)\
            .limit(1)\
            .execute()
        if not result.data:
            raise NotFound("Invitation not found or already processed")
        return Membership(**result.data[0])

    def accept_invite(self, actor_id: str, member_id: str) -> FamilyMemberResponse:
        invite = self._get_pending_invite(actor_id, member_id)
        try:
            now = _utcnow_iso()
            result = self.supabase.table("family_members")\
                .update({"status": MemberStatus.ACTIVE.value, "accepted_at": now, "updated_at": now})\
                .eq("id", member_id)\
                .eq("status", MemberStatus.PENDING.value)\
                .execute()
            if not result.data:
                raise NotFound("Invitation not found or already processed")
            member = FamilyMemberResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        if invite.invited_by and invite.invited_by != actor_id:
            self.notifications.notify_users(
                [invite.invited_by],
                NotificationType.FAMILY.value,
                "Invitation accepted",
                f"{self._display_name(actor_id)} accepted the invitation to care for {self._parent_name(invite.parent_id)}",
                {"parent_id": invite.parent_id, "member_id": member_id},
            )
        return member

    def decline_invite(self, actor_id: str, member_id: str) -> bool:
        invite = self._get_pending_invite(actor_id, member_id)
        try:
            result = self.supabase.table("family_members")\
                .delete()\
                .eq("id", member_id)\
                .eq("status", MemberStatus.PENDING.value)\
                .execute()
            if not result.data:
                raise NotFound("Invitation not found or already processed")
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        if invite.invited_by and invite.invited_by != actor_id:
            self.notifications.notify_users(
                [invite.invited_by],
                NotificationType.FAMILY.value,
                "Invitation declined",
                f"{self._display_name(actor_id)} declined the invitation to care for {self._parent_name(invite.parent_id)}",
                {"parent_id": invite.parent_id},
            )
        return True

    def update_permissions(
        self, actor_id: str, member_id: str, update: MemberPermissionsUpdate
    ) -> FamilyMemberResponse:
        member = self._get_member(member_id)
        self.access.require_admin(actor_id, member.parent_id)
        if member.user_id == actor_id:
            raise CannotModifySelf("You cannot change your own permissions")

        role = update.role or member.role
        if update.permissions is not None:
            flags = update.permissions
        elif update.role is not None:
            flags = PermissionFlags.for_role(role)
        else:
            flags = member.permissions
        if role == MemberRole.ADMIN:
            flags = PermissionFlags.for_role(MemberRole.ADMIN)

        try:
            result = self.supabase.table("family_members")\
                .update({
                    "role": role.value,
                    "permissions": flags.model_dump(),
                    "updated_at": _utcnow_iso(),
                })\
                .eq("id", member_id)\
                .execute()
            if not result.data:
                raise NotFound("Member not found")
            updated = FamilyMemberResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        self.notifications.notify_users(
            [member.user_id],
            NotificationType.FAMILY.value,
            "Permissions updated",
            "Your access permissions were updated",
            {"parent_id": member.parent_id, "member_id": member_id},
        )
        return updated

    def remove_member(self, actor_id: str, member_id: str) -> FamilyRemovalResponse:
        """Remove a membership. Self-removal skips the admin check but never the last-admin guard."""
        member = self._get_member(member_id)
        is_self_removal = member.user_id == actor_id
        if not is_self_removal:
            self.access.require_admin(actor_id, member.parent_id)

        if member.is_admin and member.is_active and self.access.count_active_admins(member.parent_id) <= 1:
            raise LastAdminProtected()

        try:
            # The store function re-counts admins under lock in the same transaction as the delete
            result = self.supabase.rpc("remove_family_member", {
                "p_actor_id": actor_id,
                "p_member_id": member_id,
            }).execute()
            if not result.data:
                raise NotFound("Member not found")
        except HTTPException:
            raise
        except APIError as e:
            message = e.message or ""
            if "LAST_ADMIN" in message:
                raise LastAdminProtected()
            if "NOT_ADMIN" in message:
                raise NotAuthorized()
            raise HTTPException(status_code=500, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"Member {member_id} removed from parent {member.parent_id} by {actor_id}")
        if not is_self_removal:
            self.notifications.notify_users(
                [member.user_id],
                NotificationType.FAMILY.value,
                "Removed from family",
                f"You no longer have access to {self._parent_name(member.parent_id)}",
                {"parent_id": member.parent_id},
            )
        return FamilyRemovalResponse(
            member_id=member_id,
            parent_id=member.parent_id,
            self_removal=is_self_removal,
        )

    def transfer_admin(self, actor_id: str, member_id: str) -> FamilyMemberResponse:
        """Promote an active member to admin and demote the acting admin to editor, atomically."""
        target = self._get_member(member_id)
        current_admin = self.access.require_admin(actor_id, target.parent_id)
        if target.id == current_admin.id:
            raise CannotModifySelf("You are already an administrator of this family")
        if not target.is_active:
            raise MemberInactive()

        try:
            result = self.supabase.rpc("transfer_family_admin", {
                "p_actor_id": actor_id,
                "p_parent_id": target.parent_id,
                "p_to_member_id": target.id,
            }).execute()
            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to transfer admin")
        except HTTPException:
            raise
        except APIError as e:
            message = e.message or ""
            if "NOT_ADMIN" in message:
                raise NotAuthorized()
            if "TARGET_INACTIVE" in message:
                raise MemberInactive()
            if "SELF_TRANSFER" in message:
                raise CannotModifySelf("You are already an administrator of this family")
            raise HTTPException(status_code=500, detail=str(e))
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

        logger.info(f"Admin of parent {target.parent_id} transferred from {actor_id} to {target.user_id}")
        self.notifications.notify_users(
            [target.user_id],
            NotificationType.FAMILY.value,
            "You are now an admin",
            f"You were promoted to administrator for {self._parent_name(target.parent_id)}",
            {"parent_id": target.parent_id},
        )
        return FamilyMemberResponse(**self._get_member(member_id).model_dump())

    def list_members(self, actor_id: str, parent_id: str) -> List[FamilyMemberResponse]:
        self.access.check_permission(actor_id, parent_id, "view")
        try:
            result = self.supabase.table("family_members")\
                .select("*")\
                .eq("parent_id", parent_id)\
                .order("created_at")\
                .execute()
            return [FamilyMemberResponse(**m) for m in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def list_pending_invites(self, user_id: str) -> List[FamilyMemberResponse]:
        try:
            result = self.supabase.table("family_members")\
                .select("*")\
                .eq("user_id", user_id)\
                .eq("status", MemberStatus.PENDING.value)\
                .order("invited_at", desc=True)\
                .execute()
            return [FamilyMemberResponse(**m) for m in result.data]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

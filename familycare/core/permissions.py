"""
Family permission resolution used to gate every mutation on a care recipient
and its medications, appointments and documents.
"""

from supabase import Client
from typing import List, Optional
import logging

from familycare.config.permissions_config import ACTION_FLAGS
from familycare.core.exceptions import AccessDenied, NotAMember, NotAuthorized
from familycare.modules.family.schemas import EffectiveAccess, Membership, MemberRole, MemberStatus

logger = logging.getLogger(__name__)


class PermissionResolver:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def get_membership(self, user_id: str, parent_id: str) -> Optional[Membership]:
        """Return the (user, parent) membership in any status, or None."""
        result = self.supabase.table("family_members")\
            .select("*")\
            .eq("parent_id", parent_id)\
            .eq("user_id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            return None
        return Membership(**result.data[0])

    def resolve(self, user_id: str, parent_id: str) -> EffectiveAccess:
        """Effective capabilities of an active member; admin always gets every flag."""
        membership = self.get_membership(user_id, parent_id)
        if membership is None or not membership.is_active:
            raise NotAMember()
        return EffectiveAccess.from_membership(membership)

    def check_permission(self, user_id: str, parent_id: str, action: str) -> EffectiveAccess:
        if action not in ACTION_FLAGS:
            raise ValueError(f"Unknown action: {action}")
        access = self.resolve(user_id, parent_id)
        if not getattr(access, ACTION_FLAGS[action]):
            logger.info(f"User {user_id} denied '{action}' on parent {parent_id}")
            raise AccessDenied(f"You do not have permission to {action} this family's data")
        return access

    def has_permission(self, user_id: str, parent_id: str, action: str) -> bool:
        try:
            self.check_permission(user_id, parent_id, action)
            return True
        except AccessDenied:
            return False

    def require_admin(self, user_id: str, parent_id: str) -> Membership:
        """Role lookup only; stored flags do not matter for admin-only operations."""
        membership = self.get_membership(user_id, parent_id)
        if membership is None or not membership.is_active or not membership.is_admin:
            raise NotAuthorized()
        return membership

    def count_active_admins(self, parent_id: str) -> int:
        result = self.supabase.table("family_members")\
            .select("id")\
            .eq("parent_id", parent_id)\
            .eq("role", MemberRole.ADMIN.value)\
            .eq("status", MemberStatus.ACTIVE.value)\
            .execute()
        return len(result.data or [])

    def list_active_member_ids(self, parent_id: str, exclude_user_id: Optional[str] = None) -> List[str]:
        query = self.supabase.table("family_members")\
            .select("user_id")\
            .eq("parent_id", parent_id)\
            .eq("status", MemberStatus.ACTIVE.value)
        if exclude_user_id:
            query = query.neq("user_id", exclude_user_id)
        result = query.execute()
        return [m["user_id"] for m in (result.data or [])]

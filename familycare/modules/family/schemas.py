from pydantic import BaseModel, EmailStr, model_validator
from typing import Optional
from datetime import datetime
from enum import Enum

from familycare.config.permissions_config import get_default_permissions


class MemberRole(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class MemberStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class PermissionFlags(BaseModel):
    can_view: bool = True
    can_edit: bool = False
    can_delete: bool = False

    @classmethod
    def for_role(cls, role: MemberRole) -> "PermissionFlags":
        return cls(**get_default_permissions(MemberRole(role).value))


class Membership(BaseModel):
    """A family_members row validated at the store boundary."""
    id: str
    parent_id: str
    user_id: str
    role: MemberRole = MemberRole.VIEWER
    permissions: PermissionFlags = PermissionFlags()
    status: MemberStatus = MemberStatus.PENDING
    invited_by: Optional[str] = None
    invited_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="before")
    @classmethod
    def default_missing_permissions(cls, data):
        if isinstance(data, dict) and data.get("permissions") is None:
            data = dict(data)
            data["permissions"] = get_default_permissions(data.get("role") or MemberRole.VIEWER.value)
        return data

    @property
    def is_active(self) -> bool:
        return self.status == MemberStatus.ACTIVE

    @property
    def is_admin(self) -> bool:
        return self.role == MemberRole.ADMIN

    def effective_permissions(self) -> PermissionFlags:
        # Admin is never restricted by stale flag data
        if self.is_admin:
            return PermissionFlags(can_view=True, can_edit=True, can_delete=True)
        return self.permissions


class EffectiveAccess(BaseModel):
    member_id: str
    role: MemberRole
    can_view: bool
    can_edit: bool
    can_delete: bool

    @classmethod
    def from_membership(cls, membership: Membership) -> "EffectiveAccess":
        flags = membership.effective_permissions()
        return cls(
            member_id=membership.id,
            role=membership.role,
            can_view=flags.can_view,
            can_edit=flags.can_edit,
            can_delete=flags.can_delete,
        )


class FamilyInvite(BaseModel):
    parent_id: str
    email: EmailStr
    role: MemberRole = MemberRole.VIEWER
    permissions: Optional[PermissionFlags] = None

    def resolved_permissions(self) -> PermissionFlags:
        if self.role == MemberRole.ADMIN:
            return PermissionFlags.for_role(MemberRole.ADMIN)
        return self.permissions or PermissionFlags.for_role(self.role)


class MemberPermissionsUpdate(BaseModel):
    role: Optional[MemberRole] = None
    permissions: Optional[PermissionFlags] = None

    @model_validator(mode="after")
    def require_change(self):
        if self.role is None and self.permissions is None:
            raise ValueError("Either role or permissions must be provided")
        return self


class FamilyMemberResponse(BaseModel):
    id: str
    parent_id: str
    user_id: str
    role: MemberRole
    permissions: PermissionFlags
    status: MemberStatus
    invited_by: Optional[str] = None
    invited_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FamilyRemovalResponse(BaseModel):
    member_id: str
    parent_id: str
    self_removal: bool

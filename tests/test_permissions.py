"""
Unit tests for permission resolution on a care recipient
"""
import pytest

from familycare.config.permissions_config import ACTION_FLAGS, get_default_permissions
from familycare.core.exceptions import AccessDenied, NotAMember, NotAuthorized
from familycare.core.permissions import PermissionResolver
from familycare.modules.family.schemas import MemberRole, Membership, PermissionFlags


@pytest.fixture
def resolver(store):
    return PermissionResolver(store)


class TestResolve:
    """Effective capability flags for a (user, care recipient) pair"""

    def test_admin_gets_all_flags_even_with_stale_stored_flags(self, store, resolver, users):
        store.seed("family_members", parent_id="p1", user_id=users["alice"], role="admin", status="active",
                   permissions={"can_view": True, "can_edit": False, "can_delete": False})

        access = resolver.resolve(users["alice"], "p1")

        assert access.role == MemberRole.ADMIN
        assert access.can_view and access.can_edit and access.can_delete

    def test_non_admin_uses_stored_flags(self, store, resolver, users):
        store.seed("family_members", parent_id="p1", user_id=users["bob"], role="viewer", status="active",
                   permissions={"can_view": True, "can_edit": True, "can_delete": False})

        access = resolver.resolve(users["bob"], "p1")

        assert access.can_edit is True
        assert access.can_delete is False

    def test_missing_permissions_fall_back_to_role_defaults(self, store, resolver, users):
        store.seed("family_members", parent_id="p1", user_id=users["bob"], role="editor", status="active",
                   permissions=None)

        access = resolver.resolve(users["bob"], "p1")

        assert (access.can_view, access.can_edit, access.can_delete) == (True, True, False)

    def test_no_membership_is_not_a_member(self, resolver, users):
        with pytest.raises(NotAMember):
            resolver.resolve(users["bob"], "p1")

    @pytest.mark.parametrize("status", ["pending", "inactive"])
    def test_non_active_membership_is_not_a_member(self, store, resolver, users, status):
        store.seed("family_members", parent_id="p1", user_id=users["bob"], role="admin", status=status)

        with pytest.raises(NotAMember):
            resolver.resolve(users["bob"], "p1")


class TestCheckPermission:
    """Action gating through the capability flags"""

    def test_viewer_cannot_edit(self, store, resolver, users):
        store.seed("family_members", parent_id="p1", user_id=users["bob"], role="viewer", status="active",
                   permissions=PermissionFlags.for_role(MemberRole.VIEWER).model_dump())

        assert resolver.check_permission(users["bob"], "p1", "view").can_view
        with pytest.raises(AccessDenied) as exc_info:
            resolver.check_permission(users["bob"], "p1", "edit")
        assert exc_info.value.status_code == 403

    def test_non_member_denied_as_access_denied_kind(self, resolver, users):
        with pytest.raises(AccessDenied):
            resolver.check_permission(users["carol"], "p1", "view")

    def test_explicit_override_beats_role_default(self, store, resolver, users):
        store.seed("family_members", parent_id="p1", user_id=users["bob"], role="viewer", status="active",
                   permissions={"can_view": True, "can_edit": False, "can_delete": True})

        assert resolver.has_permission(users["bob"], "p1", "delete") is True
        assert resolver.has_permission(users["bob"], "p1", "edit") is False

    def test_unknown_action_rejected(self, resolver, users):
        with pytest.raises(ValueError):
            resolver.check_permission(users["bob"], "p1", "share")


class TestRequireAdmin:
    def test_admin_with_reduced_flags_is_still_admin(self, store, resolver, users):
        store.seed("family_members", parent_id="p1", user_id=users["alice"], role="admin", status="active",
                   permissions={"can_view": True, "can_edit": False, "can_delete": False})

        membership = resolver.require_admin(users["alice"], "p1")

        assert isinstance(membership, Membership)
        assert membership.is_admin

    def test_editor_is_not_authorized(self, store, resolver, users):
        store.seed("family_members", parent_id="p1", user_id=users["bob"], role="editor", status="active")

        with pytest.raises(NotAuthorized):
            resolver.require_admin(users["bob"], "p1")

    def test_pending_admin_is_not_authorized(self, store, resolver, users):
        store.seed("family_members", parent_id="p1", user_id=users["bob"], role="admin", status="pending")

        with pytest.raises(NotAuthorized):
            resolver.require_admin(users["bob"], "p1")

    def test_counts_only_active_admins(self, store, resolver, users):
        store.seed("family_members", parent_id="p1", user_id=users["alice"], role="admin", status="active")
        store.seed("family_members", parent_id="p1", user_id=users["bob"], role="admin", status="pending")
        store.seed("family_members", parent_id="p1", user_id=users["carol"], role="editor", status="active")

        assert resolver.count_active_admins("p1") == 1
        assert sorted(resolver.list_active_member_ids("p1")) == sorted([users["alice"], users["carol"]])
        assert resolver.list_active_member_ids("p1", exclude_user_id=users["alice"]) == [users["carol"]]


class TestRoleDefaults:
    def test_defaults_are_fresh_copies(self):
        flags = get_default_permissions("viewer")
        flags["can_edit"] = True

        assert get_default_permissions("viewer") == {"can_view": True, "can_edit": False, "can_delete": False}

    def test_unknown_role_rejected(self):
        with pytest.raises(ValueError):
            get_default_permissions("owner")

    def test_every_action_maps_to_a_flag_field(self):
        assert set(ACTION_FLAGS.values()) == set(PermissionFlags.model_fields)

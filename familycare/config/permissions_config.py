"""
Family Roles and Permissions Configuration
Defines the capability flags each membership role receives by default and the
flag that gates each action on a care recipient's resources.
"""

# Capability flag checked for each action
ACTION_FLAGS = {
    "view": "can_view",
    "edit": "can_edit",
    "delete": "can_delete",
}

# Default flags per role, applied at invite time unless explicit flags are given
ROLE_DEFAULT_PERMISSIONS = {
    "admin": {
        "can_view": True,
        "can_edit": True,
        "can_delete": True,
    },
    "editor": {
        "can_view": True,
        "can_edit": True,
        "can_delete": False,
    },
    "viewer": {
        "can_view": True,
        "can_edit": False,
        "can_delete": False,
    },
}


def get_default_permissions(role: str) -> dict:
    """Return a fresh copy of the default flags for a role."""
    if role not in ROLE_DEFAULT_PERMISSIONS:
        raise ValueError(f"Unknown role: {role}")
    return dict(ROLE_DEFAULT_PERMISSIONS[role])

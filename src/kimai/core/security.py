"""Roles, permissions and authentication checks."""

import logging
from typing import Any, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from kimai.core.exceptions import AccessDeniedError, AuthenticationError
from kimai.core.models import Role, Timesheet, User

logger = logging.getLogger(__name__)

PROFILE_ACTIONS = ("view", "edit", "preferences", "password", "api-token", "teams", "roles")
TIMESHEET_ACTIONS = ("view", "edit", "delete", "start", "stop", "export", "duplicate")

_USER_PERMISSIONS = {
    "view_own_timesheet",
    "create_own_timesheet",
    "edit_own_timesheet",
    "delete_own_timesheet",
    "start_own_timesheet",
    "stop_own_timesheet",
    "duplicate_own_timesheet",
    "view_own_profile",
    "edit_own_profile",
    "preferences_own_profile",
    "password_own_profile",
    "api-token_own_profile",
    "quick-entry",
    "view_activity",
    "view_project",
    "view_customer",
}

_TEAMLEAD_PERMISSIONS = _USER_PERMISSIONS | {
    "view_other_timesheet",
    "edit_other_timesheet",
    "start_other_timesheet",
    "stop_other_timesheet",
    "export_own_timesheet",
    "export_other_timesheet",
    "edit_billable_own_timesheet",
    "edit_billable_other_timesheet",
    "view_reporting",
    "create_invoice",
    "view_invoice",
    "view_user",
    "view_other_profile",
    "teams_own_profile",
    "budget_project",
}

_ADMIN_PERMISSIONS = _TEAMLEAD_PERMISSIONS | {
    "create_other_timesheet",
    "delete_other_timesheet",
    "duplicate_other_timesheet",
    "edit_exported_timesheet",
    "edit_rate_own_timesheet",
    "edit_rate_other_timesheet",
    "manage_invoice_template",
    "edit_invoice",
    "create_user",
    "edit_user",
    "edit_other_profile",
    "preferences_other_profile",
    "password_other_profile",
    "teams_other_profile",
    "view_all_data",
    "edit_customer",
    "edit_project",
    "edit_activity",
    "delete_customer",
    "delete_project",
    "delete_activity",
}

_SUPER_ADMIN_PERMISSIONS = _ADMIN_PERMISSIONS | {
    "delete_user",
    "roles_own_profile",
    "roles_other_profile",
    "api-token_other_profile",
    "plugins",
    "system_configuration",
}

ROLE_PERMISSIONS: dict[str, set[str]] = {
    Role.USER.value: _USER_PERMISSIONS,
    Role.TEAMLEAD.value: _TEAMLEAD_PERMISSIONS,
    Role.ADMIN.value: _ADMIN_PERMISSIONS,
    Role.SUPER_ADMIN.value: _SUPER_ADMIN_PERMISSIONS,
}


def get_permissions(user: User) -> set[str]:
    permissions: set[str] = set()
    for role in user.get_roles():
        permissions |= ROLE_PERMISSIONS.get(role, set())
    return permissions


def has_permission(user: User, permission: str) -> bool:
    return permission in get_permissions(user)


def is_granted(user: User, attribute: str, subject: Optional[Any] = None) -> bool:
    """Decide whether ``user`` may perform ``attribute``.

    Without a subject the attribute is a plain permission name. With a
    ``User`` subject the attribute is a profile action and resolves to
    ``<action>_own_profile`` or ``<action>_other_profile``. With a
    ``Timesheet`` subject it resolves to ``<action>_own_timesheet`` or
    ``<action>_other_timesheet``; editing an exported record additionally
    requires ``edit_exported_timesheet``.
    """
    if isinstance(subject, User):
        if attribute not in PROFILE_ACTIONS or subject.id is None:
            return False
        scope = "own" if subject.id == user.id else "other"
        return has_permission(user, f"{attribute}_{scope}_profile")

    if isinstance(subject, Timesheet):
        if attribute not in TIMESHEET_ACTIONS:
            return False
        scope = "own" if subject.user_id == user.id else "other"
        if not has_permission(user, f"{attribute}_{scope}_timesheet"):
            return False
        if attribute in ("edit", "delete") and subject.exported:
            return has_permission(user, "edit_exported_timesheet")
        return True

    return has_permission(user, attribute)


def deny_access_unless_granted(
    user: User, attribute: str, subject: Optional[Any] = None, message: Optional[str] = None
) -> None:
    if not is_granted(user, attribute, subject):
        logger.info(f"Access denied for {user.username}: {attribute}")
        raise AccessDeniedError(message or "Access denied.")


class UserChecker:
    """Account status checks run before and after authentication.

    Objects that are not application users are ignored.
    """

    def check_pre_auth(self, user: Any) -> None:
        self._check_enabled(user)

    def check_post_auth(self, user: Any) -> None:
        self._check_enabled(user)

    @staticmethod
    def _check_enabled(user: Any) -> None:
        if not isinstance(user, User):
            return
        if not user.enabled:
            raise AccessDeniedError("User account is disabled.")


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(user: User, password: str) -> bool:
    if not user.password_hash:
        return False
    try:
        return check_password_hash(user.password_hash, password)
    except ValueError:
        # unknown or corrupted hash format
        return False


def authenticate(user: Optional[User], password: str) -> User:
    """Validate credentials and account status.

    Raises:
        AuthenticationError: Unknown user or wrong password
        AccessDeniedError: Disabled account
    """
    checker = UserChecker()
    if user is None:
        raise AuthenticationError("Invalid credentials.")
    checker.check_pre_auth(user)
    if not verify_password(user, password):
        raise AuthenticationError("Invalid credentials.")
    checker.check_post_auth(user)
    return user

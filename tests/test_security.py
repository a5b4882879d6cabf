"""Tests for roles, permissions and authentication."""

from datetime import datetime

import pytest  # type: ignore[import-not-found]

from kimai.core.exceptions import AccessDeniedError, AuthenticationError
from kimai.core.models import Role, Timesheet, User
from kimai.core.security import (
    UserChecker,
    authenticate,
    deny_access_unless_granted,
    has_permission,
    hash_password,
    is_granted,
    verify_password,
)


def make_user(id_: int, *roles: Role) -> User:
    return User(username=f"user{id_}", id=id_, roles=[r.value for r in roles])


def make_timesheet(user_id: int, exported: bool = False) -> Timesheet:
    return Timesheet(
        user_id=user_id, project_id=1, activity_id=1, begin=datetime(2024, 5, 1, 8), exported=exported
    )


class TestPermissions:
    """Test the role hierarchy."""

    def test_higher_roles_inherit_permissions(self) -> None:
        user = make_user(1)
        teamlead = make_user(2, Role.TEAMLEAD)
        admin = make_user(3, Role.ADMIN)
        super_admin = make_user(4, Role.SUPER_ADMIN)

        assert has_permission(user, "quick-entry")
        assert not has_permission(user, "view_reporting")
        assert has_permission(teamlead, "view_reporting")
        assert not has_permission(teamlead, "manage_invoice_template")
        assert has_permission(admin, "manage_invoice_template")
        assert not has_permission(admin, "plugins")
        assert has_permission(super_admin, "plugins")
        assert has_permission(super_admin, "quick-entry")

    def test_unknown_role_grants_nothing_extra(self) -> None:
        user = User(username="x", id=1, roles=["ROLE_CUSTOMER"])
        assert not has_permission(user, "view_reporting")


class TestIsGranted:
    """Test subject based voting."""

    def test_profile_own_and_other(self) -> None:
        user = make_user(1)
        other = make_user(2)
        admin = make_user(3, Role.ADMIN)

        assert is_granted(user, "edit", user)
        assert not is_granted(user, "edit", other)
        assert is_granted(admin, "edit", other)
        assert not is_granted(admin, "roles", other)
        assert not is_granted(user, "unknown-action", user)

    def test_profile_of_unsaved_user(self) -> None:
        assert not is_granted(make_user(1, Role.SUPER_ADMIN), "view", User(username="new"))

    def test_timesheet_own_and_other(self) -> None:
        user = make_user(1)
        teamlead = make_user(2, Role.TEAMLEAD)

        assert is_granted(user, "edit", make_timesheet(1))
        assert not is_granted(user, "view", make_timesheet(2))
        assert is_granted(teamlead, "view", make_timesheet(1))
        assert not is_granted(teamlead, "delete", make_timesheet(1))

    def test_exported_timesheet_requires_permission(self) -> None:
        user = make_user(1)
        admin = make_user(2, Role.ADMIN)

        assert not is_granted(user, "edit", make_timesheet(1, exported=True))
        assert is_granted(user, "view", make_timesheet(1, exported=True))
        assert is_granted(admin, "edit", make_timesheet(1, exported=True))

    def test_deny_access_unless_granted(self) -> None:
        with pytest.raises(AccessDeniedError, match="Nope"):
            deny_access_unless_granted(make_user(1), "plugins", message="Nope")

        deny_access_unless_granted(make_user(1, Role.SUPER_ADMIN), "plugins")


class TestAuthentication:
    """Test password checks and account status."""

    def test_hash_and_verify(self) -> None:
        user = User(username="john", password_hash=hash_password("secret123"))

        assert user.password_hash != "secret123"
        assert verify_password(user, "secret123")
        assert not verify_password(user, "wrong")

    def test_verify_without_hash(self) -> None:
        assert not verify_password(User(username="john"), "anything")

    def test_verify_with_corrupted_hash(self) -> None:
        assert not verify_password(User(username="john", password_hash="garbage"), "x")

    def test_authenticate(self) -> None:
        user = User(username="john", password_hash=hash_password("secret123"))

        assert authenticate(user, "secret123") is user

        with pytest.raises(AuthenticationError):
            authenticate(user, "wrong")
        with pytest.raises(AuthenticationError):
            authenticate(None, "secret123")

    def test_disabled_user_is_rejected(self) -> None:
        user = User(username="john", password_hash=hash_password("secret123"), enabled=False)

        with pytest.raises(AccessDeniedError, match="disabled"):
            authenticate(user, "secret123")

    def test_user_checker_ignores_other_objects(self) -> None:
        checker = UserChecker()
        checker.check_pre_auth(object())
        checker.check_post_auth({"enabled": False})

"""User endpoints."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status  # type: ignore[import-untyped]

from kimai.api.auth import get_current_user
from kimai.api.dependencies import get_storage
from kimai.api.models import UserCreateRequest, UserResponse, UserUpdateRequest
from kimai.core.models import Role, User
from kimai.core.security import deny_access_unless_granted, hash_password
from kimai.core.storage import StorageManager

logger = logging.getLogger(__name__)

router = APIRouter()

VALID_ROLES = {r.value for r in Role}


def _get_user(storage: StorageManager, user_id: int) -> User:
    user = storage.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User {user_id} not found")
    return user


def _check_roles(roles: list[str]) -> None:
    invalid = set(roles) - VALID_ROLES
    if invalid:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown roles: {', '.join(sorted(invalid))}",
        )


@router.get("/", response_model=list[UserResponse])
async def list_users(
    visible: int = Query(1, ge=1, le=3, description="1 = enabled, 2 = disabled, 3 = both"),
    term: str = Query("", description="Search in username, alias and email"),
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> list[UserResponse]:
    deny_access_unless_granted(current_user, "view_user")
    users = storage.load_users()
    if visible == 1:
        users = [u for u in users if u.enabled]
    elif visible == 2:
        users = [u for u in users if not u.enabled]
    if term:
        needle = term.lower()
        users = [
            u
            for u in users
            if needle in " ".join([u.username, u.alias or "", u.email]).lower()
        ]
    return [UserResponse.from_user(u) for u in sorted(users, key=lambda u: u.username.lower())]


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(current_user)


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> UserResponse:
    user = _get_user(storage, user_id)
    deny_access_unless_granted(current_user, "view", user)
    return UserResponse.from_user(user)


@router.post("/", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: UserCreateRequest,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> UserResponse:
    deny_access_unless_granted(current_user, "create_user")
    if storage.get_user_by_username(request.username) or storage.get_user_by_username(request.email):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="The username or email is already used.",
        )
    _check_roles(request.roles)
    if Role.SUPER_ADMIN.value in request.roles and not current_user.is_super_admin():
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied.")

    user = User(
        username=request.username,
        email=request.email,
        alias=request.alias,
        title=request.title,
        password_hash=hash_password(request.password),
        roles=[r for r in request.roles if r != Role.USER.value],
        enabled=request.enabled,
        timezone=request.timezone,
        language=request.language,
    )
    saved = storage.save_user(user)
    logger.info(f"User {saved.username} created by {current_user.username}")
    return UserResponse.from_user(saved)


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    request: UserUpdateRequest,
    current_user: User = Depends(get_current_user),
    storage: StorageManager = Depends(get_storage),
) -> UserResponse:
    """Update a profile.

    Roles, password and preferences need their own profile permissions.
    """
    user = _get_user(storage, user_id)
    data = request.model_dump(exclude_unset=True)

    if data.keys() & {"email", "alias", "title", "timezone", "language", "enabled"}:
        deny_access_unless_granted(current_user, "edit", user)
    if "enabled" in data and user.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot disable your own account."
        )
    if "roles" in data:
        deny_access_unless_granted(current_user, "roles", user)
        _check_roles(data["roles"] or [])
    if "password" in data:
        deny_access_unless_granted(current_user, "password", user)
    if "preferences" in data:
        deny_access_unless_granted(current_user, "preferences", user)
    if data.get("email"):
        owner = storage.get_user_by_username(data["email"])
        if owner is not None and owner.id != user.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="The email is already used."
            )

    for name in ("email", "alias", "title", "timezone", "language", "enabled"):
        if name in data and data[name] is not None:
            setattr(user, name, data[name])
    if data.get("roles") is not None:
        user.roles = [r for r in data["roles"] if r != Role.USER.value]
    if data.get("password"):
        user.password_hash = hash_password(data["password"])
    if data.get("preferences"):
        user.preferences.update(data["preferences"])

    saved = storage.save_user(user)
    logger.info(f"User {saved.username} updated by {current_user.username}")
    return UserResponse.from_user(saved)

"""
api/routes/users.py
-------------------
Profile endpoints. Callers may manage their own account; admins any account.

GET   /users/{username}           — Email and nickname.
PATCH /users/{username}           — Rename, change email/nickname; role is admin-only.
PUT   /users/{username}/password  — Set a new password (new salt, new hash).
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from chatserver.core.exceptions import NotFoundError
from chatserver.dependencies import (
    get_credential_store,
    get_current_user,
    require_self_or_admin,
)
from chatserver.models.user import User, UserRole
from chatserver.schemas.user import PasswordChange, ProfileRead, UserRead, UserUpdate
from chatserver.services.credential_store import CredentialStore

router = APIRouter(prefix="/users", tags=["Users"])


@router.get(
    "/{username}",
    response_model=ProfileRead,
    summary="Get a user's email and nickname",
)
async def get_profile(
    username: str,
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> ProfileRead:
    require_self_or_admin(current_user, username)
    profile = await store.fetch_profile(username)
    return ProfileRead(username=username, email=profile.email, nickname=profile.nickname)


@router.patch(
    "/{username}",
    response_model=UserRead,
    summary="Edit a user's profile",
)
async def edit_profile(
    username: str,
    body: UserUpdate,
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserRead:
    """
    Fields left out of the body keep their current value.
    Only admins may change a role. An admin cannot drop their own admin role.
    """
    require_self_or_admin(current_user, username)

    existing = await store.get_user(username)
    if existing is None:
        raise NotFoundError(f"User '{username}' not found")

    role = body.role.value if body.role is not None else existing.role
    if role != existing.role and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required to change roles",
        )
    is_self = existing.username == current_user.username
    if is_self and current_user.is_admin and role != UserRole.admin.value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admins cannot remove their own admin role",
        )

    user = await store.edit_profile(
        current_username=username,
        new_username=body.username or existing.username,
        email=str(body.email) if body.email is not None else existing.email,
        role=role,
        nickname=body.nickname or existing.nickname,
    )
    return UserRead.model_validate(user)


@router.put(
    "/{username}/password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change a user's password",
)
async def change_password(
    username: str,
    body: PasswordChange,
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    current_user: Annotated[User, Depends(get_current_user)],
) -> Response:
    require_self_or_admin(current_user, username)
    await store.change_password(username, body.password)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

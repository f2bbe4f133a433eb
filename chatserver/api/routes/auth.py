"""
api/routes/auth.py
------------------
Account endpoints.

POST /register  — Admin registers a new account (any role).
GET  /me        — Return the authenticated user's account.

Registration is admin-only; the first admin comes from the ADMIN_* settings
(seeded at start-up) or create_tables.py.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, status

from chatserver.dependencies import (
    get_credential_store,
    get_current_admin,
    get_current_user,
)
from chatserver.models.user import User
from chatserver.schemas.user import UserRead, UserRegister
from chatserver.services.credential_store import CredentialStore

router = APIRouter(tags=["Authentication"])


@router.post(
    "/register",
    response_model=UserRead,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user account (admin only)",
)
async def register(
    body: UserRegister,
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    admin: Annotated[User, Depends(get_current_admin)],
) -> UserRead:
    """
    Create a new account. The nickname starts out equal to the username.
    Returns 409 if the username is taken.
    """
    user = await store.register_user(
        role=body.role,
        username=body.username,
        password=body.password,
        email=str(body.email),
    )
    return UserRead.model_validate(user)


@router.get(
    "/me",
    response_model=UserRead,
    summary="Get the currently authenticated user",
)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
) -> UserRead:
    return UserRead.model_validate(current_user)

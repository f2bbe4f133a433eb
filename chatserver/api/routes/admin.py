"""
api/routes/admin.py
-------------------
Admin-only user management.

DELETE /admin/users/{username}  — Hard-delete an account.

Messages written by the deleted user stay in their channels; they reference
the author by name only.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status

from chatserver.core.logging import get_logger
from chatserver.dependencies import get_credential_store, get_current_admin
from chatserver.models.user import User
from chatserver.services.credential_store import CredentialStore

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.delete(
    "/users/{username}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Admin: delete a user account",
)
async def admin_delete_user(
    username: str,
    store: Annotated[CredentialStore, Depends(get_credential_store)],
    admin: Annotated[User, Depends(get_current_admin)],
) -> Response:
    if username == admin.username:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Admins cannot delete their own account",
        )
    await store.delete_user(username)
    logger.info("Admin deleted user", admin=admin.username, username=username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

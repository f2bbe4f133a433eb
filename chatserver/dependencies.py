"""
dependencies.py
---------------
FastAPI dependency injection: store construction and request authentication.

Flow:
  1. HTTPBasic extracts username/password from the Authorization header
     (a missing header is a 401 with WWW-Authenticate: Basic realm="chat").
  2. get_current_user verifies them against the CredentialStore. Unknown
     user and wrong password produce the same 401.
  3. get_current_admin layers a role check on top, reading the role from
     the stored row, never from anything the client sent.

Stores are built per request from the Database that create_application()
put on app.state; there is no process-wide store singleton.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from chatserver.core.config import Settings
from chatserver.core.logging import get_logger
from chatserver.db.session import Database
from chatserver.models.user import User
from chatserver.services.credential_store import CredentialStore
from chatserver.services.message_store import MessageStore
from chatserver.services.sync_engine import SyncQueryEngine

logger = get_logger(__name__)

REALM = "chat"

basic_scheme = HTTPBasic(realm=REALM)

_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid username or password",
    headers={"WWW-Authenticate": f'Basic realm="{REALM}"'},
)


# ── Stores ────────────────────────────────────────────────────────────────────

def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_database(request: Request) -> Database:
    return request.app.state.database


def get_credential_store(
    request: Request,
    database: Annotated[Database, Depends(get_database)],
) -> CredentialStore:
    return CredentialStore(database, request.app.state.password_hasher)


def get_message_store(
    database: Annotated[Database, Depends(get_database)],
    settings: Annotated[Settings, Depends(get_settings_dep)],
) -> MessageStore:
    return MessageStore(
        database, trust_client_timestamps=settings.TRUST_CLIENT_TIMESTAMPS
    )


def get_sync_engine(
    database: Annotated[Database, Depends(get_database)],
    settings: Annotated[Settings, Depends(get_settings_dep)],
) -> SyncQueryEngine:
    return SyncQueryEngine(database, initial_limit=settings.SYNC_INITIAL_LIMIT)


# ── Authentication ────────────────────────────────────────────────────────────

async def get_current_user(
    credentials: Annotated[HTTPBasicCredentials, Depends(basic_scheme)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
) -> User:
    """
    Verify HTTP Basic credentials and return the stored User.
    Raises 401 for any mismatch; storage faults propagate as 503.
    """
    user = await store.verify_credentials(credentials.username, credentials.password)
    if user is None:
        raise _CREDENTIALS_EXCEPTION
    return user


async def get_current_admin(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """
    Extends get_current_user with an admin role check.
    Raises 403 if the authenticated user is not an admin.
    """
    if not current_user.is_admin:
        logger.info("Admin privileges required", username=current_user.username)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


def require_self_or_admin(current_user: User, username: str) -> None:
    """Raise 403 unless the caller is ``username`` or an admin."""
    if current_user.username != username and not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only manage your own account",
        )

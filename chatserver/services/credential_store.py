"""
services/credential_store.py
----------------------------
User credentials: registration, login verification, profile maintenance.

Uniqueness of usernames is enforced by the unique constraint on
users.username. The COUNT pre-check only short-circuits the common case; an
IntegrityError from the insert (or a rename) is what authoritatively means
"username taken".

Hashing is CPU bound and runs in the threadpool, outside any transaction,
so the event loop and the connection are not held while it runs.
"""

from typing import NamedTuple, Optional, Union

from fastapi.concurrency import run_in_threadpool
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from chatserver.core.exceptions import (
    MalformedInputError,
    NotFoundError,
    UsernameTakenError,
)
from chatserver.core.logging import get_logger
from chatserver.core.security import PasswordHasher
from chatserver.db.session import Database
from chatserver.models.user import User, UserRole

logger = get_logger(__name__)


class Profile(NamedTuple):
    email: str
    nickname: str


def _role_value(role: Union[UserRole, str]) -> str:
    try:
        return UserRole(role).value
    except ValueError:
        raise MalformedInputError(f"Unknown role '{role}'", details={"role": role})


class CredentialStore:

    def __init__(self, database: Database, hasher: PasswordHasher) -> None:
        self._db = database
        self._hasher = hasher

    # ── Queries ──────────────────────────────────────────────────────────────

    @staticmethod
    async def _load(session: AsyncSession, username: str) -> Optional[User]:
        result = await session.execute(select(User).where(User.username == username))
        return result.scalar_one_or_none()

    @staticmethod
    async def _username_exists(session: AsyncSession, username: str) -> bool:
        result = await session.execute(
            select(func.count()).select_from(User).where(User.username == username)
        )
        return result.scalar_one() > 0

    async def get_user(self, username: str) -> Optional[User]:
        async with self._db.transaction() as session:
            return await self._load(session, username)

    async def fetch_profile(self, username: str) -> Profile:
        """Return (email, nickname). Raises NotFoundError."""
        async with self._db.transaction() as session:
            result = await session.execute(
                select(User.email, User.nickname).where(User.username == username)
            )
            row = result.one_or_none()
        if row is None:
            raise NotFoundError(f"User '{username}' not found")
        return Profile(email=row.email, nickname=row.nickname)

    # ── Registration ─────────────────────────────────────────────────────────

    async def register_user(
        self,
        role: Union[UserRole, str],
        username: str,
        password: str,
        email: str,
    ) -> User:
        """
        Create a user with a fresh salt; nickname starts out as the username.

        Raises:
            UsernameTakenError: if the username already exists.
            StorageUnavailableError: if the database cannot be reached.
        """
        role_value = _role_value(role)
        password_hash, salt = await run_in_threadpool(self._hasher.hash, password)

        try:
            async with self._db.transaction() as session:
                if await self._username_exists(session, username):
                    logger.info("Username already exists", username=username)
                    raise UsernameTakenError(username)

                user = User(
                    role=role_value,
                    username=username,
                    nickname=username,
                    password_hash=password_hash,
                    email=email,
                    salt=salt,
                )
                session.add(user)
                await session.flush()
        except IntegrityError:
            logger.info("Username collided on insert", username=username)
            raise UsernameTakenError(username)

        logger.info("User registered", user_id=user.id, username=username, role=role_value)
        return user

    async def ensure_admin(self, username: str, password: str, email: str) -> bool:
        """Create the bootstrap admin if missing. Returns True if it was created."""
        if await self.get_user(username) is not None:
            return False
        try:
            await self.register_user(UserRole.admin, username, password, email)
        except UsernameTakenError:
            # Another worker provisioned it first
            return False
        return True

    # ── Authentication ───────────────────────────────────────────────────────

    async def verify_credentials(self, username: str, password: str) -> Optional[User]:
        """
        Return the User if username and password match, else None.

        Unknown usernames still pay for one hash computation so response
        time does not reveal which accounts exist.
        """
        user = await self.get_user(username)
        if user is None:
            await run_in_threadpool(self._hasher.dummy_verify)
            logger.info("Invalid user credentials", username=username)
            return None

        valid = user.username == username and await run_in_threadpool(
            self._hasher.verify, password, user.password_hash
        )
        if not valid:
            logger.info("Wrong username or password", username=username)
            return None
        return user

    async def authenticate(self, username: str, password: str) -> bool:
        return await self.verify_credentials(username, password) is not None

    # ── Maintenance ──────────────────────────────────────────────────────────

    async def edit_profile(
        self,
        current_username: str,
        new_username: str,
        email: str,
        role: Union[UserRole, str],
        nickname: str,
    ) -> User:
        """
        Overwrite username, email, role and nickname of an existing user.

        A rename is checked against existing usernames first and is still
        subject to the unique constraint.

        Raises:
            NotFoundError: no user named ``current_username``.
            UsernameTakenError: ``new_username`` belongs to someone else.
        """
        role_value = _role_value(role)
        try:
            async with self._db.transaction() as session:
                user = await self._load(session, current_username)
                if user is None:
                    logger.info("Could not find user to edit", username=current_username)
                    raise NotFoundError(f"User '{current_username}' not found")

                if new_username != current_username and await self._username_exists(
                    session, new_username
                ):
                    raise UsernameTakenError(new_username)

                user.username = new_username
                user.email = email
                user.role = role_value
                user.nickname = nickname
                await session.flush()
        except IntegrityError:
            raise UsernameTakenError(new_username)

        logger.info("User edited", user_id=user.id, username=current_username)
        return user

    async def change_password(self, username: str, new_password: str) -> None:
        """Store a new hash under a new salt. Raises NotFoundError."""
        password_hash, salt = await run_in_threadpool(self._hasher.hash, new_password)

        async with self._db.transaction() as session:
            result = await session.execute(
                update(User)
                .where(User.username == username)
                .values(password_hash=password_hash, salt=salt)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 0:
            logger.info("Could not find user for password change", username=username)
            raise NotFoundError(f"User '{username}' not found")
        logger.info("Password changed", username=username)

    async def delete_user(self, username: str) -> None:
        """Hard delete. Raises NotFoundError."""
        async with self._db.transaction() as session:
            result = await session.execute(
                delete(User)
                .where(User.username == username)
                .execution_options(synchronize_session=False)
            )
        if result.rowcount == 0:
            logger.info("Can't delete user: username not found", username=username)
            raise NotFoundError(f"User '{username}' not found")
        logger.info("User deleted", username=username)

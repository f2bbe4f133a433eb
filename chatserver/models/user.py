"""
models/user.py
--------------
User ORM model.

Role design:
  - 'admin': Can register, delete and re-role users.
  - 'user':  Can post, edit and delete their own messages.

password_hash stores a sha512_crypt string (salt embedded); the salt is also
kept in its own column, paired 1:1 with the hash. Neither is ever returned
by the API or logged.
"""

from enum import Enum as PyEnum

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from chatserver.db.base import Base


class UserRole(str, PyEnum):
    admin = "admin"
    user = "user"


class User(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    role: Mapped[str] = mapped_column(
        String(20), nullable=False, default=UserRole.user.value
    )
    # unique=True is the authoritative guard against duplicate registrations
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    nickname: Mapped[str] = mapped_column(String(64), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    salt: Mapped[str] = mapped_column(String(32), nullable=False)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin.value

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username} role={self.role}>"

"""
models/__init__.py
------------------
Re-export all models so schema creation can import Base and discover
all tables via a single import:

    from chatserver.models import Base
"""

from chatserver.db.base import Base
from chatserver.models.message import Message, MessageTag
from chatserver.models.user import User, UserRole

__all__ = ["Base", "Message", "MessageTag", "User", "UserRole"]

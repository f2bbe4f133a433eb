"""
core/exceptions.py
------------------
Domain error taxonomy.

Stores and services raise these; main.py maps them to HTTP status codes in a
single exception handler. Raw SQLAlchemy / driver exceptions never cross the
store boundary (see db/session.py).

    ChatServerError
      ├── NotFoundError            404  no such user / message (or tombstoned)
      ├── ForbiddenError           403  ownership or role mismatch
      ├── UsernameTakenError       409  registration / rename conflict
      ├── StorageUnavailableError  503  connectivity or transient storage fault
      └── MalformedInputError      400  unparseable payload or header
"""

from typing import Any, Dict, Optional


class ChatServerError(Exception):
    """Base exception for all chat server errors.

    Attributes:
        message: Human readable message, safe to return to clients.
        code: Stable machine readable error code.
        details: Extra context for logs and tests.
    """

    code = "chat_server_error"
    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(ChatServerError):
    code = "not_found"
    status_code = 404


class ForbiddenError(ChatServerError):
    code = "forbidden"
    status_code = 403


class UsernameTakenError(ChatServerError):
    code = "username_taken"
    status_code = 409

    def __init__(self, username: str) -> None:
        super().__init__(
            f"Username '{username}' is already taken",
            details={"username": username},
        )
        self.username = username


class StorageUnavailableError(ChatServerError):
    code = "storage_unavailable"
    status_code = 503


class MalformedInputError(ChatServerError):
    code = "malformed_input"
    status_code = 400

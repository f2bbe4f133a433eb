"""
core/security.py
----------------
Password hashing utilities.

Design decisions:
  - SHA-512 crypt ("$6$rounds=N$salt$hash"), a deliberately slow hash that
    embeds its own salt, so verification needs nothing but the stored string.
  - Salts are 12 bytes from `secrets`, encoded in the crypt hash64 alphabet
    (16 characters, the maximum sha512_crypt accepts). The salt is also
    returned to the caller so it can be persisted next to the hash.
  - Rounds come from settings; tests run with the 1000-round minimum.
  - dummy_verify() burns the same time as a real verification so an unknown
    username is not faster to reject than a wrong password.
"""

import secrets
from typing import Tuple

from passlib.context import CryptContext
from passlib.hash import sha512_crypt
from passlib.utils.binary import h64

from chatserver.core.exceptions import MalformedInputError

SALT_BYTES = 12


def generate_salt() -> str:
    """Return a fresh random salt in crypt hash64 encoding."""
    return h64.encode_bytes(secrets.token_bytes(SALT_BYTES)).decode("ascii")


class PasswordHasher:
    """Hash and verify passwords with a fixed sha512_crypt configuration."""

    def __init__(self, rounds: int) -> None:
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["sha512_crypt"],
            sha512_crypt__rounds=rounds,
        )

    def hash(self, plain: str) -> Tuple[str, str]:
        """
        Hash a plain-text password under a newly generated salt.

        Returns:
            (password_hash, salt)

        Raises:
            MalformedInputError: crypt cannot hash the password (NUL bytes).
        """
        salt = generate_salt()
        try:
            hashed = sha512_crypt.using(salt=salt, rounds=self.rounds).hash(plain)
        except ValueError as exc:
            raise MalformedInputError("Password contains unsupported characters") from exc
        return hashed, salt

    def verify(self, plain: str, hashed: str) -> bool:
        """Recompute with the salt embedded in ``hashed`` and compare in constant time."""
        try:
            return self._context.verify(plain, hashed)
        except ValueError:
            # Stored value is not a recognisable crypt string
            return False

    def dummy_verify(self) -> bool:
        return self._context.dummy_verify()

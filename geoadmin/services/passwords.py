"""
Password hashing with Argon2id.

Unknown usernames are verified against a throwaway hash so a login for a
missing user costs the same as one with a wrong password.
"""

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

password_hasher = PasswordHasher()

_DUMMY_HASH = password_hasher.hash("geoadmin-dummy-password")


def hash_password(password: str) -> str:
    return password_hasher.hash(password)


def verify_password(password_hash: str | None, password: str) -> bool:
    """True when password matches; a None hash burns one verification and fails."""
    try:
        password_hasher.verify(password_hash or _DUMMY_HASH, password)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False
    return password_hash is not None

from __future__ import annotations

import logging

import bcrypt

from .errors import DuplicateEmailError, InvalidCredentialsError
from .models import UserEntity
from .repositories import UserStore, new_id, utcnow

logger = logging.getLogger(__name__)

DEFAULT_ROUNDS = 12
# bcrypt only looks at the first 72 bytes of its input
BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = DEFAULT_ROUNDS) -> str:
    return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(password), hashed.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


# PUBLIC_INTERFACE
class CredentialStore:
    """
    Registers users and checks their passwords.

    Hashing happens here, explicitly, right before the record is written; the
    storage layer only ever sees the hash.
    """

    def __init__(self, store: UserStore, rounds: int = DEFAULT_ROUNDS) -> None:
        self._store = store
        self._rounds = rounds

    def register(self, name: str, email: str, password: str) -> UserEntity:
        email = email.strip().lower()
        if self._store.get_by_email(email) is not None:
            raise DuplicateEmailError()

        user: UserEntity = {
            "id": new_id(),
            "name": name.strip(),
            "email": email,
            "password_hash": hash_password(password, self._rounds),
            "created_at": utcnow(),
        }
        # The store re-checks uniqueness atomically for concurrent registrations
        created = self._store.insert(user)
        logger.info("Registered user %s", created["id"])
        return created

    def authenticate(self, email: str, password: str) -> UserEntity:
        """
        Return the user for a matching email/password pair.

        Raises:
            InvalidCredentialsError: unknown email or wrong password (same error for both).
        """
        user = self._store.get_by_email(email.strip().lower())
        if user is None or not verify_password(password, user["password_hash"]):
            logger.info("Failed login attempt")
            raise InvalidCredentialsError()
        logger.info("User %s logged in", user["id"])
        return user

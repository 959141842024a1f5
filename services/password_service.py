"""
Password verification with account lockout.

Lockout takes precedence over the hash check: while an account is locked every
attempt counts as a failure, even with the right password. Counter changes are
committed before the call returns.
"""
from __future__ import annotations

import logging
from typing import Callable

from argon2 import PasswordHasher

from models.base_model import utcnow
from models.repositories import UserRepository
from models.user import User
from services.settings import AuthSettings
from utils.security import hash_password, needs_rehash, verify_password

logger = logging.getLogger(__name__)


class PasswordService:
    def __init__(self, storage, settings: AuthSettings, hasher: PasswordHasher | None = None,
                 clock: Callable = utcnow):
        self._storage = storage
        self._settings = settings
        self._hasher = hasher or PasswordHasher()
        self._clock = clock
        self._users = UserRepository(storage)

    def hash_password(self, password: str) -> str:
        return hash_password(self._hasher, password)

    def set_password(self, user: User, password: str) -> None:
        """Hash and store a new password on the user. The caller commits."""
        user.set_password_hash(self.hash_password(password), self._clock())

    def verify_password(self, user_id: str, password: str) -> bool:
        user = self._users.get_by_id(user_id)
        if user is None:
            return False

        now = self._clock()
        matches = verify_password(self._hasher, password, user.password_hash)

        if user.is_locked_out(now):
            self._access_failed(user, now)
            logger.warning("Password check refused for user %s: account locked out", user.id)
            self._storage.save()
            return False

        if matches:
            user.reset_access_failed_count()
            if needs_rehash(self._hasher, user.password_hash):
                user.password_hash = self.hash_password(password)
        else:
            self._access_failed(user, now)
        self._storage.save()
        return matches

    def is_locked_out(self, user_id: str) -> bool:
        user = self._users.get_by_id(user_id)
        if user is None:
            return False
        return user.is_locked_out(self._clock())

    def _access_failed(self, user: User, now) -> None:
        locked = user.access_failed(
            self._settings.lockout_max_failed_attempts,
            self._settings.lockout_duration,
            now,
        )
        if locked:
            logger.warning("User %s locked out until %s", user.id, user.lockout_end)

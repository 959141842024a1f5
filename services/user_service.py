"""User profile and account-state use cases."""
from __future__ import annotations

import logging
from typing import Callable, List, Tuple

from models.base_model import utcnow
from models.repositories import RefreshTokenRepository, UserRepository
from models.schemas.common import load_or_fail
from models.schemas.user import ChangeEmailSchema, UpdateProfileSchema
from models.user import User
from services.errors import ConflictError, NotFoundError, ValidationFailedError

logger = logging.getLogger(__name__)

REASON_DEACTIVATED = "user deactivated"
MAX_PAGE_SIZE = 100
SEARCH_TERM_MAX = 100

update_profile_schema = UpdateProfileSchema()
change_email_schema = ChangeEmailSchema()


def _check_paging(page: int, limit: int) -> None:
    if page < 1:
        raise ValidationFailedError.for_field("page", "Page must be at least 1")
    if limit < 1 or limit > MAX_PAGE_SIZE:
        raise ValidationFailedError.for_field("limit", f"Limit must be between 1 and {MAX_PAGE_SIZE}")


class UserService:
    def __init__(self, storage, clock: Callable = utcnow):
        self._storage = storage
        self._clock = clock
        self._users = UserRepository(storage)
        self._refresh_tokens = RefreshTokenRepository(storage)

    def get_user(self, user_id: str) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def get_user_by_email(self, email: str) -> User:
        user = self._users.get_by_email(email)
        if user is None:
            raise NotFoundError("User", email)
        return user

    def list_users(self, page: int = 1, limit: int = 20, include_inactive: bool = False) -> Tuple[List[User], int]:
        _check_paging(page, limit)
        return self._users.paginate(page=page, limit=limit, include_inactive=include_inactive)

    def search_users(self, query: str, page: int = 1, limit: int = 20) -> Tuple[List[User], int]:
        """Active users whose display name or email contains query."""
        term = (query or "").strip()
        if not term:
            raise ValidationFailedError.for_field("q", "Search term is required")
        if len(term) > SEARCH_TERM_MAX:
            raise ValidationFailedError.for_field("q", f"Search term cannot exceed {SEARCH_TERM_MAX} characters")
        _check_paging(page, limit)
        return self._users.search(term, page=page, limit=limit)

    def count_users(self, include_inactive: bool = False) -> int:
        return self._users.count(include_inactive=include_inactive)

    def update_profile(self, user_id: str, display_name: str, first_name: str | None = None,
                       last_name: str | None = None) -> User:
        data = load_or_fail(update_profile_schema, {
            "display_name": display_name,
            "first_name": first_name,
            "last_name": last_name,
        })
        with self._storage.transaction():
            user = self.get_user(user_id)
            user.update_profile(data["display_name"], data["first_name"], data["last_name"], self._clock())
        logger.info("Profile updated for user %s", user_id)
        return user

    def change_email(self, user_id: str, new_email: str) -> User:
        data = load_or_fail(change_email_schema, {"new_email": new_email})
        with self._storage.transaction():
            user = self.get_user(user_id)
            if self._users.exists_by_email(data["new_email"], exclude_user_id=user.id):
                logger.warning("Email change for user %s rejected: address in use", user_id)
                raise ConflictError("User", data["new_email"], "A user with this email address already exists")
            user.change_email(data["new_email"], self._clock())
        logger.info("Email changed for user %s", user_id)
        return user

    def verify_email(self, user_id: str) -> User:
        with self._storage.transaction():
            user = self.get_user(user_id)
            user.verify_email(self._clock())
        logger.info("Email verified for user %s", user_id)
        return user

    def deactivate(self, user_id: str) -> User:
        """Deactivate the account and end all of its sessions."""
        now = self._clock()
        with self._storage.transaction():
            user = self.get_user(user_id)
            user.deactivate(now)
            revoked = self._refresh_tokens.revoke_all_for_user(user.id, REASON_DEACTIVATED, now)
        logger.info("User %s deactivated; revoked %d refresh tokens", user_id, revoked)
        return user

    def reactivate(self, user_id: str) -> User:
        with self._storage.transaction():
            user = self.get_user(user_id)
            user.reactivate(self._clock())
        logger.info("User %s reactivated", user_id)
        return user

"""
Authentication use cases: login, registration, refresh-token rotation, logout,
logout from every device, password change and refresh-token validation.

Refresh tokens move from active to expired (time) or revoked (explicit action);
both are terminal. Rotation is single-use: the old token is revoked and the
new one inserted in the same transaction, and of several concurrent refreshes
with one token only the first conditional revoke succeeds.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Callable

from models.base_model import utcnow
from models.errors import InvalidOperationError
from models.repositories import RefreshTokenRepository, UserRepository
from models.schemas.auth import ChangePasswordSchema, LoginSchema, RegisterSchema
from models.schemas.common import load_or_fail
from models.user import User
from services.errors import ConflictError, InvalidCredentialsError, NotFoundError, UnauthorizedError
from services.password_service import PasswordService
from services.settings import AuthSettings
from services.token_service import TokenService

logger = logging.getLogger(__name__)

REASON_ROTATED = "rotated"
REASON_LOGOUT = "user logout"
REASON_LOGOUT_ALL = "logout-all"
REASON_PASSWORD_CHANGED = "password changed"

login_schema = LoginSchema()
register_schema = RegisterSchema()
change_password_schema = ChangePasswordSchema()


@dataclass(frozen=True)
class AuthResult:
    access_token: str
    refresh_token: str
    access_token_expires_at: datetime
    refresh_token_expires_at: datetime
    user: User


@dataclass(frozen=True)
class LogoutResult:
    message: str
    revoked_count: int = 0


@dataclass(frozen=True)
class OperationResult:
    success: bool
    message: str


def _token_hint(value: str | None) -> str:
    return f"{value[:6]}..." if value else "<empty>"


class AuthService:
    def __init__(self, storage, settings: AuthSettings, passwords: PasswordService,
                 tokens: TokenService, clock: Callable = utcnow):
        self._storage = storage
        self._settings = settings
        self._passwords = passwords
        self._tokens = tokens
        self._clock = clock
        self._users = UserRepository(storage)
        self._refresh_tokens = RefreshTokenRepository(storage)

    def login(self, email: str, password: str, remember_me: bool = False) -> AuthResult:
        data = load_or_fail(login_schema, {"email": email, "password": password, "remember_me": remember_me})
        logger.info("Login attempt for email: %s", data["email"])

        user = self._users.get_by_email(data["email"])
        if user is None:
            logger.warning("Login failed: no user with email %s", data["email"])
            raise InvalidCredentialsError()
        if not user.is_active:
            logger.warning("Login failed: user %s is not active", user.id)
            raise InvalidCredentialsError()
        if not self._passwords.verify_password(user.id, data["password"]):
            logger.warning("Login failed: password rejected for user %s", user.id)
            raise InvalidCredentialsError()

        access_token, access_expires_at = self._tokens.issue_access_token(user)
        refresh = self._tokens.issue_refresh_token(user.id, data["remember_me"])
        with self._storage.transaction():
            self._refresh_tokens.add(refresh)

        logger.info("User %s logged in", user.id)
        return AuthResult(access_token, refresh.token, access_expires_at, refresh.expires_at, user)

    def register(self, email: str, password: str, confirm_password: str, display_name: str,
                 first_name: str | None = None, last_name: str | None = None) -> AuthResult:
        data = load_or_fail(register_schema, {
            "email": email,
            "password": password,
            "confirm_password": confirm_password,
            "display_name": display_name,
            "first_name": first_name,
            "last_name": last_name,
        })
        logger.info("Registration attempt for email: %s", data["email"])

        if self._users.exists_by_email(data["email"]):
            logger.warning("Registration rejected: email %s already in use", data["email"])
            raise ConflictError("User", data["email"], "A user with this email address already exists")

        user = User(
            data["email"],
            data["display_name"],
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            now=self._clock(),
        )
        self._passwords.set_password(user, data["password"])
        access_token, access_expires_at = self._tokens.issue_access_token(user)
        refresh = self._tokens.issue_refresh_token(user.id)

        with self._storage.transaction():
            self._users.add(user)
            self._refresh_tokens.add(refresh)

        logger.info("User %s registered with email %s", user.id, user.email)
        return AuthResult(access_token, refresh.token, access_expires_at, refresh.expires_at, user)

    def refresh_token(self, token_value: str) -> AuthResult:
        now = self._clock()
        stored = self._refresh_tokens.get_by_token(token_value)
        if stored is None:
            logger.warning("Refresh token not found: %s", _token_hint(token_value))
            raise UnauthorizedError("Invalid refresh token")
        if not stored.is_valid(now):
            logger.warning(
                "Refresh refused for user %s: revoked=%s expired=%s",
                stored.user_id, stored.revoked, stored.is_expired(now),
            )
            raise UnauthorizedError("Refresh token is expired or revoked")

        user = self._users.get_by_id(stored.user_id)
        if user is None or not user.is_active:
            logger.warning("Refresh refused: user %s missing or not active", stored.user_id)
            raise UnauthorizedError("Invalid refresh token")

        access_token, access_expires_at = self._tokens.issue_access_token(user)
        replacement = self._tokens.issue_refresh_token(user.id)

        with self._storage.transaction():
            if not self._refresh_tokens.revoke_if_active(stored, REASON_ROTATED, now):
                logger.warning("Refresh token for user %s was already used", user.id)
                raise UnauthorizedError("Refresh token is expired or revoked")
            self._refresh_tokens.add(replacement)

        logger.info("Tokens refreshed for user %s", user.id)
        return AuthResult(access_token, replacement.token, access_expires_at, replacement.expires_at, user)

    def logout(self, token_value: str) -> LogoutResult:
        """Revoke one refresh token. Unknown, expired or already revoked tokens are a no-op."""
        now = self._clock()
        stored = self._refresh_tokens.get_by_token(token_value)
        if stored is None or stored.is_expired(now):
            logger.debug("Logout with unknown or expired token: nothing to revoke")
            return LogoutResult("Logged out successfully")

        try:
            with self._storage.transaction():
                stored.revoke(REASON_LOGOUT, now)
        except InvalidOperationError:
            logger.info("Logout repeated for user %s: token already revoked", stored.user_id)
            return LogoutResult("Logged out successfully")

        logger.info("User %s logged out", stored.user_id)
        return LogoutResult("Logged out successfully", revoked_count=1)

    def logout_all_devices(self, user_id: str) -> LogoutResult:
        logger.info("Logging out user %s from all devices", user_id)
        with self._storage.transaction():
            count = self._refresh_tokens.revoke_all_for_user(user_id, REASON_LOGOUT_ALL, self._clock())
        logger.info("Revoked %d refresh tokens for user %s", count, user_id)
        return LogoutResult(
            f"Logged out from all devices successfully. Revoked {count} active sessions.",
            revoked_count=count,
        )

    def change_password(self, user_id: str, current_password: str, new_password: str,
                        confirm_new_password: str) -> OperationResult:
        """Replace the password and end every other session of the user."""
        data = load_or_fail(change_password_schema, {
            "current_password": current_password,
            "new_password": new_password,
            "confirm_new_password": confirm_new_password,
        })
        logger.info("Password change attempt for user %s", user_id)

        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        if not self._passwords.verify_password(user.id, data["current_password"]):
            logger.warning("Password change refused for user %s: current password rejected", user_id)
            raise UnauthorizedError("Current password is incorrect")

        with self._storage.transaction():
            self._passwords.set_password(user, data["new_password"])
            revoked = self._refresh_tokens.revoke_all_for_user(user.id, REASON_PASSWORD_CHANGED, self._clock())

        logger.info("Password changed for user %s; revoked %d refresh tokens", user_id, revoked)
        return OperationResult(True, "Password changed successfully. Please log in again on all devices.")

    def validate_refresh_token(self, token_value: str) -> bool:
        stored = self._refresh_tokens.get_by_token(token_value)
        return stored is not None and stored.is_valid(self._clock())

    def get_current_user(self, user_id: str) -> User:
        user = self._users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def cleanup_expired_tokens(self) -> int:
        with self._storage.transaction():
            removed = self._refresh_tokens.remove_expired(self._clock())
        logger.info("Removed %d expired refresh tokens", removed)
        return removed

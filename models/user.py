"""
User aggregate.

Identity data (normalized email, password hash, lockout counters, security
stamp) lives in plain columns on the aggregate. State changes go through
methods that check invariants first and then record a notification for the
outbox.
"""
from __future__ import annotations

from datetime import datetime, timedelta
import uuid

from sqlalchemy import Column, String, Boolean, DateTime, Integer, JSON
from sqlalchemy.orm import relationship

from models.base_model import Base, BaseModel, as_utc, utcnow
from models.errors import (
    EmailAlreadyVerifiedError,
    UserAlreadyActiveError,
    UserAlreadyDeactivatedError,
    UserNotActiveError,
    ValidationFailedError,
)
from models import events

DEFAULT_ROLES = ["User"]
ADMIN_ROLE = "Administrator"
DISPLAY_NAME_MAX = 100
PERSON_NAME_MAX = 50


def normalize_email(value: str | None) -> str | None:
    return value.strip().lower() if isinstance(value, str) else value


class User(BaseModel, Base):
    __tablename__ = "users"

    email = Column(String(254), nullable=False, unique=True, index=True)
    display_name = Column(String(DISPLAY_NAME_MAX), nullable=False)
    first_name = Column(String(PERSON_NAME_MAX), nullable=True)
    last_name = Column(String(PERSON_NAME_MAX), nullable=True)
    password_hash = Column(String(255), nullable=True)
    security_stamp = Column(String(36), nullable=True)
    roles = Column(JSON, nullable=True, default=lambda: list(DEFAULT_ROLES))

    is_active = Column(Boolean, default=True, nullable=False)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)
    is_email_verified = Column(Boolean, default=False, nullable=False)
    email_verified_at = Column(DateTime(timezone=True), nullable=True)

    access_failed_count = Column(Integer, default=0, nullable=False)
    lockout_end = Column(DateTime(timezone=True), nullable=True)
    lockout_enabled = Column(Boolean, default=True, nullable=False)

    # optimistic concurrency: a stale UPDATE raises StaleDataError
    version = Column(Integer, nullable=False)
    __mapper_args__ = {"version_id_col": version}

    refresh_tokens = relationship(
        "RefreshToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __init__(self, email: str, display_name: str, first_name: str | None = None,
                 last_name: str | None = None, now: datetime | None = None, **kwargs):
        super().__init__(**kwargs)
        now = now or utcnow()
        self._set_email(email)
        self._set_display_name(display_name)
        self._set_names(first_name, last_name)
        self.roles = list(kwargs.get("roles") or DEFAULT_ROLES)
        self.is_active = True
        self.is_email_verified = False
        self.access_failed_count = 0
        self.lockout_enabled = True
        self.security_stamp = str(uuid.uuid4())
        self.created_at = now
        self.updated_at = now
        self._record(events.UserCreated(self.id, self.email, self.display_name))

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    # -- outbox ---------------------------------------------------------------

    def _record(self, event: events.UserEvent) -> None:
        pending = self.__dict__.setdefault("_pending_events", [])
        pending.append(event)

    @property
    def pending_events(self) -> list:
        return list(self.__dict__.get("_pending_events", []))

    def pull_events(self) -> list:
        """Return and clear pending notifications."""
        return self.__dict__.pop("_pending_events", [])

    # -- profile --------------------------------------------------------------

    def update_display_name(self, display_name: str, now: datetime | None = None) -> None:
        self._ensure_active()
        old = self.display_name
        self._set_display_name(display_name)
        self.touch(now)
        if old != self.display_name:
            self._record(events.UserDisplayNameUpdated(self.id, old, self.display_name))

    def update_names(self, first_name: str | None, last_name: str | None, now: datetime | None = None) -> None:
        self._ensure_active()
        old = (self.first_name, self.last_name)
        self._set_names(first_name, last_name)
        self.touch(now)
        if old != (self.first_name, self.last_name):
            self._record(events.UserNamesUpdated(self.id, self.first_name, self.last_name))

    def update_profile(self, display_name: str, first_name: str | None, last_name: str | None,
                       now: datetime | None = None) -> None:
        self.update_display_name(display_name, now)
        self.update_names(first_name, last_name, now)

    def change_email(self, new_email: str, now: datetime | None = None) -> None:
        """Switch to a new address; verification starts over."""
        self._ensure_active()
        new_email = normalize_email(new_email)
        if new_email == self.email:
            return
        old = self.email
        self._set_email(new_email)
        self.is_email_verified = False
        self.email_verified_at = None
        self.touch(now)
        self._record(events.UserEmailChanged(self.id, old, self.email))

    def verify_email(self, now: datetime | None = None) -> None:
        self._ensure_active()
        if self.is_email_verified:
            raise EmailAlreadyVerifiedError(self.id)
        now = now or utcnow()
        self.is_email_verified = True
        self.email_verified_at = now
        self.touch(now)
        self._record(events.UserEmailVerified(self.id, self.email))

    def deactivate(self, now: datetime | None = None) -> None:
        if not self.is_active:
            raise UserAlreadyDeactivatedError(self.id)
        now = now or utcnow()
        self.is_active = False
        self.deactivated_at = now
        self.touch(now)
        self._record(events.UserDeactivated(self.id, self.email))

    def reactivate(self, now: datetime | None = None) -> None:
        if self.is_active:
            raise UserAlreadyActiveError(self.id)
        self.is_active = True
        self.deactivated_at = None
        self.touch(now)
        self._record(events.UserReactivated(self.id, self.email))

    def full_name_or_display_name(self) -> str:
        names = [n for n in (self.first_name, self.last_name) if n]
        return " ".join(names) if names else self.display_name

    # -- credentials ----------------------------------------------------------

    def set_password_hash(self, password_hash: str, now: datetime | None = None) -> None:
        """Store a new credential hash and rotate the security stamp."""
        self._ensure_active()
        first_password = self.password_hash is None
        self.password_hash = password_hash
        self.security_stamp = str(uuid.uuid4())
        self.touch(now)
        if not first_password:
            self._record(events.UserPasswordChanged(self.id))

    def is_locked_out(self, now: datetime | None = None) -> bool:
        if not self.lockout_enabled or self.lockout_end is None:
            return False
        return as_utc(self.lockout_end) > (now or utcnow())

    def access_failed(self, max_attempts: int, lockout_duration: timedelta, now: datetime | None = None) -> bool:
        """Count a failed attempt. Returns True when this attempt locks the account."""
        now = now or utcnow()
        self.access_failed_count = (self.access_failed_count or 0) + 1
        if self.lockout_enabled and self.access_failed_count >= max_attempts:
            self.lockout_end = now + lockout_duration
            self.access_failed_count = 0
            return True
        return False

    def reset_access_failed_count(self) -> None:
        self.access_failed_count = 0

    # -- invariants -----------------------------------------------------------

    def _ensure_active(self) -> None:
        if not self.is_active:
            raise UserNotActiveError(self.id)

    def _set_email(self, email: str) -> None:
        email = normalize_email(email)
        if not email:
            raise ValidationFailedError.for_field("email", "Email address cannot be empty or whitespace")
        self.email = email

    def _set_display_name(self, display_name: str) -> None:
        if not display_name or not display_name.strip():
            raise ValidationFailedError.for_field("display_name", "Display name cannot be empty or whitespace")
        if len(display_name) > DISPLAY_NAME_MAX:
            raise ValidationFailedError.for_field(
                "display_name", f"Display name cannot exceed {DISPLAY_NAME_MAX} characters"
            )
        self.display_name = display_name.strip()

    def _set_names(self, first_name: str | None, last_name: str | None) -> None:
        for field, value in (("first_name", first_name), ("last_name", last_name)):
            if value and len(value) > PERSON_NAME_MAX:
                raise ValidationFailedError.for_field(field, f"Cannot exceed {PERSON_NAME_MAX} characters")
        self.first_name = first_name.strip() if first_name and first_name.strip() else None
        self.last_name = last_name.strip() if last_name and last_name.strip() else None

    def __repr__(self):
        return f"<User id={self.id} email={self.email} active={self.is_active}>"

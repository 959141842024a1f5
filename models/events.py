"""
Notifications raised by the User aggregate.

They sit on the aggregate until the owning transaction commits; DBStorage then
drains and dispatches them (see DBStorage.transaction). Nothing is dispatched
for a rolled back transaction.
"""
from __future__ import annotations

from dataclasses import dataclass, asdict
import logging

audit_logger = logging.getLogger("modernapi.audit")


@dataclass(frozen=True)
class UserEvent:
    user_id: str

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class UserCreated(UserEvent):
    email: str
    display_name: str


@dataclass(frozen=True)
class UserDisplayNameUpdated(UserEvent):
    old_display_name: str
    new_display_name: str


@dataclass(frozen=True)
class UserNamesUpdated(UserEvent):
    first_name: str | None
    last_name: str | None


@dataclass(frozen=True)
class UserEmailChanged(UserEvent):
    old_email: str
    new_email: str


@dataclass(frozen=True)
class UserEmailVerified(UserEvent):
    email: str


@dataclass(frozen=True)
class UserDeactivated(UserEvent):
    email: str


@dataclass(frozen=True)
class UserReactivated(UserEvent):
    email: str


@dataclass(frozen=True)
class UserPasswordChanged(UserEvent):
    pass


def log_event(event: UserEvent) -> None:
    """Default subscriber: one audit line per committed notification."""
    audit_logger.info("%s %s", event.name, asdict(event))

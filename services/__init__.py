"""
Service wiring.

build_services() is called once per application with the storage and the
settings; every service shares the same clock and password hasher.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from argon2 import PasswordHasher

from models.base_model import utcnow
from models.events import log_event
from services.auth_service import AuthService
from services.password_service import PasswordService
from services.settings import AuthSettings
from services.token_service import TokenService
from services.user_service import UserService


@dataclass
class ServiceContainer:
    settings: AuthSettings
    passwords: PasswordService
    tokens: TokenService
    auth: AuthService
    users: UserService


def build_services(storage, settings: AuthSettings, clock: Callable = utcnow,
                   hasher: PasswordHasher | None = None) -> ServiceContainer:
    storage.subscribe(log_event)
    passwords = PasswordService(storage, settings, hasher=hasher or PasswordHasher(), clock=clock)
    tokens = TokenService(settings, clock=clock)
    return ServiceContainer(
        settings=settings,
        passwords=passwords,
        tokens=tokens,
        auth=AuthService(storage, settings, passwords, tokens, clock=clock),
        users=UserService(storage, clock=clock),
    )

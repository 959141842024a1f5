"""Authentication settings, built once at startup and passed to the services."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from services.errors import ConfigurationError

MIN_SECRET_LENGTH = 32


@dataclass(frozen=True)
class AuthSettings:
    jwt_secret: str
    jwt_algorithm: str = "HS256"
    jwt_issuer: str = "modernapi"
    jwt_audience: str = "modernapi-clients"
    access_token_ttl_minutes: int = 15
    refresh_token_ttl_days: int = 7
    remember_me_refresh_token_ttl_days: int = 30
    lockout_max_failed_attempts: int = 5
    lockout_duration_minutes: int = 15

    def __post_init__(self):
        if not self.jwt_secret or len(self.jwt_secret) < MIN_SECRET_LENGTH:
            raise ConfigurationError(f"JWT_SECRET must be at least {MIN_SECRET_LENGTH} characters long")
        if not self.jwt_algorithm.startswith("HS"):
            raise ConfigurationError("Only HMAC signing algorithms (HS256/HS384/HS512) are supported")
        for name in (
            "access_token_ttl_minutes",
            "refresh_token_ttl_days",
            "remember_me_refresh_token_ttl_days",
            "lockout_max_failed_attempts",
            "lockout_duration_minutes",
        ):
            if int(getattr(self, name)) <= 0:
                raise ConfigurationError(f"{name.upper()} must be a positive integer")

    @property
    def access_token_ttl(self) -> timedelta:
        return timedelta(minutes=self.access_token_ttl_minutes)

    def refresh_token_ttl(self, remember_me: bool = False) -> timedelta:
        days = self.remember_me_refresh_token_ttl_days if remember_me else self.refresh_token_ttl_days
        return timedelta(days=days)

    @property
    def lockout_duration(self) -> timedelta:
        return timedelta(minutes=self.lockout_duration_minutes)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "AuthSettings":
        """Build from a Flask-style config mapping (upper-case keys)."""
        try:
            return cls(
                jwt_secret=config.get("JWT_SECRET"),
                jwt_algorithm=config.get("JWT_ALGORITHM", "HS256"),
                jwt_issuer=config.get("JWT_ISSUER", "modernapi"),
                jwt_audience=config.get("JWT_AUDIENCE", "modernapi-clients"),
                access_token_ttl_minutes=int(config.get("ACCESS_TOKEN_TTL_MINUTES", 15)),
                refresh_token_ttl_days=int(config.get("REFRESH_TOKEN_TTL_DAYS", 7)),
                remember_me_refresh_token_ttl_days=int(config.get("REMEMBER_ME_REFRESH_TOKEN_TTL_DAYS", 30)),
                lockout_max_failed_attempts=int(config.get("LOCKOUT_MAX_FAILED_ATTEMPTS", 5)),
                lockout_duration_minutes=int(config.get("LOCKOUT_DURATION_MINUTES", 15)),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid authentication settings: {exc}") from exc

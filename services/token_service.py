"""
Token issuing.

Access tokens are HS-signed JWTs carrying identity claims and are never stored.
Refresh tokens are opaque random strings wrapped in an unsaved RefreshToken;
persisting them is up to the caller.
"""
from __future__ import annotations

from datetime import datetime
import logging
from typing import Any, Callable, Dict, Tuple

import jwt

from models.base_model import utcnow
from models.refresh_token import RefreshToken
from models.user import User
from services.errors import ConfigurationError, UnauthorizedError
from services.settings import AuthSettings
from utils.security import decode_token, encode_token, generate_jti, generate_refresh_token_value

logger = logging.getLogger(__name__)


class TokenService:
    def __init__(self, settings: AuthSettings, clock: Callable = utcnow):
        self._settings = settings
        self._clock = clock

    def issue_access_token(self, user: User) -> Tuple[str, datetime]:
        now = self._clock()
        expires_at = now + self._settings.access_token_ttl
        payload = {
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "sub": str(user.id),
            "email": user.email,
            "name": user.display_name,
            "roles": list(user.roles or []),
            "email_verified": bool(user.is_email_verified),
            "jti": generate_jti(),
            "iat": int(now.timestamp()),
            "exp": int(expires_at.timestamp()),
            "type": "access",
        }
        try:
            token = encode_token(payload, self._settings.jwt_secret, self._settings.jwt_algorithm)
        except (jwt.PyJWTError, NotImplementedError, TypeError, ValueError) as exc:
            logger.error("Access token signing failed: %s", exc.__class__.__name__)
            raise ConfigurationError("Access token could not be signed") from exc
        return token, expires_at

    def issue_refresh_token(self, user_id: str, remember_me: bool = False) -> RefreshToken:
        now = self._clock()
        return RefreshToken(
            token=generate_refresh_token_value(),
            user_id=user_id,
            expires_at=now + self._settings.refresh_token_ttl(remember_me),
            now=now,
        )

    def decode_access_token(self, token: str) -> Dict[str, Any]:
        if not token:
            raise UnauthorizedError("Missing access token")
        try:
            return decode_token(
                token,
                self._settings.jwt_secret,
                algorithms=[self._settings.jwt_algorithm],
                issuer=self._settings.jwt_issuer,
                audience=self._settings.jwt_audience,
            )
        except jwt.ExpiredSignatureError as exc:
            raise UnauthorizedError("Token expired") from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError("Invalid token") from exc

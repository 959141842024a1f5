"""
RefreshToken model: opaque, persisted, revocable credential used to mint access tokens.

Fields:
- token (unique, random) - the value handed to the client
- user_id (String(36)) - FK to users.id, cascades on delete
- expires_at - must lie strictly in the future when the token is built
- revoked / revoked_at / revoked_reason

A token is valid iff it is not revoked and expires_at > now. Expired and
revoked are both terminal.
"""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base, as_utc, utcnow
from models.errors import InvalidOperationError, ValidationFailedError


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(128), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked = Column(Boolean, default=False, nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)
    revoked_reason = Column(String(255), nullable=True)

    user = relationship("User", back_populates="refresh_tokens")

    def __init__(self, token: str, user_id: str, expires_at: datetime, now: datetime | None = None, **kwargs):
        now = now or utcnow()
        if not token or not token.strip():
            raise ValidationFailedError.for_field("token", "Token cannot be null or empty")
        if not user_id:
            raise ValidationFailedError.for_field("user_id", "User ID cannot be empty")
        if expires_at is None or as_utc(expires_at) <= now:
            raise ValidationFailedError.for_field("expires_at", "Token must expire in the future")

        super().__init__(**kwargs)
        self.token = token
        self.user_id = user_id
        self.expires_at = as_utc(expires_at)
        self.revoked = False
        self.revoked_at = None
        self.revoked_reason = None
        self.created_at = now
        self.updated_at = now

    def revoke(self, reason: str = "Token revoked", now: datetime | None = None) -> None:
        """Mark the token revoked. Revoking twice is an invalid operation."""
        if self.revoked:
            raise InvalidOperationError("Token is already revoked")
        now = now or utcnow()
        self.revoked = True
        self.revoked_at = now
        self.revoked_reason = reason
        self.touch(now)

    def is_expired(self, now: datetime | None = None) -> bool:
        return as_utc(self.expires_at) <= (now or utcnow())

    def is_valid(self, now: datetime | None = None) -> bool:
        return not self.revoked and not self.is_expired(now)

    def __repr__(self):
        return f"<RefreshToken id={self.id} user_id={self.user_id} revoked={self.revoked}>"

"""
Repositories over DBStorage.

They only stage changes on the current session; committing is the caller's
job (DBStorage.transaction), so several repository calls can share one
transaction.
"""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import or_, update

from models.base_model import utcnow
from models.refresh_token import RefreshToken
from models.user import User, normalize_email


class UserRepository:
    def __init__(self, storage):
        self._storage = storage

    @property
    def _session(self):
        return self._storage.get_session()

    def get_by_id(self, user_id: str) -> Optional[User]:
        if not user_id:
            return None
        return self._storage.get(User, user_id)

    def get_by_email(self, email: str) -> Optional[User]:
        email = normalize_email(email)
        if not email:
            return None
        return self._session.query(User).filter(User.email == email).first()

    def exists_by_email(self, email: str, exclude_user_id: str | None = None) -> bool:
        query = self._session.query(User.id).filter(User.email == normalize_email(email))
        if exclude_user_id:
            query = query.filter(User.id != exclude_user_id)
        return query.first() is not None

    def add(self, user: User) -> None:
        self._storage.new(user)

    def update(self, user: User) -> None:
        self._storage.new(user)

    def paginate(self, page: int = 1, limit: int = 20, include_inactive: bool = False,
                 order_by=None) -> Tuple[List[User], int]:
        query = self._session.query(User)
        if not include_inactive:
            query = query.filter(User.is_active.is_(True))
        total = query.count()
        order_by = order_by if order_by is not None else (User.created_at.desc(),)
        rows = query.order_by(*order_by).offset((page - 1) * limit).limit(limit).all()
        return rows, total

    def search(self, term: str, page: int = 1, limit: int = 20,
               include_inactive: bool = False) -> Tuple[List[User], int]:
        """Case-insensitive substring match on display name or email."""
        pattern = f"%{term}%"
        query = self._session.query(User).filter(
            or_(User.display_name.ilike(pattern), User.email.ilike(pattern))
        )
        if not include_inactive:
            query = query.filter(User.is_active.is_(True))
        total = query.count()
        rows = query.order_by(User.display_name.asc()).offset((page - 1) * limit).limit(limit).all()
        return rows, total

    def count(self, include_inactive: bool = False) -> int:
        query = self._session.query(User)
        if not include_inactive:
            query = query.filter(User.is_active.is_(True))
        return query.count()


class RefreshTokenRepository:
    def __init__(self, storage):
        self._storage = storage

    @property
    def _session(self):
        return self._storage.get_session()

    def get_by_token(self, token: str) -> Optional[RefreshToken]:
        if not token:
            return None
        return self._session.query(RefreshToken).filter(RefreshToken.token == token).first()

    def get_by_user(self, user_id: str) -> List[RefreshToken]:
        return (
            self._session.query(RefreshToken)
            .filter(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at.desc())
            .all()
        )

    def get_active_by_user(self, user_id: str, now: datetime | None = None) -> List[RefreshToken]:
        now = now or utcnow()
        return (
            self._session.query(RefreshToken)
            .filter(
                RefreshToken.user_id == user_id,
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .order_by(RefreshToken.created_at.desc())
            .all()
        )

    def add(self, refresh_token: RefreshToken) -> None:
        self._storage.new(refresh_token)

    def update(self, refresh_token: RefreshToken) -> None:
        self._storage.new(refresh_token)

    def revoke_if_active(self, refresh_token: RefreshToken, reason: str, now: datetime | None = None) -> bool:
        """
        Revoke the row only if it is still active, in a single conditional UPDATE.

        Returns False when another request revoked it first (or it expired), so
        exactly one of several concurrent callers wins.
        """
        now = now or utcnow()
        result = self._session.execute(
            update(RefreshToken)
            .where(
                RefreshToken.id == refresh_token.id,
                RefreshToken.revoked.is_(False),
                RefreshToken.expires_at > now,
            )
            .values(revoked=True, revoked_at=now, revoked_reason=reason, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        # reload the instance from the row on next access
        self._session.expire(refresh_token)
        return result.rowcount == 1

    def revoke_all_for_user(self, user_id: str, reason: str, now: datetime | None = None) -> int:
        now = now or utcnow()
        active = self.get_active_by_user(user_id, now)
        for token in active:
            token.revoke(reason, now)
        return len(active)

    def remove_expired(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        return (
            self._session.query(RefreshToken)
            .filter(RefreshToken.expires_at <= now)
            .delete(synchronize_session=False)
        )

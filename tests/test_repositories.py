from datetime import timedelta

import pytest

from models.base_model import utcnow
from models.db_storage import DBStorage
from models.errors import PersistenceError
from models.refresh_token import RefreshToken
from models.repositories import RefreshTokenRepository, UserRepository
from models.user import User


def add_user(storage, email="dave@example.com", now=None):
    user = User(email, "Dave", now=now)
    with storage.transaction():
        UserRepository(storage).add(user)
    return user


def add_token(storage, user_id, now, ttl=timedelta(days=7), value=None):
    token = RefreshToken(token=value or f"token-{now.timestamp()}-{ttl}", user_id=user_id,
                         expires_at=now + ttl, now=now)
    with storage.transaction():
        RefreshTokenRepository(storage).add(token)
    return token


def test_user_lookup_by_normalized_email(storage):
    user = add_user(storage)
    users = UserRepository(storage)

    assert users.get_by_email("  DAVE@example.com ").id == user.id
    assert users.exists_by_email("dave@EXAMPLE.com")
    assert not users.exists_by_email("dave@example.com", exclude_user_id=user.id)
    assert users.get_by_email("") is None
    assert users.get_by_id(None) is None


def test_duplicate_email_is_a_persistence_error(storage):
    add_user(storage)
    with pytest.raises(PersistenceError):
        add_user(storage)


def test_paginate_skips_inactive_users(storage):
    now = utcnow()
    for i in range(3):
        add_user(storage, f"user{i}@example.com", now=now + timedelta(seconds=i))
    inactive = UserRepository(storage).get_by_email("user1@example.com")
    with storage.transaction():
        inactive.deactivate(now)

    rows, total = UserRepository(storage).paginate(page=1, limit=10)
    assert total == 2
    assert [u.email for u in rows] == ["user2@example.com", "user0@example.com"]

    rows, total = UserRepository(storage).paginate(page=2, limit=1, include_inactive=True)
    assert total == 3
    assert rows[0].email == "user1@example.com"


def test_active_tokens_exclude_revoked_and_expired(storage):
    now = utcnow()
    user = add_user(storage)
    tokens = RefreshTokenRepository(storage)
    active = add_token(storage, user.id, now, value="active")
    short = add_token(storage, user.id, now, ttl=timedelta(minutes=1), value="short")
    revoked = add_token(storage, user.id, now, value="revoked")
    with storage.transaction():
        revoked.revoke("user logout", now)

    later = now + timedelta(minutes=2)
    assert [t.token for t in tokens.get_active_by_user(user.id, later)] == ["active"]
    assert len(tokens.get_by_user(user.id)) == 3
    assert tokens.get_by_token("short").id == short.id
    assert tokens.get_by_token("missing") is None
    assert active.is_valid(later)


def test_revoke_all_for_user(storage):
    now = utcnow()
    user = add_user(storage)
    other = add_user(storage, "erin@example.com")
    for value in ("a", "b", "c"):
        add_token(storage, user.id, now, value=value)
    add_token(storage, other.id, now, value="other")

    tokens = RefreshTokenRepository(storage)
    with storage.transaction():
        count = tokens.revoke_all_for_user(user.id, "logout-all", now)

    assert count == 3
    assert tokens.get_active_by_user(user.id, now) == []
    assert all(t.revoked_reason == "logout-all" for t in tokens.get_by_user(user.id))
    assert tokens.get_by_token("other").is_valid(now)


def test_remove_expired(storage):
    now = utcnow()
    user = add_user(storage)
    add_token(storage, user.id, now, ttl=timedelta(minutes=1), value="old")
    add_token(storage, user.id, now, value="fresh")

    tokens = RefreshTokenRepository(storage)
    with storage.transaction():
        removed = tokens.remove_expired(now + timedelta(hours=1))

    assert removed == 1
    assert tokens.get_by_token("old") is None
    assert tokens.get_by_token("fresh") is not None


def test_revoke_if_active_has_a_single_winner(tmp_path):
    url = f"sqlite:///{tmp_path / 'race.db'}"
    first, second = DBStorage(url), DBStorage(url)
    first.reload()
    second.reload()
    now = utcnow()
    try:
        user = add_user(first)
        add_token(first, user.id, now, value="contended")

        # both requests read the token while it is still active
        seen_by_first = RefreshTokenRepository(first).get_by_token("contended")
        seen_by_second = RefreshTokenRepository(second).get_by_token("contended")
        assert seen_by_first.is_valid(now) and seen_by_second.is_valid(now)

        with first.transaction():
            assert RefreshTokenRepository(first).revoke_if_active(seen_by_first, "rotated", now) is True
        with second.transaction():
            assert RefreshTokenRepository(second).revoke_if_active(seen_by_second, "rotated", now) is False

        assert seen_by_second.revoked is True
        assert seen_by_second.revoked_reason == "rotated"
    finally:
        first.close()
        second.close()


def test_stale_user_update_is_rejected(tmp_path):
    url = f"sqlite:///{tmp_path / 'stale.db'}"
    first, second = DBStorage(url), DBStorage(url)
    first.reload()
    second.reload()
    try:
        user_id = add_user(first).id
        mine = UserRepository(first).get_by_id(user_id)
        theirs = UserRepository(second).get_by_id(user_id)

        with second.transaction():
            theirs.update_display_name("Changed elsewhere")

        with pytest.raises(PersistenceError):
            with first.transaction():
                mine.update_display_name("Changed here")
    finally:
        first.close()
        second.close()

from datetime import timedelta

import pytest

from models.base_model import utcnow
from models.errors import InvalidOperationError, ValidationFailedError
from models.refresh_token import RefreshToken


def make_token(now, ttl=timedelta(days=7)):
    return RefreshToken(token="opaque-value", user_id="user-1", expires_at=now + ttl, now=now)


def test_new_token_is_valid():
    now = utcnow()
    token = make_token(now)

    assert token.revoked is False
    assert token.is_valid(now)
    assert not token.is_expired(now)
    assert token.created_at == now
    assert token.id


def test_expiry_equal_to_now_is_rejected():
    now = utcnow()
    with pytest.raises(ValidationFailedError) as exc:
        RefreshToken(token="opaque-value", user_id="user-1", expires_at=now, now=now)
    assert "expires_at" in exc.value.details


def test_expiry_in_the_past_is_rejected():
    now = utcnow()
    with pytest.raises(ValidationFailedError):
        RefreshToken(token="opaque-value", user_id="user-1", expires_at=now - timedelta(seconds=1), now=now)


@pytest.mark.parametrize("token,user_id,field", [
    ("", "user-1", "token"),
    ("   ", "user-1", "token"),
    ("opaque-value", "", "user_id"),
])
def test_missing_values_are_rejected(token, user_id, field):
    now = utcnow()
    with pytest.raises(ValidationFailedError) as exc:
        RefreshToken(token=token, user_id=user_id, expires_at=now + timedelta(days=1), now=now)
    assert field in exc.value.details


def test_token_becomes_invalid_once_expiry_passes():
    now = utcnow()
    token = make_token(now, ttl=timedelta(minutes=5))

    assert token.is_valid(now + timedelta(minutes=4, seconds=59))
    assert not token.is_valid(now + timedelta(minutes=5))
    assert token.is_expired(now + timedelta(minutes=5))


def test_revoke_records_reason_and_time():
    now = utcnow()
    token = make_token(now)
    later = now + timedelta(minutes=1)

    token.revoke("user logout", later)

    assert token.revoked is True
    assert token.revoked_at == later
    assert token.revoked_reason == "user logout"
    assert token.updated_at == later
    assert not token.is_valid(later)


def test_revoking_twice_is_invalid():
    now = utcnow()
    token = make_token(now)
    token.revoke("first", now)

    with pytest.raises(InvalidOperationError):
        token.revoke("second", now)
    assert token.revoked_reason == "first"


def test_naive_expiry_is_read_as_utc():
    now = utcnow()
    token = make_token(now)
    token.expires_at = (now + timedelta(hours=1)).replace(tzinfo=None)

    assert token.is_valid(now)

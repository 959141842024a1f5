"""
security helpers:
- Argon2 password hashing via argon2-cffi (the hasher instance is built once and injected)
- JWT creation/verification via PyJWT
- random values for refresh tokens and JTIs
"""
from __future__ import annotations

import secrets
import uuid
from typing import Dict, Any, Iterable

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

REFRESH_TOKEN_BYTES = 32  # 256 bits of entropy


def hash_password(hasher: PasswordHasher, password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return hasher.hash(password)


def verify_password(hasher: PasswordHasher, password: str, password_hash: str | None) -> bool:
    """ Verify a plaintext password using argon2
    """
    if not password_hash or password is None:
        return False
    try:
        return hasher.verify(password_hash, password)
    except VerifyMismatchError:
        return False
    except (VerificationError, InvalidHashError):
        # corrupt or foreign hash format
        return False


def needs_rehash(hasher: PasswordHasher, password_hash: str) -> bool:
    try:
        return hasher.check_needs_rehash(password_hash)
    except InvalidHashError:
        return True


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def generate_refresh_token_value(nbytes: int = REFRESH_TOKEN_BYTES) -> str:
    """Opaque, URL-safe random string."""
    return secrets.token_urlsafe(nbytes)


def encode_token(payload: Dict[str, Any], secret: str, algorithm: str) -> str:
    return jwt.encode(payload, secret, algorithm=algorithm)


def decode_token(
    token: str,
    secret: str,
    algorithms: Iterable[str],
    issuer: str | None = None,
    audience: str | None = None,
    expected_type: str = "access",
) -> Dict[str, Any]:
    """
    Decode and validate a JWT. Raises jwt.InvalidTokenError on invalid
    signature, expiry, issuer or audience, and on a wrong token type.
    """
    decoded = jwt.decode(
        token,
        secret,
        algorithms=list(algorithms),
        issuer=issuer,
        audience=audience,
        options={"require": ["exp", "iat", "sub"]},
    )
    if decoded.get("type") != expected_type:
        raise jwt.InvalidTokenError("Wrong token type")
    return decoded

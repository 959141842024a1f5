"""
View decorators for bearer-token authentication and role checks.

Authentication failures raise UnauthorizedError (401 with a Bearer
challenge); a missing role is a plain 403.
"""
from __future__ import annotations
from functools import wraps
from flask import request, g, abort, current_app

from models.repositories import UserRepository
from services.errors import UnauthorizedError

BEARER_PREFIX = "Bearer "


def bearer_token() -> str:
    header = request.headers.get("Authorization", "")
    if not header.startswith(BEARER_PREFIX):
        raise UnauthorizedError("Missing or invalid Authorization header")
    return header[len(BEARER_PREFIX):].strip()


def jwt_required():
    """
    Require a valid access token for an active user. Sets g.current_user,
    g.current_user_roles and g.current_token_jti for the view.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            claims = current_app.extensions["services"].tokens.decode_access_token(bearer_token())

            users = UserRepository(current_app.extensions["storage"])
            user = users.get_by_id(claims.get("sub"))
            # tokens outlive deactivation; the account state is checked on every call
            if user is None or not user.is_active:
                raise UnauthorizedError("User not found or not active")

            g.current_user = user
            g.current_user_roles = set(claims.get("roles") or [])
            g.current_token_jti = claims.get("jti")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def roles_required(required_roles: list[str]):
    """Allow access if the token carries ANY of the required roles."""
    required = set(required_roles or [])

    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if not (g.current_user_roles & required):
                abort(403, description="Insufficient role")
            return fn(*args, **kwargs)

        return wrapper

    return decorator

"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/logout-all      (bearer)
- POST /auth/change-password (bearer)
- GET  /auth/me              (bearer)
- POST /auth/validate-token

Views only parse the body and shape the response; every rule lives in
services.auth_service.AuthService.
"""
from __future__ import annotations

from flask import Blueprint, request, jsonify, g, current_app

from models.schemas.auth import AuthResponseSchema, CurrentUserSchema, RefreshTokenSchema
from models.schemas.common import load_or_fail
from utils.decorators import jwt_required

bp = Blueprint("auth", __name__)

auth_response_schema = AuthResponseSchema()
current_user_schema = CurrentUserSchema()
refresh_token_schema = RefreshTokenSchema()


def _auth_service():
    return current_app.extensions["services"].auth


@bp.post("/register")
def register():
    """
    Register a new user and sign them in.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [email, password, confirm_password, display_name]
          properties:
            email: { type: string }
            password: { type: string }
            confirm_password: { type: string }
            display_name: { type: string }
            first_name: { type: string }
            last_name: { type: string }
    responses:
      201:
        description: Created (returns tokens and the new user)
      409:
        description: Email already registered
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    result = _auth_service().register(
        email=payload.get("email"),
        password=payload.get("password"),
        confirm_password=payload.get("confirm_password"),
        display_name=payload.get("display_name"),
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
    )
    return jsonify({"data": auth_response_schema.dump(result)}), 201


@bp.post("/login")
def login():
    """
    Login: return access_token and refresh_token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
             remember_me: { type: boolean }
    responses:
      200:
        description: OK (returns tokens)
      401:
        description: Invalid email or password
    """
    payload = request.get_json(silent=True) or {}
    result = _auth_service().login(
        email=payload.get("email"),
        password=payload.get("password"),
        remember_me=payload.get("remember_me", False),
    )
    return jsonify({"data": auth_response_schema.dump(result)}), 200


@bp.post("/refresh")
def refresh():
    """
    Exchange a refresh token for a new access/refresh pair (rotation).
    The presented refresh token can not be used again.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK (returns new tokens)
      401:
        description: Invalid, expired or revoked refresh token
    """
    data = load_or_fail(refresh_token_schema, request.get_json(silent=True) or {})
    result = _auth_service().refresh_token(data["refresh_token"])
    return jsonify({"data": auth_response_schema.dump(result)}), 200


@bp.post("/logout")
def logout():
    """
    Logout: revoke one refresh token. Unknown or already revoked tokens are accepted.
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: Logged out
    """
    data = load_or_fail(refresh_token_schema, request.get_json(silent=True) or {})
    result = _auth_service().logout(data["refresh_token"])
    return jsonify({"data": {"message": result.message}}), 200


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    Revoke every active refresh token of the current user.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: Logged out from all devices
      401:
        description: Unauthorized
    """
    result = _auth_service().logout_all_devices(g.current_user.id)
    return jsonify({"data": {"message": result.message, "revoked_count": result.revoked_count}}), 200


@bp.post("/change-password")
@jwt_required()
def change_password():
    """
    Change the current user's password. All refresh tokens are revoked.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             current_password: { type: string }
             new_password: { type: string }
             confirm_new_password: { type: string }
    responses:
      200:
        description: Password changed
      401:
        description: Current password is incorrect
      422:
        description: Validation error
    """
    payload = request.get_json(silent=True) or {}
    result = _auth_service().change_password(
        g.current_user.id,
        current_password=payload.get("current_password"),
        new_password=payload.get("new_password"),
        confirm_new_password=payload.get("confirm_new_password"),
    )
    return jsonify({"data": {"success": result.success, "message": result.message}}), 200


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info.
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    user = _auth_service().get_current_user(g.current_user.id)
    return jsonify({"data": current_user_schema.dump(user)}), 200


@bp.post("/validate-token")
def validate_token():
    """
    Check whether a refresh token is still usable (not revoked, not expired).
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             refresh_token: { type: string }
    responses:
      200:
        description: OK
    """
    data = load_or_fail(refresh_token_schema, request.get_json(silent=True) or {})
    return jsonify({"data": {"valid": _auth_service().validate_refresh_token(data["refresh_token"])}}), 200

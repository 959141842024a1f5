from __future__ import annotations

from typing import Tuple
from flask import Blueprint, request, jsonify, g, abort, current_app

from models.schemas.user import UserOutSchema, UserListOutSchema
from models.user import ADMIN_ROLE
from utils.decorators import jwt_required, roles_required

MAX_LIMIT = 100

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()
user_list_out_schema = UserListOutSchema(many=True)


def _user_service():
    return current_app.extensions["services"].users


def parse_pagination() -> Tuple[int, int]:
    try:
        page = int(request.args.get("page", "1"))
        limit = int(request.args.get("limit", "20"))
        page = max(page, 1)
        limit = max(1, min(limit, MAX_LIMIT))
        return page, limit
    except ValueError:
        abort(400, description="page and limit must be integers")


@bp.get("/users")
@jwt_required()
def list_users():
    """
    List active users
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
      - in: query
        name: limit
        type: integer
    responses:
      200: { description: OK }
    """
    page, limit = parse_pagination()
    rows, total = _user_service().list_users(page=page, limit=limit)
    return jsonify(
        {
            "data": user_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": total}
        }
    )


@bp.get("/users/search")
@roles_required([ADMIN_ROLE])
def search_users():
    """
    Admin-only: search active users by display name or email
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: query
        name: q
        type: string
        required: true
      - in: query
        name: page
        type: integer
      - in: query
        name: limit
        type: integer
    responses:
      200: { description: OK }
      422: { description: Missing search term }
    """
    page, limit = parse_pagination()
    rows, total = _user_service().search_users(request.args.get("q", ""), page=page, limit=limit)
    return jsonify(
        {
            "data": user_list_out_schema.dump(rows),
            "meta": {"page": page, "limit": limit, "total": total}
        }
    )


@bp.get("/users/statistics")
@roles_required([ADMIN_ROLE])
def user_statistics():
    """
    Admin-only: user counts
    ---
    tags:
      - Users
    security:
      - Bearer: []
    responses:
      200: { description: OK }
    """
    service = _user_service()
    total = service.count_users(include_inactive=True)
    active = service.count_users()
    return jsonify({"data": {"total_users": total, "active_users": active, "inactive_users": total - active}})


@bp.get("/users/<user_id>")
@jwt_required()
def get_user(user_id: str):
    """
    Get one user by id
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    return jsonify({"data": user_out_schema.dump(_user_service().get_user(user_id))}), 200


@bp.put("/users/me/profile")
@jwt_required()
def update_profile():
    """
    Update the current user's display name and names
    ---
    tags:
      - Users
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
             display_name: { type: string }
             first_name: { type: string }
             last_name: { type: string }
    responses:
      200: { description: OK }
      422: { description: Validation error }
    """
    payload = request.get_json(silent=True) or {}
    user = _user_service().update_profile(
        g.current_user.id,
        display_name=payload.get("display_name"),
        first_name=payload.get("first_name"),
        last_name=payload.get("last_name"),
    )
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.put("/users/me/email")
@jwt_required()
def change_email():
    """
    Change the current user's email; the new address starts unverified
    ---
    tags:
      - Users
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
             new_email: { type: string }
    responses:
      200: { description: OK }
      409: { description: Email already in use }
    """
    payload = request.get_json(silent=True) or {}
    user = _user_service().change_email(g.current_user.id, payload.get("new_email"))
    return jsonify({"data": user_out_schema.dump(user)}), 200


@bp.post("/users/<user_id>/verify-email")
@roles_required([ADMIN_ROLE])
def verify_email(user_id: str):
    """
    Admin-only: mark a user's email as verified
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      400: { description: Email already verified }
    """
    return jsonify({"data": user_out_schema.dump(_user_service().verify_email(user_id))}), 200


@bp.post("/users/<user_id>/deactivate")
@roles_required([ADMIN_ROLE])
def deactivate(user_id: str):
    """
    Admin-only: deactivate a user and revoke its sessions
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      400: { description: User already deactivated }
    """
    return jsonify({"data": user_out_schema.dump(_user_service().deactivate(user_id))}), 200


@bp.post("/users/<user_id>/reactivate")
@roles_required([ADMIN_ROLE])
def reactivate(user_id: str):
    """
    Admin-only: reactivate a user
    ---
    tags:
      - Users
    security:
      - Bearer: []
    parameters:
      - in: path
        name: user_id
        type: string
        required: true
    responses:
      200: { description: OK }
      400: { description: User already active }
    """
    return jsonify({"data": user_out_schema.dump(_user_service().reactivate(user_id))}), 200

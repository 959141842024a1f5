from marshmallow import Schema, fields, pre_load, validates, validates_schema, ValidationError

from models.schemas.common import (
    normalize_email,
    validate_display_name,
    validate_email_rules,
    validate_password_strength,
    validate_person_name,
)
from models.schemas.user import UserOutSchema


class LoginSchema(Schema):
    # plain String: a malformed address must fail like any unknown one
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)
    remember_me = fields.Boolean(load_default=False)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = normalize_email(data["email"])
        return data


class RegisterSchema(Schema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    confirm_password = fields.String(required=True, load_only=True)
    display_name = fields.String(required=True)
    first_name = fields.String(allow_none=True, load_default=None)
    last_name = fields.String(allow_none=True, load_default=None)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data["email"] = normalize_email(data["email"])
        return data

    @validates("email")
    def validate_email(self, value, **kwargs):
        validate_email_rules(value)

    @validates("password")
    def validate_password(self, value, **kwargs):
        validate_password_strength(value)

    @validates("display_name")
    def validate_display_name(self, value, **kwargs):
        validate_display_name(value)

    @validates("first_name")
    def validate_first_name(self, value, **kwargs):
        validate_person_name(value)

    @validates("last_name")
    def validate_last_name(self, value, **kwargs):
        validate_person_name(value)

    @validates_schema
    def passwords_match(self, data, **kwargs):
        if data.get("password") != data.get("confirm_password"):
            raise ValidationError("Passwords do not match", field_name="confirm_password")


class RefreshTokenSchema(Schema):
    refresh_token = fields.String(required=True)


class ChangePasswordSchema(Schema):
    current_password = fields.String(required=True, load_only=True)
    new_password = fields.String(required=True, load_only=True)
    confirm_new_password = fields.String(required=True, load_only=True)

    @validates("new_password")
    def validate_new_password(self, value, **kwargs):
        validate_password_strength(value)

    @validates_schema
    def passwords_match(self, data, **kwargs):
        if data.get("new_password") != data.get("confirm_new_password"):
            raise ValidationError("Passwords do not match", field_name="confirm_new_password")


class AuthResponseSchema(Schema):
    access_token = fields.String()
    refresh_token = fields.String()
    token_type = fields.Constant("bearer")
    access_token_expires_at = fields.DateTime()
    refresh_token_expires_at = fields.DateTime()
    user = fields.Nested(UserOutSchema)


class CurrentUserSchema(Schema):
    id = fields.String()
    email = fields.String()
    display_name = fields.String()
    first_name = fields.String(allow_none=True)
    last_name = fields.String(allow_none=True)
    is_email_verified = fields.Boolean()
    roles = fields.List(fields.String())

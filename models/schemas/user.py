from marshmallow import Schema, fields, pre_load, validates

from models.schemas.common import (
    normalize_email,
    validate_display_name,
    validate_email_rules,
    validate_person_name,
)


class UpdateProfileSchema(Schema):
    display_name = fields.String(required=True)
    first_name = fields.String(allow_none=True, load_default=None)
    last_name = fields.String(allow_none=True, load_default=None)

    @validates("display_name")
    def validate_display_name(self, value, **kwargs):
        validate_display_name(value)

    @validates("first_name")
    def validate_first_name(self, value, **kwargs):
        validate_person_name(value)

    @validates("last_name")
    def validate_last_name(self, value, **kwargs):
        validate_person_name(value)


class ChangeEmailSchema(Schema):
    new_email = fields.Email(required=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "new_email" in data:
            data["new_email"] = normalize_email(data["new_email"])
        return data

    @validates("new_email")
    def validate_new_email(self, value, **kwargs):
        validate_email_rules(value)


class UserOutSchema(Schema):
    id = fields.String(allow_none=False)
    email = fields.String(allow_none=False)
    display_name = fields.String()
    first_name = fields.String(allow_none=True)
    last_name = fields.String(allow_none=True)
    is_active = fields.Boolean()
    is_email_verified = fields.Boolean()
    roles = fields.List(fields.String())
    created_at = fields.DateTime()
    updated_at = fields.DateTime()


class UserListOutSchema(Schema):
    id = fields.String(allow_none=False)
    email = fields.String(allow_none=False)
    display_name = fields.String()
    is_active = fields.Boolean()
    roles = fields.List(fields.String())

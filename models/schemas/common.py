import re

from marshmallow import ValidationError

from models.errors import ValidationFailedError
from models.user import normalize_email  # noqa: F401

EMAIL_MAX = 254
EMAIL_LOCAL_MAX = 64
PASSWORD_MIN = 8

_DISPLAY_NAME_RE = re.compile(r"^[a-zA-Z0-9\s\-_\.]+$")
_PERSON_NAME_RE = re.compile(r"^[a-zA-Z\s\-'\.]*$")
_PASSWORD_RULES = (
    (re.compile(r"[A-Z]"), "Password must contain an upper-case letter."),
    (re.compile(r"[a-z]"), "Password must contain a lower-case letter."),
    (re.compile(r"[0-9]"), "Password must contain a digit."),
    (re.compile(r"[^a-zA-Z0-9]"), "Password must contain a non-alphanumeric character."),
)


def validate_email_rules(value: str) -> None:
    """Business rules on top of the syntactic check done by fields.Email."""
    if len(value) > EMAIL_MAX:
        raise ValidationError(f"Email address cannot exceed {EMAIL_MAX} characters.")
    local, _, domain = value.rpartition("@")
    if not local or len(local) > EMAIL_LOCAL_MAX:
        raise ValidationError("Email address is not valid.")
    if local.startswith(".") or local.endswith(".") or ".." in local:
        raise ValidationError("Email address is not valid.")
    if domain.startswith((".", "-")) or domain.endswith((".", "-")):
        raise ValidationError("Email address is not valid.")


def validate_display_name(value: str) -> None:
    if not value or not value.strip():
        raise ValidationError("Display name is required.")
    if len(value) > 100:
        raise ValidationError("Display name must be between 1 and 100 characters.")
    if not _DISPLAY_NAME_RE.match(value):
        raise ValidationError(
            "Display name can only contain letters, numbers, spaces, hyphens, underscores, and periods."
        )


def validate_person_name(value) -> None:
    if value is None:
        return
    if len(value) > 50:
        raise ValidationError("Cannot exceed 50 characters.")
    if not _PERSON_NAME_RE.match(value):
        raise ValidationError("Can only contain letters, spaces, hyphens, apostrophes, and periods.")


def validate_password_strength(value: str) -> None:
    errors = []
    if len(value) < PASSWORD_MIN:
        errors.append(f"Password must be at least {PASSWORD_MIN} characters long.")
    errors.extend(message for pattern, message in _PASSWORD_RULES if not pattern.search(value))
    if errors:
        raise ValidationError(errors)


def load_or_fail(schema, data: dict) -> dict:
    """Run a marshmallow load and turn its errors into ValidationFailedError."""
    try:
        return schema.load(data)
    except ValidationError as err:
        raise ValidationFailedError(details=err.messages) from err

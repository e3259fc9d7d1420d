"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from typing import Any

from marshmallow import Schema, fields, post_load, pre_load, validate

from licensegate.services.auth.dto import SignUpIn

PASSWORD_PATTERN = r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$"
PASSWORD_MESSAGE = (
    "Password must contain at least one lowercase letter, one uppercase letter, "
    "one number, and one special character"
)


def _strip_email(data: Any) -> Any:
    if isinstance(data, dict) and isinstance(data.get("email"), str):
        data = dict(data)
        data["email"] = data["email"].strip()
    return data


class SignUpSchema(Schema):
    """Input payload for account registration."""

    name = fields.String(
        required=True,
        validate=validate.Length(min=3, max=50, error="Name must be between 3 and 50 characters"),
    )
    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(
        required=True,
        load_only=True,
        validate=[
            validate.Length(min=8, max=50, error="Password must be between 8 and 50 characters"),
            validate.Regexp(PASSWORD_PATTERN, error=PASSWORD_MESSAGE),
        ],
    )
    whatsapp_number = fields.String(required=True, validate=validate.Length(min=1, max=32))
    governorate = fields.String(load_default=None, validate=validate.Length(max=100))
    education_administration = fields.String(load_default=None, validate=validate.Length(max=100))
    subjects = fields.List(fields.String(), load_default=list)
    schools = fields.List(fields.String(), load_default=list)
    grades = fields.List(fields.String(), load_default=list)

    @pre_load
    def strip_email(self, data: Any, **_: Any) -> Any:
        return _strip_email(data)

    @post_load
    def to_dto(self, data: dict[str, Any], **_: Any) -> SignUpIn:
        return SignUpIn(**data)


class SignInSchema(Schema):
    """Input payload for authenticating a user."""

    email = fields.Email(required=True, validate=validate.Length(max=254))
    password = fields.String(
        required=True, load_only=True, validate=validate.Length(min=1, max=128)
    )

    @pre_load
    def strip_email(self, data: Any, **_: Any) -> Any:
        return _strip_email(data)


class TokenResponseSchema(Schema):
    """Token pair as returned in the response body."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    expires_in = fields.Integer(required=True)


class ProfileSchema(Schema):
    """Identity details for the authenticated user."""

    id = fields.String(required=True)
    email = fields.Email(required=True)
    name = fields.String(required=True)
    role = fields.String(required=True)
    session_id = fields.String(allow_none=True, data_key="sessionId")
    whatsapp_number = fields.String(allow_none=True)
    license_expires_at = fields.DateTime(allow_none=True, data_key="licenseExpiresAt")
    created_at = fields.DateTime(allow_none=True, data_key="createdAt")


class SessionSchema(Schema):
    """Public view of one login session."""

    id = fields.String(required=True)
    created_at = fields.DateTime(data_key="createdAt")
    expires_at = fields.DateTime(data_key="expiresAt")
    user_agent = fields.String(allow_none=True, data_key="userAgent")
    ip = fields.String(allow_none=True)
    current = fields.Boolean()

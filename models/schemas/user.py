from marshmallow import Schema, fields, pre_load, validates, ValidationError
from marshmallow.validate import Length, OneOf

from models.user import Role, AuthProvider, normalize_email

SELF_SERVICE_ROLES = [Role.DOCTOR.value, Role.PATIENT.value]


def _check_password(value):
    if len(value) < 8:
        raise ValidationError("Password must be at least 8 characters long.")


class _EmailNormalizingSchema(Schema):
    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=normalize_email(data["email"]))
        return data


class UserCreateSchema(_EmailNormalizingSchema):
    name = fields.String(required=True, validate=Length(min=2, max=50))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    role = fields.String(required=True, validate=OneOf(SELF_SERVICE_ROLES))

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class UserLoginSchema(_EmailNormalizingSchema):
    email = fields.String(required=True)
    password = fields.String(required=True, load_only=True)


class ProfileUpdateSchema(Schema):
    name = fields.String(validate=Length(min=2, max=50))
    profile_picture = fields.String(allow_none=True)
    specialization = fields.String(allow_none=True, validate=Length(max=100))


class ForgotPasswordSchema(_EmailNormalizingSchema):
    email = fields.String(required=True)


class ChangePasswordSchema(Schema):
    token = fields.String(required=True, load_only=True)
    password = fields.String(required=True, load_only=True)

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class DoctorCreateSchema(_EmailNormalizingSchema):
    name = fields.String(required=True, validate=Length(min=2, max=50))
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)
    specialization = fields.String(allow_none=True, validate=Length(max=100))

    @validates("password")
    def validate_password(self, value, **kwargs):
        _check_password(value)


class DoctorUpdateSchema(Schema):
    name = fields.String(validate=Length(min=2, max=50))
    specialization = fields.String(allow_none=True, validate=Length(max=100))


class UserOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    email = fields.String()
    role = fields.Enum(Role, by_value=True)
    auth_provider = fields.Enum(AuthProvider, by_value=True)
    specialization = fields.String(allow_none=True)
    profile_picture = fields.String(allow_none=True)
    is_active = fields.Boolean()
    last_login = fields.DateTime(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()


class DoctorOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    email = fields.String()
    specialization = fields.String(allow_none=True)
    is_active = fields.Boolean()
    created_at = fields.DateTime()

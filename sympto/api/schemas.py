from datetime import date
from decimal import Decimal

from flask import request
from marshmallow import EXCLUDE, Schema, ValidationError, fields, pre_load, post_load, validate

from sympto.models.user_models import User
from sympto.utils.sanitization import sanitize_fields, sanitize_html

MIN_AGE_YEARS = 13
EARLIEST_BIRTH_DATE = date(1900, 1, 1)

PASSWORD_POLICY_MESSAGE = (
    'Password must be at least 8 characters long and contain at least one lowercase letter, '
    'one uppercase letter, and one number'
)


def validate_password(value):
    if not User.validate_password_strength(value):
        raise ValidationError(PASSWORD_POLICY_MESSAGE)


def validate_birth_date(value):
    today = date.today()
    age = today.year - value.year - ((today.month, today.day) < (value.month, value.day))
    if value < EARLIEST_BIRTH_DATE or value > today:
        raise ValidationError('Date of birth must be a valid date')
    if age < MIN_AGE_YEARS:
        raise ValidationError(f'You must be at least {MIN_AGE_YEARS} years old')


def max_two_decimals(value):
    if Decimal(str(value)).as_tuple().exponent < -2:
        raise ValidationError('Must have at most 2 decimal places')


def load_json(schema, data=None):
    """Validates the JSON body (or ``data``) against ``schema``."""
    if data is None:
        data = request.get_json(silent=True)
    if data is None:
        data = {}
    return schema.load(data)


class BaseSchema(Schema):
    class Meta:
        unknown = EXCLUDE

    text_fields = ()

    @pre_load
    def strip_text(self, data, **kwargs):
        if isinstance(data, dict):
            return sanitize_fields(data, self.text_fields)
        return data


def _name_field(**kwargs):
    return fields.String(validate=validate.Length(min=1, max=50), **kwargs)


class RegisterSchema(BaseSchema):
    text_fields = ('email', 'firstName', 'lastName')

    email = fields.Email(required=True)
    password = fields.String(required=True, validate=validate_password)
    first_name = _name_field(required=True, data_key='firstName')
    last_name = _name_field(required=True, data_key='lastName')
    date_of_birth = fields.Date(load_default=None, allow_none=True, data_key='dateOfBirth',
                                validate=validate_birth_date)

    @post_load
    def normalize(self, data, **kwargs):
        data['email'] = data['email'].lower()
        return data


class LoginSchema(BaseSchema):
    text_fields = ('email',)

    email = fields.Email(required=True)
    password = fields.String(required=True, validate=validate.Length(min=1))


class RefreshTokenSchema(BaseSchema):
    refresh_token = fields.String(required=True, data_key='refreshToken', validate=validate.Length(min=1))


class TokenSchema(BaseSchema):
    text_fields = ('token',)

    token = fields.String(required=True, validate=validate.Length(min=1))


class ForgotPasswordSchema(BaseSchema):
    text_fields = ('email',)

    email = fields.Email(required=True)


class ResetPasswordSchema(BaseSchema):
    text_fields = ('token',)

    token = fields.String(required=True, validate=validate.Length(min=1))
    password = fields.String(required=True, validate=validate_password)


class ProfileUpdateSchema(BaseSchema):
    text_fields = ('email', 'firstName', 'lastName')

    first_name = _name_field(data_key='firstName')
    last_name = _name_field(data_key='lastName')
    date_of_birth = fields.Date(allow_none=True, data_key='dateOfBirth', validate=validate_birth_date)
    email = fields.Email()

    @post_load
    def normalize(self, data, **kwargs):
        if data.get('email'):
            data['email'] = data['email'].lower()
        return data


class ChangePasswordSchema(BaseSchema):
    current_password = fields.String(required=True, data_key='currentPassword', validate=validate.Length(min=1))
    new_password = fields.String(required=True, data_key='newPassword', validate=validate_password)


class DeleteAccountSchema(BaseSchema):
    confirm_password = fields.String(required=True, data_key='confirmPassword', validate=validate.Length(min=1))


def _score(low=0, high=3):
    return fields.Integer(required=True, strict=True, validate=validate.Range(min=low, max=high))


def _lab(low, high):
    return fields.Float(required=True, validate=[validate.Range(min=low, max=high), max_two_decimals])


class AssessmentSchema(BaseSchema):
    # Symptoms
    fatigue = _score()
    hair_loss = _score()
    acidity = _score()
    dizziness = _score()
    muscle_pain = _score()
    numbness = _score()

    # Lifestyle
    vegetarian = _score(0, 1)
    smoking = _score(0, 1)
    alcohol = _score(0, 1)
    iron_food_freq = _score()
    dairy_freq = _score()
    junk_food_freq = _score()
    sunlight_min = _score(0, 65)

    # Lab values
    hemoglobin = _lab(7.2, 16.5)
    ferritin = _lab(4.5, 165)
    vitamin_b12 = _lab(108, 550)
    vitamin_d = _lab(4.5, 49.5)
    calcium = _lab(6.75, 11.22)

    notes = fields.String(load_default=None, allow_none=True, validate=validate.Length(max=1000))

    @post_load
    def escape_notes(self, data, **kwargs):
        if data.get('notes'):
            data['notes'] = sanitize_html(data['notes'])
        return data


class AssessmentListQuerySchema(BaseSchema):
    page = fields.Integer(load_default=1, validate=validate.Range(min=1))
    limit = fields.Integer(load_default=10, validate=validate.Range(min=1, max=100))
    sort_by = fields.String(load_default='createdAt', data_key='sortBy',
                            validate=validate.OneOf(['createdAt', 'completedAt', 'status']))
    sort_order = fields.String(load_default='desc', data_key='sortOrder',
                               validate=validate.OneOf(['asc', 'desc']))


class ConsentUpdateSchema(BaseSchema):
    analytics = fields.Boolean()
    communications = fields.Boolean()
    research = fields.Boolean()


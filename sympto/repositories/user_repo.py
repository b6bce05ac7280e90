"""
sympto.repositories.user_repo - persistence for user accounts.

Names and date of birth are encrypted on write and decrypted on every read.
"""

import logging

from sqlalchemy.exc import IntegrityError

from sympto.extensions import db
from sympto.models.user_models import User
from sympto.repositories.field_codec import decrypt_fields, encrypt_fields, to_date
from sympto.utils.errors import ConflictError
from sympto.utils.time_util import utcnow

logger = logging.getLogger(__name__)

ENCRYPTED_FIELDS = ('first_name', 'last_name', 'date_of_birth')


def normalize_email(email):
    return (email or '').strip().lower()


class UserRepository:
    """SQLAlchemy user repository with field-level encryption."""

    def decode(self, user):
        if user is None:
            return None
        decrypt_fields(user, ('first_name', 'last_name'))
        decrypt_fields(user, ('date_of_birth',), coerce=to_date)
        return user

    def encode(self, user):
        return encrypt_fields(user, ENCRYPTED_FIELDS)

    def get(self, user_id):
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            return None
        return self.decode(db.session.get(User, user_id))

    def find_by_email(self, email):
        user = User.query.filter_by(email=normalize_email(email)).first()
        return self.decode(user)

    def email_exists(self, email, exclude_id=None):
        query = User.query.filter_by(email=normalize_email(email))
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return db.session.query(query.exists()).scalar()

    def find_by_verification_token(self, token):
        if not token:
            return None
        user = User.query.filter(
            User.email_verification_token == token,
            User.email_verification_expires > utcnow(),
        ).first()
        return self.decode(user)

    def find_by_reset_token(self, token):
        if not token:
            return None
        user = User.query.filter(
            User.password_reset_token == token,
            User.password_reset_expires > utcnow(),
        ).first()
        return self.decode(user)

    def add(self, user):
        user.email = normalize_email(user.email)
        self.encode(user)
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration for the same email
            db.session.rollback()
            raise ConflictError('User with this email already exists', code='USER_EXISTS')
        logger.info("Created user %s", user.id)
        return self.decode(user)

    def save(self, user):
        self.encode(user)
        db.session.commit()
        return self.decode(user)

    def delete(self, user):
        user_id = user.id
        # Reload children so the cascade sees rows added through other queries
        db.session.expire(user, ['assessments', 'consent'])
        db.session.delete(user)
        db.session.commit()
        logger.info("Deleted user %s and dependent records", user_id)

    def list_raw(self):
        """Returns all users exactly as stored, without decrypting."""
        return User.query.order_by(User.id).execution_options(populate_existing=True).all()


user_repository = UserRepository()
